"""Error taxonomy with stable machine-readable codes."""
from __future__ import annotations

from enum import Enum
from typing import Dict, Optional


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    DERIVATION_FAILED = "DERIVATION_FAILED"
    INVALID_PUBLIC_KEY = "INVALID_PUBLIC_KEY"
    INVALID_PUBLIC_KEY_FORMAT = "INVALID_PUBLIC_KEY_FORMAT"
    PRIVATE_KEY_UNAVAILABLE = "PRIVATE_KEY_UNAVAILABLE"
    SIGNATURE_ERROR = "SIGNATURE_ERROR"
    SIGNING_FAILED = "SIGNING_FAILED"
    INVALID_SIGNATURE_FORMAT = "INVALID_SIGNATURE_FORMAT"
    INVALID_STATE = "INVALID_STATE"
    MISSING_SIGNATURE = "MISSING_SIGNATURE"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"


class CovenantError(Exception):
    """Base error. ``code`` is stable, ``message`` is for humans."""

    code: ErrorCode = ErrorCode.VALIDATION_ERROR

    def __init__(self, message: str, code: Optional[ErrorCode] = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> Dict[str, str]:
        return {"code": self.code.value, "message": self.message}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code.value!r}, message={self.message!r})"


class ValidationError(CovenantError):
    """Malformed or missing input: empty mnemonic, unknown participant, bad path."""

    code = ErrorCode.VALIDATION_ERROR


class DerivationError(CovenantError):
    """Key derivation failed, e.g. a private key where an xpub was required."""

    code = ErrorCode.DERIVATION_FAILED


class SignatureError(CovenantError):
    """Signing or verification failed internally (not a signature mismatch)."""

    code = ErrorCode.SIGNATURE_ERROR


class InvalidStateError(CovenantError):
    code = ErrorCode.INVALID_STATE


class MissingSignatureError(CovenantError):
    code = ErrorCode.MISSING_SIGNATURE


class InvalidSignatureError(CovenantError):
    code = ErrorCode.INVALID_SIGNATURE

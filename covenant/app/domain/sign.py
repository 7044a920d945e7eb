"""ECDSA/secp256k1 signing helpers.

Payloads are canonicalized exactly once, in :func:`canonical_bytes`. Every
signer and verifier goes through :func:`hash_payload`, so a payload is
always hashed in the same serialized form on both sides.
"""
from __future__ import annotations

import copy
import hashlib
import json
from collections.abc import Mapping
from typing import Any, Tuple, Union

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    Prehashed,
    decode_dss_signature,
    encode_dss_signature,
)
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from pydantic import BaseModel

from .derivation import public_key_bytes
from .errors import ErrorCode, SignatureError, ValidationError

SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

Payload = Union[str, bytes, Mapping, list, BaseModel]
PublicKeyInput = Union[str, bytes]


def canonical_bytes(payload: Payload) -> bytes:
    """Serialize a payload to the bytes that get hashed.

    Strings are taken verbatim (UTF-8) and never re-serialized, so a JSON
    string payload is not encoded twice. Structured payloads become JSON with
    sorted keys and fixed separators.
    """
    if isinstance(payload, str):
        return payload.encode("utf-8")
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload)
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json", by_alias=True)
    if isinstance(payload, Mapping):
        payload = dict(payload)
    elif not isinstance(payload, (list, tuple)):
        raise ValidationError(f"Unsupported payload type: {type(payload).__name__}")
    try:
        return json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":")).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Payload is not JSON serializable: {exc}") from exc


def plain_payload(payload: Payload) -> Any:
    """Detached copy of a payload as plain data, for snapshots and read models."""
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json", by_alias=True)
    if isinstance(payload, Mapping):
        return copy.deepcopy(dict(payload))
    if isinstance(payload, bytearray):
        return bytes(payload)
    return copy.deepcopy(payload)


def hash_payload(payload: Payload) -> bytes:
    return hashlib.sha256(canonical_bytes(payload)).digest()


def _load_private_key(private_key: bytes) -> ec.EllipticCurvePrivateKey:
    if not isinstance(private_key, (bytes, bytearray)) or len(private_key) != 32:
        raise SignatureError("Private key must be 32 bytes", ErrorCode.SIGNING_FAILED)
    secret = int.from_bytes(private_key, "big")
    if not 0 < secret < SECP256K1_ORDER:
        raise SignatureError("Private key is out of range", ErrorCode.SIGNING_FAILED)
    return ec.derive_private_key(secret, ec.SECP256K1())


def public_key_from_private(private_key: bytes) -> bytes:
    key = _load_private_key(private_key)
    return key.public_key().public_bytes(Encoding.X962, PublicFormat.CompressedPoint)


def load_public_key(public_key: PublicKeyInput) -> ec.EllipticCurvePublicKey:
    """Accept an extended public key (base58) or a hex/bytes SEC1 point."""
    if isinstance(public_key, str):
        try:
            data = bytes.fromhex(public_key)
        except ValueError:
            data = public_key_bytes(public_key)
    elif isinstance(public_key, (bytes, bytearray)):
        data = bytes(public_key)
    else:
        raise ValidationError("Invalid public key", ErrorCode.INVALID_PUBLIC_KEY)

    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), data)
    except ValueError as exc:
        raise ValidationError(
            f"Invalid public key format: {exc}", ErrorCode.INVALID_PUBLIC_KEY_FORMAT
        ) from exc


def decode_signature(signature: Union[str, bytes]) -> Tuple[int, int]:
    """Parse a compact (r || s, 64 bytes) or DER signature given as hex or bytes."""
    if isinstance(signature, (bytes, bytearray)):
        raw = bytes(signature)
    elif isinstance(signature, str) and signature:
        try:
            raw = bytes.fromhex(signature)
        except ValueError as exc:
            raise ValidationError("Signature must be hex encoded", ErrorCode.INVALID_SIGNATURE_FORMAT) from exc
    else:
        raise ValidationError("Signature must be a non-empty hex string", ErrorCode.INVALID_SIGNATURE_FORMAT)

    if len(raw) == 64:
        r, s = int.from_bytes(raw[:32], "big"), int.from_bytes(raw[32:], "big")
    else:
        try:
            r, s = decode_dss_signature(raw)
        except ValueError as exc:
            raise ValidationError(
                f"Invalid DER signature: {exc}", ErrorCode.INVALID_SIGNATURE_FORMAT
            ) from exc
    if not (0 < r < SECP256K1_ORDER and 0 < s < SECP256K1_ORDER):
        raise ValidationError("Signature values out of range", ErrorCode.INVALID_SIGNATURE_FORMAT)
    return r, s


def create_signature(private_key: bytes, payload: Payload) -> str:
    """Deterministic (RFC 6979) low-S signature as 128 hex chars."""
    digest = hash_payload(payload)
    key = _load_private_key(private_key)
    try:
        der = key.sign(digest, ec.ECDSA(Prehashed(hashes.SHA256()), deterministic_signing=True))
    except (TypeError, ValueError, UnsupportedAlgorithm) as exc:
        raise SignatureError(f"Failed to create signature: {exc}", ErrorCode.SIGNING_FAILED) from exc

    r, s = decode_dss_signature(der)
    if s > SECP256K1_ORDER // 2:
        s = SECP256K1_ORDER - s
    return (r.to_bytes(32, "big") + s.to_bytes(32, "big")).hex()


def verify_signature(public_key: PublicKeyInput, payload: Payload, signature: Union[str, bytes]) -> bool:
    """True if ``signature`` is valid for ``payload`` under ``public_key``.

    A mismatch returns False; only malformed keys or signatures raise.
    """
    key = load_public_key(public_key)
    r, s = decode_signature(signature)
    try:
        key.verify(
            encode_dss_signature(r, s),
            hash_payload(payload),
            ec.ECDSA(Prehashed(hashes.SHA256())),
        )
    except InvalidSignature:
        return False
    except (TypeError, ValueError, UnsupportedAlgorithm) as exc:
        raise SignatureError(f"Signature verification failed: {exc}") from exc
    return True

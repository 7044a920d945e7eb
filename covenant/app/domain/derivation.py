"""Deterministic hierarchical key derivation (BIP32/BIP39).

Both parties of a record re-derive the same key pair without talking to each
other: the verifier walks one non-hardened step down from the signer's
account xpub, the signer walks the full path from the mnemonic. The step is
chosen by :func:`deterministic_index`, so the two formulas below must stay in
lock-step:

    public side:   child(account_xpub, deterministic_index(record_id))
    private side:  key_at(f"{account_path}/{deterministic_index(record_id)}")
"""
from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass
from typing import List, Optional

import base58
from bip32 import BIP32
from mnemonic import Mnemonic

from .. import config
from .errors import DerivationError, ErrorCode, ValidationError

logger = logging.getLogger(__name__)

HARDENED_OFFSET = 2**31

XPUB_VERSION = bytes.fromhex("0488b21e")
XPRV_VERSION = bytes.fromhex("0488ade4")
TPUB_VERSION = bytes.fromhex("043587cf")
TPRV_VERSION = bytes.fromhex("04358394")

_PUBLIC_VERSIONS = {XPUB_VERSION: "main", TPUB_VERSION: "test"}
_PRIVATE_VERSIONS = {XPRV_VERSION: "main", TPRV_VERSION: "test"}

_PATH_RE = re.compile(r"^m(/\d+['hH]?)*$")


@dataclass(frozen=True)
class ExtendedKeyInfo:
    """Fields of a 78-byte BIP32 serialization."""

    version: bytes
    depth: int
    parent_fingerprint: bytes
    child_number: int
    chain_code: bytes
    key_data: bytes

    @property
    def is_private(self) -> bool:
        return self.version in _PRIVATE_VERSIONS

    @property
    def network(self) -> str:
        return _PUBLIC_VERSIONS.get(self.version) or _PRIVATE_VERSIONS[self.version]


def deterministic_index(value: str) -> int:
    """Map an arbitrary identifier to a non-hardened child index.

    SHA-256 of the UTF-8 value, first 8 bytes read big-endian, reduced
    modulo 2**31.
    """
    if not isinstance(value, str) or not value:
        raise ValidationError("Input value must be a non-empty string")
    digest = hashlib.sha256(value.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") % HARDENED_OFFSET


def parse_extended_key(xkey: str) -> ExtendedKeyInfo:
    if not isinstance(xkey, str) or not xkey:
        raise DerivationError(
            "Extended key must be a non-empty string", ErrorCode.INVALID_PUBLIC_KEY_FORMAT
        )
    try:
        raw = base58.b58decode_check(xkey)
    except ValueError as exc:
        raise DerivationError(
            f"Invalid extended key encoding: {exc}", ErrorCode.INVALID_PUBLIC_KEY_FORMAT
        ) from exc
    if len(raw) != 78:
        raise DerivationError(
            f"Extended key must be 78 bytes, got {len(raw)}",
            ErrorCode.INVALID_PUBLIC_KEY_FORMAT,
        )

    info = ExtendedKeyInfo(
        version=raw[0:4],
        depth=raw[4],
        parent_fingerprint=raw[5:9],
        child_number=int.from_bytes(raw[9:13], "big"),
        chain_code=raw[13:45],
        key_data=raw[45:78],
    )
    if info.version in _PRIVATE_VERSIONS:
        if info.key_data[0] != 0:
            raise DerivationError("Malformed private extended key", ErrorCode.INVALID_PUBLIC_KEY_FORMAT)
    elif info.version in _PUBLIC_VERSIONS:
        if info.key_data[0] not in (2, 3):
            raise DerivationError("Malformed public extended key", ErrorCode.INVALID_PUBLIC_KEY_FORMAT)
    else:
        raise DerivationError(
            f"Unknown extended key version {info.version.hex()}",
            ErrorCode.INVALID_PUBLIC_KEY_FORMAT,
        )
    return info


def require_public(xkey: str) -> ExtendedKeyInfo:
    info = parse_extended_key(xkey)
    if info.is_private:
        raise DerivationError("Parent key must be a public key (xpub)", ErrorCode.INVALID_PUBLIC_KEY)
    return info


def public_key_bytes(xpub: str) -> bytes:
    """Compressed 33-byte public key carried by an extended public key."""
    return require_public(xpub).key_data


def parse_path(path: str) -> List[int]:
    """Turn ``m/44'/0'/0'`` into child numbers, hardened ones offset by 2**31."""
    if not isinstance(path, str) or not _PATH_RE.match(path):
        raise ValidationError(f"Invalid derivation path: {path!r}")
    indexes: List[int] = []
    for part in path.split("/")[1:]:
        hardened = part[-1] in "'hH"
        number = int(part[:-1] if hardened else part)
        if number >= HARDENED_OFFSET:
            raise ValidationError(f"Derivation index out of range in {path!r}")
        indexes.append(number + HARDENED_OFFSET if hardened else number)
    return indexes


def validate_path(path: str) -> str:
    parse_path(path)
    return path


def derive_child_public_key(parent_xpub: str, identifier: str) -> str:
    """Derive the neutered child of ``parent_xpub`` selected by ``identifier``.

    Pure function of its inputs: the result is identical across calls and
    processes.
    """
    require_public(parent_xpub)
    index = deterministic_index(identifier)
    try:
        return BIP32.from_xpub(parent_xpub).get_xpub_from_path([index])
    except Exception as exc:
        raise DerivationError(f"Failed to derive child public key: {exc}") from exc


def mnemonic_to_seed(mnemonic: str, passphrase: Optional[str] = None) -> bytes:
    if not isinstance(mnemonic, str) or not mnemonic.strip():
        raise ValidationError("Mnemonic must be a non-empty string")
    if passphrase is None:
        passphrase = config.MNEMONIC_PASSPHRASE
    return Mnemonic.to_seed(" ".join(mnemonic.split()), passphrase=passphrase)


def _root_node(mnemonic: str, passphrase: Optional[str], network: Optional[str] = None) -> BIP32:
    seed = mnemonic_to_seed(mnemonic, passphrase)
    try:
        return BIP32.from_seed(seed, network=network or config.NETWORK)
    except Exception as exc:
        raise DerivationError(f"Failed to build root key from seed: {exc}") from exc


def derive_account_xpub(
    mnemonic: str,
    path: str = config.DEFAULT_DERIVATION_PATH,
    passphrase: Optional[str] = None,
    network: Optional[str] = None,
) -> str:
    """Neutered extended key at ``path``; what a participant hands out."""
    indexes = parse_path(path)
    root = _root_node(mnemonic, passphrase, network)
    try:
        if not indexes:
            return root.get_xpub()
        return root.get_xpub_from_path(indexes)
    except Exception as exc:
        raise DerivationError(f"Failed to derive account key at {path}: {exc}") from exc


def derive_private_key(
    mnemonic: str,
    path: str,
    identifier: str,
    passphrase: Optional[str] = None,
) -> bytes:
    """32-byte private key matching ``derive_child_public_key(xpub_at(path), identifier)``."""
    indexes = parse_path(path)
    index = deterministic_index(identifier)
    root = _root_node(mnemonic, passphrase)
    try:
        private_key = root.get_privkey_from_path(indexes + [index])
    except Exception as exc:
        raise DerivationError(f"Failed to derive private key: {exc}") from exc
    if not private_key:
        raise DerivationError("Private key not available", ErrorCode.PRIVATE_KEY_UNAVAILABLE)
    logger.debug("derived signing key at %s/%d", path, index)
    return private_key

"""Submitter identity helpers: employee codes are never stored in clear text."""

import hashlib
import hmac
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

NONCE_BYTES = 12
TAG_BYTES = 16


def normalize_employee_code(code: str) -> str:
    return (code or "").strip().upper()


def hash_employee_code(code: str, key: str) -> str:
    """HMAC-SHA256 of the normalized code, hex encoded."""
    normalized = normalize_employee_code(code)
    return hmac.new(key.encode(), normalized.encode(), hashlib.sha256).hexdigest()


def verify_employee_code(plain_code: str, code_hash: str, key: str) -> bool:
    return hmac.compare_digest(hash_employee_code(plain_code, key), code_hash or "")


def mask_employee_code(code: str) -> str:
    """Keep the first 3 and last 2 characters, e.g. ``1234567`` -> ``123***67``."""
    normalized = normalize_employee_code(code)
    if not normalized:
        return ""
    if len(normalized) <= 5:
        return normalized[0] + "***" + normalized[-1]
    return normalized[:3] + "***" + normalized[-2:]


def _cipher(key_hex: str) -> AESGCM:
    key = bytes.fromhex(key_hex)
    if len(key) != 32:
        raise ValueError("employee code encryption key must be 32 bytes (64 hex characters)")
    return AESGCM(key)


def encrypt_employee_code(code: str, key_hex: str) -> Optional[str]:
    """
    AES-256-GCM of the normalized code as ``nonce:tag:ciphertext`` hex.

    Returns None when no key is configured; encryption is optional.
    """
    if not key_hex:
        return None
    nonce = os.urandom(NONCE_BYTES)
    sealed = _cipher(key_hex).encrypt(nonce, normalize_employee_code(code).encode(), None)
    ciphertext, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
    return f"{nonce.hex()}:{tag.hex()}:{ciphertext.hex()}"


def decrypt_employee_code(token: str, key_hex: str) -> Optional[str]:
    """Inverse of encrypt_employee_code; None for a missing key or a token that fails to open."""
    if not key_hex or not token:
        return None
    try:
        nonce_hex, tag_hex, ciphertext_hex = token.split(":")
        sealed = bytes.fromhex(ciphertext_hex) + bytes.fromhex(tag_hex)
        return _cipher(key_hex).decrypt(bytes.fromhex(nonce_hex), sealed, None).decode()
    except (ValueError, InvalidTag):
        return None


def submission_fingerprint(identity_hash: str, subject: str, description: str) -> str:
    """Stable hash used for duplicate detection across sources."""
    parts = [identity_hash, _canonical(subject), _canonical(description)]
    return hashlib.sha256("\x1f".join(parts).encode()).hexdigest()


def _canonical(text: str) -> str:
    return " ".join((text or "").split()).casefold()

"""Cipher, encoding and digest primitives shared by the vendor adapters."""

import base64
import binascii
import hashlib
import json
from typing import Any
from urllib.parse import quote, unquote

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from models.errors import EncryptionError

BLOCK_SIZE_BITS = 128
IV_LENGTH = 16

# Characters left untouched by JavaScript's encodeURIComponent
_URI_COMPONENT_SAFE = "-_.!~*'()"


def normalize_key(secret: str, length: int) -> bytes:
    """
    Pad with NUL bytes or truncate a secret to exactly ``length`` bytes.

    Args:
        secret: Key or IV as configured
        length: Required byte length (16 for AES-128 and IVs, 32 for AES-256)

    Returns:
        UTF-8 bytes of the requested length
    """
    raw = (secret or "").encode("utf-8")
    if len(raw) >= length:
        return raw[:length]
    return raw + b"\0" * (length - len(raw))


def aes_cbc_encrypt(plaintext: bytes, key: bytes, iv: bytes) -> bytes:
    """AES-CBC with PKCS7 padding. Key length selects AES-128/192/256."""
    try:
        padder = padding.PKCS7(BLOCK_SIZE_BITS).padder()
        padded = padder.update(plaintext) + padder.finalize()
        encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
        return encryptor.update(padded) + encryptor.finalize()
    except ValueError as e:
        raise EncryptionError(f"AES encryption failed: {e}") from e


def aes_cbc_decrypt(ciphertext: bytes, key: bytes, iv: bytes) -> bytes:
    """Inverse of :func:`aes_cbc_encrypt`."""
    try:
        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(BLOCK_SIZE_BITS).unpadder()
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError as e:
        raise EncryptionError(f"AES decryption failed: {e}") from e


def percent_encode(text: str) -> str:
    """Percent-encode the way ``encodeURIComponent`` does."""
    return quote(text, safe=_URI_COMPONENT_SAFE)


def percent_decode(text: str) -> str:
    return unquote(text)


def compact_json(data: Any) -> str:
    """Serialize without whitespace and without escaping non-ASCII text."""
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


def b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def b64decode(text: str) -> bytes:
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise EncryptionError(f"Invalid base64 payload: {e}") from e


def hex_decode(text: str) -> bytes:
    try:
        return bytes.fromhex(text)
    except ValueError as e:
        raise EncryptionError(f"Invalid hex payload: {e}") from e


def md5_hex(text: str) -> str:
    """Lower-case MD5 hex digest of UTF-8 text."""
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def sha256_upper(text: str) -> str:
    """Upper-case SHA-256 hex digest of UTF-8 text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest().upper()


def js_string_hash(text: str) -> str:
    """
    32-bit ``(h << 5) - h + c`` string hash as at least 8 hex digits.

    Used to derive stable pseudo carrier IDs. Arithmetic wraps like a signed
    32-bit JavaScript integer; the absolute value is rendered.
    """
    h = 0
    for char in text:
        # JS strings iterate UTF-16 code units
        for unit in _utf16_units(char):
            h = ((h << 5) - h + unit) & 0xFFFFFFFF
    if h & 0x80000000:
        h -= 0x100000000
    return format(abs(h), "x").zfill(8)


def _utf16_units(char: str) -> list[int]:
    code = ord(char)
    if code < 0x10000:
        return [code]
    code -= 0x10000
    return [0xD800 + (code >> 10), 0xDC00 + (code & 0x3FF)]

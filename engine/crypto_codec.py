"""AES-256-GCM encryption of chunk payloads.

Payload layout: nonce (12 bytes) || tag (16 bytes) || ciphertext.
"""

import base64
import binascii
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from common.constants import KEY_SIZE_BYTES, NONCE_SIZE_BYTES, PAYLOAD_HEADER_BYTES, TAG_SIZE_BYTES
from common.exceptions import AuthenticationError


def generate_key() -> bytes:
    """Generate a 256-bit key from the OS CSPRNG."""
    return secrets.token_bytes(KEY_SIZE_BYTES)


def generate_nonce() -> bytes:
    """Generate a 96-bit nonce from the OS CSPRNG."""
    return secrets.token_bytes(NONCE_SIZE_BYTES)


def encode_key(key: bytes) -> str:
    """Encode a raw key as URL-safe base64 for the config file."""
    return base64.urlsafe_b64encode(key).decode("ascii")


def decode_key(encoded: str) -> bytes:
    """
    Decode a URL-safe base64 key.

    Raises:
        ValueError: If the text is not base64 or does not hold exactly 32 bytes
    """
    try:
        key = base64.urlsafe_b64decode(encoded.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError(f"encryption key is not valid base64: {e}") from e
    if len(key) != KEY_SIZE_BYTES:
        raise ValueError(f"encryption key must be {KEY_SIZE_BYTES} bytes, got {len(key)}")
    return key


def encrypt(key: bytes, plaintext: bytes) -> bytes:
    """
    Encrypt a byte buffer under a fresh nonce.

    Args:
        key: 32-byte symmetric key
        plaintext: Arbitrary bytes

    Returns:
        nonce || tag || ciphertext
    """
    nonce = generate_nonce()
    sealed = AESGCM(key).encrypt(nonce, bytes(plaintext), None)
    # cryptography appends the tag; move it in front of the ciphertext
    ciphertext, tag = sealed[:-TAG_SIZE_BYTES], sealed[-TAG_SIZE_BYTES:]
    return nonce + tag + ciphertext


def decrypt(key: bytes, blob: bytes) -> bytes:
    """
    Decrypt and authenticate a payload produced by encrypt().

    Raises:
        AuthenticationError: If the blob is shorter than the header or the tag does not verify
    """
    if len(blob) < PAYLOAD_HEADER_BYTES:
        raise AuthenticationError(
            f"Ciphertext blob too short: {len(blob)} < {PAYLOAD_HEADER_BYTES} bytes"
        )

    nonce = blob[:NONCE_SIZE_BYTES]
    tag = blob[NONCE_SIZE_BYTES:PAYLOAD_HEADER_BYTES]
    ciphertext = blob[PAYLOAD_HEADER_BYTES:]

    try:
        return AESGCM(key).decrypt(nonce, ciphertext + tag, None)
    except InvalidTag as e:
        raise AuthenticationError("Authentication tag mismatch") from e

"""
Content hashing and authenticated encryption of file payloads.

Plaintext is hashed with SHA-256 before encryption; the hex digest is the
integrity anchor stored in the ledger and compared by the verify endpoint.
Payloads are encrypted with AES-256-GCM under either the master key or a key
derived from it per file id (HKDF-SHA256). The file id is bound as associated
data, so a blob moved under another id fails to decrypt.
"""
import base64
import binascii
import hashlib
import os
from typing import Optional, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from app.core.config import settings

KEY_SIZE = 32
IV_SIZE = 12
TAG_SIZE = 16


class DecryptionError(Exception):
    """Ciphertext, iv or key are inconsistent; no plaintext is returned"""


class KeyConfigurationError(Exception):
    """The master key is missing or malformed"""


def compute_hash(data: bytes) -> str:
    """SHA-256 hex digest of raw plaintext"""
    return hashlib.sha256(data).hexdigest()


def decode_master_key(encoded: str) -> bytes:
    """Accept a 32-byte key as 64 hex characters or base64."""
    encoded = (encoded or "").strip()
    if not encoded:
        raise KeyConfigurationError("FILE_ENCRYPTION_KEY is not configured")

    key = None
    if len(encoded) == KEY_SIZE * 2:
        try:
            key = bytes.fromhex(encoded)
        except ValueError:
            key = None
    if key is None:
        try:
            key = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError):
            raise KeyConfigurationError("FILE_ENCRYPTION_KEY must be hex or base64 encoded")

    if len(key) != KEY_SIZE:
        raise KeyConfigurationError(f"FILE_ENCRYPTION_KEY must decode to {KEY_SIZE} bytes")
    return key


class FileCipher:
    """AES-256-GCM over whole file buffers"""

    def __init__(self, master_key: bytes, per_file_keys: bool = True):
        if len(master_key) != KEY_SIZE:
            raise KeyConfigurationError(f"Master key must be {KEY_SIZE} bytes")
        self._master_key = master_key
        self.per_file_keys = per_file_keys

    def _key_for(self, file_id: str) -> bytes:
        if not self.per_file_keys:
            return self._master_key
        hkdf = HKDF(
            algorithm=hashes.SHA256(),
            length=KEY_SIZE,
            salt=None,
            info=b"filestore:file:" + file_id.encode("utf-8"),
        )
        return hkdf.derive(self._master_key)

    def encrypt(self, data: bytes, file_id: str) -> Tuple[bytes, bytes]:
        """Encrypt under a fresh random iv. Returns (iv, ciphertext)."""
        iv = os.urandom(IV_SIZE)
        ciphertext = AESGCM(self._key_for(file_id)).encrypt(iv, data, file_id.encode("utf-8"))
        return iv, ciphertext

    def decrypt(self, ciphertext: bytes, iv: bytes, file_id: str) -> bytes:
        if len(iv) != IV_SIZE:
            raise DecryptionError(f"Invalid iv length: {len(iv)}")
        if len(ciphertext) < TAG_SIZE:
            raise DecryptionError("Ciphertext is truncated")
        try:
            return AESGCM(self._key_for(file_id)).decrypt(iv, ciphertext, file_id.encode("utf-8"))
        except InvalidTag:
            raise DecryptionError("Ciphertext failed authentication")


_cipher: Optional[FileCipher] = None


def get_file_cipher() -> FileCipher:
    """FastAPI dependency; the key is read from settings on first use."""
    global _cipher
    if _cipher is None:
        _cipher = FileCipher(
            decode_master_key(settings.FILE_ENCRYPTION_KEY),
            per_file_keys=settings.PER_FILE_KEYS,
        )
    return _cipher

"""
Blob storage for encrypted payloads.

A blob is the pair (iv, ciphertext). `put` returns an opaque locator that the
ledger stores; only the store that produced a locator interprets it.
"""
import os
import tempfile
from abc import ABC, abstractmethod
from typing import Optional, Tuple

from app.core.config import settings
from app.core.logging import get_logger
from app.utils.path_builder import PathBuilder, BlobArtifact

logger = get_logger("services.storage")


class BlobNotFoundError(FileNotFoundError):
    """Ciphertext or iv artifact is missing"""


class StorageServiceInterface(ABC):
    """Contract for blob stores"""

    @abstractmethod
    def put(self, blob_key: str, iv: bytes, ciphertext: bytes) -> str:
        """Persist both artifacts under blob_key durably and return a locator."""

    @abstractmethod
    def get(self, locator: str) -> Tuple[bytes, bytes]:
        """Return (iv, ciphertext); raise BlobNotFoundError if either is missing."""

    @abstractmethod
    def delete(self, locator: str) -> None:
        """Remove both artifacts; missing artifacts are ignored."""


class LocalBlobStore(StorageServiceInterface):
    """
    Stores `{blob_key}.enc` and `{blob_key}.iv` under a root directory.

    Each artifact is written to a temporary file, fsynced and renamed into
    place. The iv is committed first, so a ciphertext visible under its final
    name always has its iv, and the locator is returned only after both renames.
    """

    def __init__(self, root_dir: str):
        self.root_dir = os.path.abspath(root_dir)
        os.makedirs(self.root_dir, exist_ok=True)

    def _resolve(self, name: str) -> str:
        path = os.path.abspath(os.path.join(self.root_dir, name))
        if os.path.dirname(path) != self.root_dir:
            raise ValueError(f"Locator escapes storage root: {name!r}")
        return path

    def _write_atomic(self, path: str, data: bytes) -> None:
        fd, tmp_path = tempfile.mkstemp(dir=self.root_dir, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, path)
        except Exception:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def put(self, blob_key: str, iv: bytes, ciphertext: bytes) -> str:
        enc_name = PathBuilder.build_artifact_name(blob_key, BlobArtifact.CIPHERTEXT)
        iv_name = PathBuilder.build_artifact_name(blob_key, BlobArtifact.IV)

        self._write_atomic(self._resolve(iv_name), iv)
        self._write_atomic(self._resolve(enc_name), ciphertext)

        logger.debug(f"Stored blob {enc_name} ({len(ciphertext)} bytes)")
        return enc_name

    def get(self, locator: str) -> Tuple[bytes, bytes]:
        try:
            enc_path = self._resolve(locator)
            iv_path = self._resolve(PathBuilder.iv_name_for(locator))
        except ValueError as e:
            raise BlobNotFoundError(str(e))

        if not os.path.exists(enc_path) or not os.path.exists(iv_path):
            raise BlobNotFoundError(f"Encrypted file or IV not found for {locator}")

        with open(iv_path, "rb") as handle:
            iv = handle.read()
        with open(enc_path, "rb") as handle:
            ciphertext = handle.read()
        return iv, ciphertext

    def delete(self, locator: str) -> None:
        for name in (locator, PathBuilder.iv_name_for(locator)):
            path = self._resolve(name)
            if os.path.exists(path):
                os.remove(path)
                logger.debug(f"Removed blob artifact {name}")


_storage_service: Optional[StorageServiceInterface] = None


def get_storage_service() -> StorageServiceInterface:
    """FastAPI dependency returning the configured blob store"""
    global _storage_service
    if _storage_service is None:
        _storage_service = LocalBlobStore(settings.BLOB_STORAGE_DIR)
    return _storage_service

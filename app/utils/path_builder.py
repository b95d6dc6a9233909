"""
Path Builder Utility for file ids and blob paths.

File ids are `<upload timestamp in ms>_<random hex>`; they never embed the
display filename. Blob artifacts live next to each other as
`{blob_key}.enc` and `{blob_key}.iv` under the storage root, where the blob
key is the file id for a first ingestion and `{file_id}.r{revision}` for a
re-ingestion.
"""
import re
import time
import uuid
from enum import Enum
from typing import Optional

FILE_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,254}$")


class BlobArtifact(str, Enum):
    """Blob artifact types"""
    CIPHERTEXT = "enc"
    IV = "iv"


class PathBuilder:
    """Builder class for file ids and blob artifact names"""

    @staticmethod
    def generate_file_id(timestamp_ms: Optional[int] = None) -> str:
        """
        Generate a collision resistant file id.

        Structure: {timestamp_ms}_{uuid4 hex}
        """
        if timestamp_ms is None:
            timestamp_ms = int(time.time() * 1000)
        return f"{timestamp_ms}_{uuid.uuid4().hex}"

    @staticmethod
    def validate_file_id(file_id: str) -> str:
        """
        Reject ids that could escape the storage root.

        Raises:
            ValueError: If the id contains separators or starts with a dot
        """
        if not file_id or not FILE_ID_PATTERN.match(file_id) or ".." in file_id:
            raise ValueError(f"Invalid file id: {file_id!r}")
        return file_id

    @staticmethod
    def build_blob_key(file_id: str, revision: Optional[str] = None) -> str:
        """
        Build the storage key of one ingestion of file_id.

        Structure: {file_id} or {file_id}.r{revision}
        """
        PathBuilder.validate_file_id(file_id)
        if revision is None:
            return file_id
        return PathBuilder.validate_file_id(f"{file_id}.r{revision}")

    @staticmethod
    def new_revision() -> str:
        return uuid.uuid4().hex[:12]

    @staticmethod
    def build_artifact_name(blob_key: str, artifact: BlobArtifact) -> str:
        """
        Build the artifact file name.

        Structure: {blob_key}.{enc|iv}
        """
        PathBuilder.validate_file_id(blob_key)
        return f"{blob_key}.{artifact.value}"

    @staticmethod
    def iv_name_for(ciphertext_name: str) -> str:
        """Sibling iv name of a ciphertext artifact name"""
        suffix = f".{BlobArtifact.CIPHERTEXT.value}"
        if not ciphertext_name.endswith(suffix):
            raise ValueError(f"Not a ciphertext locator: {ciphertext_name!r}")
        return ciphertext_name[: -len(suffix)] + f".{BlobArtifact.IV.value}"

"""
Global test fixtures for pytest.

Provides:
- An in-memory SQLite database shared by request and background sessions
- A fixed-key cipher and a blob store rooted in tmp_path
- A recording anchor client
- A FastAPI TestClient with all of the above injected
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.crypto import FileCipher, get_file_cipher
from app.core.database import Base, get_db
from app.schemas.file import FileStoreRequest
from app.services.anchor_service import AnchorClient, get_anchor_client, get_session_factory
from app.services.ingestion_service import IngestionService
from app.services.role_service import RoleDirectoryService
from app.services.storage import LocalBlobStore, get_storage_service

TEST_KEY = bytes(range(32))

OWNER = "0xaa"
RECEIVER = "0xbb"
STRANGER = "0xcc"
FINANCE_USER = "0xdd"
OUTSIDER = "0xee"
AUTHORITY = "0xf0"

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class RecordingAnchorClient(AnchorClient):
    """Anchor client that records calls instead of talking to a gateway"""

    def __init__(self, tx_hash="0xfeedbeef"):
        super().__init__("http://anchor.test")
        self.tx_hash = tx_hash
        self.calls = []

    async def anchor(self, file_id, version, content_hash):
        self.calls.append((file_id, version, content_hash))
        return self.tx_hash


# ============================================================================
# Infrastructure
# ============================================================================

@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def cipher():
    return FileCipher(TEST_KEY)


@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore(str(tmp_path / "blobs"))


@pytest.fixture
def anchor_client():
    return RecordingAnchorClient()


@pytest.fixture
def client(db_session, cipher, blob_store, anchor_client):
    """TestClient with database, cipher, storage and anchoring overridden"""

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_file_cipher] = lambda: cipher
    app.dependency_overrides[get_storage_service] = lambda: blob_store
    app.dependency_overrides[get_anchor_client] = lambda: anchor_client
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# ============================================================================
# Domain helpers
# ============================================================================

@pytest.fixture
def ingest(db_session, cipher, blob_store):
    """Store a file through the ingestion service; returns the FileRecord"""

    def _ingest(content=b"quarterly report", filename="report.txt", mime_type="text/plain", **fields):
        fields.setdefault("owner_address", OWNER)
        service = IngestionService(db_session, cipher, blob_store)
        return service.store_file(content, filename, mime_type, FileStoreRequest(**fields))

    return _ingest


@pytest.fixture
def finance_role(db_session):
    """Role 'Finance' created by an authority and assigned to FINANCE_USER"""
    directory = RoleDirectoryService(db_session)
    directory.register_authority(AUTHORITY, "Treasury", "Department")
    directory.create_role("Finance", "Finance department", AUTHORITY)
    directory.assign_role(FINANCE_USER, "Finance", AUTHORITY)
    return "Finance"

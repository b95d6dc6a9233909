import os
from unittest.mock import MagicMock

import pytest

from app.core.crypto import compute_hash
from app.core.access_policy import AccessReason
from app.core.exceptions import (
    AccessForbidden,
    AuthenticationRequired,
    ResourceNotFound,
    StorageFailure,
    ValidationFailed,
)
from app.models.access_log import AccessLogEntry
from app.models.file_record import FileAllowedRole
from app.services.access_log_service import AccessKind, AccessLogService
from app.services.file_ledger_service import FileLedgerService
from app.services.retrieval_service import RetrievalService

from conftest import AUTHORITY, FINANCE_USER, OUTSIDER, OWNER, RECEIVER, STRANGER


@pytest.fixture
def retrieval(db_session, cipher, blob_store):
    return RetrievalService(db_session, cipher, blob_store)


def audit_count(db_session, file_id):
    return db_session.query(AccessLogEntry).filter(AccessLogEntry.file_id == file_id).count()


def test_store_then_retrieve_preserves_content_and_hash(ingest, retrieval):
    content = os.urandom(4096)
    record = ingest(content=content, filename="blob.bin", mime_type="application/octet-stream")

    assert record.content_hash == compute_hash(content)
    retrieved = retrieval.retrieve(record.file_id, OWNER)
    assert retrieved.content == content
    assert compute_hash(retrieved.content) == record.content_hash
    assert retrieved.decision.reason == AccessReason.OWNER


def test_ingestion_normalizes_identities(ingest):
    record = ingest(owner_address="  0xAA ", receiver_address="0xBB")
    assert record.owner_address == "0xaa"
    assert record.receiver_address == "0xbb"


def test_ingestion_requires_owner(db_session, ingest):
    with pytest.raises(ValidationFailed):
        ingest(owner_address=None)
    assert FileLedgerService(db_session).query_public() == []


def test_ingestion_rejects_empty_file(ingest):
    with pytest.raises(ValidationFailed):
        ingest(content=b"")


def test_reingestion_overwrites_record_entirely(db_session, ingest):
    first = ingest(access_type="role-based", allowed_roles=["Finance", "Audit"], label="v1")
    file_id = first.file_id

    second = ingest(content=b"new content", file_id=file_id, access_type="private")
    assert second.file_id == file_id
    assert second.access_type == "private"
    assert second.allowed_roles == []
    assert second.label == ""
    assert second.content_hash == compute_hash(b"new content")
    assert db_session.query(FileAllowedRole).filter(FileAllowedRole.file_id == file_id).count() == 0


def test_reingestion_with_same_roles(ingest):
    first = ingest(access_type="role-based", allowed_roles=["Finance"])
    second = ingest(file_id=first.file_id, access_type="role-based", allowed_roles=["Finance"])
    assert second.allowed_roles == ["Finance"]


def test_anchoring_is_not_part_of_ingestion(ingest):
    record = ingest()
    assert record.blockchain_tx_hash is None


def test_receiver_scenario(ingest, retrieval):
    record = ingest(access_type="private", receiver_address=RECEIVER)

    assert retrieval.retrieve(record.file_id, RECEIVER).decision.reason == AccessReason.RECEIVER

    with pytest.raises(AccessForbidden) as denied:
        retrieval.retrieve(record.file_id, STRANGER)
    assert denied.value.reason == AccessReason.PRIVATE.value
    assert denied.value.status_code == 403

    with pytest.raises(AuthenticationRequired) as anonymous:
        retrieval.retrieve(record.file_id, None)
    assert anonymous.value.status_code == 401


def test_role_scenario(ingest, retrieval, finance_role):
    record = ingest(access_type="role-based", allowed_roles=[finance_role])

    granted = retrieval.retrieve(record.file_id, FINANCE_USER)
    assert granted.decision.reason == AccessReason.ROLE_BASED

    with pytest.raises(AccessForbidden) as denied:
        retrieval.retrieve(record.file_id, OUTSIDER)
    assert denied.value.required_roles == ["Finance"]
    assert denied.value.detail["required_roles"] == ["Finance"]


def test_revoked_role_loses_access(db_session, ingest, retrieval, finance_role):
    from app.services.role_service import RoleDirectoryService

    record = ingest(access_type="role-based", allowed_roles=[finance_role])
    RoleDirectoryService(db_session).revoke_role(FINANCE_USER, finance_role, AUTHORITY)

    with pytest.raises(AccessForbidden):
        retrieval.retrieve(record.file_id, FINANCE_USER)


def test_role_based_with_public_flag_still_requires_role(ingest, retrieval):
    record = ingest(access_type="role-based", allowed_roles=["X"], is_public=True)
    with pytest.raises(AccessForbidden) as denied:
        retrieval.retrieve(record.file_id, STRANGER)
    assert denied.value.reason == AccessReason.DENIED_ROLE_MISMATCH.value

    with pytest.raises(AuthenticationRequired):
        retrieval.retrieve(record.file_id, None)


def test_every_attempt_is_audited_once(db_session, ingest, retrieval):
    record = ingest(access_type="private", receiver_address=RECEIVER)

    retrieval.retrieve(record.file_id, OWNER)
    assert audit_count(db_session, record.file_id) == 1
    with pytest.raises(AccessForbidden):
        retrieval.retrieve(record.file_id, STRANGER)
    assert audit_count(db_session, record.file_id) == 2
    with pytest.raises(AuthenticationRequired):
        retrieval.retrieve(record.file_id, None)
    assert audit_count(db_session, record.file_id) == 3

    entries = AccessLogService(db_session).list_for_file(record.file_id)
    assert [entry.success for entry in entries] == [False, False, True]
    assert entries[0].accessed_by == "anonymous"
    assert all(entry.content_hash == record.content_hash for entry in entries)
    assert all(entry.access_kind == "download" for entry in entries)


def test_unknown_file_is_not_found_and_audited(db_session, retrieval):
    with pytest.raises(ResourceNotFound):
        retrieval.retrieve("1700000000000_missing", OWNER)
    assert audit_count(db_session, "1700000000000_missing") == 1


def test_attention_below_confidence_blocks_retrieval(db_session, ingest, retrieval):
    record = ingest(attention="Sometimes", confidence="Always")
    with pytest.raises(AccessForbidden) as denied:
        retrieval.retrieve(record.file_id, OWNER)
    assert denied.value.reason == "retrieval-not-allowed"
    assert audit_count(db_session, record.file_id) == 1


def test_corrupted_blob_is_a_storage_failure(tmp_path, db_session, ingest, retrieval):
    record = ingest(content=b"important")
    enc_path = tmp_path / "blobs" / record.blob_location
    data = enc_path.read_bytes()
    enc_path.write_bytes(bytes([data[0] ^ 0xFF]) + data[1:])

    with pytest.raises(StorageFailure):
        retrieval.retrieve(record.file_id, OWNER)
    entry = AccessLogService(db_session).list_for_file(record.file_id)[0]
    assert entry.success is False


def test_missing_blob_is_not_found(tmp_path, ingest, retrieval):
    record = ingest()
    os.remove(tmp_path / "blobs" / record.blob_location)
    with pytest.raises(ResourceNotFound):
        retrieval.retrieve(record.file_id, OWNER)


def test_verify_compares_exact_hash(db_session, ingest, retrieval):
    record = ingest(content=b"ledger entry")
    ok = retrieval.verify(record.file_id, compute_hash(b"ledger entry"))
    assert ok.is_valid

    altered = format(int(record.content_hash, 16) ^ 1, "064x")
    bad = retrieval.verify(record.file_id, altered)
    assert not bad.is_valid
    assert bad.stored_hash == record.content_hash
    assert bad.provided_hash == altered

    kinds = {entry.access_kind for entry in AccessLogService(db_session).list_for_file(record.file_id)}
    assert kinds == {"verify"}


def test_audit_write_failure_is_swallowed():
    session = MagicMock()
    session.commit.side_effect = RuntimeError("database is locked")

    entry = AccessLogService(session).record("f1", None, AccessKind.DOWNLOAD, "abc", True)
    assert entry is None
    session.rollback.assert_called_once()


def test_accessible_listing_matches_evaluator(db_session, ingest, finance_role):
    public = ingest(access_type="public", owner_address="0x01")
    private_other = ingest(access_type="private", owner_address="0x01")
    received = ingest(access_type="private", owner_address="0x01", receiver_address=FINANCE_USER)
    finance = ingest(access_type="role-based", allowed_roles=[finance_role], owner_address="0x01")
    gated_public = ingest(access_type="role-based", allowed_roles=["Legal"], is_public=True, owner_address="0x01")

    ledger = FileLedgerService(db_session)
    visible = {r.file_id for r in ledger.query_accessible_by(FINANCE_USER, {"Finance"})}
    assert visible == {public.file_id, received.file_id, finance.file_id}
    assert private_other.file_id not in visible
    assert gated_public.file_id not in visible

    assert [r.file_id for r in ledger.query_public()] == [public.file_id]
    assert {r.file_id for r in ledger.query_accessible_by(None, set())} == {public.file_id}


def test_reingestion_by_non_owner_is_forbidden(db_session, ingest, retrieval):
    original = ingest(content=b"original", access_type="private")

    with pytest.raises(AccessForbidden) as denied:
        ingest(content=b"hijacked", file_id=original.file_id, owner_address=OUTSIDER, access_type="public")
    assert denied.value.reason == "not-owner"

    db_session.expire_all()
    record = FileLedgerService(db_session).get(original.file_id)
    assert record.owner_address == OWNER
    assert record.access_type == "private"
    assert retrieval.retrieve(original.file_id, OWNER).content == b"original"


def test_reingestion_moves_to_a_fresh_blob(tmp_path, ingest, retrieval):
    first = ingest(content=b"v1")
    old_location = first.blob_location

    second = ingest(content=b"v2", file_id=first.file_id)
    assert second.blob_location != old_location
    assert second.blob_location.startswith(f"{first.file_id}.r")
    assert sorted(os.listdir(tmp_path / "blobs")) == sorted(
        [second.blob_location, second.blob_location[: -len(".enc")] + ".iv"]
    )
    assert retrieval.retrieve(first.file_id, OWNER).content == b"v2"


def test_failed_reingestion_keeps_previous_content(monkeypatch, tmp_path, db_session, ingest, retrieval):
    first = ingest(content=b"v1")
    artifacts_before = sorted(os.listdir(tmp_path / "blobs"))

    def failing_upsert(self, file_id, allowed_roles, **fields):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(FileLedgerService, "upsert", failing_upsert)
    with pytest.raises(StorageFailure):
        ingest(content=b"v2", file_id=first.file_id)
    monkeypatch.undo()

    assert sorted(os.listdir(tmp_path / "blobs")) == artifacts_before
    db_session.expire_all()
    retrieved = retrieval.retrieve(first.file_id, OWNER)
    assert retrieved.content == b"v1"
    assert compute_hash(retrieved.content) == retrieved.record.content_hash
    assert retrieval.verify(first.file_id, compute_hash(b"v1")).is_valid

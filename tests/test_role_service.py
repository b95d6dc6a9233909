import pytest

from app.core.config import settings
from app.core.exceptions import ResourceConflict, ResourceNotFound, Unauthorized, ValidationFailed
from app.models.authority import Authority
from app.services.role_service import RoleDirectoryService

from conftest import AUTHORITY, FINANCE_USER, OUTSIDER


def test_register_authority_is_idempotent_upsert(db_session):
    directory = RoleDirectoryService(db_session)
    first = directory.register_authority("0xF0", "Treasury", "Department")
    second = directory.register_authority("0xf0", "Treasury Dept", "Government")

    assert first.id == second.id
    assert second.wallet_address == "0xf0"
    assert second.name == "Treasury Dept"
    assert second.is_active and second.can_create_roles
    assert db_session.query(Authority).count() == 1


def test_register_authority_reactivates(db_session):
    directory = RoleDirectoryService(db_session)
    authority = directory.register_authority(AUTHORITY, "Treasury", "Department")
    authority.is_active = False
    authority.can_create_roles = False
    db_session.commit()

    authority = directory.register_authority(AUTHORITY, "Treasury", "Department")
    assert authority.is_active and authority.can_create_roles


def test_register_authority_respects_allowlist(db_session, monkeypatch):
    monkeypatch.setattr(settings, "AUTHORITY_ALLOWLIST", ["0xf0"])
    directory = RoleDirectoryService(db_session)
    with pytest.raises(Unauthorized):
        directory.register_authority("0x99", "Impostor", "Organization")
    assert directory.register_authority("0xF0", "Treasury", "Department").is_active


def test_get_authority_not_found(db_session):
    with pytest.raises(ResourceNotFound):
        RoleDirectoryService(db_session).get_authority("0x404")


def test_create_role_requires_authority(db_session):
    directory = RoleDirectoryService(db_session)
    with pytest.raises(Unauthorized):
        directory.create_role("Finance", "", OUTSIDER)


def test_create_role_requires_can_create_roles(db_session):
    directory = RoleDirectoryService(db_session)
    authority = directory.register_authority(AUTHORITY, "Treasury", "Department")
    authority.can_create_roles = False
    db_session.commit()
    with pytest.raises(Unauthorized):
        directory.create_role("Finance", "", AUTHORITY)


def test_create_duplicate_active_role_conflicts(db_session, finance_role):
    with pytest.raises(ResourceConflict):
        RoleDirectoryService(db_session).create_role(finance_role, "again", AUTHORITY)


def test_create_role_missing_creator_is_validation_error(db_session):
    with pytest.raises(ValidationFailed):
        RoleDirectoryService(db_session).create_role("Finance", "", "  ")


def test_assign_role_requires_active_authority(db_session, finance_role):
    directory = RoleDirectoryService(db_session)
    with pytest.raises(Unauthorized):
        directory.assign_role(OUTSIDER, finance_role, OUTSIDER)


def test_assign_unknown_or_inactive_role_not_found(db_session, finance_role):
    directory = RoleDirectoryService(db_session)
    with pytest.raises(ResourceNotFound):
        directory.assign_role(OUTSIDER, "Legal", AUTHORITY)

    directory.deactivate_role(finance_role, AUTHORITY)
    with pytest.raises(ResourceNotFound):
        directory.assign_role(OUTSIDER, finance_role, AUTHORITY)


def test_roles_of_only_counts_active_assignments_and_roles(db_session, finance_role):
    directory = RoleDirectoryService(db_session)
    assert directory.roles_of(FINANCE_USER) == {"Finance"}
    assert directory.roles_of(None) == set()

    directory.revoke_role(FINANCE_USER, finance_role, AUTHORITY)
    assert directory.roles_of(FINANCE_USER) == set()

    directory.assign_role(FINANCE_USER, finance_role, AUTHORITY)
    assert directory.roles_of(FINANCE_USER) == {"Finance"}

    directory.deactivate_role(finance_role, AUTHORITY)
    assert directory.roles_of(FINANCE_USER) == set()
    assert directory.list_assignments(FINANCE_USER) == []


def test_revoke_without_active_assignment_not_found(db_session, finance_role):
    directory = RoleDirectoryService(db_session)
    with pytest.raises(ResourceNotFound):
        directory.revoke_role(OUTSIDER, finance_role, AUTHORITY)

    directory.revoke_role(FINANCE_USER, finance_role, AUTHORITY)
    with pytest.raises(ResourceNotFound):
        directory.revoke_role(FINANCE_USER, finance_role, AUTHORITY)


def test_deactivated_role_can_be_recreated(db_session, finance_role):
    directory = RoleDirectoryService(db_session)
    directory.deactivate_role(finance_role, AUTHORITY)
    assert directory.list_roles() == []

    role = directory.create_role(finance_role, "Reopened", AUTHORITY)
    assert role.is_active
    assert [r.role_name for r in directory.list_roles()] == ["Finance"]


def test_revoke_requires_active_authority(db_session, finance_role):
    directory = RoleDirectoryService(db_session)
    with pytest.raises(Unauthorized):
        directory.revoke_role(FINANCE_USER, finance_role, OUTSIDER)
    with pytest.raises(ValidationFailed):
        directory.revoke_role(FINANCE_USER, finance_role, "")
    assert directory.roles_of(FINANCE_USER) == {"Finance"}

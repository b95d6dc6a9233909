"""
Access policy for stored files.

`evaluate` is the single decision point: retrieval calls it per request and the
accessible-files listing filters its candidates through it, so the two cannot
drift apart. It does no I/O; the caller resolves the requester's active roles.

Order of evaluation (first match wins):
    owner -> receiver -> role-based -> public -> private
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Protocol, Sequence, Tuple


class AccessType(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    ROLE_BASED = "role-based"


class AccessReason(str, Enum):
    OWNER = "owner"
    RECEIVER = "receiver"
    ROLE_BASED = "role-based"
    PUBLIC = "public"
    DENIED_ROLE_MISMATCH = "denied-role-mismatch"
    PRIVATE = "private"
    AUTHENTICATION_REQUIRED = "authentication-required"


class AccessLevel(str, Enum):
    ALWAYS = "Always"
    USUALLY = "Usually"
    SOMETIMES = "Sometimes"


LEVEL_PRIORITY = {
    AccessLevel.ALWAYS.value: 3,
    AccessLevel.USUALLY.value: 2,
    AccessLevel.SOMETIMES.value: 1,
}


class PolicySubject(Protocol):
    owner_address: str
    receiver_address: Optional[str]
    access_type: str
    is_public: bool

    @property
    def allowed_roles(self) -> Sequence[str]: ...


@dataclass(frozen=True)
class Decision:
    granted: bool
    reason: AccessReason
    required_roles: Tuple[str, ...] = field(default_factory=tuple)


def is_role_gated(record: PolicySubject) -> bool:
    return record.access_type == AccessType.ROLE_BASED.value and bool(record.allowed_roles)


def is_publicly_accessible(record: PolicySubject) -> bool:
    """Public type or legacy public flag, unless the record is role gated."""
    if is_role_gated(record):
        return False
    return record.access_type == AccessType.PUBLIC.value or bool(record.is_public)


def evaluate(
    requester: Optional[str],
    record: PolicySubject,
    requester_roles: Iterable[str] = (),
) -> Decision:
    """Decide whether `requester` (normalized identity or None) may read `record`."""
    if requester:
        if requester == record.owner_address:
            return Decision(True, AccessReason.OWNER)
        if record.receiver_address and requester == record.receiver_address:
            return Decision(True, AccessReason.RECEIVER)
    elif not is_publicly_accessible(record):
        # Anonymous callers carry no roles
        return Decision(False, AccessReason.AUTHENTICATION_REQUIRED, _required_roles(record))

    if is_role_gated(record):
        required = _required_roles(record)
        if set(requester_roles) & set(required):
            return Decision(True, AccessReason.ROLE_BASED)
        return Decision(False, AccessReason.DENIED_ROLE_MISMATCH, required)

    if is_publicly_accessible(record):
        return Decision(True, AccessReason.PUBLIC)

    return Decision(False, AccessReason.PRIVATE)


def retrieval_allowed(attention: Optional[str], confidence: Optional[str]) -> bool:
    """Retrieval is refused when the attention level ranks below confidence."""
    return LEVEL_PRIORITY.get(attention or "", 0) >= LEVEL_PRIORITY.get(confidence or "", 0)


def _required_roles(record: PolicySubject) -> Tuple[str, ...]:
    if record.access_type != AccessType.ROLE_BASED.value:
        return ()
    return tuple(sorted(record.allowed_roles))

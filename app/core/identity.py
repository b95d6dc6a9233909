"""
Requester identity.

Identities are wallet addresses compared case-insensitively. No proof of
possession is checked at this layer; the address is taken from the `address`
query parameter (what the web client sends) or the `X-Wallet-Address` header.
"""
from typing import Optional

from fastapi import Header, Query, Request

from app.core.exceptions import ValidationFailed

IDENTITY_HEADER = "X-Wallet-Address"
ANONYMOUS = "anonymous"


def normalize_identity(value: Optional[str]) -> Optional[str]:
    """Trim and lowercase an identity; blank values become None."""
    if value is None:
        return None
    value = value.strip().lower()
    return value or None


def require_identity(value: Optional[str], field_name: str) -> str:
    """Normalize an identity that must be present."""
    identity = normalize_identity(value)
    if not identity:
        raise ValidationFailed(f"{field_name} is required", field=field_name)
    return identity


def get_requester_identity(
    request: Request,
    address: Optional[str] = Query(None, description="Requester wallet address"),
    x_wallet_address: Optional[str] = Header(None, alias=IDENTITY_HEADER),
) -> Optional[str]:
    """
    FastAPI dependency resolving the optional requester identity.

    The query parameter wins over the header; the middleware may already have
    stored a normalized header value in request.state.
    """
    identity = normalize_identity(address)
    if identity:
        return identity
    state_identity = getattr(request.state, "identity", None)
    if state_identity:
        return state_identity
    return normalize_identity(x_wallet_address)

"""Caller identity.

The hosted identity provider sits in front of this service: its gateway
verifies the session and forwards the resolved identity as headers.  This
module only turns those headers into a ``Caller`` and checks the optional
shared gateway secret.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass

from tavern.api.errors import UnauthorizedError

USER_HEADER = "X-User-Id"
ORG_HEADER = "X-Org-Id"
ORG_ROLE_HEADER = "X-Org-Role"

ADMIN_ORG_ROLE = "org:admin"


@dataclass(frozen=True)
class Caller:
    user_id: str | None = None
    org_id: str | None = None
    org_role: str | None = None
    is_admin: bool = False

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)


def check_gateway_token(authorization: str | None, expected: str | None) -> None:
    """Require ``Authorization: Bearer <expected>`` when a token is configured."""
    if expected is None:
        return
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not secrets.compare_digest(token.strip(), expected):
        raise UnauthorizedError("Invalid or missing gateway token")


def resolve_caller(
    user_id: str | None,
    org_id: str | None,
    org_role: str | None,
    *,
    admin_org_id: str | None,
) -> Caller:
    """Build a ``Caller`` from forwarded identity claims."""
    is_admin = bool(user_id) and admin_org_id is not None and org_id == admin_org_id and org_role == ADMIN_ORG_ROLE
    return Caller(user_id=user_id or None, org_id=org_id, org_role=org_role, is_admin=is_admin)

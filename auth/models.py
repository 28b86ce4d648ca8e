"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores, the service and
the guard do the work; these types only own the shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    """Flat two-value role model. Membership checks are exact -- ADMIN does
    not implicitly satisfy a USER requirement."""

    ADMIN = "admin"
    USER = "user"


@dataclass
class User:
    """A local account.

    id is an opaque string assigned by UserStore.create(). password_digest is
    the bcrypt output from Credential.hash() and is never serialized to clients.
    """

    username: str
    password_digest: str
    role: Role = Role.USER
    id: str | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class TokenClaims:
    """Identity data embedded in a bearer token. Immutable once signed."""

    subject: str  # User.id
    role: Role
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class RouteAccess:
    """Static per-route access declaration consumed by AccessGuard.

    public=True skips every check. An empty required_roles means "any
    authenticated user"; otherwise the caller's role must be a member.
    """

    public: bool = False
    required_roles: frozenset[Role] = field(default_factory=frozenset)


PUBLIC = RouteAccess(public=True)
AUTHENTICATED = RouteAccess()
ADMIN_ONLY = RouteAccess(required_roles=frozenset({Role.ADMIN}))


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of AccessGuard.decide().

    reason is one of the DENY_* codes in auth/guard.py on deny, None on allow.
    user is None on deny and on public routes.
    """

    allowed: bool
    user: User | None = None
    reason: str | None = None

"""
auth/guard.py -- Per-request access decision.

AccessGuard.decide() is a pure function of (route access declaration, request
headers) plus reads through AuthService and UserStore. It keeps no state of
its own, so one instance serves every concurrent request.

Gates, in order:
  1. Public route           -> allow, no identity.
  2. Bearer token present   -> else deny unauthenticated.
  3. Token validates        -> else deny unauthenticated.
  4. Role in required set   -> else deny forbidden (exact membership).
  5. User record resolves   -> else deny unauthenticated.

decide() never raises. Collaborator failures become a service_unavailable
denial. The specific reason is logged here; what the client sees is decided
by auth/dependencies.py and is uniform per status code.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING

from auth.errors import AuthError
from auth.models import AccessDecision, RouteAccess

if TYPE_CHECKING:
    from auth.service import AuthService
    from auth.store import UserStore

logger = logging.getLogger("sessionguard.auth")

DENY_UNAUTHENTICATED = "unauthenticated"
DENY_FORBIDDEN = "forbidden"
DENY_SERVICE_UNAVAILABLE = "service_unavailable"


def extract_bearer_token(headers: Mapping[str, str]) -> str | None:
    """Return the token from an 'Authorization: Bearer <token>' header.

    The scheme must be exactly 'Bearer' followed by a single non-empty token.
    Anything else (missing header, other scheme, extra parts) is None.
    """
    value = headers.get("Authorization") or headers.get("authorization") or ""
    parts = value.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        return None
    return parts[1]


class AccessGuard:
    def __init__(self, auth_service: AuthService, users: UserStore) -> None:
        self.auth_service = auth_service
        self.users = users

    def decide(self, route: RouteAccess, headers: Mapping[str, str]) -> AccessDecision:
        if route.public:
            return AccessDecision(allowed=True)

        token = extract_bearer_token(headers)
        if token is None:
            return self._deny(DENY_UNAUTHENTICATED, "missing or malformed bearer header")

        try:
            claims = self.auth_service.validate_token(token)
            if claims is None:
                return self._deny(DENY_UNAUTHENTICATED, "token rejected")

            if route.required_roles and claims.role not in route.required_roles:
                return self._deny(DENY_FORBIDDEN, f"role {claims.role.value} not permitted", claims.subject)

            user = self.users.find_by_id(claims.subject)
        except AuthError as exc:
            return self._deny(DENY_SERVICE_UNAVAILABLE, exc.code)
        except Exception:
            logger.exception("Access decision failed on an unexpected collaborator error")
            return self._deny(DENY_SERVICE_UNAVAILABLE, "unexpected error")

        if user is None:
            return self._deny(DENY_UNAUTHENTICATED, "subject no longer exists", claims.subject)
        return AccessDecision(allowed=True, user=user)

    @staticmethod
    def _deny(reason: str, detail: str, subject: str | None = None) -> AccessDecision:
        logger.info("Access denied: %s (%s) subject=%s", reason, detail, subject or "-")
        return AccessDecision(allowed=False, reason=reason)

"""
auth/dependencies.py -- FastAPI Depends() helpers for access control.

require_access(route) turns a static RouteAccess declaration into a
dependency. The dependency runs AccessGuard.decide() against the request
headers and either attaches the resolved User to request.state.user or
raises an HTTPException with a uniform body per status:

  401 unauthorized         -- no / bad / expired / revoked token, or the
                              subject no longer exists
  403 forbidden            -- valid identity, role not in required set
  503 service_unavailable  -- a store could not answer in time

Layer rule: auth/dependencies.py may import from fastapi (for Depends /
HTTPException / Request) because it is part of the FastAPI dependency
injection system. It does not import from api/.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import HTTPException, Request

from auth.errors import Forbidden, ServiceUnavailable, Unauthenticated
from auth.guard import DENY_FORBIDDEN, DENY_SERVICE_UNAVAILABLE, AccessGuard
from auth.models import ADMIN_ONLY, AUTHENTICATED, RouteAccess, User

_DENIALS = {
    DENY_FORBIDDEN: Forbidden,
    DENY_SERVICE_UNAVAILABLE: ServiceUnavailable,
}


def require_access(route: RouteAccess) -> Callable[[Request], User | None]:
    """Build a dependency enforcing route.

    Use as a FastAPI dependency:
        @router.get("/users")
        def list_users(user: User = Depends(require_access(ADMIN_ONLY))): ...
    """

    def dependency(request: Request) -> User | None:
        guard: AccessGuard = request.app.state.guard
        decision = guard.decide(route, request.headers)
        if not decision.allowed:
            error = _DENIALS.get(decision.reason, Unauthenticated)()
            headers = {"WWW-Authenticate": "Bearer"} if isinstance(error, Unauthenticated) else None
            raise HTTPException(status_code=error.status_code, detail=error.to_detail(), headers=headers)
        request.state.user = decision.user
        return decision.user

    return dependency


get_current_user = require_access(AUTHENTICATED)
require_admin = require_access(ADMIN_ONLY)

"""
api/routes/v1/users.py -- User administration REST endpoints (admin only).

Routes:
  GET    /api/v1/users                       -- paged list, filter by username / role
  GET    /api/v1/users/username/{username}   -- look up by exact username
  GET    /api/v1/users/{user_id}             -- look up by id
  PUT    /api/v1/users/{user_id}             -- edit username / password / role
  DELETE /api/v1/users/{user_id}             -- delete account and its session

Every route depends on require_admin, i.e. RouteAccess(required_roles={ADMIN}).
The role check is exact membership against the token's role claim.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response

from api.models import UserListResponse, UserResponse, UserUpdate
from auth.dependencies import require_admin
from auth.errors import UserNotFound
from auth.models import Role, User
from auth.service import AuthService
from auth.store import UserStore

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/users", response_model=UserListResponse)
def list_users(
    request: Request,
    username: Optional[str] = Query(default=None, max_length=20),
    role: Optional[Role] = None,
    current: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
) -> UserListResponse:
    """List accounts, ordered by username. username is a case-insensitive substring filter."""
    user_store: UserStore = request.app.state.user_store
    users, total = user_store.list_users(username=username, role=role, page=current, page_size=page_size)
    return UserListResponse(
        data=[UserResponse.from_user(u) for u in users],
        total=total,
        current=current,
        page_size=page_size,
    )


@router.get("/users/username/{username}", response_model=UserResponse)
def get_user_by_username(request: Request, username: str) -> UserResponse:
    user_store: UserStore = request.app.state.user_store
    return _found(user_store.find_by_username(username))


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(request: Request, user_id: str) -> UserResponse:
    user_store: UserStore = request.app.state.user_store
    return _found(user_store.find_by_id(user_id))


@router.put("/users/{user_id}", response_model=UserResponse)
def update_user(request: Request, user_id: str, body: UserUpdate) -> UserResponse:
    """Edit an account. Changing password or role logs the account out."""
    if body.username is None and body.password is None and body.role is None:
        raise HTTPException(
            status_code=400,
            detail={"code": "no_changes", "message": "No fields to update."},
        )
    service: AuthService = request.app.state.auth_service
    updated = service.update_user(
        user_id,
        username=body.username,
        password=body.password,
        confirm_password=body.confirm_password,
        role=body.role,
    )
    return UserResponse.from_user(updated)


@router.delete("/users/{user_id}", status_code=204)
def delete_user(request: Request, user_id: str) -> Response:
    """Delete an account. Admins cannot delete themselves (no recovery path without DB access)."""
    if user_id == request.state.user.id:
        raise HTTPException(
            status_code=400,
            detail={"code": "self_deletion", "message": "You cannot delete your own account."},
        )
    service: AuthService = request.app.state.auth_service
    service.delete_user(user_id)
    return Response(status_code=204)


def _found(user: User | None) -> UserResponse:
    if user is None:
        raise UserNotFound()
    return UserResponse.from_user(user)

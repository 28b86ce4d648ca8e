"""
auth/service.py -- Registration, login, logout, password change, validation.

AuthService owns the token lifecycle. Every collaborator is passed to the
constructor; there is no module-level state and no settings lookup here.

Revocation model:
  A token is valid only if TokenCodec.verify() accepts it AND it equals the
  SessionStore value for its subject. login() overwrites that value, so the
  previous token for the same user stops validating immediately (single
  active session). logout() deletes it.

Enumeration resistance:
  login() raises the same InvalidCredentials for an unknown username and for
  a wrong password, and runs bcrypt in both branches so response time does
  not reveal which one happened.

validate_token() never says why a token was rejected. Bad signature, expiry,
superseded and logged-out tokens all return None.
"""

from __future__ import annotations

import logging
import secrets
from typing import TYPE_CHECKING

from auth.errors import DuplicateUsername, InvalidCredentials, PasswordMismatch, UserNotFound
from auth.models import Role, TokenClaims, User
from auth.tokens import TokenError

if TYPE_CHECKING:
    from auth.credential import BcryptCredential
    from auth.sessions import SessionStore
    from auth.store import UserStore
    from auth.tokens import TokenCodec

logger = logging.getLogger("sessionguard.auth")

_DEFAULT_SESSION_TTL = 24 * 60 * 60  # seconds


class AuthService:
    """Orchestrates TokenCodec, SessionStore, UserStore and the credential hasher.

    Lifetime is the process lifetime: api/main.py builds one instance in the
    lifespan and stores it on app.state.
    """

    def __init__(
        self,
        codec: TokenCodec,
        sessions: SessionStore,
        users: UserStore,
        credential: BcryptCredential,
        session_ttl_seconds: int = _DEFAULT_SESSION_TTL,
        revoke_on_password_change: bool = True,
    ) -> None:
        self.codec = codec
        self.sessions = sessions
        self.users = users
        self.credential = credential
        self.session_ttl_seconds = session_ttl_seconds
        self.revoke_on_password_change = revoke_on_password_change
        # Verified against when the username is unknown, to equalize timing.
        self._dummy_digest = credential.hash(secrets.token_hex(16))

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def register(self, username: str, password: str, confirm_password: str) -> str:
        """Create a USER account and open its first session. Returns the token."""
        if self.users.find_by_username(username) is not None:
            raise DuplicateUsername()
        if password != confirm_password:
            raise PasswordMismatch()

        user = self.users.create(username, self.credential.hash(password), role=Role.USER)
        logger.info("Registered user %s (%s)", user.username, user.id)
        return self._open_session(user)

    def login(self, username: str, password: str) -> str:
        """Check credentials and open a session, replacing any existing one."""
        user = self.users.find_by_username(username)
        if user is None:
            self.credential.verify(password, self._dummy_digest)
            logger.info("Login failed for %r", username)
            raise InvalidCredentials()
        if not self.credential.verify(password, user.password_digest):
            logger.info("Login failed for %r", username)
            raise InvalidCredentials()

        return self._open_session(user)

    def validate_token(self, token: str) -> TokenClaims | None:
        """Return the claims if token is authentic, unexpired and current.

        Raises ServiceUnavailable only when the session store cannot answer.
        """
        try:
            claims = self.codec.verify(token)
        except TokenError:
            return None

        current = self.sessions.get(claims.subject)
        if current is None or not secrets.compare_digest(current.encode("utf-8"), token.encode("utf-8")):
            return None
        return claims

    def logout(self, user_id: str) -> None:
        """Drop the session record for user_id. Idempotent."""
        self.sessions.delete(user_id)
        logger.info("Logged out user %s", user_id)

    def update_password(self, user_id: str, old_password: str, new_password: str, confirm_password: str) -> bool:
        """Change the password after re-checking the old one.

        With revoke_on_password_change (the default) the active session is
        deleted and the caller must log in again.
        """
        user = self.users.find_by_id(user_id)
        if user is None:
            raise UserNotFound()
        if not self.credential.verify(old_password, user.password_digest):
            raise InvalidCredentials("Old password is incorrect.")
        if new_password != confirm_password:
            raise PasswordMismatch()

        self.users.update_password_digest(user_id, self.credential.hash(new_password))
        if self.revoke_on_password_change:
            self.sessions.delete(user_id)
        logger.info("Password changed for user %s (session revoked=%s)", user_id, self.revoke_on_password_change)
        return True

    def me(self, user_id: str) -> User:
        user = self.users.find_by_id(user_id)
        if user is None:
            raise UserNotFound()
        return user

    # ------------------------------------------------------------------
    # Account administration
    # ------------------------------------------------------------------

    def update_user(
        self,
        user_id: str,
        username: str | None = None,
        password: str | None = None,
        confirm_password: str | None = None,
        role: Role | None = None,
    ) -> User:
        """Admin edit of another account.

        A password or role change revokes the account's session: the old
        token would otherwise keep working with the old password, or carry a
        role claim that is no longer true.
        """
        if self.users.find_by_id(user_id) is None:
            raise UserNotFound()
        digest = None
        if password is not None:
            if confirm_password is None:
                raise PasswordMismatch("Password confirmation is required.")
            if password != confirm_password:
                raise PasswordMismatch()
            digest = self.credential.hash(password)

        user = self.users.update_user(user_id, username=username, password_digest=digest, role=role)
        if digest is not None or role is not None:
            self.sessions.delete(user_id)
        logger.info("Updated user %s", user_id)
        return user

    def delete_user(self, user_id: str) -> None:
        """Delete an account together with its session record."""
        self.users.delete_user(user_id)
        self.sessions.delete(user_id)
        logger.info("Deleted user %s", user_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _open_session(self, user: User) -> str:
        token = self.codec.issue(user.id, user.role)
        self.sessions.put(user.id, token, self.session_ttl_seconds)
        return token

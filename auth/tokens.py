"""
auth/tokens.py -- Bearer token signing and verification.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry sub (user id), role, iat, exp and
       a random jti. The jti makes two tokens issued for the same user within
       the same second distinct, which the single-session check depends on:
       the stored session value must identify exactly one issued token.

  Expiry: jose's own exp check reads the wall clock directly, so it is
       disabled and exp is compared against the injected clock instead. This
       is the seam tests use to simulate expiry without sleeping.

  Failures: verify() raises InvalidSignature or TokenExpired, both subclasses
       of TokenError. Callers catch TokenError only and must not tell the
       two apart in anything user-visible.

  SECRET_KEY: passed to the constructor. No module-level settings read and no
       key rotation -- one static secret for the process lifetime.
"""

from __future__ import annotations

import secrets
from collections.abc import Callable
from datetime import datetime, timezone

from jose import JWTError, jwt

from auth.models import Role, TokenClaims

_ALGORITHM = "HS256"
_DEFAULT_TTL = 24 * 60 * 60  # seconds


class TokenError(Exception):
    """Base for every token verification failure."""


class InvalidSignature(TokenError):
    """Signature mismatch, malformed token, or missing / invalid claims."""


class TokenExpired(TokenError):
    """Signature is fine but exp is not in the future."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenCodec:
    """Issue and verify HS256 bearer tokens.

    Usage:
        codec = TokenCodec(secret_key=settings.secret_key)
        token = codec.issue(user.id, user.role)
        claims = codec.verify(token)   # raises TokenError on failure
    """

    def __init__(
        self,
        secret_key: str,
        ttl_seconds: int = _DEFAULT_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._secret_key = secret_key
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def issue(self, subject: str, role: Role) -> str:
        """Encode a signed token for subject with exp = iat + ttl."""
        issued_at = int(self._clock().timestamp())
        payload = {
            "sub": subject,
            "role": Role(role).value,
            "iat": issued_at,
            "exp": issued_at + self.ttl_seconds,
            "jti": secrets.token_hex(16),
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str) -> TokenClaims:
        """Check signature and expiry; return the embedded claims."""
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[_ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise InvalidSignature("token signature or structure invalid") from exc

        try:
            subject = payload["sub"]
            role = Role(payload["role"])
            issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc)
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidSignature("token claims invalid") from exc
        if not isinstance(subject, str) or not subject:
            raise InvalidSignature("token subject invalid")

        if expires_at <= self._clock():
            raise TokenExpired("token expired")
        return TokenClaims(subject=subject, role=role, issued_at=issued_at, expires_at=expires_at)

"""
auth/credential.py -- One-way password hashing (bcrypt).

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error. Direct bcrypt usage is simpler and has no
compatibility shim.

The cost factor is configuration (Settings.bcrypt_rounds), passed in by the
application assembly. Tests use the bcrypt minimum of 4 rounds for speed.
"""

from __future__ import annotations

import bcrypt


class BcryptCredential:
    """Salted bcrypt hash / verify pair.

    Usage:
        credential = BcryptCredential(rounds=12)
        digest = credential.hash("secret1")
        credential.verify("secret1", digest)   # True
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds

    def hash(self, plain: str) -> str:
        """Return a bcrypt digest of the given plaintext password.

        Passwords longer than 72 bytes are truncated by bcrypt. The API layer
        caps passwords at 20 characters, well below the threshold.
        """
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, digest: str) -> bool:
        """Return True if the plaintext password matches the digest.

        A malformed digest is a mismatch, not an error.
        """
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), digest.encode("utf-8"))
        except ValueError:
            return False

"""Salted one-way password hashing backed by bcrypt."""

from __future__ import annotations

import bcrypt

# bcrypt only consumes the first 72 bytes of its input
_BCRYPT_MAX_BYTES = 72


class PasswordHasher:
    """Hash and verify plaintext passwords with a configurable bcrypt cost."""

    def __init__(self, rounds: int = 10) -> None:
        self._rounds = rounds

    def hash(self, plaintext: str) -> str:
        """Return a bcrypt hash with a freshly generated salt embedded in it."""
        salt = bcrypt.gensalt(rounds=self._rounds)
        return bcrypt.hashpw(_encode(plaintext), salt).decode("utf-8")

    def verify(self, plaintext: str, password_hash: str) -> bool:
        """Return ``True`` when ``plaintext`` matches ``password_hash``.

        Mismatches and unreadable hashes both yield ``False``.
        """
        try:
            return bcrypt.checkpw(_encode(plaintext), password_hash.encode("utf-8"))
        except ValueError:
            return False


def _encode(plaintext: str) -> bytes:
    return plaintext.encode("utf-8")[:_BCRYPT_MAX_BYTES]

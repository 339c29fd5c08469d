"""Issuing and validating signed session tokens."""

from __future__ import annotations

import time
from typing import Any

import jwt

from ..domain.errors import InvalidToken, TokenExpired

_ALGORITHM = "HS256"


class SessionTokens:
    """Stateless JWT sessions bound to an account identifier.

    Tokens are never stored server-side: validity is decided purely by the
    signature, the issuer and the ``exp`` claim.
    """

    def __init__(self, *, secret: str, issuer: str, ttl_seconds: int) -> None:
        self._secret = secret
        self._issuer = issuer
        self._ttl_seconds = ttl_seconds

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def issue(self, account_id: str, *, issued_at: int | None = None) -> str:
        """Create a signed token for ``account_id``.

        Parameters
        ----------
        account_id:
            Account identifier embedded in the ``sub`` claim.
        issued_at:
            Optional UNIX timestamp for ``iat``; defaults to now.

        Returns
        -------
        str
            The encoded JWT. ``exp`` is ``iat`` plus the configured TTL.
        """
        now = int(time.time()) if issued_at is None else issued_at
        payload: dict[str, Any] = {
            "iss": self._issuer,
            "sub": account_id,
            "iat": now,
            "exp": now + self._ttl_seconds,
        }
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)

    def verify(self, token: str) -> str:
        """Validate ``token`` and return the account identifier it is bound to.

        Raises
        ------
        TokenExpired
            When the signature is valid but ``exp`` has passed.
        InvalidToken
            For any other failure: bad signature, foreign issuer, malformed
            token or missing claims.
        """
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[_ALGORITHM],
                issuer=self._issuer,
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenExpired() from exc
        except jwt.PyJWTError as exc:
            raise InvalidToken() from exc

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            raise InvalidToken()
        return subject

"""Session issuer: mints and checks signed bearer tokens."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from merchant_auth.domain.account import Account

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


@dataclass(frozen=True)
class Session:
    """Bearer credential handed to a client after authentication."""

    token: str
    account_id: str
    expires_at: datetime


class SessionIssuer:
    """HS256 JWTs bound to an account id."""

    def __init__(
        self,
        secret: str,
        issuer: str,
        ttl: timedelta = timedelta(days=7),
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._secret = secret
        self._issuer = issuer
        self._ttl = ttl
        self._clock = clock or (lambda: datetime.now(UTC))

    def mint(self, account: Account) -> Session:
        """Create a signed token for *account*.

        The token carries the account id as ``sub`` and the phone number for
        client display; it grants nothing beyond identifying the account.
        """
        now = self._clock()
        expires_at = now + self._ttl
        payload: dict[str, Any] = {
            "iss": self._issuer,
            "sub": account.id,
            "phone_number": account.phone_number,
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        token = jwt.encode(payload, self._secret, algorithm=ALGORITHM)
        return Session(token=token, account_id=account.id, expires_at=expires_at)

    def verify(self, token: str) -> str | None:
        """Return the account id in *token*, or ``None`` if it is not valid."""
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                issuer=self._issuer,
                options={"require": ["exp", "sub", "iss"]},
            )
        except jwt.ExpiredSignatureError:
            logger.info("Rejected expired session token")
            return None
        except jwt.PyJWTError as exc:
            logger.warning("Rejected session token: %s", exc)
            return None
        return claims["sub"]

"""Credential vault: one-way password hashing and verification."""

from __future__ import annotations

import logging

from passlib.context import CryptContext

from merchant_auth.validation import MAX_SECRET_BYTES

logger = logging.getLogger(__name__)


class CredentialVault:
    """Wraps a passlib ``CryptContext`` using salted PBKDF2-SHA256.

    Digests are opaque strings; callers only ever hand them back to
    :meth:`verify`.
    """

    def __init__(self, rounds: int = 200_000) -> None:
        self._context = CryptContext(
            schemes=["pbkdf2_sha256"],
            deprecated="auto",
            pbkdf2_sha256__rounds=rounds,
        )
        # Verified against when there is no real digest to check, so the
        # missing-account path costs the same as a wrong password.
        self._decoy = self._context.hash("decoy-credential")

    def hash(self, secret: str) -> str:
        if len(secret.encode("utf-8")) > MAX_SECRET_BYTES:
            raise ValueError("secret exceeds maximum length")
        return self._context.hash(secret)

    def verify(self, secret: str, digest: str) -> bool:
        """Return ``True`` only if *secret* matches *digest*. Never raises."""
        try:
            return self._context.verify(secret, digest)
        except (ValueError, TypeError) as exc:
            logger.warning("Credential digest could not be checked: %s", exc)
            return False

    def burn(self, secret: str) -> None:
        """Spend one verification's worth of work against a decoy digest."""
        self.verify(secret, self._decoy)

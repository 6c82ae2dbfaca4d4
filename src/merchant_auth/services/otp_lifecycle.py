"""OTP lifecycle: issuing, expiring and consuming one-time codes.

An account has at most one code in flight.  :meth:`OtpLifecycle.issue`
always overwrites the stored code, so a resend silently invalidates any
earlier code, including one just sent to another device.  Two concurrent
issues on the same account both succeed; whichever write lands last is
the only code that will be accepted.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from merchant_auth.database.repository import AccountRepository
from merchant_auth.domain.account import Account, PendingCode
from merchant_auth.errors import CodeExpired, CodeMismatch, NoCodeIssued
from merchant_auth.services.code_generator import CodeGenerator

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(UTC)


class OtpLifecycle:
    """Owns the single-code-in-flight rule for accounts."""

    def __init__(
        self,
        repository: AccountRepository,
        generator: CodeGenerator,
        ttl: timedelta = timedelta(seconds=90),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repo = repository
        self._generator = generator
        self._ttl = ttl
        self._clock = clock

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    async def issue(self, account: Account) -> str:
        """Generate, store and return a fresh code for *account*."""
        code = self._generator.generate()
        pending = PendingCode(code=code, expires_at=self._clock() + self._ttl)
        await self._repo.set_pending_code(account.id, pending)
        account.pending_code = pending
        logger.info(
            "OTP issued for %s, expires at %s",
            account.phone_number,
            pending.expires_at.isoformat(),
        )
        return code

    async def consume(self, account: Account, submitted: str) -> None:
        """Accept *submitted* and mark *account* verified, or raise an ``OtpError``.

        Raises
        ------
        NoCodeIssued
            Nothing is pending (never issued, already consumed or expired).
        CodeExpired
            The code's TTL has elapsed.  The stored code is cleared so it can
            never be retried.
        CodeMismatch
            The code differs from the stored one.  The stored code is kept,
            so the user may retry until it expires.
        """
        pending = account.pending_code
        if pending is None:
            raise NoCodeIssued()

        if self._clock() > pending.expires_at:
            await self._repo.clear_pending_code(account.id, pending.code)
            account.pending_code = None
            logger.info("OTP expired for %s", account.phone_number)
            raise CodeExpired()

        if submitted != pending.code:
            logger.info("OTP mismatch for %s", account.phone_number)
            raise CodeMismatch()

        if not await self._repo.mark_verified(account.id, submitted):
            # The row changed since it was read: a concurrent resend stored a
            # newer code, or a concurrent consume already used this one.
            current = await self._repo.find_by_id(account.id)
            if current is None or current.pending_code is None:
                raise NoCodeIssued()
            raise CodeMismatch()

        account.verified = True
        account.pending_code = None
        logger.info("OTP consumed, %s is now verified", account.phone_number)

"""Account repository: the persistence gateway for merchant accounts."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable
from datetime import UTC, datetime
from typing import TypeVar

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from merchant_auth.domain.account import Account, PendingCode, Profile
from merchant_auth.errors import AccountExists, StorageUnavailable
from merchant_auth.models.account import AccountRow

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AccountRepository:
    """Encapsulates all database access for accounts.

    Each method opens its own session and commits before returning, so a
    single repository instance can be shared by concurrent requests.  Every
    call is bounded by *timeout* seconds; timeouts and driver failures
    surface as :class:`StorageUnavailable`.
    """

    def __init__(self, session_factory: async_sessionmaker, timeout: float = 5.0) -> None:
        self._session_factory = session_factory
        self._timeout = timeout

    # ── Lookups ──────────────────────────────────────────

    async def find_by_phone(self, phone_number: str) -> Account | None:
        """Look up an account by its normalised phone number."""

        async def run() -> Account | None:
            async with self._session_factory() as session:
                stmt = select(AccountRow).where(AccountRow.phone_number == phone_number)
                row = (await session.execute(stmt)).scalar_one_or_none()
                return _to_domain(row) if row else None

        return await self._guarded(run(), "find_by_phone")

    async def find_by_id(self, account_id: str) -> Account | None:
        async def run() -> Account | None:
            async with self._session_factory() as session:
                row = await session.get(AccountRow, account_id)
                return _to_domain(row) if row else None

        return await self._guarded(run(), "find_by_id")

    # ── Writes ───────────────────────────────────────────

    async def insert(
        self, phone_number: str, profile: Profile, credential_hash: str
    ) -> Account:
        """Create an unverified account.

        Raises :class:`AccountExists` when the phone number is already taken.
        """

        async def run() -> Account:
            row = AccountRow(
                id=str(uuid.uuid4()),
                phone_number=phone_number,
                full_name=profile.full_name,
                shop_address=profile.shop_address,
                tax_id=profile.tax_id,
                payout_id=profile.payout_id,
                credential_hash=credential_hash,
                verified=False,
                created_at=datetime.now(UTC),
            )
            async with self._session_factory() as session:
                session.add(row)
                try:
                    await session.commit()
                except IntegrityError as exc:
                    await session.rollback()
                    raise AccountExists() from exc
            return _to_domain(row)

        return await self._guarded(run(), "insert")

    async def update_credentials(self, account_id: str, credential_hash: str) -> None:
        await self._execute_update(
            "update_credentials",
            update(AccountRow)
            .where(AccountRow.id == account_id)
            .values(credential_hash=credential_hash),
        )

    async def set_pending_code(self, account_id: str, pending: PendingCode) -> None:
        """Overwrite whatever code is stored. Last write wins."""
        await self._execute_update(
            "set_pending_code",
            update(AccountRow)
            .where(AccountRow.id == account_id)
            .values(pending_code=pending.code, pending_code_expires_at=pending.expires_at),
        )

    async def clear_pending_code(self, account_id: str, code: str) -> bool:
        """Drop the stored code, only if it is still *code*."""
        rowcount = await self._execute_update(
            "clear_pending_code",
            update(AccountRow)
            .where(AccountRow.id == account_id, AccountRow.pending_code == code)
            .values(pending_code=None, pending_code_expires_at=None),
        )
        return rowcount == 1

    async def mark_verified(self, account_id: str, code: str) -> bool:
        """Flip ``verified`` and clear the code, only if *code* is still stored.

        Both fields change in one UPDATE.  Returns ``False`` when the stored
        code was superseded or consumed concurrently and nothing was written.
        """
        rowcount = await self._execute_update(
            "mark_verified",
            update(AccountRow)
            .where(AccountRow.id == account_id, AccountRow.pending_code == code)
            .values(verified=True, pending_code=None, pending_code_expires_at=None),
        )
        return rowcount == 1

    # ── Private helpers ──────────────────────────────────

    async def _execute_update(self, action: str, stmt) -> int:
        async def run() -> int:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                await session.commit()
                return result.rowcount

        return await self._guarded(run(), action)

    async def _guarded(self, coro: Awaitable[T], action: str) -> T:
        try:
            return await asyncio.wait_for(coro, timeout=self._timeout)
        except TimeoutError as exc:
            logger.error("Storage call %s timed out after %.1fs", action, self._timeout)
            raise StorageUnavailable(f"Storage call {action} timed out") from exc
        except SQLAlchemyError as exc:
            logger.exception("Storage call %s failed: %s", action, exc)
            raise StorageUnavailable() from exc


def _aware(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo; every stored timestamp is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _to_domain(row: AccountRow) -> Account:
    pending = None
    if row.pending_code is not None and row.pending_code_expires_at is not None:
        pending = PendingCode(
            code=row.pending_code, expires_at=_aware(row.pending_code_expires_at)
        )
    return Account(
        id=row.id,
        phone_number=row.phone_number,
        profile=Profile(
            full_name=row.full_name,
            shop_address=row.shop_address,
            tax_id=row.tax_id,
            payout_id=row.payout_id,
        ),
        credential_hash=row.credential_hash,
        verified=row.verified,
        created_at=_aware(row.created_at),
        pending_code=pending,
    )

"""Domain records for merchant accounts.

These dataclasses are the one canonical in-process shape of an account;
the ORM row and the camelCase JSON payloads are both mapped to and from
them at their own boundaries.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class AccountState(str, Enum):
    """Observed (never stored) position of an account in the auth flow."""

    UNREGISTERED = "unregistered"
    PENDING_VERIFICATION = "pending_verification"
    VERIFIED = "verified"


@dataclass(frozen=True, slots=True)
class Profile:
    """Owner-supplied shop details captured at signup."""

    full_name: str
    shop_address: str
    tax_id: str
    payout_id: str


@dataclass(frozen=True, slots=True)
class PendingCode:
    """A one-time code in flight and the instant it stops being accepted."""

    code: str
    expires_at: datetime


@dataclass(slots=True)
class Account:
    """A registered merchant, keyed by normalised phone number."""

    id: str
    phone_number: str
    profile: Profile
    credential_hash: str
    verified: bool
    created_at: datetime
    pending_code: PendingCode | None = None

    @property
    def state(self) -> AccountState:
        if self.verified:
            return AccountState.VERIFIED
        return AccountState.PENDING_VERIFICATION

    def __repr__(self) -> str:
        return (
            f"<Account id={self.id} phone={self.phone_number!r} "
            f"verified={self.verified}>"
        )

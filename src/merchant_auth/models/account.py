"""SQLAlchemy Account model."""

from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""


class AccountRow(Base):
    """Persisted merchant account.

    ``pending_code`` and ``pending_code_expires_at`` are nullable together:
    both are set when a code is issued and both are cleared when it is
    consumed or found expired.
    """

    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    phone_number: Mapped[str] = mapped_column(
        String(16), nullable=False, unique=True, index=True
    )
    full_name: Mapped[str] = mapped_column(String(256), nullable=False)
    shop_address: Mapped[str] = mapped_column(String(512), nullable=False)
    tax_id: Mapped[str] = mapped_column(String(32), nullable=False, doc="GST number")
    payout_id: Mapped[str] = mapped_column(String(320), nullable=False, doc="UPI ID")
    credential_hash: Mapped[str] = mapped_column(String(256), nullable=False)
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    pending_code: Mapped[str | None] = mapped_column(String(6), nullable=True)
    pending_code_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )

    def __repr__(self) -> str:
        return f"<AccountRow id={self.id} phone={self.phone_number!r}>"

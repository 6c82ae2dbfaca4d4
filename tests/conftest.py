"""Shared fixtures: in-memory database, fake clock and scripted collaborators."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from merchant_auth.database.repository import AccountRepository
from merchant_auth.domain.account import Profile
from merchant_auth.errors import DeliveryUnavailable
from merchant_auth.models.account import Base
from merchant_auth.services.auth_service import AuthService
from merchant_auth.services.credential_vault import CredentialVault
from merchant_auth.services.notification import NotificationGateway
from merchant_auth.services.otp_lifecycle import OtpLifecycle
from merchant_auth.services.session_issuer import SessionIssuer

PHONE = "9999999999"
SECRET = "abc123"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class ScriptedGenerator:
    """Returns distinct, predictable codes: 100001, 100002, …"""

    def __init__(self) -> None:
        self._next = 100_000
        self.issued: list[str] = []

    def generate(self) -> str:
        self._next += 1
        code = str(self._next)
        self.issued.append(code)
        return code


class RecordingGateway(NotificationGateway):
    """Records deliveries; raises DeliveryUnavailable when ``failing``."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []
        self.failing = False

    @property
    def name(self) -> str:
        return "recording"

    async def deliver(self, phone_number: str, code: str) -> None:
        if self.failing:
            raise DeliveryUnavailable("gateway down")
        self.sent.append((phone_number, code))

    def last_code(self) -> str:
        return self.sent[-1][1]


# ── Database ─────────────────────────────────────────────

async def _make_factory(url: str, **engine_kwargs):
    engine = create_async_engine(url, echo=False, **engine_kwargs)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine, async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def session_factory():
    """Fresh in-memory database per test."""
    engine, factory = await _make_factory("sqlite+aiosqlite://", poolclass=StaticPool)
    yield factory
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def file_session_factory(tmp_path):
    """File-backed database, one connection per session, for race tests."""
    engine, factory = await _make_factory(f"sqlite+aiosqlite:///{tmp_path / 'auth.db'}")
    yield factory
    await engine.dispose()


# ── Collaborators ────────────────────────────────────────

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def generator() -> ScriptedGenerator:
    return ScriptedGenerator()


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture(scope="session")
def vault() -> CredentialVault:
    # Low work factor keeps the suite fast.
    return CredentialVault(rounds=1000)


@pytest.fixture
def sessions() -> SessionIssuer:
    return SessionIssuer(secret="test-secret", issuer="merchant-auth-test")


@pytest.fixture
def profile() -> Profile:
    return Profile(
        full_name="Asha Traders",
        shop_address="12 Market Road, Pune",
        tax_id="27AAPFU0939F1ZV",
        payout_id="asha.traders@okaxis",
    )


@pytest.fixture
def repo(session_factory) -> AccountRepository:
    return AccountRepository(session_factory)


@pytest.fixture
def otp(repo, generator, clock) -> OtpLifecycle:
    return OtpLifecycle(repo, generator, ttl=timedelta(seconds=90), clock=clock)


@pytest.fixture
def service(repo, otp, vault, gateway, sessions) -> AuthService:
    return AuthService(
        repository=repo, otp=otp, vault=vault, gateway=gateway, sessions=sessions
    )

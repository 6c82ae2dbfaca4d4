"""Authentication service: the OTP-gated account state machine.

States are observed from the stored account, never stored themselves:

* ``UNREGISTERED``          no account for the phone number
* ``PENDING_VERIFICATION``  account exists, ``verified`` is false
* ``VERIFIED``              ``verified`` is true

A session is an outcome of a single request, not account state.

Flow
----
1. ``register`` creates an unverified account and sends the first code.
2. ``request_code`` / ``resend_code`` replace the code in flight.
3. ``verify_code`` consumes the code, flips ``verified`` and returns a
   session straight away, so a fresh signup need not log in again.
4. ``login`` only returns a session for verified accounts; unverified ones
   get a ``requires_verification`` outcome instead.

Operations on one account are not serialised here.  ``issue`` is
last-write-wins and ``consume`` relies on a conditional UPDATE in the
repository, which is enough to keep verification all-or-nothing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.ext.asyncio import async_sessionmaker

from merchant_auth.config import Settings
from merchant_auth.database.repository import AccountRepository
from merchant_auth.domain.account import Account, AccountState, Profile
from merchant_auth.errors import (
    AccountExists,
    AccountNotFound,
    AlreadyVerified,
    InvalidCredentials,
    InvalidSession,
)
from merchant_auth.services.code_generator import CodeGenerator
from merchant_auth.services.credential_vault import CredentialVault
from merchant_auth.services.notification import (
    NotificationGateway,
    build_gateway,
    deliver_best_effort,
)
from merchant_auth.services.otp_lifecycle import OtpLifecycle
from merchant_auth.services.session_issuer import Session, SessionIssuer

logger = logging.getLogger(__name__)


@dataclass
class LoginOutcome:
    """Result of a credential check that did not fail outright."""

    account: Account
    session: Session | None = None

    @property
    def requires_verification(self) -> bool:
        return self.session is None


class AuthService:
    """Orchestrates registration, login and OTP verification."""

    def __init__(
        self,
        repository: AccountRepository,
        otp: OtpLifecycle,
        vault: CredentialVault,
        gateway: NotificationGateway,
        sessions: SessionIssuer,
    ) -> None:
        self._repo = repository
        self._otp = otp
        self._vault = vault
        self._gateway = gateway
        self._sessions = sessions

    # ── Operations ───────────────────────────────────────

    async def register(self, profile: Profile, phone_number: str, secret: str) -> str:
        """Create an unverified account and send it a first code.

        Registration is never idempotent: an existing phone number always
        raises :class:`AccountExists`.  A failed delivery is logged and the
        account still counts as registered.
        """
        if await self._repo.find_by_phone(phone_number) is not None:
            logger.info("Signup rejected, %s already registered", phone_number)
            raise AccountExists()

        digest = self._vault.hash(secret)
        # insert() raises AccountExists too if a concurrent signup won the race
        account = await self._repo.insert(phone_number, profile, digest)
        logger.info("Account %s created for %s", account.id, phone_number)

        await self._send_code(account)
        return account.id

    async def login(self, phone_number: str, secret: str) -> LoginOutcome:
        """Check credentials.

        Unknown phone numbers and wrong secrets raise the same
        :class:`InvalidCredentials` after the same amount of hashing work.
        """
        account = await self._repo.find_by_phone(phone_number)
        if account is None:
            self._vault.burn(secret)
            logger.info("Login failed for %s", phone_number)
            raise InvalidCredentials()

        if not self._vault.verify(secret, account.credential_hash):
            logger.info("Login failed for %s", phone_number)
            raise InvalidCredentials()

        if not account.verified:
            logger.info("Login for unverified account %s", phone_number)
            return LoginOutcome(account=account)

        session = self._sessions.mint(account)
        logger.info("Login successful for %s", phone_number)
        return LoginOutcome(account=account, session=session)

    async def request_code(self, phone_number: str) -> None:
        """Issue and send a new code, replacing any code in flight."""
        account = await self._require(phone_number)
        if account.verified:
            raise AlreadyVerified()
        await self._send_code(account)

    async def resend_code(self, phone_number: str) -> None:
        """Same as :meth:`request_code`; no separate cooldown applies."""
        await self.request_code(phone_number)

    async def verify_code(self, phone_number: str, code: str) -> tuple[Session, Account]:
        """Consume *code* and return a session for the now-verified account."""
        account = await self._require(phone_number)
        await self._otp.consume(account, code)
        session = self._sessions.mint(account)
        logger.info("Phone %s verified, session issued", phone_number)
        return session, account

    async def current_account(self, token: str) -> Account:
        """Resolve a bearer token to its account."""
        account_id = self._sessions.verify(token)
        if account_id is None:
            raise InvalidSession()
        account = await self._repo.find_by_id(account_id)
        if account is None:
            raise InvalidSession("Invalid token - user not found")
        return account

    async def state_of(self, phone_number: str) -> AccountState:
        account = await self._repo.find_by_phone(phone_number)
        if account is None:
            return AccountState.UNREGISTERED
        return account.state

    # ── Private helpers ──────────────────────────────────

    async def _require(self, phone_number: str) -> Account:
        account = await self._repo.find_by_phone(phone_number)
        if account is None:
            logger.info("No account for %s", phone_number)
            raise AccountNotFound()
        return account

    async def _send_code(self, account: Account) -> None:
        code = await self._otp.issue(account)
        await deliver_best_effort(self._gateway, account.phone_number, code)


def build_auth_service(settings: Settings, session_factory: async_sessionmaker) -> AuthService:
    """Wire the production collaborators from *settings*."""
    repository = AccountRepository(session_factory, timeout=settings.storage_timeout_seconds)
    return AuthService(
        repository=repository,
        otp=OtpLifecycle(
            repository,
            CodeGenerator(),
            ttl=timedelta(seconds=settings.otp_ttl_seconds),
        ),
        vault=CredentialVault(rounds=settings.password_hash_rounds),
        gateway=build_gateway(settings),
        sessions=SessionIssuer(
            secret=settings.jwt_secret,
            issuer=settings.jwt_issuer,
            ttl=timedelta(days=settings.session_ttl_days),
        ),
    )

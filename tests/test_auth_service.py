"""Tests for AuthService: the full signup → verify → login flow."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from merchant_auth.database.repository import AccountRepository
from merchant_auth.domain.account import AccountState, Profile
from merchant_auth.errors import (
    AccountExists,
    AccountNotFound,
    AlreadyVerified,
    CodeExpired,
    CodeMismatch,
    InvalidCredentials,
    InvalidSession,
    NoCodeIssued,
)
from merchant_auth.services.auth_service import AuthService
from merchant_auth.services.code_generator import CodeGenerator
from merchant_auth.services.otp_lifecycle import OtpLifecycle

from conftest import PHONE, SECRET, FakeClock, RecordingGateway


class CountingVault:
    """Delegates to a real vault and counts every verification performed."""

    def __init__(self, inner) -> None:
        self._inner = inner
        self.checks = 0

    def hash(self, secret: str) -> str:
        return self._inner.hash(secret)

    def verify(self, secret: str, digest: str) -> bool:
        self.checks += 1
        return self._inner.verify(secret, digest)

    def burn(self, secret: str) -> None:
        self.checks += 1
        self._inner.burn(secret)


# ──────────────────────────────────────────────────────────
# Registration
# ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_register_creates_pending_account_and_sends_code(service, repo, gateway, profile):
    account_id = await service.register(profile, PHONE, SECRET)

    account = await repo.find_by_phone(PHONE)
    assert account.id == account_id
    assert account.verified is False
    assert account.credential_hash != SECRET
    assert gateway.sent == [(PHONE, account.pending_code.code)]
    assert await service.state_of(PHONE) is AccountState.PENDING_VERIFICATION


@pytest.mark.asyncio
async def test_register_twice_conflicts_even_with_other_profile(service, profile):
    await service.register(profile, PHONE, SECRET)
    other = Profile(
        full_name="Someone Else",
        shop_address="99 Other Street",
        tax_id="29ABCDE1234F1Z5",
        payout_id="else@okhdfc",
    )

    with pytest.raises(AccountExists):
        await service.register(other, PHONE, "different")


@pytest.mark.asyncio
async def test_register_succeeds_when_delivery_fails(service, repo, gateway, profile):
    gateway.failing = True

    account_id = await service.register(profile, PHONE, SECRET)

    account = await repo.find_by_id(account_id)
    assert account is not None
    assert account.pending_code is not None
    assert gateway.sent == []


# ──────────────────────────────────────────────────────────
# Scenario: resend invalidates the first code
# ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_request_code_supersedes_signup_code(service, gateway, profile):
    await service.register(profile, PHONE, SECRET)
    c1 = gateway.last_code()

    await service.request_code(PHONE)
    c2 = gateway.last_code()
    assert c1 != c2

    with pytest.raises(CodeMismatch):
        await service.verify_code(PHONE, c1)

    session, account = await service.verify_code(PHONE, c2)
    assert account.verified is True
    assert session.account_id == account.id
    assert await service.state_of(PHONE) is AccountState.VERIFIED


# ──────────────────────────────────────────────────────────
# Scenario: login before and after verification
# ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_login_requires_verification_then_returns_session(service, gateway, profile):
    account_id = await service.register(profile, PHONE, SECRET)

    outcome = await service.login(PHONE, SECRET)
    assert outcome.requires_verification is True
    assert outcome.session is None
    assert outcome.account.id == account_id

    await service.verify_code(PHONE, gateway.last_code())

    outcome = await service.login(PHONE, SECRET)
    assert outcome.requires_verification is False
    assert outcome.session.account_id == account_id


@pytest.mark.asyncio
async def test_login_unknown_phone_and_wrong_secret_look_identical(
    repo, otp, vault, gateway, sessions, profile
):
    counting = CountingVault(vault)
    service = AuthService(repo, otp, counting, gateway, sessions)
    await service.register(profile, PHONE, SECRET)

    with pytest.raises(InvalidCredentials) as wrong_secret:
        await service.login(PHONE, "not-the-password")
    checks_after_wrong_secret = counting.checks

    with pytest.raises(InvalidCredentials) as unknown_phone:
        await service.login("+15550000000", SECRET)

    assert type(wrong_secret.value) is type(unknown_phone.value)
    assert str(wrong_secret.value) == str(unknown_phone.value)
    assert checks_after_wrong_secret == 1
    assert counting.checks == 2


# ──────────────────────────────────────────────────────────
# Scenario: expiry
# ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_expired_code_then_no_code(service, gateway, clock, profile):
    await service.register(profile, PHONE, SECRET)
    await service.request_code(PHONE)
    c2 = gateway.last_code()

    clock.advance(91)

    with pytest.raises(CodeExpired):
        await service.verify_code(PHONE, c2)
    with pytest.raises(NoCodeIssued):
        await service.verify_code(PHONE, c2)

    # A fresh code recovers the flow.
    await service.resend_code(PHONE)
    await service.verify_code(PHONE, gateway.last_code())


@pytest.mark.asyncio
async def test_verify_code_is_single_use(service, gateway, profile):
    await service.register(profile, PHONE, SECRET)
    code = gateway.last_code()

    await service.verify_code(PHONE, code)

    with pytest.raises(NoCodeIssued):
        await service.verify_code(PHONE, code)


# ──────────────────────────────────────────────────────────
# Unknown and already verified accounts
# ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_operations_on_unknown_phone_are_not_found(service):
    with pytest.raises(AccountNotFound):
        await service.request_code(PHONE)
    with pytest.raises(AccountNotFound):
        await service.resend_code(PHONE)
    with pytest.raises(AccountNotFound):
        await service.verify_code(PHONE, "123456")
    assert await service.state_of(PHONE) is AccountState.UNREGISTERED


@pytest.mark.asyncio
async def test_verified_account_gets_no_new_code(service, repo, gateway, profile):
    await service.register(profile, PHONE, SECRET)
    await service.verify_code(PHONE, gateway.last_code())
    deliveries = len(gateway.sent)

    with pytest.raises(AlreadyVerified):
        await service.resend_code(PHONE)

    assert len(gateway.sent) == deliveries
    assert (await repo.find_by_phone(PHONE)).pending_code is None


@pytest.mark.asyncio
async def test_request_code_swallows_delivery_failure(service, repo, gateway, profile):
    await service.register(profile, PHONE, SECRET)
    before = (await repo.find_by_phone(PHONE)).pending_code.code
    gateway.failing = True

    await service.request_code(PHONE)

    after = (await repo.find_by_phone(PHONE)).pending_code.code
    assert after != before


# ──────────────────────────────────────────────────────────
# Sessions
# ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_current_account_resolves_token(service, gateway, profile):
    await service.register(profile, PHONE, SECRET)
    session, _ = await service.verify_code(PHONE, gateway.last_code())

    account = await service.current_account(session.token)
    assert account.phone_number == PHONE

    with pytest.raises(InvalidSession):
        await service.current_account(session.token + "tampered")


# ──────────────────────────────────────────────────────────
# Concurrent resends on one account
# ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_concurrent_resends_leave_exactly_one_valid_code(
    file_session_factory, vault, sessions, profile
):
    repo = AccountRepository(file_session_factory)
    gateway = RecordingGateway()
    otp = OtpLifecycle(repo, CodeGenerator(), ttl=timedelta(seconds=90), clock=FakeClock())
    service = AuthService(repo, otp, vault, gateway, sessions)
    await service.register(profile, PHONE, SECRET)
    gateway.sent.clear()

    await asyncio.gather(service.resend_code(PHONE), service.resend_code(PHONE))

    sent_codes = [code for _, code in gateway.sent]
    assert len(sent_codes) == 2
    stored = (await repo.find_by_phone(PHONE)).pending_code.code
    assert stored in sent_codes

    # Only the last write is accepted; the other delivered code is dead.
    for code in sent_codes:
        if code != stored:
            with pytest.raises(CodeMismatch):
                await service.verify_code(PHONE, code)
    await service.verify_code(PHONE, stored)
    assert await service.state_of(PHONE) is AccountState.VERIFIED

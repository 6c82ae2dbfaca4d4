"""Typed error hierarchy for the authentication core.

Every error carries an :class:`ErrorKind` so the HTTP boundary can map
failures to status codes without inspecting messages.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    CONFLICT = "conflict"
    ALREADY_VERIFIED = "already_verified"
    NOT_FOUND = "not_found"
    INVALID_CREDENTIALS = "invalid_credentials"
    INVALID_SESSION = "invalid_session"
    NO_CODE_ISSUED = "no_code_issued"
    CODE_EXPIRED = "code_expired"
    CODE_MISMATCH = "code_mismatch"
    STORAGE_UNAVAILABLE = "storage_unavailable"
    DELIVERY_UNAVAILABLE = "delivery_unavailable"


class AuthError(Exception):
    """Base class for every failure the auth core reports to its callers."""

    kind: ErrorKind
    default_message: str = "Authentication error"
    #: Transient errors may be retried by the client; the core never retries.
    transient: bool = False

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


# ── Account lifecycle ────────────────────────────────────

class AccountExists(AuthError):
    kind = ErrorKind.CONFLICT
    default_message = "User with this phone number already exists"


class AlreadyVerified(AuthError):
    kind = ErrorKind.ALREADY_VERIFIED
    default_message = "Phone number is already verified"


class AccountNotFound(AuthError):
    kind = ErrorKind.NOT_FOUND
    default_message = "User not found"


class InvalidCredentials(AuthError):
    kind = ErrorKind.INVALID_CREDENTIALS
    default_message = "Invalid credentials"


class InvalidSession(AuthError):
    kind = ErrorKind.INVALID_SESSION
    default_message = "Invalid or expired token"


# ── OTP ──────────────────────────────────────────────────

class OtpError(AuthError):
    """A submitted code was rejected. Permanent for this attempt."""


class NoCodeIssued(OtpError):
    kind = ErrorKind.NO_CODE_ISSUED
    default_message = "No OTP has been issued; please request a new code"


class CodeExpired(OtpError):
    kind = ErrorKind.CODE_EXPIRED
    default_message = "OTP has expired"


class CodeMismatch(OtpError):
    kind = ErrorKind.CODE_MISMATCH
    default_message = "Invalid OTP"


# ── Infrastructure ───────────────────────────────────────

class StorageUnavailable(AuthError):
    kind = ErrorKind.STORAGE_UNAVAILABLE
    default_message = "Storage is temporarily unavailable"
    transient = True


class DeliveryUnavailable(AuthError):
    kind = ErrorKind.DELIVERY_UNAVAILABLE
    default_message = "SMS delivery is temporarily unavailable"
    transient = True

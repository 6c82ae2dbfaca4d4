"""HTTP routes for merchant signup, login and phone verification.

Endpoints (mounted under ``/auth`` and ``/api/auth``)
-----------------------------------------------------
POST /signup       → create account, send first OTP
POST /login        → session, or ``requiresVerification``
POST /send-otp     → issue a new OTP
POST /verify-otp   → consume OTP, return session
POST /resend-otp   → issue a new OTP
GET  /me           → account behind a bearer token

``send-otp`` and ``resend-otp`` answer 404 for an unknown phone number and
409 for an account that is already verified.

JSON bodies use camelCase; translation to the snake_case domain happens
only in the models below.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from merchant_auth import validation
from merchant_auth.domain.account import Account, Profile
from merchant_auth.errors import AuthError, ErrorKind, InvalidSession
from merchant_auth.services.auth_service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

_bearer = HTTPBearer(auto_error=False)

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.ALREADY_VERIFIED: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.INVALID_SESSION: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.NO_CODE_ISSUED: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CODE_EXPIRED: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CODE_MISMATCH: status.HTTP_400_BAD_REQUEST,
    ErrorKind.STORAGE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.DELIVERY_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


# ── Request / response models ────────────────────────────

PhoneNumber = Annotated[str, AfterValidator(validation.normalize_phone)]
OtpCode = Annotated[str, AfterValidator(validation.validate_code)]
FullName = Annotated[str, AfterValidator(validation.validate_full_name)]
ShopAddress = Annotated[str, AfterValidator(validation.validate_shop_address)]
TaxId = Annotated[str, AfterValidator(validation.validate_tax_id)]
PayoutId = Annotated[str, AfterValidator(validation.validate_payout_id)]
Password = Annotated[str, AfterValidator(validation.validate_password)]


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class PhoneRequest(_CamelModel):
    phone_number: PhoneNumber = Field(alias="phoneNumber")


class SignupRequest(PhoneRequest):
    full_name: FullName = Field(alias="fullName")
    shop_address: ShopAddress = Field(alias="shopAddress")
    gst_number: TaxId = Field(alias="gstNumber")
    upi_id: PayoutId = Field(alias="upiId")
    password: Password

    def to_profile(self) -> Profile:
        return Profile(
            full_name=self.full_name,
            shop_address=self.shop_address,
            tax_id=self.gst_number,
            payout_id=self.upi_id,
        )


class LoginRequest(PhoneRequest):
    password: str = Field(min_length=1)


class VerifyOtpRequest(PhoneRequest):
    otp: OtpCode


class UserPayload(_CamelModel):
    id: str
    full_name: str = Field(serialization_alias="fullName")
    phone_number: str = Field(serialization_alias="phoneNumber")
    shop_address: str = Field(serialization_alias="shopAddress")
    gst_number: str = Field(serialization_alias="gstNumber")
    upi_id: str = Field(serialization_alias="upiId")
    is_verified: bool = Field(serialization_alias="isVerified")

    @classmethod
    def from_domain(cls, account: Account) -> "UserPayload":
        return cls(
            id=account.id,
            full_name=account.profile.full_name,
            phone_number=account.phone_number,
            shop_address=account.profile.shop_address,
            gst_number=account.profile.tax_id,
            upi_id=account.profile.payout_id,
            is_verified=account.verified,
        )


def _envelope(
    message: str,
    data: dict[str, Any] | None = None,
    *,
    success: bool = True,
    status_code: int = status.HTTP_200_OK,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": success, "message": message, "data": data},
    )


def _user(account: Account) -> dict[str, Any]:
    return UserPayload.from_domain(account).model_dump(by_alias=True)


# ── Dependencies ─────────────────────────────────────────

def get_auth_service(request: Request) -> AuthService:
    """Resolve the ``AuthService`` stored on the FastAPI application state."""
    service: AuthService = request.app.state.auth_service
    return service


async def get_current_account(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    service: AuthService = Depends(get_auth_service),
) -> Account:
    if credentials is None:
        raise InvalidSession("Access token required")
    return await service.current_account(credentials.credentials)


# ── Endpoints ────────────────────────────────────────────

@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(
    body: SignupRequest, service: AuthService = Depends(get_auth_service)
) -> JSONResponse:
    """Register a merchant and send the first verification code."""
    account_id = await service.register(body.to_profile(), body.phone_number, body.password)
    return _envelope(
        "Account created successfully! Please verify your phone number.",
        {"userId": account_id},
        status_code=status.HTTP_201_CREATED,
    )


@router.post("/login")
async def login(
    body: LoginRequest, service: AuthService = Depends(get_auth_service)
) -> JSONResponse:
    outcome = await service.login(body.phone_number, body.password)
    if outcome.requires_verification:
        return _envelope(
            "Account not verified. Please verify your account first.",
            {"requiresVerification": True, "userId": outcome.account.id},
            success=False,
        )
    session = outcome.session
    return _envelope(
        "Login successful",
        {
            "user": _user(outcome.account),
            "token": session.token,
            "expiresAt": session.expires_at.isoformat(),
        },
    )


@router.post("/send-otp")
async def send_otp(
    body: PhoneRequest, service: AuthService = Depends(get_auth_service)
) -> JSONResponse:
    await service.request_code(body.phone_number)
    return _envelope("OTP sent successfully")


@router.post("/verify-otp")
async def verify_otp(
    body: VerifyOtpRequest, service: AuthService = Depends(get_auth_service)
) -> JSONResponse:
    """Consume the code; a verified signup gets a session immediately."""
    session, account = await service.verify_code(body.phone_number, body.otp)
    return _envelope(
        "Phone number verified successfully!",
        {
            "user": _user(account),
            "token": session.token,
            "expiresAt": session.expires_at.isoformat(),
        },
    )


@router.post("/resend-otp")
async def resend_otp(
    body: PhoneRequest, service: AuthService = Depends(get_auth_service)
) -> JSONResponse:
    await service.resend_code(body.phone_number)
    return _envelope("OTP resent successfully")


@router.get("/me")
async def me(account: Account = Depends(get_current_account)) -> JSONResponse:
    return _envelope("OK", {"user": _user(account)})


# ── Error handling ───────────────────────────────────────

async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    status_code = STATUS_BY_KIND[exc.kind]
    if exc.transient:
        logger.error("%s %s failed transiently: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.kind.value)
    data: dict[str, Any] = {"error": exc.kind.value, "retryable": exc.transient}
    return _envelope(exc.message, data, success=False, status_code=status_code)


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [_describe(error) for error in exc.errors()]
    logger.info("%s %s validation failed: %s", request.method, request.url.path, errors)
    return _envelope(
        "Validation failed",
        {"errors": errors},
        success=False,
        status_code=status.HTTP_400_BAD_REQUEST,
    )


def _describe(error: dict[str, Any]) -> str:
    if error.get("type") == "value_error":
        return str(error.get("ctx", {}).get("error", error.get("msg")))
    field = error.get("loc", ("body",))[-1]
    return f"{field}: {error.get('msg', 'invalid')}"


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

"""Authentication routes.

Provides:
- POST /api/register - Create an unverified account and email a code
- POST /api/verify - Consume a verification code (logs the user in)
- POST /api/resend-code - Issue a fresh verification code
- POST /api/login - Open a session (verified accounts only)
- POST /api/logout - Close the current session
- GET /api/user - Current account
"""
from typing import Annotated, Optional

from email_validator import validate_email
from fastapi import APIRouter, Depends, Response, status
from pydantic import AfterValidator, BaseModel, Field

from cyberchat.config import Settings
from cyberchat.core.deps import (
    get_app_settings,
    get_authenticator,
    get_current_account,
    get_registration,
    get_session_token,
)
from cyberchat.models.account import Account
from cyberchat.models.session import SessionRecord
from cyberchat.services.auth_service import RegistrationService, SessionAuthenticator

router = APIRouter(prefix="/api", tags=["auth"])


def check_email(value: str) -> str:
    """
    Reject syntactically invalid addresses but keep the string as submitted.

    Accounts are looked up by the exact stored email, so every endpoint must
    see the same representation the user typed.
    """
    validate_email(value, check_deliverability=False)
    return value


def check_password(value: str) -> str:
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        raise ValueError("password must be valid UTF-8 text")
    return value


SubmittedEmail = Annotated[str, AfterValidator(check_email)]
SubmittedPassword = Annotated[str, Field(min_length=6, max_length=256), AfterValidator(check_password)]


class RegisterRequest(BaseModel):
    """Request model for registration."""
    email: SubmittedEmail
    username: Optional[str] = Field(default=None, min_length=3, max_length=100)
    password: SubmittedPassword


class VerifyRequest(BaseModel):
    email: SubmittedEmail
    code: str = Field(min_length=1, max_length=16)


class ResendCodeRequest(BaseModel):
    email: SubmittedEmail


class LoginRequest(BaseModel):
    email: str
    password: str


class MessageResponse(BaseModel):
    message: str


class AccountResponse(BaseModel):
    """Public account fields. Never includes the hash or pending code."""
    id: str
    email: str
    username: Optional[str]
    verified: bool

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        return cls(
            id=account.id,
            email=account.email,
            username=account.username,
            verified=account.verified,
        )


def set_session_cookie(response: Response, record: SessionRecord, settings: Settings) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=record.token,
        max_age=settings.SESSION_TTL_MINUTES * 60,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
    )


@router.post("/register", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def register(
    data: RegisterRequest,
    registration: RegistrationService = Depends(get_registration),
) -> MessageResponse:
    """
    Register a new account.

    Raises:
        EmailAlreadyRegistered: 400
        EmailDeliveryFailed: 500, the account is kept so the code can be resent
    """
    registration.register(email=data.email, password=data.password, username=data.username)
    return MessageResponse(
        message="Registration successful. Please check your email for verification code."
    )


@router.post("/verify", response_model=MessageResponse)
def verify(
    data: VerifyRequest,
    response: Response,
    registration: RegistrationService = Depends(get_registration),
    authenticator: SessionAuthenticator = Depends(get_authenticator),
    settings: Settings = Depends(get_app_settings),
) -> MessageResponse:
    """
    Verify an email with its code and log the account in.

    Raises:
        InvalidVerificationCode: 400 if the code is wrong, expired or used
    """
    account = registration.verify(email=data.email, code=data.code)
    record = authenticator.start_session(account)
    set_session_cookie(response, record, settings)
    return MessageResponse(message="Email verified successfully")


@router.post("/resend-code", response_model=MessageResponse)
def resend_code(
    data: ResendCodeRequest,
    registration: RegistrationService = Depends(get_registration),
) -> MessageResponse:
    """Send a new code if the email has a pending verification."""
    registration.resend_code(data.email)
    return MessageResponse(
        message="If that email is awaiting verification, a new code has been sent."
    )


@router.post("/login", response_model=AccountResponse)
def login(
    data: LoginRequest,
    response: Response,
    authenticator: SessionAuthenticator = Depends(get_authenticator),
    settings: Settings = Depends(get_app_settings),
) -> AccountResponse:
    """
    Authenticate and set the session cookie.

    Raises:
        InvalidCredentials: 401
        EmailNotVerified: 401
    """
    account, record = authenticator.login(data.email, data.password)
    set_session_cookie(response, record, settings)
    return AccountResponse.from_account(account)


@router.post("/logout", response_model=MessageResponse)
def logout(
    response: Response,
    token: Optional[str] = Depends(get_session_token),
    authenticator: SessionAuthenticator = Depends(get_authenticator),
    settings: Settings = Depends(get_app_settings),
) -> MessageResponse:
    """Invalidate the session and clear the cookie. Idempotent."""
    authenticator.logout(token)
    response.delete_cookie(key=settings.SESSION_COOKIE_NAME)
    return MessageResponse(message="Logged out")


@router.get("/user", response_model=AccountResponse)
def current_user(account: Account = Depends(get_current_account)) -> AccountResponse:
    return AccountResponse.from_account(account)

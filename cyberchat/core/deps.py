"""FastAPI dependencies resolving services and the current account."""
from typing import Optional

from fastapi import Depends, Request

from cyberchat.config import Settings
from cyberchat.models.account import Account
from cyberchat.services.auth_service import RegistrationService, SessionAuthenticator
from cyberchat.services.chat_service import ChatRelay


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_authenticator(request: Request) -> SessionAuthenticator:
    return request.app.state.authenticator


def get_registration(request: Request) -> RegistrationService:
    return request.app.state.registration


def get_chat_relay(request: Request) -> ChatRelay:
    return request.app.state.chat_relay


def get_session_token(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> Optional[str]:
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


def get_current_account(
    token: Optional[str] = Depends(get_session_token),
    authenticator: SessionAuthenticator = Depends(get_authenticator),
) -> Account:
    """
    Resolve the session cookie to an account.

    Raises:
        Unauthenticated: Rendered as 401 by the app error handler
    """
    return authenticator.current_account(token)

"""Account registration and session authentication.

Handles:
- Registration: unverified account + verification email
- Code verification and resend
- Login (verified accounts only), logout, session resolution
"""
from datetime import timedelta
from typing import Optional, Tuple
import logging
import secrets

from cyberchat.core.clock import Clock, utcnow
from cyberchat.core.errors import (
    EmailNotVerified,
    InvalidCredentials,
    InvalidVerificationCode,
    Unauthenticated,
)
from cyberchat.core.security import hash_password, verify_password
from cyberchat.models.account import Account
from cyberchat.models.session import SessionRecord
from cyberchat.services.email_service import EmailSender, render_verification_email
from cyberchat.services.sessions import SessionStore
from cyberchat.services.store import CredentialStore
from cyberchat.services.verification import VerificationCodeIssuer

logger = logging.getLogger(__name__)

SESSION_TOKEN_BYTES = 32

# Verified against when the email is unknown so both failure paths cost
# one key derivation.
_DUMMY_PASSWORD_HASH = hash_password(secrets.token_hex(16))


class SessionAuthenticator:
    """
    Login state machine: Anonymous -> Authenticated on success, no state
    change on failure. Sessions are the only state it mutates.
    """

    def __init__(
        self,
        store: CredentialStore,
        sessions: SessionStore,
        ttl_minutes: int = 60 * 24 * 7,
        clock: Optional[Clock] = None,
    ):
        self.store = store
        self.sessions = sessions
        self.ttl = timedelta(minutes=ttl_minutes)
        self.clock = clock or utcnow

    def login(self, email: str, password: str) -> Tuple[Account, SessionRecord]:
        """
        Authenticate and open a session.

        Raises:
            InvalidCredentials: Unknown email or wrong password
            EmailNotVerified: Correct account that has not verified its email
        """
        account = self.store.get_account_by_email(email)
        if account is None:
            verify_password(password, _DUMMY_PASSWORD_HASH)
            logger.info("Login rejected: invalid credentials")
            raise InvalidCredentials()

        if not account.verified:
            logger.info(f"Login rejected: account={account.id} not verified")
            raise EmailNotVerified()

        if not verify_password(password, account.password_hash):
            logger.info("Login rejected: invalid credentials")
            raise InvalidCredentials()

        record = self.start_session(account)
        logger.info(f"Login: account={account.id}")
        return account, record

    def start_session(self, account: Account) -> SessionRecord:
        """Open a new session for an already authenticated, verified account."""
        now = self.clock()
        purged = self.sessions.delete_expired(now)
        if purged:
            logger.info(f"Purged {purged} expired sessions")
        record = SessionRecord(
            token=secrets.token_urlsafe(SESSION_TOKEN_BYTES),
            account_id=account.id,
            created_at=now,
            expires_at=now + self.ttl,
        )
        self.sessions.add(record)
        return record

    def logout(self, token: Optional[str]) -> None:
        """Invalidate `token`. Logging out twice, or without a session, is fine."""
        if token:
            self.sessions.delete(token)

    def current_account(self, token: Optional[str]) -> Account:
        """
        Resolve a session token to its account.

        Raises:
            Unauthenticated: Missing, unknown or expired session, or the
                account no longer exists
        """
        if not token:
            raise Unauthenticated()

        record = self.sessions.get(token)
        if record is None:
            raise Unauthenticated()

        if record.expires_at <= self.clock():
            self.sessions.delete(token)
            raise Unauthenticated()

        account = self.store.get_account(record.account_id)
        if account is None:
            self.sessions.delete(token)
            raise Unauthenticated()
        return account


class RegistrationService:
    """Creates accounts and drives them through email verification."""

    def __init__(
        self,
        store: CredentialStore,
        issuer: VerificationCodeIssuer,
        mailer: EmailSender,
        app_name: str = "CyberChat",
    ):
        self.store = store
        self.issuer = issuer
        self.mailer = mailer
        self.app_name = app_name

    def register(self, email: str, password: str, username: Optional[str] = None) -> Account:
        """
        Create an unverified account and email it a verification code.

        Raises:
            EmailAlreadyRegistered: If `email` is taken
            EmailDeliveryFailed: If the code could not be sent; the account
                is kept and a new code can be requested
        """
        account = self.store.create_account(
            email=email,
            password_hash=hash_password(password),
            username=username,
        )
        logger.info(f"Account registered: account={account.id}")
        self._send_code(account)
        return account

    def resend_code(self, email: str) -> None:
        """
        Issue a fresh code for a pending account, invalidating the old one.

        Unknown and already verified emails are ignored silently so the
        response does not reveal whether an address is registered.
        """
        account = self.store.get_account_by_email(email)
        if account is None or account.verified:
            logger.info("Resend requested for unknown or verified email, ignoring")
            return
        self._send_code(account)

    def verify(self, email: str, code: str) -> Account:
        """
        Consume a verification code.

        Raises:
            InvalidVerificationCode: Wrong, expired or already used code
        """
        if not self.issuer.check(email, code):
            raise InvalidVerificationCode()
        account = self.store.get_account_by_email(email)
        if account is None:
            raise InvalidVerificationCode()
        return account

    def _send_code(self, account: Account) -> None:
        code, _ = self.issuer.issue(account)
        subject, html_body = render_verification_email(
            self.app_name, code, int(self.issuer.ttl.total_seconds() // 60)
        )
        self.mailer.send(account.email, subject, html_body)

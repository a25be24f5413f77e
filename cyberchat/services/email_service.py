"""Email delivery collaborators.

Provides:
- EmailSender: interface used by registration
- SmtpEmailSender: delivers through an SMTP relay (e.g. Gmail app password)
- LoggingEmailSender: development sender that writes messages to the log
- render_verification_email: the verification message template
"""
from abc import ABC, abstractmethod
from email.message import EmailMessage
from typing import Tuple
import logging
import smtplib

from cyberchat.core.errors import EmailDeliveryFailed

logger = logging.getLogger(__name__)


class EmailSender(ABC):
    @abstractmethod
    def send(self, to_address: str, subject: str, html_body: str) -> None:
        """
        Deliver one HTML message.

        Raises:
            EmailDeliveryFailed: If the message could not be handed off
        """


class SmtpEmailSender(EmailSender):
    """Sends mail over SMTP with optional STARTTLS and login."""

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def send(self, to_address: str, subject: str, html_body: str) -> None:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to_address
        message["Subject"] = subject
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(html_body, subtype="html")

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username:
                    smtp.login(self.username, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP delivery to {to_address} failed: {str(e)}")
            raise EmailDeliveryFailed() from e

        logger.info(f"Email sent: to={to_address}, subject={subject!r}")


class LoggingEmailSender(EmailSender):
    """Writes outgoing mail to the log instead of sending it. Development only."""

    def send(self, to_address: str, subject: str, html_body: str) -> None:
        logger.warning(
            f"EMAIL_BACKEND=logging, not sending. to={to_address} subject={subject!r}\n{html_body}"
        )


def render_verification_email(app_name: str, code: str, ttl_minutes: int) -> Tuple[str, str]:
    """
    Build the verification message.

    Returns:
        (subject, html_body)
    """
    subject = f"Verify your {app_name} account"
    html_body = f"""
      <h1>Welcome to {app_name}!</h1>
      <p>Your verification code is: <strong>{code}</strong></p>
      <p>This code will expire in {ttl_minutes} minutes.</p>
    """
    return subject, html_body

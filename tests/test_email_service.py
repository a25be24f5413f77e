import smtplib

import pytest

from cyberchat.core.errors import EmailDeliveryFailed
from cyberchat.services import email_service
from cyberchat.services.email_service import SmtpEmailSender, render_verification_email


class FakeSMTP:
    instances = []
    fail_on_send = False

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.calls = []
        self.sent = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.calls.append("starttls")

    def login(self, username, password):
        self.calls.append(("login", username, password))

    def send_message(self, message):
        if FakeSMTP.fail_on_send:
            raise smtplib.SMTPRecipientsRefused({})
        self.sent.append(message)


@pytest.fixture(autouse=True)
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    FakeSMTP.fail_on_send = False
    monkeypatch.setattr(email_service.smtplib, "SMTP", FakeSMTP)
    return FakeSMTP


def test_render_verification_email():
    subject, body = render_verification_email("CyberChat", "A1B2C3", 10)
    assert subject == "Verify your CyberChat account"
    assert "<strong>A1B2C3</strong>" in body
    assert "10 minutes" in body


def test_smtp_sender_delivers_html(fake_smtp):
    sender = SmtpEmailSender("smtp.test", 587, "bot@test", username="bot", password="pw", timeout=3)
    sender.send("a@b.com", "Subject", "<p>Hi</p>")

    smtp = fake_smtp.instances[0]
    assert (smtp.host, smtp.port, smtp.timeout) == ("smtp.test", 587, 3)
    assert smtp.calls == ["starttls", ("login", "bot", "pw")]
    message = smtp.sent[0]
    assert message["To"] == "a@b.com"
    assert message["From"] == "bot@test"
    assert message["Subject"] == "Subject"
    assert "<p>Hi</p>" in message.get_body(preferencelist=("html",)).get_content()


def test_smtp_sender_without_tls_or_login(fake_smtp):
    SmtpEmailSender("localhost", 25, "bot@test", use_tls=False).send("a@b.com", "S", "<p/>")
    assert fake_smtp.instances[0].calls == []


def test_smtp_failure_raises_delivery_failed(fake_smtp):
    fake_smtp.fail_on_send = True
    with pytest.raises(EmailDeliveryFailed):
        SmtpEmailSender("smtp.test", 587, "bot@test").send("a@b.com", "S", "<p/>")


def test_connection_error_raises_delivery_failed(monkeypatch):
    def refuse(*args, **kwargs):
        raise ConnectionRefusedError("no server")

    monkeypatch.setattr(email_service.smtplib, "SMTP", refuse)
    with pytest.raises(EmailDeliveryFailed):
        SmtpEmailSender("smtp.test", 587, "bot@test").send("a@b.com", "S", "<p/>")

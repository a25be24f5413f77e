"""Shared fixtures: in-memory stores, fake collaborators and a test client."""
import json
import re
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from cyberchat.config import Settings
from cyberchat.core.errors import EmailDeliveryFailed
from cyberchat.main import create_app
from cyberchat.services.email_service import EmailSender
from cyberchat.services.generator import TextGenerator
from cyberchat.services.sessions import MemorySessionStore
from cyberchat.services.store import MemoryCredentialStore

CODE_PATTERN = re.compile(r"<strong>([0-9A-F]+)</strong>")


class FakeClock:
    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeGenerator(TextGenerator):
    """Returns canned replies, or raises `error` when set."""

    def __init__(self, reply: Optional[str] = None):
        self.reply = reply or json.dumps(
            {
                "content": "Phishing is a social engineering attack.",
                "isCyberSecurityRelated": True,
            }
        )
        self.error: Optional[Exception] = None
        self.calls: List[Tuple[str, str]] = []

    def complete(self, system_prompt: str, user_message: str) -> str:
        self.calls.append((system_prompt, user_message))
        if self.error is not None:
            raise self.error
        return self.reply


class OutboxMailer(EmailSender):
    def __init__(self):
        self.outbox: List[Tuple[str, str, str]] = []
        self.fail = False

    def send(self, to_address: str, subject: str, html_body: str) -> None:
        if self.fail:
            raise EmailDeliveryFailed()
        self.outbox.append((to_address, subject, html_body))

    def last_code(self, to_address: str) -> str:
        for address, _, body in reversed(self.outbox):
            if address == to_address:
                return CODE_PATTERN.search(body).group(1)
        raise AssertionError(f"no mail sent to {to_address}")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryCredentialStore()


@pytest.fixture
def sessions():
    return MemorySessionStore()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def mailer():
    return OutboxMailer()


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        STORAGE_BACKEND="memory",
        EMAIL_BACKEND="logging",
        OPENAI_API_KEY="",
        RATE_LIMIT_MAX_REQUESTS=1000,
    )


@pytest.fixture
def app(settings, store, sessions, generator, mailer, clock):
    return create_app(
        settings=settings,
        store=store,
        sessions=sessions,
        generator=generator,
        mailer=mailer,
        clock=clock,
    )


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def register_and_verify(client, mailer):
    """Register, verify and log in an account; returns the login response."""

    def _register(email: str = "a@b.com", password: str = "Passw0rd", username: str = "alice"):
        response = client.post(
            "/api/register",
            json={"email": email, "username": username, "password": password},
        )
        assert response.status_code == 201
        code = mailer.last_code(email)
        assert client.post("/api/verify", json={"email": email, "code": code}).status_code == 200
        response = client.post("/api/login", json={"email": email, "password": password})
        assert response.status_code == 200
        return response

    return _register

"""Account SQLModel definition.

An account starts unverified and carries a pending verification code until
the code is consumed.
"""
from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlmodel import Field, SQLModel

from cyberchat.core.clock import utcnow


def new_id() -> str:
    return uuid4().hex


class Account(SQLModel, table=True):
    """
    Registered user.

    Invariant: an account with verified=False can never authenticate.
    verification_code and verification_expiry are cleared together when a
    code is consumed.
    """
    __tablename__ = "account"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=32)
    email: str = Field(index=True, unique=True, nullable=False, max_length=320)
    username: Optional[str] = Field(default=None, max_length=100)
    password_hash: str = Field(nullable=False)
    verified: bool = Field(default=False)
    verification_code: Optional[str] = Field(default=None, max_length=16)
    verification_expiry: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)

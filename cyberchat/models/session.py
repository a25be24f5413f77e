"""Server-side login session."""
from datetime import datetime

from sqlmodel import Field, SQLModel

from cyberchat.core.clock import utcnow


class SessionRecord(SQLModel, table=True):
    """Opaque bearer token resolved server-side to an account id."""
    __tablename__ = "session"

    token: str = Field(primary_key=True, max_length=64)
    account_id: str = Field(index=True, nullable=False)  # weak reference, no FK
    created_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime = Field(nullable=False)

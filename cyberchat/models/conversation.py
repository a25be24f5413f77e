"""ConversationTurn SQLModel definition for the chatbot.

Models:
- ConversationTurn: one user message and the generated reply
"""
from datetime import datetime
from typing import List

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from cyberchat.core.clock import utcnow
from cyberchat.models.account import new_id


class ConversationTurn(SQLModel, table=True):
    """
    A single exchange with the chatbot.

    Ownership: each turn belongs to exactly one account via account_id.
    All queries MUST filter by account_id. Turns are never updated after
    creation.
    """
    __tablename__ = "conversation_turn"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=32)
    account_id: str = Field(foreign_key="account.id", index=True, nullable=False)
    message: str = Field(nullable=False)
    response: str = Field(nullable=False)
    suggested_topics: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    is_cyber_security_related: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow, index=True)

"""Chat endpoint routes for the cybersecurity chatbot.

Provides:
- POST /api/chat - Send message to chatbot
- GET /api/conversations - List the current account's turns
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from cyberchat.core.deps import get_chat_relay, get_current_account
from cyberchat.models.account import Account
from cyberchat.models.conversation import ConversationTurn
from cyberchat.services.chat_service import ChatRelay

router = APIRouter(prefix="/api", tags=["chat"])


class ChatRequest(BaseModel):
    """Request model for sending chat message."""
    message: str = Field(max_length=8000)


class ChatResponse(BaseModel):
    """Response model for chat message."""
    model_config = ConfigDict(populate_by_name=True)

    content: str
    is_cyber_security_related: bool = Field(alias="isCyberSecurityRelated")
    suggested_topics: Optional[List[str]] = Field(default=None, alias="suggestedTopics")


class TurnResponse(BaseModel):
    """Response model for a stored conversation turn."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    user_id: str = Field(alias="userId")
    message: str
    response: str
    suggested_topics: List[str] = Field(alias="suggestedTopics")
    is_cyber_security_related: bool = Field(alias="isCyberSecurityRelated")
    timestamp: datetime

    @classmethod
    def from_turn(cls, turn: ConversationTurn) -> "TurnResponse":
        return cls(
            id=turn.id,
            user_id=turn.account_id,
            message=turn.message,
            response=turn.response,
            suggested_topics=list(turn.suggested_topics or []),
            is_cyber_security_related=turn.is_cyber_security_related,
            timestamp=turn.created_at,
        )


@router.post("/chat", response_model=ChatResponse, response_model_exclude_none=True)
def send_chat_message(
    request: ChatRequest,
    account: Account = Depends(get_current_account),
    relay: ChatRelay = Depends(get_chat_relay),
) -> ChatResponse:
    """
    Send message to the chatbot.

    Flow:
    1. Resolve the session to an account (401 otherwise)
    2. Relay the message to the text generator
    3. Store the turn
    4. Return the structured reply

    Raises:
        InvalidInput: 400 if message is empty
        GenerationFailed: 500 if the AI service fails
    """
    reply = relay.respond(account, request.message)
    return ChatResponse(
        content=reply.content,
        is_cyber_security_related=reply.is_cyber_security_related,
        suggested_topics=reply.suggested_topics,
    )


@router.get("/conversations", response_model=List[TurnResponse])
def list_conversations(
    account: Account = Depends(get_current_account),
    relay: ChatRelay = Depends(get_chat_relay),
) -> List[TurnResponse]:
    """
    List the authenticated account's conversation turns, oldest first.

    Only turns owned by the session's account are returned.
    """
    return [TurnResponse.from_turn(turn) for turn in relay.history(account)]

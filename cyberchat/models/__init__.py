"""SQLModel definitions for accounts, conversation turns and sessions."""
from cyberchat.models.account import Account
from cyberchat.models.conversation import ConversationTurn
from cyberchat.models.session import SessionRecord

__all__ = ["Account", "ConversationTurn", "SessionRecord"]

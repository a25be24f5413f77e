"""Chat service layer for the cybersecurity chatbot.

Handles:
- Message validation
- Persona prompt + text generation call
- Structured reply parsing
- Conversation turn storage and history retrieval
"""
from dataclasses import dataclass, field
from typing import Any, List, Optional
import json
import logging

from cyberchat.core.errors import InvalidInput
from cyberchat.models.account import Account
from cyberchat.models.conversation import ConversationTurn
from cyberchat.services.generator import TextGenerator
from cyberchat.services.store import CredentialStore

logger = logging.getLogger(__name__)

CYBERSECURITY_SYSTEM_PROMPT = """You are a friendly and knowledgeable cybersecurity expert chatbot. Your role is to:

1. Respond naturally to greetings and pleasantries while maintaining a security-focused persona
2. Answer questions related to cybersecurity, information security, and digital safety in detail
3. Provide practical advice and step-by-step guidance on security best practices
4. Explain complex security concepts in a clear, understandable way
5. For non-security questions, politely redirect to cybersecurity topics

When responding:
- For greetings (e.g., "hi", "hello", "how are you"): Respond naturally but mention your security expertise
- For cybersecurity questions: Provide detailed, actionable answers
- For non-security questions: Politely explain that you specialize in cybersecurity and suggest some security-related topics
- Always maintain context for follow-up questions about security topics

Format your response as a JSON object with:
{
  "content": "Your response text",
  "isCyberSecurityRelated": boolean,
  "suggestedTopics": ["topic1", "topic2"]
}
Only include "suggestedTopics" for non-security questions."""

UNPARSEABLE_REPLY_MESSAGE = (
    "I apologize, but I encountered an error processing your request. Please try again."
)


@dataclass
class ChatReply:
    """Parsed generator reply plus the turn it was stored as."""
    content: str
    is_cyber_security_related: bool = False
    suggested_topics: Optional[List[str]] = None
    turn: Optional[ConversationTurn] = field(default=None, repr=False)


def parse_reply(raw: str) -> ChatReply:
    """
    Parse the generator's JSON layout.

    Anything that is not a JSON object with a string `content` degrades to
    an apology reply instead of raising.
    """
    try:
        data: Any = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.error(f"Error parsing generator reply: {str(e)}")
        return ChatReply(content=UNPARSEABLE_REPLY_MESSAGE)

    if not isinstance(data, dict) or not isinstance(data.get("content"), str) or not data["content"].strip():
        logger.error("Generator reply missing string 'content'")
        return ChatReply(content=UNPARSEABLE_REPLY_MESSAGE)

    topics = data.get("suggestedTopics")
    if isinstance(topics, list):
        topics = [str(topic) for topic in topics if isinstance(topic, (str, int, float))]
    else:
        topics = None

    return ChatReply(
        content=data["content"],
        is_cyber_security_related=data.get("isCyberSecurityRelated") is True,
        suggested_topics=topics,
    )


class ChatRelay:
    """Service layer for chat operations."""

    def __init__(
        self,
        store: CredentialStore,
        generator: TextGenerator,
        system_prompt: str = CYBERSECURITY_SYSTEM_PROMPT,
    ):
        """Initialize chat relay."""
        self.store = store
        self.generator = generator
        self.system_prompt = system_prompt

    def respond(self, account: Account, message: str) -> ChatReply:
        """
        Process a user message through the text generator.

        Flow:
        1. Reject empty messages
        2. Call generator with persona prompt + message (single attempt)
        3. Parse the structured reply
        4. Store the turn

        Args:
            account: Authenticated account
            message: User message content

        Returns:
            ChatReply with the stored turn attached

        Raises:
            InvalidInput: If message is empty or whitespace
            GenerationFailed: If the generator fails; nothing is stored
        """
        if not message or not message.strip():
            raise InvalidInput("Message is required")

        raw = self.generator.complete(self.system_prompt, message)
        reply = parse_reply(raw)

        reply.turn = self.store.save_turn(
            account_id=account.id,
            message=message,
            response=reply.content,
            suggested_topics=reply.suggested_topics or [],
            is_cyber_security_related=reply.is_cyber_security_related,
        )

        logger.info(
            f"Chat message processed: account={account.id}, turn={reply.turn.id}, "
            f"security_related={reply.is_cyber_security_related}"
        )
        return reply

    def history(self, account: Account) -> List[ConversationTurn]:
        """
        Get all turns for the account.

        Returns:
            List of ConversationTurn instances in chronological order
        """
        return self.store.list_turns(account.id)

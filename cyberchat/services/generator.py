"""Text generation collaborators.

The chat relay only depends on `TextGenerator`; vendor request and
response shapes stay inside the implementation classes.
"""
from abc import ABC, abstractmethod
from typing import Any, Optional
import logging

from openai import (
    APIConnectionError,
    APIError,
    APITimeoutError,
    AuthenticationError,
    OpenAI,
    RateLimitError,
)

from cyberchat.core.errors import GenerationFailed

logger = logging.getLogger(__name__)


class TextGenerator(ABC):
    @abstractmethod
    def complete(self, system_prompt: str, user_message: str) -> str:
        """
        Run one completion and return the raw reply text.

        Raises:
            GenerationFailed: On any upstream failure, with a message fit
                for end users
        """


def describe_openai_error(error: Exception) -> str:
    """Map an OpenAI SDK exception to a user-presentable message."""
    if isinstance(error, RateLimitError):
        if "quota" in str(error).lower():
            return "API quota exceeded. Please check your OpenAI account."
        return "The AI service is busy. Please try again shortly."
    if isinstance(error, AuthenticationError):
        return "Invalid API key. Please check your API key configuration."
    if isinstance(error, APITimeoutError):
        return "The AI service took too long to respond. Please try again."
    if isinstance(error, APIConnectionError):
        return "Could not reach the AI service. Please try again later."
    return "An error occurred while processing your request."


class OpenAIGenerator(TextGenerator):
    """Chat Completions backed generator requesting a JSON object reply."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-3.5-turbo",
        timeout: float = 30.0,
        client: Optional[Any] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            # Each request is attempted once; failures go back to the caller.
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        return self._client

    def complete(self, system_prompt: str, user_message: str) -> str:
        if not self.api_key and self._client is None:
            raise GenerationFailed(
                "OpenAI API key is not configured. Please set OPENAI_API_KEY."
            )

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_message},
                ],
                response_format={"type": "json_object"},
                timeout=self.timeout,
            )
        except (APIError, APITimeoutError) as e:
            logger.error(f"OpenAI API error: {str(e)}")
            raise GenerationFailed(describe_openai_error(e)) from e

        if not response.choices:
            raise GenerationFailed("The AI service returned an empty response.")
        return response.choices[0].message.content or ""

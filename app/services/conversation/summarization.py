import logging
import json
from typing import Any, Dict, List, Optional

import openai

from app.db.models.chat_message import ChatMessage, MessageRole
from app.core.config import settings
from app.core.errors import ProviderError

# Set up logging
logger = logging.getLogger(__name__)

SUMMARY_PROMPT = """
Please summarize the following conversation between a user and an AI assistant.
Focus on:
1. Key topics discussed
2. Preferences, facts or decisions the user shared
3. Questions asked and answers provided

Respond with a JSON object with exactly these keys:
- "summary": a concise yet comprehensive summary that could refresh someone's memory about this conversation
- "key_topics": a list of short topic tags (at most 8)
- "importance_score": an integer from 1 (trivial small talk) to 10 (critical personal information)

Conversation:
{conversation}
"""


class ConversationSummarizer:
    """LLM client that condenses a conversation into a structured summary."""

    provider_name = "openai_chat"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[openai.AsyncOpenAI] = None,
    ):
        """Initialize the summarizer.

        Args:
            api_key: Provider credential; defaults to settings
            model: Chat model name; defaults to ``SUMMARY_MODEL``
            base_url: OpenAI-compatible endpoint; defaults to settings
            client: Pre-built client, mainly for tests
        """
        self.model = model or settings.SUMMARY_MODEL
        if client is None:
            client_kwargs = {"api_key": api_key or settings.OPENAI_API_KEY}
            base_url = base_url or settings.OPENAI_BASE_URL
            if base_url:
                client_kwargs["base_url"] = base_url
            client = openai.AsyncOpenAI(**client_kwargs)
        self.client = client

    def _format_messages_for_summarization(self, messages: List[ChatMessage]) -> str:
        """Format messages for summarization.

        Args:
            messages: List of messages to format

        Returns:
            Formatted string of messages
        """
        formatted = ""

        for msg in messages:
            role_display = "User" if msg.role == MessageRole.USER else "Assistant"
            timestamp = msg.created_at.strftime("%Y-%m-%d %H:%M") if msg.created_at else "unknown"
            formatted += f"[{timestamp}] {role_display}: {msg.content}\n\n"

        return formatted

    async def summarize(self, messages: List[ChatMessage]) -> Dict[str, Any]:
        """Summarize a conversation.

        Args:
            messages: Messages in chronological order

        Returns:
            Dictionary with ``summary``, ``key_topics`` and ``importance_score``

        Raises:
            ProviderError: If the provider fails or returns something unusable
        """
        prompt = SUMMARY_PROMPT.format(conversation=self._format_messages_for_summarization(messages))

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=settings.SUMMARY_TEMPERATURE,
                response_format={"type": "json_object"},
            )
        except openai.RateLimitError as e:
            logger.warning(f"Summarization rate limited: {e}")
            raise ProviderError(f"Rate limited: {e}", provider_name=self.provider_name, retryable=True) from e
        except openai.APIError as e:
            logger.error(f"Error generating summary: {e}")
            raise ProviderError(f"API error: {e}", provider_name=self.provider_name) from e

        content = response.choices[0].message.content if response.choices else None
        return self._parse(content)

    def _parse(self, content: Optional[str]) -> Dict[str, Any]:
        if not content:
            raise ProviderError("Empty summarization response", provider_name=self.provider_name)
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ProviderError(f"Summarization response is not JSON: {e}", provider_name=self.provider_name) from e

        summary = data.get("summary") if isinstance(data, dict) else None
        if not isinstance(summary, str) or not summary.strip():
            raise ProviderError("Summarization response has no summary", provider_name=self.provider_name)

        topics = data.get("key_topics") or []
        if not isinstance(topics, list):
            topics = [topics]

        try:
            importance = int(data.get("importance_score", 5))
        except (TypeError, ValueError):
            importance = 5

        return {
            "summary": summary.strip(),
            "key_topics": [str(topic).strip() for topic in topics if str(topic).strip()],
            "importance_score": min(max(importance, 1), 10),
        }

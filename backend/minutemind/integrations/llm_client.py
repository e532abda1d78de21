"""
Language model client integration.

Talks to any OpenAI-compatible chat completions endpoint (Groq by
default) through the OpenAI SDK.
"""
from typing import Optional

from openai import AsyncOpenAI
from openai import APIError, APIConnectionError, RateLimitError

from minutemind.config import Settings
from minutemind.utils.logger import get_logger
from minutemind.utils.errors import UpstreamCompletionError

logger = get_logger(__name__)


class CompletionClient:
    """
    Chat completion client.

    Usage:
        llm = CompletionClient(settings)
        text = await llm.complete([{"role": "user", "content": "..."}])
    """

    def __init__(self, settings: Settings, client: Optional[AsyncOpenAI] = None):
        self.model = settings.llm_model
        self.max_tokens = settings.llm_max_tokens
        self.temperature = settings.llm_temperature
        self._client = client or AsyncOpenAI(
            api_key=settings.llm_api_key,
            base_url=settings.llm_base_url,
        )

    async def complete(
        self,
        messages: list,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """
        Get a completion for a list of chat messages.

        Sampling options left as None are not sent, so the provider's
        defaults apply.

        Args:
            messages: List of message dicts with role and content
            max_tokens: Maximum response tokens
            temperature: Creativity (0=deterministic, 1=creative)

        Returns:
            Generated text, or "" if the model returned nothing

        Raises:
            UpstreamCompletionError: On any API failure
        """
        kwargs = {
            "model": self.model,
            "messages": messages,
        }
        max_tokens = max_tokens if max_tokens is not None else self.max_tokens
        temperature = temperature if temperature is not None else self.temperature
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens
        if temperature is not None:
            kwargs["temperature"] = temperature

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except RateLimitError:
            logger.warning("Language model rate limited")
            raise UpstreamCompletionError("AI service is busy. Please try again.")
        except APIConnectionError as e:
            logger.error(f"Language model connection error: {e}")
            raise UpstreamCompletionError("Couldn't connect to AI service. Please try again.")
        except APIError as e:
            logger.error(f"Language model API error: {e}")
            raise UpstreamCompletionError()

        if not response.choices:
            return ""
        content = response.choices[0].message.content
        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.info(f"Completion received, tokens: {usage.total_tokens}")
        return (content or "").strip()

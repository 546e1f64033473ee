"""Language-model client with a provider-agnostic interface."""

from typing import Dict, List, Optional

import structlog
from openai import AsyncOpenAI

from priceradar.scrapers.utils.retry import llm_retry

logger = structlog.get_logger(__name__)


class LLMClient:
    """Chat-completion client. Uses the OpenAI SDK, so any OpenAI-compatible
    endpoint works through base_url."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: Optional[str] = None,
        temperature: float = 0.1,
        timeout: float = 60.0,
    ):
        self._client = AsyncOpenAI(api_key=api_key, base_url=base_url or None, timeout=timeout)
        self.model = model
        self.temperature = temperature
        self.logger = logger.bind(service="llm_client", model=model)

    @llm_retry
    async def complete(
        self,
        messages: List[Dict[str, str]],
        max_tokens: int = 1024,
        label: str = "",
    ) -> str:
        """Send a role-tagged message list and return the reply text.

        Args:
            messages: [{"role": "system"|"user"|"assistant", "content": ...}]
            max_tokens: Upper bound on the reply length
            label: Optional label for logging token usage

        Returns:
            Reply text (may be empty)

        Raises:
            openai.OpenAIError: On transport or API failures after retries
        """
        response = await self._client.chat.completions.create(
            model=self.model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=self.temperature,
        )

        usage = response.usage
        if usage is not None:
            self.logger.info(
                "llm_usage",
                label=label,
                input_tokens=usage.prompt_tokens,
                output_tokens=usage.completion_tokens,
            )

        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.close()

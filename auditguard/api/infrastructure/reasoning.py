"""
Infrastructure Layer - Reasoning Client

OpenAI-compatible chat completions in JSON response mode.
"""

import logging
import time
from typing import Optional

import openai

from ..application.ports import ReasoningClient
from ..domain.exceptions import ConfigurationError, UpstreamUnavailableError


logger = logging.getLogger(__name__)


class OpenAIReasoningClient(ReasoningClient):
    """
    One request, one response; no streaming and no retries here.

    Timeouts, connection failures and API errors become
    UpstreamUnavailableError. The content itself is returned unparsed.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o-mini",
        base_url: Optional[str] = None,
        timeout_seconds: float = 30.0,
        temperature: float = 0.1,
        client: Optional[openai.AsyncOpenAI] = None,
    ):
        self.model = model
        self.temperature = temperature
        self.timeout_seconds = timeout_seconds
        if client is None and api_key:
            client = openai.AsyncOpenAI(
                api_key=api_key,
                base_url=base_url or None,
                timeout=timeout_seconds,
                max_retries=0,
            )
        self._client = client

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    async def complete(self, system_prompt: str, user_content: str) -> str:
        if self._client is None:
            raise ConfigurationError("OPENAI_API_KEY is not set")

        t0 = time.monotonic()
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_content},
                ],
            )
        except openai.APITimeoutError as e:
            raise UpstreamUnavailableError("reasoning", f"timed out after {self.timeout_seconds}s") from e
        except openai.APIConnectionError as e:
            raise UpstreamUnavailableError("reasoning", "connection failed") from e
        except openai.APIStatusError as e:
            raise UpstreamUnavailableError("reasoning", f"HTTP {e.status_code}") from e
        except openai.OpenAIError as e:
            raise UpstreamUnavailableError("reasoning", e.__class__.__name__) from e

        elapsed_ms = (time.monotonic() - t0) * 1000
        usage = response.usage
        logger.info(
            f"Reasoning call to {self.model} took {elapsed_ms:.0f}ms",
            extra={"context": {
                "prompt_tokens": getattr(usage, "prompt_tokens", 0) if usage else 0,
                "completion_tokens": getattr(usage, "completion_tokens", 0) if usage else 0,
            }},
        )

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()

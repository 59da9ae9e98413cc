"""LLM provider abstraction for schema-constrained output.

Provides one capability: given messages and a pydantic response model,
return an instance of that model or raise. Uses the instructor + litellm
pattern so the provider is selected purely by the model string
("openai/o4-mini", "anthropic/claude-sonnet-4-20250514", ...).
"""

from __future__ import annotations

from typing import TypeVar

import structlog
from pydantic import BaseModel

from src.clarity.config import Settings, get_settings
from src.clarity.core.monitoring import track_llm_call

logger = structlog.get_logger(__name__)

ResponseModelT = TypeVar("ResponseModelT", bound=BaseModel)


class LLMService:
    """Structured-output completions through instructor + litellm.

    Holds provider API keys from settings and passes the matching key
    explicitly on each call so nothing depends on process environment.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._api_keys: dict[str, str] = {}
        if self._settings.OPENAI_API_KEY:
            self._api_keys["openai"] = self._settings.OPENAI_API_KEY
        if self._settings.ANTHROPIC_API_KEY:
            self._api_keys["anthropic"] = self._settings.ANTHROPIC_API_KEY

        if not self._api_keys:
            logger.warning("llm.no_api_keys_configured")

    @property
    def available(self) -> bool:
        return bool(self._api_keys)

    def _api_key_for(self, model: str) -> str:
        provider = model.split("/", 1)[0] if "/" in model else "openai"
        api_key = self._api_keys.get(provider)
        if not api_key:
            raise RuntimeError(f"No API key configured for LLM provider '{provider}'")
        return api_key

    async def structured_completion(
        self,
        messages: list[dict],
        response_model: type[ResponseModelT],
        model: str,
        operation: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> ResponseModelT:
        """Run one completion constrained to ``response_model``.

        Args:
            messages: Chat messages with 'role' and 'content'.
            response_model: Pydantic model the output must validate against.
            model: litellm model string, provider-prefixed.
            operation: Metrics label identifying the caller ("summary", "analysis").
            temperature: Sampling temperature; omitted when None.
            max_tokens: Response cap; omitted when None.

        Raises:
            RuntimeError: If no API key is configured for the model's provider.
        """
        import instructor
        import litellm

        api_key = self._api_key_for(model)
        client = instructor.from_litellm(litellm.acompletion)

        kwargs: dict = {
            "model": model,
            "response_model": response_model,
            "messages": messages,
            "api_key": api_key,
            "timeout": self._settings.LLM_TIMEOUT,
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        async with track_llm_call(model, operation):
            return await client.chat.completions.create(**kwargs)

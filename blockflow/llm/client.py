"""Thin wrapper around litellm for BlockFlow-specific usage.

litellm handles OpenAI and 100+ other providers behind one call signature.
This wrapper adds: per-user API keys, error normalization, usage extraction.

Each workflow owner brings their own key, so a client is built per user:

  LLMClient(api_key=user.openai_api_key)              # config.default_llm_model
  LLMClient(model="gpt-3.5-turbo", api_key=...)       # explicit model
"""

import asyncio

import litellm

from blockflow.config import config
from blockflow.exceptions import LLMError

FALLBACK_MODELS = ["gpt-3.5-turbo", "gpt-4"]


class LLMClient:
    """Thin wrapper around litellm for BlockFlow-specific usage."""

    def __init__(self, model: str = None, api_key: str = None):
        self.model = model or config.default_llm_model
        self.api_key = api_key
        litellm.drop_params = True  # ignore unsupported params per provider

    def with_model(self, model: str = None) -> "LLMClient":
        """Same credentials, different model. Returns self when nothing changes."""
        if not model or model == self.model:
            return self
        return LLMClient(model=model, api_key=self.api_key)

    async def complete(
        self,
        messages: list[dict],
        temperature: float = None,
        max_tokens: int = None,
        response_format: dict = None,
    ) -> dict:
        """Call LLM via litellm.acompletion().

        Args:
            messages:        Chat messages [{"role": "user", "content": "..."}]
            temperature:     Override config temperature
            max_tokens:      Override config max_tokens
            response_format: Optional response format constraint (e.g. JSON mode)

        Returns:
            {"content": str, "model": str, "usage": {"input_tokens": int, "output_tokens": int}}

        Raises:
            LLMError: On any LLM provider error
        """
        try:
            kwargs = {
                "model": self.model,
                "messages": messages,
                "temperature": config.llm_temperature if temperature is None else temperature,
                "max_tokens": config.llm_max_tokens if max_tokens is None else max_tokens,
            }
            if response_format:
                kwargs["response_format"] = response_format
            if self.api_key:
                kwargs["api_key"] = self.api_key

            response = await asyncio.wait_for(
                litellm.acompletion(**kwargs), timeout=config.llm_timeout_seconds
            )

            choice = response.choices[0]
            usage = getattr(response, "usage", None)
            return {
                "content": choice.message.content or "",
                "model": self.model,
                "usage": {
                    "input_tokens": getattr(usage, "prompt_tokens", 0) or 0,
                    "output_tokens": getattr(usage, "completion_tokens", 0) or 0,
                },
            }
        except Exception as e:
            raise LLMError(f"LLM call failed: {e}", model=self.model, details={"model": self.model})


def available_models() -> list[str]:
    """GPT chat models litellm knows about; a short fallback list if it knows none."""
    models = sorted(m for m in getattr(litellm, "open_ai_chat_completion_models", []) if "gpt" in m)
    return models or list(FALLBACK_MODELS)

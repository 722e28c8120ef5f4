"""
Provider-agnostic LLM client for Accord narration.

Supports Google Gemini, Anthropic and OpenAI behind one text-generation call.
The consensus numbers are always computed locally; the LLM only writes prose
around them.
"""

from __future__ import annotations

import hashlib
import logging
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .config import LLMConfig

logger = logging.getLogger("accord.common.llm_client")

SUPPORTED_PROVIDERS = ("google", "anthropic", "openai")


class LLMClient:
    """Unified text generation client across LLM providers."""

    def __init__(self, provider: str = "google", model: str = "", api_key: Optional[str] = None) -> None:
        self.provider = (provider or "google").lower()
        self.model = model
        self._client = None
        self._google_models: dict = {}

        if self.provider not in SUPPORTED_PROVIDERS:
            logger.warning("Unsupported LLM provider: %s", self.provider)
            return

        if not api_key:
            logger.info("%s API key not provided, LLM client unavailable", self.provider)
            return

        try:
            self._client = getattr(self, f"_connect_{self.provider}")(api_key)
        except ImportError as e:
            logger.warning("%s SDK not installed: %s", self.provider, e)
        except Exception as e:
            logger.warning("Failed to initialize %s client: %s", self.provider, e)

    @classmethod
    def from_config(cls, config: "LLMConfig") -> "LLMClient":
        return cls(provider=config.provider, model=config.model, api_key=config.api_key)

    @staticmethod
    def _connect_google(api_key: str):
        import google.generativeai as genai

        genai.configure(api_key=api_key)
        return genai  # Models are created per system prompt in _generate_google

    @staticmethod
    def _connect_anthropic(api_key: str):
        import anthropic

        return anthropic.Anthropic(api_key=api_key)

    @staticmethod
    def _connect_openai(api_key: str):
        from openai import OpenAI

        return OpenAI(api_key=api_key)

    @property
    def is_available(self) -> bool:
        return self._client is not None

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_tokens: int = 2048,
        timeout: float = 60.0,
    ) -> str:
        if not self.is_available:
            raise RuntimeError("LLM client is not available")

        handler = getattr(self, f"_generate_{self.provider}")
        return handler(prompt, system, max_tokens, timeout)

    def _generate_google(self, prompt: str, system: Optional[str], max_tokens: int, timeout: float) -> str:
        cache_key = hashlib.md5((system or "").encode()).hexdigest()
        if cache_key not in self._google_models:
            kwargs = {"model_name": self.model}
            if system:
                kwargs["system_instruction"] = system
            self._google_models[cache_key] = self._client.GenerativeModel(**kwargs)

        response = self._google_models[cache_key].generate_content(
            prompt,
            generation_config={"max_output_tokens": max_tokens},
            request_options={"timeout": timeout},
        )
        return response.text.strip()

    def _generate_anthropic(self, prompt: str, system: Optional[str], max_tokens: int, timeout: float) -> str:
        kwargs = {}
        if system:
            kwargs["system"] = system
        response = self._client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            messages=[{"role": "user", "content": prompt}],
            timeout=timeout,
            **kwargs,
        )
        return response.content[0].text.strip()

    def _generate_openai(self, prompt: str, system: Optional[str], max_tokens: int, timeout: float) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        response = self._client.chat.completions.create(
            model=self.model,
            max_tokens=max_tokens,
            messages=messages,
            timeout=timeout,
        )
        return (response.choices[0].message.content or "").strip()

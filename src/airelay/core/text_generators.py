"""Prompt enhancement and text analysis backends.

Two interchangeable backends implement :class:`TextGenerator`:

- :class:`HuggingFaceTextGenerator` posts an instruction prompt to flan-t5 on
  the Hugging Face inference API and normalises whatever shape comes back.
- :class:`OpenRouterTextGenerator` calls a chat model on OpenRouter through
  ``litellm.acompletion``.

The backend is selected once at start-up by :func:`create_text_generator`.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import litellm

from .config import RelayConfig
from .errors import UpstreamError
from .normalizer import extract_text
from .upstream import UpstreamClient

logger = logging.getLogger(__name__)

ENHANCE_INSTRUCTION = "Enhance this text prompt for image generation:\n{prompt}"
ANALYZE_INSTRUCTION = "Analyze the sentiment, tone, and intent of this text:\n{text}"

ENHANCE_SYSTEM_PROMPT = "Enhance user prompts for image generation. Return only the improved version."
ENHANCE_USER_PROMPT = "Enhance this image prompt: {prompt}"
ANALYZE_SYSTEM_PROMPT = "Analyze the text and return a JSON with sentiment, tone, and intent."


class TextGenerator(ABC):
    """Capability interface for the text routes."""

    name: str = "base"

    @abstractmethod
    async def enhance(self, prompt: str) -> str:
        """Return an improved image-generation prompt. Raises on failure."""

    @abstractmethod
    async def analyze(self, text: str) -> str:
        """Return an analysis of *text*. Raises on failure."""


class HuggingFaceTextGenerator(TextGenerator):
    name = "huggingface"

    def __init__(self, config: RelayConfig, upstream: UpstreamClient) -> None:
        self.config = config
        self.upstream = upstream

    async def _complete(self, inputs: str) -> str:
        raw = await self.upstream.invoke(
            self.config.text_model_url,
            {"inputs": inputs},
            kind="json",
            timeout=self.config.text_timeout,
        )
        return extract_text(raw).strip()

    async def enhance(self, prompt: str) -> str:
        return await self._complete(ENHANCE_INSTRUCTION.format(prompt=prompt))

    async def analyze(self, text: str) -> str:
        return await self._complete(ANALYZE_INSTRUCTION.format(text=text))


def _first_choice_content(response: Any) -> str | None:
    try:
        return response.choices[0].message.content
    except (AttributeError, IndexError, KeyError, TypeError):
        return None


class OpenRouterTextGenerator(TextGenerator):
    """Chat-completion backend routed through OpenRouter by litellm."""

    name = "openrouter"

    def __init__(self, config: RelayConfig) -> None:
        self.config = config

    async def _chat(self, model: str, messages: list[dict[str, str]]) -> str | None:
        try:
            response = await litellm.acompletion(
                model=model,
                api_base=self.config.openrouter_base_url,
                api_key=self.config.openrouter_api_key,
                messages=messages,
                max_tokens=self.config.completion_max_tokens,
                timeout=self.config.text_timeout,
            )
        except Exception as exc:
            logger.warning(f"OpenRouter call to {model} failed: {exc}")
            raise UpstreamError("transport", str(exc)) from exc
        return _first_choice_content(response)

    async def enhance(self, prompt: str) -> str:
        content = await self._chat(
            self.config.enhance_model,
            [
                {"role": "system", "content": ENHANCE_SYSTEM_PROMPT},
                {"role": "user", "content": ENHANCE_USER_PROMPT.format(prompt=prompt)},
            ],
        )
        # An empty completion leaves the prompt as it was.
        return (content or "").strip() or prompt

    async def analyze(self, text: str) -> str:
        content = await self._chat(
            self.config.analyze_model,
            [
                {"role": "system", "content": ANALYZE_SYSTEM_PROMPT},
                {"role": "user", "content": text},
            ],
        )
        return content if content is not None else "{}"


def create_text_generator(config: RelayConfig, upstream: UpstreamClient) -> TextGenerator:
    """Build the text backend named by ``config.text_backend``."""
    if config.text_backend == "openrouter":
        return OpenRouterTextGenerator(config)
    return HuggingFaceTextGenerator(config, upstream)

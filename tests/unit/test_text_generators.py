"""Tests for airelay.core.text_generators — enhancement and analysis backends.

The Hugging Face backend runs against the fake provider.  The OpenRouter
backend has ``litellm.acompletion`` replaced with an async stub.
"""

from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace

import httpx
import litellm
import pytest

from airelay.core.errors import UpstreamError
from airelay.core.text_generators import (
    HuggingFaceTextGenerator,
    OpenRouterTextGenerator,
    create_text_generator,
)


def _completion(content):
    """Build an object shaped like a litellm ModelResponse."""
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.fixture
def openrouter_config(make_config):
    return make_config(text_backend="openrouter", openrouter_api_key="sk-or-test")


@pytest.fixture
def fake_completion(monkeypatch):
    """Replace litellm.acompletion; returns the list of captured kwargs."""
    calls: list[dict] = []
    state = {"result": _completion("ok")}

    async def _acompletion(**kwargs):
        calls.append(kwargs)
        result = state["result"]
        if isinstance(result, Exception):
            raise result
        return result

    monkeypatch.setattr(litellm, "acompletion", _acompletion)
    return SimpleNamespace(calls=calls, state=state)


class TestFactory:
    def test_default_backend_is_huggingface(self, test_config):
        assert isinstance(create_text_generator(test_config, upstream=None), HuggingFaceTextGenerator)

    def test_openrouter_backend(self, openrouter_config):
        assert isinstance(
            create_text_generator(openrouter_config, upstream=None), OpenRouterTextGenerator
        )


class TestHuggingFaceText:
    """flan-t5 backend uses the full normaliser and strips the result."""

    def test_enhance_list_shape(self, test_config, provider, run_upstream):
        provider.queue(
            test_config.text_model_url,
            httpx.Response(200, json=[{"generated_text": "  a majestic cat  "}]),
        )
        result = run_upstream(lambda up: HuggingFaceTextGenerator(test_config, up).enhance("cat"))
        assert result == "a majestic cat"

    def test_enhance_sends_instruction(self, test_config, provider, run_upstream):
        provider.queue(test_config.text_model_url, httpx.Response(200, json={"generated_text": "x"}))
        run_upstream(lambda up: HuggingFaceTextGenerator(test_config, up).enhance("a cat"))
        body = json.loads(provider.requests[0].content)
        assert body == {"inputs": "Enhance this text prompt for image generation:\na cat"}

    def test_enhance_unknown_shape_serialised(self, test_config, provider, run_upstream):
        provider.queue(test_config.text_model_url, httpx.Response(200, json={"warning": "slow"}))
        result = run_upstream(lambda up: HuggingFaceTextGenerator(test_config, up).enhance("cat"))
        assert json.loads(result) == {"warning": "slow"}

    def test_analyze(self, test_config, provider, run_upstream):
        provider.queue(
            test_config.text_model_url, httpx.Response(200, json={"generated_text": "positive"})
        )
        result = run_upstream(lambda up: HuggingFaceTextGenerator(test_config, up).analyze("yay"))
        assert result == "positive"

    def test_failure_propagates(self, test_config, provider, run_upstream):
        provider.queue(test_config.text_model_url, httpx.Response(502))
        with pytest.raises(UpstreamError):
            run_upstream(lambda up: HuggingFaceTextGenerator(test_config, up).enhance("cat"))


class TestOpenRouterText:
    """litellm backend."""

    def test_enhance_strips_content(self, openrouter_config, fake_completion):
        fake_completion.state["result"] = _completion("\n A vivid cat \n")
        result = asyncio.run(OpenRouterTextGenerator(openrouter_config).enhance("cat"))
        assert result == "A vivid cat"

    def test_enhance_request_shape(self, openrouter_config, fake_completion):
        asyncio.run(OpenRouterTextGenerator(openrouter_config).enhance("cat"))
        call = fake_completion.calls[0]
        assert call["model"] == openrouter_config.enhance_model
        assert call["api_base"] == "https://openrouter.ai/api/v1"
        assert call["api_key"] == "sk-or-test"
        assert call["max_tokens"] == 200
        assert call["messages"][1] == {"role": "user", "content": "Enhance this image prompt: cat"}

    def test_enhance_empty_content_keeps_prompt(self, openrouter_config, fake_completion):
        fake_completion.state["result"] = _completion("   ")
        result = asyncio.run(OpenRouterTextGenerator(openrouter_config).enhance("cat"))
        assert result == "cat"

    def test_enhance_missing_choices_keeps_prompt(self, openrouter_config, fake_completion):
        fake_completion.state["result"] = SimpleNamespace(choices=[])
        result = asyncio.run(OpenRouterTextGenerator(openrouter_config).enhance("cat"))
        assert result == "cat"

    def test_analyze_returns_content(self, openrouter_config, fake_completion):
        fake_completion.state["result"] = _completion('{"sentiment": "positive"}')
        result = asyncio.run(OpenRouterTextGenerator(openrouter_config).analyze("great day"))
        assert result == '{"sentiment": "positive"}'
        assert fake_completion.calls[0]["model"] == openrouter_config.analyze_model

    def test_analyze_none_content_defaults_to_empty_object(self, openrouter_config, fake_completion):
        fake_completion.state["result"] = _completion(None)
        result = asyncio.run(OpenRouterTextGenerator(openrouter_config).analyze("hmm"))
        assert result == "{}"

    def test_provider_exception_wrapped(self, openrouter_config, fake_completion):
        fake_completion.state["result"] = RuntimeError("rate limited")
        with pytest.raises(UpstreamError, match="rate limited"):
            asyncio.run(OpenRouterTextGenerator(openrouter_config).enhance("cat"))

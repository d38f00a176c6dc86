"""Shared pytest fixtures for AI Relay tests.

Provider endpoints are never contacted.  :class:`FakeProvider` sits behind an
``httpx.MockTransport`` and answers from per-URL queues while recording every
request, so tests can assert both on responses and on the number of upstream
calls made.
"""

from __future__ import annotations

import asyncio
import io
import struct
import zlib
from collections.abc import Awaitable, Callable, Generator
from contextlib import ExitStack
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from airelay.api.main import create_app
from airelay.core.config import RelayConfig
from airelay.core.upstream import UpstreamClient


class FakeProvider:
    """Queue-backed stand-in for every provider endpoint.

    Each URL has a queue of responses (or exceptions).  Items are consumed in
    order; the last one is reused once the queue is down to a single item.
    Unstubbed URLs answer 404.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._queues: dict[str, list[httpx.Response | Exception]] = {}

    def queue(self, url: str, *responses: httpx.Response | Exception) -> None:
        self._queues.setdefault(url, []).extend(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        pending = self._queues.get(str(request.url))
        if not pending:
            return httpx.Response(404, json={"error": f"no stub for {request.url}"})
        item = pending.pop(0) if len(pending) > 1 else pending[0]
        if isinstance(item, Exception):
            raise item
        return item

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls_to(self, url: str) -> list[httpx.Request]:
        return [r for r in self.requests if str(r.url) == url]


@pytest.fixture
def provider() -> FakeProvider:
    """Fresh fake provider with empty queues."""
    return FakeProvider()


@pytest.fixture
def make_config() -> Callable[..., RelayConfig]:
    """Factory for configs that ignore any local ``.env`` file.

    Returns:
        Callable accepting ``RelayConfig`` field overrides.
    """

    def _make(**overrides: Any) -> RelayConfig:
        overrides.setdefault("huggingface_token", None)
        return RelayConfig(_env_file=None, **overrides)

    return _make


@pytest.fixture
def test_config(make_config) -> RelayConfig:
    """Default configuration (huggingface text + image backends)."""
    return make_config()


@pytest.fixture
def make_client(
    provider: FakeProvider, make_config
) -> Generator[Callable[..., TestClient], None, None]:
    """Factory for running TestClients wired to the fake provider.

    The lifespan runs on creation and shuts down after the test.

    Yields:
        Callable accepting ``RelayConfig`` field overrides.
    """
    with ExitStack() as stack:

        def _make(**overrides: Any) -> TestClient:
            app = create_app(make_config(**overrides), transport=provider.transport)
            return stack.enter_context(TestClient(app))

        yield _make


@pytest.fixture
def test_client(make_client) -> TestClient:
    """TestClient using the default backends."""
    return make_client()


@pytest.fixture
def run_upstream(provider: FakeProvider) -> Callable[..., Any]:
    """Run an async callable against an UpstreamClient on the fake provider.

    Usage::

        result = run_upstream(lambda upstream: upstream.invoke(...))
    """

    def _run(fn: Callable[[UpstreamClient], Awaitable[Any]], token: str | None = None) -> Any:
        async def _main() -> Any:
            async with httpx.AsyncClient(transport=provider.transport) as http:
                return await fn(UpstreamClient(http, token=token))

        return asyncio.run(_main())

    return _run


@pytest.fixture
def png_bytes() -> bytes:
    """A tiny valid PNG image."""
    buf = io.BytesIO()
    Image.new("RGB", (8, 8), color=(255, 0, 0)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def jpeg_bytes() -> bytes:
    """A tiny valid JPEG image."""
    buf = io.BytesIO()
    Image.new("RGB", (8, 8), color=(0, 0, 255)).save(buf, format="JPEG")
    return buf.getvalue()


@pytest.fixture
def oversized_png_bytes(png_bytes) -> bytes:
    """A few hundred bytes of PNG whose header declares 20000x20000 pixels.

    Pillow refuses to open it as a decompression bomb.
    """
    # Signature (8) + IHDR length/type (8), then width, height and the rest of IHDR.
    ihdr = b"IHDR" + struct.pack(">II", 20000, 20000) + png_bytes[24:29]
    return png_bytes[:12] + ihdr + struct.pack(">I", zlib.crc32(ihdr)) + png_bytes[33:]

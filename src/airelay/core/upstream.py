"""Outbound HTTP calls to inference providers.

:class:`UpstreamClient` wraps a shared :class:`httpx.AsyncClient` and issues
exactly one POST per :meth:`~UpstreamClient.invoke`.  There is no retry
logic: a timeout, transport error, non-2xx status or undecodable JSON body
surfaces immediately as :class:`~airelay.core.errors.UpstreamError`.

The ``httpx.AsyncClient`` is owned by the application lifespan (see
:func:`airelay.api.main.create_app`).  It holds a connection pool only; no
request data is retained between calls.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Literal

import httpx

from .errors import UpstreamError

logger = logging.getLogger(__name__)

ResponseKind = Literal["json", "binary"]


class UpstreamClient:
    """Single-shot POST client for provider endpoints.

    Args:
        http: Shared async HTTP client.
        token: Optional bearer token added to every request.
    """

    def __init__(self, http: httpx.AsyncClient, token: str | None = None) -> None:
        self._http = http
        self._headers = {"Authorization": f"Bearer {token}"} if token else {}

    async def invoke(
        self,
        endpoint: str,
        payload: Any,
        *,
        kind: ResponseKind = "json",
        timeout: float,
    ) -> Any:
        """POST *payload* as JSON to *endpoint* and return the response body.

        Args:
            endpoint: Absolute provider URL.
            payload: JSON-serialisable request body.
            kind: ``"json"`` to decode the body, ``"binary"`` to return raw bytes.
            timeout: Seconds before the call is abandoned.

        Returns:
            The decoded JSON value for ``kind="json"``, or ``bytes`` for
            ``kind="binary"``.

        Raises:
            UpstreamError: On timeout, transport failure, non-2xx status, or
                a JSON body that cannot be decoded.
        """
        started = time.monotonic()
        try:
            response = await self._http.post(
                endpoint,
                json=payload,
                headers=self._headers,
                timeout=timeout,
            )
        except httpx.TimeoutException as exc:
            logger.warning(f"Upstream timeout after {timeout:g}s: {endpoint}")
            raise UpstreamError("timeout", f"timeout of {timeout:g}s exceeded") from exc
        except httpx.HTTPError as exc:
            logger.warning(f"Upstream transport error for {endpoint}: {exc}")
            raise UpstreamError("transport", str(exc) or type(exc).__name__) from exc

        elapsed = time.monotonic() - started
        logger.debug(f"POST {endpoint} -> {response.status_code} ({elapsed:.2f}s)")

        if not response.is_success:
            logger.warning(f"Upstream {endpoint} returned {response.status_code}: {response.text[:200]}")
            raise UpstreamError(
                "status",
                f"Request failed with status code {response.status_code}",
                status_code=response.status_code,
            )

        if kind == "binary":
            return response.content

        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError("decode", f"Invalid JSON from provider: {exc}") from exc

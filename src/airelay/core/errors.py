"""Error taxonomy for the relay.

Three kinds of failure can occur while serving a request:

- :class:`MissingInputError` — a required field or upload was not supplied.
  Surfaced to the client as HTTP 400 with a stable machine-readable code.
- :class:`UpstreamError` — a provider call failed (transport error, timeout,
  non-2xx status, or a body that could not be decoded).
- :class:`PipelineError` — a step of a multi-step operation failed.  Carries
  the message of the first failing step; no partial results survive it.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for all errors raised by the relay core."""


class MissingInputError(RelayError):
    """A required input was absent or blank."""

    def __init__(self, code: str, message: str | None = None) -> None:
        self.code = code
        super().__init__(message or code)


class UpstreamError(RelayError):
    """A single provider call failed.

    Attributes:
        reason: One of ``"timeout"``, ``"transport"``, ``"status"`` or
            ``"decode"``.
        status_code: HTTP status returned by the provider, when there was one.
    """

    def __init__(self, reason: str, message: str, *, status_code: int | None = None) -> None:
        self.reason = reason
        self.status_code = status_code
        super().__init__(message)


class PipelineError(RelayError):
    """A step of a multi-step operation failed."""

    def __init__(self, message: str, *, step: str | None = None) -> None:
        self.step = step
        super().__init__(message)

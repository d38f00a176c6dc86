"""Pydantic request and response models for the relay API.

These models define the JSON schema for every API endpoint.  FastAPI uses
them for request parsing, response serialisation, and OpenAPI documentation.

Required inputs are declared optional here on purpose: presence is checked by
the route handlers so that a missing ``prompt`` or ``text`` produces the
documented ``400 {"error": "no_prompt"}`` envelope rather than FastAPI's
default 422 response.

Models
------
PromptRequest
    Payload for ``POST /api/enhance-text`` and ``POST /api/generate-image``.
TextRequest
    Payload for ``POST /api/analyze-text``.
EnhanceResponse, AnalysisResponse, ImageResponse, CaptionResponse, VariationsResponse
    Success bodies, one per route.
ErrorResponse
    The uniform ``{error, details}`` failure envelope.
HealthResponse
    Body of ``GET /api/health``.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class PromptRequest(BaseModel):
    """Request body carrying an image-generation prompt.

    Attributes:
        prompt: Free-text prompt.  Missing or blank values are rejected by
            the route with ``no_prompt``.
    """

    prompt: str | None = Field(
        default=None,
        description="Image-generation prompt (e.g. 'a red bicycle').",
    )


class TextRequest(BaseModel):
    """Request body for text analysis.

    Attributes:
        text: Text to analyse.  Missing or blank values are rejected with
            ``no_text``.
    """

    text: str | None = Field(
        default=None,
        description="Text to analyse for sentiment, tone, and intent.",
    )


class EnhanceResponse(BaseModel):
    enhanced: str = Field(..., description="Improved prompt text.")


class AnalysisResponse(BaseModel):
    analysis: str = Field(..., description="Model output describing the text.")


class ImageResponse(BaseModel):
    image: str = Field(..., description="Data URI or URL of the generated image.")


class CaptionResponse(BaseModel):
    caption: str = Field(..., description="Short description of the uploaded image.")


class VariationsResponse(BaseModel):
    """Success body for ``POST /api/generate-variations``.

    Attributes:
        caption: Caption the variations were derived from.
        variations: One image reference per style, in fixed style order.
    """

    caption: str
    variations: list[str]


class ErrorResponse(BaseModel):
    """Uniform failure envelope.

    Attributes:
        error: Stable machine-readable code (e.g. ``"no_prompt"``).
        details: Raw upstream message, present on 5xx responses.
    """

    error: str
    details: str | None = None


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    text_backend: str
    image_backend: str

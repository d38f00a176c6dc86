"""AI Relay — FastAPI Application.

This module defines the application factory, all REST API routes, and the
``main()`` CLI function that launches the uvicorn server.

Architecture
------------
The gateway is stateless:

- **Configuration** is a frozen :class:`~airelay.core.config.RelayConfig`
  built once in :func:`main` and passed into :func:`create_app`.
- **Provider services** (text generator, image generator, captioner,
  variation pipeline) are built in the lifespan around one shared
  ``httpx.AsyncClient`` and stored on ``app.state.services``.
- **Failures** are rendered as ``{"error": <code>, "details": <message>}``.
  Missing inputs are 400s and never reach a provider; provider failures are
  500s carrying the upstream message.

Endpoints
---------
========  ============================  ====================================
Method    Path                          Purpose
========  ============================  ====================================
GET       ``/``                         Plaintext liveness string
GET       ``/api/health``               Version and active backends
POST      ``/api/enhance-text``         Improve an image prompt
POST      ``/api/analyze-text``         Sentiment / tone / intent analysis
POST      ``/api/generate-image``       Generate one image from a prompt
POST      ``/api/analyze-image``        Caption an uploaded image
POST      ``/api/generate-variations``  Caption + three styled images
========  ============================  ====================================

Usage
-----
CLI (installed entry point)::

    airelay

Direct invocation::

    python -m airelay.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx
from fastapi import APIRouter, Depends, FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from airelay import __version__
from airelay.api.limits import BodySizeLimitMiddleware
from airelay.api.models import (
    AnalysisResponse,
    CaptionResponse,
    EnhanceResponse,
    ErrorResponse,
    HealthResponse,
    ImageResponse,
    PromptRequest,
    TextRequest,
    VariationsResponse,
)
from airelay.core.captioner import ImageCaptioner, ImageUpload
from airelay.core.config import RelayConfig
from airelay.core.errors import MissingInputError
from airelay.core.image_generators import ImageGenerator, image_generator_registry
from airelay.core.normalizer import caption_or_sentinel, extract_text
from airelay.core.pipeline import VariationPipeline
from airelay.core.text_generators import TextGenerator, create_text_generator
from airelay.core.upstream import UpstreamClient

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Code returned when a route's JSON body is missing or cannot be parsed.
_MISSING_INPUT_CODES: dict[str, str] = {
    "/api/enhance-text": "no_prompt",
    "/api/analyze-text": "no_text",
    "/api/generate-image": "no_prompt",
    "/api/analyze-image": "no_file",
    "/api/generate-variations": "no_file",
}


class APIError(Exception):
    """A route failure rendered as the uniform error envelope."""

    def __init__(self, status_code: int, error: str, details: str | None = None) -> None:
        self.status_code = status_code
        self.error = error
        self.details = details
        super().__init__(details or error)


def _error_response(status_code: int, error: str, details: str | None = None) -> JSONResponse:
    body = ErrorResponse(error=error, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def _route_failure(route: str, error: str, exc: Exception) -> APIError:
    """Log a provider failure and build the 500 envelope for it."""
    message = str(exc) or type(exc).__name__
    logger.error(f"{route} failed: {message}")
    return APIError(500, error, message)


# ---------------------------------------------------------------------------
# Service wiring.
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Services:
    """Provider services shared by all requests.

    None of them hold request data; each call owns its own payloads.
    """

    config: RelayConfig
    text_generator: TextGenerator
    image_generator: ImageGenerator
    captioner: ImageCaptioner
    pipeline: VariationPipeline


def build_services(config: RelayConfig, http: httpx.AsyncClient) -> Services:
    """Instantiate the backends selected by *config* around *http*."""
    upstream = UpstreamClient(http, token=config.huggingface_token)
    image_generator = image_generator_registry.instantiate(config.image_backend, config, upstream)
    captioner = ImageCaptioner(config, upstream)
    return Services(
        config=config,
        text_generator=create_text_generator(config, upstream),
        image_generator=image_generator,
        captioner=captioner,
        pipeline=VariationPipeline(captioner, image_generator),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


# ---------------------------------------------------------------------------
# Input helpers.
# ---------------------------------------------------------------------------


def _require_text(value: str | None, code: str) -> str:
    if value is None or not value.strip():
        raise MissingInputError(code)
    return value


async def _read_upload(image: UploadFile | None, limit: int) -> ImageUpload:
    """Buffer an uploaded file in memory, enforcing *limit* bytes.

    The multipart body as a whole is already bounded by
    :class:`~airelay.api.limits.BodySizeLimitMiddleware`; this is the exact
    per-file check.

    Raises:
        MissingInputError: If no file (or an empty one) was attached.
        APIError: 413 if the file exceeds *limit*.
    """
    if image is None:
        raise MissingInputError("no_file")
    data = await image.read(limit + 1)
    if not data:
        raise MissingInputError("no_file")
    if len(data) > limit:
        raise APIError(413, "file_too_large", f"Upload exceeds {limit} bytes")
    return ImageUpload(data=data, content_type=image.content_type, filename=image.filename)


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------

router = APIRouter()


@router.get("/", response_class=PlainTextResponse)
async def index(services: Services = Depends(get_services)) -> str:
    """Liveness string naming the active backends."""
    config = services.config
    return f"AI Relay backend running ({config.text_backend} text, {config.image_backend} images)."


@router.get("/api/health", response_model=HealthResponse)
async def health(services: Services = Depends(get_services)) -> HealthResponse:
    return HealthResponse(
        version=__version__,
        text_backend=services.config.text_backend,
        image_backend=services.config.image_backend,
    )


@router.post("/api/enhance-text", response_model=EnhanceResponse)
async def enhance_text(
    req: PromptRequest | None = None,
    services: Services = Depends(get_services),
) -> EnhanceResponse:
    """Rewrite a prompt so it works better for image generation.

    Returns:
        ``{"enhanced": ...}`` with surrounding whitespace stripped.

    Raises:
        MissingInputError: ``no_prompt`` when the prompt is missing or blank.
        APIError: 500 ``enhance_failed`` on any provider failure.
    """
    prompt = _require_text(req.prompt if req else None, "no_prompt")
    try:
        enhanced = await services.text_generator.enhance(prompt)
    except Exception as exc:
        raise _route_failure("enhance-text", "enhance_failed", exc) from exc
    return EnhanceResponse(enhanced=enhanced.strip())


@router.post("/api/analyze-text", response_model=AnalysisResponse)
async def analyze_text(
    req: TextRequest | None = None,
    services: Services = Depends(get_services),
) -> AnalysisResponse:
    """Describe the sentiment, tone, and intent of a piece of text."""
    text = _require_text(req.text if req else None, "no_text")
    try:
        analysis = await services.text_generator.analyze(text)
    except Exception as exc:
        raise _route_failure("analyze-text", "analyze_failed", exc) from exc
    return AnalysisResponse(analysis=analysis)


@router.post("/api/generate-image", response_model=ImageResponse)
async def generate_image(
    req: PromptRequest | None = None,
    services: Services = Depends(get_services),
) -> ImageResponse:
    """Generate a single image with the configured image backend.

    Returns:
        ``{"image": ...}`` holding a data URI (huggingface backend) or a URL
        (pollinations backend).
    """
    prompt = _require_text(req.prompt if req else None, "no_prompt")
    try:
        image = await services.image_generator.generate(prompt)
    except Exception as exc:
        raise _route_failure("generate-image", "image_generation_failed", exc) from exc
    return ImageResponse(image=image)


@router.post("/api/analyze-image", response_model=CaptionResponse)
async def analyze_image(
    image: UploadFile | None = File(default=None),
    services: Services = Depends(get_services),
) -> CaptionResponse:
    """Caption an uploaded image (multipart field ``image``).

    The provider response is normalised with the full decision table; a blank
    result becomes ``"Could not analyze image."``.
    """
    upload = await _read_upload(image, services.config.max_upload_bytes)
    try:
        raw = await services.captioner.caption(upload)
    except Exception as exc:
        raise _route_failure("analyze-image", "image_analysis_failed", exc) from exc
    return CaptionResponse(caption=caption_or_sentinel(extract_text(raw)))


@router.post("/api/generate-variations", response_model=VariationsResponse)
async def generate_variations(
    image: UploadFile | None = File(default=None),
    services: Services = Depends(get_services),
) -> VariationsResponse:
    """Caption an upload, then generate one image per style from the caption.

    Returns:
        ``{"caption": ..., "variations": [...]}`` with exactly one entry per
        style, in style order.  Nothing is returned if any step fails.
    """
    upload = await _read_upload(image, services.config.max_upload_bytes)
    try:
        result = await services.pipeline.generate_variations(upload)
    except Exception as exc:
        raise _route_failure("generate-variations", "variation_failed", exc) from exc
    return VariationsResponse(caption=result.caption, variations=list(result.images))


# ---------------------------------------------------------------------------
# Application factory.
# ---------------------------------------------------------------------------


def create_app(
    config: RelayConfig,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the FastAPI application for *config*.

    Args:
        config: Frozen relay configuration.
        transport: Optional httpx transport for the shared provider client.
            Tests pass an ``httpx.MockTransport`` here.

    Returns:
        A ready-to-serve FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # --- Startup -------------------------------------------------------
        async with httpx.AsyncClient(transport=transport) as http:
            app.state.services = build_services(config, http)
            logger.info(
                f"Relay ready: text backend '{config.text_backend}', "
                f"image backend '{config.image_backend}'"
            )
            yield  # Application runs here.
        # --- Shutdown ------------------------------------------------------
        logger.info("Provider client closed on shutdown.")

    app = FastAPI(
        title="AI Relay",
        description="HTTP gateway in front of hosted text, image, and captioning models.",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        BodySizeLimitMiddleware,
        max_json_bytes=config.max_json_bytes,
        max_upload_bytes=config.max_upload_bytes,
    )
    # Added last so it wraps the size limit and 413s carry CORS headers.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
        return _error_response(exc.status_code, exc.error, exc.details)

    @app.exception_handler(MissingInputError)
    async def missing_input_handler(request: Request, exc: MissingInputError) -> JSONResponse:
        logger.info(f"{request.url.path}: rejected with {exc.code}")
        return _error_response(400, exc.code)

    @app.exception_handler(RequestValidationError)
    async def validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        code = _MISSING_INPUT_CODES.get(request.url.path, "invalid_request")
        logger.info(f"{request.url.path}: malformed body rejected with {code}")
        return _error_response(400, code)

    app.include_router(router)
    return app


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host and port from :class:`~airelay.core.config.RelayConfig`
    (``RELAY_SERVER_HOST`` and ``PORT``).  Defaults to ``0.0.0.0:5000``.

    This function is registered as the ``airelay`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    config = RelayConfig()
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    logger.info(f"Starting AI Relay {__version__} on {config.server_host}:{config.server_port}")

    uvicorn.run(
        create_app(config),
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()

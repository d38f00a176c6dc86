"""Image captioning through the BLIP inference endpoint.

The uploaded bytes are base64-encoded into a data URI and posted as
``{"inputs": "data:<media type>;base64,..."}``.  The raw JSON response is
returned untouched; callers decide how to normalise it (see
:mod:`airelay.core.normalizer`).

The media type in the data URI is sniffed from the bytes with Pillow.  When
the bytes are not a recognisable image the declared upload content type is
used, and ``image/png`` when that is missing too.
"""

from __future__ import annotations

import base64
import io
import logging
from dataclasses import dataclass
from typing import Any

from PIL import Image, UnidentifiedImageError

from .config import RelayConfig
from .upstream import UpstreamClient

logger = logging.getLogger(__name__)

DEFAULT_MEDIA_TYPE = "image/png"


@dataclass(frozen=True)
class ImageUpload:
    """An uploaded image, held in memory for a single request.

    Attributes:
        data: Raw file bytes.
        content_type: Content type declared by the client, if any.
        filename: Original filename, if any.
    """

    data: bytes
    content_type: str | None = None
    filename: str | None = None


def detect_media_type(data: bytes, declared: str | None = None) -> str:
    """Return the MIME type of *data*, falling back to *declared*.

    Args:
        data: Raw image bytes.
        declared: Content type supplied by the client.

    Returns:
        A MIME type such as ``"image/jpeg"``.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError):
        # Includes images over the pixel limit; they are still forwarded.
        fmt = None

    if fmt:
        media_type = Image.MIME.get(fmt)
        if media_type:
            return media_type
    if declared and declared.startswith("image/"):
        return declared
    return DEFAULT_MEDIA_TYPE


def to_data_uri(upload: ImageUpload) -> str:
    """Encode an upload as a ``data:`` URI."""
    media_type = detect_media_type(upload.data, upload.content_type)
    encoded = base64.b64encode(upload.data).decode("ascii")
    return f"data:{media_type};base64,{encoded}"


class ImageCaptioner:
    """Calls the captioning provider once per upload."""

    def __init__(self, config: RelayConfig, upstream: UpstreamClient) -> None:
        self.config = config
        self.upstream = upstream

    async def caption(self, upload: ImageUpload) -> Any:
        """Post the image and return the provider's raw JSON response.

        Raises:
            UpstreamError: If the provider call fails.
        """
        logger.debug(f"Captioning {len(upload.data)} bytes ({upload.filename or 'unnamed'})")
        return await self.upstream.invoke(
            self.config.caption_model_url,
            {"inputs": to_data_uri(upload)},
            kind="json",
            timeout=self.config.caption_timeout,
        )

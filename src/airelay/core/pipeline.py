"""Caption-then-generate variation pipeline.

:class:`VariationPipeline` turns one uploaded image into a caption and one
generated image per style descriptor of the active image generator:

1. Caption the upload once.  Only the list-wrapped ``generated_text`` shape
   is accepted here; anything else becomes ``"an image"``.
2. For each style, in order, build a prompt from the caption and generate an
   image.  The calls run one after another, never concurrently.
3. Return the caption and the images in style order.

Any failing step aborts the whole operation with a
:class:`~airelay.core.errors.PipelineError` carrying that step's message.
Images produced before the failure are discarded; there is no partial result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .captioner import ImageCaptioner, ImageUpload
from .errors import PipelineError
from .image_generators import ImageGenerator
from .normalizer import variation_caption

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VariationSet:
    """Result of a successful variation run.

    Attributes:
        caption: Caption the variations were derived from.
        images: Image references (data URIs or URLs), one per style, in
            style order.
    """

    caption: str
    images: tuple[str, ...]


class VariationPipeline:
    """Composes the captioner and an image generator."""

    def __init__(self, captioner: ImageCaptioner, generator: ImageGenerator) -> None:
        self.captioner = captioner
        self.generator = generator

    @property
    def styles(self) -> tuple[str, ...]:
        return self.generator.styles

    async def _caption_step(self, upload: ImageUpload) -> str:
        try:
            raw = await self.captioner.caption(upload)
        except Exception as exc:
            raise PipelineError(str(exc), step="caption") from exc
        return variation_caption(raw)

    async def _generate_step(self, caption: str, style: str) -> str:
        prompt = self.generator.variation_prompt(caption, style)
        try:
            return await self.generator.generate(prompt)
        except Exception as exc:
            raise PipelineError(str(exc), step=style) from exc

    async def generate_variations(self, upload: ImageUpload) -> VariationSet:
        """Run the full pipeline for *upload*.

        Raises:
            PipelineError: If captioning or any generation call fails.
        """
        caption = await self._caption_step(upload)
        logger.info(f"Variation caption: {caption!r}")

        images: list[str] = []
        for style in self.styles:
            images.append(await self._generate_step(caption, style))

        return VariationSet(caption=caption, images=tuple(images))

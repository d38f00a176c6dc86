"""Image generation strategies and their registry.

The relay supports two interchangeable ways of producing an image from a
prompt.  Which one is active is a deployment decision (``image_backend`` in
:class:`~airelay.core.config.RelayConfig`), never a per-request one.

Strategies
----------
- **huggingface** (:class:`HuggingFaceImageGenerator`): posts the prompt to a
  Stable Diffusion inference endpoint that answers with raw image bytes, and
  inlines them as a ``data:image/png;base64,...`` URI.
- **pollinations** (:class:`PollinationsImageGenerator`): interpolates the
  prompt into a URL template.  No request is made; the image is rendered
  lazily by whoever dereferences the URL.

Each strategy also owns the style descriptors and the prompt template the
variation pipeline uses with it, because the two backends were tuned with
different wording.

Usage Example
-------------
    >>> from airelay.core.image_generators import image_generator_registry
    >>> generator = image_generator_registry.instantiate("pollinations", config, upstream)
    >>> await generator.generate("a red bicycle")
    'https://image.pollinations.ai/prompt/a%20red%20bicycle'
"""

from __future__ import annotations

import base64
import logging
from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import quote

from .config import RelayConfig
from .upstream import UpstreamClient

logger = logging.getLogger(__name__)

# Characters encodeURIComponent leaves alone; keeps URLs stable for clients
# that cache on the exact string.
_URI_COMPONENT_SAFE = "-_.!~*'()"


class ImageGenerator(ABC):
    """Capability interface for turning a prompt into an image reference.

    Attributes
    ----------
    name : str
        Registry key, matching a value of ``RelayConfig.image_backend``.
    description : str
        One-line description for health output and logs.
    styles : tuple[str, ...]
        Style descriptors used by the variation pipeline, in output order.
    variation_template : str
        ``str.format`` template with ``{caption}`` and ``{style}`` fields.
    """

    name: str = "base"
    description: str = "Base class for image generators"
    styles: tuple[str, ...] = ()
    variation_template: str = "{caption} in {style} style"

    def __init__(self, config: RelayConfig, upstream: UpstreamClient) -> None:
        self.config = config
        self.upstream = upstream

    def variation_prompt(self, caption: str, style: str) -> str:
        """Build the prompt for one styled variation of *caption*."""
        return self.variation_template.format(caption=caption, style=style)

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """Produce an image for *prompt*.

        Returns
        -------
        str
            A data URI or a URL.

        Raises
        ------
        UpstreamError
            If a provider call fails.
        """


class HuggingFaceImageGenerator(ImageGenerator):
    """Synchronous binary generation via a Stable Diffusion endpoint."""

    name = "huggingface"
    description = "Stable Diffusion on the Hugging Face inference API (inline data URI)"
    styles = (
        "photorealistic style",
        "digital art style",
        "cinematic dramatic lighting style",
    )
    variation_template = "A {style} version of {caption}"

    async def generate(self, prompt: str) -> str:
        data = await self.upstream.invoke(
            self.config.image_model_url,
            {"inputs": prompt},
            kind="binary",
            timeout=self.config.image_timeout,
        )
        encoded = base64.b64encode(data).decode("ascii")
        return f"data:image/png;base64,{encoded}"


class PollinationsImageGenerator(ImageGenerator):
    """Deferred generation: the URL is the result."""

    name = "pollinations"
    description = "Pollinations URL template (rendered on first fetch)"
    styles = (
        "realistic photo",
        "digital art",
        "cinematic lighting",
    )
    variation_template = "{caption} in {style} style"

    async def generate(self, prompt: str) -> str:
        return f"{self.config.pollinations_url}{quote(prompt, safe=_URI_COMPONENT_SAFE)}"


class ImageGeneratorRegistry:
    """Registry mapping backend names to :class:`ImageGenerator` classes."""

    def __init__(self) -> None:
        self._generators: dict[str, type[ImageGenerator]] = {}

    def register(self, generator_class: type[ImageGenerator]) -> type[ImageGenerator]:
        """Register a generator class under its ``name``.

        Returns the class so the method can be used as a decorator.
        """
        if generator_class.name in self._generators:
            logger.warning(f"Image generator '{generator_class.name}' is already registered, overwriting")
        self._generators[generator_class.name] = generator_class
        return generator_class

    def instantiate(self, name: str, config: RelayConfig, upstream: UpstreamClient) -> ImageGenerator:
        """Create the generator registered as *name*.

        Raises
        ------
        KeyError
            If *name* is not registered.
        """
        if name not in self._generators:
            available = ", ".join(self.list_available())
            raise KeyError(f"Image generator '{name}' not found. Available generators: {available}")
        return self._generators[name](config, upstream)

    def list_available(self) -> list[str]:
        return list(self._generators)

    def get_info(self, name: str) -> dict[str, Any] | None:
        generator_class = self._generators.get(name)
        if generator_class is None:
            return None
        return {
            "name": generator_class.name,
            "description": generator_class.description,
            "styles": list(generator_class.styles),
        }


image_generator_registry = ImageGeneratorRegistry()
image_generator_registry.register(HuggingFaceImageGenerator)
image_generator_registry.register(PollinationsImageGenerator)

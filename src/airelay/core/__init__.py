"""Core relay functionality.

This package holds everything that talks to providers or shapes their output:

- **config.py**: ``RelayConfig``, environment-based settings (Pydantic Settings)
- **upstream.py**: ``UpstreamClient``, one POST per call with a bounded timeout
- **normalizer.py**: decision table that extracts text from provider JSON
- **captioner.py**: BLIP captioning of uploaded images
- **text_generators.py**: prompt enhancement / text analysis backends
- **image_generators.py**: ``ImageGenerator`` strategies and their registry
- **pipeline.py**: the caption-then-generate variation pipeline
- **errors.py**: the error taxonomy

Layering
--------
The API layer (``airelay.api``) builds one instance of each service at
start-up and passes the frozen config into all of them.  Core modules never
read the environment themselves.
"""

from airelay.core.config import RelayConfig
from airelay.core.errors import MissingInputError, PipelineError, RelayError, UpstreamError
from airelay.core.image_generators import ImageGenerator, image_generator_registry
from airelay.core.pipeline import VariationPipeline, VariationSet
from airelay.core.text_generators import TextGenerator, create_text_generator

__all__ = [
    "ImageGenerator",
    "image_generator_registry",
    "MissingInputError",
    "PipelineError",
    "RelayConfig",
    "RelayError",
    "TextGenerator",
    "UpstreamError",
    "VariationPipeline",
    "VariationSet",
    "create_text_generator",
]

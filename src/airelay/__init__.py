"""AI Relay - a thin HTTP gateway in front of hosted inference providers."""

__version__ = "0.1.0"

from airelay.core.config import RelayConfig
from airelay.core.image_generators import ImageGenerator, image_generator_registry

__all__ = [
    "ImageGenerator",
    "image_generator_registry",
    "RelayConfig",
]

"""Configuration management for the AI Relay gateway.

This module provides centralized configuration management using Pydantic Settings.
Configuration is loaded from environment variables with the RELAY_ prefix, with
a handful of conventional names (``PORT``, ``OPENROUTER_API_KEY``, ``HF_TOKEN``)
accepted as aliases so that the gateway drops into common hosting platforms
without extra wiring.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (RELAY_* prefix, or the aliases named above)
2. .env file in the working directory
3. Default values defined in RelayConfig

Example .env file:
    OPENROUTER_API_KEY=sk-or-...
    PORT=5000
    RELAY_TEXT_BACKEND=openrouter
    RELAY_IMAGE_BACKEND=pollinations

Immutability
------------
A ``RelayConfig`` is frozen after construction.  It is built exactly once in
:func:`airelay.api.main.main` and passed explicitly into the application
factory, which hands it to every provider client.  Nothing in the package
reads the environment after start-up.

Backends
--------
Two independent switches select the provider strategies:

- ``text_backend``: ``huggingface`` (flan-t5 on the HF inference API) or
  ``openrouter`` (chat completion through litellm).
- ``image_backend``: ``huggingface`` (Stable Diffusion, returns raw bytes that
  are inlined as a data URI) or ``pollinations`` (a URL template; no bytes are
  fetched by the gateway).

See Also
--------
- .env.example: Template with all available configuration options
"""

from typing import Literal

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MEGABYTE = 1024 * 1024


class RelayConfig(BaseSettings):
    """Main configuration for the AI Relay gateway.

    Attributes
    ----------
    Credentials:
        openrouter_api_key : str | None
            API key for OpenRouter (required when text_backend is openrouter)
        huggingface_token : str | None
            Bearer token sent to the Hugging Face inference API, if set

    Server:
        server_host : str
            Bind address for uvicorn
        server_port : int
            Listening port (defaults to 5000)
        log_level : str
            Root logging level name

    Backends:
        text_backend : Literal["huggingface", "openrouter"]
        image_backend : Literal["huggingface", "pollinations"]

    Provider endpoints:
        text_model_url, image_model_url, caption_model_url : str
            Hugging Face inference endpoints
        openrouter_base_url, enhance_model, analyze_model : str
            OpenRouter routing used by the litellm backend
        pollinations_url : str
            Prefix of the deferred image URL template

    Timeouts (seconds):
        text_timeout, image_timeout, caption_timeout : float

    Limits (bytes):
        max_json_bytes, max_upload_bytes : int

    Examples
    --------
        >>> cfg = RelayConfig(image_backend="pollinations", _env_file=None)
        >>> cfg.server_port
        5000
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="RELAY_",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    # Credentials
    openrouter_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("openrouter_api_key", "OPENROUTER_API_KEY", "RELAY_OPENROUTER_API_KEY"),
        description="OpenRouter API key for the litellm text backend",
    )
    huggingface_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("huggingface_token", "HF_TOKEN", "RELAY_HUGGINGFACE_TOKEN"),
        description="Bearer token for the Hugging Face inference API",
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address",
    )
    server_port: int = Field(
        default=5000,
        validation_alias=AliasChoices("server_port", "PORT", "RELAY_SERVER_PORT"),
        description="Server port",
        ge=1,
        le=65535,
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )

    # Backend selection
    text_backend: Literal["huggingface", "openrouter"] = Field(
        default="huggingface",
        description="Provider used for prompt enhancement and text analysis",
    )
    image_backend: Literal["huggingface", "pollinations"] = Field(
        default="huggingface",
        description="Image generation strategy (binary data URI or deferred URL)",
    )

    # Hugging Face inference endpoints
    text_model_url: str = Field(
        default="https://api-inference.huggingface.co/models/google/flan-t5-base",
    )
    image_model_url: str = Field(
        default="https://api-inference.huggingface.co/models/stabilityai/stable-diffusion-2",
    )
    caption_model_url: str = Field(
        default="https://api-inference.huggingface.co/models/Salesforce/blip-image-captioning-base",
    )

    # OpenRouter routing
    openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1")
    enhance_model: str = Field(default="openrouter/meta-llama/llama-3-8b-instruct:free")
    analyze_model: str = Field(default="openrouter/anthropic/claude-3-haiku:beta")
    completion_max_tokens: int = Field(default=200, ge=1)

    # Deferred URL image backend
    pollinations_url: str = Field(default="https://image.pollinations.ai/prompt/")

    # Per-call timeouts
    text_timeout: float = Field(default=120.0, gt=0, description="Text enhancement timeout")
    image_timeout: float = Field(default=300.0, gt=0, description="Image generation timeout")
    caption_timeout: float = Field(default=180.0, gt=0, description="Image captioning timeout")

    # Inbound body limits
    max_json_bytes: int = Field(default=10 * MEGABYTE, gt=0)
    max_upload_bytes: int = Field(default=10 * MEGABYTE, gt=0)

    @model_validator(mode="after")
    def check_credentials(self) -> "RelayConfig":
        """Fail fast when the selected text backend has no credentials."""
        if self.text_backend == "openrouter" and not self.openrouter_api_key:
            raise ValueError("OPENROUTER_API_KEY must be set when text_backend is 'openrouter'")
        return self

"""Configuration management for Thumbcraft.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the THUMBCRAFT_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (THUMBCRAFT_* prefix)
2. .env file in the project root
3. Default values defined in ThumbcraftConfig

Provider credentials additionally accept the conventional unprefixed names
(``GEMINI_API_KEY``, ``OPENAI_API_KEY``) so existing deployments keep working.

Example .env file:
    GEMINI_API_KEY=...
    OPENAI_API_KEY=...
    THUMBCRAFT_TEXT_TO_IMAGE_PROVIDERS=["gemini", "openai-images"]
    THUMBCRAFT_RATE_LIMIT_BACKOFF_SECONDS=2.0

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
The API layer reads it once at startup and passes it into the orchestrator,
enhancer and storage collaborators; nothing else reads the environment.

Usage Example
-------------
    from thumbcraft.core.config import config

    print(config.gemini_image_model)
    print(config.text_to_image_providers)

Provider Chains
---------------
``text_to_image_providers`` and ``image_to_image_providers`` list registered
provider names in priority order.  The first configured provider is the
primary; the rest are fallbacks tried in order when a slot's primary attempt
fails or returns no image.  Delay and retry constants are deployment choices
and can be tuned per environment.
"""

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from thumbcraft.core.models import GenerationMode


class ThumbcraftConfig(BaseSettings):
    """Main configuration for Thumbcraft.

    Attributes
    ----------
    Credentials:
        gemini_api_key : str | None
            API key for the Gemini multimodal provider
        openai_api_key : str | None
            API key for the OpenAI image provider and the prompt enhancer

    Provider Settings:
        gemini_image_model : str
            Gemini model used for image generation
        openai_image_model : str
            OpenAI image model used for generation and edits
        openai_image_size : str
            Output size requested from the OpenAI image model
        enhancer_model : str
            Chat model used to rewrite prompts
        text_to_image_providers : list[str]
            Provider chain for text-to-image requests, primary first
        image_to_image_providers : list[str]
            Provider chain for image-to-image requests, primary first

    Orchestration Policy:
        default_image_count : int
            Image count used when the request value is unparseable
        max_image_count : int
            Upper bound for the number of images per request
        rate_limit_max_attempts : int
            Total attempts per provider call when rate limited
        rate_limit_backoff_seconds : float
            Fixed wait before retrying a rate-limited call
        slot_stagger_seconds : float
            Delay before each image-to-image slot beyond the first
        history_limit : int
            Maximum history entries kept per user
        max_upload_bytes : int
            Maximum reference image size accepted by the API

    Paths:
        data_dir : Path
            Directory holding ``history.json``
        static_dir : Path
            Directory served under ``/static``
        gallery_dir : Path
            Directory that receives uploaded images

    Server:
        server_host : str
            Bind address for uvicorn
        server_port : int
            Port for uvicorn

    Examples
    --------
        >>> custom_config = ThumbcraftConfig(
        ...     gemini_api_key="test",
        ...     text_to_image_providers=["gemini"],
        ...     rate_limit_backoff_seconds=0.0,
        ... )
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="THUMBCRAFT_",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Credentials
    gemini_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("THUMBCRAFT_GEMINI_API_KEY", "GEMINI_API_KEY"),
        description="API key for the Gemini provider",
    )
    openai_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("THUMBCRAFT_OPENAI_API_KEY", "OPENAI_API_KEY"),
        description="API key for OpenAI images and prompt enhancement",
    )

    # Provider settings
    gemini_image_model: str = Field(
        default="gemini-2.5-flash-image-preview",
        description="Gemini model used for image generation",
    )
    openai_image_model: str = Field(
        default="gpt-image-1",
        description="OpenAI image model used for generation and edits",
    )
    openai_image_size: str = Field(
        default="1024x1024",
        description="Output size requested from the OpenAI image model",
    )
    enhancer_model: str = Field(
        default="gpt-3.5-turbo",
        description="Chat model used for prompt enhancement",
    )
    text_to_image_providers: list[str] = Field(
        default_factory=lambda: ["gemini", "openai-images"],
        description="Provider chain for text-to-image, primary first",
    )
    image_to_image_providers: list[str] = Field(
        default_factory=lambda: ["gemini", "openai-images"],
        description="Provider chain for image-to-image, primary first",
    )

    # Orchestration policy
    default_image_count: int = Field(default=4, ge=1, le=4)
    max_image_count: int = Field(default=4, ge=1, le=4)
    rate_limit_max_attempts: int = Field(
        default=2,
        description="Total attempts per provider call when rate limited",
        ge=1,
        le=5,
    )
    rate_limit_backoff_seconds: float = Field(
        default=2.0,
        description="Fixed wait before retrying a rate-limited call",
        ge=0.0,
    )
    slot_stagger_seconds: float = Field(
        default=1.0,
        description="Delay before each image-to-image slot beyond the first",
        ge=0.0,
    )
    history_limit: int = Field(default=100, ge=1)
    max_upload_bytes: int = Field(default=10 * 1024 * 1024, ge=1)

    # Paths
    data_dir: Path = Field(
        default=Path("data"),
        description="Directory holding history.json",
    )
    static_dir: Path = Field(
        default=Path("static"),
        description="Directory served under /static",
    )
    gallery_dir: Path = Field(
        default=Path("static/gallery"),
        description="Directory that receives uploaded images",
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address (0.0.0.0 for local network)",
    )
    server_port: int = Field(
        default=3000,
        description="Server port",
        ge=1024,
        le=65535,
    )

    def __init__(self, **kwargs):
        """Initialize configuration and create required directories.

        Args:
            **kwargs: Configuration overrides (typically from environment variables)
        """
        super().__init__(**kwargs)

        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.static_dir.mkdir(parents=True, exist_ok=True)
        self.gallery_dir.mkdir(parents=True, exist_ok=True)

    def provider_chain(self, mode: GenerationMode) -> list[str]:
        """Return the configured provider names for a generation mode.

        Args:
            mode: Generation mode to look up

        Returns
        -------
        list[str]
            Provider names in priority order
        """
        if GenerationMode(mode) is GenerationMode.IMAGE_TO_IMAGE:
            return list(self.image_to_image_providers)
        return list(self.text_to_image_providers)


# Global configuration instance
# Loads values from environment variables (THUMBCRAFT_* prefix) and .env file.
config = ThumbcraftConfig()

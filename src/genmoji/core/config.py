"""Configuration management for the Genmoji API.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the GENMOJI_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (GENMOJI_* prefix)
2. .env file in the project root
3. Default values defined in GenmojiConfig

Example .env file:
    GENMOJI_REPLICATE_API_TOKEN=r8_xxx
    GENMOJI_CLOUDFLARE_ACCOUNT_ID=0123456789abcdef
    GENMOJI_CLOUDFLARE_API_TOKEN=cf_xxx
    GENMOJI_CLOUDFLARE_IMAGES_DELIVERY_URL=https://imagedelivery.net/abc123
    GENMOJI_XAI_API_KEY=xai-xxx
    GENMOJI_DATABASE_PATH=data/genmoji.db

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
This ensures a single source of truth for all configuration values across
the application.

Usage Example
-------------
    from genmoji.core.config import config

    print(config.database_path)
    print(config.replicate_base_url)

Provider Gateways
-----------------
Replicate and the chat-completion provider are reached through the Cloudflare
AI Gateway by default.  The ``*_base_url`` fields may be set explicitly to
bypass the gateway; when left empty they are derived from the account ID:

- replicate:  https://gateway.ai.cloudflare.com/v1/<account>/genmoji/replicate
- grok (LLM): https://gateway.ai.cloudflare.com/v1/<account>/genmoji/grok/v1

Polling Settings
----------------
Prediction polling waits ``poll_initial_delay`` seconds before the first
retry and ``poll_interval`` seconds between every later retry.  Generation
gives up after ``generation_max_attempts`` checks, background removal after
``background_removal_max_attempts``.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GenmojiConfig(BaseSettings):
    """Main configuration for the Genmoji API.

    Values are loaded from environment variables with the GENMOJI_ prefix,
    with fallback to defaults defined here.

    Attributes
    ----------
    Provider Credentials:
        replicate_api_token : str
            Bearer token for the Replicate predictions API
        cloudflare_account_id : str
            Cloudflare account hosting Images, Workers AI, and Vectorize
        cloudflare_api_token : str
            API token with Images, Workers AI, and Vectorize permissions
        cloudflare_images_delivery_url : str
            Public delivery prefix for uploaded images
        xai_api_key : str
            API key for the chat-completion provider

    Models:
        translation_model : str
            Chat model used for prompt translation
        vision_model : str
            Vision-capable chat model used for image analysis
        embedding_model : str
            Workers AI text embedding model
        vectorize_index : str
            Name of the Vectorize index holding prompt embeddings

    Generation:
        max_prompt_length : int
            Longest accepted prompt in characters
        enrichment_locales : list[str]
            Locales each new emoji is translated into after generation

    Paths:
        data_dir : Path
            Directory holding the SQLite database
        database_path : Path
            SQLite database file

    Server:
        server_host : str
            Bind address for uvicorn
        server_port : int
            Bind port for uvicorn (1024-65535)
        cors_origins : list[str]
            Allowed CORS origins
        log_level : str
            Root logging level

    Notes
    -----
    - The data directory is created automatically if it doesn't exist
    - To modify config, set environment variables and restart the application
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GENMOJI_",
        case_sensitive=False,
    )

    # Provider credentials
    replicate_api_token: str = Field(default="", description="Replicate API token")
    cloudflare_account_id: str = Field(default="", description="Cloudflare account ID")
    cloudflare_api_token: str = Field(default="", description="Cloudflare API token")
    cloudflare_images_delivery_url: str = Field(
        default="https://imagedelivery.net/genmoji",
        description="Public delivery prefix for Cloudflare Images",
    )
    xai_api_key: str = Field(default="", description="API key for the chat-completion provider")

    # Endpoints (empty = derive from the account ID)
    replicate_base_url: str = Field(
        default="",
        description="Replicate API base URL (defaults to the AI gateway route)",
    )
    llm_base_url: str = Field(
        default="",
        description="OpenAI-compatible base URL for translation and analysis",
    )
    cloudflare_api_base_url: str = Field(
        default="https://api.cloudflare.com/client/v4",
        description="Cloudflare REST API base URL",
    )

    # Models
    translation_model: str = Field(default="grok-2-latest")
    vision_model: str = Field(default="grok-2-vision-latest")
    embedding_model: str = Field(default="@cf/baai/bge-small-en-v1.5")
    vectorize_index: str = Field(default="genmoji-prompts")

    # Generation settings
    max_prompt_length: int = Field(
        default=280,
        description="Maximum prompt length in characters",
        ge=1,
    )
    enrichment_locales: list[str] = Field(
        default_factory=lambda: ["zh", "ja", "fr"],
        description="Locales each new emoji is translated into",
    )
    generation_max_attempts: int = Field(default=30, ge=1)
    background_removal_max_attempts: int = Field(default=15, ge=1)
    poll_initial_delay: float = Field(
        default=6.0,
        description="Seconds to wait before the first prediction re-check",
        ge=0.0,
    )
    poll_interval: float = Field(
        default=1.0,
        description="Seconds between later prediction re-checks",
        ge=0.0,
    )
    http_timeout: float = Field(default=60.0, description="Provider HTTP timeout in seconds")

    # Paths
    data_dir: Path = Field(
        default=Path("data"),
        description="Directory for the SQLite database",
    )
    database_path: Path = Field(
        default=Path("data/genmoji.db"),
        description="SQLite database file",
    )

    # Server settings
    server_host: str = Field(default="0.0.0.0")
    server_port: int = Field(default=8787, ge=1024, le=65535)
    cors_origins: list[str] = Field(
        default_factory=lambda: [
            "https://genmojionline.com",
            "https://www.genmojionline.com",
            "http://localhost:3000",
            "http://localhost:4780",
        ],
    )
    log_level: str = Field(default="INFO")

    def __init__(self, **kwargs):
        """Initialize configuration and create the data directory.

        Args:
            **kwargs: Configuration overrides (typically from environment variables)
        """
        super().__init__(**kwargs)

        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def gateway_url(self) -> str:
        """AI gateway prefix for this account."""
        return f"https://gateway.ai.cloudflare.com/v1/{self.cloudflare_account_id}/genmoji"

    @property
    def resolved_replicate_base_url(self) -> str:
        return (self.replicate_base_url or f"{self.gateway_url}/replicate").rstrip("/")

    @property
    def resolved_llm_base_url(self) -> str:
        return (self.llm_base_url or f"{self.gateway_url}/grok/v1").rstrip("/")


# Global configuration instance
# Loads values from environment variables (GENMOJI_* prefix) and .env file.
config = GenmojiConfig()

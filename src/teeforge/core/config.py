"""Configuration management for Teeforge.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the TEEFORGE_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (TEEFORGE_* prefix)
2. .env file in the project root
3. Default values defined in TeeforgeConfig

Example .env file:
    TEEFORGE_FAL_KEY=...
    TEEFORGE_GENAI_API_KEY=...
    TEEFORGE_ALLOW_PUBLIC_API=false
    TEEFORGE_DATABASE_PATH=data/teeforge.db

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
This ensures a single source of truth for all configuration values across
the application.

Usage Example
-------------
    from teeforge.core.config import config

    print(config.database_path)
    print(config.allow_public_api)

Provider Credentials
--------------------
- fal_key: credentials for the fal.ai image endpoints (edit, background
  removal, upscale, mockup, style creation, generation). Passed to the
  gateway's own ``fal_client.SyncClient``; the process environment is left
  untouched. When empty the client reads ``FAL_KEY`` instead.
- genai_api_key: Google GenAI key used to rewrite edit instructions. When it
  is empty the rewrite step fails and edits fall back to the caller's text.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TeeforgeConfig(BaseSettings):
    """Main configuration for Teeforge.

    Values are loaded from environment variables with the TEEFORGE_ prefix,
    with fallback to defaults defined here.

    Attributes
    ----------
    Provider Settings:
        fal_key : str
            fal.ai API key for the remote transform endpoints
        genai_api_key : str
            Google GenAI API key for the instruction rewriter
        rewrite_model : str
            Text model used to rewrite edit instructions
        rewrite_temperature : float
            Sampling temperature for instruction rewrites
        default_edit_model : str
            Edit model used when a request does not name one

    Access Settings:
        allow_public_api : bool
            Allow transform endpoints to run without an authenticated caller

    Storage:
        database_path : Path
            SQLite database holding designs, variations, templates and collections
        auto_provision_schema : bool
            Create missing tables when the application starts

    Network:
        http_timeout : float
            Timeout in seconds for fetching source images for raster operations

    Server Settings:
        server_host : str
            Server bind address
        server_port : int
            Server port (1024-65535)
        log_level : Literal["DEBUG", "INFO", "WARNING", "ERROR"]
            Root log level applied by ``main()``

    Examples
    --------
        >>> custom_config = TeeforgeConfig(
        ...     allow_public_api=True,
        ...     database_path="/tmp/teeforge.db",
        ... )
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TEEFORGE_",
        case_sensitive=False,
    )

    # Provider settings
    fal_key: str = Field(
        default="",
        description="fal.ai API key for remote image transforms",
    )
    genai_api_key: str = Field(
        default="",
        description="Google GenAI API key for instruction rewriting",
    )
    rewrite_model: str = Field(
        default="gemini-2.0-flash-exp",
        description="Text model used to rewrite edit instructions",
    )
    rewrite_temperature: float = Field(
        default=0.5,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for instruction rewrites",
    )
    default_edit_model: str = Field(
        default="gemini-25",
        description="Edit model used when a request does not name one",
    )

    # Access settings
    allow_public_api: bool = Field(
        default=False,
        description="Allow transform endpoints without an authenticated caller",
    )

    # Storage
    database_path: Path = Field(
        default=Path("data/teeforge.db"),
        description="SQLite database file",
    )
    auto_provision_schema: bool = Field(
        default=True,
        description="Create missing tables on startup",
    )

    # Network
    http_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Timeout (seconds) when fetching source images",
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address",
    )
    server_port: int = Field(
        default=8000,
        description="Server port",
        ge=1024,
        le=65535,
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root log level",
    )

    def __init__(self, **kwargs):
        """Initialize configuration and create the database directory.

        Args:
            **kwargs: Configuration overrides (typically from environment variables)
        """
        super().__init__(**kwargs)

        self.database_path.parent.mkdir(parents=True, exist_ok=True)


# Global configuration instance
# Loads values from environment variables (TEEFORGE_* prefix) and .env file.
config = TeeforgeConfig()

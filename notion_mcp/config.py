"""
Configuration management for the Notion MCP server using Pydantic.

This module defines:
- Token credentials model
- Main server configuration with rate limit, retry and watcher settings
- Loading configuration from environment variables

API keys are opaque: only emptiness is checked here, the key itself is
checked against /users/me at startup.
"""

import os
from datetime import datetime
from typing import Literal, Mapping, Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_CACHE_FILE = ".notion-cache.json"

# Shortcut names accepted wherever a database ID is expected
CONVERSATIONS_SHORTCUT = "conversations"
PROJECTS_SHORTCUT = "projects"


class TokenCredentials(BaseModel):
    """API key of the integration (``secret_...`` or ``ntn_...``)."""

    auth_type: Literal["token"] = Field(
        default="token",
        description="Credential kind; integration tokens only"
    )
    token: str = Field(
        ...,
        description="Integration API key",
        min_length=1
    )

    @field_validator("token")
    @classmethod
    def validate_token_not_empty(cls, v: str) -> str:
        """Validate token is provided and not just whitespace."""
        if not v or not v.strip():
            raise ValueError("Token cannot be empty or whitespace")
        return v.strip()


class ServerConfig(BaseModel):
    """
    Main configuration for the Notion MCP server.

    Includes settings for the shared rate limiter, the retry policy,
    file watcher pacing and the database ID cache.
    """

    credentials: TokenCredentials = Field(
        ...,
        description="Authentication credentials"
    )

    # API Configuration
    api_version: str = Field(
        default="2022-06-28",
        description="Notion API version (date format YYYY-MM-DD)",
        pattern=r"^\d{4}-\d{2}-\d{2}$"
    )
    request_timeout: int = Field(
        default=60,
        ge=1,
        le=300,
        description="Request timeout in seconds"
    )
    page_size: int = Field(
        default=100,
        ge=1,
        le=100,
        description="Number of results per page (max 100)"
    )

    # Rate Limiting Configuration
    requests_per_second: float = Field(
        default=3.0,
        gt=0,
        le=100.0,
        description="Token bucket refill rate"
    )
    burst_capacity: float = Field(
        default=3.0,
        ge=1.0,
        le=100.0,
        description="Token bucket capacity"
    )

    # Retry Configuration
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Maximum number of retries for failed requests"
    )
    base_retry_delay: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        description="Base delay in seconds between retries"
    )
    max_retry_delay: float = Field(
        default=30.0,
        ge=0.0,
        le=300.0,
        description="Maximum delay in seconds between retries"
    )
    default_retry_after: float = Field(
        default=60.0,
        ge=0.0,
        le=3600.0,
        description="Wait in seconds for a 429 without a Retry-After header"
    )

    # File Automation Configuration
    inter_file_delay: float = Field(
        default=0.5,
        ge=0.0,
        le=10.0,
        description="Pause in seconds between files in a watcher scan"
    )
    bulk_file_delay: float = Field(
        default=0.4,
        ge=0.0,
        le=10.0,
        description="Pause in seconds between files in a bulk import"
    )

    # Database Configuration
    cache_file: str = Field(
        default=DEFAULT_CACHE_FILE,
        description="Path of the discovered database ID cache"
    )
    conversation_database_id: Optional[str] = Field(
        default=None,
        description="Conversation database (overrides the cache)"
    )
    project_database_id: Optional[str] = Field(
        default=None,
        description="Project database (overrides the cache)"
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root log level"
    )

    @field_validator("api_version")
    @classmethod
    def validate_api_version(cls, v: str) -> str:
        """Validate API version is a valid date format."""
        try:
            datetime.strptime(v, "%Y-%m-%d")
        except ValueError:
            raise ValueError(
                f"API version must be in YYYY-MM-DD format, got: {v}"
            )
        return v

    @field_validator("max_retry_delay")
    @classmethod
    def validate_retry_delays(cls, v: float, info) -> float:
        """Ensure max_retry_delay >= base_retry_delay."""
        base_delay = info.data.get("base_retry_delay", 1.0)
        if v < base_delay:
            raise ValueError(
                f"max_retry_delay ({v}) must be >= base_retry_delay ({base_delay})"
            )
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        """Accept lower-case level names."""
        return v.upper() if isinstance(v, str) else v

    def get_token(self) -> str:
        """Get the API token."""
        return self.credentials.token

    def get_auth_headers(self) -> dict:
        """
        Get authentication headers for API requests.

        Returns:
            Dictionary with Authorization and Notion-Version headers
        """
        return {
            "Authorization": f"Bearer {self.get_token()}",
            "Notion-Version": self.api_version,
            "Content-Type": "application/json"
        }

    @classmethod
    def from_env(
        cls,
        token: str,
        environ: Optional[Mapping[str, str]] = None
    ) -> "ServerConfig":
        """
        Build configuration from environment variables.

        Args:
            token: Resolved Notion API key
            environ: Environment mapping (defaults to os.environ)

        Returns:
            ServerConfig instance
        """
        env = os.environ if environ is None else environ
        values = {"credentials": TokenCredentials(token=token)}

        mapping = {
            "NOTION_API_VERSION": "api_version",
            "NOTION_CACHE_FILE": "cache_file",
            "NOTION_CONVERSATION_DB": "conversation_database_id",
            "NOTION_PROJECT_DB": "project_database_id",
            "NOTION_LOG_LEVEL": "log_level",
        }
        for env_name, field_name in mapping.items():
            if env.get(env_name):
                values[field_name] = env[env_name]

        return cls(**values)

    class Config:
        """Pydantic model configuration."""
        validate_assignment = True
        extra = "forbid"

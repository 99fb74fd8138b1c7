"""
Application configuration using Pydantic Settings.

All configuration is read from environment variables prefixed with
``HTTPFETCH_``, with defaults suitable for interactive command-line use.
Command-line flags override individual values via ``model_copy``.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central application configuration."""

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Application log level (DEBUG, INFO, WARNING, ERROR)",
    )
    log_format: str = Field(
        default="%(message)s",
        description="logging format string for diagnostics on stderr",
    )

    # Redirects
    max_redirects: int = Field(
        default=10,
        ge=0,
        description="Number of redirects followed before a response is classified as-is",
    )

    # HTTP client
    connect_timeout: float = Field(
        default=10.0,
        description="Timeout in seconds for establishing a connection",
    )
    http_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for reads and writes on an open connection",
    )
    read_buffer_size: int = Field(
        default=4096,
        gt=0,
        description="Maximum number of body bytes handed to the sink per read",
    )
    user_agent: str = Field(
        default="httpfetch/1.0",
        description="Value of the User-Agent request header",
    )

    # TLS
    verify_certificate: bool = Field(
        default=True,
        description="Fail the fetch when the server certificate does not validate",
    )
    ca_certificates: list[str] = Field(
        default_factory=list,
        description="Additional CA certificate files trusted for HTTPS",
    )

    # Output
    output_file: Optional[str] = Field(
        default=None,
        description="Output destination; '-' for stdout, unset to derive from the URL",
    )
    quiet: bool = Field(default=False, description="Suppress diagnostics")

    model_config = SettingsConfigDict(
        env_prefix="HTTPFETCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


# Singleton — import this throughout the package
settings = Settings()

"""
Application Settings
===================

Bridge settings and environment configuration using Pydantic Settings.
Supports development, testing, and production environments.
"""

from typing import Optional, List, Union
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import json
from pathlib import Path


class Settings(BaseSettings):
    """Main application settings with environment variable support."""

    # Application Configuration
    app_name: str = Field(default="SSE Tool Bridge", description="Application name")
    app_version: str = Field(default="1.1.0", description="Application version")
    environment: str = Field(
        default="development", description="Environment: development, testing, production"
    )
    debug: bool = Field(default=False, description="Debug mode")

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=3000, description="Server port")

    # MCP Server Configuration
    mcp_server_name: str = Field(default="sse-tool-bridge", description="MCP server name")

    # Tenancy Configuration
    tenant_mode: str = Field(default="multi", description="Tenancy mode: single, multi")
    api_key: Optional[str] = Field(
        default=None, description="Static backend credential used in single-tenant mode"
    )
    credential_query_param: str = Field(
        default="apiKey", description="Query parameter carrying the credential"
    )

    # SSE Configuration
    sse_path: str = Field(default="/sse", description="Streaming endpoint path")
    message_path: str = Field(default="/messages", description="Message post endpoint path")
    sse_heartbeat_interval_seconds: float = Field(
        default=15.0, description="Idle interval before a keep-alive comment is sent"
    )
    sse_event_buffer_size: int = Field(
        default=100, description="Outgoing message buffer size per session"
    )

    # Backend Configuration
    backend_url: str = Field(
        default="http://localhost:8080", description="Base URL of the capability service"
    )
    backend_construction_timeout_seconds: float = Field(
        default=30.0, description="Upper bound for backend instance construction"
    )
    invocation_timeout_seconds: float = Field(
        default=120.0, description="Upper bound for a single operation invocation"
    )
    session_close_grace_seconds: float = Field(
        default=5.0, description="Time a closed session's engine may finish in-flight work"
    )

    # Security Configuration
    allowed_hosts: List[str] = Field(default=["*"], description="Allowed hosts for CORS")

    # Process Configuration
    exit_on_unhandled_error: bool = Field(
        default=True, description="Terminate the process on unretrieved task exceptions"
    )

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_dir: Optional[Path] = Field(default=None, description="Directory for rotating log files")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        allowed = {"development", "testing", "production"}
        if v not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v

    @field_validator("tenant_mode")
    @classmethod
    def validate_tenant_mode(cls, v: str) -> str:
        """Validate tenancy mode."""
        allowed = {"single", "multi"}
        if v.lower() not in allowed:
            raise ValueError(f"Tenant mode must be one of: {allowed}")
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()

    @field_validator("sse_path", "message_path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Paths are absolute and carry no trailing slash."""
        v = v.strip()
        if not v.startswith("/"):
            v = f"/{v}"
        return v.rstrip("/") or "/"

    @field_validator("backend_url")
    @classmethod
    def strip_backend_url(cls, v: str) -> str:
        """Drop trailing slashes so paths can be appended."""
        return v.rstrip("/")

    @field_validator("allowed_hosts", mode="before")
    @classmethod
    def parse_allowed_hosts(cls, v: Union[str, List[str]]) -> List[str]:
        """Parse allowed hosts from string or list."""
        if isinstance(v, str):
            # Handle JSON-like string: ["*"] or ["host1", "host2"]
            v = v.strip()
            if v.startswith("[") and v.endswith("]"):
                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    pass
            # Handle comma-separated string: "*" or "host1,host2"
            return [host.strip() for host in v.split(",") if host.strip()]
        return v

    @model_validator(mode="after")
    def require_static_credential(self) -> "Settings":
        """Single-tenant mode needs its credential up front."""
        if self.tenant_mode == "single" and not self.api_key:
            raise ValueError("api_key is required when tenant_mode is 'single'")
        return self

    @property
    def is_single_tenant(self) -> bool:
        return self.tenant_mode == "single"

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, env_prefix="SSE_BRIDGE_"
    )


# Global settings instance - will be initialized when needed
settings = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global settings
    if settings is None:
        settings = Settings()
    return settings


def reload_settings() -> Settings:
    """Reload settings from environment."""
    global settings
    settings = Settings()
    return settings

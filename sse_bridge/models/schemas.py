"""
Pydantic Schemas
================

Data models for operation discovery and bridge status reporting.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class OperationDescriptor(BaseModel):
    """Named, schema-bearing description of one invocable operation.

    ``definition`` is kept verbatim (name, description, inputSchema and any
    extra keys the provider supplies) and is what clients see on discovery.
    """

    definition: Dict[str, Any] = Field(..., description="Tool definition as supplied by the provider")

    model_config = ConfigDict(frozen=True)

    @field_validator("definition")
    @classmethod
    def validate_definition(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        """A definition must at least carry a non-empty string name."""
        name = v.get("name")
        if not isinstance(name, str) or not name:
            raise ValueError("Operation definition requires a non-empty 'name'")
        if "inputSchema" not in v:
            raise ValueError(f"Operation '{name}' is missing 'inputSchema'")
        return v

    @property
    def name(self) -> str:
        return self.definition["name"]

    @classmethod
    def from_schema(cls, schema: Dict[str, Any]) -> "OperationDescriptor":
        """Build a descriptor from a raw provider entry.

        Providers either return the tool definition directly or wrap it under
        a ``schema`` key.
        """
        definition = schema.get("schema", schema)
        return cls(definition=dict(definition))


class HealthStatus(BaseModel):
    """Bridge health status."""

    status: Literal["healthy", "unhealthy", "degraded"] = Field(..., description="Overall status")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), description="Check timestamp"
    )
    version: str = Field(..., description="Application version")
    tenant_mode: str = Field(..., description="Tenancy mode")
    active_sessions: int = Field(0, ge=0, description="Number of open streaming sessions")
    cached_backends: int = Field(0, ge=0, description="Number of constructed backend instances")


class BridgeStats(BaseModel):
    """Runtime statistics for the bridge."""

    active_sessions: int = Field(default=0, description="Number of open streaming sessions")
    cached_backends: int = Field(default=0, description="Number of constructed backend instances")
    pending_constructions: int = Field(
        default=0, description="Backend constructions currently in flight"
    )
    uptime_seconds: float = Field(default=0.0, description="Seconds since the bridge was created")
    oldest_session_age: Optional[float] = Field(
        None, description="Age in seconds of the longest-lived open session"
    )
    last_updated: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), description="Last stats update"
    )

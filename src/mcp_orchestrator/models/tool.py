"""Tool-call entities for the orchestration engine.

This module defines server registrations and the uniform call/response shapes
every backend is reached through.
"""

from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class RateLimitConfig(BaseModel):
    """Sliding-window rate limit for a server.

    Attributes:
        requests: Maximum admitted calls inside one window
        window: Window length in seconds
    """

    model_config = ConfigDict(frozen=True)

    requests: int = Field(..., ge=1, description="Maximum calls per window")
    window: float = Field(..., gt=0, description="Window length in seconds")


class ServerConfig(BaseModel):
    """Registration of a named external server.

    Attributes:
        name: Server identifier used by tool calls
        url: Optional JSON-RPC endpoint for the HTTP backend
        headers: HTTP headers sent with every request
        timeout: Per-attempt timeout in seconds
        retries: Additional attempts after the first failure
        rate_limit: Optional sliding-window limit
        description: Server description
        enabled: Whether this server should be registered
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    name: str = Field(..., min_length=1, description="Server identifier")
    url: Optional[str] = Field(None, description="JSON-RPC endpoint URL")
    headers: dict[str, str] = Field(default_factory=dict, description="HTTP headers")
    timeout: float = Field(default=30.0, gt=0, description="Per-attempt timeout in seconds")
    retries: int = Field(default=3, ge=0, description="Retry attempts after the first failure")
    rate_limit: Optional[RateLimitConfig] = Field(None, description="Sliding-window rate limit")
    description: Optional[str] = Field(None, description="Server description")
    enabled: bool = Field(default=True, description="Whether this server is enabled")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate that URL starts with http:// or https://."""
        if v is not None and not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v


class ToolCall(BaseModel):
    """A single named operation invoked on a named server.

    Attributes:
        server: Target server name
        tool: Tool name
        arguments: JSON-serializable arguments
        timeout: Optional per-attempt timeout override (seconds)
        retries: Optional retry budget override
    """

    server: str = Field(..., min_length=1, description="Target server name")
    tool: str = Field(..., min_length=1, description="Tool name")
    arguments: dict[str, Any] = Field(default_factory=dict, description="Tool arguments")
    timeout: Optional[float] = Field(None, gt=0, description="Per-attempt timeout override")
    retries: Optional[int] = Field(None, ge=0, description="Retry budget override")

    @property
    def full_name(self) -> str:
        """Get the call target in "server:tool" format."""
        return f"{self.server}:{self.tool}"


class ResponseMetadata(BaseModel):
    """Metadata attached to every tool response.

    Attributes:
        server: Server name
        tool: Tool name
        duration: Wall time in seconds
        timestamp: ISO-8601 completion time
        retries: Retries used (attempts - 1)
    """

    server: str
    tool: str
    duration: float = 0.0
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    retries: int = 0


ErrorCode = Literal["SERVER_NOT_FOUND", "RATE_LIMIT_EXCEEDED", "TOOL_EXECUTION_ERROR", "BATCH_CALL_ERROR"]


class ToolResponse(BaseModel):
    """Uniform response envelope returned by the tool-call client.

    Attributes:
        success: Whether the call succeeded
        data: Tool output on success
        error: Error message on failure
        error_code: Machine-readable failure category
        metadata: Call metadata
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    data: Any = None
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    metadata: ResponseMetadata

    @classmethod
    def failure(
        cls,
        call: ToolCall,
        error: str,
        error_code: ErrorCode,
        duration: float = 0.0,
        retries: int = 0,
    ) -> "ToolResponse":
        """Build a failed response for a call.

        Args:
            call: The originating call
            error: Error message
            error_code: Failure category
            duration: Elapsed seconds
            retries: Retries used

        Returns:
            Failed ToolResponse
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            metadata=ResponseMetadata(
                server=call.server,
                tool=call.tool,
                duration=duration,
                retries=retries,
            ),
        )

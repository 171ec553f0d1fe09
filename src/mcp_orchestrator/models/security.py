"""Security entities for the orchestration engine."""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class APIKeyRecord(BaseModel):
    """An API key bound to one server and a permission set.

    Attributes:
        key_id: The key itself
        server: Server the key grants access to
        permissions: Granted permissions (e.g. read, write, admin)
        expires_at: Optional expiry
    """

    key_id: str
    server: str
    permissions: frozenset[str] = Field(default_factory=frozenset)
    expires_at: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check whether the key has expired.

        Args:
            now: Reference time (default: current UTC time)

        Returns:
            True if the key has an expiry in the past
        """
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at < now


class AuditLogEntry(BaseModel):
    """One append-only audit record.

    Attributes:
        timestamp: When the action happened
        user_id: Acting user, if known
        action: Action name (tool_call, workflow_step, api_call, ...)
        server: Server involved
        tool: Tool or route involved
        arguments: Call arguments
        success: Outcome
        error: Error message on failure
        ip_address: Caller IP
        user_agent: Caller user agent
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    user_id: Optional[str] = None
    action: str
    server: str
    tool: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    success: bool
    error: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class EncryptedPayload(BaseModel):
    """Authenticated ciphertext with its nonce and tag, hex encoded."""

    encrypted: str
    iv: str
    tag: str

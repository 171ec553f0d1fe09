"""Security manager for the orchestration engine.

This module wires API-key authentication, per-caller rate limiting, input
sanitization, audit logging, encryption and origin allow-listing into one
owned object that the API layer and the orchestrator share.
"""

import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Optional

from ..config.schemas import SecurityConfig
from ..models import AuditLogEntry, EncryptedPayload
from ..tools.rate_limiter import SlidingWindowRateLimiter
from ..utils import get_logger
from .api_keys import APIKeyManager
from .audit import DEFAULT_MAX_ENTRIES, AuditLogger
from .encryption import EncryptionService
from .validator import InputValidator

logger = get_logger(__name__)

DEFAULT_PERMISSIONS = frozenset({"read", "write", "admin"})

SECURITY_HEADERS = {
    "Content-Security-Policy": "default-src 'self'; script-src 'self' 'unsafe-inline'; style-src 'self' 'unsafe-inline'",
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
}


class SecurityManager:
    """Owns every security concern shared by the API and the engine."""

    def __init__(
        self,
        config: SecurityConfig | dict,
        clock: Optional[Callable[[], float]] = None,
        audit_logger: Optional[AuditLogger] = None,
    ) -> None:
        """Initialize the security manager.

        Args:
            config: Security configuration (validated if given as a dict)
            clock: Monotonic time source for the caller rate limiter
            audit_logger: Audit log to share (a new one by default)
        """
        if isinstance(config, dict):
            config = SecurityConfig.model_validate(config)

        self.config = config
        self.api_keys = APIKeyManager()
        self.rate_limiter = SlidingWindowRateLimiter(clock or time.monotonic)
        self.audit_logger = audit_logger or AuditLogger(DEFAULT_MAX_ENTRIES)
        self.encryption = EncryptionService(config.encryption_key)

        for server, key in config.api_keys.items():
            if key:
                self.api_keys.add_key(key, server, DEFAULT_PERMISSIONS)
            else:
                logger.debug(f"No API key configured for server '{server}'")

    # Authentication

    def authenticate(self, api_key: str, server: str, permission: str) -> bool:
        """Check an API key for a server and permission."""
        return self.api_keys.validate_key(api_key, server, permission)

    def add_api_key(
        self,
        api_key: str,
        server: str,
        permissions: Iterable[str] = DEFAULT_PERMISSIONS,
        expires_at: Optional[datetime] = None,
    ) -> None:
        """Register an additional API key."""
        self.api_keys.add_key(api_key, server, permissions, expires_at)

    def issue_session_key(self, server: str, permissions: Iterable[str] = ("read",)) -> str:
        """Issue a random API key that expires after the session timeout.

        Args:
            server: Server the key grants access to
            permissions: Granted permissions

        Returns:
            The new key
        """
        key = self.encryption.generate_secure_token()
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=self.config.session_timeout)
        self.api_keys.add_key(key, server, permissions, expires_at)
        return key

    def revoke_api_key(self, api_key: str) -> bool:
        """Revoke an API key."""
        return self.api_keys.revoke_key(api_key)

    # Rate limiting

    def check_rate_limit(self, identifier: str) -> bool:
        """Admit or deny a request from a caller.

        Args:
            identifier: Caller identity (usually the client IP)

        Returns:
            True if admitted
        """
        limit = self.config.rate_limit
        allowed = self.rate_limiter.allow(identifier, limit.max_requests, limit.window)
        if not allowed:
            logger.warning(f"Client rate limit exceeded for '{identifier}'")
        return allowed

    def get_remaining_requests(self, identifier: str) -> int:
        """Get how many requests the caller may still make in this window."""
        limit = self.config.rate_limit
        return self.rate_limiter.remaining(identifier, limit.max_requests, limit.window)

    def get_reset_time(self, identifier: str) -> float:
        """Get seconds until the caller's oldest request leaves the window."""
        return self.rate_limiter.reset_time(identifier, self.config.rate_limit.window)

    # Input validation

    def validate_input(self, payload: Any) -> Any:
        """Sanitize a payload; see ``InputValidator.sanitize``."""
        return InputValidator.sanitize(payload)

    # Audit

    def log_audit(self, **fields) -> AuditLogEntry:
        """Append an audit entry."""
        return self.audit_logger.log(**fields)

    def get_audit_logs(
        self,
        server: Optional[str] = None,
        action: Optional[str] = None,
        success: Optional[bool] = None,
        user_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[AuditLogEntry]:
        """Query audit entries, most recent first."""
        return self.audit_logger.get_logs(server=server, action=action, success=success, user_id=user_id, limit=limit)

    def export_audit_logs(self) -> str:
        """Export all audit entries as JSON."""
        return self.audit_logger.export_logs()

    # Encryption

    def encrypt_sensitive_data(self, data: str) -> EncryptedPayload:
        """Encrypt a secret."""
        return self.encryption.encrypt(data)

    def decrypt_sensitive_data(self, payload: EncryptedPayload | dict) -> str:
        """Decrypt a secret produced by ``encrypt_sensitive_data``."""
        return self.encryption.decrypt(payload)

    def hash(self, text: str) -> str:
        """One-way SHA-256 digest."""
        return self.encryption.hash(text)

    def generate_secure_token(self, nbytes: int = 32) -> str:
        """Random hex token."""
        return self.encryption.generate_secure_token(nbytes)

    # Origins and headers

    def validate_origin(self, origin: Optional[str]) -> bool:
        """Check an origin against the allow-list; ``'*'`` allows everything."""
        if "*" in self.config.allowed_origins:
            return True
        return origin is not None and origin in self.config.allowed_origins

    def get_security_headers(self) -> dict[str, str]:
        """Headers added to every HTTP response."""
        return dict(SECURITY_HEADERS)

    def get_public_config(self) -> dict[str, Any]:
        """Get the configuration with secrets masked."""
        data = self.config.model_dump(mode="json", by_alias=True)
        data["apiKeys"] = {server: "***" for server in self.config.api_keys}
        data["encryptionKey"] = "***"
        return data

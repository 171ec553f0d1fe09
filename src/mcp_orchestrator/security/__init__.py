"""Security layer for the orchestration engine."""

from .api_keys import APIKeyManager
from .audit import AuditLogger
from .encryption import EncryptionService
from .manager import SECURITY_HEADERS, SecurityManager
from .validator import InputValidator

__all__ = [
    "APIKeyManager",
    "AuditLogger",
    "EncryptionService",
    "InputValidator",
    "SecurityManager",
    "SECURITY_HEADERS",
]

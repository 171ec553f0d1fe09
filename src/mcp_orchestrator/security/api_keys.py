"""API key management."""

from datetime import datetime
from typing import Iterable, Optional

from ..models import APIKeyRecord
from ..utils import get_logger

logger = get_logger(__name__)


def mask_key(key_id: str) -> str:
    """Mask all but the last four characters of a key."""
    if len(key_id) <= 4:
        return "***"
    return f"***{key_id[-4:]}"


class APIKeyManager:
    """In-memory API key table keyed by the key itself."""

    def __init__(self) -> None:
        self._keys: dict[str, APIKeyRecord] = {}

    def add_key(
        self,
        key_id: str,
        server: str,
        permissions: Iterable[str],
        expires_at: Optional[datetime] = None,
    ) -> APIKeyRecord:
        """Add or replace a key.

        Args:
            key_id: The key
            server: Server the key grants access to
            permissions: Granted permissions
            expires_at: Optional expiry

        Returns:
            The stored record
        """
        record = APIKeyRecord(
            key_id=key_id,
            server=server,
            permissions=frozenset(permissions),
            expires_at=expires_at,
        )
        self._keys[key_id] = record
        return record

    def validate_key(self, key_id: str, server: str, permission: str) -> bool:
        """Check a key against a server and a permission.

        Expired keys are evicted on lookup.

        Args:
            key_id: The key presented by the caller
            server: Server the caller wants to reach
            permission: Permission the operation requires

        Returns:
            True if the key exists, is unexpired, matches the server and
            carries the permission
        """
        record = self._keys.get(key_id)
        if record is None:
            return False

        if record.is_expired():
            logger.info(f"Evicting expired API key {mask_key(key_id)} for server '{record.server}'")
            del self._keys[key_id]
            return False

        return record.server == server and permission in record.permissions

    def revoke_key(self, key_id: str) -> bool:
        """Revoke a key. Returns True if it existed."""
        return self._keys.pop(key_id, None) is not None

    def list_keys(self) -> list[dict]:
        """List keys with their ids masked."""
        return [
            {
                "keyId": mask_key(record.key_id),
                "server": record.server,
                "permissions": sorted(record.permissions),
                "expiresAt": record.expires_at.isoformat() if record.expires_at else None,
            }
            for record in self._keys.values()
        ]

    def __len__(self) -> int:
        return len(self._keys)

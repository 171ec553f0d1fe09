"""Unit tests for the security layer."""

import json
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import BaseModel

from mcp_orchestrator.exceptions import DecryptionError, ValidationError
from mcp_orchestrator.security import (
    SECURITY_HEADERS,
    APIKeyManager,
    AuditLogger,
    EncryptionService,
    InputValidator,
    SecurityManager,
)
from mcp_orchestrator.security.api_keys import mask_key

ENCRYPTION_KEY = "0123456789abcdef0123456789abcdef"


class TestInputValidator:
    """Test suite for input sanitization."""

    @pytest.mark.parametrize(
        "payload",
        [
            "'; DROP TABLE users; --",
            "1 UNION SELECT password FROM users",
            "admin' OR '1'='1",
            "x OR 1=1",
            "name; DELETE FROM accounts",
            "value /* comment */",
        ],
    )
    def test_rejects_sql_injection(self, payload):
        with pytest.raises(ValidationError) as exc_info:
            InputValidator.sanitize(payload)
        assert exc_info.value.message == "Potential SQL injection detected"
        assert "pattern" in exc_info.value.details

    def test_strips_script_tags(self):
        result = InputValidator.sanitize("<script>alert(1)</script>")
        assert "<script" not in result.lower()
        assert "alert(1)" not in result

    def test_escapes_remaining_markup(self):
        result = InputValidator.sanitize('<b title="x">hi</b>')
        assert "<" not in result and ">" not in result
        assert result == "&lt;b title=&quot;x&quot;&gt;hi&lt;&#x2F;b&gt;"

    def test_strips_event_handlers_and_javascript_urls(self):
        result = InputValidator.sanitize('<a href="javascript:evil()" onclick="evil()">x</a>')
        assert "javascript:" not in result
        assert "onclick" not in result

    def test_plain_text_passes(self):
        assert InputValidator.sanitize("Analyze 12 properties in Lisbon") == "Analyze 12 properties in Lisbon"

    def test_recurses_into_containers(self):
        payload = {"name": "<i>x</i>", "tags": ["a/b", 3], "nested": {"ok": True, "n": None}}
        result = InputValidator.sanitize(payload)
        assert result == {
            "name": "&lt;i&gt;x&lt;&#x2F;i&gt;",
            "tags": ["a&#x2F;b", 3],
            "nested": {"ok": True, "n": None},
        }

    def test_does_not_mutate_input(self):
        payload = {"tags": ["<b>"]}
        InputValidator.sanitize(payload)
        assert payload == {"tags": ["<b>"]}

    def test_rejects_injection_in_nested_value(self):
        with pytest.raises(ValidationError):
            InputValidator.sanitize({"query": ["ok", "x; DROP TABLE users"]})

    def test_validate_schema(self):
        class Body(BaseModel):
            name: str
            count: int

        assert InputValidator.validate_schema({"name": "a", "count": 2}, Body).count == 2

        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_schema({"name": "a"}, Body)
        assert exc_info.value.details == [{"field": "count", "message": "Field required"}]


class TestEncryptionService:
    """Test suite for authenticated encryption."""

    @pytest.fixture
    def service(self):
        return EncryptionService(ENCRYPTION_KEY)

    def test_round_trip(self, service):
        payload = service.encrypt("postgres://user:secret@db/app")
        assert service.decrypt(payload) == "postgres://user:secret@db/app"

    def test_payload_shape(self, service):
        payload = service.encrypt("secret")
        assert len(bytes.fromhex(payload.iv)) == 12
        assert len(bytes.fromhex(payload.tag)) == 16
        assert "secret" not in payload.encrypted

    def test_nonce_is_random(self, service):
        assert service.encrypt("same").iv != service.encrypt("same").iv

    def test_decrypt_accepts_dict(self, service):
        payload = service.encrypt("secret").model_dump()
        assert service.decrypt(payload) == "secret"

    def test_tampered_ciphertext_rejected(self, service):
        payload = service.encrypt("secret")
        flipped = format(int(payload.encrypted[:2], 16) ^ 0x01, "02x") + payload.encrypted[2:]
        with pytest.raises(DecryptionError):
            service.decrypt(payload.model_copy(update={"encrypted": flipped}))

    def test_wrong_key_rejected(self, service):
        payload = service.encrypt("secret")
        other = EncryptionService("fedcba9876543210fedcba9876543210")
        with pytest.raises(DecryptionError):
            other.decrypt(payload)

    def test_malformed_payload_rejected(self, service):
        with pytest.raises(DecryptionError):
            service.decrypt({"encrypted": "zz", "iv": "00", "tag": "00"})

    def test_short_key_rejected(self):
        with pytest.raises(ValueError):
            EncryptionService("too-short")

    def test_hash(self):
        assert EncryptionService.hash("abc") == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"

    def test_secure_token(self):
        token = EncryptionService.generate_secure_token(16)
        assert len(token) == 32
        assert token != EncryptionService.generate_secure_token(16)


class TestAuditLogger:
    """Test suite for the audit ring buffer."""

    def test_most_recent_first(self):
        """Test that unfiltered queries return entries in reverse call order."""
        logger = AuditLogger()
        for i in range(5):
            logger.log(action="tool_call", server="s", tool=f"t{i}", success=True)
        assert [entry.tool for entry in logger.get_logs()] == ["t4", "t3", "t2", "t1", "t0"]

    def test_evicts_oldest(self):
        logger = AuditLogger(max_entries=3)
        for i in range(5):
            logger.log(action="tool_call", server="s", tool=f"t{i}", success=True)
        assert len(logger) == 3
        assert [entry.tool for entry in logger.get_logs()] == ["t4", "t3", "t2"]

    def test_filters(self):
        logger = AuditLogger()
        logger.log(action="tool_call", server="neon", tool="a", success=True, user_id="u1")
        logger.log(action="tool_call", server="railway", tool="b", success=False, error="x")
        logger.log(action="api_call", server="neon", tool="/mcp/health", success=True)

        assert [e.tool for e in logger.get_logs(server="neon")] == ["/mcp/health", "a"]
        assert [e.tool for e in logger.get_logs(action="tool_call")] == ["b", "a"]
        assert [e.tool for e in logger.get_logs(success=False)] == ["b"]
        assert [e.tool for e in logger.get_logs(user_id="u1")] == ["a"]
        assert [e.tool for e in logger.get_logs(limit=2)] == ["/mcp/health", "b"]
        assert logger.get_logs(limit=0) == []

    def test_accepts_camel_case_fields(self):
        entry = AuditLogger().log(action="api_call", server="s", tool="t", success=True, ipAddress="10.0.0.1")
        assert entry.ip_address == "10.0.0.1"

    def test_export(self):
        logger = AuditLogger()
        logger.log(action="tool_call", server="s", tool="first", success=True)
        logger.log(action="tool_call", server="s", tool="second", success=True, user_id="u1")

        exported = json.loads(logger.export_logs())
        assert [entry["tool"] for entry in exported] == ["second", "first"]
        assert exported[0]["userId"] == "u1"

    def test_clear(self):
        logger = AuditLogger()
        logger.log(action="tool_call", server="s", tool="t", success=True)
        logger.clear()
        assert len(logger) == 0

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            AuditLogger(max_entries=0)


class TestAPIKeyManager:
    """Test suite for API key management."""

    def test_validate(self):
        keys = APIKeyManager()
        keys.add_key("key-1", "neon", ["read"])

        assert keys.validate_key("key-1", "neon", "read")
        assert not keys.validate_key("key-1", "neon", "write")
        assert not keys.validate_key("key-1", "railway", "read")
        assert not keys.validate_key("missing", "neon", "read")

    def test_expired_key_is_evicted(self):
        keys = APIKeyManager()
        keys.add_key("key-1", "neon", ["read"], expires_at=datetime.now(timezone.utc) - timedelta(seconds=1))

        assert not keys.validate_key("key-1", "neon", "read")
        assert len(keys) == 0

    def test_revoke(self):
        keys = APIKeyManager()
        keys.add_key("key-1", "neon", ["read"])
        assert keys.revoke_key("key-1")
        assert not keys.revoke_key("key-1")
        assert not keys.validate_key("key-1", "neon", "read")

    def test_list_keys_masks_ids(self):
        keys = APIKeyManager()
        keys.add_key("secret-key-abcd", "neon", ["write", "read"])
        assert keys.list_keys() == [
            {"keyId": "***abcd", "server": "neon", "permissions": ["read", "write"], "expiresAt": None}
        ]

    def test_mask_short_key(self):
        assert mask_key("abc") == "***"


class TestSecurityManager:
    """Test suite for SecurityManager."""

    @pytest.fixture
    def manager(self, clock):
        return SecurityManager(
            {
                "apiKeys": {"neon": "neon-key", "railway": ""},
                "encryptionKey": ENCRYPTION_KEY,
                "rateLimit": {"window": 60, "maxRequests": 2},
                "allowedOrigins": ["https://app.example.com"],
            },
            clock=clock,
        )

    def test_configured_keys_get_default_permissions(self, manager):
        for permission in ("read", "write", "admin"):
            assert manager.authenticate("neon-key", "neon", permission)
        assert not manager.authenticate("neon-key", "railway", "read")

    def test_empty_keys_are_skipped(self, manager):
        assert not manager.authenticate("", "railway", "read")
        assert len(manager.api_keys) == 1

    def test_add_and_revoke_key(self, manager):
        manager.add_api_key("ops-key", "railway", ["read"])
        assert manager.authenticate("ops-key", "railway", "read")
        assert not manager.authenticate("ops-key", "railway", "write")

        assert manager.revoke_api_key("ops-key")
        assert not manager.authenticate("ops-key", "railway", "read")

    def test_session_key_expires(self, manager):
        key = manager.issue_session_key("neon")
        assert manager.authenticate(key, "neon", "read")
        record = manager.api_keys._keys[key]
        assert record.expires_at > datetime.now(timezone.utc) + timedelta(seconds=3500)

    def test_client_rate_limit(self, manager, clock):
        assert manager.check_rate_limit("10.0.0.1")
        assert manager.get_remaining_requests("10.0.0.1") == 1
        assert manager.check_rate_limit("10.0.0.1")
        assert not manager.check_rate_limit("10.0.0.1")
        assert manager.check_rate_limit("10.0.0.2")

        clock.advance(15.0)
        assert manager.get_reset_time("10.0.0.1") == pytest.approx(45.0)
        clock.advance(45.0)
        assert manager.check_rate_limit("10.0.0.1")

    def test_validate_input(self, manager):
        assert manager.validate_input({"q": "<b>"}) == {"q": "&lt;b&gt;"}
        with pytest.raises(ValidationError):
            manager.validate_input("'; DROP TABLE users; --")

    def test_audit_round_trip(self, manager):
        manager.log_audit(action="tool_call", server="neon", tool="a", success=True)
        manager.log_audit(action="tool_call", server="neon", tool="b", success=False)
        assert [e.tool for e in manager.get_audit_logs()] == ["b", "a"]
        assert len(json.loads(manager.export_audit_logs())) == 2

    def test_encryption_helpers(self, manager):
        payload = manager.encrypt_sensitive_data("token")
        assert manager.decrypt_sensitive_data(payload) == "token"
        assert manager.hash("abc") == EncryptionService.hash("abc")
        assert len(manager.generate_secure_token()) == 64

    def test_validate_origin(self, manager):
        assert manager.validate_origin("https://app.example.com")
        assert not manager.validate_origin("https://evil.example.com")
        assert not manager.validate_origin(None)

    def test_wildcard_origin(self):
        manager = SecurityManager({"encryptionKey": ENCRYPTION_KEY})
        assert manager.validate_origin("https://anything.example.com")
        assert manager.validate_origin(None)

    def test_security_headers(self, manager):
        headers = manager.get_security_headers()
        assert headers == SECURITY_HEADERS
        assert headers["X-Frame-Options"] == "DENY"
        headers["X-Frame-Options"] = "ALLOW"
        assert SECURITY_HEADERS["X-Frame-Options"] == "DENY"

    def test_public_config_masks_secrets(self, manager):
        public = manager.get_public_config()
        assert public["encryptionKey"] == "***"
        assert public["apiKeys"] == {"neon": "***", "railway": "***"}
        assert public["rateLimit"] == {"window": 60.0, "maxRequests": 2}

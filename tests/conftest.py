"""Test configuration and fixtures for orchestration engine tests.

This module provides shared fixtures and configuration for all tests.
"""

import asyncio
import logging
from typing import Any

import pytest

from mcp_orchestrator.config import OrchestratorSettings, SecurityConfig
from mcp_orchestrator.execution import Orchestrator
from mcp_orchestrator.models import RateLimitConfig, ServerConfig
from mcp_orchestrator.security import AuditLogger
from mcp_orchestrator.tools import CallableToolBackend, SlidingWindowRateLimiter, ToolClient
from mcp_orchestrator.utils import ColoredFormatter, StructuredFormatter

ENCRYPTION_KEY = "0123456789abcdef0123456789abcdef"
TEST_API_KEY = "test-api-key-0001"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FlakyTool:
    """Tool handler that fails a fixed number of times before succeeding."""

    def __init__(self, failures: int, result: Any = "ok") -> None:
        self.failures = failures
        self.result = result
        self.calls = 0

    def __call__(self, **kwargs: Any) -> Any:
        self.calls += 1
        if self.calls <= self.failures:
            raise RuntimeError(f"failure #{self.calls}")
        return self.result


class ConcurrencyProbe:
    """Async tool handler that records start order and peak concurrency."""

    def __init__(self, delay: float = 0.02) -> None:
        self.delay = delay
        self.running = 0
        self.peak = 0
        self.started: list[str] = []
        self.finished: list[str] = []

    async def __call__(self, name: str = "", **kwargs: Any) -> dict[str, Any]:
        self.running += 1
        self.peak = max(self.peak, self.running)
        self.started.append(name)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.running -= 1
        self.finished.append(name)
        return {"name": name, **kwargs}


@pytest.fixture(scope="function")
def clock():
    """Create a fake clock."""
    return FakeClock()


@pytest.fixture(scope="function")
def flaky_tool():
    """Factory for tools that fail a fixed number of times."""
    return FlakyTool


@pytest.fixture(scope="function")
def probe():
    """Create a concurrency probe tool."""
    return ConcurrencyProbe()


@pytest.fixture(scope="function")
def audit_logger():
    """Create an audit logger."""
    return AuditLogger(max_entries=100)


@pytest.fixture(scope="function")
def backend():
    """Create an in-process backend with a few tools."""

    def fail(**kwargs):
        raise RuntimeError("tool exploded")

    return CallableToolBackend(
        {
            "echo": lambda **kwargs: kwargs,
            "fail": fail,
        }
    )


@pytest.fixture(scope="function")
def client(clock, audit_logger, backend):
    """Create a ToolClient with zero backoff and one registered server."""
    tool_client = ToolClient(
        retry_delays=(0.0,),
        audit_logger=audit_logger,
        rate_limiter=SlidingWindowRateLimiter(clock),
    )
    tool_client.register_server(ServerConfig(name="local", timeout=5.0, retries=2), backend)
    return tool_client


@pytest.fixture(scope="function")
def security_config():
    """Create a security configuration suitable for plain-HTTP tests."""
    return SecurityConfig(
        api_keys={"local": TEST_API_KEY},
        encryption_key=ENCRYPTION_KEY,
        allowed_origins=["https://app.example.com"],
        require_https=False,
    )


@pytest.fixture(scope="function")
def orchestrator(security_config, backend):
    """Create an orchestrator without built-in servers and with zero backoff."""
    settings = OrchestratorSettings(
        security=security_config,
        client={"retryDelays": [0.0]},
        swarm_platform="platform",
        register_defaults=False,
    )
    instance = Orchestrator(settings)
    instance.register_server(
        ServerConfig(name="local", timeout=5.0, retries=0, rate_limit=RateLimitConfig(requests=50, window=60.0)),
        backend,
    )
    return instance


@pytest.fixture(scope="function")
def restore_logging():
    """Undo setup_logging() calls made by a test."""
    root = logging.getLogger()
    level = root.level
    yield root
    for handler in root.handlers[:]:
        if isinstance(handler.formatter, (StructuredFormatter, ColoredFormatter)):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests (full stack, in-process)")
    config.addinivalue_line("markers", "unit: marks tests as unit tests (no external dependencies)")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on test location."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)

        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)

"""Tool-call layer for the orchestration engine.

- Backends: opaque external collaborators reached by tool name
- Client: uniform call shape with rate limiting, retries and backoff
"""

from .backends import CallableToolBackend, HTTPToolBackend, MCPMessage, ToolBackend, create_backend
from .client import ToolClient
from .rate_limiter import SlidingWindowRateLimiter

__all__ = [
    # Backends
    "ToolBackend",
    "CallableToolBackend",
    "HTTPToolBackend",
    "MCPMessage",
    "create_backend",
    # Client
    "ToolClient",
    "SlidingWindowRateLimiter",
]

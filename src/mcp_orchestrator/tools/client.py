"""Tool-call client for the orchestration engine.

This module provides server registration and the uniform ``call_tool``
entry point with per-server rate limiting, bounded retries and exponential
backoff.
"""

import asyncio
import time
from typing import TYPE_CHECKING, Optional, Sequence

import pydantic

from ..exceptions import ToolExecutionError
from ..models import ServerConfig, ToolCall, ToolResponse
from ..models.tool import ResponseMetadata
from ..utils import DEFAULT_RETRY_DELAYS, delay_for_attempt, get_logger
from .backends import ToolBackend, create_backend
from .rate_limiter import SlidingWindowRateLimiter

if TYPE_CHECKING:
    from ..security.audit import AuditLogger

logger = get_logger(__name__)


class ToolClient:
    """Uniform client for invoking tools on registered servers.

    Failures never raise out of ``call_tool``: they come back as a
    ``ToolResponse`` with ``success=False`` so batch and workflow callers can
    continue past individual failures.
    """

    def __init__(
        self,
        retry_delays: Sequence[float] = DEFAULT_RETRY_DELAYS,
        audit_logger: Optional["AuditLogger"] = None,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
    ) -> None:
        """Initialize the tool client.

        Args:
            retry_delays: Backoff schedule in seconds; the last value repeats
            audit_logger: Optional audit log receiving one entry per call
            rate_limiter: Per-server limiter (a private one by default)
        """
        self.retry_delays = tuple(retry_delays)
        self.audit_logger = audit_logger
        self.rate_limiter = rate_limiter if rate_limiter is not None else SlidingWindowRateLimiter()
        self.servers: dict[str, ServerConfig] = {}
        self.backends: dict[str, ToolBackend] = {}
        self._retired: list[tuple[str, ToolBackend]] = []
        self._closing: set[asyncio.Task] = set()

    def register_server(self, config: ServerConfig | dict, backend: Optional[ToolBackend] = None) -> ServerConfig:
        """Register a server, replacing any previous registration.

        A replaced backend is closed: immediately when called inside a running
        event loop, otherwise by ``close()``.

        Args:
            config: Server configuration (validated if given as a dict)
            backend: Backend to dispatch calls to (default: derived from config)

        Returns:
            The stored configuration
        """
        if isinstance(config, dict):
            config = ServerConfig.model_validate(config)

        if config.name in self.servers:
            logger.info(f"Replacing registration for server: {config.name}")
        else:
            logger.info(f"Registering server: {config.name}")

        self.servers[config.name] = config
        self.rate_limiter.reset(config.name)

        backend = backend or create_backend(config)
        previous = self.backends.pop(config.name, None)
        if backend is not None:
            self.backends[config.name] = backend
        if previous is not None and previous is not backend:
            self._retire_backend(config.name, previous)
        return config

    def unregister_server(self, name: str) -> bool:
        """Remove a server registration.

        Args:
            name: Server name

        Returns:
            True if the server was registered
        """
        previous = self.backends.pop(name, None)
        if previous is not None:
            self._retire_backend(name, previous)
        self.rate_limiter.reset(name)
        return self.servers.pop(name, None) is not None

    def _retire_backend(self, name: str, backend: ToolBackend) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Closed later by close()
            self._retired.append((name, backend))
            return
        task = loop.create_task(self._close_backend(name, backend))
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    async def _close_backend(self, name: str, backend: ToolBackend) -> None:
        try:
            await backend.close()
        except Exception as e:
            logger.error(f"Error closing backend for {name}: {e}")

    def get_server_config(self, name: str) -> Optional[ServerConfig]:
        """Get a server configuration by name."""
        return self.servers.get(name)

    def list_servers(self) -> list[str]:
        """List registered server names."""
        return list(self.servers.keys())

    async def call_tool(self, call: ToolCall | dict) -> ToolResponse:
        """Invoke a tool on a registered server.

        Args:
            call: Tool call (validated if given as a dict)

        Returns:
            Uniform response envelope
        """
        if isinstance(call, dict):
            call = ToolCall.model_validate(call)

        response = await self._call_tool(call)
        self._audit(call, response)
        return response

    async def _call_tool(self, call: ToolCall) -> ToolResponse:
        start = time.monotonic()
        server = self.servers.get(call.server)

        if server is None:
            logger.warning(f"Tool call to unknown server: {call.full_name}")
            return ToolResponse.failure(call, f"MCP server '{call.server}' not found", "SERVER_NOT_FOUND")

        if server.rate_limit and not self.rate_limiter.allow(
            server.name, server.rate_limit.requests, server.rate_limit.window
        ):
            logger.warning(f"Rate limit exceeded for server '{server.name}'")
            return ToolResponse.failure(
                call,
                f"Rate limit exceeded for server '{server.name}'",
                "RATE_LIMIT_EXCEEDED",
                duration=time.monotonic() - start,
            )

        retries = server.retries if call.retries is None else call.retries
        timeout = call.timeout or server.timeout
        last_error: Optional[str] = None

        for attempt in range(retries + 1):
            try:
                data = await asyncio.wait_for(self._execute(server, call, timeout), timeout=timeout)
                return ToolResponse(
                    success=True,
                    data=data,
                    metadata=ResponseMetadata(
                        server=call.server,
                        tool=call.tool,
                        duration=time.monotonic() - start,
                        retries=attempt,
                    ),
                )
            except asyncio.TimeoutError:
                last_error = f"Tool call timed out after {timeout}s: {call.full_name}"
            except Exception as e:
                last_error = str(e) or type(e).__name__

            if attempt < retries:
                delay = delay_for_attempt(self.retry_delays, attempt)
                logger.warning(
                    f"Tool call {call.full_name} failed (attempt {attempt + 1}/{retries + 1}): "
                    f"{last_error}. Retrying in {delay:.2f}s..."
                )
                await asyncio.sleep(delay)

        logger.error(f"Tool call {call.full_name} failed after {retries + 1} attempts: {last_error}")
        return ToolResponse.failure(
            call,
            last_error or "Unknown error",
            "TOOL_EXECUTION_ERROR",
            duration=time.monotonic() - start,
            retries=retries,
        )

    async def _execute(self, server: ServerConfig, call: ToolCall, timeout: float) -> object:
        backend = self.backends.get(server.name)
        if backend is None:
            raise ToolExecutionError(f"No backend attached for server '{server.name}'")
        return await backend.call(call.tool, call.arguments, timeout)

    async def batch_call(self, calls: Sequence[ToolCall | dict]) -> list[ToolResponse]:
        """Invoke several tools concurrently.

        One failing call never aborts its siblings; results keep input order.

        Args:
            calls: Tool calls

        Returns:
            One response per call
        """

        async def call_isolated(raw: ToolCall | dict) -> ToolResponse:
            try:
                call = raw if isinstance(raw, ToolCall) else ToolCall.model_validate(raw)
            except pydantic.ValidationError as e:
                fields = raw if isinstance(raw, dict) else {}
                logger.warning(f"Rejected malformed batch call: {e.error_count()} validation error(s)")
                return ToolResponse(
                    success=False,
                    error=f"Invalid tool call: {e}",
                    error_code="BATCH_CALL_ERROR",
                    metadata=ResponseMetadata(server=str(fields.get("server", "")), tool=str(fields.get("tool", ""))),
                )
            try:
                return await self.call_tool(call)
            except Exception as e:
                logger.error(f"Batch call {call.full_name} raised: {e}")
                return ToolResponse.failure(call, str(e), "BATCH_CALL_ERROR")

        return list(await asyncio.gather(*[call_isolated(call) for call in calls]))

    async def health_check(self) -> dict[str, bool]:
        """Probe every registered server once.

        Probes bypass rate limiting and retries.

        Returns:
            Server name to health mapping
        """

        async def probe(name: str) -> bool:
            backend = self.backends.get(name)
            if backend is None:
                return False
            try:
                return bool(await asyncio.wait_for(backend.ping(), timeout=self.servers[name].timeout))
            except Exception as e:
                logger.warning(f"Health probe for '{name}' failed: {e}")
                return False

        names = self.list_servers()
        results = await asyncio.gather(*[probe(name) for name in names])
        return dict(zip(names, results))

    def _audit(self, call: ToolCall, response: ToolResponse) -> None:
        if self.audit_logger is None:
            return
        self.audit_logger.log(
            action="tool_call",
            server=call.server,
            tool=call.tool,
            arguments=call.arguments,
            success=response.success,
            error=response.error,
        )

    async def close(self) -> None:
        """Close all backends."""
        logger.info("Closing tool backends")
        if self._closing:
            await asyncio.gather(*self._closing)
        retired, self._retired = self._retired, []
        for name, backend in [*retired, *self.backends.items()]:
            await self._close_backend(name, backend)

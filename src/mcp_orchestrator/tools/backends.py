"""Tool backends for the orchestration engine.

A backend is the opaque external collaborator behind a server name. The client
never assumes backend semantics: it only calls a named tool with JSON
arguments and receives JSON back.
"""

import asyncio
import inspect
import json
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional, Union

import aiohttp
from pydantic import BaseModel

from ..exceptions import ToolExecutionError
from ..models import ServerConfig
from ..utils import generate_request_id, get_logger

logger = get_logger(__name__)

ToolHandler = Callable[..., Union[Any, Awaitable[Any]]]


class MCPMessage(BaseModel):
    """JSON-RPC 2.0 message exchanged with HTTP servers.

    Attributes:
        jsonrpc: JSON-RPC version (always "2.0")
        id: Request ID
        method: Method name
        params: Method parameters
        result: Result (for responses)
        error: Error (for error responses)
    """

    jsonrpc: str = "2.0"
    id: str | int | None = None
    method: str | None = None
    params: dict[str, Any] | None = None
    result: Any | None = None
    error: dict[str, Any] | None = None


class ToolBackend(ABC):
    """Abstract base class for tool backends."""

    @abstractmethod
    async def call(self, tool: str, arguments: dict[str, Any], timeout: float) -> Any:
        """Invoke a tool.

        Args:
            tool: Tool name
            arguments: Tool arguments
            timeout: Seconds the caller is willing to wait

        Returns:
            Tool output

        Raises:
            ToolExecutionError: If the tool fails
        """

    async def ping(self) -> bool:
        """Probe backend liveness.

        Returns:
            True if the backend is reachable
        """
        return True

    async def close(self) -> None:
        """Release backend resources."""


class CallableToolBackend(ToolBackend):
    """In-process backend dispatching to registered Python callables.

    Handlers receive the tool arguments as keyword arguments and may be plain
    functions or coroutines.
    """

    def __init__(self, handlers: Optional[dict[str, ToolHandler]] = None) -> None:
        """Initialize the callable backend.

        Args:
            handlers: Tool name to handler mapping
        """
        self.handlers: dict[str, ToolHandler] = dict(handlers or {})

    def register(self, tool: str, handler: ToolHandler) -> None:
        """Register or replace a tool handler."""
        self.handlers[tool] = handler

    async def call(self, tool: str, arguments: dict[str, Any], timeout: float) -> Any:
        handler = self.handlers.get(tool)
        if handler is None:
            raise ToolExecutionError(f"Tool '{tool}' not available")

        result = handler(**arguments)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def ping(self) -> bool:
        handler = self.handlers.get("health_check")
        if handler is None:
            return True
        result = handler()
        if inspect.isawaitable(result):
            result = await result
        return result is not False


class HTTPToolBackend(ToolBackend):
    """JSON-RPC over HTTP POST.

    Tool calls are sent as ``tools/call`` requests with ``{name, arguments}``
    params; probes use the ``ping`` method.
    """

    def __init__(self, config: ServerConfig) -> None:
        """Initialize the HTTP backend.

        Args:
            config: Server configuration (``url`` is required)
        """
        if not config.url:
            raise ValueError(f"Server '{config.name}' has no URL configured")
        self.config = config
        self.session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()
        return self.session

    async def _send(self, message: MCPMessage, timeout: float) -> MCPMessage:
        message.id = generate_request_id()

        headers = {"Content-Type": "application/json"}
        headers.update(self.config.headers)

        data = message.model_dump_json(exclude_none=True)
        try:
            async with self._get_session().post(
                self.config.url,
                data=data,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as response:
                text = await response.text()
                if response.status >= 400:
                    raise ToolExecutionError(
                        f"HTTP {response.status} from server '{self.config.name}': {text[:200]}"
                    )
                response_data = json.loads(text) if text.strip() else {}
                return MCPMessage(**response_data)
        except asyncio.TimeoutError:
            raise ToolExecutionError(f"Request timed out: {self.config.name}:{message.method}")
        except aiohttp.ClientError as e:
            raise ToolExecutionError(f"Connection to server '{self.config.name}' failed: {e}")
        except json.JSONDecodeError as e:
            raise ToolExecutionError(f"Invalid JSON from server '{self.config.name}': {e}")

    async def call(self, tool: str, arguments: dict[str, Any], timeout: float) -> Any:
        message = MCPMessage(method="tools/call", params={"name": tool, "arguments": arguments})
        response = await self._send(message, timeout)

        if response.error:
            error_msg = response.error.get("message", "Unknown error")
            raise ToolExecutionError(f"Tool execution failed: {error_msg}")
        return response.result

    async def ping(self) -> bool:
        try:
            response = await self._send(MCPMessage(method="ping"), self.config.timeout)
        except ToolExecutionError as e:
            logger.debug(f"Ping to '{self.config.name}' failed: {e}")
            return False
        return response.error is None

    async def close(self) -> None:
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None


def create_backend(config: ServerConfig) -> Optional[ToolBackend]:
    """Create the default backend for a server configuration.

    Args:
        config: Server configuration

    Returns:
        HTTP backend when a URL is configured, otherwise None
    """
    if config.url:
        return HTTPToolBackend(config)
    return None

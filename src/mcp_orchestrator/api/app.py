"""HTTP API for the orchestration engine.

A thin ``aiohttp.web`` wrapper around the orchestrator. Every route lives
under ``/mcp`` and passes through the security middlewares: error envelope,
HTTPS enforcement, API-key authentication, client rate limiting, origin
allow-listing and audit logging. Security headers are added to every response.
"""

import json
import os
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

import psutil
from aiohttp import web
from pydantic import BaseModel

from ..exceptions import (
    AuthenticationError,
    ExecutionNotFoundError,
    OrchestratorError,
    RateLimitExceeded,
    ServerNotFoundError,
    SwarmNotFoundError,
    SwarmPlatformError,
    ValidationError,
    WorkflowNotFoundError,
    WorkflowValidationError,
)
from ..execution import Orchestrator
from ..models import SwarmConfig, ToolCall
from ..security.validator import InputValidator
from ..utils import get_logger
from . import responses
from .schemas import BatchCallRequest, SwarmTaskRequest, WorkflowExecuteRequest

logger = get_logger(__name__)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

ORCHESTRATOR_KEY = web.AppKey("orchestrator", Orchestrator)

API_PREFIX = "/mcp"
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
DEFAULT_AUDIT_LIMIT = 100

# Checked in order; subclasses before their bases
ERROR_STATUS: list[tuple[type[OrchestratorError], int]] = [
    (WorkflowNotFoundError, 404),
    (ExecutionNotFoundError, 404),
    (SwarmNotFoundError, 404),
    (ServerNotFoundError, 404),
    (SwarmPlatformError, 502),
    (WorkflowValidationError, 400),
    (ValidationError, 400),
    (AuthenticationError, 403),
    (RateLimitExceeded, 429),
]


def status_for(error: OrchestratorError) -> int:
    """Map a domain exception to an HTTP status."""
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 500


def _orchestrator(request: web.Request) -> Orchestrator:
    return request.app[ORCHESTRATOR_KEY]


# Middlewares


@web.middleware
async def security_headers_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Add security headers to every response, error responses included."""
    try:
        response = await handler(request)
    except web.HTTPException as e:
        e.headers.update(_orchestrator(request).security.get_security_headers())
        raise
    response.headers.update(_orchestrator(request).security.get_security_headers())
    return response


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Turn exceptions into error envelopes."""
    try:
        return await handler(request)
    except OrchestratorError as e:
        status = status_for(e)
        if status >= 500:
            logger.error(f"{request.method} {request.path} failed: {e.message}")
        return responses.error_response(e.message, e.code, status, e.details)
    except web.HTTPException as e:
        if e.status < 400:
            raise
        code = "NOT_FOUND" if e.status == 404 else e.reason.upper().replace(" ", "_")
        return responses.error_response(e.reason, code, e.status)
    except Exception as e:
        logger.exception(f"Unhandled error in {request.method} {request.path}: {e}")
        return responses.error_response("Internal server error", "INTERNAL_ERROR", 500)


@web.middleware
async def https_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Reject plain HTTP when the security config requires HTTPS."""
    if _orchestrator(request).security.config.require_https:
        forwarded = request.headers.get("X-Forwarded-Proto", "").lower()
        if request.scheme != "https" and forwarded != "https":
            return responses.error_response("HTTPS required", "HTTPS_REQUIRED", 403)
    return await handler(request)


@web.middleware
async def auth_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Require an API key valid for the ``x-server`` server.

    GET requests need ``read``; every other method needs ``write``.
    """
    api_key = request.headers.get("x-api-key")
    if not api_key:
        return responses.error_response("API key required", "MISSING_API_KEY", 401)

    server = request.headers.get("x-server", "unknown")
    permission = "read" if request.method in ("GET", "HEAD") else "write"
    if not _orchestrator(request).security.authenticate(api_key, server, permission):
        return responses.error_response(
            "Invalid API key or insufficient permissions", AuthenticationError.code, 403
        )
    return await handler(request)


@web.middleware
async def rate_limit_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Admit requests per client IP through the security manager's limiter."""
    security = _orchestrator(request).security
    client_id = request.remote or "unknown"
    if not security.check_rate_limit(client_id):
        response = responses.error_response("Rate limit exceeded", RateLimitExceeded.code, 429)
        response.headers["Retry-After"] = str(max(1, round(security.get_reset_time(client_id))))
        return response

    response = await handler(request)
    response.headers["X-RateLimit-Remaining"] = str(security.get_remaining_requests(client_id))
    return response


@web.middleware
async def origin_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Reject requests whose ``Origin`` is not allow-listed."""
    origin = request.headers.get("Origin")
    if origin and not _orchestrator(request).security.validate_origin(origin):
        return responses.error_response("Origin not allowed", "INVALID_ORIGIN", 403)
    return await handler(request)


@web.middleware
async def audit_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Record an ``api_call`` audit entry for every authenticated request."""
    security = _orchestrator(request).security

    def record(success: bool, error: Optional[str] = None) -> None:
        body = request.get("body")
        security.log_audit(
            action="api_call",
            server=request.headers.get("x-server", "api"),
            tool=request.path,
            arguments=body if isinstance(body, dict) else {},
            success=success,
            error=error,
            ip_address=request.remote,
            user_agent=request.headers.get("User-Agent"),
        )

    try:
        response = await handler(request)
    except Exception as e:
        record(False, str(e))
        raise
    record(200 <= response.status < 300)
    return response


# Helpers


async def read_body(request: web.Request, model: type[BaseModel]) -> Any:
    """Parse, sanitize and validate a JSON body.

    Raises:
        ValidationError: If the body is not JSON, fails sanitization or does
            not match the model
    """
    try:
        raw = await request.json()
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON body: {e}")

    sanitized = _orchestrator(request).security.validate_input(raw)
    request["body"] = sanitized
    return InputValidator.validate_schema(sanitized, model)


def _int_query(request: web.Request, name: str, default: int, minimum: int, maximum: Optional[int] = None) -> int:
    raw = request.query.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"Query parameter '{name}' must be an integer")
    if value < minimum or (maximum is not None and value > maximum):
        raise ValidationError(f"Query parameter '{name}' out of range")
    return value


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


# Handlers


async def health(request: web.Request) -> web.Response:
    """GET /health"""
    health = await _orchestrator(request).health_check()
    healthy = health["mcp"]
    return responses.json_response(
        responses.success({"status": "healthy" if healthy else "unhealthy", "services": health}),
        status=200 if healthy else 503,
    )


async def tool_call(request: web.Request) -> web.Response:
    """POST /tool/call"""
    call = await read_body(request, ToolCall)
    response = await _orchestrator(request).client.call_tool(call)
    if response.success:
        return responses.json_response(responses.success(response.data, _dump(response.metadata)))

    status = {"RATE_LIMIT_EXCEEDED": 429, "SERVER_NOT_FOUND": 404}.get(response.error_code or "", 500)
    code = response.error_code if status != 500 else "TOOL_CALL_ERROR"
    return responses.error_response(response.error or "Tool call failed", code, status, _dump(response.metadata))


async def tool_batch(request: web.Request) -> web.Response:
    """POST /tool/batch"""
    batch = await read_body(request, BatchCallRequest)
    results = await _orchestrator(request).client.batch_call(batch.calls)
    return responses.json_response(responses.success(responses.batch_summary(results)))


async def workflow_execute(request: web.Request) -> web.Response:
    """POST /workflow/execute"""
    body = await read_body(request, WorkflowExecuteRequest)
    execution_id = await _orchestrator(request).execute_workflow(body.workflow_id, body.context)
    return responses.json_response(
        responses.success({"executionId": execution_id, "status": "started", "workflowId": body.workflow_id})
    )


async def workflow_execution(request: web.Request) -> web.Response:
    """GET /workflow/execution/{execution_id}"""
    execution_id = request.match_info["execution_id"]
    execution = _orchestrator(request).get_workflow_execution(execution_id)
    if execution is None:
        raise ExecutionNotFoundError(execution_id)
    return responses.json_response(responses.success(_dump(execution)))


async def workflow_executions(request: web.Request) -> web.Response:
    """GET /workflow/executions?page=&limit=&workflowId="""
    page = _int_query(request, "page", 1, 1)
    limit = _int_query(request, "limit", DEFAULT_PAGE_SIZE, 1, MAX_PAGE_SIZE)
    workflow_id = request.query.get("workflowId")

    executions = sorted(
        _orchestrator(request).list_workflow_executions(workflow_id),
        key=lambda e: e.start_time,
        reverse=True,
    )
    start = (page - 1) * limit
    items = [_dump(e) for e in executions[start : start + limit]]
    return responses.json_response(responses.paginated(items, page, limit, len(executions)))


async def workflow_cancel(request: web.Request) -> web.Response:
    """DELETE /workflow/execution/{execution_id}"""
    execution_id = request.match_info["execution_id"]
    if not _orchestrator(request).cancel_workflow_execution(execution_id):
        return responses.error_response(
            "Execution not found or cannot be cancelled", "CANCELLATION_FAILED", 404
        )
    return responses.json_response(responses.success({"cancelled": True}))


async def swarm_create(request: web.Request) -> web.Response:
    """POST /swarm/create"""
    config = await read_body(request, SwarmConfig)
    swarm_id = await _orchestrator(request).create_swarm(config)
    return responses.json_response(
        responses.success({"swarmId": swarm_id, "status": "created", "config": _dump(config)})
    )


async def swarm_status(request: web.Request) -> web.Response:
    """GET /swarm/{swarm_id}/status"""
    swarm_id = request.match_info["swarm_id"]
    status = await _orchestrator(request).get_swarm_status(swarm_id)
    if status is None:
        raise SwarmNotFoundError(swarm_id)
    return responses.json_response(responses.success(status))


async def swarm_task(request: web.Request) -> web.Response:
    """POST /swarm/{swarm_id}/task"""
    swarm_id = request.match_info["swarm_id"]
    body = await read_body(request, SwarmTaskRequest)
    task_id = await _orchestrator(request).orchestrate_swarm_task(swarm_id, body.task, body.context)
    return responses.json_response(responses.success({"taskId": task_id, "swarmId": swarm_id, "status": "started"}))


async def swarm_list(request: web.Request) -> web.Response:
    """GET /swarms"""
    swarms = _orchestrator(request).list_active_swarms()
    return responses.json_response(responses.success([_dump(s) for s in swarms]))


async def swarm_destroy(request: web.Request) -> web.Response:
    """DELETE /swarm/{swarm_id}"""
    swarm_id = request.match_info["swarm_id"]
    if not await _orchestrator(request).destroy_swarm(swarm_id):
        return responses.error_response(
            "Swarm not found or cannot be destroyed", "SWARM_DESTRUCTION_FAILED", 404
        )
    return responses.json_response(responses.success({"destroyed": True}))


async def audit_logs(request: web.Request) -> web.Response:
    """GET /security/audit-logs?server=&action=&success=&userId=&limit="""
    success_raw = request.query.get("success")
    if success_raw is not None and success_raw not in ("true", "false"):
        raise ValidationError("Query parameter 'success' must be 'true' or 'false'")

    logs = _orchestrator(request).security.get_audit_logs(
        server=request.query.get("server"),
        action=request.query.get("action"),
        success=None if success_raw is None else success_raw == "true",
        user_id=request.query.get("userId"),
        limit=_int_query(request, "limit", DEFAULT_AUDIT_LIMIT, 1),
    )
    return responses.json_response(responses.success([_dump(entry) for entry in logs]))


async def security_config(request: web.Request) -> web.Response:
    """GET /security/config"""
    return responses.json_response(responses.success(_orchestrator(request).security.get_public_config()))


async def stats(request: web.Request) -> web.Response:
    """GET /stats"""
    orchestrator = _orchestrator(request)
    process = psutil.Process(os.getpid())
    memory = process.memory_info()
    return responses.json_response(
        responses.success(
            {
                "orchestrator": orchestrator.get_stats(),
                "servers": orchestrator.client.list_servers(),
                "uptime": time.time() - process.create_time(),
                "memory": {"rss": memory.rss, "vms": memory.vms},
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        )
    )


def create_app(orchestrator: Orchestrator) -> web.Application:
    """Build the HTTP application.

    Args:
        orchestrator: Orchestrator the routes delegate to

    Returns:
        Configured aiohttp application
    """
    app = web.Application(
        middlewares=[
            security_headers_middleware,
            error_middleware,
            https_middleware,
            auth_middleware,
            rate_limit_middleware,
            origin_middleware,
            audit_middleware,
        ]
    )
    app[ORCHESTRATOR_KEY] = orchestrator

    app.add_routes(
        [
            web.get(f"{API_PREFIX}/health", health),
            web.post(f"{API_PREFIX}/tool/call", tool_call),
            web.post(f"{API_PREFIX}/tool/batch", tool_batch),
            web.post(f"{API_PREFIX}/workflow/execute", workflow_execute),
            web.get(f"{API_PREFIX}/workflow/execution/{{execution_id}}", workflow_execution),
            web.get(f"{API_PREFIX}/workflow/executions", workflow_executions),
            web.delete(f"{API_PREFIX}/workflow/execution/{{execution_id}}", workflow_cancel),
            web.post(f"{API_PREFIX}/swarm/create", swarm_create),
            web.get(f"{API_PREFIX}/swarm/{{swarm_id}}/status", swarm_status),
            web.post(f"{API_PREFIX}/swarm/{{swarm_id}}/task", swarm_task),
            web.get(f"{API_PREFIX}/swarms", swarm_list),
            web.delete(f"{API_PREFIX}/swarm/{{swarm_id}}", swarm_destroy),
            web.get(f"{API_PREFIX}/security/audit-logs", audit_logs),
            web.get(f"{API_PREFIX}/security/config", security_config),
            web.get(f"{API_PREFIX}/stats", stats),
        ]
    )

    async def on_cleanup(app: web.Application) -> None:
        await app[ORCHESTRATOR_KEY].close()

    app.on_cleanup.append(on_cleanup)
    return app

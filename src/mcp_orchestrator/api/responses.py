"""Stable response envelopes for the HTTP API."""

import json
import math
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from aiohttp import web

from ..models import ToolResponse


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def success(data: Any, metadata: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    """Build a success envelope."""
    envelope: dict[str, Any] = {"success": True, "data": data}
    if metadata is not None:
        envelope["metadata"] = metadata
    envelope["timestamp"] = _timestamp()
    return envelope


def error(message: str, code: str, details: Any = None) -> dict[str, Any]:
    """Build an error envelope."""
    return {
        "success": False,
        "error": {"message": message, "code": code, "details": details},
        "timestamp": _timestamp(),
    }


def paginated(items: Sequence[Any], page: int, limit: int, total: int) -> dict[str, Any]:
    """Build a paginated success envelope.

    Args:
        items: Items on this page
        page: 1-based page number
        limit: Page size
        total: Total number of items

    Returns:
        Envelope with a ``pagination`` block
    """
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "success": True,
        "data": list(items),
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": total_pages,
            "hasNext": page < total_pages,
            "hasPrev": page > 1,
        },
        "timestamp": _timestamp(),
    }


def batch_summary(responses: Sequence[ToolResponse]) -> dict[str, Any]:
    """Summarize a batch of tool responses."""
    successful = sum(1 for response in responses if response.success)
    return {
        "total": len(responses),
        "successful": successful,
        "failed": len(responses) - successful,
        "results": [response.model_dump(mode="json", by_alias=True) for response in responses],
    }


def _dumps(payload: Any) -> str:
    return json.dumps(payload, default=str)


def json_response(payload: dict[str, Any], status: int = 200) -> web.Response:
    """Serialize an envelope into a JSON response."""
    return web.json_response(payload, status=status, dumps=_dumps)


def error_response(message: str, code: str, status: int, details: Any = None) -> web.Response:
    """Build an error envelope response."""
    return json_response(error(message, code, details), status=status)

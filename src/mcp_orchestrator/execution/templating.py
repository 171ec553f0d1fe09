"""Argument templating for workflow steps.

Step arguments may reference earlier step output with
``${results.<stepId>[.<path>]}`` or the execution context with
``${metadata.<path>}``.
"""

import json
import re
from typing import Any

from ..exceptions import PlaceholderResolutionError

PLACEHOLDER_PATTERN = re.compile(r"\$\{([^{}]+)\}")

_MISSING = object()


def _lookup(value: Any, segments: list[str], placeholder: str) -> Any:
    for segment in segments:
        if isinstance(value, dict):
            if segment not in value:
                raise PlaceholderResolutionError(placeholder, f"key '{segment}' not found")
            value = value[segment]
        elif isinstance(value, list):
            try:
                value = value[int(segment)]
            except (ValueError, IndexError):
                raise PlaceholderResolutionError(placeholder, f"invalid list index '{segment}'")
        else:
            raise PlaceholderResolutionError(placeholder, f"cannot index {type(value).__name__} with '{segment}'")
    return value


def resolve_placeholder(placeholder: str, results: dict[str, Any], metadata: dict[str, Any]) -> Any:
    """Resolve one placeholder expression (without the ``${}``).

    Args:
        placeholder: Expression such as ``results.fetch.items.0``
        results: Step id to step output
        metadata: Execution context

    Returns:
        The referenced value

    Raises:
        PlaceholderResolutionError: If the expression cannot be resolved
    """
    root, *segments = placeholder.strip().split(".")

    if root == "results":
        if not segments or not segments[0]:
            raise PlaceholderResolutionError(placeholder, "missing step id")
        step_id, *path = segments
        value = results.get(step_id, _MISSING)
        if value is _MISSING:
            raise PlaceholderResolutionError(placeholder, f"no result for step '{step_id}'")
        return _lookup(value, path, placeholder)

    if root == "metadata":
        return _lookup(metadata, segments, placeholder)

    raise PlaceholderResolutionError(placeholder, f"unknown root '{root}'")


def _to_text(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def resolve_value(value: Any, results: dict[str, Any], metadata: dict[str, Any]) -> Any:
    """Resolve placeholders inside a single value, recursing into containers."""
    if isinstance(value, str):
        exact = PLACEHOLDER_PATTERN.fullmatch(value)
        if exact:
            return resolve_placeholder(exact.group(1), results, metadata)
        return PLACEHOLDER_PATTERN.sub(
            lambda match: _to_text(resolve_placeholder(match.group(1), results, metadata)),
            value,
        )
    if isinstance(value, dict):
        return {key: resolve_value(item, results, metadata) for key, item in value.items()}
    if isinstance(value, list):
        return [resolve_value(item, results, metadata) for item in value]
    return value


def resolve_arguments(
    arguments: dict[str, Any],
    results: dict[str, Any],
    metadata: dict[str, Any],
) -> dict[str, Any]:
    """Resolve every placeholder in a step's arguments.

    A string that is exactly one placeholder is replaced by the referenced
    value with its type preserved; placeholders inside longer strings are
    interpolated as text (JSON for dicts and lists).

    Args:
        arguments: Step arguments
        results: Step id to step output
        metadata: Execution context

    Returns:
        New argument dict with placeholders resolved

    Raises:
        PlaceholderResolutionError: If any placeholder cannot be resolved
    """
    return resolve_value(arguments, results, metadata)

"""ID generation utilities for the orchestration engine.

Identifiers are UUID v4 hex strings with a type prefix.
"""

import uuid


def generate_uuid() -> str:
    """Generate a UUID v4 as a string.

    Returns:
        UUID v4 string (without dashes)
    """
    return uuid.uuid4().hex


def generate_execution_id() -> str:
    """Generate a unique workflow execution identifier.

    Returns:
        Execution ID prefixed with "exec_"
    """
    return f"exec_{generate_uuid()}"


def generate_swarm_id() -> str:
    """Generate a unique swarm identifier.

    Returns:
        Swarm ID prefixed with "swarm_"
    """
    return f"swarm_{generate_uuid()}"


def generate_request_id() -> str:
    """Generate a JSON-RPC request identifier."""
    return f"req_{generate_uuid()[:16]}"


"""CLI for the orchestration engine."""

from .main import main

__all__ = ["main"]

"""Input sanitization and schema validation.

Strings are screened for SQL-injection heuristics (rejected outright), stripped
of known XSS fragments and HTML-escaped. Sanitization always builds a new
structure; the caller's payload is never mutated.
"""

import html
import re
from typing import Any, TypeVar

import pydantic
from pydantic import BaseModel

from ..exceptions import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)

_SQL_KEYWORDS = r"SELECT|INSERT|UPDATE|DELETE|DROP|ALTER|CREATE|TRUNCATE|EXEC|EXECUTE|UNION|GRANT"

SQL_INJECTION_PATTERNS = [
    # Keyword plus clause
    re.compile(r"\bSELECT\b[\s\S]+?\bFROM\b", re.IGNORECASE),
    re.compile(r"\bINSERT\s+INTO\b", re.IGNORECASE),
    re.compile(r"\bUPDATE\b\s+\S+\s+\bSET\b", re.IGNORECASE),
    re.compile(r"\bDELETE\s+FROM\b", re.IGNORECASE),
    re.compile(r"\bDROP\s+(TABLE|DATABASE|SCHEMA|INDEX|VIEW)\b", re.IGNORECASE),
    re.compile(r"\bALTER\s+TABLE\b", re.IGNORECASE),
    re.compile(r"\bCREATE\s+(TABLE|DATABASE)\b", re.IGNORECASE),
    re.compile(r"\bUNION\s+(ALL\s+)?SELECT\b", re.IGNORECASE),
    re.compile(r"\bEXEC(UTE)?\s*\(|\bEXECUTE\s+\w", re.IGNORECASE),
    # Comment markers
    re.compile(r"--|/\*|\*/"),
    re.compile(r"['\"]\s*#"),
    # Statement stacking
    re.compile(rf";\s*({_SQL_KEYWORDS})\b", re.IGNORECASE),
    # Tautologies
    re.compile(r"['\"]\s*OR\s+['\"]?\w+['\"]?\s*=\s*['\"]?\w+", re.IGNORECASE),
    re.compile(r"\bOR\s+(\d+)\s*=\s*\1\b", re.IGNORECASE),
    re.compile(r"\b1\s*=\s*1\b"),
]

XSS_PATTERNS = [
    re.compile(r"<script[^>]*>.*?</script\s*>", re.IGNORECASE | re.DOTALL),
    re.compile(r"<iframe[^>]*>.*?</iframe\s*>", re.IGNORECASE | re.DOTALL),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"\bon\w+\s*=", re.IGNORECASE),
]


class InputValidator:
    """Recursive payload sanitizer."""

    @classmethod
    def sanitize(cls, payload: Any) -> Any:
        """Sanitize a payload.

        Strings are checked and escaped; lists, tuples and dicts are walked
        recursively (dict keys included); other scalars pass through.

        Args:
            payload: Payload to sanitize

        Returns:
            A sanitized copy of the payload

        Raises:
            ValidationError: If a string looks like SQL injection
        """
        if isinstance(payload, str):
            return cls.sanitize_string(payload)
        if isinstance(payload, list):
            return [cls.sanitize(item) for item in payload]
        if isinstance(payload, tuple):
            return tuple(cls.sanitize(item) for item in payload)
        if isinstance(payload, dict):
            return {cls.sanitize_string(str(key)): cls.sanitize(value) for key, value in payload.items()}
        return payload

    @staticmethod
    def sanitize_string(value: str) -> str:
        """Sanitize a single string.

        Raises:
            ValidationError: If the string matches an injection heuristic
        """
        for pattern in SQL_INJECTION_PATTERNS:
            if pattern.search(value):
                raise ValidationError("Potential SQL injection detected", details={"pattern": pattern.pattern})

        for pattern in XSS_PATTERNS:
            value = pattern.sub("", value)

        return html.escape(value, quote=True).replace("/", "&#x2F;")

    @staticmethod
    def validate_schema(data: Any, model: type[ModelT]) -> ModelT:
        """Validate data against a pydantic model.

        Args:
            data: Raw data
            model: Model class

        Returns:
            Validated model instance

        Raises:
            ValidationError: If validation fails
        """
        try:
            return model.model_validate(data)
        except pydantic.ValidationError as e:
            details = [
                {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
                for error in e.errors()
            ]
            raise ValidationError(f"Schema validation failed: {e.error_count()} error(s)", details=details)

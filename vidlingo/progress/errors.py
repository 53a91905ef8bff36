"""
Errors raised by the progress engine.

Store errors (sqlalchemy.exc.SQLAlchemyError and friends) are not wrapped here;
they propagate to the caller unchanged.
"""

from __future__ import annotations

from typing import Any


class ProgressError(Exception):
    """Base class for errors the engine raises on purpose."""


class NotFoundError(ProgressError):
    """A referenced catalog entity (exercise, video, segment, word) does not exist."""

    def __init__(self, entity: str, identifier: Any):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity.capitalize()} with ID {identifier} not found")


class ValidationFailure(ProgressError, ValueError):
    """An input value is outside the range the engine accepts."""

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field}={value!r}: {reason}")

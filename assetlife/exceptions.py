"""
Typed errors raised by the lifecycle services.

All three are recoverable by the caller: the presentation layer turns
them into user-facing messages.  They subclass ``ValueError`` so code
that already catches ``ValueError`` around service calls keeps working.

  - ``ValidationError``: malformed or out-of-range input.
  - ``NotFoundError``:   a referenced id does not exist.
  - ``ConflictError``:   the operation would break a lifecycle rule
                         (disposing twice, double allocation, writing
                         to a disposed asset, ...).
"""

from typing import Any


class LifecycleError(ValueError):
    """
    Base class for lifecycle service errors.

    Carries enough context to render a message without parsing text:
    the entity name, its id, and optionally the offending field with
    the expected and actual values.
    """

    def __init__(
        self,
        message: str,
        entity: str | None = None,
        entity_id: Any = None,
        field: str | None = None,
        expected: Any = None,
        actual: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.entity = entity
        self.entity_id = entity_id
        self.field = field
        self.expected = expected
        self.actual = actual

    def to_dict(self) -> dict[str, Any]:
        """Return the error context as a plain dict (for logs and UIs)."""
        return {
            "error": type(self).__name__,
            "message": self.message,
            "entity": self.entity,
            "entity_id": self.entity_id,
            "field": self.field,
            "expected": self.expected,
            "actual": self.actual,
        }


class ValidationError(LifecycleError):
    """Input is missing, malformed, or outside its allowed range."""


class NotFoundError(LifecycleError):
    """A referenced record does not exist."""


class ConflictError(LifecycleError):
    """The operation violates a lifecycle invariant."""

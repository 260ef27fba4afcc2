from __future__ import annotations


class ValidationError(ValueError):
    """Raised when a reading date or value cannot be parsed."""

    def __init__(self, message: str, *, field: str | None = None, value: object = None) -> None:
        super().__init__(message)
        self.field = field
        self.value = value

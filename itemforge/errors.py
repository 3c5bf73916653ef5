"""
Error types raised by the generation pipeline.

Fatal errors carry the offending configuration so a failed generation can be
reproduced from the log line alone.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence


class ItemForgeError(Exception):
    """Base class for every error raised by itemforge."""

    def __init__(self, message: str, config: Optional[Dict[str, Any]] = None, **details):
        self.message = message
        self.config = dict(config) if config else {}
        self.details = details
        super().__init__(self._format())

    def _format(self) -> str:
        if not self.config:
            return self.message
        return f"{self.message} (config={self.config!r})"


class ConfigValidationError(ItemForgeError):
    """Configuration rejected before any drawing took place."""

    def __init__(self, message, config=None, field=None, value=None, **details):
        self.field = field
        self.value = value
        super().__init__(message, config, field=field, value=value, **details)


class UnknownAxisValue(ConfigValidationError):
    """An axis key has no entry in its template table."""

    def __init__(self, axis: str, key: Any, choices: Sequence[str] = (), config=None):
        self.axis = axis
        self.key = key
        self.choices = tuple(choices)
        message = f"Unknown {axis} '{key}'"
        if self.choices:
            message += f"; expected one of: {', '.join(self.choices)}"
        super().__init__(message, config, field=axis, value=key, choices=self.choices)


class RasterizationFailure(ItemForgeError):
    """Unexpected state while painting a composed item."""

    def __init__(self, message, config=None, layer=None, **details):
        self.layer = layer
        super().__init__(message, config, layer=layer, **details)


@dataclass
class BatchItemFailure:
    """Failure of one batch element. Recorded in the result, never raised."""
    message: str
    error_type: str
    config: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_exception(cls, exc: BaseException, config) -> "BatchItemFailure":
        message = exc.message if isinstance(exc, ItemForgeError) else str(exc)
        return cls(message=message, error_type=type(exc).__name__, config=dict(config or {}))

    def __str__(self):
        return self.message

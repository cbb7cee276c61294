"""Error handling utilities for mathgen."""

from mathgen.errors.mapper import (
    ErrorResponse,
    map_exception_to_response,
    get_recovery_strategy,
)

__all__ = [
    "ErrorResponse",
    "map_exception_to_response",
    "get_recovery_strategy",
]

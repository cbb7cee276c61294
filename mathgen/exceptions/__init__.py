"""Custom exceptions for the mathgen engine.

All exceptions include a stable error code and structured details,
enabling callers to map failures to their own response envelopes.
"""

from mathgen.exceptions.base import (
    MathGenError,
    InvalidInputError,
    ResourceNotFoundError,
    UnsupportedConfigError,
    ValidationAmbiguousError,
    ParseError,
    SolutionMismatchError,
    GenerationError,
    GenerationTimeoutError,
    AIGenerationError,
    AttemptStateError,
)

__all__ = [
    "MathGenError",
    "InvalidInputError",
    "ResourceNotFoundError",
    "UnsupportedConfigError",
    "ValidationAmbiguousError",
    "ParseError",
    "SolutionMismatchError",
    "GenerationError",
    "GenerationTimeoutError",
    "AIGenerationError",
    "AttemptStateError",
]

"""Exception classes for the mathgen engine.

Every error carries a machine-readable ``code``, a human-readable
``message`` and optional structured ``details`` so callers (the API layer,
batch reports) can map failures without parsing strings.
"""

from typing import Any, Dict, Optional


class MathGenError(Exception):
    """Base for all mathgen errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.code}: {self.message} {self.details}"
        return f"{self.code}: {self.message}"


class InvalidInputError(MathGenError):
    """Raised when input parameters are invalid (wrong type, shape, or value)."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(code="INVALID_INPUT", message=message, details=details)


class ResourceNotFoundError(MathGenError):
    """Raised when an attempt, session or generator id is unknown."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(code="RESOURCE_NOT_FOUND", message=message, details=details)


class UnsupportedConfigError(MathGenError):
    """Raised when a ProblemConfig is incompatible with its generator.

    Rejected before any generation happens.
    """
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(code="UNSUPPORTED_CONFIG", message=message, details=details)


class ValidationAmbiguousError(MathGenError):
    """Raised when a canonical answer cannot be graded unambiguously
    (e.g. a NUMERIC answer without a declared tolerance)."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(code="VALIDATION_AMBIGUOUS", message=message, details=details)


class ParseError(MathGenError):
    """Raised when an expression, equation or answer payload is malformed."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(code="PARSE_ERROR", message=message, details=details)


class SolutionMismatchError(MathGenError):
    """Raised when the solver disagrees with the generator's canonical answer.

    Fatal for the problem instance: it must not be published.
    """
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(code="SOLUTION_MISMATCH", message=message, details=details)


class GenerationError(MathGenError):
    """Raised when a generator cannot assemble a problem (e.g. too few distractors)."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(code="GENERATION_ERROR", message=message, details=details)


class GenerationTimeoutError(MathGenError):
    """Raised when the AI generation path runs out of time."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(code="GENERATION_TIMEOUT", message=message, details=details)


class AIGenerationError(MathGenError):
    """Raised when the AI generation path fails for a reason other than timeout."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(code="AI_GENERATION_ERROR", message=message, details=details)


class AttemptStateError(MathGenError):
    """Raised when a submission or transition violates the attempt state machine."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(code="ATTEMPT_STATE_ERROR", message=message, details=details)

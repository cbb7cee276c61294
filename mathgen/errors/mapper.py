"""Error response mapping for engine callers.

Converts structured MathGenError exceptions into standardized error
responses with machine-readable error codes and recovery strategies.
Assigning HTTP status codes is left to the API layer.
"""

from dataclasses import dataclass
from typing import Dict, Any, Optional

from mathgen.exceptions import MathGenError


@dataclass
class ErrorResponse:
    """Structured error response for API consumers."""

    error_code: str
    message: str
    details: Optional[Dict[str, Any]] = None
    recovery_strategy: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "recovery_strategy": self.recovery_strategy,
        }

    def summary(self) -> str:
        """One-line form used in batch error lists."""
        return f"{self.error_code}: {self.message}"


# Recovery strategy templates for common error types
RECOVERY_STRATEGIES: Dict[str, str] = {
    "INVALID_INPUT": "Check the input values and their types, then resubmit.",
    "RESOURCE_NOT_FOUND": "Verify the attempt, session or generator id exists.",
    "UNSUPPORTED_CONFIG": "Remove or correct the custom parameters; list the generator's parameters to see what it accepts.",
    "VALIDATION_AMBIGUOUS": "Declare an explicit tolerance on numeric and matrix answers.",
    "PARSE_ERROR": "The expression could not be read. Use standard notation such as 2*x + 3 = 7.",
    "SOLUTION_MISMATCH": "The problem failed its self-check and was not published. Generate again with a different seed.",
    "GENERATION_ERROR": "The generator could not assemble this problem. Try a different seed or difficulty.",
    "GENERATION_TIMEOUT": "The AI generator was too slow; template generation was used instead.",
    "AI_GENERATION_ERROR": "The AI generator failed; template generation was used instead.",
    "ATTEMPT_STATE_ERROR": "The attempt no longer accepts this submission. Start a new attempt.",
}


def get_recovery_strategy(error_code: str) -> str:
    """Get recovery strategy for an error code.

    Args:
        error_code: The error code

    Returns:
        Recovery strategy string
    """
    return RECOVERY_STRATEGIES.get(
        error_code, "Review the error message, adjust the request, and try again."
    )


def map_exception_to_response(error: Exception) -> ErrorResponse:
    """Convert an exception to a structured ErrorResponse.

    Args:
        error: The exception to convert

    Returns:
        ErrorResponse with structured error information
    """
    if isinstance(error, MathGenError):
        return ErrorResponse(
            error_code=error.code,
            message=error.message,
            details=error.details if error.details else None,
            recovery_strategy=get_recovery_strategy(error.code),
        )

    # Handle Pydantic validation errors raised by request models
    from pydantic import ValidationError as PydanticValidationError

    if isinstance(error, PydanticValidationError):
        errors = error.errors()
        return ErrorResponse(
            error_code="PYDANTIC_VALIDATION_ERROR",
            message=f"Validation failed: {len(errors)} error(s)",
            details={"errors": errors},
            recovery_strategy="Check the error details and provide valid input according to the schema.",
        )

    # Generic exceptions - wrap with minimal structure
    return ErrorResponse(
        error_code="INTERNAL_ERROR",
        message=str(error),
        details={"exception_type": type(error).__name__},
        recovery_strategy="An unexpected error occurred. Please report this issue if it persists.",
    )

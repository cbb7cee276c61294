"""Application configuration

Engine settings are read from ``MATHGEN_*`` environment variables, falling
back to typed defaults. A single Settings instance is shared by the engine;
call ``get_settings(reload=True)`` after changing the environment.
"""

import os
from dataclasses import dataclass, fields
from typing import Any, Callable, Dict, Optional

from mathgen.exceptions import InvalidInputError

# Project-specific prefix
_ENV_PREFIX = "MATHGEN"


@dataclass(frozen=True)
class Settings:
    """Engine-wide tunables."""

    # Batch generation worker threads
    max_workers: int = 4
    # Time allowed for the AI generation path before falling back
    ai_timeout_seconds: float = 10.0
    # Tolerance given to non-exact canonical numeric answers
    default_tolerance: float = 0.01
    # NUMERIC partial credit reaches 0 at this fraction of max(|correct|, 1)
    partial_credit_span: float = 0.5
    # Edit distance under which a wrong text answer is reported as "similar"
    fuzzy_max_distance: int = 2
    # Keyword coverage needed for a LONG_ANSWER to count as correct
    long_answer_threshold: float = 0.6
    # Number of options (correct + distractors) in multiple choice
    choice_count: int = 4
    # Longest expression accepted by the symbolic parser
    max_expression_length: int = 500
    # Largest exponent or factorial argument evaluated while parsing
    max_exponent: int = 1000
    # Largest power, in decimal digits, evaluated while parsing
    max_number_digits: int = 2000
    session_ttl_seconds: int = 3600
    points_per_problem: float = 1.0
    # Regeneration attempts per item when a batch forbids repeated problems
    repetition_retries: int = 5

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise InvalidInputError("max_workers must be at least 1")
        if self.ai_timeout_seconds <= 0:
            raise InvalidInputError("ai_timeout_seconds must be positive")
        if self.default_tolerance < 0:
            raise InvalidInputError("default_tolerance must be non-negative")
        if self.partial_credit_span <= 0:
            raise InvalidInputError("partial_credit_span must be positive")
        if not 0 < self.long_answer_threshold <= 1:
            raise InvalidInputError("long_answer_threshold must be in (0, 1]")
        if not 2 <= self.choice_count <= 26:
            raise InvalidInputError("choice_count must be between 2 and 26")
        if self.max_exponent < 1:
            raise InvalidInputError("max_exponent must be at least 1")
        if self.max_number_digits < 1:
            raise InvalidInputError("max_number_digits must be at least 1")


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


_PARSERS: Dict[type, Callable[[str], Any]] = {
    int: int,
    float: float,
    bool: _parse_bool,
    str: str,
}


def load_settings(environ: Optional[Dict[str, str]] = None) -> Settings:
    """Build Settings from environment variables.

    Args:
        environ: Mapping to read from (defaults to ``os.environ``)

    Returns:
        Settings with every ``MATHGEN_<FIELD>`` override applied

    Raises:
        InvalidInputError: If a variable cannot be converted to its field type
    """
    env = os.environ if environ is None else environ
    overrides: Dict[str, Any] = {}

    for field in fields(Settings):
        key = f"{_ENV_PREFIX}_{field.name.upper()}"
        raw = env.get(key)
        if raw is None:
            continue
        field_type = type(field.default)
        try:
            overrides[field.name] = _PARSERS[field_type](raw)
        except ValueError as e:
            raise InvalidInputError(
                f"Invalid value for {key}: {raw!r}",
                details={"expected_type": field_type.__name__, "error": str(e)},
            ) from e

    return Settings(**overrides)


_settings: Optional[Settings] = None


def get_settings(reload: bool = False) -> Settings:
    """Get the shared Settings, loading them on first use."""
    global _settings
    if _settings is None or reload:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Forget cached settings (used by tests)."""
    global _settings
    _settings = None


__all__ = [
    "Settings",
    "load_settings",
    "get_settings",
    "reset_settings",
]

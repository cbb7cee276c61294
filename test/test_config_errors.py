"""Tests for settings loading and error mapping.

Covers:
- MATHGEN_* environment overrides and their validation
- The shared settings cache
- MathGenError, pydantic and generic exception mapping
"""

import pytest
from pydantic import ValidationError

from mathgen.config import Settings, get_settings, load_settings, reset_settings
from mathgen.errors import map_exception_to_response
from mathgen.errors.mapper import RECOVERY_STRATEGIES, get_recovery_strategy
from mathgen.exceptions import (
    AttemptStateError,
    InvalidInputError,
    MathGenError,
    SolutionMismatchError,
    UnsupportedConfigError,
)
from mathgen.models.enums import ProblemType
from mathgen.models.requests import ProblemConfig


class TestSettings:
    """Environment-driven configuration."""

    def test_defaults(self):
        settings = load_settings({})
        assert settings == Settings()
        assert settings.max_workers == 4
        assert settings.default_tolerance == 0.01
        assert settings.choice_count == 4

    def test_overrides(self):
        settings = load_settings({
            "MATHGEN_MAX_WORKERS": "8",
            "MATHGEN_AI_TIMEOUT_SECONDS": "2.5",
            "MATHGEN_CHOICE_COUNT": "5",
            "UNRELATED": "ignored",
        })
        assert settings.max_workers == 8
        assert settings.ai_timeout_seconds == 2.5
        assert settings.choice_count == 5

    @pytest.mark.parametrize("key,value", [
        ("MATHGEN_MAX_WORKERS", "many"),
        ("MATHGEN_DEFAULT_TOLERANCE", "tight"),
    ])
    def test_unparseable_values(self, key, value):
        with pytest.raises(InvalidInputError) as exc_info:
            load_settings({key: value})
        assert key in exc_info.value.message

    @pytest.mark.parametrize("key,value", [
        ("MATHGEN_MAX_WORKERS", "0"),
        ("MATHGEN_AI_TIMEOUT_SECONDS", "0"),
        ("MATHGEN_DEFAULT_TOLERANCE", "-1"),
        ("MATHGEN_PARTIAL_CREDIT_SPAN", "0"),
        ("MATHGEN_LONG_ANSWER_THRESHOLD", "1.5"),
        ("MATHGEN_CHOICE_COUNT", "1"),
        ("MATHGEN_CHOICE_COUNT", "27"),
        ("MATHGEN_MAX_EXPONENT", "0"),
        ("MATHGEN_MAX_NUMBER_DIGITS", "0"),
    ])
    def test_out_of_range_values(self, key, value):
        with pytest.raises(InvalidInputError):
            load_settings({key: value})

    def test_cache_and_reload(self, monkeypatch):
        first = get_settings()
        assert get_settings() is first

        monkeypatch.setenv("MATHGEN_SESSION_TTL_SECONDS", "60")
        assert get_settings().session_ttl_seconds == 3600
        assert get_settings(reload=True).session_ttl_seconds == 60

        reset_settings()
        monkeypatch.delenv("MATHGEN_SESSION_TTL_SECONDS")
        assert get_settings().session_ttl_seconds == 3600

    def test_settings_are_frozen(self):
        with pytest.raises(AttributeError):
            Settings().max_workers = 2


class TestErrorMapping:
    """Exceptions become structured error responses."""

    def test_engine_error(self):
        error = UnsupportedConfigError("unknown parameter", details={"unknown": ["colour"]})
        response = map_exception_to_response(error)
        assert response.error_code == "UNSUPPORTED_CONFIG"
        assert response.details == {"unknown": ["colour"]}
        assert response.recovery_strategy == RECOVERY_STRATEGIES["UNSUPPORTED_CONFIG"]
        assert response.summary() == "UNSUPPORTED_CONFIG: unknown parameter"

    def test_error_without_details(self):
        response = map_exception_to_response(AttemptStateError("attempt is completed"))
        assert response.details is None
        assert response.to_dict()["error_code"] == "ATTEMPT_STATE_ERROR"

    def test_every_code_has_a_strategy(self):
        codes = {
            "INVALID_INPUT", "RESOURCE_NOT_FOUND", "UNSUPPORTED_CONFIG", "VALIDATION_AMBIGUOUS",
            "PARSE_ERROR", "SOLUTION_MISMATCH", "GENERATION_ERROR", "GENERATION_TIMEOUT",
            "AI_GENERATION_ERROR", "ATTEMPT_STATE_ERROR",
        }
        assert codes == set(RECOVERY_STRATEGIES)
        assert "try again" in get_recovery_strategy("SOMETHING_ELSE")

    def test_pydantic_error(self):
        with pytest.raises(ValidationError) as exc_info:
            ProblemConfig(problem_type=ProblemType.ALGEBRA, quantity=0)
        response = map_exception_to_response(exc_info.value)
        assert response.error_code == "PYDANTIC_VALIDATION_ERROR"
        assert response.message == "Validation failed: 1 error(s)"

    def test_config_alias(self):
        config = ProblemConfig(type="algebra", quantity=200)
        assert config.problem_type is ProblemType.ALGEBRA
        with pytest.raises(ValidationError):
            ProblemConfig(type="algebra", quantity=201)

    def test_generic_error(self):
        response = map_exception_to_response(RuntimeError("boom"))
        assert response.error_code == "INTERNAL_ERROR"
        assert response.details == {"exception_type": "RuntimeError"}

    def test_error_str(self):
        error = SolutionMismatchError("answers differ", details={"expected": "5"})
        assert isinstance(error, MathGenError)
        assert str(error).startswith("SOLUTION_MISMATCH: answers differ")
        assert str(MathGenError("X", "plain")) == "X: plain"

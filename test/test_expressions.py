"""Tests for expression parsing and value comparisons.

Covers:
- Safe parsing (length limit, forbidden characters)
- Strict vs lenient multiplication
- Equation and expression equivalence
- Numeric, matrix and shape near-equality
"""

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from mathgen.config import reset_settings
from mathgen.exceptions import ParseError, ValidationAmbiguousError
from mathgen.math_engine import expressions, values
from mathgen.models.answers import (
    EquationAnswer,
    GeometricShape,
    GraphAnswer,
    MatrixAnswer,
    NumericAnswer,
    TextAnswer,
)


class TestParsing:
    """Screening and parsing of symbolic input."""

    def test_parse_equation(self):
        parsed = expressions.parse("2*x + 3 = 7")
        assert parsed.is_equation
        assert str(parsed.zero_form) == "2*x - 4"

    def test_parse_expression(self):
        parsed = expressions.parse("x**2 + 1")
        assert not parsed.is_equation
        assert parsed.rhs is None

    def test_strict_rejects_implicit_multiplication(self):
        with pytest.raises(ParseError):
            expressions.parse("2x + 1")

    def test_lenient_accepts_implicit_multiplication(self):
        parsed = expressions.parse("2x + 3(x + 1)", lenient=True)
        assert expressions.expressions_equivalent(parsed.lhs, expressions.parse("5*x + 3").lhs)

    def test_caret_is_power(self):
        parsed = expressions.parse("x^2")
        assert expressions.expressions_equivalent(parsed.lhs, expressions.parse("x**2").lhs)

    def test_unicode_operators(self):
        parsed = expressions.parse("6 ÷ 3 × 2")
        assert expressions.as_float(parsed.lhs) == 4.0

    def test_too_long_is_rejected(self, monkeypatch):
        monkeypatch.setenv("MATHGEN_MAX_EXPRESSION_LENGTH", "10")
        reset_settings()
        with pytest.raises(ParseError) as exc_info:
            expressions.parse("1 + 2 + 3 + 4 + 5")
        assert exc_info.value.details["max_length"] == 10

    @pytest.mark.parametrize("text", [
        "__import__('os')",
        "x.__class__",
        "x @ y",
        "x; y",
        "",
        "   ",
    ])
    def test_unsafe_or_empty_input(self, text):
        with pytest.raises(ParseError):
            expressions.parse(text)

    def test_non_string_input(self):
        with pytest.raises(ParseError):
            expressions.parse(42)

    def test_two_equals_signs(self):
        with pytest.raises(ParseError):
            expressions.parse("x = 1 = 2")

    def test_missing_side(self):
        with pytest.raises(ParseError):
            expressions.parse("x = ")

    @pytest.mark.parametrize("text", [
        "9^9^9^9",
        "(9^1000)^1000",
        "10^5000",
        "factorial(100000)",
        "factorial(factorial(7))",
        "exp(exp(exp(10)))",
    ])
    def test_huge_numbers_are_rejected(self, text):
        with pytest.raises(ParseError) as exc_info:
            expressions.parse(text, lenient=True)
        assert exc_info.value.message == "number is too large to evaluate"

    @pytest.mark.parametrize("text", ["2^10", "x^(1/2)", "x^1000", "factorial(20)", "2^(-3)"])
    def test_ordinary_powers_parse(self, text):
        expressions.parse(text, lenient=True)

    def test_exponent_limit_is_configurable(self, monkeypatch):
        expressions.parse("2^50")
        monkeypatch.setenv("MATHGEN_MAX_EXPONENT", "20")
        reset_settings()
        with pytest.raises(ParseError):
            expressions.parse("2^50")

    def test_capital_letters_are_symbols(self):
        parsed = expressions.parse("E + N + S")
        assert {str(s) for s in parsed.free_symbols} == {"E", "N", "S"}


class TestEquivalence:
    """Symbolic equivalence rules."""

    @pytest.mark.parametrize("other", ["x = 5", "5 = x", "2*x = 10", "x - 5 = 0", "3*x + 1 = 16"])
    def test_equivalent_equations(self, other):
        assert expressions.parsed_equivalent(
            expressions.parse("x = 5"),
            expressions.parse(other),
        )

    def test_different_solutions(self):
        assert not expressions.parsed_equivalent(expressions.parse("x = 5"), expressions.parse("x = 4"))

    def test_constant_against_equation(self):
        assert expressions.parsed_equivalent(expressions.parse("x = 5"), expressions.parse("5"))
        assert not expressions.parsed_equivalent(expressions.parse("x = 5"), expressions.parse("6"))

    def test_expressions_equal_after_expansion(self):
        assert expressions.expressions_equivalent(
            expressions.parse("(x + 1)**2").lhs,
            expressions.parse("x**2 + 2*x + 1").lhs,
        )

    def test_quadratic_root_sets(self):
        assert expressions.equations_equivalent(
            expressions.parse("x**2 = 4"),
            expressions.parse("(x - 2)*(x + 2) = 0"),
        )

    def test_numeric_value_of_equation(self):
        assert expressions.numeric_value(expressions.parse("3*x + 1 = 10")) == pytest.approx(3.0)
        assert expressions.numeric_value(expressions.parse("x**2 = 4")) is None

    def test_describe(self):
        described = expressions.describe(expressions.parse("2*3 + 1").lhs, original="2*3 + 1")
        assert described.original == "2*3 + 1"
        assert described.evaluation == 7.0

    @settings(max_examples=30, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(
        value=st.integers(min_value=-50, max_value=50),
        factor=st.integers(min_value=-9, max_value=9).filter(lambda k: k != 0),
    )
    def test_equation_symmetry_and_scaling(self, value, factor):
        base = expressions.parse(f"x = {value}")
        assert expressions.parsed_equivalent(base, expressions.parse(f"{value} = x"))
        assert expressions.parsed_equivalent(base, expressions.parse(f"{factor}*x = {factor * value}"))
        assert not expressions.parsed_equivalent(base, expressions.parse(f"x = {value + 1}"))


class TestValues:
    """Near-equality of canonical values."""

    def test_numbers_close(self):
        assert values.numbers_close(3.14159, 3.15, 0.01)
        assert not values.numbers_close(3.14159, 3.00, 0.01)
        assert values.numbers_close(2.0, 2.0, 0.0)

    def test_matrices_close(self):
        assert values.matrices_close([[1, 2], [3, 4]], [[1, 2], [3, 4.0005]], 0.001)
        assert not values.matrices_close([[1, 2], [3, 4]], [[1, 2, 0], [3, 4, 0]], 0.001)

    def test_polygon_cycle_rotation_and_reversal(self):
        triangle = GeometricShape("triangle", ((0, 0), (4, 0), (0, 3)))
        rotated = GeometricShape("triangle", ((4, 0), (0, 3), (0, 0)))
        reversed_ = GeometricShape("triangle", ((0, 3), (4, 0), (0, 0)))
        assert values.shapes_close(triangle, rotated, 1e-9)
        assert values.shapes_close(triangle, reversed_, 1e-9)

    def test_shape_kinds_must_match(self):
        a = GeometricShape("triangle", ((0, 0), (4, 0), (0, 3)))
        b = GeometricShape("polygon", ((0, 0), (4, 0), (0, 3)))
        assert not values.shapes_close(a, b, 1e-9)

    def test_line_is_order_insensitive(self):
        a = GeometricShape("line", ((0, 0), (1, 1)))
        b = GeometricShape("line", ((1, 1), (0, 0)))
        assert values.shapes_close(a, b, 0.0)

    def test_circle_by_centre_and_radius(self):
        a = GeometricShape("circle", ((1, 1),), radius=2.0)
        b = GeometricShape("circle", ((1, 1),), radius=2.004)
        assert values.shapes_close(a, b, 0.01)
        assert not values.shapes_close(a, b, 0.001)

    def test_levenshtein(self):
        assert values.levenshtein("kitten", "sitting") == 3
        assert values.levenshtein("", "abc") == 3

    def test_text_matches_accepted_spellings(self):
        correct = TextAnswer("colour", accepted=("color",))
        assert values.text_matches(correct, "  COLOR ")
        assert not values.text_matches(correct, "colr")

    def test_answers_equivalent_requires_tolerance(self):
        with pytest.raises(ValidationAmbiguousError):
            values.answers_equivalent(NumericAnswer(5.0), NumericAnswer(5.0))

    def test_answers_of_different_formats(self):
        assert not values.answers_equivalent(NumericAnswer(5.0, tolerance=0.0), EquationAnswer("5"))

    def test_graph_and_matrix_equivalence(self):
        shape = GeometricShape("point", ((1, 2),))
        assert values.answers_equivalent(
            GraphAnswer(shape, tolerance=0.1),
            GraphAnswer(GeometricShape("point", ((1.05, 2),))),
        )
        assert values.answers_equivalent(
            MatrixAnswer(((1, 0), (0, 1)), tolerance=0.0),
            MatrixAnswer(((1.0, 0.0), (0.0, 1.0))),
        )

"""Mistake catalogue.

Categories name the structural error behind a wrong answer. Generators
tag their distractors with them; the validator and the grading analysis
use :func:`classify` to recognise them in learner submissions that match
no known distractor.
"""

from __future__ import annotations

import math
from types import MappingProxyType
from typing import Mapping, Optional

import numpy as np

from mathgen.exceptions import ParseError
from mathgen.math_engine import expressions, values
from mathgen.models.answers import (
    Answer,
    EquationAnswer,
    MatrixAnswer,
    MultipleChoiceAnswer,
    NumericAnswer,
    TextAnswer,
)

SIGN_ERROR = "sign error"
OFF_BY_ONE = "off-by-one error"
ORDER_OF_OPERATIONS = "order-of-operations error"
DECIMAL_PLACE = "decimal-place error"
ROUNDING = "rounding error"
COEFFICIENT = "coefficient error"
CONSTANT_TERM = "constant term error"
TRANSPOSITION = "transposition error"
DIMENSION = "dimension error"
DISTRIBUTION = "distribution error"
INVERSE_OPERATION = "inverse operation error"
INCOMPLETE = "incomplete solution"
CONCEPT_CONFUSION = "concept confusion"
BOUNDS = "bounds error"
OPERAND_ORDER = "operand order error"
WRONG_FORMULA = "wrong formula"
ARITHMETIC_SLIP = "arithmetic slip"
SPELLING = "spelling error"

CATALOGUE: Mapping[str, str] = MappingProxyType({
    SIGN_ERROR: "Track the sign of every term, especially when moving terms across the equals sign.",
    OFF_BY_ONE: "Recount carefully; check whether the count or divisor should include both ends.",
    ORDER_OF_OPERATIONS: "Evaluate parentheses first, then multiplication and division, then addition and subtraction.",
    DECIMAL_PLACE: "Check the position of the decimal point; estimate the size of the answer first.",
    ROUNDING: "Keep full precision in intermediate steps and round only the final answer.",
    COEFFICIENT: "Check the coefficients: multiply by the exponent and divide by the correct factor.",
    CONSTANT_TERM: "Check how constant terms are handled; constants vanish when differentiated.",
    TRANSPOSITION: "Check that rows and columns have not been swapped.",
    DIMENSION: "Check the dimensions: the result of an m x n by n x p product is m x p.",
    DISTRIBUTION: "Multiply every term inside the parentheses when expanding.",
    INVERSE_OPERATION: "Undo each operation with its inverse: subtract to undo addition, divide to undo multiplication.",
    INCOMPLETE: "The working stopped one step early; finish the last operation.",
    CONCEPT_CONFUSION: "Two related quantities were mixed up; re-read which one the question asks for.",
    BOUNDS: "Evaluate the antiderivative at both bounds and subtract the lower from the upper.",
    OPERAND_ORDER: "Order matters here; keep the operands in the order the question gives them.",
    WRONG_FORMULA: "Re-check which formula applies to this situation.",
    ARITHMETIC_SLIP: "Re-check each calculation step for a small arithmetic slip.",
    SPELLING: "Check the spelling of the answer.",
})


def advice_for(category: Optional[str]) -> str:
    """Advice text for a category (generic advice when unknown)."""
    if category is None:
        return "Compare your working with the solution steps to find where it diverges."
    return CATALOGUE.get(category, "Review the solution steps for this kind of problem.")


def _classify_number(correct: float, submitted: float, tolerance: float) -> Optional[str]:
    if abs(correct) > tolerance and abs(submitted + correct) <= tolerance:
        return SIGN_ERROR
    if abs(abs(submitted - correct) - 1) <= tolerance:
        return OFF_BY_ONE
    if correct != 0 and submitted != 0:
        ratio = abs(submitted / correct)
        # Only shifts of up to twelve places count as a misplaced decimal point
        if 1e-13 < ratio < 1e13:
            exponent = round(math.log10(ratio))
            if exponent != 0 and abs(ratio - 10.0 ** exponent) <= 1e-9 * 10.0 ** abs(exponent):
                return DECIMAL_PLACE
    for places in range(0, 4):
        if abs(round(correct, places) - submitted) <= 1e-9 and abs(submitted - correct) > tolerance:
            return ROUNDING
    if abs(submitted - correct) <= 0.1 * max(abs(correct), 1.0):
        return ARITHMETIC_SLIP
    return None


def _classify_expression(correct: EquationAnswer, submitted: EquationAnswer) -> Optional[str]:
    try:
        want = expressions.parse(correct.expression, lenient=True)
        got = expressions.parse(submitted.expression, lenient=True)
    except ParseError:
        return None

    want_value = expressions.numeric_value(want) if want.is_equation else None
    got_value = expressions.numeric_value(got)
    if want_value is not None and got_value is not None:
        return _classify_number(want_value, got_value, 1e-9)
    if want.is_equation or got.is_equation or expressions.is_zero(want.lhs):
        return None

    if expressions.is_zero(want.lhs + got.lhs):
        return SIGN_ERROR
    difference = want.lhs - got.lhs
    if not difference.free_symbols:
        return CONSTANT_TERM
    ratio = (got.lhs / want.lhs).simplify()
    if not ratio.free_symbols:
        return COEFFICIENT
    return None


def _classify_matrix(correct: MatrixAnswer, submitted: MatrixAnswer, tolerance: float) -> Optional[str]:
    want = np.asarray(correct.rows, dtype=np.float64)
    got = np.asarray(submitted.rows, dtype=np.float64)
    # A transpose only lines up when the shapes are mirror images
    transposable = want.shape[::-1] == got.shape
    if transposable and np.all(np.abs(want.T - got) <= tolerance):
        return TRANSPOSITION
    if want.shape != got.shape:
        return DIMENSION
    if np.all(np.abs(want + got) <= tolerance):
        return SIGN_ERROR
    if int(np.sum(np.abs(want - got) > tolerance)) == 1:
        return ARITHMETIC_SLIP
    return None


def classify(correct: Answer, submitted: Answer, fuzzy_max_distance: int = 2) -> Optional[str]:
    """Name the structural mistake behind a wrong answer, if recognisable.

    Args:
        correct: Canonical answer (multiple choice unwrapped by the caller)
        submitted: The learner's answer, already known to be wrong

    Returns:
        A catalogue category, or None when the error has no recognisable shape
    """
    if isinstance(submitted, MultipleChoiceAnswer):
        return submitted.mistake

    if isinstance(correct, NumericAnswer):
        if isinstance(submitted, NumericAnswer):
            return _classify_number(correct.value, submitted.value, correct.tolerance or 0.0)
        return None

    if isinstance(correct, EquationAnswer) and isinstance(submitted, EquationAnswer):
        return _classify_expression(correct, submitted)

    if isinstance(correct, MatrixAnswer) and isinstance(submitted, MatrixAnswer):
        return _classify_matrix(correct, submitted, correct.tolerance or 0.0)

    if isinstance(correct, TextAnswer) and isinstance(submitted, TextAnswer):
        wanted = values.normalize_text(correct.value, correct.case_sensitive)
        got = values.normalize_text(submitted.value, correct.case_sensitive)
        if values.levenshtein(wanted, got) <= fuzzy_max_distance:
            return SPELLING
    return None


__all__ = [
    "CATALOGUE",
    "advice_for",
    "classify",
]

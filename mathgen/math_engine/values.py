"""Canonical value comparisons.

Near-equality for numbers, matrices, geometric shapes and text, plus
:func:`answers_equivalent`, the same-format equality used wherever the
engine must decide whether two answers mean the same thing (distractor
filtering, multiple-choice checks, the solver's cross-check).
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

import numpy as np

from mathgen.exceptions import ValidationAmbiguousError
from mathgen.math_engine import expressions
from mathgen.models.answers import (
    Answer,
    EquationAnswer,
    GeometricShape,
    GraphAnswer,
    MatrixAnswer,
    MultipleChoiceAnswer,
    NumericAnswer,
    Point,
    TextAnswer,
)

_POLYGONAL = ("triangle", "rectangle", "polygon")


def numbers_close(a: float, b: float, tolerance: float) -> bool:
    """``|a - b| <= tolerance``; tolerance 0 means exact."""
    return abs(a - b) <= tolerance


def matrices_close(a: Sequence[Sequence[float]], b: Sequence[Sequence[float]], tolerance: float) -> bool:
    """Elementwise near-equality. Shape mismatch is simply unequal."""
    left = np.asarray(a, dtype=np.float64)
    right = np.asarray(b, dtype=np.float64)
    if left.shape != right.shape:
        return False
    return bool(np.all(np.abs(left - right) <= tolerance))


def _points_close(p: Point, q: Point, tolerance: float) -> bool:
    return abs(p[0] - q[0]) <= tolerance and abs(p[1] - q[1]) <= tolerance


def _cycle_matches(a: Tuple[Point, ...], b: Tuple[Point, ...], tolerance: float) -> bool:
    """Same vertex cycle up to rotation and reversal."""
    if len(a) != len(b):
        return False
    n = len(a)
    for candidate in (b, tuple(reversed(b))):
        for shift in range(n):
            if all(_points_close(a[i], candidate[(i + shift) % n], tolerance) for i in range(n)):
                return True
    return False


def _optional_close(a: Optional[float], b: Optional[float], tolerance: float) -> bool:
    return a is not None and b is not None and abs(a - b) <= tolerance


def shapes_close(a: GeometricShape, b: GeometricShape, tolerance: float) -> bool:
    """Per-shape equality.

    - point: coordinates within tolerance
    - line: same endpoints, order-insensitive
    - circle: same centre (first coordinate) and radius
    - triangle / rectangle / polygon: same vertex cycle up to rotation and
      reversal; when either side has no vertices, area and perimeter must
      match instead
    """
    if a.kind != b.kind:
        return False

    if a.kind == "point":
        return len(a.coordinates) == 1 == len(b.coordinates) and _points_close(
            a.coordinates[0], b.coordinates[0], tolerance
        )

    if a.kind == "line":
        if len(a.coordinates) != 2 or len(b.coordinates) != 2:
            return False
        p0, p1 = a.coordinates
        q0, q1 = b.coordinates
        return (_points_close(p0, q0, tolerance) and _points_close(p1, q1, tolerance)) or (
            _points_close(p0, q1, tolerance) and _points_close(p1, q0, tolerance)
        )

    if a.kind == "circle":
        centre_a = a.coordinates[0] if a.coordinates else (0.0, 0.0)
        centre_b = b.coordinates[0] if b.coordinates else (0.0, 0.0)
        if not _points_close(centre_a, centre_b, tolerance):
            return False
        if a.radius is not None and b.radius is not None:
            return abs(a.radius - b.radius) <= tolerance
        return _optional_close(a.computed_area(), b.computed_area(), tolerance)

    if a.coordinates and b.coordinates:
        return _cycle_matches(a.coordinates, b.coordinates, tolerance)
    return _optional_close(a.computed_area(), b.computed_area(), tolerance) and _optional_close(
        a.computed_perimeter(), b.computed_perimeter(), tolerance
    )


def normalize_text(value: str, case_sensitive: bool = False) -> str:
    text = " ".join(value.split())
    return text if case_sensitive else text.lower()


def levenshtein(a: str, b: str) -> int:
    """Edit distance between two strings."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (ca != cb),
            ))
        previous = current
    return previous[-1]


def text_matches(correct: TextAnswer, submitted: str) -> bool:
    """Trimmed, whitespace-collapsed comparison against the value and accepted spellings."""
    wanted = normalize_text(submitted, correct.case_sensitive)
    return any(
        normalize_text(option, correct.case_sensitive) == wanted
        for option in (correct.value,) + correct.accepted
    )


def required_tolerance(answer: Answer) -> float:
    """The tolerance a canonical NUMERIC/MATRIX/GRAPH answer declares.

    Raises:
        ValidationAmbiguousError: If the answer declares none
    """
    tolerance = getattr(answer, "tolerance", None)
    if tolerance is None:
        raise ValidationAmbiguousError(
            f"canonical {answer.format.value} answer declares no tolerance",
            details={"answer": answer.to_dict()},
        )
    return tolerance


def answers_equivalent(canonical: Answer, other: Answer) -> bool:
    """Same-format equality governed by ``canonical``'s tolerance and flags.

    Answers of different formats are never equivalent here; cross-format
    grading is the validator's job.

    Raises:
        ValidationAmbiguousError: If ``canonical`` needs a tolerance and has none
        ParseError: If an equation answer cannot be parsed
    """
    if canonical.format != other.format:
        return False

    if isinstance(canonical, NumericAnswer) and isinstance(other, NumericAnswer):
        return numbers_close(canonical.value, other.value, required_tolerance(canonical))
    if isinstance(canonical, MatrixAnswer) and isinstance(other, MatrixAnswer):
        return matrices_close(canonical.rows, other.rows, required_tolerance(canonical))
    if isinstance(canonical, GraphAnswer) and isinstance(other, GraphAnswer):
        return shapes_close(canonical.shape, other.shape, required_tolerance(canonical))
    if isinstance(canonical, EquationAnswer) and isinstance(other, EquationAnswer):
        return expressions.parsed_equivalent(
            expressions.parse(canonical.expression, lenient=True),
            expressions.parse(other.expression, lenient=True),
        )
    if isinstance(canonical, MultipleChoiceAnswer) and isinstance(other, MultipleChoiceAnswer):
        return canonical.label == other.label
    if isinstance(canonical, TextAnswer) and isinstance(other, TextAnswer):
        return text_matches(canonical, other.value)
    return False


__all__ = [
    "numbers_close",
    "matrices_close",
    "shapes_close",
    "normalize_text",
    "levenshtein",
    "text_matches",
    "required_tolerance",
    "answers_equivalent",
]

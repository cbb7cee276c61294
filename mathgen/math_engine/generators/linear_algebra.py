"""Linear Algebra Problem Generator.

Matrix sums, products, scalar multiples, transposes, determinants and
inverses with small integer entries. Equations read
``A * B; A = [[1, 2], [3, 4]]; B = [[0, 1], [1, 0]]``.
"""

from __future__ import annotations

from fractions import Fraction
from types import MappingProxyType
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from mathgen.math_engine import mistakes
from mathgen.math_engine.base import (
    TOLERANCE_PARAMETER,
    ParameterDefinition,
    ProblemDraft,
    ProblemGenerator,
    fraction_text,
)
from mathgen.models.answers import Answer, MatrixAnswer, NumericAnswer
from mathgen.models.enums import DifficultyLevel, ProblemType

OPERATIONS = ("add", "subtract", "scale", "multiply", "transpose", "determinant", "inverse")

Grid = List[List[Fraction]]


def _literal(grid: Sequence[Sequence[Fraction]]) -> str:
    return "[" + ", ".join("[" + ", ".join(fraction_text(v) for v in row) + "]" for row in grid) + "]"


def _transpose(grid: Grid) -> Grid:
    return [list(col) for col in zip(*grid)]


def _product(a: Grid, b: Grid) -> Grid:
    return [[sum((x * y for x, y in zip(row, col)), Fraction(0)) for col in zip(*b)] for row in a]


def _elementwise(a: Grid, b: Grid, op: Callable[[Fraction, Fraction], Fraction]) -> Grid:
    return [[op(x, y) for x, y in zip(ra, rb)] for ra, rb in zip(a, b)]


def _determinant(grid: Grid) -> Fraction:
    """Gaussian elimination over the rationals."""
    m = [row[:] for row in grid]
    n = len(m)
    det = Fraction(1)
    for col in range(n):
        pivot = next((r for r in range(col, n) if m[r][col] != 0), None)
        if pivot is None:
            return Fraction(0)
        if pivot != col:
            m[col], m[pivot] = m[pivot], m[col]
            det = -det
        det *= m[col][col]
        for r in range(col + 1, n):
            factor = m[r][col] / m[col][col]
            m[r] = [x - factor * y for x, y in zip(m[r], m[col])]
    return det


def _inverse(grid: Grid) -> Optional[Grid]:
    """Gauss-Jordan over the rationals; None when singular."""
    n = len(grid)
    m = [row[:] + [Fraction(int(i == j)) for j in range(n)] for i, row in enumerate(grid)]
    for col in range(n):
        pivot = next((r for r in range(col, n) if m[r][col] != 0), None)
        if pivot is None:
            return None
        m[col], m[pivot] = m[pivot], m[col]
        lead = m[col][col]
        m[col] = [x / lead for x in m[col]]
        for r in range(n):
            if r != col and m[r][col] != 0:
                factor = m[r][col]
                m[r] = [x - factor * y for x, y in zip(m[r], m[col])]
    return [row[n:] for row in m]


def _as_floats(grid: Grid) -> Tuple[Tuple[float, ...], ...]:
    return tuple(tuple(float(v) for v in row) for row in grid)


def _bumped(grid: Grid, row: int, col: int, delta: int) -> Grid:
    copy = [r[:] for r in grid]
    copy[row][col] += delta
    return copy


class LinearAlgebraGenerator(ProblemGenerator):
    """Matrix arithmetic with small integer entries."""

    DEFAULT_PARAMETERS: Mapping[DifficultyLevel, Mapping[str, Any]] = MappingProxyType({
        DifficultyLevel.BEGINNER: MappingProxyType({
            "operations": ("add", "subtract", "scale"),
            "size": 2,
            "max_entry": 5,
        }),
        DifficultyLevel.INTERMEDIATE: MappingProxyType({
            "operations": ("multiply", "transpose", "determinant"),
            "size": 2,
            "max_entry": 6,
        }),
        DifficultyLevel.ADVANCED: MappingProxyType({
            "operations": ("multiply", "determinant", "inverse"),
            "size": 2,
            "max_entry": 9,
        }),
        DifficultyLevel.EXPERT: MappingProxyType({
            "operations": ("multiply", "determinant", "inverse"),
            "size": 3,
            "max_entry": 9,
        }),
    })

    @property
    def problem_type(self) -> ProblemType:
        return ProblemType.LINEAR_ALGEBRA

    @property
    def description(self) -> str:
        return "Matrix arithmetic, determinants and inverses"

    def get_parameters(self) -> List[ParameterDefinition]:
        return [
            ParameterDefinition("operations", "Operations to draw from", list, choices=OPERATIONS, item_kind=str),
            ParameterDefinition("size", "Number of rows of A", int, minimum=2, maximum=4),
            ParameterDefinition("max_entry", "Largest entry magnitude", int, minimum=1, maximum=99),
            TOLERANCE_PARAMETER,
        ]

    def _matrix(self, rng: np.random.Generator, rows: int, cols: int, bound: int) -> Grid:
        return [[Fraction(int(v)) for v in rng.integers(-bound, bound + 1, size=cols)] for _ in range(rows)]

    def build(
        self,
        params: Mapping[str, Any],
        difficulty: DifficultyLevel,
        rng: np.random.Generator,
    ) -> ProblemDraft:
        operation = str(rng.choice(params["operations"]))
        n, bound = params["size"], params["max_entry"]
        a = self._matrix(rng, n, n, bound)
        givens = [("A", a)]
        candidates: List[Tuple[Grid, str]] = []
        numeric: Optional[Tuple[Fraction, List[Tuple[float, str]]]] = None

        if operation in ("add", "subtract"):
            b = self._matrix(rng, n, n, bound)
            givens.append(("B", b))
            plus = _elementwise(a, b, lambda x, y: x + y)
            minus = _elementwise(a, b, lambda x, y: x - y)
            if operation == "add":
                expression, result = "A + B", plus
                candidates += [(minus, mistakes.SIGN_ERROR)]
            else:
                expression, result = "A - B", minus
                candidates += [
                    (plus, mistakes.SIGN_ERROR),
                    (_elementwise(b, a, lambda x, y: x - y), mistakes.OPERAND_ORDER),
                ]
            candidates.append((_elementwise(a, _transpose(b), lambda x, y: x + y if operation == "add" else x - y),
                               mistakes.TRANSPOSITION))
            prompt = f"Compute {expression}."
        elif operation == "scale":
            k = 0
            while k in (0, 1):
                k = int(rng.integers(-5, 6))
            expression = f"{k} * A"
            result = [[k * v for v in row] for row in a]
            candidates += [
                ([[k + v for v in row] for row in a], mistakes.WRONG_FORMULA),
                ([[k * v for v in a[0]]] + [row[:] for row in a[1:]], mistakes.INCOMPLETE),
                ([[-k * v for v in row] for row in a], mistakes.SIGN_ERROR),
            ]
            prompt = f"Compute {expression}."
        elif operation == "multiply":
            inner = int(rng.integers(2, n + 1))
            a = self._matrix(rng, n, inner, bound)
            b = self._matrix(rng, inner, n, bound)
            givens = [("A", a), ("B", b)]
            expression, result = "A * B", _product(a, b)
            candidates += [
                (_product(b, a), mistakes.OPERAND_ORDER if inner == n else mistakes.DIMENSION),
                (_transpose(result), mistakes.TRANSPOSITION),
            ]
            if inner == n:
                candidates.append((_elementwise(a, b, lambda x, y: x * y), mistakes.CONCEPT_CONFUSION))
            prompt = "Compute the matrix product A * B."
        elif operation == "transpose":
            expression, result = "transpose(A)", _transpose(a)
            candidates += [
                (a, mistakes.INCOMPLETE),
                (a[::-1], mistakes.CONCEPT_CONFUSION),
                ([row[::-1] for row in _transpose(a)], mistakes.WRONG_FORMULA),
            ]
            prompt = "Write down the transpose of A."
        elif operation == "determinant":
            det = _determinant(a)
            expression = "det(A)"
            diagonal = Fraction(1)
            for i in range(n):
                diagonal *= a[i][i]
            others: List[Tuple[float, str]] = [
                (float(-det), mistakes.SIGN_ERROR),
                (float(diagonal), mistakes.INCOMPLETE),
            ]
            if n == 2:
                others.append((float(a[0][0] * a[1][1] + a[0][1] * a[1][0]), mistakes.SIGN_ERROR))
            numeric = (det, others)
            result = []
            prompt = "Find the determinant of A."
        else:
            inverse = _inverse(a)
            while inverse is None:
                a = self._matrix(rng, n, n, bound)
                inverse = _inverse(a)
            givens = [("A", a)]
            det = _determinant(a)
            expression, result = "inverse(A)", inverse
            adjugate = [[v * det for v in row] for row in inverse]
            candidates += [
                (adjugate, mistakes.INCOMPLETE),
                (_transpose(a), mistakes.CONCEPT_CONFUSION),
                ([[-v for v in row] for row in inverse], mistakes.SIGN_ERROR),
            ]
            if all(v != 0 for row in a for v in row):
                candidates.append(([[1 / v for v in row] for row in a], mistakes.WRONG_FORMULA))
            prompt = "Find the inverse of A."

        defined = "; ".join(f"{name} = {_literal(grid)}" for name, grid in givens)
        equation = f"{expression}; {defined}"
        statement = " ".join(f"Let {name} = {_literal(grid)}." for name, grid in givens) + f" {prompt}"
        common = dict(
            title=f"Matrix {operation}",
            statement=statement,
            equation=equation,
            topic="linear algebra",
            sub_topic="matrices",
            tags=("linear algebra", "matrices", operation),
            hints=self._hints(operation),
            skills=("matrix arithmetic",),
            estimated_time_minutes=2.0 + n,
        )

        if numeric is not None:
            value, others = numeric
            answer = NumericAnswer(value=float(value), tolerance=self.tolerance_for(params, True))
            return ProblemDraft(answer=answer, distractors=self.numeric_distractors(answer, others), **common)

        exact = all(v.denominator == 1 for row in result for v in row)
        tolerance = self.tolerance_for(params, exact)
        rows, cols = len(result), len(result[0])
        candidates += [
            (_bumped(result, 0, 0, 1), mistakes.ARITHMETIC_SLIP),
            (_bumped(result, rows - 1, cols - 1, -1), mistakes.ARITHMETIC_SLIP),
        ]
        distractors: List[Tuple[Answer, str]] = [
            (MatrixAnswer(_as_floats(grid), tolerance=tolerance), category) for grid, category in candidates
        ]
        return ProblemDraft(
            answer=MatrixAnswer(_as_floats(result), tolerance=tolerance),
            distractors=distractors,
            **common,
        )

    def _hints(self, operation: str) -> Tuple[str, ...]:
        return {
            "add": ("Add entries in matching positions.",),
            "subtract": ("Subtract entries in matching positions, in the order given.",),
            "scale": ("Multiply every entry by the scalar.",),
            "multiply": ("Entry (i, j) is row i of A dotted with column j of B.",),
            "transpose": ("Rows become columns.",),
            "determinant": ("For a 2×2 matrix, det = ad − bc.", "Expand along a row for larger matrices."),
            "inverse": ("Check the determinant is not zero.", "A⁻¹ = adj(A) / det(A)."),
        }[operation]

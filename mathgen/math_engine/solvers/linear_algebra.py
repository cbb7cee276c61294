"""Linear algebra solver.

Evaluates one matrix operation over named matrices:
``A + B``, ``A - B``, ``A * B`` (matrix product), ``k * A``,
``transpose(A)``, ``det(A)`` and ``inverse(A)``. Matrices are given as
``A = [[1, 2], [3, 4]]`` clauses after the expression.
"""

from __future__ import annotations

import ast
import re
from typing import Dict, Tuple

import numpy as np
import sympy

from mathgen.exceptions import ParseError, SolutionMismatchError
from mathgen.math_engine.solvers.base import Derivation, DomainSolver, StepRecorder, close
from mathgen.models.answers import Answer, MatrixAnswer, NumericAnswer, format_number
from mathgen.models.solution import MathStep

_BINARY = re.compile(r"^([A-Z])\s*([+\-*])\s*([A-Z])$")
_SCALE = re.compile(r"^(-?\d+)\s*\*\s*([A-Z])$")
_UNARY = re.compile(r"^(transpose|det|inverse)\(\s*([A-Z])\s*\)$")
_GIVEN = re.compile(r"^([A-Z])\s*=\s*(\[.*\])$")

_BINARY_OPERATIONS = {"+": "add", "-": "subtract", "*": "multiply"}


def _matrix_text(matrix: np.ndarray) -> str:
    return "[" + ", ".join("[" + ", ".join(format_number(float(v), 6) for v in row) + "]" for row in matrix) + "]"


def _read_matrix(text: str) -> np.ndarray:
    try:
        value = ast.literal_eval(text)
    except (ValueError, SyntaxError) as e:
        raise ParseError("matrix must be a list of rows of numbers", details={"text": text}) from e
    try:
        matrix = np.array(value, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise ParseError("matrix rows must all have the same length", details={"text": text}) from e
    if matrix.ndim != 2 or matrix.size == 0:
        raise ParseError("matrix must be a non-empty list of rows", details={"text": text})
    return matrix


def parse_problem(equation: str) -> Tuple[str, Dict[str, np.ndarray]]:
    clauses = [c.strip() for c in equation.split(";") if c.strip()]
    if len(clauses) < 2:
        raise ParseError("expected an expression followed by matrix definitions", details={"equation": equation})
    matrices: Dict[str, np.ndarray] = {}
    for clause in clauses[1:]:
        match = _GIVEN.match(clause)
        if not match:
            raise ParseError("matrix definitions look like 'A = [[1, 2], [3, 4]]'", details={"clause": clause})
        matrices[match.group(1)] = _read_matrix(match.group(2))
    return clauses[0], matrices


def _step_value(text: str) -> np.ndarray:
    """The matrix after the last ``=`` of a step."""
    return _read_matrix(text.rsplit("=", 1)[1].strip())


class LinearAlgebraSolver(DomainSolver):
    """Matrix operations, each re-checked with numpy."""

    OPERATIONS = frozenset({
        "define",
        "add",
        "subtract",
        "multiply",
        "scale",
        "transpose",
        "determinant",
        "invert",
    })

    @property
    def name(self) -> str:
        return "linear_algebra"

    def _matrix(self, matrices: Dict[str, np.ndarray], name: str) -> np.ndarray:
        if name not in matrices:
            raise ParseError(f"matrix {name} is not defined", details={"defined": sorted(matrices)})
        return matrices[name]

    def derive(self, equation: str, canonical: Answer) -> Derivation:
        expression, matrices = parse_problem(equation)
        recorder = StepRecorder()
        for name, matrix in matrices.items():
            recorder.add(f"{name} = {_matrix_text(matrix)}", "define", justification=f"Write down {name}")

        plan: Dict[int, Tuple[str, Tuple[str, ...], float]] = {}
        tolerance = getattr(canonical, "tolerance", None)

        binary, scale, unary = _BINARY.match(expression), _SCALE.match(expression), _UNARY.match(expression)
        if binary:
            left, symbol, right = binary.groups()
            a, b = self._matrix(matrices, left), self._matrix(matrices, right)
            operation = _BINARY_OPERATIONS[symbol]
            if operation == "multiply":
                if a.shape[1] != b.shape[0]:
                    raise SolutionMismatchError(
                        "matrix product needs columns of the left to equal rows of the right",
                        details={"left": list(a.shape), "right": list(b.shape)},
                    )
                result = a @ b
                rule = "Entry (i, j) is row i of the left matrix dotted with column j of the right"
            else:
                if a.shape != b.shape:
                    raise SolutionMismatchError("matrices must have the same shape",
                                                details={"left": list(a.shape), "right": list(b.shape)})
                result = a + b if operation == "add" else a - b
                rule = "Combine entries in matching positions"
            step = recorder.add(f"{expression} = {_matrix_text(result)}", operation, rule=rule)
            plan[step.step_number] = (operation, (left, right), 1.0)
            answer: Answer = MatrixAnswer(tuple(map(tuple, result.tolist())), tolerance=tolerance)

        elif scale:
            factor, name = float(scale.group(1)), scale.group(2)
            result = factor * self._matrix(matrices, name)
            step = recorder.add(f"{expression} = {_matrix_text(result)}", "scale", rule="Multiply every entry by the scalar")
            plan[step.step_number] = ("scale", (name,), factor)
            answer = MatrixAnswer(tuple(map(tuple, result.tolist())), tolerance=tolerance)

        elif unary:
            function, name = unary.groups()
            a = self._matrix(matrices, name)
            if function == "transpose":
                result = a.T
                step = recorder.add(f"{expression} = {_matrix_text(result)}", "transpose", rule="Rows become columns")
                plan[step.step_number] = ("transpose", (name,), 1.0)
                answer = MatrixAnswer(tuple(map(tuple, result.tolist())), tolerance=tolerance)
            else:
                if a.shape[0] != a.shape[1]:
                    raise SolutionMismatchError("only square matrices have a determinant",
                                                details={"shape": list(a.shape)})
                exact = sympy.Matrix(a.astype(int).tolist() if np.all(a == np.round(a)) else a.tolist())
                det = exact.det()
                det_value = float(det)
                step = recorder.add(
                    f"det({name}) = {format_number(det_value, 6)}",
                    "determinant",
                    rule="ad − bc for 2×2; cofactor expansion otherwise",
                    evaluation=det_value,
                )
                plan[step.step_number] = ("determinant", (name,), 1.0)
                if function == "det":
                    answer = NumericAnswer(value=det_value, tolerance=tolerance)
                else:
                    if det == 0:
                        raise SolutionMismatchError("matrix is singular and has no inverse")
                    inverse = np.array([[float(v) for v in row] for row in exact.inv().tolist()])
                    step = recorder.add(
                        f"inverse({name}) = {_matrix_text(inverse)}",
                        "invert",
                        justification=f"Divide the adjugate by det({name})",
                        rule="A⁻¹ = adj(A) / det(A)",
                    )
                    plan[step.step_number] = ("invert", (name,), 1.0)
                    answer = MatrixAnswer(tuple(map(tuple, inverse.tolist())), tolerance=tolerance)
        else:
            raise ParseError("unsupported matrix expression", details={"expression": expression})

        return Derivation(
            steps=recorder.steps,
            answer=answer,
            method="matrix arithmetic",
            context={"matrices": matrices, "plan": plan},
        )

    def check_step(self, previous: MathStep, step: MathStep, derivation: Derivation) -> bool:
        matrices: Dict[str, np.ndarray] = derivation.context["matrices"]
        if step.operation == "define":
            name, _, text = step.expression.original.partition("=")
            expected = matrices.get(name.strip())
            return expected is not None and np.allclose(_read_matrix(text.strip()), expected, atol=1e-6)

        planned = derivation.context["plan"].get(step.step_number)
        if planned is None or planned[0] != step.operation:
            return False
        operation, names, factor = planned
        operands = [matrices[n] for n in names]

        if operation == "determinant":
            evaluation = step.expression.evaluation
            return isinstance(evaluation, float) and close(float(np.linalg.det(operands[0])), evaluation, rel=1e-6)
        if operation == "invert":
            shown = _step_value(step.expression.original)
            return previous.operation == "determinant" and np.allclose(
                shown @ operands[0], np.eye(operands[0].shape[0]), atol=1e-4
            )

        expected = {
            "add": lambda: operands[0] + operands[1],
            "subtract": lambda: operands[0] - operands[1],
            "multiply": lambda: operands[0] @ operands[1],
            "scale": lambda: factor * operands[0],
            "transpose": lambda: operands[0].T,
        }[operation]()
        shown = _step_value(step.expression.original)
        return shown.shape == expected.shape and np.allclose(shown, expected, atol=1e-6)


__all__ = ["LinearAlgebraSolver", "parse_problem"]

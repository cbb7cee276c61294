"""Transformation solver.

Applies ``translate(dx, dy)``, ``reflect(x|y)`` and ``rotate(90|180|270)``
clauses to a polygon written as ``triangle (0, 0), (4, 0), (0, 3)``.
Rotations are anticlockwise about the origin.
"""

from __future__ import annotations

import re
from typing import Dict, Tuple

import numpy as np

from mathgen.exceptions import ParseError
from mathgen.math_engine import values
from mathgen.math_engine.solvers.base import Derivation, DomainSolver, StepRecorder
from mathgen.models.answers import Answer, GeometricShape, GraphAnswer
from mathgen.models.solution import MathStep

_SHAPE = re.compile(r"^(point|line|triangle|rectangle|polygon)\s+(.+)$")
_POINT = re.compile(r"\(\s*(-?\d+(?:\.\d+)?)\s*,\s*(-?\d+(?:\.\d+)?)\s*\)")
_CLAUSE = re.compile(r"^(translate|reflect|rotate)\s*\(([^()]*)\)$")

_REFLECTIONS = {
    "x": np.array([[1.0, 0.0], [0.0, -1.0]]),
    "y": np.array([[-1.0, 0.0], [0.0, 1.0]]),
}

Transform = Tuple[np.ndarray, np.ndarray]


def parse_shape(text: str) -> GeometricShape:
    match = _SHAPE.match(text.strip())
    if not match:
        raise ParseError("expected a shape such as 'triangle (0, 0), (4, 0), (0, 3)'", details={"text": text})
    points = [(float(x), float(y)) for x, y in _POINT.findall(match.group(2))]
    if not points:
        raise ParseError("shape has no vertices", details={"text": text})
    return GeometricShape(match.group(1), tuple(points))


def parse_transform(clause: str) -> Tuple[str, Transform]:
    """``(operation, (matrix, offset))`` for one clause.

    Raises:
        ParseError: For unknown operations, axes or angles
    """
    match = _CLAUSE.match(clause.strip())
    if not match:
        raise ParseError("unknown transformation", details={"clause": clause})
    operation, argument = match.group(1), match.group(2).strip()

    if operation == "translate":
        try:
            dx, dy = (float(part) for part in argument.split(","))
        except ValueError as e:
            raise ParseError("translate needs two numbers", details={"clause": clause}) from e
        return operation, (np.eye(2), np.array([dx, dy]))

    if operation == "reflect":
        if argument not in _REFLECTIONS:
            raise ParseError("reflect in the x or y axis only", details={"clause": clause})
        return operation, (_REFLECTIONS[argument], np.zeros(2))

    if argument not in ("90", "180", "270"):
        raise ParseError("rotate by 90, 180 or 270 degrees", details={"clause": clause})
    theta = np.deg2rad(float(argument))
    matrix = np.rint(np.array([[np.cos(theta), -np.sin(theta)], [np.sin(theta), np.cos(theta)]]))
    return operation, (matrix, np.zeros(2))


def apply(shape: GeometricShape, transform: Transform) -> GeometricShape:
    matrix, offset = transform
    points = np.asarray(shape.coordinates, dtype=np.float64) @ matrix.T + offset
    return GeometricShape(shape.kind, tuple((float(x), float(y)) for x, y in points))


_JUSTIFICATIONS = {
    "translate": "Add the translation vector to every vertex",
    "reflect": "Change the sign of the coordinate across the mirror axis",
    "rotate": "Rotate every vertex about the origin",
}


class TransformSolver(DomainSolver):
    """Vertex-by-vertex application of plane transformations."""

    OPERATIONS = frozenset({"plot", "translate", "reflect", "rotate"})

    @property
    def name(self) -> str:
        return "geometry"

    @staticmethod
    def handles(equation: str) -> bool:
        """Whether ``equation`` is a shape followed by transformations."""
        first = equation.split(";", 1)[0].strip()
        return bool(_SHAPE.match(first))

    def derive(self, equation: str, canonical: Answer) -> Derivation:
        clauses = [c.strip() for c in equation.split(";") if c.strip()]
        if len(clauses) < 2:
            raise ParseError("expected a shape and at least one transformation", details={"equation": equation})
        shape = parse_shape(clauses[0])

        recorder = StepRecorder()
        recorder.add(shape.display(), "plot", justification="Plot the original vertices")
        transforms: Dict[int, Transform] = {}
        for clause in clauses[1:]:
            operation, transform = parse_transform(clause)
            shape = apply(shape, transform)
            step = recorder.add(
                shape.display(),
                operation,
                justification=_JUSTIFICATIONS[operation],
                rule=clause,
            )
            transforms[step.step_number] = transform

        answer = GraphAnswer(shape, tolerance=getattr(canonical, "tolerance", None))
        return Derivation(
            steps=recorder.steps,
            answer=answer,
            method="apply each transformation to the vertices",
            context={"transforms": transforms},
        )

    def check_step(self, previous: MathStep, step: MathStep, derivation: Derivation) -> bool:
        transform = derivation.context["transforms"].get(step.step_number)
        if transform is None:
            return False
        expected = apply(parse_shape(previous.expression.original), transform)
        return values.shapes_close(expected, parse_shape(step.expression.original), 1e-9)


__all__ = ["TransformSolver", "apply", "parse_shape", "parse_transform"]

"""Geometry Problem Generator.

Measures of rectangles, triangles and circles, Pythagoras (NUMERIC) and
transformations of polygons in the plane (GRAPH).
"""

from __future__ import annotations

import math
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Sequence, Tuple

import numpy as np

from mathgen.math_engine import mistakes
from mathgen.math_engine.base import (
    TOLERANCE_PARAMETER,
    ParameterDefinition,
    ProblemDraft,
    ProblemGenerator,
)
from mathgen.models.answers import Answer, GeometricShape, GraphAnswer, NumericAnswer, Point, format_number
from mathgen.models.enums import DifficultyLevel, ProblemType

MEASURES = (
    "rectangle_area",
    "rectangle_perimeter",
    "triangle_area",
    "circle_area",
    "circle_circumference",
    "pythagoras",
    "missing_leg",
    "circle_radius",
    "transform",
)
TRANSFORMATIONS = ("translate", "reflect", "rotate")

_TRIPLES = ((3, 4, 5), (5, 12, 13), (8, 15, 17), (7, 24, 25), (20, 21, 29))
_COORD_RANGE = 8


def translate(points: Sequence[Point], dx: float, dy: float) -> Tuple[Point, ...]:
    return tuple((x + dx, y + dy) for x, y in points)


def reflect(points: Sequence[Point], axis: str) -> Tuple[Point, ...]:
    if axis == "x":
        return tuple((x, -y) for x, y in points)
    return tuple((-x, y) for x, y in points)


def rotate(points: Sequence[Point], angle: int) -> Tuple[Point, ...]:
    """Anticlockwise about the origin by a multiple of 90 degrees."""
    turns = (angle // 90) % 4
    result = list(points)
    for _ in range(turns):
        result = [(-y, x) for x, y in result]
    return tuple(result)


def _coords_text(points: Sequence[Point]) -> str:
    return ", ".join(f"({format_number(x)}, {format_number(y)})" for x, y in points)


class GeometryGenerator(ProblemGenerator):
    """Plane geometry measures and transformations."""

    DEFAULT_PARAMETERS: Mapping[DifficultyLevel, Mapping[str, Any]] = MappingProxyType({
        DifficultyLevel.BEGINNER: MappingProxyType({
            "kinds": ("rectangle_area", "rectangle_perimeter", "triangle_area"),
            "max_length": 12,
            "unit": "cm",
            "transformations": ("translate",),
        }),
        DifficultyLevel.INTERMEDIATE: MappingProxyType({
            "kinds": ("circle_area", "circle_circumference", "pythagoras", "triangle_area"),
            "max_length": 20,
            "unit": "cm",
            "transformations": ("translate", "reflect"),
        }),
        DifficultyLevel.ADVANCED: MappingProxyType({
            "kinds": ("pythagoras", "missing_leg", "circle_radius", "transform"),
            "max_length": 30,
            "unit": "m",
            "transformations": ("translate", "reflect"),
        }),
        DifficultyLevel.EXPERT: MappingProxyType({
            "kinds": ("missing_leg", "circle_radius", "transform"),
            "max_length": 50,
            "unit": "m",
            "transformations": TRANSFORMATIONS,
        }),
    })

    @property
    def problem_type(self) -> ProblemType:
        return ProblemType.GEOMETRY

    @property
    def description(self) -> str:
        return "Areas, perimeters, Pythagoras and transformations in the plane"

    def get_parameters(self) -> List[ParameterDefinition]:
        return [
            ParameterDefinition("kinds", "Problem kinds to draw from", list, choices=MEASURES, item_kind=str),
            ParameterDefinition("max_length", "Largest side length or radius", int, minimum=2, maximum=1000),
            ParameterDefinition("unit", "Length unit", str),
            ParameterDefinition("transformations", "Transformations to draw from", list,
                                choices=TRANSFORMATIONS, item_kind=str),
            TOLERANCE_PARAMETER,
        ]

    def build(
        self,
        params: Mapping[str, Any],
        difficulty: DifficultyLevel,
        rng: np.random.Generator,
    ) -> ProblemDraft:
        kind = str(rng.choice(params["kinds"]))
        if kind == "transform":
            return self._transform(params, rng)
        builders: Dict[str, Callable[[Mapping[str, Any], np.random.Generator, DifficultyLevel], ProblemDraft]] = {
            "rectangle_area": self._rectangle_area,
            "rectangle_perimeter": self._rectangle_perimeter,
            "triangle_area": self._triangle_area,
            "circle_area": self._circle_area,
            "circle_circumference": self._circle_circumference,
            "pythagoras": self._pythagoras,
            "missing_leg": self._missing_leg,
            "circle_radius": self._circle_radius,
        }
        return builders[kind](params, rng, difficulty)

    def _length(self, params: Mapping[str, Any], rng: np.random.Generator) -> int:
        return int(rng.integers(1, params["max_length"] + 1))

    def _measure(
        self,
        params: Mapping[str, Any],
        title: str,
        statement: str,
        equation: str,
        value: float,
        unit: str,
        candidates: List[Tuple[float, str]],
        sub_topic: str,
        hints: Tuple[str, ...],
    ) -> ProblemDraft:
        exact = float(value).is_integer()
        answer = NumericAnswer(value=value, tolerance=self.tolerance_for(params, exact), unit_of_measurement=unit)
        return ProblemDraft(
            title=title,
            statement=statement,
            equation=equation,
            answer=answer,
            distractors=self.numeric_distractors(answer, candidates),
            topic="geometry",
            sub_topic=sub_topic,
            tags=("geometry", sub_topic),
            hints=hints,
            skills=("applying formulas",),
            estimated_time_minutes=2.0,
        )

    def _rectangle_area(self, params, rng, difficulty) -> ProblemDraft:
        l, w = self._length(params, rng), self._length(params, rng)
        unit = params["unit"]
        return self._measure(
            params,
            "Area of a rectangle",
            f"A rectangle is {l} {unit} long and {w} {unit} wide. What is its area?",
            f"A = l*w; l = {l}; w = {w}",
            float(l * w),
            f"{unit}^2",
            [(2.0 * (l + w), mistakes.CONCEPT_CONFUSION), (float(l + w), mistakes.WRONG_FORMULA)],
            "area",
            ("Area of a rectangle = length × width.",),
        )

    def _rectangle_perimeter(self, params, rng, difficulty) -> ProblemDraft:
        l, w = self._length(params, rng), self._length(params, rng)
        unit = params["unit"]
        return self._measure(
            params,
            "Perimeter of a rectangle",
            f"A rectangle is {l} {unit} long and {w} {unit} wide. What is its perimeter?",
            f"P = 2*(l + w); l = {l}; w = {w}",
            float(2 * (l + w)),
            unit,
            [(float(l * w), mistakes.CONCEPT_CONFUSION), (float(l + w), mistakes.INCOMPLETE)],
            "perimeter",
            ("The perimeter is the total length of all four sides.",),
        )

    def _triangle_area(self, params, rng, difficulty) -> ProblemDraft:
        b, h = self._length(params, rng), self._length(params, rng)
        unit = params["unit"]
        return self._measure(
            params,
            "Area of a triangle",
            f"A triangle has base {b} {unit} and height {h} {unit}. What is its area?",
            f"A = b*h/2; b = {b}; h = {h}",
            b * h / 2,
            f"{unit}^2",
            [(float(b * h), mistakes.INCOMPLETE), ((b + h) / 2, mistakes.WRONG_FORMULA)],
            "area",
            ("Area of a triangle = ½ × base × height.",),
        )

    def _circle_area(self, params, rng, difficulty) -> ProblemDraft:
        r = self._length(params, rng)
        unit = params["unit"]
        return self._measure(
            params,
            "Area of a circle",
            f"A circle has radius {r} {unit}. What is its area?",
            f"A = pi*r**2; r = {r}",
            math.pi * r ** 2,
            f"{unit}^2",
            [
                (2 * math.pi * r, mistakes.CONCEPT_CONFUSION),
                (math.pi * r, mistakes.WRONG_FORMULA),
                (math.pi * (2 * r) ** 2, mistakes.WRONG_FORMULA),
            ],
            "circles",
            ("Area of a circle = π × radius².",),
        )

    def _circle_circumference(self, params, rng, difficulty) -> ProblemDraft:
        r = self._length(params, rng)
        unit = params["unit"]
        return self._measure(
            params,
            "Circumference of a circle",
            f"A circle has radius {r} {unit}. What is its circumference?",
            f"C = 2*pi*r; r = {r}",
            2 * math.pi * r,
            unit,
            [(math.pi * r ** 2, mistakes.CONCEPT_CONFUSION), (math.pi * r, mistakes.INCOMPLETE)],
            "circles",
            ("Circumference = 2 × π × radius.",),
        )

    def _triple(self, params: Mapping[str, Any], rng: np.random.Generator) -> Tuple[int, int, int]:
        limit = max(params["max_length"], 5)
        options = [
            (a * k, b * k, c * k)
            for a, b, c in _TRIPLES
            for k in range(1, limit // c + 1)
        ] or [(3, 4, 5)]
        return options[int(rng.integers(0, len(options)))]

    def _pythagoras(self, params, rng, difficulty) -> ProblemDraft:
        if difficulty.rank <= DifficultyLevel.INTERMEDIATE.rank:
            a, b, _ = self._triple(params, rng)
        else:
            a, b = self._length(params, rng), self._length(params, rng)
        unit = params["unit"]
        return self._measure(
            params,
            "Hypotenuse of a right triangle",
            f"A right triangle has legs of {a} {unit} and {b} {unit}. How long is the hypotenuse?",
            f"c**2 = a**2 + b**2; a = {a}; b = {b}",
            math.hypot(a, b),
            unit,
            [(float(a + b), mistakes.WRONG_FORMULA), (float(a * a + b * b), mistakes.INCOMPLETE)],
            "pythagoras",
            ("In a right triangle, c² = a² + b².",),
        )

    def _missing_leg(self, params, rng, difficulty) -> ProblemDraft:
        a, b, c = self._triple(params, rng)
        unit = params["unit"]
        return self._measure(
            params,
            "Missing side of a right triangle",
            f"A right triangle has hypotenuse {c} {unit} and one leg of {a} {unit}. How long is the other leg?",
            f"c**2 = a**2 + b**2; c = {c}; a = {a}",
            float(b),
            unit,
            [
                (math.hypot(a, c), mistakes.SIGN_ERROR),
                (float(c - a), mistakes.WRONG_FORMULA),
                (float(c * c - a * a), mistakes.INCOMPLETE),
            ],
            "pythagoras",
            ("Rearrange c² = a² + b² to find the missing leg.",),
        )

    def _circle_radius(self, params, rng, difficulty) -> ProblemDraft:
        area = int(rng.integers(10, params["max_length"] * 10 + 1))
        unit = params["unit"]
        return self._measure(
            params,
            "Radius from area",
            f"A circle has area {area} {unit}^2. What is its radius?",
            f"A = pi*r**2; A = {area}",
            math.sqrt(area / math.pi),
            unit,
            [
                (area / math.pi, mistakes.INCOMPLETE),
                (math.sqrt(area), mistakes.WRONG_FORMULA),
                (area / (2 * math.pi), mistakes.CONCEPT_CONFUSION),
            ],
            "circles",
            ("Solve A = π r² for r, and keep the positive root.",),
        )

    def _polygon(self, rng: np.random.Generator) -> Tuple[str, Tuple[Point, ...]]:
        if rng.random() < 0.5:
            x0 = int(rng.integers(-_COORD_RANGE, _COORD_RANGE))
            y0 = int(rng.integers(-_COORD_RANGE, _COORD_RANGE))
            w = int(rng.integers(1, 6))
            h = int(rng.integers(1, 6))
            return "rectangle", ((x0, y0), (x0 + w, y0), (x0 + w, y0 + h), (x0, y0 + h))
        while True:
            points = tuple(
                (int(rng.integers(-_COORD_RANGE, _COORD_RANGE + 1)), int(rng.integers(-_COORD_RANGE, _COORD_RANGE + 1)))
                for _ in range(3)
            )
            if GeometricShape("triangle", points).computed_area():
                return "triangle", points

    def _transform(self, params: Mapping[str, Any], rng: np.random.Generator) -> ProblemDraft:
        kind, points = self._polygon(rng)
        operation = str(rng.choice(params["transformations"]))
        tolerance = self.tolerance_for(params, exact=False)
        candidates: List[Tuple[Tuple[Point, ...], str]] = []

        if operation == "translate":
            dx, dy = 0, 0
            while dx == 0 and dy == 0:
                dx, dy = int(rng.integers(-6, 7)), int(rng.integers(-6, 7))
            image = translate(points, dx, dy)
            clause = f"translate({dx}, {dy})"
            described = f"translated by {dx} units horizontally and {dy} units vertically"
            candidates += [
                (translate(points, -dx, -dy), mistakes.SIGN_ERROR),
                (translate(points, dy, dx), mistakes.TRANSPOSITION),
            ]
        elif operation == "reflect":
            axis = str(rng.choice(("x", "y")))
            image = reflect(points, axis)
            clause = f"reflect({axis})"
            described = f"reflected in the {axis}-axis"
            candidates += [
                (reflect(points, "y" if axis == "x" else "x"), mistakes.CONCEPT_CONFUSION),
                (rotate(points, 180), mistakes.WRONG_FORMULA),
            ]
        else:
            angle = int(rng.choice((90, 180, 270)))
            image = rotate(points, angle)
            clause = f"rotate({angle})"
            described = f"rotated {angle} degrees anticlockwise about the origin"
            candidates += [
                (rotate(points, 360 - angle), mistakes.SIGN_ERROR),
                (reflect(points, "y"), mistakes.CONCEPT_CONFUSION),
            ]

        candidates += [
            (points, mistakes.INCOMPLETE),
            (translate(image, 1, 0), mistakes.OFF_BY_ONE),
            (translate(image, 0, 1), mistakes.OFF_BY_ONE),
            (translate(image, -1, 0), mistakes.OFF_BY_ONE),
        ]
        distractors: List[Tuple[Answer, str]] = [
            (GraphAnswer(GeometricShape(kind, coords), tolerance=tolerance), category)
            for coords, category in candidates
        ]

        original = GeometricShape(kind, points)
        return ProblemDraft(
            title=f"Transform a {kind}",
            statement=(
                f"The {kind} with vertices {_coords_text(points)} is {described}. "
                f"Give the vertices of its image in the same order."
            ),
            equation=f"{original.display()}; {clause}",
            answer=GraphAnswer(GeometricShape(kind, image), tolerance=tolerance),
            distractors=distractors,
            topic="geometry",
            sub_topic="transformations",
            tags=("geometry", "transformations", operation),
            hints=("Apply the transformation to each vertex in turn.",),
            diagram=original.display(),
            skills=("coordinate geometry",),
            estimated_time_minutes=3.0,
        )

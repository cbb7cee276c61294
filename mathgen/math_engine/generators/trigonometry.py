"""Trigonometry Problem Generator.

Exact values at special angles, sides and angles of right triangles, and
the law of cosines. Angles are in degrees throughout; equations convert
with ``*pi/180`` so the formula solver works in radians.
"""

from __future__ import annotations

import math
from types import MappingProxyType
from typing import Any, List, Mapping, Tuple

import numpy as np

from mathgen.math_engine import mistakes
from mathgen.math_engine.base import (
    TOLERANCE_PARAMETER,
    ParameterDefinition,
    ProblemDraft,
    ProblemGenerator,
)
from mathgen.models.answers import NumericAnswer
from mathgen.models.enums import DifficultyLevel, ProblemType

KINDS = ("special_angle", "right_triangle", "inverse_angle", "law_of_cosines")

_SPECIAL_ANGLES = (0, 30, 45, 60, 90, 120, 135, 150, 180)
_FUNCTIONS = {"sin": math.sin, "cos": math.cos, "tan": math.tan}
_OTHER = {"sin": "cos", "cos": "sin", "tan": "sin"}


def _radians(degrees: float) -> float:
    return degrees * math.pi / 180


class TrigonometryGenerator(ProblemGenerator):
    """Trig ratios, right triangles and the law of cosines (angles in degrees)."""

    DEFAULT_PARAMETERS: Mapping[DifficultyLevel, Mapping[str, Any]] = MappingProxyType({
        DifficultyLevel.BEGINNER: MappingProxyType({"kinds": ("special_angle",), "max_side": 10}),
        DifficultyLevel.INTERMEDIATE: MappingProxyType({"kinds": ("special_angle", "right_triangle"), "max_side": 20}),
        DifficultyLevel.ADVANCED: MappingProxyType({"kinds": ("right_triangle", "inverse_angle"), "max_side": 30}),
        DifficultyLevel.EXPERT: MappingProxyType({"kinds": ("inverse_angle", "law_of_cosines"), "max_side": 50}),
    })

    @property
    def problem_type(self) -> ProblemType:
        return ProblemType.TRIGONOMETRY

    @property
    def description(self) -> str:
        return "Trigonometric ratios, right triangles and the law of cosines"

    def get_parameters(self) -> List[ParameterDefinition]:
        return [
            ParameterDefinition("kinds", "Problem kinds to draw from", list, choices=KINDS, item_kind=str),
            ParameterDefinition("max_side", "Longest side length", int, minimum=2, maximum=1000),
            TOLERANCE_PARAMETER,
        ]

    def build(
        self,
        params: Mapping[str, Any],
        difficulty: DifficultyLevel,
        rng: np.random.Generator,
    ) -> ProblemDraft:
        kind = str(rng.choice(params["kinds"]))
        if kind == "special_angle":
            return self._special_angle(params, rng)
        if kind == "right_triangle":
            return self._right_triangle(params, rng)
        if kind == "inverse_angle":
            return self._inverse_angle(params, rng)
        return self._law_of_cosines(params, rng)

    def _draft(
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
        answer = NumericAnswer(value=value, tolerance=self.tolerance_for(params, exact=False), unit_of_measurement=unit or None)
        return ProblemDraft(
            title=title,
            statement=statement,
            equation=equation,
            answer=answer,
            distractors=self.numeric_distractors(answer, candidates),
            topic="trigonometry",
            sub_topic=sub_topic,
            tags=("trigonometry", sub_topic),
            hints=hints,
            skills=("trigonometric ratios",),
            estimated_time_minutes=3.0,
        )

    def _special_angle(self, params: Mapping[str, Any], rng: np.random.Generator) -> ProblemDraft:
        name = str(rng.choice(tuple(_FUNCTIONS)))
        angles = [a for a in _SPECIAL_ANGLES if not (name == "tan" and a == 90)]
        angle = int(rng.choice(angles))
        func = _FUNCTIONS[name]
        value = func(_radians(angle))
        candidates = [
            (_FUNCTIONS[_OTHER[name]](_radians(angle)), mistakes.CONCEPT_CONFUSION),
            (func(angle), mistakes.CONCEPT_CONFUSION),
            (-value, mistakes.SIGN_ERROR),
        ]
        if abs(value) > 1e-12:
            candidates.append((1 / value, mistakes.INVERSE_OPERATION))
        return self._draft(
            params,
            f"Exact value of {name}",
            f"Find the value of {name}({angle}°).",
            f"v = {name}({angle}*pi/180)",
            value,
            "",
            candidates,
            "special angles",
            ("Use the unit circle or the 30-60-90 and 45-45-90 triangles.",),
        )

    def _right_triangle(self, params: Mapping[str, Any], rng: np.random.Generator) -> ProblemDraft:
        hypotenuse = int(rng.integers(2, params["max_side"] + 1))
        angle = int(rng.integers(10, 81))
        if rng.random() < 0.5:
            side, name, other = "opposite", "sin", math.cos
        else:
            side, name, other = "adjacent", "cos", math.sin
        func = _FUNCTIONS[name]
        value = hypotenuse * func(_radians(angle))
        return self._draft(
            params,
            f"Find the {side} side",
            (
                f"A right triangle has hypotenuse {hypotenuse} and an angle of {angle}°. "
                f"How long is the side {side} to that angle?"
            ),
            f"s = h*{name}(a*pi/180); h = {hypotenuse}; a = {angle}",
            value,
            "",
            [
                (hypotenuse * other(_radians(angle)), mistakes.CONCEPT_CONFUSION),
                (hypotenuse * func(angle), mistakes.CONCEPT_CONFUSION),
                (hypotenuse / func(_radians(angle)), mistakes.INVERSE_OPERATION),
            ],
            "right triangles",
            (f"{side.capitalize()} = hypotenuse × {name}(angle).",),
        )

    def _inverse_angle(self, params: Mapping[str, Any], rng: np.random.Generator) -> ProblemDraft:
        hypotenuse = int(rng.integers(3, params["max_side"] + 1))
        opposite = int(rng.integers(1, hypotenuse))
        ratio = opposite / hypotenuse
        value = math.degrees(math.asin(ratio))
        return self._draft(
            params,
            "Find the angle",
            (
                f"In a right triangle the side opposite angle θ is {opposite} and the hypotenuse is "
                f"{hypotenuse}. Find θ in degrees."
            ),
            f"sin(t*pi/180) = o/h; o = {opposite}; h = {hypotenuse}",
            value,
            "degrees",
            [
                (math.asin(ratio), mistakes.CONCEPT_CONFUSION),
                (90 - value, mistakes.CONCEPT_CONFUSION),
                (ratio, mistakes.INCOMPLETE),
            ],
            "inverse ratios",
            ("Use the inverse sine: θ = sin⁻¹(opposite / hypotenuse).",),
        )

    def _law_of_cosines(self, params: Mapping[str, Any], rng: np.random.Generator) -> ProblemDraft:
        a = int(rng.integers(2, params["max_side"] + 1))
        b = int(rng.integers(2, params["max_side"] + 1))
        gamma = int(rng.integers(20, 161))
        cos_g = math.cos(_radians(gamma))
        squared = a * a + b * b - 2 * a * b * cos_g
        value = math.sqrt(squared)
        return self._draft(
            params,
            "Law of cosines",
            f"A triangle has sides {a} and {b} with an included angle of {gamma}°. How long is the third side?",
            f"c**2 = a**2 + b**2 - 2*a*b*cos(g*pi/180); a = {a}; b = {b}; g = {gamma}",
            value,
            "",
            [
                (math.sqrt(a * a + b * b + 2 * a * b * cos_g), mistakes.SIGN_ERROR),
                (squared, mistakes.INCOMPLETE),
                (math.hypot(a, b), mistakes.WRONG_FORMULA),
            ],
            "law of cosines",
            ("c² = a² + b² − 2ab·cos(C).",),
        )

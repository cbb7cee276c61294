"""Algebra Problem Generator.

Linear equations in one unknown, from ``a*x + b = c`` up to
``a*(x + b) - c = d*x + e``. The answer is the equation ``x = v``.
"""

from __future__ import annotations

from fractions import Fraction
from types import MappingProxyType
from typing import Any, List, Mapping, Optional, Tuple

import numpy as np

from mathgen.exceptions import UnsupportedConfigError
from mathgen.math_engine import mistakes
from mathgen.math_engine.base import (
    ParameterDefinition,
    ProblemDraft,
    ProblemGenerator,
    fraction_text,
)
from mathgen.models.answers import Answer, EquationAnswer
from mathgen.models.enums import DifficultyLevel, ProblemType

ONE_STEP = "ax+b=c"
BOTH_SIDES = "ax+b=dx+e"
BRACKETS = "a(x+b)-c=dx+e"


def _signed(value: int) -> str:
    return f"+ {value}" if value >= 0 else f"- {-value}"


class AlgebraGenerator(ProblemGenerator):
    """Linear equations with a single unknown."""

    DEFAULT_PARAMETERS: Mapping[DifficultyLevel, Mapping[str, Any]] = MappingProxyType({
        DifficultyLevel.BEGINNER: MappingProxyType({
            "form": ONE_STEP,
            "min_coefficient": 2,
            "max_coefficient": 9,
            "solution_range": 10,
            "integer_solution": True,
            "variable": "x",
        }),
        DifficultyLevel.INTERMEDIATE: MappingProxyType({
            "form": BOTH_SIDES,
            "min_coefficient": 2,
            "max_coefficient": 12,
            "solution_range": 12,
            "integer_solution": True,
            "variable": "x",
        }),
        DifficultyLevel.ADVANCED: MappingProxyType({
            "form": BRACKETS,
            "min_coefficient": 2,
            "max_coefficient": 12,
            "solution_range": 15,
            "integer_solution": True,
            "variable": "x",
        }),
        DifficultyLevel.EXPERT: MappingProxyType({
            "form": BRACKETS,
            "min_coefficient": 2,
            "max_coefficient": 20,
            "solution_range": 20,
            "integer_solution": False,
            "variable": "x",
        }),
    })

    @property
    def problem_type(self) -> ProblemType:
        return ProblemType.ALGEBRA

    @property
    def description(self) -> str:
        return "Solve linear equations in one unknown"

    def get_parameters(self) -> List[ParameterDefinition]:
        return [
            ParameterDefinition("form", "Equation structure", str, choices=(ONE_STEP, BOTH_SIDES, BRACKETS)),
            ParameterDefinition("min_coefficient", "Smallest coefficient of the unknown", int, minimum=1, maximum=100),
            ParameterDefinition("max_coefficient", "Largest coefficient of the unknown", int, minimum=1, maximum=100),
            ParameterDefinition("solution_range", "Solutions lie in [-range, range]", int, minimum=1, maximum=1000),
            ParameterDefinition("integer_solution", "Require a whole-number solution", bool),
            ParameterDefinition("variable", "Name of the unknown", str, choices=("x", "y", "z", "n", "t")),
        ]

    def check_parameters(self, params: Mapping[str, Any]) -> None:
        if params["min_coefficient"] > params["max_coefficient"]:
            raise UnsupportedConfigError(
                "min_coefficient cannot exceed max_coefficient",
                details={"min_coefficient": params["min_coefficient"], "max_coefficient": params["max_coefficient"]},
            )
        if params["form"] != ONE_STEP and params["min_coefficient"] == params["max_coefficient"]:
            raise UnsupportedConfigError(
                f"form '{params['form']}' needs at least two distinct coefficients",
                details={"form": params["form"]},
            )

    def _coefficient(self, params: Mapping[str, Any], rng: np.random.Generator) -> int:
        return int(rng.integers(params["min_coefficient"], params["max_coefficient"] + 1))

    def _constant(self, params: Mapping[str, Any], rng: np.random.Generator) -> int:
        bound = 2 * params["max_coefficient"]
        value = 0
        while value == 0:
            value = int(rng.integers(-bound, bound + 1))
        return value

    def build(
        self,
        params: Mapping[str, Any],
        difficulty: DifficultyLevel,
        rng: np.random.Generator,
    ) -> ProblemDraft:
        x = params["variable"]
        form = params["form"]
        whole = params["integer_solution"]
        span = params["solution_range"]

        a = self._coefficient(params, rng)
        b = self._constant(params, rng)
        candidates: List[Tuple[Optional[Fraction], str]] = []

        if form == ONE_STEP:
            if whole:
                v = Fraction(int(rng.integers(-span, span + 1)))
                c = int(a * v + b)
            else:
                c = self._constant(params, rng)
                v = Fraction(c - b, a)
            equation = f"{a}*{x} {_signed(b)} = {c}"
            candidates += [
                (Fraction(c - b), mistakes.INCOMPLETE),
                (Fraction(c + b, a), mistakes.INVERSE_OPERATION),
            ]
        else:
            d = a
            while d == a:
                d = self._coefficient(params, rng)
            if form == BOTH_SIDES:
                c = 0
                offset = b
            else:
                c = self._constant(params, rng)
                offset = a * b - c
            # a*x + offset = d*x + e
            if whole:
                v = Fraction(int(rng.integers(-span, span + 1)))
                e = int((a - d) * v + offset)
            else:
                e = self._constant(params, rng)
                v = Fraction(e - offset, a - d)

            if form == BOTH_SIDES:
                equation = f"{a}*{x} {_signed(b)} = {d}*{x} {_signed(e)}"
                candidates.append((Fraction(e + b, a - d), mistakes.CONSTANT_TERM))
            else:
                equation = f"{a}*({x} {_signed(b)}) {_signed(-c)} = {d}*{x} {_signed(e)}"
                candidates.append((Fraction(e + c - b, a - d), mistakes.DISTRIBUTION))
            candidates.append((Fraction(e - offset), mistakes.INCOMPLETE))
            if a + d != 0:
                candidates.append((Fraction(e - offset, a + d), mistakes.COEFFICIENT))

        candidates = [(-v, mistakes.SIGN_ERROR)] + candidates + [
            (v + 1, mistakes.OFF_BY_ONE),
            (v - 1, mistakes.OFF_BY_ONE),
            (v * 10, mistakes.DECIMAL_PLACE),
            (v * 2, mistakes.COEFFICIENT),
            (v + 2, mistakes.ARITHMETIC_SLIP),
        ]
        distractors: List[Tuple[Answer, str]] = [
            (EquationAnswer(f"{x} = {fraction_text(w)}"), category)
            for w, category in candidates
            if w is not None
        ]

        hints = []
        if form == BRACKETS:
            hints.append("Expand the brackets first.")
        if form != ONE_STEP:
            hints.append(f"Collect the {x} terms on one side and the numbers on the other.")
        hints.append(f"Divide both sides by the coefficient of {x}.")

        return ProblemDraft(
            title=f"Solve for {x}",
            statement=f"Solve for {x}: {equation.replace('*', '')}",
            equation=equation,
            answer=EquationAnswer(f"{x} = {fraction_text(v)}"),
            distractors=distractors,
            topic="algebra",
            sub_topic="linear equations",
            tags=("algebra", "linear equations") + (("distributive property",) if form == BRACKETS else ()),
            hints=tuple(hints),
            skills=("solving linear equations",),
            estimated_time_minutes={ONE_STEP: 2.0, BOTH_SIDES: 3.0, BRACKETS: 4.0}[form],
        )

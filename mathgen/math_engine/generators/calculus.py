"""Calculus Problem Generator.

Derivatives of polynomials, products and compositions (EQUATION answers)
and definite integrals of polynomials (NUMERIC answers). Equations are
written as ``Derivative(f, x)`` and ``Integral(f, (x, a, b))``.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, List, Mapping, Tuple

import numpy as np
import sympy

from mathgen.math_engine import expressions, mistakes
from mathgen.math_engine.base import (
    TOLERANCE_PARAMETER,
    ParameterDefinition,
    ProblemDraft,
    ProblemGenerator,
)
from mathgen.models.answers import Answer, EquationAnswer, NumericAnswer
from mathgen.models.enums import DifficultyLevel, ProblemType

KINDS = ("derivative", "integral")
FORMS = ("polynomial", "product", "chain")


def _nonzero(rng: np.random.Generator, bound: int) -> int:
    value = 0
    while value == 0:
        value = int(rng.integers(-bound, bound + 1))
    return value


class CalculusGenerator(ProblemGenerator):
    """Differentiation and definite integration."""

    DEFAULT_PARAMETERS: Mapping[DifficultyLevel, Mapping[str, Any]] = MappingProxyType({
        DifficultyLevel.BEGINNER: MappingProxyType({
            "kinds": ("derivative",),
            "form": "polynomial",
            "degree": 2,
            "max_coefficient": 9,
            "variable": "x",
        }),
        DifficultyLevel.INTERMEDIATE: MappingProxyType({
            "kinds": ("derivative", "integral"),
            "form": "polynomial",
            "degree": 3,
            "max_coefficient": 9,
            "variable": "x",
        }),
        DifficultyLevel.ADVANCED: MappingProxyType({
            "kinds": ("derivative", "integral"),
            "form": "product",
            "degree": 3,
            "max_coefficient": 6,
            "variable": "x",
        }),
        DifficultyLevel.EXPERT: MappingProxyType({
            "kinds": ("derivative", "integral"),
            "form": "chain",
            "degree": 4,
            "max_coefficient": 6,
            "variable": "x",
        }),
    })

    @property
    def problem_type(self) -> ProblemType:
        return ProblemType.CALCULUS

    @property
    def description(self) -> str:
        return "Differentiate functions and evaluate definite integrals"

    def get_parameters(self) -> List[ParameterDefinition]:
        return [
            ParameterDefinition("kinds", "Problem kinds to draw from", list, choices=KINDS, item_kind=str),
            ParameterDefinition("form", "Shape of the function to differentiate", str, choices=FORMS),
            ParameterDefinition("degree", "Polynomial degree", int, minimum=1, maximum=6),
            ParameterDefinition("max_coefficient", "Largest coefficient magnitude", int, minimum=1, maximum=50),
            ParameterDefinition("variable", "Name of the variable", str, choices=("x", "t", "u")),
            TOLERANCE_PARAMETER,
        ]

    def build(
        self,
        params: Mapping[str, Any],
        difficulty: DifficultyLevel,
        rng: np.random.Generator,
    ) -> ProblemDraft:
        if str(rng.choice(params["kinds"])) == "integral":
            return self._integral(params, rng)
        return self._derivative(params, rng)

    def _polynomial(self, params: Mapping[str, Any], rng: np.random.Generator, degree: int) -> List[int]:
        """Coefficients c0..cn with a non-zero leading term."""
        bound = params["max_coefficient"]
        coefficients = [int(rng.integers(-bound, bound + 1)) for _ in range(degree)]
        coefficients.append(_nonzero(rng, bound))
        return coefficients

    def _derivative(self, params: Mapping[str, Any], rng: np.random.Generator) -> ProblemDraft:
        x = sympy.Symbol(params["variable"])
        form = params["form"]
        bound = params["max_coefficient"]
        candidates: List[Tuple[sympy.Expr, str]] = []

        if form == "polynomial":
            coefficients = self._polynomial(params, rng, params["degree"])
            f = sum(c * x ** k for k, c in enumerate(coefficients))
            derivative = sympy.diff(f, x)
            candidates += [
                (sum(k * c * x ** k for k, c in enumerate(coefficients)), mistakes.OFF_BY_ONE),
                (sum(c * x ** (k - 1) for k, c in enumerate(coefficients) if k), mistakes.COEFFICIENT),
                (derivative + coefficients[0], mistakes.CONSTANT_TERM),
                (sum(sympy.Rational(c, k + 1) * x ** (k + 1) for k, c in enumerate(coefficients)),
                 mistakes.CONCEPT_CONFUSION),
            ]
            rule = "power rule"
        elif form == "product":
            a = _nonzero(rng, bound)
            n = int(rng.integers(1, min(params["degree"], 4) + 1))
            k = _nonzero(rng, 3)
            u, v = a * x ** n, sympy.exp(k * x)
            f = u * v
            derivative = sympy.diff(f, x)
            du, dv = sympy.diff(u, x), sympy.diff(v, x)
            candidates += [
                (du * dv, mistakes.WRONG_FORMULA),
                (du * v, mistakes.INCOMPLETE),
                (du * v - u * dv, mistakes.SIGN_ERROR),
            ]
            rule = "product rule"
        else:
            a = _nonzero(rng, bound)
            b = _nonzero(rng, bound)
            n = int(rng.integers(2, min(params["degree"], 5) + 1))
            inner = a * x ** 2 + b
            if rng.random() < 0.5:
                f = inner ** n
                candidates += [
                    (n * inner ** (n - 1), mistakes.INCOMPLETE),
                    (n * inner ** (n - 1) * 2 * a, mistakes.WRONG_FORMULA),
                ]
            else:
                f = sympy.sin(inner)
                candidates += [
                    (sympy.cos(inner), mistakes.INCOMPLETE),
                    (-sympy.cos(inner) * sympy.diff(inner, x), mistakes.SIGN_ERROR),
                    (sympy.cos(inner) * 2 * a, mistakes.WRONG_FORMULA),
                ]
            derivative = sympy.diff(f, x)
            rule = "chain rule"

        candidates += [
            (-derivative, mistakes.SIGN_ERROR),
            (2 * derivative, mistakes.COEFFICIENT),
            (derivative + 1, mistakes.CONSTANT_TERM),
        ]
        distractors: List[Tuple[Answer, str]] = [
            (EquationAnswer(expressions.render(sympy.expand(expr))), category) for expr, category in candidates
        ]
        text = expressions.render(f)
        return ProblemDraft(
            title="Find the derivative",
            statement=f"Differentiate f({x}) = {text} with respect to {x}.",
            equation=f"Derivative({text}, {x})",
            answer=EquationAnswer(expressions.render(sympy.expand(derivative))),
            distractors=distractors,
            topic="calculus",
            sub_topic="differentiation",
            tags=("calculus", "derivatives", rule),
            hints=(f"Use the {rule}.",),
            skills=("differentiation",),
            estimated_time_minutes=3.0 if form == "polynomial" else 5.0,
        )

    def _integral(self, params: Mapping[str, Any], rng: np.random.Generator) -> ProblemDraft:
        x = sympy.Symbol(params["variable"])
        coefficients = self._polynomial(params, rng, min(params["degree"], 3))
        lower = int(rng.integers(-3, 3))
        upper = lower + int(rng.integers(1, 4))

        f = sum(c * x ** k for k, c in enumerate(coefficients))
        antiderivative = sum(sympy.Rational(c, k + 1) * x ** (k + 1) for k, c in enumerate(coefficients))
        exact = antiderivative.subs(x, upper) - antiderivative.subs(x, lower)
        value = float(exact)

        no_division = sum(c * x ** (k + 1) for k, c in enumerate(coefficients))
        candidates = [
            (float(antiderivative.subs(x, upper)), mistakes.BOUNDS),
            (-value, mistakes.SIGN_ERROR),
            (float(no_division.subs(x, upper) - no_division.subs(x, lower)), mistakes.COEFFICIENT),
            (float(f.subs(x, upper) - f.subs(x, lower)), mistakes.CONCEPT_CONFUSION),
        ]
        answer = NumericAnswer(value=value, tolerance=self.tolerance_for(params, bool(exact.is_Integer)))
        text = expressions.render(f)
        return ProblemDraft(
            title="Evaluate the integral",
            statement=f"Evaluate the definite integral of {text} from {x} = {lower} to {x} = {upper}.",
            equation=f"Integral({text}, ({x}, {lower}, {upper}))",
            answer=answer,
            distractors=self.numeric_distractors(answer, candidates),
            topic="calculus",
            sub_topic="integration",
            tags=("calculus", "integrals"),
            hints=(
                "Integrate term by term: the integral of x^n is x^(n+1)/(n+1).",
                "Subtract the value at the lower bound from the value at the upper bound.",
            ),
            skills=("integration",),
            estimated_time_minutes=5.0,
        )

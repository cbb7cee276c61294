"""Formula solver.

Solves a formula system written as ``model; symbol = value; ...``, for
example ``A = pi*r**2; r = 5``. The model has exactly one symbol without a
value; the solver substitutes the knowns and either evaluates the unknown
directly or solves for it, keeping the smallest positive real root.

Used by geometry measures, trigonometry, probability and word problems.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

import sympy

from mathgen.exceptions import ParseError, SolutionMismatchError
from mathgen.math_engine import expressions
from mathgen.math_engine.solvers.base import Derivation, DomainSolver, StepRecorder, close
from mathgen.models.answers import Answer, NumericAnswer, format_number
from mathgen.models.solution import MathStep

# Steps are authored by the solver itself and may be long (exact rationals)
INTERNAL_MAX_LENGTH = 20_000


@dataclass(frozen=True)
class FormulaSystem:
    model_text: str
    model: expressions.ParsedExpression
    knowns: Dict[sympy.Symbol, sympy.Expr]
    unknown: sympy.Symbol


def parse_system(equation: str) -> FormulaSystem:
    """Split and parse ``model; a = 1; b = 2``.

    Raises:
        ParseError: If the model is not an equation, a known is not
            ``symbol = number``, or the model does not have exactly one unknown
    """
    clauses = [c.strip() for c in equation.split(";") if c.strip()]
    if not clauses:
        raise ParseError("empty formula system")
    model = expressions.parse(clauses[0])
    if not model.is_equation:
        raise ParseError("the first clause must be an equation", details={"clause": clauses[0]})

    knowns: Dict[sympy.Symbol, sympy.Expr] = {}
    for clause in clauses[1:]:
        given = expressions.parse(clause)
        if not given.is_equation or not isinstance(given.lhs, sympy.Symbol) or given.rhs.free_symbols:
            raise ParseError("given values must look like 'symbol = number'", details={"clause": clause})
        knowns[given.lhs] = given.rhs

    unknowns = model.free_symbols - set(knowns)
    if len(unknowns) != 1:
        raise ParseError(
            "the model must have exactly one unknown",
            details={"unknowns": sorted(str(s) for s in unknowns)},
        )
    return FormulaSystem(clauses[0], model, knowns, next(iter(unknowns)))


def _choose_root(roots: List[sympy.Expr]) -> Optional[sympy.Expr]:
    numeric = []
    for root in roots:
        value = expressions.as_float(root) if not root.free_symbols else None
        if value is not None:
            numeric.append((value, root))
    positive = sorted(((v, r) for v, r in numeric if v > 0), key=lambda item: item[0])
    if positive:
        return positive[0][1]
    if numeric:
        return sorted(numeric, key=lambda item: abs(item[0]))[0][1]
    return None


class FormulaSolver(DomainSolver):
    """Substitute-and-solve for a single unknown."""

    OPERATIONS = frozenset({"model", "substitute", "solve_for_unknown", "evaluate"})

    @property
    def name(self) -> str:
        return "formula"

    def derive(self, equation: str, canonical: Answer) -> Derivation:
        system = parse_system(equation)
        x = system.unknown
        recorder = StepRecorder()
        recorder.add(system.model_text, "model", justification="Write down the formula",
                     rule=f"Use the formula {system.model_text}")

        lhs = system.model.lhs.subs(system.knowns)
        rhs = system.model.rhs.subs(system.knowns)
        if system.knowns:
            givens = ", ".join(f"{s} = {expressions.render(v)}" for s, v in system.knowns.items())
            recorder.add(
                f"{expressions.render(lhs)} = {expressions.render(rhs)}",
                "substitute",
                justification=f"Substitute the known values ({givens})",
            )

        if lhs == x and x not in rhs.free_symbols:
            exact = rhs
        else:
            root = _choose_root(expressions.real_roots(lhs - rhs, x))
            if root is None:
                raise SolutionMismatchError("no real solution for the unknown", details={"unknown": str(x)})
            exact = root
            recorder.add(
                f"{x} = {expressions.render(exact)}",
                "solve_for_unknown",
                justification=f"Rearrange to make {x} the subject",
                rule="Keep the positive solution for a length, time or amount",
            )

        value = expressions.as_float(exact)
        if value is None:
            raise SolutionMismatchError("the unknown has no real value", details={"unknown": str(x)})
        if not exact.is_Integer:
            recorder.add(
                f"{x} = {format_number(value, 6)}",
                "evaluate",
                justification="Evaluate numerically",
                evaluation=value,
            )

        answer = NumericAnswer(
            value=value,
            tolerance=getattr(canonical, "tolerance", None),
            unit_of_measurement=getattr(canonical, "unit_of_measurement", None),
        )
        return Derivation(
            steps=recorder.steps,
            answer=answer,
            method="substitute and solve",
            context={"system": system},
        )

    def check_step(self, previous: MathStep, step: MathStep, derivation: Derivation) -> bool:
        system: FormulaSystem = derivation.context["system"]
        x = system.unknown
        before = expressions.parse(previous.expression.original, max_length=INTERNAL_MAX_LENGTH)

        if step.operation == "evaluate":
            if before.lhs != x or before.rhs is None or x in before.rhs.free_symbols:
                return False
            evaluation = step.expression.evaluation
            return isinstance(evaluation, float) and close(float(sympy.N(before.rhs)), evaluation)

        after = expressions.parse(step.expression.original, max_length=INTERNAL_MAX_LENGTH)
        if not after.is_equation:
            return False
        if step.operation == "substitute":
            return expressions.is_zero(before.zero_form.subs(system.knowns) - after.zero_form)
        if step.operation == "solve_for_unknown":
            if after.lhs != x or x in after.rhs.free_symbols:
                return False
            return expressions.is_zero(before.zero_form.subs(system.knowns).subs(x, after.rhs))
        return False

"""Algebra solver: isolates the unknown of a linear equation."""

from __future__ import annotations

import sympy

from mathgen.exceptions import ParseError, SolutionMismatchError
from mathgen.math_engine import expressions
from mathgen.math_engine.solvers.base import Derivation, DomainSolver, StepRecorder
from mathgen.models.answers import Answer, EquationAnswer
from mathgen.models.solution import MathStep


class AlgebraSolver(DomainSolver):
    """Expand, collect, divide."""

    OPERATIONS = frozenset({"state", "expand", "collect_terms", "divide"})

    @property
    def name(self) -> str:
        return "algebra"

    def derive(self, equation: str, canonical: Answer) -> Derivation:
        parsed = expressions.parse(equation)
        if not parsed.is_equation:
            raise ParseError("algebra problems need an equation", details={"equation": equation})
        symbols = parsed.free_symbols
        if len(symbols) != 1:
            raise ParseError("expected exactly one unknown", details={"unknowns": sorted(str(s) for s in symbols)})
        x = next(iter(symbols))
        lhs, rhs = parsed.lhs, parsed.rhs
        assert rhs is not None

        recorder = StepRecorder()
        recorder.add(parsed.render(), "state", justification="Write down the equation")

        expanded_lhs, expanded_rhs = sympy.expand(lhs), sympy.expand(rhs)
        if "(" in equation:
            recorder.add(
                f"{expressions.render(expanded_lhs)} = {expressions.render(expanded_rhs)}",
                "expand",
                justification="Multiply out the brackets",
                rule="Distributive property: a(b + c) = ab + ac",
            )

        zero = sympy.expand(expanded_lhs - expanded_rhs)
        if sympy.Poly(zero, x).degree() != 1:
            raise SolutionMismatchError("equation is not linear in the unknown", details={"equation": equation})
        coefficient = zero.coeff(x, 1)
        constant = zero.coeff(x, 0)

        collected = f"{expressions.render(coefficient * x)} = {expressions.render(-constant)}"
        if collected != recorder.steps[-1].expression.original:
            recorder.add(
                collected,
                "collect_terms",
                justification=f"Move the {x} terms to the left and the numbers to the right",
                rule="Adding or subtracting the same quantity on both sides keeps the equation balanced",
            )

        value = sympy.nsimplify(-constant / coefficient)
        if coefficient != 1:
            recorder.add(
                f"{x} = {expressions.render(value)}",
                "divide",
                justification=f"Divide both sides by {expressions.render(coefficient)}",
                rule="Dividing both sides by the same non-zero number keeps the equation balanced",
                evaluation=float(value),
            )

        answer = EquationAnswer(f"{x} = {expressions.render(value)}")
        return Derivation(steps=recorder.steps, answer=answer, method="isolate the unknown", context={"unknown": x})

    def check_step(self, previous: MathStep, step: MathStep, derivation: Derivation) -> bool:
        before = expressions.parse(previous.expression.original)
        after = expressions.parse(step.expression.original)
        if not after.is_equation or not expressions.equations_equivalent(before, after):
            return False
        if step.operation == "collect_terms":
            return not after.rhs.free_symbols
        if step.operation == "divide":
            return after.lhs == derivation.context["unknown"]
        return True

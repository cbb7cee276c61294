"""Calculus solver.

``Derivative(f, x)`` is differentiated rule by rule and simplified;
``Integral(f, (x, a, b))`` goes through an antiderivative whose derivative
is checked against the integrand, then the bounds are evaluated.
"""

from __future__ import annotations

from typing import Tuple

import sympy

from mathgen.exceptions import ParseError, SolutionMismatchError
from mathgen.math_engine import expressions
from mathgen.math_engine.solvers.base import Derivation, DomainSolver, StepRecorder, close
from mathgen.models.answers import Answer, EquationAnswer, NumericAnswer, format_number
from mathgen.models.solution import MathStep

INTERNAL_MAX_LENGTH = 20_000


def _rule_for(expr: sympy.Expr, x: sympy.Symbol) -> str:
    """Name the main differentiation rule ``expr`` calls for."""
    composed = isinstance(expr, (sympy.Pow, sympy.Function)) and any(
        arg.has(x) and arg != x for arg in expr.args
    )
    if composed and not (isinstance(expr, sympy.Pow) and expr.base == x):
        return "Chain rule: f(g(x))' = f'(g(x))·g'(x)"
    if expr.is_polynomial(x):
        return "Power rule, term by term"
    if isinstance(expr, sympy.Mul) and sum(1 for factor in expr.args if factor.has(x)) > 1:
        return "Product rule: (uv)' = u'v + uv'"
    if isinstance(expr, sympy.Add):
        return "Sum rule: differentiate each term"
    return "Chain rule: f(g(x))' = f'(g(x))·g'(x)"


class CalculusSolver(DomainSolver):
    """Symbolic differentiation and definite integration."""

    OPERATIONS = frozenset({
        "state",
        "differentiate",
        "simplify",
        "antiderivative",
        "evaluate_bounds",
        "evaluate",
    })

    @property
    def name(self) -> str:
        return "calculus"

    def _parse(self, text: str) -> sympy.Expr:
        return expressions.parse(text, max_length=INTERNAL_MAX_LENGTH).lhs

    def derive(self, equation: str, canonical: Answer) -> Derivation:
        parsed = expressions.parse(equation)
        if parsed.is_equation:
            raise ParseError("calculus problems are written as Derivative(...) or Integral(...)")
        expr = parsed.lhs
        if isinstance(expr, sympy.Derivative):
            return self._derivative(expr, canonical)
        if isinstance(expr, sympy.Integral):
            return self._integral(expr, canonical)
        raise ParseError("expected Derivative(f, x) or Integral(f, (x, a, b))", details={"equation": equation})

    def _derivative(self, expr: sympy.Derivative, canonical: Answer) -> Derivation:
        function = expr.expr
        variables = expr.variables
        if len(variables) != 1:
            raise ParseError("only first derivatives in one variable are supported")
        x = variables[0]

        recorder = StepRecorder()
        recorder.add(
            expressions.render(expr),
            "state",
            justification=f"Differentiate with respect to {x}",
            latex=sympy.latex(expr),
        )
        result = expr.doit()
        recorder.add(
            expressions.render(result),
            "differentiate",
            rule=_rule_for(function, x),
            latex=sympy.latex(result),
        )
        simplified = sympy.expand(result)
        if expressions.render(simplified) != expressions.render(result):
            recorder.add(
                expressions.render(simplified),
                "simplify",
                justification="Expand and collect like terms",
                latex=sympy.latex(simplified),
            )

        return Derivation(
            steps=recorder.steps,
            answer=EquationAnswer(expressions.render(simplified)),
            method="differentiation",
        )

    def _bounds(self, expr: sympy.Integral) -> Tuple[sympy.Symbol, sympy.Expr, sympy.Expr]:
        if len(expr.limits) != 1 or len(expr.limits[0]) != 3:
            raise ParseError("only definite integrals in one variable are supported")
        x, lower, upper = expr.limits[0]
        return x, lower, upper

    def _integral(self, expr: sympy.Integral, canonical: Answer) -> Derivation:
        x, lower, upper = self._bounds(expr)
        integrand = expr.function

        recorder = StepRecorder()
        recorder.add(expressions.render(expr), "state", justification="Write down the integral",
                     latex=sympy.latex(expr))

        antiderivative = sympy.integrate(integrand, x)
        if antiderivative.has(sympy.Integral):
            raise SolutionMismatchError("no elementary antiderivative", details={"integrand": str(integrand)})
        recorder.add(
            expressions.render(antiderivative),
            "antiderivative",
            justification=f"Find F({x}) with F'({x}) equal to the integrand",
            rule="Reverse power rule: the integral of x^n is x^(n+1)/(n+1)",
            latex=sympy.latex(antiderivative),
        )

        at_upper = antiderivative.subs(x, upper)
        at_lower = antiderivative.subs(x, lower)
        exact = sympy.nsimplify(at_upper - at_lower)
        recorder.add(
            f"({expressions.render(at_upper)}) - ({expressions.render(at_lower)})",
            "evaluate_bounds",
            justification=f"Evaluate F at {x} = {upper} and subtract F at {x} = {lower}",
            simplified=expressions.render(exact),
        )

        value = expressions.as_float(exact)
        if value is None:
            raise SolutionMismatchError("the integral has no real value")
        if not exact.is_Integer:
            recorder.add(format_number(value, 6), "evaluate", justification="Evaluate numerically", evaluation=value)

        answer = NumericAnswer(
            value=value,
            tolerance=getattr(canonical, "tolerance", None),
            unit_of_measurement=getattr(canonical, "unit_of_measurement", None),
        )
        return Derivation(
            steps=recorder.steps,
            answer=answer,
            method="fundamental theorem of calculus",
            context={"variable": x, "integrand": integrand, "bounds": (lower, upper)},
        )

    def check_step(self, previous: MathStep, step: MathStep, derivation: Derivation) -> bool:
        before = self._parse(previous.expression.original)

        if step.operation == "evaluate":
            evaluation = step.expression.evaluation
            value = expressions.as_float(before)
            return isinstance(evaluation, float) and value is not None and close(value, evaluation)

        after = self._parse(step.expression.original)
        if step.operation == "differentiate":
            return isinstance(before, sympy.Derivative) and expressions.expressions_equivalent(before.doit(), after)
        if step.operation == "simplify":
            return expressions.expressions_equivalent(before, after)
        if step.operation == "antiderivative":
            x = derivation.context["variable"]
            return expressions.expressions_equivalent(sympy.diff(after, x), derivation.context["integrand"])
        if step.operation == "evaluate_bounds":
            x = derivation.context["variable"]
            lower, upper = derivation.context["bounds"]
            return expressions.is_zero(after - (before.subs(x, upper) - before.subs(x, lower)))
        return False

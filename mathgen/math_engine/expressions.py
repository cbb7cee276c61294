"""Symbolic expression parsing and equivalence.

All symbolic input goes through :func:`parse` which screens the text (safe
character set, maximum length) before handing it to SymPy. Two parser
modes exist:

- strict: engine-authored equations; multiplication must be explicit
- lenient: learner input; ``2x`` and ``3(x+1)`` are read as products

Equivalence rules:

- expressions are equal when their difference simplifies to zero
- equations ``L1 = R1`` and ``L2 = R2`` are equal when
  ``(L1 - R1) / (L2 - R2)`` simplifies to a non-zero constant, or, for
  univariate equations, when their real solution sets coincide
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from tokenize import TokenError
from typing import Any, Dict, List, Optional

import sympy
from sympy.core.sympify import SympifyError
from sympy.parsing.sympy_parser import (
    convert_xor,
    implicit_multiplication_application,
    parse_expr,
    rationalize,
    standard_transformations,
)

from mathgen.config import get_settings
from mathgen.exceptions import ParseError
from mathgen.models.solution import MathExpression

STRICT_TRANSFORMATIONS = standard_transformations + (convert_xor, rationalize)

LENIENT_TRANSFORMATIONS = standard_transformations + (
    implicit_multiplication_application,
    convert_xor,
    rationalize,
)

# Names the parser may resolve to SymPy objects; everything else becomes a Symbol
_SYMPY_NAMES = (
    "Symbol", "Integer", "Float", "Rational", "Function", "Lambda",
    "Add", "Mul", "Pow",
    "factorial", "factorial2",
    "sin", "cos", "tan", "asin", "acos", "atan",
    "sqrt", "exp", "log", "Abs", "pi", "binomial",
    "Derivative", "Integral",
)

_GLOBALS: Dict[str, Any] = {name: getattr(sympy, name) for name in _SYMPY_NAMES}
_GLOBALS.update({"ln": sympy.log, "abs": sympy.Abs, "__builtins__": {}})

# Single letters SymPy would otherwise read as constants or special objects
_LOCALS: Dict[str, Any] = {name: sympy.Symbol(name) for name in ("E", "I", "N", "O", "Q", "S")}

_SAFE_TEXT = re.compile(r"^[0-9A-Za-z_\s.+\-*/^(),=]*$")
_ATTRIBUTE_ACCESS = re.compile(r"\.\s*[A-Za-z_]")

_UNICODE_OPERATORS = str.maketrans({"×": "*", "·": "*", "÷": "/", "−": "-", "–": "-"})

_PARSE_FAILURES = (SympifyError, SyntaxError, TokenError, TypeError, ValueError, AttributeError)


@dataclass(frozen=True)
class ParsedExpression:
    """A parsed expression, or an equation when ``rhs`` is set."""

    text: str
    lhs: sympy.Expr
    rhs: Optional[sympy.Expr] = None

    @property
    def is_equation(self) -> bool:
        return self.rhs is not None

    @property
    def zero_form(self) -> sympy.Expr:
        """``lhs - rhs`` for equations, the expression itself otherwise."""
        if self.rhs is None:
            return self.lhs
        return self.lhs - self.rhs

    @property
    def free_symbols(self) -> set:
        symbols = set(self.lhs.free_symbols)
        if self.rhs is not None:
            symbols |= self.rhs.free_symbols
        return symbols

    def render(self) -> str:
        if self.rhs is None:
            return render(self.lhs)
        return f"{render(self.lhs)} = {render(self.rhs)}"


def screen(text: Any, max_length: Optional[int] = None) -> str:
    """Reject input that is not safe to give to the parser.

    Returns:
        The text with unicode operators normalized and outer whitespace removed

    Raises:
        ParseError: If the text is empty, too long, or uses forbidden characters
    """
    if not isinstance(text, str):
        raise ParseError("expression must be a string", details={"value": repr(text)})
    limit = max_length if max_length is not None else get_settings().max_expression_length
    cleaned = text.translate(_UNICODE_OPERATORS).strip()
    if not cleaned:
        raise ParseError("expression is empty")
    if len(cleaned) > limit:
        raise ParseError(
            "expression is too long",
            details={"length": len(cleaned), "max_length": limit},
        )
    if not _SAFE_TEXT.match(cleaned) or "__" in cleaned or _ATTRIBUTE_ACCESS.search(cleaned):
        raise ParseError("expression contains unsupported characters", details={"expression": cleaned})
    return cleaned


def _magnitude(node: sympy.Basic) -> Optional[float]:
    """``|node|`` as a float, or None when it is symbolic or undefined."""
    if node.free_symbols:
        return None
    try:
        return abs(complex(sympy.N(node, 15)))
    except (TypeError, ValueError, OverflowError):
        return None


def _check_size(expr: sympy.Basic, text: str) -> None:
    """Reject powers and factorials too large to evaluate.

    Children are visited before their parents, so every subtree whose
    magnitude is taken has already passed the check.

    Raises:
        ParseError: If a power, exponential or factorial exceeds the limits
    """
    settings = get_settings()
    for node in sympy.postorder_traversal(expr):
        if isinstance(node, sympy.Pow):
            exponent = _magnitude(node.exp)
            base = _magnitude(node.base)
            too_large = exponent is not None and (
                exponent > settings.max_exponent
                or (base is not None and base > 1 and exponent * math.log10(base) > settings.max_number_digits)
            )
        elif isinstance(node, (sympy.exp, sympy.factorial, sympy.factorial2, sympy.binomial)):
            argument = _magnitude(node.args[0])
            too_large = argument is not None and argument > settings.max_exponent
        else:
            continue
        if too_large:
            raise ParseError(
                "number is too large to evaluate",
                details={"expression": text, "max_exponent": settings.max_exponent},
            )


def parse_expression(text: str, lenient: bool = False) -> sympy.Expr:
    """Parse a single expression (no ``=``)."""
    transformations = LENIENT_TRANSFORMATIONS if lenient else STRICT_TRANSFORMATIONS
    try:
        # Size is checked on the unevaluated tree before SymPy computes anything;
        # the context also stops functions such as factorial from evaluating
        with sympy.evaluate(False):
            unevaluated = parse_expr(
                text,
                local_dict=dict(_LOCALS),
                global_dict=dict(_GLOBALS),
                transformations=transformations,
                evaluate=False,
            )
        _check_size(unevaluated, text)
        expr = parse_expr(
            text,
            local_dict=dict(_LOCALS),
            global_dict=dict(_GLOBALS),
            transformations=transformations,
        )
    except _PARSE_FAILURES as e:
        raise ParseError(f"could not parse expression: {text!r}", details={"error": str(e)}) from e
    if not isinstance(expr, sympy.Expr):
        raise ParseError(f"not an algebraic expression: {text!r}")
    return expr


def parse(text: Any, lenient: bool = False, max_length: Optional[int] = None) -> ParsedExpression:
    """Parse an expression or a single equation.

    Args:
        text: Input such as ``2*x + 3`` or ``x = 5``
        lenient: Accept implicit multiplication (learner input)
        max_length: Overrides the configured maximum expression length

    Raises:
        ParseError: If the text is unsafe or cannot be parsed
    """
    cleaned = screen(text, max_length)
    sides = cleaned.replace("==", "=").split("=")
    if len(sides) > 2:
        raise ParseError("an equation may contain only one '='", details={"expression": cleaned})
    if len(sides) == 2:
        left, right = sides[0].strip(), sides[1].strip()
        if not left or not right:
            raise ParseError("both sides of an equation are required", details={"expression": cleaned})
        return ParsedExpression(cleaned, parse_expression(left, lenient), parse_expression(right, lenient))
    return ParsedExpression(cleaned, parse_expression(cleaned, lenient))


def render(expr: sympy.Expr) -> str:
    """Plain-text rendering used in steps and answers."""
    return str(expr)


def is_zero(expr: sympy.Expr) -> bool:
    if expr == 0:
        return True
    try:
        return sympy.simplify(sympy.expand(expr)) == 0
    except _PARSE_FAILURES:
        return False


def expressions_equivalent(a: sympy.Expr, b: sympy.Expr) -> bool:
    """True when ``a - b`` simplifies to zero."""
    return is_zero(a - b)


def real_roots(expr: sympy.Expr, symbol: sympy.Symbol) -> List[sympy.Expr]:
    """Distinct real solutions of ``expr = 0``."""
    try:
        solutions = sympy.solve(expr, symbol)
    except (NotImplementedError,) + _PARSE_FAILURES:
        return []
    roots: List[sympy.Expr] = []
    for solution in solutions:
        if solution.is_real is False:
            continue
        if not any(is_zero(solution - known) for known in roots):
            roots.append(solution)
    return roots


def _same_roots(a: List[sympy.Expr], b: List[sympy.Expr]) -> bool:
    if len(a) != len(b):
        return False
    return all(any(is_zero(x - y) for y in b) for x in a)


def equations_equivalent(first: ParsedExpression, second: ParsedExpression) -> bool:
    """Equivalence of two equations, see module docstring."""
    d1, d2 = first.zero_form, second.zero_form
    if is_zero(d1) or is_zero(d2):
        return is_zero(d1) and is_zero(d2)

    ratio = sympy.simplify(d1 / d2)
    if not ratio.free_symbols and ratio.is_finite and not is_zero(ratio):
        return True

    symbols = first.free_symbols | second.free_symbols
    if len(symbols) == 1:
        symbol = next(iter(symbols))
        first_roots = real_roots(d1, symbol)
        return bool(first_roots) and _same_roots(first_roots, real_roots(d2, symbol))
    return False


def numeric_value(parsed: ParsedExpression) -> Optional[float]:
    """The number an expression or equation pins down, if any.

    A constant expression evaluates to itself; a univariate equation with a
    unique real solution evaluates to that solution.
    """
    if not parsed.is_equation:
        if parsed.lhs.free_symbols:
            return None
        return as_float(parsed.lhs)

    symbols = parsed.free_symbols
    if len(symbols) != 1:
        return None
    roots = real_roots(parsed.zero_form, next(iter(symbols)))
    if len(roots) != 1:
        return None
    return as_float(roots[0])


def as_float(expr: sympy.Expr) -> Optional[float]:
    try:
        value = complex(sympy.N(expr))
    except _PARSE_FAILURES:
        return None
    if abs(value.imag) > 1e-12:
        return None
    return value.real


def parsed_equivalent(first: ParsedExpression, second: ParsedExpression) -> bool:
    """Equivalence across expressions and equations.

    A bare constant is accepted against a univariate equation whose unique
    solution it equals (``5`` against ``x = 5``).
    """
    if first.is_equation and second.is_equation:
        return equations_equivalent(first, second)
    if not first.is_equation and not second.is_equation:
        return expressions_equivalent(first.lhs, second.lhs)

    equation, other = (first, second) if first.is_equation else (second, first)
    if other.lhs.free_symbols:
        return False
    value = numeric_value(equation)
    if value is None:
        return False
    constant = as_float(other.lhs)
    return constant is not None and abs(constant - value) <= 1e-9 * max(1.0, abs(value))


def describe(expr: sympy.Expr, original: Optional[str] = None) -> MathExpression:
    """Build a MathExpression record (text, simplified form, LaTeX, value)."""
    simplified = sympy.simplify(expr)
    evaluation = as_float(expr) if not expr.free_symbols else None
    return MathExpression(
        original=original if original is not None else render(expr),
        simplified=render(simplified),
        latex=sympy.latex(expr),
        evaluation=evaluation,
    )


__all__ = [
    "ParsedExpression",
    "STRICT_TRANSFORMATIONS",
    "LENIENT_TRANSFORMATIONS",
    "screen",
    "parse",
    "parse_expression",
    "render",
    "is_zero",
    "expressions_equivalent",
    "equations_equivalent",
    "parsed_equivalent",
    "numeric_value",
    "real_roots",
    "as_float",
    "describe",
]

"""Arithmetic solver: reduces an expression one operation at a time."""

from __future__ import annotations

import ast
from dataclasses import dataclass
from fractions import Fraction
from typing import Optional, Tuple

from mathgen.exceptions import ParseError, SolutionMismatchError
from mathgen.math_engine.expressions import screen
from mathgen.math_engine.solvers.base import Derivation, DomainSolver, StepRecorder
from mathgen.models.answers import Answer, NumericAnswer
from mathgen.models.solution import MathStep

_OPERATORS = {ast.Add: "+", ast.Sub: "-", ast.Mult: "*", ast.Div: "/"}
_PRECEDENCE = {"+": 1, "-": 1, "*": 2, "/": 2}
_NAMES = {"+": "add", "-": "subtract", "*": "multiply", "/": "divide"}
_RULES = {
    "+": "Add the two numbers",
    "-": "Subtract the second number from the first",
    "*": "Multiply before adding or subtracting",
    "/": "Divide before adding or subtracting",
}


@dataclass(frozen=True)
class Term:
    op: Optional[str] = None
    value: Fraction = Fraction(0)
    left: Optional["Term"] = None
    right: Optional["Term"] = None


def _literal(node: ast.AST) -> Optional[Fraction]:
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
        return Fraction(node.value).limit_denominator(10**12) if isinstance(node.value, float) else Fraction(node.value)
    if isinstance(node, ast.UnaryOp) and isinstance(node.op, (ast.USub, ast.UAdd)):
        inner = _literal(node.operand)
        if inner is not None:
            return -inner if isinstance(node.op, ast.USub) else inner
    return None


def _convert(node: ast.AST) -> Term:
    literal = _literal(node)
    if literal is not None:
        return Term(value=literal)
    if isinstance(node, ast.BinOp) and type(node.op) in _OPERATORS:
        return Term(op=_OPERATORS[type(node.op)], left=_convert(node.left), right=_convert(node.right))
    if isinstance(node, ast.UnaryOp) and isinstance(node.op, ast.USub):
        return Term(op="*", left=Term(value=Fraction(-1)), right=_convert(node.operand))
    raise ParseError("arithmetic expressions may contain only numbers and + - * /",
                     details={"node": type(node).__name__})


def parse_arithmetic(text: str) -> Term:
    """Parse ``text`` into a term tree.

    Raises:
        ParseError: For anything but numbers, parentheses and + - * /
    """
    cleaned = screen(text)
    try:
        tree = ast.parse(cleaned, mode="eval")
    except SyntaxError as e:
        raise ParseError(f"could not parse arithmetic expression: {text!r}") from e
    return _convert(tree.body)


def evaluate(term: Term) -> Fraction:
    if term.op is None:
        return term.value
    assert term.left is not None and term.right is not None
    left, right = evaluate(term.left), evaluate(term.right)
    if term.op == "+":
        return left + right
    if term.op == "-":
        return left - right
    if term.op == "*":
        return left * right
    if right == 0:
        raise SolutionMismatchError("expression divides by zero")
    return left / right


def render_term(term: Term, parent: Optional[str] = None, right: bool = False) -> str:
    if term.op is None:
        value = term.value
        text = str(value.numerator) if value.denominator == 1 else f"{value.numerator}/{value.denominator}"
        return f"({text})" if value < 0 or value.denominator != 1 else text
    assert term.left is not None and term.right is not None
    text = f"{render_term(term.left, term.op)} {term.op} {render_term(term.right, term.op, True)}"
    if parent is not None:
        mine, theirs = _PRECEDENCE[term.op], _PRECEDENCE[parent]
        if mine < theirs or (right and mine == theirs):
            return f"({text})"
    return text


def _reduce_once(term: Term, parent: Optional[str] = None, right: bool = False) -> Tuple[Term, Optional[Tuple[str, bool]]]:
    """Evaluate the first operation whose operands are both numbers.

    Returns the new term and ``(operator, was_grouped)`` for the reduced
    operation, or None when nothing was left to reduce.
    """
    if term.op is None:
        return term, None
    assert term.left is not None and term.right is not None
    if term.left.op is None and term.right.op is None:
        grouped = parent is not None and (
            _PRECEDENCE[term.op] < _PRECEDENCE[parent] or (right and _PRECEDENCE[term.op] == _PRECEDENCE[parent])
        )
        return Term(value=evaluate(term)), (term.op, grouped)

    new_left, done = _reduce_once(term.left, term.op)
    if done is not None:
        return Term(op=term.op, left=new_left, right=term.right), done
    new_right, done = _reduce_once(term.right, term.op, True)
    return Term(op=term.op, left=term.left, right=new_right), done


class ArithmeticSolver(DomainSolver):
    """Step-by-step evaluation following the order of operations."""

    OPERATIONS = frozenset({"state", "add", "subtract", "multiply", "divide"})

    @property
    def name(self) -> str:
        return "arithmetic"

    def derive(self, equation: str, canonical: Answer) -> Derivation:
        term = parse_arithmetic(equation)
        recorder = StepRecorder()
        recorder.add(
            render_term(term),
            "state",
            justification="Write down the expression",
            evaluation=float(evaluate(term)),
        )

        while term.op is not None:
            term, done = _reduce_once(term)
            assert done is not None
            op, grouped = done
            recorder.add(
                render_term(term),
                _NAMES[op],
                justification="Evaluate the parentheses first" if grouped else None,
                rule=_RULES[op],
                evaluation=float(evaluate(term)),
            )

        answer = NumericAnswer(value=float(term.value), tolerance=getattr(canonical, "tolerance", None))
        return Derivation(steps=recorder.steps, answer=answer, method="order of operations")

    def check_step(self, previous: MathStep, step: MathStep, derivation: Derivation) -> bool:
        before = parse_arithmetic(previous.expression.original)
        after = parse_arithmetic(step.expression.original)
        if evaluate(before) != evaluate(after):
            return False
        return step.expression.original != previous.expression.original

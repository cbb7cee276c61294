"""Arithmetic Problem Generator.

Builds expressions over + - * / with operand ranges, parentheses,
negatives and fractional results controlled by difficulty.
"""

from __future__ import annotations

from dataclasses import dataclass
from fractions import Fraction
from types import MappingProxyType
from typing import Any, List, Mapping, Optional, Tuple

import numpy as np

from mathgen.exceptions import GenerationError, UnsupportedConfigError
from mathgen.logger import session_logger as logger
from mathgen.math_engine import mistakes
from mathgen.math_engine.base import (
    TOLERANCE_PARAMETER,
    ParameterDefinition,
    ProblemDraft,
    ProblemGenerator,
)
from mathgen.models.answers import NumericAnswer
from mathgen.models.enums import DifficultyLevel, ProblemType

_PRECEDENCE = {"+": 1, "-": 1, "*": 2, "/": 2}
_PRETTY = {"+": "+", "-": "-", "*": "×", "/": "÷"}
_MAX_TRIES = 200


@dataclass(frozen=True)
class _Node:
    op: Optional[str] = None
    value: Fraction = Fraction(0)
    left: Optional["_Node"] = None
    right: Optional["_Node"] = None

    @property
    def is_leaf(self) -> bool:
        return self.op is None


def _apply(op: str, a: Fraction, b: Fraction) -> Optional[Fraction]:
    if op == "+":
        return a + b
    if op == "-":
        return a - b
    if op == "*":
        return a * b
    if b == 0:
        return None
    return a / b


def _render(node: _Node, pretty: bool = False, parent: Optional[str] = None, right: bool = False) -> str:
    if node.is_leaf:
        text = str(node.value.numerator) if node.value.denominator == 1 else f"{node.value.numerator}/{node.value.denominator}"
        return f"({text})" if node.value < 0 or node.value.denominator != 1 else text

    assert node.left is not None and node.right is not None
    symbol = _PRETTY[node.op] if pretty else node.op
    text = f"{_render(node.left, pretty, node.op)} {symbol} {_render(node.right, pretty, node.op, True)}"
    if parent is not None:
        mine, theirs = _PRECEDENCE[node.op], _PRECEDENCE[parent]
        if mine < theirs or (right and mine == theirs):
            return f"({text})"
    return text


def _in_order(node: _Node) -> Tuple[List[Fraction], List[str]]:
    if node.is_leaf:
        return [node.value], []
    assert node.left is not None and node.right is not None
    left_values, left_ops = _in_order(node.left)
    right_values, right_ops = _in_order(node.right)
    return left_values + right_values, left_ops + [node.op] + right_ops


def _left_to_right(node: _Node) -> Optional[Fraction]:
    """Value obtained by ignoring precedence and parentheses."""
    operands, ops = _in_order(node)
    total: Optional[Fraction] = operands[0]
    for op, operand in zip(ops, operands[1:]):
        if total is None:
            return None
        total = _apply(op, total, operand)
    return total


class ArithmeticGenerator(ProblemGenerator):
    """Numeric expression evaluation."""

    DEFAULT_PARAMETERS: Mapping[DifficultyLevel, Mapping[str, Any]] = MappingProxyType({
        DifficultyLevel.BEGINNER: MappingProxyType({
            "operations": ("+", "-"),
            "min_operand": 1,
            "max_operand": 20,
            "terms": 2,
            "parentheses": False,
            "allow_negative": False,
            "allow_fractions": False,
        }),
        DifficultyLevel.INTERMEDIATE: MappingProxyType({
            "operations": ("+", "-", "*"),
            "min_operand": 1,
            "max_operand": 50,
            "terms": 3,
            "parentheses": False,
            "allow_negative": False,
            "allow_fractions": False,
        }),
        DifficultyLevel.ADVANCED: MappingProxyType({
            "operations": ("+", "-", "*", "/"),
            "min_operand": 1,
            "max_operand": 100,
            "terms": 4,
            "parentheses": True,
            "allow_negative": True,
            "allow_fractions": False,
        }),
        DifficultyLevel.EXPERT: MappingProxyType({
            "operations": ("+", "-", "*", "/"),
            "min_operand": 1,
            "max_operand": 200,
            "terms": 5,
            "parentheses": True,
            "allow_negative": True,
            "allow_fractions": True,
        }),
    })

    @property
    def problem_type(self) -> ProblemType:
        return ProblemType.ARITHMETIC

    @property
    def description(self) -> str:
        return "Evaluate numeric expressions respecting the order of operations"

    def get_parameters(self) -> List[ParameterDefinition]:
        return [
            ParameterDefinition("operations", "Operators to draw from", list,
                                choices=("+", "-", "*", "/"), item_kind=str),
            ParameterDefinition("min_operand", "Smallest operand magnitude", int, minimum=0, maximum=10_000),
            ParameterDefinition("max_operand", "Largest operand magnitude", int, minimum=1, maximum=10_000),
            ParameterDefinition("terms", "Number of operands", int, minimum=2, maximum=8),
            ParameterDefinition("parentheses", "Allow nested groupings", bool),
            ParameterDefinition("allow_negative", "Allow negative operands", bool),
            ParameterDefinition("allow_fractions", "Allow a non-integer result", bool),
            TOLERANCE_PARAMETER,
        ]

    def check_parameters(self, params: Mapping[str, Any]) -> None:
        if params["min_operand"] > params["max_operand"]:
            raise UnsupportedConfigError(
                "min_operand cannot exceed max_operand",
                details={"min_operand": params["min_operand"], "max_operand": params["max_operand"]},
            )

    def _operand(self, params: Mapping[str, Any], rng: np.random.Generator) -> Fraction:
        value = int(rng.integers(params["min_operand"], params["max_operand"] + 1))
        if params["allow_negative"] and rng.random() < 0.3:
            value = -value
        return Fraction(value)

    def _tree(self, params: Mapping[str, Any], rng: np.random.Generator, terms: int) -> _Node:
        ops = params["operations"]
        if params["parentheses"]:
            if terms == 1:
                return _Node(value=self._operand(params, rng))
            split = int(rng.integers(1, terms))
            return _Node(
                op=str(rng.choice(ops)),
                left=self._tree(params, rng, split),
                right=self._tree(params, rng, terms - split),
            )

        # Flat sequence, grouped by precedence
        operands = [_Node(value=self._operand(params, rng)) for _ in range(terms)]
        chosen = [str(rng.choice(ops)) for _ in range(terms - 1)]
        products: List[_Node] = [operands[0]]
        joins: List[str] = []
        for op, operand in zip(chosen, operands[1:]):
            if _PRECEDENCE[op] == 2:
                products[-1] = _Node(op=op, left=products[-1], right=operand)
            else:
                joins.append(op)
                products.append(operand)
        node = products[0]
        for op, operand in zip(joins, products[1:]):
            node = _Node(op=op, left=node, right=operand)
        return node

    def _settle(
        self,
        node: _Node,
        params: Mapping[str, Any],
        rng: np.random.Generator,
    ) -> Optional[Tuple[_Node, Fraction]]:
        """Evaluate, re-drawing leaf divisors so that divisions stay valid."""
        if node.is_leaf:
            return node, node.value
        assert node.left is not None and node.right is not None

        settled_left = self._settle(node.left, params, rng)
        settled_right = self._settle(node.right, params, rng)
        if settled_left is None or settled_right is None:
            return None
        left, lv = settled_left
        right, rv = settled_right

        if node.op == "/" and right.is_leaf:
            exact = rv != 0 and (params["allow_fractions"] or (lv / rv).denominator == 1)
            if not exact and lv.denominator == 1:
                low = max(params["min_operand"], 1)
                high = params["max_operand"]
                divisors = [d for d in range(low, high + 1) if lv.numerator % d == 0]
                bigger = [d for d in divisors if d > 1]
                if not divisors:
                    return None
                pool = bigger or divisors
                divisor = int(pool[int(rng.integers(0, len(pool)))])
                if params["allow_negative"] and rng.random() < 0.3:
                    divisor = -divisor
                rv = Fraction(divisor)
                right = _Node(value=rv)

        value = _apply(node.op, lv, rv)
        if value is None:
            return None
        if not params["allow_fractions"] and value.denominator != 1:
            return None
        return _Node(op=node.op, left=left, right=right), value

    def build(
        self,
        params: Mapping[str, Any],
        difficulty: DifficultyLevel,
        rng: np.random.Generator,
    ) -> ProblemDraft:
        for _ in range(_MAX_TRIES):
            settled = self._settle(self._tree(params, rng, params["terms"]), params, rng)
            if settled is not None:
                break
        else:
            logger.warning("Arithmetic generation exhausted retries", difficulty=difficulty.value)
            raise GenerationError(
                "could not build an arithmetic expression with these parameters",
                details={"tries": _MAX_TRIES},
            )

        tree, value = settled
        equation = _render(tree)
        exact = value.denominator == 1
        answer = NumericAnswer(value=float(value), tolerance=self.tolerance_for(params, exact))

        candidates: List[Tuple[float, str]] = []
        naive = _left_to_right(tree)
        if naive is not None and naive != value:
            candidates.append((float(naive), mistakes.ORDER_OF_OPERATIONS))
        if value != 0:
            candidates.append((float(-value), mistakes.SIGN_ERROR))
        if tree.op in ("-", "/") and tree.left is not None and tree.right is not None:
            swapped = _Node(op=tree.op, left=tree.right, right=tree.left)
            settled_swap = self._settle(swapped, {**params, "allow_fractions": True}, rng)
            if settled_swap is not None:
                candidates.append((float(settled_swap[1]), mistakes.OPERAND_ORDER))

        ops_used = set(_in_order(tree)[1])
        hints: List[str] = []
        if "(" in equation:
            hints.append("Work out the parentheses first.")
        if ops_used & {"*", "/"} and ops_used & {"+", "-"}:
            hints.append("Multiply and divide before you add and subtract.")
        hints.append("Work from left to right among operations of equal priority.")

        return ProblemDraft(
            title="Evaluate the expression",
            statement=f"Evaluate: {_render(tree, pretty=True)}",
            equation=equation,
            answer=answer,
            distractors=self.numeric_distractors(answer, candidates),
            topic="arithmetic",
            sub_topic="order of operations" if len(ops_used) > 1 else "basic operations",
            tags=("arithmetic",) + tuple(sorted({
                {"+": "addition", "-": "subtraction", "*": "multiplication", "/": "division"}[op]
                for op in ops_used
            })),
            hints=tuple(hints),
            skills=("order of operations",),
            estimated_time_minutes=1.0 + 0.5 * params["terms"],
        )

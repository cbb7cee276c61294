"""Step-by-step solution records produced by the solver."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

from mathgen.models.answers import Answer


@dataclass(frozen=True)
class MathExpression:
    """One rendering of an intermediate result."""

    original: str
    simplified: Optional[str] = None
    latex: Optional[str] = None
    evaluation: Optional[Union[float, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"original": self.original}
        if self.simplified is not None:
            data["simplified"] = self.simplified
        if self.latex is not None:
            data["latex"] = self.latex
        if self.evaluation is not None:
            data["evaluation"] = self.evaluation
        return data


@dataclass(frozen=True)
class MathStep:
    """A single derivation step.

    ``operation`` comes from the solving domain's closed vocabulary;
    ``justification`` and ``rule`` are descriptive only.
    """

    step_number: int
    expression: MathExpression
    operation: str
    justification: Optional[str] = None
    rule: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "step_number": self.step_number,
            "expression": self.expression.to_dict(),
            "operation": self.operation,
        }
        if self.justification:
            data["justification"] = self.justification
        if self.rule:
            data["rule"] = self.rule
        return data


@dataclass(frozen=True)
class MathSolution:
    """Ordered steps plus the final result they arrive at."""

    steps: Tuple[MathStep, ...]
    final_answer: MathExpression
    answer: Answer
    method: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "steps": [s.to_dict() for s in self.steps],
            "final_answer": self.final_answer.to_dict(),
            "answer": self.answer.to_dict(),
            "method": self.method,
        }

"""Base classes for domain solvers.

A domain solver re-derives a problem's answer from its ``equation`` text
alone. Every step it emits must use an operation from the solver's closed
vocabulary and must follow from the previous step; :meth:`DomainSolver.verify`
enforces both before the final answer is trusted.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Union

from mathgen.exceptions import SolutionMismatchError
from mathgen.models.answers import Answer
from mathgen.models.solution import MathExpression, MathStep


@dataclass
class Derivation:
    """Steps and answer produced by a domain solver, plus what it needs to re-check them."""

    steps: List[MathStep]
    answer: Answer
    method: str
    context: Dict[str, Any] = field(default_factory=dict)


class StepRecorder:
    """Numbers steps from 1 as they are added."""

    def __init__(self) -> None:
        self.steps: List[MathStep] = []

    def add(
        self,
        text: str,
        operation: str,
        justification: Optional[str] = None,
        rule: Optional[str] = None,
        evaluation: Optional[Union[float, str]] = None,
        simplified: Optional[str] = None,
        latex: Optional[str] = None,
    ) -> MathStep:
        step = MathStep(
            step_number=len(self.steps) + 1,
            expression=MathExpression(
                original=text,
                simplified=simplified,
                latex=latex,
                evaluation=evaluation,
            ),
            operation=operation,
            justification=justification,
            rule=rule,
        )
        self.steps.append(step)
        return step


class DomainSolver(ABC):
    """Base class for all domain solvers."""

    OPERATIONS: FrozenSet[str] = frozenset()

    @property
    @abstractmethod
    def name(self) -> str:
        """Short solver name (used as MathSolution.method prefix)."""
        pass

    @abstractmethod
    def derive(self, equation: str, canonical: Answer) -> Derivation:
        """Solve ``equation`` from first principles.

        Args:
            equation: The problem's equation text
            canonical: The canonical answer; only its tolerance and unit are
                copied onto the derived answer, its value is never read

        Raises:
            ParseError: If the equation text is malformed
            SolutionMismatchError: If the equation has no usable solution
        """
        pass

    @abstractmethod
    def check_step(self, previous: MathStep, step: MathStep, derivation: Derivation) -> bool:
        """Whether ``step`` follows from ``previous`` under ``step.operation``."""
        pass

    def verify(self, derivation: Derivation) -> None:
        """Check numbering, vocabulary and the step chain.

        Raises:
            SolutionMismatchError: On the first inconsistent step
        """
        steps = derivation.steps
        if not steps:
            raise SolutionMismatchError(f"{self.name} solver produced no steps")

        for number, step in enumerate(steps, start=1):
            if step.step_number != number:
                raise SolutionMismatchError(
                    "solution steps are not numbered consecutively",
                    details={"expected": number, "found": step.step_number},
                )
            if step.operation not in self.OPERATIONS:
                raise SolutionMismatchError(
                    f"operation '{step.operation}' is not part of the {self.name} vocabulary",
                    details={"step": number, "allowed": sorted(self.OPERATIONS)},
                )

        for previous, step in zip(steps, steps[1:]):
            if not self.check_step(previous, step, derivation):
                raise SolutionMismatchError(
                    f"step {step.step_number} does not follow from step {previous.step_number}",
                    details={
                        "operation": step.operation,
                        "previous": previous.expression.original,
                        "current": step.expression.original,
                    },
                )


def close(a: float, b: float, rel: float = 1e-9) -> bool:
    """Float comparison for replaying solver arithmetic."""
    return abs(a - b) <= rel * max(1.0, abs(a), abs(b))


__all__ = [
    "Derivation",
    "DomainSolver",
    "StepRecorder",
    "close",
]

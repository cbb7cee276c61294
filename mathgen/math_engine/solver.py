"""Solver facade.

Routes a problem to the domain solver for its type, checks the derivation
step by step, and cross-checks the derived answer against the problem's
canonical answer. The generator's answer is never used to build the
derivation, so agreement between the two is evidence that both are right.
"""

from __future__ import annotations

import dataclasses
from typing import Dict, List, Mapping, Optional, Tuple

from mathgen.exceptions import ParseError, SolutionMismatchError
from mathgen.logger import session_logger as logger
from mathgen.logger.decorators import log_execution_time
from mathgen.math_engine import values
from mathgen.math_engine.solvers import (
    AlgebraSolver,
    ArithmeticSolver,
    CalculusSolver,
    DomainSolver,
    FormulaSolver,
    LinearAlgebraSolver,
    StatisticsSolver,
    TransformSolver,
)
from mathgen.models.answers import NumericAnswer, base_answer
from mathgen.models.enums import ProblemType
from mathgen.models.problem import Problem
from mathgen.models.solution import MathExpression, MathSolution, MathStep


def default_solvers() -> Dict[ProblemType, DomainSolver]:
    formula = FormulaSolver()
    return {
        ProblemType.ARITHMETIC: ArithmeticSolver(),
        ProblemType.ALGEBRA: AlgebraSolver(),
        ProblemType.GEOMETRY: formula,
        ProblemType.TRIGONOMETRY: formula,
        ProblemType.CALCULUS: CalculusSolver(),
        ProblemType.STATISTICS: StatisticsSolver(),
        ProblemType.PROBABILITY: formula,
        ProblemType.LINEAR_ALGEBRA: LinearAlgebraSolver(),
        ProblemType.WORD_PROBLEM: formula,
    }


class Solver:
    """Derives and checks step-by-step solutions."""

    def __init__(self, solvers: Optional[Mapping[ProblemType, DomainSolver]] = None):
        self._solvers: Dict[ProblemType, DomainSolver] = dict(solvers or default_solvers())
        self._transforms = TransformSolver()

    def solver_for(self, problem_type: ProblemType, equation: str) -> DomainSolver:
        """The domain solver for a problem type.

        Geometry mixes measure formulas with shape transformations; the
        equation text decides which solver reads it.

        Raises:
            SolutionMismatchError: If no solver covers the type
        """
        if problem_type is ProblemType.GEOMETRY and TransformSolver.handles(equation):
            return self._transforms
        solver = self._solvers.get(problem_type)
        if solver is None:
            raise SolutionMismatchError(
                f"no solver for problem type '{problem_type.value}'",
                details={"problem_type": problem_type.value},
            )
        return solver

    @log_execution_time
    def solve(self, problem: Problem) -> MathSolution:
        """Derive a solution from ``problem.equation`` and cross-check it.

        Raises:
            SolutionMismatchError: If the derivation is inconsistent or its
                answer differs from ``problem.correct_answer``
        """
        if not problem.equation:
            raise SolutionMismatchError("problem has no equation to solve", details={"problem_id": problem.id})

        canonical = base_answer(problem.correct_answer)
        solver = self.solver_for(problem.problem_type, problem.equation)
        try:
            derivation = solver.derive(problem.equation, canonical)
        except ParseError as e:
            raise SolutionMismatchError(
                "problem equation could not be read by the solver",
                details={"problem_id": problem.id, "equation": problem.equation, "error": e.message},
            ) from e

        solver.verify(derivation)

        if not values.answers_equivalent(canonical, derivation.answer):
            logger.error(
                "Solver disagrees with canonical answer",
                problem_id=problem.id,
                problem_type=problem.problem_type.value,
                canonical=canonical.display(),
                derived=derivation.answer.display(),
            )
            raise SolutionMismatchError(
                "derived answer does not match the canonical answer",
                details={
                    "problem_id": problem.id,
                    "canonical": canonical.to_dict(),
                    "derived": derivation.answer.to_dict(),
                },
            )

        last = derivation.steps[-1].expression
        final = MathExpression(
            original=derivation.answer.display(),
            simplified=last.simplified,
            latex=last.latex,
            evaluation=derivation.answer.value if isinstance(derivation.answer, NumericAnswer) else last.evaluation,
        )
        return MathSolution(
            steps=tuple(derivation.steps),
            final_answer=final,
            answer=derivation.answer,
            method=f"{solver.name}: {derivation.method}",
        )


def hints_from_steps(steps: Tuple[MathStep, ...]) -> List[str]:
    """One hint per distinct step rule, in step order."""
    hints: List[str] = []
    for step in steps:
        if step.rule and step.rule not in hints:
            hints.append(step.rule)
    return hints


def attach(
    problem: Problem,
    solution: MathSolution,
    include_steps: bool = True,
    include_hints: bool = False,
    emphasize_common_mistakes: bool = False,
) -> Problem:
    """A copy of ``problem`` carrying the solution trace.

    ``include_steps=False`` keeps only the terminal step. Hints are the
    generator's own followed by the rules the solution applied.
    """
    if include_steps:
        steps = solution.steps
    else:
        steps = (dataclasses.replace(solution.steps[-1], step_number=1),)

    hints: List[str] = list(problem.hints) if include_hints else []
    if include_hints:
        hints += [h for h in hints_from_steps(solution.steps) if h not in hints]
    if emphasize_common_mistakes:
        for pattern in problem.common_mistakes:
            hint = f"Watch for a {pattern.category}: {pattern.advice}"
            if hint not in hints:
                hints.append(hint)

    return dataclasses.replace(problem, steps=steps, hints=tuple(hints))


__all__ = [
    "Solver",
    "attach",
    "default_solvers",
    "hints_from_steps",
]

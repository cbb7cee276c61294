"""Session statistics and grade analysis.

Statistics are always derivable from the recorded answers. The tracker
keeps an :class:`AttemptTally` per attempt as answers arrive;
:func:`combine_tallies` folds tallies in attempt order, and
:func:`session_statistics` rebuilds the same tallies from the answers, so
both paths add the same numbers in the same order.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional, Sequence

from mathgen.math_engine import mistakes
from mathgen.models.grading import (
    AnswerValidationResult,
    GradeAnalysis,
    ProblemAttempt,
    SessionStatistics,
    StudentAnswer,
)
from mathgen.models.problem import Problem


@dataclass
class AttemptTally:
    """Running totals for one attempt."""

    attempted: int = 0
    correct: int = 0
    total_score: float = 0.0
    time_spent_seconds: float = 0.0

    def add(self, answer: StudentAnswer) -> None:
        self.attempted += 1
        if answer.is_correct:
            self.correct += 1
        self.total_score += answer.score
        self.time_spent_seconds += answer.time_spent_seconds or 0.0

    @classmethod
    def from_answers(cls, answers: Iterable[StudentAnswer]) -> "AttemptTally":
        tally = cls()
        for answer in answers:
            tally.add(answer)
        return tally


def combine_tallies(session_id: str, user_id: str, tallies: Sequence[AttemptTally]) -> SessionStatistics:
    """Fold per-attempt tallies (in attempt order) into session statistics."""
    attempted = 0
    correct = 0
    total_score = 0.0
    time_spent = 0.0
    for tally in tallies:
        attempted += tally.attempted
        correct += tally.correct
        total_score += tally.total_score
        time_spent += tally.time_spent_seconds

    return SessionStatistics(
        session_id=session_id,
        user_id=user_id,
        total_problems_attempted=attempted,
        problems_correct=correct,
        problems_incorrect=attempted - correct,
        total_score=total_score,
        average_score=total_score / attempted if attempted else 0.0,
        correct_percentage=correct / attempted if attempted else 0.0,
        total_time_spent_seconds=time_spent,
        average_time_per_problem=time_spent / attempted if attempted else 0.0,
    )


def session_statistics(session_id: str, user_id: str, attempts: Sequence[ProblemAttempt]) -> SessionStatistics:
    """Recompute statistics from every recorded answer of ``attempts``."""
    return combine_tallies(
        session_id,
        user_id,
        [AttemptTally.from_answers(attempt.answers) for attempt in attempts],
    )


def _concepts(problem: Problem) -> List[str]:
    concepts = [problem.topic] if problem.topic else []
    if problem.sub_topic and problem.sub_topic not in concepts:
        concepts.append(problem.sub_topic)
    return concepts or [problem.problem_type.value.replace("_", " ")]


def analyze_problem(problem: Problem, result: AnswerValidationResult) -> GradeAnalysis:
    """Feedback for a single graded submission."""
    concepts = tuple(_concepts(problem))
    kind = problem.problem_type.value.replace("_", " ")
    if result.is_correct:
        harder = problem.difficulty.next_level()
        next_steps = (
            f"Try {harder.value} {kind} problems."
            if harder is not problem.difficulty
            else f"Keep practising mixed {kind} problems to stay sharp."
        )
        return GradeAnalysis(concepts_understood=concepts, next_steps=(next_steps,))

    return GradeAnalysis(
        concepts_need_work=concepts,
        common_mistakes=(result.mistake,) if result.mistake else (),
        suggestions=result.suggestions,
        next_steps=(
            "Work through the solution steps and compare them with your own.",
            f"Practise more {problem.difficulty.value} {kind} problems.",
        ),
    )


def analyze_attempt(
    attempt: ProblemAttempt,
    problems: Mapping[str, Problem],
    limit: Optional[int] = 5,
) -> GradeAnalysis:
    """Bucket an attempt's mistakes by category and sort concepts by outcome.

    A concept counts as understood only when every problem touching it was
    answered correctly.
    """
    understood: List[str] = []
    need_work: List[str] = []
    buckets: Counter = Counter()

    for answer in attempt.answers:
        problem = problems.get(answer.problem_id)
        concepts = _concepts(problem) if problem is not None else []
        if answer.is_correct:
            understood += [c for c in concepts if c not in understood]
        else:
            need_work += [c for c in concepts if c not in need_work]
            buckets[answer.mistake or "unclassified"] += 1

    understood = [c for c in understood if c not in need_work]
    ranked = [category for category, _ in buckets.most_common(limit)]
    suggestions = tuple(mistakes.advice_for(c) for c in ranked if c in mistakes.CATALOGUE)

    next_steps: List[str] = []
    if need_work:
        next_steps.append(f"Review {', '.join(need_work)} before moving on.")
    if ranked and ranked[0] != "unclassified":
        next_steps.append(f"Focus on avoiding the most frequent mistake: {ranked[0]}.")
    if not need_work and attempt.answers:
        next_steps.append("Move on to the next difficulty level.")

    return GradeAnalysis(
        concepts_understood=tuple(understood),
        concepts_need_work=tuple(need_work),
        common_mistakes=tuple(ranked),
        suggestions=suggestions,
        next_steps=tuple(next_steps),
    )


__all__ = [
    "AttemptTally",
    "analyze_attempt",
    "analyze_problem",
    "combine_tallies",
    "session_statistics",
]

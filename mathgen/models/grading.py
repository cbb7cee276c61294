"""Validation results, submissions, attempts and session aggregates."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from mathgen.models.answers import Answer
from mathgen.models.enums import AttemptState


@dataclass(frozen=True)
class AnswerValidationResult:
    """Outcome of comparing a submitted answer with the canonical one.

    ``is_gradable`` is False when the submission could not be parsed; such a
    result is never counted as a wrong answer by the caller.
    """

    is_correct: bool
    score: float
    feedback: str
    correct_answer: Answer
    explanation: Optional[str] = None
    similar_answers: Tuple[Answer, ...] = ()
    suggestions: Tuple[str, ...] = ()
    is_gradable: bool = True
    mistake: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_correct": self.is_correct,
            "score": self.score,
            "feedback": self.feedback,
            "explanation": self.explanation,
            "correct_answer": self.correct_answer.to_dict(),
            "similar_answers": [a.to_dict() for a in self.similar_answers],
            "suggestions": list(self.suggestions),
            "is_gradable": self.is_gradable,
            "mistake": self.mistake,
        }


@dataclass(frozen=True)
class StudentAnswer:
    """One scored submission. Immutable once created."""

    id: str
    attempt_id: str
    problem_id: str
    user_id: str
    submitted_answer: Answer
    is_correct: bool
    score: float
    submitted_at: datetime
    feedback: Optional[str] = None
    time_spent_seconds: Optional[float] = None
    is_gradable: bool = True
    mistake: Optional[str] = None


@dataclass
class ProblemAttempt:
    """A learner's timed pass through a set of problems."""

    id: str
    session_id: str
    user_id: str
    problem_ids: Tuple[str, ...]
    started_at: datetime
    time_limit_seconds: Optional[float] = None
    state: AttemptState = AttemptState.CREATED
    answers: List[StudentAnswer] = field(default_factory=list)
    completed_at: Optional[datetime] = None

    @property
    def total_score(self) -> float:
        total = 0.0
        for answer in self.answers:
            total += answer.score
        return total

    @property
    def is_completed(self) -> bool:
        return self.state is AttemptState.COMPLETED

    @property
    def answered_problem_ids(self) -> List[str]:
        return [a.problem_id for a in self.answers]

    @property
    def time_spent_seconds(self) -> float:
        total = 0.0
        for answer in self.answers:
            total += answer.time_spent_seconds or 0.0
        return total


@dataclass
class Session:
    """A learner session; expires on its own clock."""

    id: str
    user_id: str
    started_at: datetime
    expires_at: datetime
    last_activity_at: datetime
    is_active: bool = True
    metadata: Dict[str, Any] = field(default_factory=dict)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class SessionStatistics:
    """Derived aggregate over a session's attempts. Always recomputable."""

    session_id: str
    user_id: str
    total_problems_attempted: int
    problems_correct: int
    problems_incorrect: int
    total_score: float
    average_score: float
    correct_percentage: float
    total_time_spent_seconds: float
    average_time_per_problem: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "total_problems_attempted": self.total_problems_attempted,
            "problems_correct": self.problems_correct,
            "problems_incorrect": self.problems_incorrect,
            "total_score": self.total_score,
            "average_score": self.average_score,
            "correct_percentage": self.correct_percentage,
            "total_time_spent_seconds": self.total_time_spent_seconds,
            "average_time_per_problem": self.average_time_per_problem,
        }


@dataclass(frozen=True)
class GradeAnalysis:
    """Per-problem or per-attempt feedback synthesis."""

    concepts_understood: Tuple[str, ...] = ()
    concepts_need_work: Tuple[str, ...] = ()
    common_mistakes: Tuple[str, ...] = ()
    suggestions: Tuple[str, ...] = ()
    next_steps: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            "concepts_understood": list(self.concepts_understood),
            "concepts_need_work": list(self.concepts_need_work),
            "common_mistakes": list(self.common_mistakes),
            "suggestions": list(self.suggestions),
            "next_steps": list(self.next_steps),
        }

"""Grading service.

Validates a submission against its stored problem, records the scored
answer on the attempt and returns the grading response.
"""

from __future__ import annotations

import uuid
from typing import Mapping, Optional

from mathgen.config import Settings, get_settings
from mathgen.exceptions import InvalidInputError
from mathgen.grading.aggregator import analyze_attempt, analyze_problem
from mathgen.grading.attempts import AttemptTracker
from mathgen.logger import session_logger as logger
from mathgen.logger.decorators import log_execution_time
from mathgen.math_engine.validator import AnswerValidator
from mathgen.models.answers import Answer, answer_from_dict
from mathgen.models.grading import GradeAnalysis, SessionStatistics, StudentAnswer
from mathgen.models.problem import Problem
from mathgen.models.requests import ProblemGradeRequest, ProblemGradeResponse


class GradingService:
    """Grades submissions and keeps attempt and session aggregates current."""

    def __init__(
        self,
        tracker: Optional[AttemptTracker] = None,
        validator: Optional[AnswerValidator] = None,
        settings: Optional[Settings] = None,
    ):
        self._settings = settings
        self.tracker = tracker or AttemptTracker(settings=settings)
        self.validator = validator or AnswerValidator(settings=settings)

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    @log_execution_time
    def grade(self, request: ProblemGradeRequest, problem: Problem) -> ProblemGradeResponse:
        """Grade one submission.

        Ungradable submissions are reported but not recorded, so the learner
        may resubmit.

        Raises:
            ResourceNotFoundError: If the attempt is unknown
            InvalidInputError: If the request does not match the attempt or problem
            AttemptStateError: If the attempt no longer accepts this submission
        """
        if request.problem_id != problem.id:
            raise InvalidInputError(
                "request and problem ids differ",
                details={"request": request.problem_id, "problem": problem.id},
            )
        attempt = self.tracker.ensure_open(request.attempt_id, request.problem_id)
        if attempt.user_id != request.user_id:
            raise InvalidInputError("attempt belongs to another user", details={"attempt_id": attempt.id})

        result = self.validator.validate(problem.correct_answer, request.submitted_answer, problem)
        max_score = self.settings.points_per_problem
        score = result.score * max_score

        if result.is_gradable:
            self.tracker.record(StudentAnswer(
                id=str(uuid.uuid4()),
                attempt_id=attempt.id,
                problem_id=problem.id,
                user_id=request.user_id,
                submitted_answer=self._submitted(request),
                is_correct=result.is_correct,
                score=score,
                submitted_at=self.tracker.now(),
                feedback=result.feedback,
                time_spent_seconds=request.time_spent_seconds,
                mistake=result.mistake,
            ))

        logger.info(
            "Submission graded",
            attempt_id=attempt.id,
            problem_id=problem.id,
            correct=result.is_correct,
            score=score,
            gradable=result.is_gradable,
        )
        return ProblemGradeResponse(
            attempt_id=attempt.id,
            problem_id=problem.id,
            is_correct=result.is_correct,
            score=score,
            max_score=max_score,
            feedback=result.feedback,
            is_gradable=result.is_gradable,
            detailed_analysis=analyze_problem(problem, result) if result.is_gradable else None,
        )

    def _submitted(self, request: ProblemGradeRequest) -> Answer:
        if isinstance(request.submitted_answer, dict):
            return answer_from_dict(request.submitted_answer)
        return request.submitted_answer

    def session_statistics(self, session_id: str) -> SessionStatistics:
        return self.tracker.tallied_statistics(session_id)

    def attempt_analysis(self, attempt_id: str, problems: Mapping[str, Problem]) -> GradeAnalysis:
        return analyze_attempt(self.tracker.get_attempt(attempt_id), problems)


__all__ = ["GradingService"]

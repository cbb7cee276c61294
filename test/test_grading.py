"""Tests for attempts, sessions and grading.

Covers:
- The attempt state machine
- Resubmission and expiry rules
- Session statistics (running tallies vs recomputation)
- Concurrent grading within one attempt and across attempts
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from mathgen.config import Settings
from mathgen.exceptions import AttemptStateError, InvalidInputError, ResourceNotFoundError
from mathgen.grading import AttemptTracker, GradingService, analyze_attempt, session_statistics
from mathgen.grading.aggregator import AttemptTally, combine_tallies
from mathgen.math_engine import mistakes
from mathgen.models.answers import NumericAnswer
from mathgen.models.enums import AttemptState, DifficultyLevel, ProblemType
from mathgen.models.problem import Problem
from mathgen.models.requests import ProblemGradeRequest

USER = "learner-1"


def _problem(problem_id, value, topic="arithmetic"):
    return Problem(
        id=problem_id,
        problem_type=ProblemType.ARITHMETIC,
        difficulty=DifficultyLevel.BEGINNER,
        title=f"Problem {problem_id}",
        description="Hand-written",
        problem_statement=f"What is {value}?",
        correct_answer=NumericAnswer(value, tolerance=0.0),
        equation=str(value),
        topic=topic,
    )


@pytest.fixture
def problems():
    return {
        "p1": _problem("p1", 4),
        "p2": _problem("p2", 9),
        "p3": _problem("p3", 16, topic="squares"),
    }


@pytest.fixture
def tracker(clock):
    return AttemptTracker(settings=Settings(session_ttl_seconds=600), clock=clock)


@pytest.fixture
def service(tracker):
    return GradingService(tracker=tracker, settings=Settings(points_per_problem=10.0))


def _submit(service, attempt, problem, value, seconds=None, user=USER):
    request = ProblemGradeRequest(
        attempt_id=attempt.id,
        problem_id=problem.id,
        user_id=user,
        submitted_answer=value if not isinstance(value, (int, float)) else NumericAnswer(value),
        time_spent_seconds=seconds,
    )
    return service.grade(request, problem)


class TestAttemptLifecycle:
    """CREATED -> IN_PROGRESS -> COMPLETED, or ABANDONED."""

    def test_states(self, service, tracker, problems):
        session = tracker.start_session(USER)
        attempt = tracker.start_attempt(session.id, USER, ["p1", "p2"])
        assert attempt.state is AttemptState.CREATED

        response = _submit(service, attempt, problems["p1"], 4)
        assert response.is_correct
        assert response.score == 10.0
        assert response.max_score == 10.0
        assert attempt.state is AttemptState.IN_PROGRESS

        response = _submit(service, attempt, problems["p2"], 100)
        assert not response.is_correct
        assert attempt.state is AttemptState.COMPLETED
        assert attempt.completed_at is not None
        assert attempt.total_score == 10.0

    def test_resubmission_is_rejected(self, service, tracker, problems):
        session = tracker.start_session(USER)
        attempt = tracker.start_attempt(session.id, USER, ["p1", "p2"])
        _submit(service, attempt, problems["p1"], 3)
        with pytest.raises(AttemptStateError):
            _submit(service, attempt, problems["p1"], 4)
        assert len(attempt.answers) == 1

    def test_completed_attempt_accepts_nothing(self, service, tracker, problems):
        session = tracker.start_session(USER)
        attempt = tracker.start_attempt(session.id, USER, ["p1"])
        _submit(service, attempt, problems["p1"], 4)
        with pytest.raises(AttemptStateError):
            _submit(service, attempt, problems["p1"], 4)

    def test_problem_outside_attempt(self, service, tracker, problems):
        session = tracker.start_session(USER)
        attempt = tracker.start_attempt(session.id, USER, ["p1"])
        with pytest.raises(InvalidInputError):
            _submit(service, attempt, problems["p2"], 9)

    def test_other_user(self, service, tracker, problems):
        session = tracker.start_session(USER)
        attempt = tracker.start_attempt(session.id, USER, ["p1"])
        with pytest.raises(InvalidInputError):
            _submit(service, attempt, problems["p1"], 4, user="someone-else")

    def test_mismatched_problem(self, service, tracker, problems):
        session = tracker.start_session(USER)
        attempt = tracker.start_attempt(session.id, USER, ["p1"])
        request = ProblemGradeRequest(
            attempt_id=attempt.id, problem_id="p1", user_id=USER, submitted_answer=NumericAnswer(4)
        )
        with pytest.raises(InvalidInputError):
            service.grade(request, problems["p2"])

    def test_unknown_attempt(self, service, problems):
        request = ProblemGradeRequest(
            attempt_id="missing", problem_id="p1", user_id=USER, submitted_answer=NumericAnswer(4)
        )
        with pytest.raises(ResourceNotFoundError):
            service.grade(request, problems["p1"])

    def test_ungradable_is_not_recorded(self, service, tracker, problems):
        session = tracker.start_session(USER)
        attempt = tracker.start_attempt(session.id, USER, ["p1"])
        response = _submit(service, attempt, problems["p1"], {"format": "numeric", "value": "four"})
        assert not response.is_gradable
        assert response.detailed_analysis is None
        assert attempt.answers == []
        assert attempt.state is AttemptState.CREATED

        assert _submit(service, attempt, problems["p1"], {"format": "numeric", "value": "4"}).is_correct

    def test_invalid_attempt_requests(self, tracker):
        session = tracker.start_session(USER)
        with pytest.raises(InvalidInputError):
            tracker.start_attempt(session.id, USER, [])
        with pytest.raises(InvalidInputError):
            tracker.start_attempt(session.id, USER, ["p1", "p1"])
        with pytest.raises(InvalidInputError):
            tracker.start_attempt(session.id, "intruder", ["p1"])

    def test_duplicate_session(self, tracker):
        tracker.start_session(USER, session_id="s-1")
        with pytest.raises(InvalidInputError):
            tracker.start_session(USER, session_id="s-1")


class TestExpiry:
    """Session expiry and time limits."""

    def test_explicit_expiry_abandons(self, service, tracker, problems):
        session = tracker.start_session(USER)
        attempt = tracker.start_attempt(session.id, USER, ["p1", "p2"])
        _submit(service, attempt, problems["p1"], 4)

        abandoned = tracker.expire_session(session.id)
        assert abandoned == [attempt]
        assert attempt.state is AttemptState.ABANDONED
        assert not session.is_active
        with pytest.raises(AttemptStateError):
            _submit(service, attempt, problems["p2"], 9)

    def test_completed_attempts_stay_completed(self, service, tracker, problems):
        session = tracker.start_session(USER)
        attempt = tracker.start_attempt(session.id, USER, ["p1"])
        _submit(service, attempt, problems["p1"], 4)
        assert tracker.expire_session(session.id) == []
        assert attempt.state is AttemptState.COMPLETED

    def test_ttl_elapses(self, service, tracker, problems, clock):
        session = tracker.start_session(USER)
        attempt = tracker.start_attempt(session.id, USER, ["p1", "p2"])
        clock.advance(601)
        with pytest.raises(AttemptStateError):
            _submit(service, attempt, problems["p1"], 4)
        assert attempt.state is AttemptState.ABANDONED

    def test_time_limit_completes(self, service, tracker, problems, clock):
        session = tracker.start_session(USER)
        attempt = tracker.start_attempt(session.id, USER, ["p1", "p2"], time_limit_seconds=60)
        _submit(service, attempt, problems["p1"], 4)
        clock.advance(61)
        with pytest.raises(AttemptStateError):
            _submit(service, attempt, problems["p2"], 9)
        assert attempt.state is AttemptState.COMPLETED
        assert len(attempt.answers) == 1

    def test_activity_is_tracked(self, service, tracker, problems, clock):
        session = tracker.start_session(USER)
        attempt = tracker.start_attempt(session.id, USER, ["p1"])
        clock.advance(30)
        _submit(service, attempt, problems["p1"], 4)
        assert session.last_activity_at == clock.now


class TestStatistics:
    """Session aggregates."""

    def test_empty_session(self, service, tracker):
        session = tracker.start_session(USER)
        stats = service.session_statistics(session.id)
        assert stats.total_problems_attempted == 0
        assert stats.correct_percentage == 0.0
        assert stats.average_score == 0.0

    def test_aggregates(self, service, tracker, problems):
        session = tracker.start_session(USER)
        first = tracker.start_attempt(session.id, USER, ["p1", "p2"])
        second = tracker.start_attempt(session.id, USER, ["p3"])
        _submit(service, first, problems["p1"], 4, seconds=20)
        _submit(service, first, problems["p2"], 100, seconds=40)
        _submit(service, second, problems["p3"], 16, seconds=30)

        stats = service.session_statistics(session.id)
        assert stats.total_problems_attempted == 3
        assert stats.problems_correct == 2
        assert stats.problems_incorrect == 1
        assert stats.total_score == pytest.approx(20.0)
        assert stats.average_score == pytest.approx(20.0 / 3)
        assert stats.correct_percentage == pytest.approx(2 / 3)
        assert stats.total_time_spent_seconds == pytest.approx(90.0)
        assert stats.average_time_per_problem == pytest.approx(30.0)
        assert stats == tracker.recompute_statistics(session.id)

    def test_tally_matches_recomputation(self):
        tallies = [AttemptTally(2, 1, 1.5, 10.0), AttemptTally(1, 1, 1.0, 0.0)]
        stats = combine_tallies("s", "u", tallies)
        assert stats.total_problems_attempted == 3
        assert stats.correct_percentage == pytest.approx(2 / 3)
        assert session_statistics("s", "u", []).total_problems_attempted == 0

    def test_concurrent_attempts(self, clock):
        tracker = AttemptTracker(settings=Settings(session_ttl_seconds=3600), clock=clock)
        service = GradingService(tracker=tracker)
        session = tracker.start_session(USER)
        problems = {f"p{i}": _problem(f"p{i}", i) for i in range(10)}
        attempts = [tracker.start_attempt(session.id, USER, list(problems)) for _ in range(8)]

        def work(attempt):
            for i, problem in enumerate(problems.values()):
                # Every third answer is wrong
                value = problem.correct_answer.value + (1 if i % 3 == 0 else 0)
                _submit(service, attempt, problem, value, seconds=1.5)

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(work, attempts))

        tallied = service.session_statistics(session.id)
        assert tallied == tracker.recompute_statistics(session.id)
        assert tallied.total_problems_attempted == 80
        assert tallied.problems_correct == 8 * 6
        assert all(a.state is AttemptState.COMPLETED for a in attempts)

    def test_concurrent_submissions_to_one_attempt(self, clock):
        tracker = AttemptTracker(settings=Settings(session_ttl_seconds=3600), clock=clock)
        service = GradingService(tracker=tracker)
        session = tracker.start_session(USER)
        problems = {f"p{i}": _problem(f"p{i}", i) for i in range(3)}
        attempt = tracker.start_attempt(session.id, USER, list(problems))
        submissions = [problem for problem in problems.values() for _ in range(8)]

        def work(problem):
            try:
                return _submit(service, attempt, problem, problem.correct_answer.value)
            except AttemptStateError as e:
                return e

        with ThreadPoolExecutor(max_workers=12) as pool:
            outcomes = list(pool.map(work, submissions))

        rejected = [o for o in outcomes if isinstance(o, AttemptStateError)]
        assert len(rejected) == len(submissions) - len(problems)
        recorded = tracker.get_attempt(attempt.id)
        assert sorted(a.problem_id for a in recorded.answers) == sorted(problems)
        assert recorded.state is AttemptState.COMPLETED

        tallied = service.session_statistics(session.id)
        assert tallied == tracker.recompute_statistics(session.id)
        assert tallied.total_problems_attempted == 3
        assert tallied.problems_correct == 3


class TestAnalysis:
    """Per-problem and per-attempt feedback."""

    def test_problem_analysis_for_correct_answer(self, service, tracker, problems):
        session = tracker.start_session(USER)
        attempt = tracker.start_attempt(session.id, USER, ["p1"])
        analysis = _submit(service, attempt, problems["p1"], 4).detailed_analysis
        assert analysis.concepts_understood == ("arithmetic",)
        assert analysis.next_steps == ("Try intermediate arithmetic problems.",)

    def test_problem_analysis_for_wrong_answer(self, service, tracker, problems):
        session = tracker.start_session(USER)
        attempt = tracker.start_attempt(session.id, USER, ["p1"])
        analysis = _submit(service, attempt, problems["p1"], -4).detailed_analysis
        assert analysis.concepts_need_work == ("arithmetic",)
        assert analysis.common_mistakes == (mistakes.SIGN_ERROR,)

    def test_attempt_analysis(self, service, tracker, problems):
        session = tracker.start_session(USER)
        attempt = tracker.start_attempt(session.id, USER, ["p1", "p2", "p3"])
        _submit(service, attempt, problems["p1"], -4)
        _submit(service, attempt, problems["p2"], -9)
        _submit(service, attempt, problems["p3"], 16)

        analysis = service.attempt_analysis(attempt.id, problems)
        assert analysis.concepts_need_work == ("arithmetic",)
        assert analysis.concepts_understood == ("squares",)
        assert analysis.common_mistakes == (mistakes.SIGN_ERROR,)
        assert analysis.suggestions == (mistakes.advice_for(mistakes.SIGN_ERROR),)

    def test_attempt_analysis_direct(self, tracker, problems):
        session = tracker.start_session(USER)
        attempt = tracker.start_attempt(session.id, USER, ["p1"])
        analysis = analyze_attempt(attempt, problems)
        assert analysis.common_mistakes == ()
        assert analysis.next_steps == ()

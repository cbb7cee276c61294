"""Attempt and session tracking.

Each attempt moves through ``CREATED -> IN_PROGRESS -> COMPLETED`` or ends
``ABANDONED`` when its session expires first. Updates to one attempt are
serialized by that attempt's lock; attempts never share a lock, so
concurrent submissions to different attempts do not contend.
"""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Sequence

from mathgen.config import Settings, get_settings
from mathgen.exceptions import AttemptStateError, InvalidInputError, ResourceNotFoundError
from mathgen.grading.aggregator import AttemptTally, combine_tallies, session_statistics
from mathgen.logger import session_logger as logger
from mathgen.models.enums import AttemptState
from mathgen.models.grading import ProblemAttempt, Session, SessionStatistics, StudentAnswer


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AttemptTracker:
    """In-memory attempts, sessions and their running tallies."""

    def __init__(self, settings: Optional[Settings] = None, clock: Callable[[], datetime] = utcnow):
        self._settings = settings
        self._clock = clock
        self._sessions: Dict[str, Session] = {}
        self._attempts: Dict[str, ProblemAttempt] = {}
        self._tallies: Dict[str, AttemptTally] = {}
        self._locks: Dict[str, threading.Lock] = {}
        # Guards the tables above, never held while grading
        self._table_lock = threading.Lock()

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    def now(self) -> datetime:
        return self._clock()

    # -- sessions --------------------------------------------------------

    def start_session(self, user_id: str, session_id: Optional[str] = None) -> Session:
        now = self._clock()
        session = Session(
            id=session_id or str(uuid.uuid4()),
            user_id=user_id,
            started_at=now,
            expires_at=now + timedelta(seconds=self.settings.session_ttl_seconds),
            last_activity_at=now,
        )
        with self._table_lock:
            if session.id in self._sessions:
                raise InvalidInputError("session already exists", details={"session_id": session.id})
            self._sessions[session.id] = session
        logger.info("Session started", session_id=session.id, user_id=user_id)
        return session

    def get_session(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise ResourceNotFoundError("unknown session", details={"session_id": session_id})
        return session

    def expire_session(self, session_id: str) -> List[ProblemAttempt]:
        """End a session now, abandoning its unfinished attempts.

        Returns:
            The attempts that were abandoned
        """
        session = self.get_session(session_id)
        session.is_active = False
        session.expires_at = min(session.expires_at, self._clock())
        abandoned = []
        for attempt in self.attempts_for_session(session_id):
            with self.lock_for(attempt.id):
                if self._refresh(attempt):
                    abandoned.append(attempt)
        logger.info("Session expired", session_id=session_id, abandoned=len(abandoned))
        return abandoned

    # -- attempts --------------------------------------------------------

    def start_attempt(
        self,
        session_id: str,
        user_id: str,
        problem_ids: Sequence[str],
        time_limit_seconds: Optional[float] = None,
        attempt_id: Optional[str] = None,
    ) -> ProblemAttempt:
        session = self.get_session(session_id)
        if session.user_id != user_id:
            raise InvalidInputError("session belongs to another user", details={"session_id": session_id})
        if not problem_ids:
            raise InvalidInputError("an attempt needs at least one problem")
        if len(set(problem_ids)) != len(problem_ids):
            raise InvalidInputError("an attempt cannot list a problem twice")

        attempt = ProblemAttempt(
            id=attempt_id or str(uuid.uuid4()),
            session_id=session_id,
            user_id=user_id,
            problem_ids=tuple(problem_ids),
            started_at=self._clock(),
            time_limit_seconds=time_limit_seconds,
        )
        with self._table_lock:
            if attempt.id in self._attempts:
                raise InvalidInputError("attempt already exists", details={"attempt_id": attempt.id})
            self._attempts[attempt.id] = attempt
            self._tallies[attempt.id] = AttemptTally()
            self._locks[attempt.id] = threading.Lock()
        logger.info(
            "Attempt started",
            attempt_id=attempt.id,
            session_id=session_id,
            problems=len(attempt.problem_ids),
        )
        return attempt

    def get_attempt(self, attempt_id: str) -> ProblemAttempt:
        attempt = self._attempts.get(attempt_id)
        if attempt is None:
            raise ResourceNotFoundError("unknown attempt", details={"attempt_id": attempt_id})
        return attempt

    def lock_for(self, attempt_id: str) -> threading.Lock:
        with self._table_lock:
            lock = self._locks.get(attempt_id)
        if lock is None:
            raise ResourceNotFoundError("unknown attempt", details={"attempt_id": attempt_id})
        return lock

    def attempts_for_session(self, session_id: str) -> List[ProblemAttempt]:
        with self._table_lock:
            attempts = [a for a in self._attempts.values() if a.session_id == session_id]
        return sorted(attempts, key=lambda a: a.started_at)

    def _refresh(self, attempt: ProblemAttempt) -> bool:
        """Apply clock-driven transitions. Caller holds the attempt's lock.

        Returns:
            True if the attempt changed state
        """
        if attempt.state.is_terminal:
            return False
        now = self._clock()
        session = self._sessions.get(attempt.session_id)
        if session is not None and (session.is_expired(now) or not session.is_active):
            attempt.state = AttemptState.ABANDONED
            attempt.completed_at = now
            logger.info("Attempt abandoned", attempt_id=attempt.id)
            return True
        if (
            attempt.state is AttemptState.IN_PROGRESS
            and attempt.time_limit_seconds is not None
            and (now - attempt.started_at).total_seconds() >= attempt.time_limit_seconds
        ):
            attempt.state = AttemptState.COMPLETED
            attempt.completed_at = now
            logger.info("Attempt time limit reached", attempt_id=attempt.id)
            return True
        return False

    def _check_open(self, attempt: ProblemAttempt, problem_id: str) -> None:
        if attempt.state.is_terminal:
            raise AttemptStateError(
                f"attempt is {attempt.state.value} and accepts no submissions",
                details={"attempt_id": attempt.id, "state": attempt.state.value},
            )
        if problem_id not in attempt.problem_ids:
            raise InvalidInputError(
                "problem is not part of this attempt",
                details={"attempt_id": attempt.id, "problem_id": problem_id},
            )
        if problem_id in attempt.answered_problem_ids:
            raise AttemptStateError(
                "problem already answered in this attempt",
                details={"attempt_id": attempt.id, "problem_id": problem_id},
            )

    def ensure_open(self, attempt_id: str, problem_id: str) -> ProblemAttempt:
        """Raise unless ``problem_id`` can still be answered in the attempt.

        Raises:
            AttemptStateError: If the attempt is terminal or already has an
                answer for the problem
        """
        attempt = self.get_attempt(attempt_id)
        with self.lock_for(attempt_id):
            self._refresh(attempt)
            self._check_open(attempt, problem_id)
        return attempt

    def record(self, answer: StudentAnswer) -> ProblemAttempt:
        """Add a scored answer to its attempt and advance the state machine.

        Raises:
            AttemptStateError: If the attempt is terminal or the problem was
                already answered
        """
        attempt = self.get_attempt(answer.attempt_id)
        with self.lock_for(attempt.id):
            self._refresh(attempt)
            self._check_open(attempt, answer.problem_id)

            if attempt.state is AttemptState.CREATED:
                attempt.state = AttemptState.IN_PROGRESS
            attempt.answers.append(answer)
            self._tallies[attempt.id].add(answer)
            if len(attempt.answers) == len(attempt.problem_ids):
                attempt.state = AttemptState.COMPLETED
                attempt.completed_at = self._clock()

            session = self._sessions.get(attempt.session_id)
            if session is not None:
                session.last_activity_at = self._clock()

        logger.debug(
            "Answer recorded",
            attempt_id=attempt.id,
            problem_id=answer.problem_id,
            state=attempt.state.value,
            correct=answer.is_correct,
        )
        return attempt

    # -- statistics ------------------------------------------------------

    def tallied_statistics(self, session_id: str) -> SessionStatistics:
        """Statistics from the running per-attempt tallies."""
        session = self.get_session(session_id)
        attempts = self.attempts_for_session(session_id)
        tallies = []
        for attempt in attempts:
            with self.lock_for(attempt.id):
                tally = self._tallies[attempt.id]
                tallies.append(AttemptTally(
                    attempted=tally.attempted,
                    correct=tally.correct,
                    total_score=tally.total_score,
                    time_spent_seconds=tally.time_spent_seconds,
                ))
        return combine_tallies(session.id, session.user_id, tallies)

    def recompute_statistics(self, session_id: str) -> SessionStatistics:
        """Statistics rebuilt from every recorded answer."""
        session = self.get_session(session_id)
        attempts = self.attempts_for_session(session_id)
        snapshots = []
        for attempt in attempts:
            with self.lock_for(attempt.id):
                snapshots.append(ProblemAttempt(
                    id=attempt.id,
                    session_id=attempt.session_id,
                    user_id=attempt.user_id,
                    problem_ids=attempt.problem_ids,
                    started_at=attempt.started_at,
                    answers=list(attempt.answers),
                ))
        return session_statistics(session.id, session.user_id, snapshots)


__all__ = [
    "AttemptTracker",
    "utcnow",
]

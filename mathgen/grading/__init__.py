"""Grading: attempt state machine, session statistics and grade analysis."""

from mathgen.grading.aggregator import (
    AttemptTally,
    analyze_attempt,
    analyze_problem,
    combine_tallies,
    session_statistics,
)
from mathgen.grading.attempts import AttemptTracker
from mathgen.grading.service import GradingService

__all__ = [
    "AttemptTally",
    "AttemptTracker",
    "GradingService",
    "analyze_attempt",
    "analyze_problem",
    "combine_tallies",
    "session_statistics",
]

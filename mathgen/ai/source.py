"""AI problem sources.

An AI source proposes problems as drafts. The engine treats a proposal
exactly like a template draft: it is assembled, solved and cross-checked
before publication, so a wrong AI answer can never reach a learner.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from mathgen.math_engine.base import ProblemDraft
from mathgen.models.requests import ProblemConfig


class AIProblemSource(ABC):
    """Base class for AI-backed problem sources."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model identifier recorded in provenance."""
        pass

    @abstractmethod
    def propose(self, config: ProblemConfig, seed: str, index: int) -> ProblemDraft:
        """Propose the ``index``-th problem for ``config``.

        The draft must carry an ``equation`` the solver for
        ``config.problem_type`` can read.

        Raises:
            Exception: Any failure; the runner reports it as AIGenerationError
        """
        pass


__all__ = ["AIProblemSource"]

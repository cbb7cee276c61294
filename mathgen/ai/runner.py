"""Time-bounded execution of an AI problem source."""

from __future__ import annotations

import concurrent.futures
from typing import Optional

from mathgen.ai.source import AIProblemSource
from mathgen.config import get_settings
from mathgen.exceptions import AIGenerationError, GenerationTimeoutError
from mathgen.logger import session_logger as logger
from mathgen.math_engine.base import ProblemDraft
from mathgen.models.requests import ProblemConfig


class AIGenerationRunner:
    """Runs source calls on a private pool so a slow model cannot stall a batch.

    A call that outlives the timeout is abandoned, not interrupted; its
    result is discarded when it eventually arrives.
    """

    def __init__(
        self,
        source: AIProblemSource,
        timeout_seconds: Optional[float] = None,
        max_workers: int = 2,
    ):
        self.source = source
        self._timeout = timeout_seconds
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="mathgen-ai",
        )

    @property
    def timeout_seconds(self) -> float:
        if self._timeout is not None:
            return self._timeout
        return get_settings().ai_timeout_seconds

    @property
    def model_name(self) -> str:
        return self.source.model_name

    def run(self, config: ProblemConfig, seed: str, index: int) -> ProblemDraft:
        """Ask the source for one draft.

        Raises:
            GenerationTimeoutError: If the source does not answer in time
            AIGenerationError: If the source fails or returns something unusable
        """
        future = self._executor.submit(self.source.propose, config, seed, index)
        try:
            draft = future.result(timeout=self.timeout_seconds)
        except concurrent.futures.TimeoutError as e:
            future.cancel()
            raise GenerationTimeoutError(
                f"AI source did not answer within {self.timeout_seconds}s",
                details={"model": self.model_name, "index": index},
            ) from e
        except Exception as e:
            raise AIGenerationError(
                f"AI source failed: {e}",
                details={"model": self.model_name, "index": index, "error_type": type(e).__name__},
            ) from e

        if not isinstance(draft, ProblemDraft):
            raise AIGenerationError(
                "AI source returned no problem draft",
                details={"model": self.model_name, "returned": type(draft).__name__},
            )
        logger.debug("AI draft received", model=self.model_name, index=index)
        return draft

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)


__all__ = ["AIGenerationRunner"]

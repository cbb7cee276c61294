"""Math Engine - Facade for generation, solving and validation.

This module provides the single entry point callers use: batch generation
with self-checked solutions, direct solving, and answer validation.
"""

from __future__ import annotations

import secrets
import time
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set, Tuple

from mathgen.ai.runner import AIGenerationRunner
from mathgen.config import Settings, get_settings
from mathgen.errors import map_exception_to_response
from mathgen.exceptions import AIGenerationError, GenerationTimeoutError, MathGenError
from mathgen.logger import session_logger as logger
from mathgen.logger.decorators import log_execution_time
from mathgen.math_engine.base import ParameterDefinition, ProblemGenerator, make_problem_id, make_rng
from mathgen.math_engine.registry import GeneratorRegistry, build_registry
from mathgen.math_engine.solver import Solver, attach
from mathgen.math_engine.validator import AnswerValidator, Submission
from mathgen.models.answers import Answer
from mathgen.models.enums import GenerationMethod, ProblemType
from mathgen.models.grading import AnswerValidationResult
from mathgen.models.problem import GeneratedProblem, GenerationProvenance, Problem
from mathgen.models.requests import (
    GenerationPreferences,
    GenerationRequest,
    GenerationResult,
    ProblemConfig,
)
from mathgen.models.solution import MathSolution


class MathEngine:
    """Unified interface to generators, solver and validator.

    Every published problem has passed the solver's self-check; problems
    that fail it are reported in the batch's errors instead.
    """

    def __init__(
        self,
        registry: Optional[GeneratorRegistry] = None,
        solver: Optional[Solver] = None,
        validator: Optional[AnswerValidator] = None,
        ai_runner: Optional[AIGenerationRunner] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize the engine with the built-in generators unless given a registry."""
        self._settings = settings
        self.registry = registry or build_registry()
        self.solver = solver or Solver()
        self.validator = validator or AnswerValidator(settings=settings)
        self.ai_runner = ai_runner

        logger.info(
            "MathEngine initialized",
            problem_types=self.registry.get_problem_types(),
            ai_model=ai_runner.model_name if ai_runner else None,
        )

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    # -- generation ------------------------------------------------------

    def _effective_config(self, config: ProblemConfig, preferences: GenerationPreferences) -> ProblemConfig:
        """Focus areas restrict a mixed batch unless ``types`` is given explicitly."""
        if (
            config.problem_type is ProblemType.MIXED
            and preferences.focus_areas
            and "types" not in config.custom_parameters
        ):
            parameters = dict(config.custom_parameters, types=list(preferences.focus_areas))
            return config.model_copy(update={"custom_parameters": parameters})
        return config

    @log_execution_time
    def generate(self, request: GenerationRequest) -> GenerationResult:
        """Generate a batch of self-checked problems.

        Configuration errors are raised before any problem is built;
        failures of individual problems are reported in ``errors``.

        Raises:
            ResourceNotFoundError: If no generator serves the problem type
            UnsupportedConfigError: If customParameters are unknown or invalid
        """
        start = time.perf_counter()
        seed = request.seed or secrets.token_hex(8)
        preferences = request.preferences or GenerationPreferences()
        config = self._effective_config(request.config, preferences)

        generator = self.registry.get_generator(config.problem_type)
        generator.resolve_parameters(config)

        logger.info(
            "Generating batch",
            problem_type=config.problem_type.value,
            difficulty=config.difficulty.value,
            quantity=config.quantity,
            seed=seed,
            user_id=request.user_id,
        )

        workers = min(self.settings.max_workers, config.quantity)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="mathgen-batch") as pool:
            futures = [
                pool.submit(self._produce, generator, config, preferences, seed, index, 0)
                for index in range(config.quantity)
            ]
            # Reassembled in index order so the batch does not depend on scheduling
            outcomes = [self._outcome(future, index) for index, future in enumerate(futures)]

        indexed: List[Tuple[int, GeneratedProblem]] = []
        errors: List[str] = []
        warnings: List[str] = []
        for index, (generated, error) in enumerate(outcomes):
            if generated is not None:
                indexed.append((index, generated))
            else:
                errors.append(f"problem {index}: {error}")

        if not preferences.allow_repetition:
            indexed, repeat_warnings = self._replace_repeats(generator, config, preferences, seed, indexed)
            warnings += repeat_warnings
        problems = [generated for _, generated in indexed]

        warnings += [
            f"problem {p.problem.id}: AI generation fell back to templates"
            for p in problems
            if p.provenance.generation_method is GenerationMethod.TEMPLATE_BASED and self.ai_runner is not None
        ]

        elapsed_ms = (time.perf_counter() - start) * 1000.0
        logger.info(
            "Batch generated",
            seed=seed,
            generated=len(problems),
            failed=len(errors),
            duration_ms=round(elapsed_ms, 2),
        )
        ai_used = any(p.provenance.generation_method is GenerationMethod.AI_GENERATED for p in problems)
        return GenerationResult(
            success=bool(problems),
            problems=problems,
            generation_time=elapsed_ms,
            seed=seed,
            model=self.ai_runner.model_name if self.ai_runner and ai_used else None,
            warnings=warnings,
            errors=errors,
        )

    def _outcome(self, future: Future, index: int) -> Tuple[Optional[GeneratedProblem], Optional[str]]:
        try:
            return future.result(), None
        except Exception as e:
            response = map_exception_to_response(e)
            logger.error(
                "Problem generation failed",
                index=index,
                error_code=response.error_code,
                error=response.message,
            )
            return None, response.summary()

    def _produce(
        self,
        generator: ProblemGenerator,
        config: ProblemConfig,
        preferences: GenerationPreferences,
        seed: str,
        index: int,
        salt: int,
    ) -> GeneratedProblem:
        """Build, solve and wrap one problem."""
        if self.ai_runner is not None and salt == 0:
            try:
                return self._produce_with_ai(generator, config, preferences, seed, index)
            except (GenerationTimeoutError, AIGenerationError) as e:
                logger.warning(
                    "AI generation failed, falling back to templates",
                    index=index,
                    error_code=e.code,
                    error=e.message,
                )

        problem = generator.generate(config, seed, index, salt, self.settings.choice_count)
        problem = self._publish(problem, config, preferences)
        return self._wrap(problem, GenerationMethod.TEMPLATE_BASED, seed)

    def _produce_with_ai(
        self,
        generator: ProblemGenerator,
        config: ProblemConfig,
        preferences: GenerationPreferences,
        seed: str,
        index: int,
    ) -> GeneratedProblem:
        draft = self.ai_runner.run(config, seed, index)
        try:
            problem = generator.assemble(
                draft,
                config,
                make_problem_id(config, seed, index),
                make_rng(seed, index),
                self.settings.choice_count,
            )
            problem = self._publish(problem, config, preferences)
        except MathGenError as e:
            raise AIGenerationError(
                "AI draft failed its self-check",
                details={"index": index, "cause": e.code, "error": e.message},
            ) from e
        return self._wrap(problem, GenerationMethod.AI_GENERATED, seed, self.ai_runner.model_name)

    def _publish(self, problem: Problem, config: ProblemConfig, preferences: GenerationPreferences) -> Problem:
        solution = self.solver.solve(problem)
        return attach(
            problem,
            solution,
            include_steps=config.include_steps,
            include_hints=config.include_hints,
            emphasize_common_mistakes=preferences.emphasize_common_mistakes,
        )

    def _wrap(
        self,
        problem: Problem,
        method: GenerationMethod,
        seed: str,
        ai_model: Optional[str] = None,
    ) -> GeneratedProblem:
        return GeneratedProblem(
            problem=problem,
            provenance=GenerationProvenance(
                problem_id=problem.id,
                generation_method=method,
                seed=seed,
                generated_at=datetime.now(timezone.utc),
                ai_model=ai_model,
            ),
        )

    def _replace_repeats(
        self,
        generator: ProblemGenerator,
        config: ProblemConfig,
        preferences: GenerationPreferences,
        seed: str,
        problems: List[Tuple[int, GeneratedProblem]],
    ) -> Tuple[List[Tuple[int, GeneratedProblem]], List[str]]:
        """Regenerate problems whose statement already appeared earlier in the batch.

        ``problems`` pairs each problem with its batch index; regeneration
        reuses that index so the item keeps its own RNG stream and id.
        """
        seen: Set[str] = set()
        kept: List[Tuple[int, GeneratedProblem]] = []
        warnings: List[str] = []
        for index, generated in problems:
            candidate = generated
            salt = 0
            while candidate.problem.problem_statement in seen and salt < self.settings.repetition_retries:
                salt += 1
                try:
                    candidate = self._produce(generator, config, preferences, seed, index, salt)
                except MathGenError as e:
                    logger.warning("Regeneration failed", index=index, salt=salt, error=e.message)
            if candidate.problem.problem_statement in seen:
                warnings.append(f"problem {index}: could not avoid a repeated problem")
            seen.add(candidate.problem.problem_statement)
            kept.append((index, candidate))
        return kept, warnings

    # -- solving and validation -----------------------------------------

    def solve(self, problem: Problem) -> MathSolution:
        return self.solver.solve(problem)

    def validate(
        self,
        correct: Answer,
        submitted: Submission,
        problem: Optional[Problem] = None,
    ) -> AnswerValidationResult:
        return self.validator.validate(correct, submitted, problem)

    # -- discovery -------------------------------------------------------

    def list_generators(self) -> Dict[str, str]:
        """List all registered generators."""
        return self.registry.list_generators()

    def get_parameters(self, problem_type: ProblemType) -> List[ParameterDefinition]:
        return self.registry.get_parameters(problem_type)

    def difficulty_table(self, problem_type: ProblemType) -> Dict[str, Dict[str, object]]:
        """The read-only difficulty defaults of a generator, as plain data."""
        generator = self.registry.get_generator(problem_type)
        return {
            level.value: {k: list(v) if isinstance(v, tuple) else v for k, v in table.items()}
            for level, table in generator.DEFAULT_PARAMETERS.items()
        }


# Module-level singleton for convenience
_engine: Optional[MathEngine] = None


def get_engine() -> MathEngine:
    """Get or create the singleton MathEngine instance."""
    global _engine
    if _engine is None:
        _engine = MathEngine()
    return _engine


__all__ = [
    "MathEngine",
    "get_engine",
]

"""Tests for the MathEngine facade.

Covers:
- Batch order and reproducibility
- Per-item failures vs configuration errors
- Preferences (focus areas, repetition, steps and hints)
- The AI path with its timeout and template fallback
- Discovery helpers
"""

import dataclasses
import threading

import pytest

from mathgen.ai import AIGenerationRunner, AIProblemSource
from mathgen.config import Settings
from mathgen.exceptions import GenerationError, ResourceNotFoundError, UnsupportedConfigError
from mathgen.math_engine import MathEngine, ProblemDraft, get_engine
from mathgen.math_engine.base import make_problem_id
from mathgen.math_engine.generators import AlgebraGenerator, ArithmeticGenerator
from mathgen.math_engine.registry import GeneratorRegistry
from mathgen.models.answers import NumericAnswer
from mathgen.models.enums import DifficultyLevel, GenerationMethod, ProblemType
from mathgen.models.requests import GenerationPreferences, GenerationRequest, ProblemConfig


def _request(problem_type=ProblemType.ARITHMETIC, quantity=5, seed="42", preferences=None, **config):
    return GenerationRequest(
        config=ProblemConfig(problem_type=problem_type, quantity=quantity, **config),
        user_id="learner-1",
        seed=seed,
        preferences=preferences,
    )


def _engine_with(*generators, **kwargs):
    registry = GeneratorRegistry()
    for generator in generators:
        registry.register_generator(generator)
    return MathEngine(registry=registry, **kwargs)


class FlakyGenerator(ArithmeticGenerator):
    """Fails on index 1 and publishes a wrong answer on index 2."""

    def generate(self, config, seed, index, salt=0, choice_count=None):
        if index == 1:
            raise GenerationError("could not build", details={"index": index})
        problem = super().generate(config, seed, index, salt, choice_count)
        if index == 2:
            answer = problem.correct_answer
            problem = dataclasses.replace(
                problem,
                correct_answer=NumericAnswer(answer.value + 7, tolerance=answer.tolerance),
            )
        return problem


class RepeatingGenerator(ArithmeticGenerator):
    """Every first try is the same problem; regenerations vary."""

    def generate(self, config, seed, index, salt=0, choice_count=None):
        return super().generate(config, seed, index if salt else 0, salt, choice_count)


class GappedRepeatingGenerator(RepeatingGenerator):
    """Like RepeatingGenerator, but index 1 always fails."""

    def generate(self, config, seed, index, salt=0, choice_count=None):
        if index == 1:
            raise GenerationError("could not build", details={"index": index})
        return super().generate(config, seed, index, salt, choice_count)


class StuckGenerator(ArithmeticGenerator):
    """Always the same problem."""

    def generate(self, config, seed, index, salt=0, choice_count=None):
        return super().generate(config, seed, 0, 0, choice_count)


class FixedSource(AIProblemSource):
    """Proposes 2 + 3 with a configurable answer."""

    def __init__(self, answer=5.0):
        self.answer = answer
        self.calls = 0

    @property
    def model_name(self):
        return "fixed-model"

    def propose(self, config, seed, index):
        self.calls += 1
        return ProblemDraft(
            title="Add",
            statement=f"Evaluate: 2 + 3 (#{index})",
            equation="2 + 3",
            answer=NumericAnswer(self.answer, tolerance=0.0),
            topic="arithmetic",
        )


class SlowSource(AIProblemSource):
    def __init__(self):
        self.release = threading.Event()

    @property
    def model_name(self):
        return "slow-model"

    def propose(self, config, seed, index):
        self.release.wait(timeout=5)
        return None


class TestBatches:
    """Ordering, determinism and error reporting."""

    def test_batch_is_reproducible(self, engine):
        first = engine.generate(_request(quantity=8))
        second = engine.generate(_request(quantity=8))
        assert first.success
        assert first.seed == "42"
        assert [p.problem for p in first.problems] == [p.problem for p in second.problems]

    def test_batch_order_matches_index(self, engine, registry):
        result = engine.generate(_request(quantity=6))
        generator = registry.get_generator(ProblemType.ARITHMETIC)
        config = ProblemConfig(problem_type=ProblemType.ARITHMETIC, quantity=6)
        expected = [generator.generate(config, "42", i).id for i in range(6)]
        assert [p.problem.id for p in result.problems] == expected

    def test_integer_seed(self, engine):
        request = GenerationRequest(
            config=ProblemConfig(problem_type=ProblemType.ALGEBRA),
            user_id="learner-1",
            seed=42,
        )
        assert request.seed == "42"
        assert engine.generate(request).seed == "42"

    def test_seed_minted_when_absent(self, engine):
        result = engine.generate(_request(quantity=1, seed=None))
        assert result.seed
        assert result.problems[0].provenance.seed == result.seed

    def test_provenance(self, engine):
        result = engine.generate(_request(quantity=2))
        for generated in result.problems:
            assert generated.provenance.problem_id == generated.problem.id
            assert generated.provenance.generation_method is GenerationMethod.TEMPLATE_BASED
            assert generated.provenance.ai_model is None
        assert result.model is None
        assert result.warnings == []

    def test_per_item_failures(self):
        engine = _engine_with(FlakyGenerator(), settings=Settings(max_workers=2))
        result = engine.generate(_request(quantity=4))
        assert result.success
        assert len(result.problems) == 2
        assert len(result.errors) == 2
        assert result.errors[0].startswith("problem 1: GENERATION_ERROR")
        assert result.errors[1].startswith("problem 2: SOLUTION_MISMATCH")

    def test_nothing_published(self):
        class BrokenGenerator(ArithmeticGenerator):
            def generate(self, config, seed, index, salt=0, choice_count=None):
                raise GenerationError("always fails")

        result = _engine_with(BrokenGenerator()).generate(_request(quantity=3))
        assert not result.success
        assert result.problems == []
        assert len(result.errors) == 3

    def test_configuration_errors_raise(self, engine):
        with pytest.raises(UnsupportedConfigError):
            engine.generate(_request(custom_parameters={"colour": "red"}))

    def test_missing_generator(self):
        engine = _engine_with(AlgebraGenerator())
        with pytest.raises(ResourceNotFoundError):
            engine.generate(_request(ProblemType.GEOMETRY))


class TestPreferences:
    """Generation preferences and publishing options."""

    def test_focus_areas_restrict_mixed(self, engine):
        preferences = GenerationPreferences(focus_areas=["statistics"])
        result = engine.generate(_request(ProblemType.MIXED, quantity=4, preferences=preferences))
        assert {p.problem.problem_type for p in result.problems} == {ProblemType.STATISTICS}

    def test_explicit_types_win_over_focus(self, engine):
        preferences = GenerationPreferences(focus_areas=["statistics"])
        result = engine.generate(_request(
            ProblemType.MIXED,
            quantity=3,
            preferences=preferences,
            custom_parameters={"types": ["algebra"]},
        ))
        assert {p.problem.problem_type for p in result.problems} == {ProblemType.ALGEBRA}

    def test_unknown_focus_area(self, engine):
        preferences = GenerationPreferences(focus_areas=["poetry"])
        with pytest.raises(UnsupportedConfigError):
            engine.generate(_request(ProblemType.MIXED, preferences=preferences))

    def test_repetition_allowed(self):
        result = _engine_with(RepeatingGenerator()).generate(_request(quantity=4))
        assert len({p.problem.problem_statement for p in result.problems}) == 1

    def test_repeats_are_regenerated(self):
        preferences = GenerationPreferences(allow_repetition=False)
        result = _engine_with(RepeatingGenerator()).generate(_request(quantity=4, preferences=preferences))
        statements = [p.problem.problem_statement for p in result.problems]
        assert len(set(statements)) == 4
        assert result.warnings == []

    def test_regeneration_keeps_batch_index(self):
        preferences = GenerationPreferences(allow_repetition=False)
        engine = _engine_with(GappedRepeatingGenerator(), settings=Settings(repetition_retries=2))
        result = engine.generate(_request(quantity=4, preferences=preferences))
        assert result.errors[0].startswith("problem 1: GENERATION_ERROR")
        config = ProblemConfig(problem_type=ProblemType.ARITHMETIC, quantity=4)
        ids = [p.problem.id for p in result.problems]
        assert ids[0] == make_problem_id(config, "42", 0)
        for index, problem_id in zip((2, 3), ids[1:]):
            assert problem_id in {make_problem_id(config, "42", index, salt=s) for s in (1, 2)}

    def test_unavoidable_repeats_warn(self):
        preferences = GenerationPreferences(allow_repetition=False)
        engine = _engine_with(StuckGenerator(), settings=Settings(repetition_retries=2))
        result = engine.generate(_request(quantity=3, preferences=preferences))
        assert len(result.problems) == 3
        assert result.warnings == [
            "problem 1: could not avoid a repeated problem",
            "problem 2: could not avoid a repeated problem",
        ]

    def test_steps_and_hints(self, engine):
        full = engine.generate(_request(ProblemType.ALGEBRA, quantity=1, include_hints=True))
        brief = engine.generate(_request(ProblemType.ALGEBRA, quantity=1, include_steps=False))
        assert len(full.problems[0].problem.steps) > 1
        assert full.problems[0].problem.hints
        assert len(brief.problems[0].problem.steps) == 1
        assert brief.problems[0].problem.hints == ()

    def test_multiple_choice_batch(self, engine):
        result = engine.generate(_request(
            ProblemType.ALGEBRA,
            quantity=3,
            difficulty=DifficultyLevel.INTERMEDIATE,
            allow_multiple_choice=True,
        ))
        assert result.success
        for generated in result.problems:
            assert len(generated.problem.alternatives) == 4


class TestAIPath:
    """AI proposals are self-checked and fall back to templates."""

    def test_ai_problems_are_published(self, registry):
        runner = AIGenerationRunner(FixedSource(), timeout_seconds=2.0)
        try:
            engine = MathEngine(registry=registry, ai_runner=runner)
            result = engine.generate(_request(quantity=2))
        finally:
            runner.close()
        assert result.model == "fixed-model"
        assert result.warnings == []
        for generated in result.problems:
            assert generated.provenance.generation_method is GenerationMethod.AI_GENERATED
            assert generated.provenance.ai_model == "fixed-model"
            assert generated.problem.correct_answer.value == 5.0

    def test_wrong_ai_answer_falls_back(self, registry):
        runner = AIGenerationRunner(FixedSource(answer=6.0), timeout_seconds=2.0)
        try:
            result = MathEngine(registry=registry, ai_runner=runner).generate(_request(quantity=2))
        finally:
            runner.close()
        assert result.success
        assert result.model is None
        assert len(result.warnings) == 2
        for generated in result.problems:
            assert generated.provenance.generation_method is GenerationMethod.TEMPLATE_BASED

    def test_slow_source_times_out(self, registry):
        source = SlowSource()
        runner = AIGenerationRunner(source, timeout_seconds=0.05)
        try:
            result = MathEngine(registry=registry, ai_runner=runner).generate(_request(quantity=2))
        finally:
            source.release.set()
            runner.close()
        assert result.success
        assert len(result.problems) == 2
        assert all("fell back to templates" in w for w in result.warnings)

    def test_runner_rejects_non_drafts(self):
        from mathgen.exceptions import AIGenerationError

        source = SlowSource()
        source.release.set()
        runner = AIGenerationRunner(source, timeout_seconds=2.0)
        try:
            with pytest.raises(AIGenerationError):
                runner.run(ProblemConfig(problem_type=ProblemType.ARITHMETIC), "42", 0)
        finally:
            runner.close()


class TestDiscovery:
    """Listing generators and their defaults."""

    def test_list_generators(self, engine):
        listed = engine.list_generators()
        assert set(listed) == {t.value for t in ProblemType}
        assert all(listed.values())

    def test_difficulty_table(self, engine):
        table = engine.difficulty_table(ProblemType.ARITHMETIC)
        assert set(table) == {d.value for d in DifficultyLevel}
        assert table["beginner"]["operations"] == ["+", "-"]

    def test_parameters(self, engine):
        names = {p.name for p in engine.get_parameters(ProblemType.ARITHMETIC)}
        assert {"operations", "terms"} <= names

    def test_solve_and_validate(self, engine):
        problem = engine.generate(_request(quantity=1)).problems[0].problem
        assert engine.solve(problem).answer.value == pytest.approx(problem.correct_answer.value)
        assert engine.validate(problem.correct_answer, problem.correct_answer).is_correct

    def test_singleton(self):
        assert get_engine() is get_engine()

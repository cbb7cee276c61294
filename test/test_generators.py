"""Tests for problem generators and the generator registry.

Covers:
- Determinism of (config, seed, index)
- Multiple choice construction
- customParameters validation
- Registry lookup and registration rules
"""

from types import MappingProxyType

import pytest

from mathgen.exceptions import InvalidInputError, ResourceNotFoundError, UnsupportedConfigError
from mathgen.math_engine.base import build_choices, fraction_text, make_problem_id, make_rng
from mathgen.math_engine.generators import AlgebraGenerator, ArithmeticGenerator, MixedGenerator
from mathgen.math_engine.registry import GeneratorRegistry
from mathgen.math_engine import values
from mathgen.models.answers import MultipleChoiceAnswer, NumericAnswer, base_answer
from mathgen.models.enums import DifficultyLevel, ProblemType
from mathgen.models.problem import Problem
from mathgen.models.requests import ProblemConfig

CONCRETE_TYPES = [t for t in ProblemType if t is not ProblemType.MIXED]


def _config(problem_type, difficulty=DifficultyLevel.BEGINNER, **kwargs):
    return ProblemConfig(problem_type=problem_type, difficulty=difficulty, **kwargs)


class TestDeterminism:
    """Same seed, same problem."""

    @pytest.mark.parametrize("problem_type", list(ProblemType))
    def test_same_seed_same_problem(self, registry, problem_type):
        generator = registry.get_generator(problem_type)
        config = _config(problem_type, DifficultyLevel.INTERMEDIATE)
        first = generator.generate(config, "42", 0)
        second = generator.generate(config, "42", 0)
        assert first == second

    @pytest.mark.parametrize("problem_type", CONCRETE_TYPES)
    def test_index_changes_problem_id(self, registry, problem_type):
        generator = registry.get_generator(problem_type)
        config = _config(problem_type)
        assert generator.generate(config, "42", 0).id != generator.generate(config, "42", 1).id

    def test_problem_id_covers_config(self):
        plain = _config(ProblemType.ALGEBRA)
        choice = _config(ProblemType.ALGEBRA, allow_multiple_choice=True)
        assert make_problem_id(plain, "42", 0) == make_problem_id(plain, "42", 0)
        assert make_problem_id(plain, "42", 0) != make_problem_id(choice, "42", 0)
        assert make_problem_id(plain, "42", 0) != make_problem_id(plain, "42", 0, salt=1)

    def test_rng_streams_are_independent_of_order(self):
        a = make_rng("seed", 3).integers(0, 1_000_000, size=5).tolist()
        make_rng("seed", 1).integers(0, 10)
        b = make_rng("seed", 3).integers(0, 1_000_000, size=5).tolist()
        assert a == b
        assert a != make_rng("seed", 3, salt=1).integers(0, 1_000_000, size=5).tolist()

    def test_fraction_text(self):
        from fractions import Fraction

        assert fraction_text(Fraction(7, 3)) == "7/3"
        assert fraction_text(Fraction(-4, 2)) == "-2"


class TestProblems:
    """Shape of generated problems."""

    @pytest.mark.parametrize("problem_type", CONCRETE_TYPES)
    @pytest.mark.parametrize("difficulty", list(DifficultyLevel))
    def test_problem_is_complete(self, registry, problem_type, difficulty):
        generator = registry.get_generator(problem_type)
        problem = generator.generate(_config(problem_type, difficulty), "42", 0)
        assert problem.problem_type is problem_type
        assert problem.difficulty is difficulty
        assert problem.problem_statement
        assert problem.equation
        assert problem.alternatives is None
        # Hints are only kept on request
        assert problem.hints == ()

    @pytest.mark.parametrize("problem_type", CONCRETE_TYPES)
    def test_common_mistakes_differ_from_answer(self, registry, problem_type):
        generator = registry.get_generator(problem_type)
        problem = generator.generate(_config(problem_type, DifficultyLevel.ADVANCED), "7", 2)
        for pattern in problem.common_mistakes:
            assert not values.answers_equivalent(problem.correct_answer, pattern.answer)
            assert pattern.advice

    def test_hints_on_request(self, registry):
        generator = registry.get_generator(ProblemType.ALGEBRA)
        problem = generator.generate(_config(ProblemType.ALGEBRA, include_hints=True), "42", 0)
        assert problem.hints

    def test_numeric_answers_declare_tolerance(self, registry):
        for problem_type in (ProblemType.GEOMETRY, ProblemType.TRIGONOMETRY, ProblemType.PROBABILITY):
            generator = registry.get_generator(problem_type)
            for index in range(5):
                answer = generator.generate(_config(problem_type), "42", index).correct_answer
                assert isinstance(answer, NumericAnswer)
                assert answer.tolerance is not None

    def test_tolerance_override(self, registry):
        generator = registry.get_generator(ProblemType.TRIGONOMETRY)
        config = _config(ProblemType.TRIGONOMETRY, custom_parameters={"tolerance": 0.5})
        assert generator.generate(config, "42", 0).correct_answer.tolerance == 0.5

    def test_tolerance_override_on_exact_answers(self, registry):
        generator = registry.get_generator(ProblemType.ARITHMETIC)
        exact = _config(ProblemType.ARITHMETIC, difficulty=DifficultyLevel.BEGINNER)
        loose = _config(
            ProblemType.ARITHMETIC,
            difficulty=DifficultyLevel.BEGINNER,
            custom_parameters={"tolerance": 0.5},
        )
        assert generator.generate(exact, "42", 0).correct_answer.tolerance == 0.0
        assert generator.generate(loose, "42", 0).correct_answer.tolerance == 0.5


class TestMultipleChoice:
    """Labelled options with exactly one correct alternative."""

    @pytest.mark.parametrize("problem_type", CONCRETE_TYPES)
    def test_exactly_one_correct_option(self, registry, problem_type):
        generator = registry.get_generator(problem_type)
        config = _config(problem_type, DifficultyLevel.INTERMEDIATE, allow_multiple_choice=True)
        plain = generator.generate(_config(problem_type, DifficultyLevel.INTERMEDIATE), "42", 0)
        problem = generator.generate(config, "42", 0, choice_count=4)

        assert isinstance(problem.correct_answer, MultipleChoiceAnswer)
        assert [a.label for a in problem.alternatives] == ["A", "B", "C", "D"]
        matching = [
            a for a in problem.alternatives
            if values.answers_equivalent(base_answer(plain.correct_answer), base_answer(a))
        ]
        assert len(matching) == 1
        assert matching[0].label == problem.correct_answer.label
        assert problem.correct_answer.mistake is None
        assert all(a.mistake for a in problem.alternatives if a.label != problem.correct_answer.label)

    def test_build_choices_needs_enough_distractors(self):
        from mathgen.exceptions import GenerationError

        answer = NumericAnswer(1.0, tolerance=0.0)
        with pytest.raises(GenerationError):
            build_choices(answer, [(NumericAnswer(2.0, tolerance=0.0), "off-by-one error")], make_rng("s", 0), 4)

    def test_build_choices_is_deterministic(self):
        answer = NumericAnswer(1.0, tolerance=0.0)
        distractors = [(NumericAnswer(float(v), tolerance=0.0), "arithmetic slip") for v in (2, 3, 4)]
        first = build_choices(answer, distractors, make_rng("s", 0), 4)
        second = build_choices(answer, distractors, make_rng("s", 0), 4)
        assert first == second
        assert first[0].content == answer

    def _problem(self, correct, alternatives):
        return Problem(
            id="p1",
            problem_type=ProblemType.ARITHMETIC,
            difficulty=DifficultyLevel.BEGINNER,
            title="Sum",
            description="Hand-written",
            problem_statement="What is 2 + 3?",
            correct_answer=correct,
            alternatives=alternatives,
        )

    def test_duplicate_option_content_rejected(self):
        five = NumericAnswer(5.0, tolerance=0.0)
        correct = MultipleChoiceAnswer(choice="A", content=five)
        twin = MultipleChoiceAnswer(choice="B", content=NumericAnswer(5.0, tolerance=0.0))
        with pytest.raises(InvalidInputError):
            self._problem(correct, (correct, twin))

    def test_plain_alternatives_need_one_match(self):
        five = NumericAnswer(5.0, tolerance=0.0)
        with pytest.raises(InvalidInputError):
            self._problem(five, (NumericAnswer(5.0, tolerance=0.0), NumericAnswer(5.0, tolerance=0.0)))
        with pytest.raises(InvalidInputError):
            self._problem(five, (NumericAnswer(6.0, tolerance=0.0),))
        assert self._problem(five, (NumericAnswer(5.0, tolerance=0.0), NumericAnswer(6.0, tolerance=0.0)))

    def test_distinct_options_accepted(self):
        answer = NumericAnswer(5.0, tolerance=0.0)
        distractors = [(NumericAnswer(float(v), tolerance=0.0), "arithmetic slip") for v in (4, 6, 7)]
        correct, options = build_choices(answer, distractors, make_rng("s", 0), 4)
        assert self._problem(correct, options).correct_answer is correct


class TestParameters:
    """customParameters are validated before generation."""

    def test_unknown_parameter(self):
        generator = ArithmeticGenerator()
        with pytest.raises(UnsupportedConfigError) as exc_info:
            generator.resolve_parameters(_config(ProblemType.ARITHMETIC, custom_parameters={"colour": "red"}))
        assert exc_info.value.details["unknown"] == ["colour"]

    def test_wrong_type(self):
        with pytest.raises(UnsupportedConfigError):
            ArithmeticGenerator().resolve_parameters(
                _config(ProblemType.ARITHMETIC, custom_parameters={"terms": "three"})
            )

    def test_boolean_is_not_an_integer(self):
        with pytest.raises(UnsupportedConfigError):
            ArithmeticGenerator().resolve_parameters(
                _config(ProblemType.ARITHMETIC, custom_parameters={"terms": True})
            )

    def test_out_of_range(self):
        with pytest.raises(UnsupportedConfigError):
            AlgebraGenerator().resolve_parameters(
                _config(ProblemType.ALGEBRA, custom_parameters={"max_coefficient": 1000})
            )

    def test_not_a_choice(self):
        with pytest.raises(UnsupportedConfigError):
            AlgebraGenerator().resolve_parameters(_config(ProblemType.ALGEBRA, custom_parameters={"variable": "q"}))

    def test_incompatible_combination(self):
        with pytest.raises(UnsupportedConfigError):
            AlgebraGenerator().resolve_parameters(
                _config(ProblemType.ALGEBRA, custom_parameters={"min_coefficient": 9, "max_coefficient": 3})
            )

    def test_overrides_merge_with_difficulty_defaults(self):
        params = AlgebraGenerator().resolve_parameters(
            _config(ProblemType.ALGEBRA, DifficultyLevel.EXPERT, custom_parameters={"variable": "y"})
        )
        assert params["variable"] == "y"
        assert params["integer_solution"] is False

    def test_list_parameters_become_tuples(self):
        params = ArithmeticGenerator().resolve_parameters(
            _config(ProblemType.ARITHMETIC, custom_parameters={"operations": ["+", "-"]})
        )
        assert params["operations"] == ("+", "-")

    def test_defaults_are_read_only(self):
        with pytest.raises(TypeError):
            AlgebraGenerator.DEFAULT_PARAMETERS[DifficultyLevel.BEGINNER]["form"] = "other"

    def test_custom_variable_used(self, registry):
        generator = registry.get_generator(ProblemType.ALGEBRA)
        problem = generator.generate(_config(ProblemType.ALGEBRA, custom_parameters={"variable": "t"}), "42", 0)
        assert "t" in problem.correct_answer.expression


class TestMixed:
    """Mixed batches delegate to concrete generators."""

    def test_restricted_types(self, registry):
        generator = registry.get_generator(ProblemType.MIXED)
        config = _config(ProblemType.MIXED, custom_parameters={"types": ["algebra", "statistics"]})
        for index in range(6):
            problem = generator.generate(config, "mix", index)
            assert problem.problem_type in (ProblemType.ALGEBRA, ProblemType.STATISTICS)
            assert "mixed" in problem.tags

    def test_mixed_cannot_include_itself(self, registry):
        generator = registry.get_generator(ProblemType.MIXED)
        with pytest.raises(UnsupportedConfigError):
            generator.resolve_parameters(_config(ProblemType.MIXED, custom_parameters={"types": ["mixed"]}))

    def test_missing_generator(self):
        generator = MixedGenerator({ProblemType.ALGEBRA: AlgebraGenerator()})
        with pytest.raises(UnsupportedConfigError):
            generator.resolve_parameters(_config(ProblemType.MIXED, custom_parameters={"types": ["geometry"]}))


class TestRegistry:
    """Registration and lookup."""

    def test_all_types_registered(self, registry):
        assert set(registry.get_problem_types()) == {t.value for t in ProblemType}
        assert len(registry.list_generators()) == len(ProblemType)

    def test_duplicate_registration(self):
        registry = GeneratorRegistry()
        registry.register_generator(AlgebraGenerator())
        with pytest.raises(UnsupportedConfigError):
            registry.register_generator(AlgebraGenerator())

    def test_unknown_type(self):
        registry = GeneratorRegistry()
        assert not registry.has_generator(ProblemType.ALGEBRA)
        with pytest.raises(ResourceNotFoundError):
            registry.get_generator(ProblemType.ALGEBRA)

    def test_defaults_must_be_declared(self):
        class SloppyGenerator(AlgebraGenerator):
            DEFAULT_PARAMETERS = MappingProxyType({
                DifficultyLevel.BEGINNER: MappingProxyType({"form": "ax+b=c", "speed": 3}),
            })

        with pytest.raises(UnsupportedConfigError) as exc_info:
            GeneratorRegistry().register_generator(SloppyGenerator())
        assert exc_info.value.details["undeclared"] == ["speed"]

    def test_parameters_listed(self, registry):
        names = [p.name for p in registry.get_parameters(ProblemType.ALGEBRA)]
        assert "variable" in names

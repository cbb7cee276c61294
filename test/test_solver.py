"""Tests for the solver facade and the domain solvers.

Every generated problem must survive its own self-check; a tampered
canonical answer must not.
"""

import dataclasses

import pytest

from mathgen.exceptions import SolutionMismatchError
from mathgen.math_engine import values
from mathgen.math_engine.solver import attach, hints_from_steps
from mathgen.math_engine.solvers import FormulaSolver, StatisticsSolver, TransformSolver
from mathgen.math_engine.solvers.base import Derivation, DomainSolver, StepRecorder
from mathgen.models.answers import (
    EquationAnswer,
    GeometricShape,
    GraphAnswer,
    MatrixAnswer,
    NumericAnswer,
    base_answer,
)
from mathgen.models.enums import DifficultyLevel, ProblemType
from mathgen.models.problem import Problem
from mathgen.models.requests import ProblemConfig

CONCRETE_TYPES = [t for t in ProblemType if t is not ProblemType.MIXED]


def _problem(problem_type, equation, answer, problem_id="p-1"):
    return Problem(
        id=problem_id,
        problem_type=problem_type,
        difficulty=DifficultyLevel.BEGINNER,
        title="Test problem",
        description="Written by hand",
        problem_statement="Solve it.",
        correct_answer=answer,
        equation=equation,
    )


class TestSelfCheck:
    """Generated problems agree with their independently derived solutions."""

    @pytest.mark.parametrize("problem_type", CONCRETE_TYPES)
    @pytest.mark.parametrize("difficulty", list(DifficultyLevel))
    def test_generated_problems_solve(self, registry, solver, problem_type, difficulty):
        generator = registry.get_generator(problem_type)
        config = ProblemConfig(problem_type=problem_type, difficulty=difficulty)
        for index in range(3):
            problem = generator.generate(config, "self-check", index)
            solution = solver.solve(problem)
            assert solution.steps
            assert [s.step_number for s in solution.steps] == list(range(1, len(solution.steps) + 1))
            assert values.answers_equivalent(base_answer(problem.correct_answer), solution.answer)

    def test_tampered_answer_is_rejected(self, registry, solver):
        generator = registry.get_generator(ProblemType.ALGEBRA)
        problem = generator.generate(ProblemConfig(problem_type=ProblemType.ALGEBRA), "42", 0)
        tampered = dataclasses.replace(problem, correct_answer=EquationAnswer("x = 1000"))
        with pytest.raises(SolutionMismatchError):
            solver.solve(tampered)

    def test_tampered_numeric_answer_is_rejected(self, registry, solver):
        generator = registry.get_generator(ProblemType.ARITHMETIC)
        problem = generator.generate(ProblemConfig(problem_type=ProblemType.ARITHMETIC), "42", 0)
        answer = problem.correct_answer
        tampered = dataclasses.replace(
            problem,
            correct_answer=NumericAnswer(answer.value + 1, tolerance=answer.tolerance),
        )
        with pytest.raises(SolutionMismatchError):
            solver.solve(tampered)

    def test_missing_equation(self, solver):
        problem = _problem(ProblemType.ALGEBRA, None, EquationAnswer("x = 1"))
        with pytest.raises(SolutionMismatchError):
            solver.solve(problem)

    def test_unreadable_equation(self, solver):
        problem = _problem(ProblemType.ALGEBRA, "x = = 2", EquationAnswer("x = 2"))
        with pytest.raises(SolutionMismatchError) as exc_info:
            solver.solve(problem)
        assert "equation" in exc_info.value.details


class TestDomainSolvers:
    """Hand-written problems for each solver."""

    def test_arithmetic_order_of_operations(self, solver):
        problem = _problem(ProblemType.ARITHMETIC, "3 + 4*2", NumericAnswer(11, tolerance=0.0))
        solution = solver.solve(problem)
        assert solution.answer.value == 11.0
        assert [s.operation for s in solution.steps] == ["state", "multiply", "add"]
        assert solution.method.startswith("arithmetic")

    def test_algebra_with_brackets(self, solver):
        problem = _problem(ProblemType.ALGEBRA, "2*(x + 3) = 4*x - 2", EquationAnswer("x = 4"))
        solution = solver.solve(problem)
        operations = [s.operation for s in solution.steps]
        assert operations[0] == "state"
        assert "expand" in operations
        assert solution.steps[-1].expression.original == "x = 4"

    def test_algebra_fractional_solution(self, solver):
        problem = _problem(ProblemType.ALGEBRA, "3*x + 1 = 8", EquationAnswer("x = 7/3"))
        assert solver.solve(problem).answer.expression == "x = 7/3"

    def test_formula_pythagoras(self, solver):
        problem = _problem(ProblemType.GEOMETRY, "c**2 = a**2 + b**2; a = 3; b = 4", NumericAnswer(5, tolerance=0.0))
        solution = solver.solve(problem)
        assert solution.answer.value == pytest.approx(5.0)
        assert [s.operation for s in solution.steps] == ["model", "substitute", "solve_for_unknown"]

    def test_formula_keeps_positive_root(self):
        derivation = FormulaSolver().derive("A = pi*r**2; A = 50", NumericAnswer(0, tolerance=0.01))
        assert derivation.answer.value == pytest.approx((50 / 3.141592653589793) ** 0.5)

    def test_formula_needs_one_unknown(self):
        from mathgen.exceptions import ParseError

        with pytest.raises(ParseError):
            FormulaSolver().derive("A = l*w; l = 3", NumericAnswer(0, tolerance=0.0))

    def test_trigonometry_special_angle(self, solver):
        problem = _problem(ProblemType.TRIGONOMETRY, "v = sin(30*pi/180)", NumericAnswer(0.5, tolerance=0.001))
        assert solver.solve(problem).answer.value == pytest.approx(0.5)

    def test_calculus_derivative(self, solver):
        problem = _problem(ProblemType.CALCULUS, "Derivative(x**3 + 2*x, x)", EquationAnswer("3*x**2 + 2"))
        solution = solver.solve(problem)
        assert solution.steps[0].operation == "state"
        assert solution.steps[1].operation == "differentiate"

    def test_calculus_integral(self, solver):
        problem = _problem(ProblemType.CALCULUS, "Integral(2*x, (x, 0, 3))", NumericAnswer(9, tolerance=0.0))
        solution = solver.solve(problem)
        assert solution.answer.value == pytest.approx(9.0)
        assert "antiderivative" in [s.operation for s in solution.steps]

    def test_statistics_median(self, solver):
        problem = _problem(ProblemType.STATISTICS, "median(7, 1, 4, 10)", NumericAnswer(5.5, tolerance=0.0))
        solution = solver.solve(problem)
        assert [s.operation for s in solution.steps] == ["state", "sort", "select_middle"]

    def test_statistics_mode_needs_single_mode(self):
        with pytest.raises(SolutionMismatchError):
            StatisticsSolver().derive("mode(1, 1, 2, 2)", NumericAnswer(1, tolerance=0.0))

    def test_linear_algebra_product(self, solver):
        problem = _problem(
            ProblemType.LINEAR_ALGEBRA,
            "A * B; A = [[1, 2], [3, 4]]; B = [[0, 1], [1, 0]]",
            MatrixAnswer(((2, 1), (4, 3)), tolerance=0.0),
        )
        assert solver.solve(problem).answer.rows == ((2.0, 1.0), (4.0, 3.0))

    def test_linear_algebra_inverse(self, solver):
        problem = _problem(
            ProblemType.LINEAR_ALGEBRA,
            "inverse(A); A = [[2, 0], [0, 4]]",
            MatrixAnswer(((0.5, 0), (0, 0.25)), tolerance=1e-9),
        )
        operations = [s.operation for s in solver.solve(problem).steps]
        assert operations[-2:] == ["determinant", "invert"]

    def test_singular_matrix(self, solver):
        problem = _problem(
            ProblemType.LINEAR_ALGEBRA,
            "inverse(A); A = [[1, 2], [2, 4]]",
            MatrixAnswer(((0, 0), (0, 0)), tolerance=0.0),
        )
        with pytest.raises(SolutionMismatchError):
            solver.solve(problem)

    def test_geometry_routes_transformations(self, solver):
        equation = "triangle (0, 0), (4, 0), (0, 3); rotate(90)"
        assert isinstance(solver.solver_for(ProblemType.GEOMETRY, equation), TransformSolver)
        assert isinstance(solver.solver_for(ProblemType.GEOMETRY, "A = l*w; l = 2; w = 3"), FormulaSolver)

        answer = GraphAnswer(GeometricShape("triangle", ((0, 0), (0, 4), (-3, 0))), tolerance=1e-9)
        solution = solver.solve(_problem(ProblemType.GEOMETRY, equation, answer))
        assert [s.operation for s in solution.steps] == ["plot", "rotate"]


class TestVerification:
    """The step checker rejects broken derivations."""

    class _Broken(DomainSolver):
        OPERATIONS = frozenset({"state", "jump"})

        @property
        def name(self):
            return "broken"

        def derive(self, equation, canonical):
            recorder = StepRecorder()
            recorder.add("1 + 1", "state")
            recorder.add("3", "jump")
            return Derivation(steps=recorder.steps, answer=NumericAnswer(3, tolerance=0.0), method="guess")

        def check_step(self, previous, step, derivation):
            return False

    def test_failed_step_check(self):
        solver = self._Broken()
        with pytest.raises(SolutionMismatchError) as exc_info:
            solver.verify(solver.derive("1 + 1", NumericAnswer(2, tolerance=0.0)))
        assert exc_info.value.details["operation"] == "jump"

    def test_unknown_operation(self):
        solver = self._Broken()
        derivation = solver.derive("1 + 1", NumericAnswer(2, tolerance=0.0))
        derivation.steps[1] = dataclasses.replace(derivation.steps[1], operation="magic")
        with pytest.raises(SolutionMismatchError):
            solver.verify(derivation)

    def test_step_numbering(self):
        solver = self._Broken()
        derivation = solver.derive("1 + 1", NumericAnswer(2, tolerance=0.0))
        derivation.steps[1] = dataclasses.replace(derivation.steps[1], step_number=5)
        with pytest.raises(SolutionMismatchError):
            solver.verify(derivation)


class TestAttach:
    """Publishing options applied to a solved problem."""

    @pytest.fixture
    def solved(self, registry, solver):
        config = ProblemConfig(problem_type=ProblemType.ALGEBRA, difficulty=DifficultyLevel.ADVANCED,
                               include_hints=True)
        problem = registry.get_generator(ProblemType.ALGEBRA).generate(config, "42", 0)
        return problem, solver.solve(problem)

    def test_full_steps(self, solved):
        problem, solution = solved
        assert attach(problem, solution).steps == solution.steps

    def test_final_step_only(self, solved):
        problem, solution = solved
        published = attach(problem, solution, include_steps=False)
        assert len(published.steps) == 1
        assert published.steps[0].step_number == 1
        assert published.steps[0].expression == solution.steps[-1].expression

    def test_hints_include_rules(self, solved):
        problem, solution = solved
        published = attach(problem, solution, include_hints=True)
        for rule in hints_from_steps(solution.steps):
            assert rule in published.hints
        assert published.hints[:len(problem.hints)] == problem.hints

    def test_no_hints(self, solved):
        problem, solution = solved
        assert attach(problem, solution, include_hints=False).hints == ()

    def test_emphasized_mistakes(self, solved):
        problem, solution = solved
        published = attach(problem, solution, include_hints=False, emphasize_common_mistakes=True)
        assert published.hints
        assert all(h.startswith("Watch for a ") for h in published.hints)

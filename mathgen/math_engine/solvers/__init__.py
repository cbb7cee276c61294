"""Domain Solvers Package.

Each solver re-derives answers for the problem types it covers from the
problem's equation text, emitting numbered steps in its own vocabulary.
"""

from mathgen.math_engine.solvers.algebra import AlgebraSolver
from mathgen.math_engine.solvers.arithmetic import ArithmeticSolver
from mathgen.math_engine.solvers.base import Derivation, DomainSolver
from mathgen.math_engine.solvers.calculus import CalculusSolver
from mathgen.math_engine.solvers.formula import FormulaSolver
from mathgen.math_engine.solvers.geometry import TransformSolver
from mathgen.math_engine.solvers.linear_algebra import LinearAlgebraSolver
from mathgen.math_engine.solvers.statistics import StatisticsSolver

__all__ = [
    "AlgebraSolver",
    "ArithmeticSolver",
    "CalculusSolver",
    "Derivation",
    "DomainSolver",
    "FormulaSolver",
    "LinearAlgebraSolver",
    "StatisticsSolver",
    "TransformSolver",
]

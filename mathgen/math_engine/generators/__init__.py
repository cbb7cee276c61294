"""Problem Generators Package.

One generator per problem type. Each turns a ProblemConfig and a random
stream into a problem with its canonical answer and tagged distractors.
"""

from mathgen.math_engine.generators.algebra import AlgebraGenerator
from mathgen.math_engine.generators.arithmetic import ArithmeticGenerator
from mathgen.math_engine.generators.calculus import CalculusGenerator
from mathgen.math_engine.generators.geometry import GeometryGenerator
from mathgen.math_engine.generators.linear_algebra import LinearAlgebraGenerator
from mathgen.math_engine.generators.mixed import MixedGenerator
from mathgen.math_engine.generators.probability import ProbabilityGenerator
from mathgen.math_engine.generators.statistics import StatisticsGenerator
from mathgen.math_engine.generators.trigonometry import TrigonometryGenerator
from mathgen.math_engine.generators.word_problem import WordProblemGenerator

__all__ = [
    "AlgebraGenerator",
    "ArithmeticGenerator",
    "CalculusGenerator",
    "GeometryGenerator",
    "LinearAlgebraGenerator",
    "MixedGenerator",
    "ProbabilityGenerator",
    "StatisticsGenerator",
    "TrigonometryGenerator",
    "WordProblemGenerator",
]

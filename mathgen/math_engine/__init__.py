"""Math Engine - Problem generation, solving and answer validation.

Generators build problems from a configuration and a seed, the solver
re-derives and cross-checks their answers, and the validator grades
learner submissions against them.
"""

from mathgen.math_engine.base import ParameterDefinition, ProblemDraft, ProblemGenerator
from mathgen.math_engine.engine import MathEngine, get_engine
from mathgen.math_engine.registry import GeneratorRegistry, get_registry, initialize_registry
from mathgen.math_engine.solver import Solver
from mathgen.math_engine.validator import AnswerValidator

__all__ = [
    "AnswerValidator",
    "GeneratorRegistry",
    "MathEngine",
    "ParameterDefinition",
    "ProblemDraft",
    "ProblemGenerator",
    "Solver",
    "get_engine",
    "get_registry",
    "initialize_registry",
]

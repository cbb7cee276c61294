"""mathgen - generate, solve and grade mathematics problems.

Usage:
    from mathgen import GenerationRequest, get_engine

    result = get_engine().generate(GenerationRequest(
        config={"type": "algebra", "difficulty": "intermediate", "quantity": 5},
        user_id="learner-1",
        seed="42",
    ))
"""

# The engine is imported before the AI and grading packages, which depend on it
from mathgen.math_engine import MathEngine, get_engine
from mathgen.ai import AIGenerationRunner, AIProblemSource
from mathgen.grading import AttemptTracker, GradingService
from mathgen.models import GenerationRequest, GenerationResult, ProblemConfig, ProblemGradeRequest

__version__ = "0.1.0"

__all__ = [
    "AIGenerationRunner",
    "AIProblemSource",
    "AttemptTracker",
    "GenerationRequest",
    "GenerationResult",
    "GradingService",
    "MathEngine",
    "ProblemConfig",
    "ProblemGradeRequest",
    "get_engine",
]

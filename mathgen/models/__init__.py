"""Data model for problems, answers, solutions and grading."""

from mathgen.models.enums import (
    AnswerFormat,
    AttemptState,
    DifficultyLevel,
    GenerationMethod,
    ProblemType,
    TEXT_FORMATS,
)
from mathgen.models.answers import (
    Answer,
    EquationAnswer,
    GeometricShape,
    GraphAnswer,
    MatrixAnswer,
    MultipleChoiceAnswer,
    NumericAnswer,
    TextAnswer,
    answer_from_dict,
    base_answer,
    format_number,
)
from mathgen.models.solution import MathExpression, MathSolution, MathStep
from mathgen.models.problem import (
    GeneratedProblem,
    GenerationProvenance,
    MistakePattern,
    Problem,
    ProblemMetadata,
)
from mathgen.models.grading import (
    AnswerValidationResult,
    GradeAnalysis,
    ProblemAttempt,
    Session,
    SessionStatistics,
    StudentAnswer,
)
from mathgen.models.requests import (
    GenerationPreferences,
    GenerationRequest,
    GenerationResult,
    ProblemConfig,
    ProblemGradeRequest,
    ProblemGradeResponse,
)

__all__ = [
    "AnswerFormat",
    "AttemptState",
    "DifficultyLevel",
    "GenerationMethod",
    "ProblemType",
    "TEXT_FORMATS",
    "Answer",
    "EquationAnswer",
    "GeometricShape",
    "GraphAnswer",
    "MatrixAnswer",
    "MultipleChoiceAnswer",
    "NumericAnswer",
    "TextAnswer",
    "answer_from_dict",
    "base_answer",
    "format_number",
    "MathExpression",
    "MathSolution",
    "MathStep",
    "GeneratedProblem",
    "GenerationProvenance",
    "MistakePattern",
    "Problem",
    "ProblemMetadata",
    "AnswerValidationResult",
    "GradeAnalysis",
    "ProblemAttempt",
    "Session",
    "SessionStatistics",
    "StudentAnswer",
    "GenerationPreferences",
    "GenerationRequest",
    "GenerationResult",
    "ProblemConfig",
    "ProblemGradeRequest",
    "ProblemGradeResponse",
]

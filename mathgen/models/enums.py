"""Enumerations shared across the engine."""

from enum import Enum


class ProblemType(str, Enum):
    ARITHMETIC = "arithmetic"
    ALGEBRA = "algebra"
    GEOMETRY = "geometry"
    TRIGONOMETRY = "trigonometry"
    CALCULUS = "calculus"
    STATISTICS = "statistics"
    PROBABILITY = "probability"
    LINEAR_ALGEBRA = "linear_algebra"
    WORD_PROBLEM = "word_problem"
    MIXED = "mixed"


class DifficultyLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"

    @property
    def rank(self) -> int:
        return _DIFFICULTY_ORDER.index(self)

    def next_level(self) -> "DifficultyLevel":
        """The next harder level (EXPERT stays EXPERT)."""
        return _DIFFICULTY_ORDER[min(self.rank + 1, len(_DIFFICULTY_ORDER) - 1)]


_DIFFICULTY_ORDER = [
    DifficultyLevel.BEGINNER,
    DifficultyLevel.INTERMEDIATE,
    DifficultyLevel.ADVANCED,
    DifficultyLevel.EXPERT,
]


class AnswerFormat(str, Enum):
    TEXT = "text"
    NUMERIC = "numeric"
    EQUATION = "equation"
    MULTIPLE_CHOICE = "multiple_choice"
    SHORT_ANSWER = "short_answer"
    LONG_ANSWER = "long_answer"
    MATRIX = "matrix"
    GRAPH = "graph"


TEXT_FORMATS = frozenset({
    AnswerFormat.TEXT,
    AnswerFormat.SHORT_ANSWER,
    AnswerFormat.LONG_ANSWER,
})


class GenerationMethod(str, Enum):
    TEMPLATE_BASED = "template_based"
    AI_GENERATED = "ai_generated"
    USER_CREATED = "user_created"
    IMPORTED = "imported"


class AttemptState(str, Enum):
    CREATED = "created"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"

    @property
    def is_terminal(self) -> bool:
        return self in (AttemptState.COMPLETED, AttemptState.ABANDONED)

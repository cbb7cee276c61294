"""Problem records and their generation provenance."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from mathgen.exceptions import InvalidInputError, ValidationAmbiguousError
from mathgen.models.answers import (
    Answer,
    GraphAnswer,
    MatrixAnswer,
    MultipleChoiceAnswer,
    NumericAnswer,
    base_answer,
)
from mathgen.models.enums import DifficultyLevel, GenerationMethod, ProblemType
from mathgen.models.solution import MathStep


@dataclass(frozen=True)
class MistakePattern:
    """A known wrong answer for one problem instance and how to fix it."""

    category: str
    answer: Answer
    advice: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "answer": self.answer.to_dict(),
            "advice": self.advice,
        }


@dataclass(frozen=True)
class ProblemMetadata:
    """Static descriptors. Usage counters live with a statistics service."""

    estimated_time_minutes: Optional[float] = None
    skills: Tuple[str, ...] = ()
    standards: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "estimated_time_minutes": self.estimated_time_minutes,
            "skills": list(self.skills),
            "standards": list(self.standards),
        }


def _require_tolerance(answer: Answer, where: str) -> None:
    inner = base_answer(answer)
    if isinstance(inner, (NumericAnswer, MatrixAnswer, GraphAnswer)) and inner.tolerance is None:
        raise ValidationAmbiguousError(
            f"{where} is {inner.format.value} but declares no tolerance",
            details={"answer": inner.to_dict()},
        )


@dataclass(frozen=True)
class Problem:
    """An immutable generated problem with its canonical answer."""

    id: str
    problem_type: ProblemType
    difficulty: DifficultyLevel
    title: str
    description: str
    problem_statement: str
    correct_answer: Answer
    equation: Optional[str] = None
    diagram: Optional[str] = None
    hints: Tuple[str, ...] = ()
    steps: Tuple[MathStep, ...] = ()
    alternatives: Optional[Tuple[Answer, ...]] = None
    topic: Optional[str] = None
    sub_topic: Optional[str] = None
    tags: Tuple[str, ...] = ()
    common_mistakes: Tuple[MistakePattern, ...] = ()
    metadata: ProblemMetadata = field(default_factory=ProblemMetadata)

    def __post_init__(self) -> None:
        _require_tolerance(self.correct_answer, "correct answer")
        if self.alternatives is None:
            return

        correct_format = self.correct_answer.format
        for alternative in self.alternatives:
            if alternative.format != correct_format:
                raise InvalidInputError(
                    "all alternatives must share the correct answer's format",
                    details={
                        "expected": correct_format.value,
                        "found": alternative.format.value,
                    },
                )
            _require_tolerance(alternative, "alternative")

        if isinstance(self.correct_answer, MultipleChoiceAnswer):
            label = self.correct_answer.label
            matches = [a for a in self.alternatives if isinstance(a, MultipleChoiceAnswer) and a.label == label]
            if len(matches) != 1:
                raise InvalidInputError(
                    "exactly one alternative must match the correct choice",
                    details={"choice": label, "matches": len(matches)},
                )

        from mathgen.math_engine.values import answers_equivalent

        correct = base_answer(self.correct_answer)
        equivalent = sum(1 for a in self.alternatives if answers_equivalent(correct, base_answer(a)))
        if equivalent != 1:
            raise InvalidInputError(
                "exactly one alternative must be equivalent to the correct answer",
                details={"answer": correct.display(), "matches": equivalent},
            )

    @property
    def choices(self) -> Tuple[Answer, ...]:
        return self.alternatives or ()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "type": self.problem_type.value,
            "difficulty": self.difficulty.value,
            "title": self.title,
            "description": self.description,
            "problem_statement": self.problem_statement,
            "equation": self.equation,
            "diagram": self.diagram,
            "hints": list(self.hints),
            "steps": [s.to_dict() for s in self.steps],
            "correct_answer": self.correct_answer.to_dict(),
            "alternatives": [a.to_dict() for a in self.alternatives] if self.alternatives is not None else None,
            "topic": self.topic,
            "sub_topic": self.sub_topic,
            "tags": list(self.tags),
            "common_mistakes": [m.to_dict() for m in self.common_mistakes],
            "metadata": self.metadata.to_dict(),
        }


@dataclass(frozen=True)
class GenerationProvenance:
    """How and from what seed a problem was produced."""

    problem_id: str
    generation_method: GenerationMethod
    seed: str
    generated_at: datetime
    ai_model: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "problem_id": self.problem_id,
            "generation_method": self.generation_method.value,
            "seed": self.seed,
            "generated_at": self.generated_at.isoformat(),
            "ai_model": self.ai_model,
        }


@dataclass(frozen=True)
class GeneratedProblem:
    """A published problem together with its provenance."""

    problem: Problem
    provenance: GenerationProvenance

    def __post_init__(self) -> None:
        if self.problem.id != self.provenance.problem_id:
            raise InvalidInputError(
                "provenance does not belong to this problem",
                details={"problem_id": self.problem.id, "provenance_id": self.provenance.problem_id},
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "problem": self.problem.to_dict(),
            "provenance": self.provenance.to_dict(),
        }

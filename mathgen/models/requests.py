"""Boundary request/response models.

These are the shapes callers hand to the engine and get back. Field
constraints reject malformed configuration before any generation runs.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mathgen.models.enums import DifficultyLevel, ProblemType
from mathgen.models.grading import GradeAnalysis
from mathgen.models.problem import GeneratedProblem


class ProblemConfig(BaseModel):
    """What to generate."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    problem_type: ProblemType = Field(alias="type", description="Problem domain")
    difficulty: DifficultyLevel = Field(default=DifficultyLevel.BEGINNER)
    quantity: int = Field(default=1, ge=1, le=200, description="Number of problems")
    include_steps: bool = Field(default=True, description="Keep the full step trace on each problem")
    include_hints: bool = Field(default=False, description="Attach hints derived from the solution")
    allow_multiple_choice: bool = Field(default=False, description="Build labelled choices with distractors")
    time_limit: Optional[int] = Field(default=None, gt=0, description="Seconds allowed per attempt")
    custom_parameters: Dict[str, Any] = Field(default_factory=dict, description="Generator-specific overrides")


class GenerationPreferences(BaseModel):
    """Optional generation preferences."""
    model_config = ConfigDict(frozen=True)

    include_real_world_context: bool = False
    include_multi_step_problems: bool = False
    emphasize_common_mistakes: bool = False
    allow_repetition: bool = True
    focus_areas: List[str] = Field(default_factory=list)


class GenerationRequest(BaseModel):
    """A batch generation request."""

    config: ProblemConfig
    user_id: str
    session_id: Optional[str] = None
    preferences: Optional[GenerationPreferences] = None
    seed: Optional[str] = Field(default=None, description="Reproducibility key; minted when absent")

    @field_validator("seed", mode="before")
    @classmethod
    def _seed_to_str(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class GenerationResult(BaseModel):
    """Outcome of a batch; partial successes carry warnings and errors."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool
    problems: List[GeneratedProblem] = Field(default_factory=list)
    generation_time: float = Field(description="Milliseconds")
    seed: str
    model: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


class ProblemGradeRequest(BaseModel):
    """A learner's submission for one problem of an attempt.

    ``submitted_answer`` may be an Answer instance or its dict form.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    attempt_id: str
    problem_id: str
    user_id: str
    submitted_answer: Any
    time_spent_seconds: Optional[float] = Field(default=None, ge=0)


class ProblemGradeResponse(BaseModel):
    """Grading outcome returned to the caller."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    attempt_id: str
    problem_id: str
    is_correct: bool
    score: float
    max_score: float
    feedback: str
    is_gradable: bool = True
    detailed_analysis: Optional[GradeAnalysis] = None

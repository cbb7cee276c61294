"""Base classes for problem generators.

All generator modules should inherit from ProblemGenerator and implement
the required interface for registration and problem construction.
"""

from __future__ import annotations

import hashlib
import json
import string
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from mathgen.config import get_settings
from mathgen.exceptions import GenerationError, UnsupportedConfigError
from mathgen.math_engine import mistakes, values
from mathgen.models.answers import Answer, MultipleChoiceAnswer, NumericAnswer
from mathgen.models.enums import DifficultyLevel, ProblemType
from mathgen.models.problem import MistakePattern, Problem, ProblemMetadata
from mathgen.models.requests import ProblemConfig

# Namespace for deterministic problem ids
PROBLEM_NAMESPACE = uuid.UUID("6f1c2a4e-9b7d-5c3e-8a21-4d6e0f9b3c57")


def make_rng(seed: str, index: int, salt: int = 0) -> np.random.Generator:
    """Independent generator stream for one item of a batch."""
    key = f"{seed}:{index}" if salt == 0 else f"{seed}:{index}:{salt}"
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    return np.random.default_rng(int.from_bytes(digest[:8], "big"))


def make_problem_id(config: ProblemConfig, seed: str, index: int, salt: int = 0) -> str:
    """UUID5 over everything that determines the problem's content."""
    key = json.dumps(
        {
            "type": config.problem_type.value,
            "difficulty": config.difficulty.value,
            "seed": seed,
            "index": index,
            "salt": salt,
            "multiple_choice": config.allow_multiple_choice,
            "hints": config.include_hints,
            "parameters": config.custom_parameters,
        },
        sort_keys=True,
        default=str,
    )
    return str(uuid.uuid5(PROBLEM_NAMESPACE, key))


def fraction_text(value: Fraction) -> str:
    """``7/3``, ``-2`` or ``5``."""
    if value.denominator == 1:
        return str(value.numerator)
    return f"{value.numerator}/{value.denominator}"


@dataclass(frozen=True)
class ParameterDefinition:
    """A ``customParameters`` key accepted by a generator."""

    name: str
    description: str
    kind: type
    choices: Optional[Tuple[Any, ...]] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    item_kind: Optional[type] = None  # For list parameters

    def _check_scalar(self, value: Any, kind: type) -> Any:
        if kind is bool:
            ok = isinstance(value, bool)
        elif kind is int:
            ok = isinstance(value, int) and not isinstance(value, bool)
        elif kind is float:
            ok = isinstance(value, (int, float)) and not isinstance(value, bool)
            value = float(value) if ok else value
        else:
            ok = isinstance(value, kind)
        if not ok:
            raise UnsupportedConfigError(
                f"parameter '{self.name}' must be of type {kind.__name__}",
                details={"parameter": self.name, "value": repr(value)},
            )
        if self.choices is not None and value not in self.choices:
            raise UnsupportedConfigError(
                f"parameter '{self.name}' must be one of {list(self.choices)}",
                details={"parameter": self.name, "value": value},
            )
        if kind in (int, float):
            if self.minimum is not None and value < self.minimum:
                raise UnsupportedConfigError(
                    f"parameter '{self.name}' must be >= {self.minimum}",
                    details={"parameter": self.name, "value": value},
                )
            if self.maximum is not None and value > self.maximum:
                raise UnsupportedConfigError(
                    f"parameter '{self.name}' must be <= {self.maximum}",
                    details={"parameter": self.name, "value": value},
                )
        return value

    def coerce(self, value: Any) -> Any:
        """Validate ``value`` and return it in canonical form.

        Raises:
            UnsupportedConfigError: If the value is ill-typed or out of range
        """
        if self.kind is list:
            if not isinstance(value, (list, tuple)) or not value:
                raise UnsupportedConfigError(
                    f"parameter '{self.name}' must be a non-empty list",
                    details={"parameter": self.name, "value": repr(value)},
                )
            return tuple(self._check_scalar(v, self.item_kind or str) for v in value)
        return self._check_scalar(value, self.kind)


TOLERANCE_PARAMETER = ParameterDefinition(
    name="tolerance",
    description="Tolerance for answers that are not exact",
    kind=float,
    minimum=0.0,
)


@dataclass
class ProblemDraft:
    """What a generator builds before ids, choices and solver output are attached."""

    title: str
    statement: str
    equation: str
    answer: Answer
    # (distractor, mistake category), most common mistakes first
    distractors: List[Tuple[Answer, str]] = field(default_factory=list)
    topic: Optional[str] = None
    sub_topic: Optional[str] = None
    tags: Tuple[str, ...] = ()
    hints: Tuple[str, ...] = ()
    diagram: Optional[str] = None
    skills: Tuple[str, ...] = ()
    estimated_time_minutes: Optional[float] = None
    description: Optional[str] = None
    # Set when a generator delegates to another (mixed batches)
    problem_type: Optional[ProblemType] = None


class ProblemGenerator(ABC):
    """Base class for all problem generators.

    Each generator module (arithmetic, algebra, geometry, etc.) should:
    1. Inherit from this class
    2. Declare DEFAULT_PARAMETERS, a read-only table per DifficultyLevel
    3. Implement get_parameters() to declare the keys it accepts
    4. Implement build() to produce a ProblemDraft from resolved parameters
    """

    DEFAULT_PARAMETERS: Mapping[DifficultyLevel, Mapping[str, Any]] = {}

    @property
    @abstractmethod
    def problem_type(self) -> ProblemType:
        """The ProblemType this generator produces."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of this generator."""
        pass

    @abstractmethod
    def get_parameters(self) -> List[ParameterDefinition]:
        """Return the customParameters this generator accepts.

        Every key of every DEFAULT_PARAMETERS entry must be declared here.
        """
        pass

    @abstractmethod
    def build(
        self,
        params: Mapping[str, Any],
        difficulty: DifficultyLevel,
        rng: np.random.Generator,
    ) -> ProblemDraft:
        """Construct one problem.

        Args:
            params: Resolved parameters (difficulty defaults plus overrides)
            difficulty: Requested difficulty
            rng: The item's random stream; the only source of randomness

        Returns:
            ProblemDraft with the canonical answer and tagged distractors

        Raises:
            GenerationError: If no valid problem could be assembled
        """
        pass

    def check_parameters(self, params: Mapping[str, Any]) -> None:
        """Cross-parameter checks. Override to reject incompatible combinations."""
        return None

    def resolve_parameters(self, config: ProblemConfig) -> Dict[str, Any]:
        """Merge the difficulty table with ``config.custom_parameters``.

        Raises:
            UnsupportedConfigError: For unknown, ill-typed or incompatible keys
        """
        definitions = {p.name: p for p in self.get_parameters()}
        resolved = dict(self.DEFAULT_PARAMETERS.get(config.difficulty, {}))

        unknown = sorted(set(config.custom_parameters) - set(definitions))
        if unknown:
            raise UnsupportedConfigError(
                f"{self.problem_type.value} generator does not accept: {', '.join(unknown)}",
                details={"unknown": unknown, "accepted": sorted(definitions)},
            )

        for name, value in config.custom_parameters.items():
            resolved[name] = definitions[name].coerce(value)

        self.check_parameters(resolved)
        return resolved

    def tolerance_for(self, params: Mapping[str, Any], exact: bool) -> float:
        """Tolerance for a canonical numeric answer.

        A ``tolerance`` parameter wins; otherwise exact answers get 0.
        """
        if "tolerance" in params:
            return float(params["tolerance"])
        if exact:
            return 0.0
        return get_settings().default_tolerance

    def numeric_distractors(
        self,
        answer: NumericAnswer,
        candidates: Sequence[Tuple[float, str]],
    ) -> List[Tuple[Answer, str]]:
        """Wrap candidate values as distractors sharing the answer's unit and tolerance.

        Generic fallbacks (off by one, decimal place) are appended so that
        multiple choice always has enough material.
        """
        value = answer.value
        pool = list(candidates) + [
            (value + 1, mistakes.OFF_BY_ONE),
            (value - 1, mistakes.OFF_BY_ONE),
            (value * 10 if value else 10.0, mistakes.DECIMAL_PLACE),
            (value / 10 if value else 0.1, mistakes.DECIMAL_PLACE),
        ]
        result: List[Tuple[Answer, str]] = []
        for candidate, category in pool:
            if not np.isfinite(candidate):
                continue
            result.append((
                NumericAnswer(
                    value=float(candidate),
                    tolerance=answer.tolerance,
                    unit_of_measurement=answer.unit_of_measurement,
                ),
                category,
            ))
        return result

    def generate(
        self,
        config: ProblemConfig,
        seed: str,
        index: int,
        salt: int = 0,
        choice_count: Optional[int] = None,
    ) -> Problem:
        """Generate the ``index``-th problem of the batch keyed by ``seed``.

        Identical arguments always give an identical Problem.
        """
        params = self.resolve_parameters(config)
        rng = make_rng(seed, index, salt)
        draft = self.build(params, config.difficulty, rng)
        return self.assemble(draft, config, make_problem_id(config, seed, index, salt), rng, choice_count)

    def assemble(
        self,
        draft: ProblemDraft,
        config: ProblemConfig,
        problem_id: str,
        rng: np.random.Generator,
        choice_count: Optional[int] = None,
    ) -> Problem:
        """Turn a draft into a Problem, building choices when requested."""
        distractors = self._usable_distractors(draft)
        common_mistakes = tuple(
            MistakePattern(category=category, answer=answer, advice=mistakes.advice_for(category))
            for answer, category in distractors
        )

        correct_answer: Answer = draft.answer
        alternatives: Optional[Tuple[Answer, ...]] = None
        if config.allow_multiple_choice:
            count = choice_count or get_settings().choice_count
            correct_answer, alternatives = build_choices(draft.answer, distractors, rng, count)

        return Problem(
            id=problem_id,
            problem_type=draft.problem_type or self.problem_type,
            difficulty=config.difficulty,
            title=draft.title,
            description=draft.description or self.description,
            problem_statement=draft.statement,
            correct_answer=correct_answer,
            equation=draft.equation,
            diagram=draft.diagram,
            hints=draft.hints if config.include_hints else (),
            alternatives=alternatives,
            topic=draft.topic,
            sub_topic=draft.sub_topic,
            tags=draft.tags,
            common_mistakes=common_mistakes,
            metadata=ProblemMetadata(
                estimated_time_minutes=draft.estimated_time_minutes,
                skills=draft.skills,
            ),
        )

    def _usable_distractors(self, draft: ProblemDraft) -> List[Tuple[Answer, str]]:
        """Same format as the answer, never equivalent to it or to each other."""
        usable: List[Tuple[Answer, str]] = []
        for candidate, category in draft.distractors:
            if candidate.format != draft.answer.format:
                continue
            if values.answers_equivalent(draft.answer, candidate):
                continue
            if any(values.answers_equivalent(kept, candidate) for kept, _ in usable):
                continue
            usable.append((candidate, category))
        return usable


def build_choices(
    answer: Answer,
    distractors: Sequence[Tuple[Answer, str]],
    rng: np.random.Generator,
    choice_count: int,
) -> Tuple[MultipleChoiceAnswer, Tuple[Answer, ...]]:
    """Shuffle the answer among ``choice_count - 1`` distractors and label them A, B, C, ...

    Returns:
        The correct MultipleChoiceAnswer and all labelled options

    Raises:
        GenerationError: If there are not enough distractors
    """
    needed = choice_count - 1
    if len(distractors) < needed:
        raise GenerationError(
            "not enough distinct distractors for multiple choice",
            details={"needed": needed, "available": len(distractors)},
        )

    options: List[Tuple[Answer, Optional[str]]] = [(answer, None)]
    options.extend(distractors[:needed])
    order = rng.permutation(len(options))

    labelled: List[MultipleChoiceAnswer] = []
    for position, option_index in enumerate(order):
        content, mistake = options[int(option_index)]
        labelled.append(MultipleChoiceAnswer(
            choice=string.ascii_uppercase[position],
            content=content,
            mistake=mistake,
        ))

    correct = labelled[int(np.flatnonzero(order == 0)[0])]
    return correct, tuple(labelled)


__all__ = [
    "PROBLEM_NAMESPACE",
    "TOLERANCE_PARAMETER",
    "ParameterDefinition",
    "ProblemDraft",
    "ProblemGenerator",
    "build_choices",
    "fraction_text",
    "make_problem_id",
    "make_rng",
]

"""Mixed Problem Generator.

Draws each problem of a batch from a randomly chosen concrete generator.
The published problem carries the concrete type plus a ``mixed`` tag.
"""

from __future__ import annotations

import dataclasses
from types import MappingProxyType
from typing import Any, List, Mapping

import numpy as np

from mathgen.exceptions import UnsupportedConfigError
from mathgen.math_engine.base import ParameterDefinition, ProblemDraft, ProblemGenerator
from mathgen.models.enums import DifficultyLevel, ProblemType

CONCRETE_TYPES = tuple(t.value for t in ProblemType if t is not ProblemType.MIXED)

_ALL = MappingProxyType({"types": CONCRETE_TYPES})


class MixedGenerator(ProblemGenerator):
    """Delegates to the other registered generators."""

    DEFAULT_PARAMETERS: Mapping[DifficultyLevel, Mapping[str, Any]] = MappingProxyType({
        level: _ALL for level in DifficultyLevel
    })

    def __init__(self, generators: Mapping[ProblemType, ProblemGenerator]):
        self._generators = generators

    @property
    def problem_type(self) -> ProblemType:
        return ProblemType.MIXED

    @property
    def description(self) -> str:
        return "A mix of problem types"

    def get_parameters(self) -> List[ParameterDefinition]:
        return [
            ParameterDefinition("types", "Problem types to mix", list, choices=CONCRETE_TYPES, item_kind=str),
        ]

    def check_parameters(self, params: Mapping[str, Any]) -> None:
        missing = [t for t in params["types"] if ProblemType(t) not in self._generators]
        if missing:
            raise UnsupportedConfigError(
                "no generator registered for some mixed types",
                details={"missing": missing},
            )

    def build(
        self,
        params: Mapping[str, Any],
        difficulty: DifficultyLevel,
        rng: np.random.Generator,
    ) -> ProblemDraft:
        chosen = ProblemType(str(rng.choice(params["types"])))
        generator = self._generators[chosen]
        defaults = dict(generator.DEFAULT_PARAMETERS.get(difficulty, {}))
        draft = generator.build(defaults, difficulty, rng)
        return dataclasses.replace(
            draft,
            problem_type=chosen,
            description=draft.description or generator.description,
            tags=draft.tags + ("mixed",),
        )

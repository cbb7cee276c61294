"""Probability Problem Generator.

Draws from a bag of red and blue counters, repeated die rolls, and
hypergeometric selections. Answers are probabilities in [0, 1].
"""

from __future__ import annotations

from math import comb
from types import MappingProxyType
from typing import Any, List, Mapping

import numpy as np

from mathgen.math_engine import mistakes
from mathgen.math_engine.base import (
    TOLERANCE_PARAMETER,
    ParameterDefinition,
    ProblemDraft,
    ProblemGenerator,
)
from mathgen.models.answers import NumericAnswer
from mathgen.models.enums import DifficultyLevel, ProblemType

KINDS = ("single_draw", "complement", "without_replacement", "at_least_one", "hypergeometric")


class ProbabilityGenerator(ProblemGenerator):
    """Classical probability with counters and dice."""

    DEFAULT_PARAMETERS: Mapping[DifficultyLevel, Mapping[str, Any]] = MappingProxyType({
        DifficultyLevel.BEGINNER: MappingProxyType({
            "kinds": ("single_draw", "complement"),
            "max_count": 10,
            "tolerance": 0.001,
        }),
        DifficultyLevel.INTERMEDIATE: MappingProxyType({
            "kinds": ("complement", "without_replacement", "at_least_one"),
            "max_count": 12,
            "tolerance": 0.001,
        }),
        DifficultyLevel.ADVANCED: MappingProxyType({
            "kinds": ("without_replacement", "at_least_one", "hypergeometric"),
            "max_count": 15,
            "tolerance": 0.001,
        }),
        DifficultyLevel.EXPERT: MappingProxyType({
            "kinds": ("hypergeometric", "without_replacement"),
            "max_count": 20,
            "tolerance": 0.001,
        }),
    })

    @property
    def problem_type(self) -> ProblemType:
        return ProblemType.PROBABILITY

    @property
    def description(self) -> str:
        return "Probability of drawing counters and rolling dice"

    def get_parameters(self) -> List[ParameterDefinition]:
        return [
            ParameterDefinition("kinds", "Problem kinds to draw from", list, choices=KINDS, item_kind=str),
            ParameterDefinition("max_count", "Most counters of one colour", int, minimum=2, maximum=100),
            TOLERANCE_PARAMETER,
        ]

    def build(
        self,
        params: Mapping[str, Any],
        difficulty: DifficultyLevel,
        rng: np.random.Generator,
    ) -> ProblemDraft:
        kind = str(rng.choice(params["kinds"]))
        red = int(rng.integers(2, params["max_count"] + 1))
        blue = int(rng.integers(2, params["max_count"] + 1))
        total = red + blue
        bag = f"A bag holds {red} red and {blue} blue counters."

        if kind == "single_draw":
            title = "Single draw"
            statement = f"{bag} One counter is drawn at random. What is the probability that it is red?"
            equation = f"P = r/(r + b); r = {red}; b = {blue}"
            value = red / total
            candidates = [
                (red / blue, mistakes.WRONG_FORMULA),
                (blue / total, mistakes.CONCEPT_CONFUSION),
                (1 / total, mistakes.INCOMPLETE),
            ]
            hints = ("Probability = favourable outcomes ÷ total outcomes.",)
            sub_topic = "single events"
        elif kind == "complement":
            title = "Complementary event"
            statement = f"{bag} One counter is drawn at random. What is the probability that it is not red?"
            equation = f"P = 1 - r/(r + b); r = {red}; b = {blue}"
            value = 1 - red / total
            candidates = [
                (red / total, mistakes.CONCEPT_CONFUSION),
                (blue / red, mistakes.WRONG_FORMULA),
                (1 / total, mistakes.INCOMPLETE),
            ]
            hints = ("P(not A) = 1 − P(A).",)
            sub_topic = "complements"
        elif kind == "without_replacement":
            title = "Two draws without replacement"
            statement = f"{bag} Two counters are drawn without replacement. What is the probability that both are red?"
            equation = f"P = (r/(r + b))*((r - 1)/(r + b - 1)); r = {red}; b = {blue}"
            value = red / total * (red - 1) / (total - 1)
            candidates = [
                ((red / total) ** 2, mistakes.CONCEPT_CONFUSION),
                (red / total * (red - 1) / total, mistakes.OFF_BY_ONE),
                (red / total + (red - 1) / (total - 1), mistakes.WRONG_FORMULA),
            ]
            hints = ("After the first red counter is taken, one fewer red and one fewer counter remain.",)
            sub_topic = "dependent events"
        elif kind == "at_least_one":
            rolls = int(rng.integers(2, 7))
            title = "At least one six"
            statement = f"A fair die is rolled {rolls} times. What is the probability of rolling at least one six?"
            equation = f"P = 1 - (5/6)**n; n = {rolls}"
            value = 1 - (5 / 6) ** rolls
            candidates = [
                (rolls / 6, mistakes.WRONG_FORMULA),
                ((1 / 6) ** rolls, mistakes.CONCEPT_CONFUSION),
                ((5 / 6) ** rolls, mistakes.INCOMPLETE),
            ]
            hints = ("Find the probability of no sixes and subtract it from 1.",)
            sub_topic = "independent events"
        else:
            drawn = int(rng.integers(2, min(total, 6) + 1))
            wanted = int(rng.integers(max(1, drawn - blue), min(red, drawn) + 1))
            title = "Choosing a handful"
            statement = (
                f"{bag} {drawn} counters are taken at random. "
                f"What is the probability that exactly {wanted} of them are red?"
            )
            equation = (
                f"P = binomial(r, k)*binomial(b, m - k)/binomial(r + b, m); "
                f"r = {red}; b = {blue}; m = {drawn}; k = {wanted}"
            )
            value = comb(red, wanted) * comb(blue, drawn - wanted) / comb(total, drawn)
            p = red / total
            candidates = [
                (comb(drawn, wanted) * p ** wanted * (1 - p) ** (drawn - wanted), mistakes.CONCEPT_CONFUSION),
                (comb(red, wanted) / comb(total, drawn), mistakes.INCOMPLETE),
                (wanted / drawn, mistakes.WRONG_FORMULA),
            ]
            hints = ("Count the ways to choose the red and blue counters separately, then divide by all choices.",)
            sub_topic = "combinations"

        answer = NumericAnswer(value=value, tolerance=self.tolerance_for(params, exact=False))
        return ProblemDraft(
            title=title,
            statement=statement,
            equation=equation,
            answer=answer,
            distractors=self.numeric_distractors(answer, candidates),
            topic="probability",
            sub_topic=sub_topic,
            tags=("probability", sub_topic),
            hints=hints,
            skills=("counting outcomes",),
            estimated_time_minutes=3.0,
        )

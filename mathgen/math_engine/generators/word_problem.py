"""Word Problem Generator.

Everyday contexts (travel, shopping, discounts, shared work, savings)
that reduce to a single formula with one unknown.
"""

from __future__ import annotations

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

CONTEXTS = ("distance", "travel_time", "shopping", "discount", "work_rate", "interest")

_NAMES = ("Ana", "Ben", "Chloe", "Dev", "Ema", "Farid", "Grace", "Hugo")
_ITEMS = (("notebook", "pen"), ("apple", "bag"), ("ticket", "programme"), ("sandwich", "drink"))


class WordProblemGenerator(ProblemGenerator):
    """Real-world contexts with units."""

    DEFAULT_PARAMETERS: Mapping[DifficultyLevel, Mapping[str, Any]] = MappingProxyType({
        DifficultyLevel.BEGINNER: MappingProxyType({"contexts": ("distance", "shopping"), "currency": "dollars"}),
        DifficultyLevel.INTERMEDIATE: MappingProxyType({
            "contexts": ("travel_time", "shopping", "discount"),
            "currency": "dollars",
        }),
        DifficultyLevel.ADVANCED: MappingProxyType({"contexts": ("discount", "work_rate"), "currency": "dollars"}),
        DifficultyLevel.EXPERT: MappingProxyType({"contexts": ("work_rate", "interest"), "currency": "dollars"}),
    })

    @property
    def problem_type(self) -> ProblemType:
        return ProblemType.WORD_PROBLEM

    @property
    def description(self) -> str:
        return "Everyday problems with units: travel, shopping, work and savings"

    def get_parameters(self) -> List[ParameterDefinition]:
        return [
            ParameterDefinition("contexts", "Contexts to draw from", list, choices=CONTEXTS, item_kind=str),
            ParameterDefinition("currency", "Unit used for money answers", str),
            TOLERANCE_PARAMETER,
        ]

    def build(
        self,
        params: Mapping[str, Any],
        difficulty: DifficultyLevel,
        rng: np.random.Generator,
    ) -> ProblemDraft:
        context = str(rng.choice(params["contexts"]))
        name = str(rng.choice(_NAMES))
        money = params["currency"]

        if context == "distance":
            speed = int(rng.integers(3, 13)) * 5
            hours = int(rng.integers(1, 7))
            statement = f"{name} drives at {speed} km/h for {hours} hours. How far does {name} travel?"
            equation = f"d = s*t; s = {speed}; t = {hours}"
            value, unit = float(speed * hours), "km"
            candidates = [
                (speed / hours, mistakes.INVERSE_OPERATION),
                (float(speed + hours), mistakes.WRONG_FORMULA),
            ]
            title, sub_topic, hint = "How far?", "speed, distance and time", "Distance = speed × time."
        elif context == "travel_time":
            speed = int(rng.integers(2, 13)) * 10
            distance = speed * int(rng.integers(1, 9)) + int(rng.integers(0, 2)) * speed // 2
            statement = f"{name} cycles {distance} km at a steady {speed} km/h. How many hours does the trip take?"
            equation = f"d = s*t; d = {distance}; s = {speed}"
            value, unit = distance / speed, "hours"
            candidates = [
                (float(distance * speed), mistakes.INVERSE_OPERATION),
                (speed / distance, mistakes.OPERAND_ORDER),
            ]
            title, sub_topic, hint = "How long?", "speed, distance and time", "Time = distance ÷ speed."
        elif context == "shopping":
            item, extra = _ITEMS[int(rng.integers(0, len(_ITEMS)))]
            count = int(rng.integers(2, 10))
            price = int(rng.integers(1, 9))
            extra_price = int(rng.integers(1, 6))
            statement = (
                f"{name} buys {count} {item}s at {price} {money} each and one {extra} for "
                f"{extra_price} {money}. How much does {name} spend?"
            )
            equation = f"T = n*p + q; n = {count}; p = {price}; q = {extra_price}"
            value, unit = float(count * price + extra_price), money
            candidates = [
                (float(count * price), mistakes.INCOMPLETE),
                (float(count * (price + extra_price)), mistakes.DISTRIBUTION),
                (float(count + price + extra_price), mistakes.WRONG_FORMULA),
            ]
            title, sub_topic, hint = "Shopping total", "money", "Multiply the quantity by the unit price, then add the extra item."
        elif context == "discount":
            price = int(rng.integers(2, 41)) * 5
            percent = int(rng.choice((10, 15, 20, 25, 30, 40, 50)))
            statement = f"A jacket costs {price} {money}. It is reduced by {percent}%. What is the sale price?"
            equation = f"F = P*(1 - d/100); P = {price}; d = {percent}"
            value, unit = price * (1 - percent / 100), money
            candidates = [
                (price * percent / 100, mistakes.INCOMPLETE),
                (float(price - percent), mistakes.WRONG_FORMULA),
                (price * (1 + percent / 100), mistakes.SIGN_ERROR),
            ]
            title, sub_topic, hint = "Sale price", "percentages", "Find the discount, then subtract it from the original price."
        elif context == "work_rate":
            first = int(rng.integers(2, 13))
            second = int(rng.integers(2, 13))
            other = str(rng.choice([n for n in _NAMES if n != name]))
            statement = (
                f"{name} can paint a fence in {first} hours and {other} can paint it in {second} hours. "
                f"How long do they take working together?"
            )
            equation = f"1/t = 1/a + 1/b; a = {first}; b = {second}"
            value, unit = first * second / (first + second), "hours"
            candidates = [
                ((first + second) / 2, mistakes.WRONG_FORMULA),
                (float(first + second), mistakes.CONCEPT_CONFUSION),
                (1 / first + 1 / second, mistakes.INCOMPLETE),
            ]
            title, sub_topic, hint = "Working together", "rates", "Add the rates: 1/t = 1/a + 1/b."
        else:
            principal = int(rng.integers(1, 21)) * 500
            rate = int(rng.integers(1, 9))
            periods = int(rng.choice((1, 4, 12)))
            years = int(rng.integers(1, 6))
            statement = (
                f"{name} saves {principal} {money} at {rate}% a year, compounded {periods} times a year. "
                f"How much is in the account after {years} years?"
            )
            equation = f"A = P*(1 + r/(100*n))**(n*t); P = {principal}; r = {rate}; n = {periods}; t = {years}"
            value, unit = principal * (1 + rate / (100 * periods)) ** (periods * years), money
            candidates = [
                (principal * (1 + rate * years / 100), mistakes.CONCEPT_CONFUSION),
                (principal * (1 + rate / 100) ** years, mistakes.WRONG_FORMULA),
                (value - principal, mistakes.INCOMPLETE),
            ]
            title, sub_topic, hint = "Compound interest", "finance", "A = P(1 + r/n)^(nt) with r as a decimal."

        exact = float(value).is_integer()
        answer = NumericAnswer(value=value, tolerance=self.tolerance_for(params, exact), unit_of_measurement=unit)
        return ProblemDraft(
            title=title,
            statement=statement,
            equation=equation,
            answer=answer,
            distractors=self.numeric_distractors(answer, candidates),
            topic="word problems",
            sub_topic=sub_topic,
            tags=("word problem", sub_topic),
            hints=(hint,),
            skills=("modelling", "applying formulas"),
            estimated_time_minutes=4.0,
        )

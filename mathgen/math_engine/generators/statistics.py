"""Statistics Problem Generator.

Measures of centre and spread for a small list of whole numbers. The
equation names the measure and the data: ``median(4, 9, 1, 7, 3)``.
"""

from __future__ import annotations

import statistics
from types import MappingProxyType
from typing import Any, List, Mapping, Sequence, Tuple

import numpy as np

from mathgen.exceptions import UnsupportedConfigError
from mathgen.math_engine import mistakes
from mathgen.math_engine.base import (
    TOLERANCE_PARAMETER,
    ParameterDefinition,
    ProblemDraft,
    ProblemGenerator,
)
from mathgen.models.answers import NumericAnswer
from mathgen.models.enums import DifficultyLevel, ProblemType

MEASURES = ("mean", "median", "mode", "range", "variance", "stdev", "sample_stdev")

_WORDING = {
    "mean": "the mean",
    "median": "the median",
    "mode": "the mode",
    "range": "the range",
    "variance": "the population variance",
    "stdev": "the population standard deviation",
    "sample_stdev": "the sample standard deviation",
}


def _sum_of_squares(data: Sequence[int]) -> float:
    centre = statistics.fmean(data)
    return sum((v - centre) ** 2 for v in data)


class StatisticsGenerator(ProblemGenerator):
    """Mean, median, mode, range, variance and standard deviation."""

    DEFAULT_PARAMETERS: Mapping[DifficultyLevel, Mapping[str, Any]] = MappingProxyType({
        DifficultyLevel.BEGINNER: MappingProxyType({
            "measures": ("mean", "median", "mode", "range"),
            "count": 5,
            "min_value": 1,
            "max_value": 20,
        }),
        DifficultyLevel.INTERMEDIATE: MappingProxyType({
            "measures": ("mean", "median", "mode", "range"),
            "count": 7,
            "min_value": 1,
            "max_value": 50,
        }),
        DifficultyLevel.ADVANCED: MappingProxyType({
            "measures": ("median", "variance", "stdev"),
            "count": 8,
            "min_value": 1,
            "max_value": 50,
        }),
        DifficultyLevel.EXPERT: MappingProxyType({
            "measures": ("variance", "stdev", "sample_stdev"),
            "count": 10,
            "min_value": 1,
            "max_value": 100,
        }),
    })

    @property
    def problem_type(self) -> ProblemType:
        return ProblemType.STATISTICS

    @property
    def description(self) -> str:
        return "Measures of centre and spread"

    def get_parameters(self) -> List[ParameterDefinition]:
        return [
            ParameterDefinition("measures", "Measures to draw from", list, choices=MEASURES, item_kind=str),
            ParameterDefinition("count", "Number of data values", int, minimum=3, maximum=50),
            ParameterDefinition("min_value", "Smallest data value", int, minimum=-1000, maximum=1000),
            ParameterDefinition("max_value", "Largest data value", int, minimum=-1000, maximum=1000),
            TOLERANCE_PARAMETER,
        ]

    def check_parameters(self, params: Mapping[str, Any]) -> None:
        span = params["max_value"] - params["min_value"] + 1
        if span < params["count"]:
            raise UnsupportedConfigError(
                "value range is too narrow for the requested count",
                details={"min_value": params["min_value"], "max_value": params["max_value"], "count": params["count"]},
            )

    def _data(self, params: Mapping[str, Any], rng: np.random.Generator, measure: str) -> List[int]:
        low, high, count = params["min_value"], params["max_value"], params["count"]
        if measure == "mode":
            # Distinct values plus one repeat gives a single mode
            distinct = [int(v) for v in rng.choice(np.arange(low, high + 1), size=count - 1, replace=False)]
            distinct.insert(int(rng.integers(0, count)), distinct[int(rng.integers(0, count - 1))])
            return distinct
        return [int(v) for v in rng.integers(low, high + 1, size=count)]

    def build(
        self,
        params: Mapping[str, Any],
        difficulty: DifficultyLevel,
        rng: np.random.Generator,
    ) -> ProblemDraft:
        measure = str(rng.choice(params["measures"]))
        data = self._data(params, rng, measure)
        value, candidates = self._measure(measure, data)

        # Centre measures of whole numbers are exact when they land on a half
        exact = measure in ("mean", "median", "mode", "range") and float(value * 2).is_integer()
        answer = NumericAnswer(value=value, tolerance=self.tolerance_for(params, exact))
        listed = ", ".join(str(v) for v in data)
        spread = measure in ("range", "variance", "stdev", "sample_stdev")
        return ProblemDraft(
            title=f"Find {_WORDING[measure]}",
            statement=f"Find {_WORDING[measure]} of the data: {listed}.",
            equation=f"{measure}({listed})",
            answer=answer,
            distractors=self.numeric_distractors(answer, candidates),
            topic="statistics",
            sub_topic="spread" if spread else "averages",
            tags=("statistics", measure),
            hints=self._hints(measure),
            skills=("summarising data",),
            estimated_time_minutes=2.0 + 0.25 * len(data) if spread else 2.0,
        )

    def _measure(self, measure: str, data: List[int]) -> Tuple[float, List[Tuple[float, str]]]:
        n = len(data)
        total = sum(data)
        if measure == "mean":
            return total / n, [
                (float(statistics.median(data)), mistakes.CONCEPT_CONFUSION),
                (float(total), mistakes.INCOMPLETE),
                (total / (n - 1), mistakes.OFF_BY_ONE),
            ]
        if measure == "median":
            ordered = sorted(data)
            return float(statistics.median(data)), [
                (statistics.fmean(data), mistakes.CONCEPT_CONFUSION),
                (float(data[n // 2]), mistakes.INCOMPLETE),
                (float(ordered[(n - 1) // 2 + 1] if n % 2 else ordered[n // 2 - 1]), mistakes.OFF_BY_ONE),
            ]
        if measure == "mode":
            mode = statistics.mode(data)
            return float(mode), [
                (statistics.fmean(data), mistakes.CONCEPT_CONFUSION),
                (float(data.count(mode)), mistakes.CONCEPT_CONFUSION),
                (float(statistics.median(data)), mistakes.CONCEPT_CONFUSION),
            ]
        if measure == "range":
            return float(max(data) - min(data)), [
                (float(max(data)), mistakes.INCOMPLETE),
                (float(max(data) + min(data)), mistakes.SIGN_ERROR),
                (float(abs(data[-1] - data[0])), mistakes.INCOMPLETE),
            ]

        squares = _sum_of_squares(data)
        if measure == "variance":
            return statistics.pvariance(data), [
                (statistics.pstdev(data), mistakes.CONCEPT_CONFUSION),
                (statistics.variance(data), mistakes.OFF_BY_ONE),
                (squares, mistakes.INCOMPLETE),
            ]
        if measure == "stdev":
            return statistics.pstdev(data), [
                (statistics.pvariance(data), mistakes.INCOMPLETE),
                (statistics.stdev(data), mistakes.OFF_BY_ONE),
                (statistics.fmean(abs(v - statistics.fmean(data)) for v in data), mistakes.WRONG_FORMULA),
            ]
        return statistics.stdev(data), [
            (statistics.pstdev(data), mistakes.OFF_BY_ONE),
            (statistics.variance(data), mistakes.INCOMPLETE),
            (statistics.fmean(abs(v - statistics.fmean(data)) for v in data), mistakes.WRONG_FORMULA),
        ]

    def _hints(self, measure: str) -> Tuple[str, ...]:
        if measure == "mean":
            return ("Add the values and divide by how many there are.",)
        if measure == "median":
            return ("Sort the values first.", "With an even count, average the two middle values.")
        if measure == "mode":
            return ("Count how often each value appears.",)
        if measure == "range":
            return ("Subtract the smallest value from the largest.",)
        hints = ("Find the mean, then the squared distance of each value from it.",)
        if measure == "sample_stdev":
            return hints + ("For a sample, divide by n − 1 before taking the square root.",)
        if measure == "stdev":
            return hints + ("Average the squared distances, then take the square root.",)
        return hints + ("Average the squared distances.",)

"""Statistics solver.

Works through a summary measure of ``name(v1, v2, ...)`` in the order a
learner would (sum, count, divide; sort, pick the middle; ...). Each step
carries its numeric result, which :meth:`StatisticsSolver.check_step`
recomputes from the data.
"""

from __future__ import annotations

import re
from typing import Callable, Dict, Optional, Tuple

import numpy as np

from mathgen.exceptions import ParseError, SolutionMismatchError
from mathgen.math_engine.solvers.base import Derivation, DomainSolver, StepRecorder, close
from mathgen.models.answers import Answer, NumericAnswer, format_number
from mathgen.models.solution import MathStep

_CALL = re.compile(r"^\s*(mean|median|mode|range|variance|stdev|sample_stdev)\s*\(([^()]*)\)\s*$")

# Operation that must come directly before each step
_AFTER = {
    "sum": "state",
    "count": "sum",
    "divide": "count",
    "sort": "state",
    "select_middle": "sort",
    "subtract": "sort",
    "tally": "state",
    "select_most_frequent": "tally",
    "mean": "state",
    "squared_deviations": "mean",
    "average": "squared_deviations",
    "square_root": "average",
}


def parse_call(equation: str) -> Tuple[str, np.ndarray]:
    """``(measure, data)`` from ``median(4, 9, 1)``.

    Raises:
        ParseError: If the measure is unknown or a value is not a number
    """
    match = _CALL.match(equation)
    if not match:
        raise ParseError("expected a measure such as mean(1, 2, 3)", details={"equation": equation})
    try:
        data = np.array([float(v) for v in match.group(2).split(",")], dtype=np.float64)
    except ValueError as e:
        raise ParseError("data values must be numbers", details={"equation": equation}) from e
    if data.size == 0:
        raise ParseError("no data values given")
    return match.group(1), data


def _listed(values: np.ndarray) -> str:
    return ", ".join(format_number(float(v)) for v in values)


def _unique_mode(data: np.ndarray) -> float:
    values, counts = np.unique(data, return_counts=True)
    top = np.flatnonzero(counts == counts.max())
    if len(top) != 1:
        raise SolutionMismatchError("the data has no single mode", details={"modes": values[top].tolist()})
    return float(values[top[0]])


class StatisticsSolver(DomainSolver):
    """Summary statistics, one arithmetic move per step."""

    OPERATIONS = frozenset({"state"} | set(_AFTER))

    @property
    def name(self) -> str:
        return "statistics"

    def derive(self, equation: str, canonical: Answer) -> Derivation:
        measure, data = parse_call(equation)
        if measure == "sample_stdev" and data.size < 2:
            raise SolutionMismatchError("a sample standard deviation needs at least two values")
        recorder = StepRecorder()
        recorder.add(f"{measure}({_listed(data)})", "state", justification="Write down the data")

        if measure == "mean":
            total = float(np.sum(data))
            recorder.add(f"sum = {format_number(total)}", "sum", justification="Add all the values", evaluation=total)
            recorder.add(f"n = {data.size}", "count", justification="Count the values", evaluation=float(data.size))
            value = total / data.size
            recorder.add(f"mean = {format_number(value, 6)}", "divide", rule="Mean = sum ÷ count", evaluation=value)

        elif measure in ("median", "range"):
            ordered = np.sort(data)
            recorder.add(_listed(ordered), "sort", justification="Sort the values in increasing order")
            if measure == "median":
                value = float(np.median(data))
                recorder.add(
                    f"median = {format_number(value, 6)}",
                    "select_middle",
                    rule="The median is the middle value, or the mean of the two middle values",
                    evaluation=value,
                )
            else:
                value = float(ordered[-1] - ordered[0])
                recorder.add(
                    f"{format_number(float(ordered[-1]))} - {format_number(float(ordered[0]))} = {format_number(value)}",
                    "subtract",
                    rule="Range = largest − smallest",
                    evaluation=value,
                )

        elif measure == "mode":
            values, counts = np.unique(data, return_counts=True)
            tally = ", ".join(f"{format_number(float(v))}: {int(c)}" for v, c in zip(values, counts))
            recorder.add(tally, "tally", justification="Count how often each value appears",
                         evaluation=float(counts.max()))
            value = _unique_mode(data)
            recorder.add(f"mode = {format_number(value)}", "select_most_frequent",
                         rule="The mode is the most frequent value", evaluation=value)

        else:
            ddof = 1 if measure == "sample_stdev" else 0
            centre = float(np.mean(data))
            recorder.add(f"mean = {format_number(centre, 6)}", "mean", justification="Find the mean", evaluation=centre)
            squares = float(np.sum((data - centre) ** 2))
            recorder.add(
                f"sum of squared deviations = {format_number(squares, 6)}",
                "squared_deviations",
                justification="Square each value's distance from the mean and add them up",
                evaluation=squares,
            )
            value = squares / (data.size - ddof)
            recorder.add(
                f"variance = {format_number(value, 6)}",
                "average",
                rule="Divide by n − 1 for a sample" if ddof else "Divide by n for a population",
                evaluation=value,
            )
            if measure != "variance":
                value = float(np.sqrt(value))
                recorder.add(f"standard deviation = {format_number(value, 6)}", "square_root",
                             rule="Standard deviation = √variance", evaluation=value)

        answer = NumericAnswer(
            value=value,
            tolerance=getattr(canonical, "tolerance", None),
            unit_of_measurement=getattr(canonical, "unit_of_measurement", None),
        )
        return Derivation(
            steps=recorder.steps,
            answer=answer,
            method=f"compute the {measure.replace('_', ' ')}",
            context={"measure": measure, "data": data},
        )

    def _expected(self, operation: str, data: np.ndarray, measure: str) -> Optional[float]:
        ddof = 1 if measure == "sample_stdev" else 0
        recompute: Dict[str, Callable[[], float]] = {
            "sum": lambda: float(np.sum(data)),
            "count": lambda: float(data.size),
            "divide": lambda: float(np.mean(data)),
            "select_middle": lambda: float(np.median(data)),
            "subtract": lambda: float(np.max(data) - np.min(data)),
            "tally": lambda: float(np.unique(data, return_counts=True)[1].max()),
            "select_most_frequent": lambda: _unique_mode(data),
            "mean": lambda: float(np.mean(data)),
            "squared_deviations": lambda: float(np.var(data) * data.size),
            "average": lambda: float(np.var(data, ddof=ddof)),
            "square_root": lambda: float(np.std(data, ddof=ddof)),
        }
        compute = recompute.get(operation)
        return compute() if compute is not None else None

    def check_step(self, previous: MathStep, step: MathStep, derivation: Derivation) -> bool:
        if _AFTER.get(step.operation) != previous.operation:
            return False
        data: np.ndarray = derivation.context["data"]
        if step.operation == "sort":
            shown = np.array([float(v) for v in step.expression.original.split(",")])
            return bool(np.all(np.diff(shown) >= 0)) and np.array_equal(shown, np.sort(data))

        expected = self._expected(step.operation, data, derivation.context["measure"])
        evaluation = step.expression.evaluation
        return expected is not None and isinstance(evaluation, float) and close(expected, evaluation)


__all__ = ["StatisticsSolver", "parse_call"]

"""Answer variants.

``Answer`` is a closed family keyed by ``AnswerFormat``. Each variant
constrains its own payload (a number and tolerance, a parseable expression,
a rectangular numeric grid, ...) so the validator never has to guess what a
value means.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple

from mathgen.exceptions import InvalidInputError, ParseError
from mathgen.models.enums import AnswerFormat, TEXT_FORMATS

Point = Tuple[float, float]

SHAPE_KINDS = frozenset({"point", "line", "circle", "triangle", "rectangle", "polygon"})


def format_number(value: float, places: int = 4) -> str:
    """Render a number compactly: integers without a decimal point, others rounded."""
    if math.isfinite(value) and float(value).is_integer():
        return str(int(value))
    text = f"{value:.{places}f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def _to_float(value: Any, what: str) -> float:
    if isinstance(value, bool):
        raise ParseError(f"{what} must be a number, got a boolean")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError as e:
            raise ParseError(f"{what} is not a number: {value!r}") from e
    else:
        try:
            number = float(value)
        except (TypeError, ValueError) as e:
            raise ParseError(f"{what} is not a number: {value!r}") from e
    if not math.isfinite(number):
        raise ParseError(f"{what} must be finite, got {value!r}")
    return number


def _check_tolerance(tolerance: Optional[float]) -> Optional[float]:
    if tolerance is None:
        return None
    tol = _to_float(tolerance, "tolerance")
    if tol < 0:
        raise InvalidInputError("tolerance must be non-negative", details={"tolerance": tol})
    return tol


class Answer(ABC):
    """Base of the answer variants."""

    explanation: Optional[str]

    @property
    @abstractmethod
    def format(self) -> AnswerFormat:
        """The AnswerFormat tag of this variant."""

    @abstractmethod
    def display(self) -> str:
        """Human-readable rendering of the payload."""

    @abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""


@dataclass(frozen=True)
class TextAnswer(Answer):
    """TEXT, SHORT_ANSWER or LONG_ANSWER payload."""

    value: str
    kind: AnswerFormat = AnswerFormat.TEXT
    case_sensitive: bool = False
    accepted: Tuple[str, ...] = ()
    # LONG_ANSWER grading looks for these terms
    keywords: Tuple[str, ...] = ()
    explanation: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.value, str):
            raise ParseError("text answer value must be a string", details={"value": repr(self.value)})
        if self.kind not in TEXT_FORMATS:
            raise InvalidInputError(f"TextAnswer cannot carry format '{self.kind.value}'")
        object.__setattr__(self, "accepted", tuple(self.accepted))
        object.__setattr__(self, "keywords", tuple(self.keywords))

    @property
    def format(self) -> AnswerFormat:
        return self.kind

    def display(self) -> str:
        return self.value

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "format": self.kind.value,
            "value": self.value,
            "case_sensitive": self.case_sensitive,
        }
        if self.accepted:
            data["accepted"] = list(self.accepted)
        if self.keywords:
            data["keywords"] = list(self.keywords)
        if self.explanation:
            data["explanation"] = self.explanation
        return data


@dataclass(frozen=True)
class NumericAnswer(Answer):
    """A real number, with the tolerance it is graded against."""

    value: float
    tolerance: Optional[float] = None
    unit_of_measurement: Optional[str] = None
    explanation: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", _to_float(self.value, "numeric answer"))
        object.__setattr__(self, "tolerance", _check_tolerance(self.tolerance))

    @property
    def format(self) -> AnswerFormat:
        return AnswerFormat.NUMERIC

    def display(self) -> str:
        text = format_number(self.value)
        if self.unit_of_measurement:
            text += f" {self.unit_of_measurement}"
        return text

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"format": "numeric", "value": self.value}
        if self.tolerance is not None:
            data["tolerance"] = self.tolerance
        if self.unit_of_measurement:
            data["unit_of_measurement"] = self.unit_of_measurement
        if self.explanation:
            data["explanation"] = self.explanation
        return data


@dataclass(frozen=True)
class EquationAnswer(Answer):
    """A symbolic expression (``6*x + 2``) or equation (``x = 5``)."""

    expression: str
    explanation: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.expression, str) or not self.expression.strip():
            raise ParseError("equation answer must be a non-empty string")

    @property
    def format(self) -> AnswerFormat:
        return AnswerFormat.EQUATION

    @property
    def is_equation(self) -> bool:
        return "=" in self.expression

    def display(self) -> str:
        return self.expression

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"format": "equation", "value": self.expression}
        if self.explanation:
            data["explanation"] = self.explanation
        return data


@dataclass(frozen=True)
class MultipleChoiceAnswer(Answer):
    """A labelled option. ``content`` holds the option's underlying value;
    ``mistake`` names the error a distractor was built from."""

    choice: str
    content: Optional[Answer] = None
    mistake: Optional[str] = None
    explanation: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.choice, str) or not self.choice.strip():
            raise ParseError("multiple choice answer needs a choice label")
        if isinstance(self.content, MultipleChoiceAnswer):
            raise InvalidInputError("multiple choice content cannot itself be multiple choice")

    @property
    def format(self) -> AnswerFormat:
        return AnswerFormat.MULTIPLE_CHOICE

    @property
    def label(self) -> str:
        return self.choice.strip().upper()

    def display(self) -> str:
        if self.content is None:
            return self.label
        return f"{self.label}) {self.content.display()}"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"format": "multiple_choice", "value": self.choice}
        if self.content is not None:
            data["content"] = self.content.to_dict()
        if self.mistake:
            data["mistake"] = self.mistake
        if self.explanation:
            data["explanation"] = self.explanation
        return data


@dataclass(frozen=True)
class MatrixAnswer(Answer):
    """A rectangular grid of numbers."""

    rows: Tuple[Tuple[float, ...], ...]
    tolerance: Optional[float] = None
    explanation: Optional[str] = None

    def __post_init__(self) -> None:
        if isinstance(self.rows, (str, bytes)) or not isinstance(self.rows, Sequence) or not self.rows:
            raise ParseError("matrix answer must be a non-empty list of rows")
        grid = []
        for row in self.rows:
            if isinstance(row, (str, bytes)) or not isinstance(row, Sequence) or not row:
                raise ParseError("every matrix row must be a non-empty list of numbers")
            grid.append(tuple(_to_float(v, "matrix entry") for v in row))
        if len({len(r) for r in grid}) != 1:
            raise ParseError("matrix rows must all have the same length")
        object.__setattr__(self, "rows", tuple(grid))
        object.__setattr__(self, "tolerance", _check_tolerance(self.tolerance))

    @property
    def format(self) -> AnswerFormat:
        return AnswerFormat.MATRIX

    @property
    def shape(self) -> Tuple[int, int]:
        return len(self.rows), len(self.rows[0])

    def display(self) -> str:
        inner = ", ".join(
            "[" + ", ".join(format_number(v) for v in row) + "]" for row in self.rows
        )
        return f"[{inner}]"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"format": "matrix", "value": [list(r) for r in self.rows]}
        if self.tolerance is not None:
            data["tolerance"] = self.tolerance
        if self.explanation:
            data["explanation"] = self.explanation
        return data


@dataclass(frozen=True)
class GeometricShape:
    """A planar shape given by vertices (or centre + radius for circles)."""

    kind: str
    coordinates: Tuple[Point, ...] = ()
    radius: Optional[float] = None
    area: Optional[float] = None
    perimeter: Optional[float] = None

    def __post_init__(self) -> None:
        if self.kind not in SHAPE_KINDS:
            raise ParseError(f"unknown shape type '{self.kind}'", details={"allowed": sorted(SHAPE_KINDS)})
        if isinstance(self.coordinates, (str, bytes)) or not isinstance(self.coordinates, Sequence):
            raise ParseError("shape coordinates must be a list of (x, y) pairs")
        points = []
        for point in self.coordinates:
            if isinstance(point, (str, bytes)) or not isinstance(point, Sequence) or len(point) != 2:
                raise ParseError("shape coordinates must be (x, y) pairs")
            points.append((_to_float(point[0], "x"), _to_float(point[1], "y")))
        object.__setattr__(self, "coordinates", tuple(points))
        for name in ("radius", "area", "perimeter"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, _to_float(value, name))

    def computed_area(self) -> Optional[float]:
        if self.area is not None:
            return self.area
        if self.kind == "circle" and self.radius is not None:
            return math.pi * self.radius ** 2
        if self.kind in ("triangle", "rectangle", "polygon") and len(self.coordinates) >= 3:
            pts = self.coordinates
            twice = sum(
                pts[i][0] * pts[(i + 1) % len(pts)][1] - pts[(i + 1) % len(pts)][0] * pts[i][1]
                for i in range(len(pts))
            )
            return abs(twice) / 2
        return None

    def computed_perimeter(self) -> Optional[float]:
        if self.perimeter is not None:
            return self.perimeter
        if self.kind == "circle" and self.radius is not None:
            return 2 * math.pi * self.radius
        if self.kind in ("triangle", "rectangle", "polygon") and len(self.coordinates) >= 3:
            pts = self.coordinates
            return sum(math.dist(pts[i], pts[(i + 1) % len(pts)]) for i in range(len(pts)))
        return None

    def display(self) -> str:
        if self.kind == "circle":
            centre = self.coordinates[0] if self.coordinates else (0.0, 0.0)
            return f"circle centre ({format_number(centre[0])}, {format_number(centre[1])}) radius {format_number(self.radius or 0.0)}"
        points = ", ".join(f"({format_number(x)}, {format_number(y)})" for x, y in self.coordinates)
        return f"{self.kind} {points}"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "type": self.kind,
            "coordinates": [list(p) for p in self.coordinates],
        }
        for name in ("radius", "area", "perimeter"):
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data


@dataclass(frozen=True)
class GraphAnswer(Answer):
    """A geometric object; equality rules depend on the shape type."""

    shape: GeometricShape
    tolerance: Optional[float] = None
    explanation: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.shape, GeometricShape):
            raise ParseError("graph answer needs a GeometricShape payload")
        object.__setattr__(self, "tolerance", _check_tolerance(self.tolerance))

    @property
    def format(self) -> AnswerFormat:
        return AnswerFormat.GRAPH

    def display(self) -> str:
        return self.shape.display()

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"format": "graph", "value": self.shape.to_dict()}
        if self.tolerance is not None:
            data["tolerance"] = self.tolerance
        if self.explanation:
            data["explanation"] = self.explanation
        return data


def shape_from_dict(data: Any) -> GeometricShape:
    if not isinstance(data, dict):
        raise ParseError("graph value must be an object with 'type' and 'coordinates'")
    coordinates = data.get("coordinates", ()) or ()
    if isinstance(coordinates, (str, bytes)) or not isinstance(coordinates, Sequence):
        raise ParseError("shape coordinates must be a list of (x, y) pairs")
    if any(isinstance(p, (str, bytes)) or not isinstance(p, Sequence) for p in coordinates):
        raise ParseError("shape coordinates must be (x, y) pairs")
    return GeometricShape(
        kind=str(data.get("type", "")),
        coordinates=tuple(tuple(p) for p in coordinates),
        radius=data.get("radius"),
        area=data.get("area"),
        perimeter=data.get("perimeter"),
    )


def answer_from_dict(data: Dict[str, Any]) -> Answer:
    """Build the Answer variant named by ``data['format']``.

    Raises:
        ParseError: If the format is unknown or the payload does not fit it
    """
    if not isinstance(data, dict):
        raise ParseError("answer must be an object with 'format' and 'value'")
    try:
        fmt = AnswerFormat(str(data.get("format", "")).lower())
    except ValueError as e:
        raise ParseError(
            f"unknown answer format: {data.get('format')!r}",
            details={"allowed": [f.value for f in AnswerFormat]},
        ) from e

    value = data.get("value")
    explanation = data.get("explanation")

    if fmt in TEXT_FORMATS:
        return TextAnswer(
            value=value if isinstance(value, str) else ("" if value is None else str(value)),
            kind=fmt,
            case_sensitive=bool(data.get("case_sensitive", False)),
            accepted=tuple(data.get("accepted", ()) or ()),
            keywords=tuple(data.get("keywords", ()) or ()),
            explanation=explanation,
        )
    if fmt is AnswerFormat.NUMERIC:
        return NumericAnswer(
            value=value,
            tolerance=data.get("tolerance"),
            unit_of_measurement=data.get("unit_of_measurement"),
            explanation=explanation,
        )
    if fmt is AnswerFormat.EQUATION:
        if not isinstance(value, str):
            value = "" if value is None else str(value)
        return EquationAnswer(expression=value, explanation=explanation)
    if fmt is AnswerFormat.MULTIPLE_CHOICE:
        content = data.get("content")
        return MultipleChoiceAnswer(
            choice="" if value is None else str(value),
            content=answer_from_dict(content) if content is not None else None,
            mistake=data.get("mistake"),
            explanation=explanation,
        )
    if fmt is AnswerFormat.MATRIX:
        return MatrixAnswer(
            rows=value if value is not None else (),
            tolerance=data.get("tolerance"),
            explanation=explanation,
        )
    return GraphAnswer(
        shape=shape_from_dict(value),
        tolerance=data.get("tolerance"),
        explanation=explanation,
    )


def base_answer(answer: Answer) -> Answer:
    """Unwrap a multiple-choice answer to the value it stands for."""
    if isinstance(answer, MultipleChoiceAnswer) and answer.content is not None:
        return answer.content
    return answer


__all__ = [
    "Answer",
    "TextAnswer",
    "NumericAnswer",
    "EquationAnswer",
    "MultipleChoiceAnswer",
    "MatrixAnswer",
    "GraphAnswer",
    "GeometricShape",
    "Point",
    "answer_from_dict",
    "shape_from_dict",
    "base_answer",
    "format_number",
]

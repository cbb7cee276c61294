"""Answer Validator.

Compares a submitted answer with the canonical one and explains the
outcome. Validation is synchronous and side-effect free; malformed
submissions come back as ungradable results instead of raising.

Rules by canonical format:

- NUMERIC: correct within tolerance; partial credit decays linearly with the
  deviation beyond tolerance and reaches 0 at
  ``partial_credit_span * max(|correct|, 1)``
- TEXT / SHORT_ANSWER: trimmed, whitespace-collapsed, case-insensitive unless
  the answer is case sensitive; near misses are reported as similar
- LONG_ANSWER: keyword coverage ratio
- EQUATION: symbolic equivalence
- MULTIPLE_CHOICE: the label must match, no partial credit
- MATRIX / GRAPH: elementwise or per-shape near-equality
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence, Tuple, Union

from mathgen.config import Settings, get_settings
from mathgen.exceptions import ParseError
from mathgen.logger import session_logger as logger
from mathgen.logger.decorators import log_execution_time
from mathgen.math_engine import expressions, mistakes, values
from mathgen.models.answers import (
    Answer,
    EquationAnswer,
    GraphAnswer,
    MatrixAnswer,
    MultipleChoiceAnswer,
    NumericAnswer,
    TextAnswer,
    answer_from_dict,
    base_answer,
    format_number,
)
from mathgen.models.enums import AnswerFormat
from mathgen.models.grading import AnswerValidationResult
from mathgen.models.problem import MistakePattern, Problem

Submission = Union[Answer, dict]


class AnswerValidator:
    """Grades one submission against one canonical answer."""

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    @log_execution_time
    def validate(
        self,
        correct: Answer,
        submitted: Submission,
        problem: Optional[Problem] = None,
    ) -> AnswerValidationResult:
        """Grade ``submitted`` against ``correct``.

        Args:
            correct: The canonical answer
            submitted: An Answer, or its dict form
            problem: When given, its known mistake patterns and labelled
                choices are used for feedback

        Returns:
            AnswerValidationResult; ``is_gradable`` is False if the
            submission could not be parsed

        Raises:
            ValidationAmbiguousError: If ``correct`` needs a tolerance and has none
        """
        if _needs_tolerance(correct):
            values.required_tolerance(base_answer(correct))
        try:
            answer = answer_from_dict(submitted) if isinstance(submitted, dict) else submitted
            if not isinstance(answer, Answer):
                raise ParseError("submission is not an answer", details={"type": type(submitted).__name__})
            if answer == correct:
                return self._correct(correct, 1.0)
            return self._grade(correct, answer, problem)
        except ParseError as e:
            logger.info("Ungradable submission", error=e.message)
            return AnswerValidationResult(
                is_correct=False,
                score=0.0,
                feedback=f"Your answer could not be read: {e.message}",
                correct_answer=correct,
                explanation=self._explanation(correct),
                suggestions=("Check the notation and resubmit.",),
                is_gradable=False,
            )

    # -- dispatch --------------------------------------------------------

    def _grade(self, correct: Answer, submitted: Answer, problem: Optional[Problem]) -> AnswerValidationResult:
        if isinstance(correct, MultipleChoiceAnswer):
            return self._grade_choice(correct, submitted, problem)

        submitted = _as_format(correct, submitted)
        if submitted is None:
            return self._incorrect(
                correct,
                None,
                problem,
                feedback="Your answer is not in the expected form.",
            )

        if isinstance(correct, NumericAnswer):
            return self._grade_numeric(correct, submitted, problem)
        if isinstance(correct, TextAnswer):
            return self._grade_text(correct, submitted, problem)
        if isinstance(correct, EquationAnswer):
            return self._grade_equation(correct, submitted, problem)
        if isinstance(correct, MatrixAnswer):
            if values.matrices_close(correct.rows, submitted.rows, values.required_tolerance(correct)):
                return self._correct(correct, 1.0)
            return self._incorrect(correct, submitted, problem)
        if isinstance(correct, GraphAnswer):
            if values.shapes_close(correct.shape, submitted.shape, values.required_tolerance(correct)):
                return self._correct(correct, 1.0)
            return self._incorrect(correct, submitted, problem)
        return self._incorrect(correct, submitted, problem)

    def _grade_numeric(
        self,
        correct: NumericAnswer,
        submitted: NumericAnswer,
        problem: Optional[Problem],
    ) -> AnswerValidationResult:
        tolerance = values.required_tolerance(correct)
        deviation = abs(correct.value - submitted.value)
        if deviation <= tolerance:
            return self._correct(correct, 1.0)

        span = self.settings.partial_credit_span * max(abs(correct.value), 1.0)
        score = max(0.0, 1.0 - (deviation - tolerance) / span)
        feedback = "Close, but not within the accepted tolerance." if score > 0 else "Incorrect."
        return self._incorrect(correct, submitted, problem, score=score, feedback=feedback)

    def _grade_text(
        self,
        correct: TextAnswer,
        submitted: TextAnswer,
        problem: Optional[Problem],
    ) -> AnswerValidationResult:
        if values.text_matches(correct, submitted.value):
            return self._correct(correct, 1.0)

        if correct.kind is AnswerFormat.LONG_ANSWER and correct.keywords:
            coverage = _keyword_coverage(correct, submitted.value)
            if coverage >= self.settings.long_answer_threshold:
                return self._correct(correct, coverage)
            return self._incorrect(
                correct,
                submitted,
                problem,
                score=coverage,
                feedback=f"Your answer covers {coverage:.0%} of the key points.",
            )

        wanted = values.normalize_text(submitted.value, correct.case_sensitive)
        distance = min(
            values.levenshtein(values.normalize_text(option, correct.case_sensitive), wanted)
            for option in (correct.value,) + correct.accepted
        )
        if distance <= self.settings.fuzzy_max_distance:
            return self._incorrect(
                correct,
                submitted,
                problem,
                feedback="Almost: check the spelling.",
                similar=(correct,),
            )
        return self._incorrect(correct, submitted, problem)

    def _grade_equation(
        self,
        correct: EquationAnswer,
        submitted: EquationAnswer,
        problem: Optional[Problem],
    ) -> AnswerValidationResult:
        want = expressions.parse(correct.expression, lenient=True)
        got = expressions.parse(submitted.expression, lenient=True)
        if expressions.parsed_equivalent(want, got):
            return self._correct(correct, 1.0)
        return self._incorrect(correct, submitted, problem)

    def _grade_choice(
        self,
        correct: MultipleChoiceAnswer,
        submitted: Answer,
        problem: Optional[Problem],
    ) -> AnswerValidationResult:
        if isinstance(submitted, TextAnswer):
            submitted = MultipleChoiceAnswer(choice=submitted.value)
        if not isinstance(submitted, MultipleChoiceAnswer):
            return self._incorrect(correct, None, problem, feedback="Select one of the labelled options.")
        if submitted.label == correct.label:
            return self._correct(correct, 1.0)

        chosen = _labelled(problem, submitted.label) if problem is not None else None
        return self._incorrect(correct, chosen or submitted, problem)

    # -- results ---------------------------------------------------------

    def _explanation(self, correct: Answer) -> str:
        if correct.explanation:
            return correct.explanation
        return f"The correct answer is {correct.display()}."

    def _correct(self, correct: Answer, score: float) -> AnswerValidationResult:
        return AnswerValidationResult(
            is_correct=True,
            score=score,
            feedback="Correct!",
            correct_answer=correct,
            explanation=self._explanation(correct),
        )

    def _incorrect(
        self,
        correct: Answer,
        submitted: Optional[Answer],
        problem: Optional[Problem],
        score: float = 0.0,
        feedback: str = "Incorrect.",
        similar: Tuple[Answer, ...] = (),
    ) -> AnswerValidationResult:
        mistake = self._identify_mistake(correct, submitted, problem) if submitted is not None else None
        return AnswerValidationResult(
            is_correct=False,
            score=score,
            feedback=feedback,
            correct_answer=correct,
            explanation=self._explanation(correct),
            similar_answers=similar,
            suggestions=_suggestions(mistake, problem.common_mistakes if problem is not None else ()),
            mistake=mistake,
        )

    def _identify_mistake(
        self,
        correct: Answer,
        submitted: Answer,
        problem: Optional[Problem],
    ) -> Optional[str]:
        if isinstance(submitted, MultipleChoiceAnswer) and submitted.mistake:
            return submitted.mistake
        inner = base_answer(submitted)
        if problem is not None:
            for pattern in problem.common_mistakes:
                try:
                    if values.answers_equivalent(pattern.answer, inner):
                        return pattern.category
                except ParseError:
                    continue
        return mistakes.classify(base_answer(correct), inner, self.settings.fuzzy_max_distance)


def _needs_tolerance(answer: Answer) -> bool:
    return isinstance(base_answer(answer), (NumericAnswer, MatrixAnswer, GraphAnswer))


def _as_format(correct: Answer, submitted: Answer) -> Optional[Any]:
    """``submitted`` converted to ``correct``'s format, or None if it cannot be.

    Raises:
        ParseError: If the submission must be parsed and cannot be
    """
    if isinstance(submitted, MultipleChoiceAnswer) and submitted.content is not None:
        submitted = submitted.content
    if submitted.format == correct.format:
        return submitted

    if isinstance(correct, NumericAnswer):
        if isinstance(submitted, EquationAnswer):
            value = expressions.numeric_value(expressions.parse(submitted.expression, lenient=True))
            return None if value is None else NumericAnswer(value=value)
        if isinstance(submitted, TextAnswer):
            # Words are a format mismatch, not unreadable input
            try:
                value = expressions.numeric_value(expressions.parse(submitted.value, lenient=True))
            except ParseError:
                return None
            return None if value is None else NumericAnswer(value=value)

    if isinstance(correct, EquationAnswer) and isinstance(submitted, NumericAnswer):
        return EquationAnswer(expression=repr(submitted.value))

    if isinstance(correct, TextAnswer):
        if isinstance(submitted, NumericAnswer):
            return TextAnswer(value=format_number(submitted.value), kind=correct.kind)
        if isinstance(submitted, TextAnswer):
            return TextAnswer(value=submitted.value, kind=correct.kind)
    return None


def _keyword_coverage(correct: TextAnswer, text: str) -> float:
    haystack = values.normalize_text(text, correct.case_sensitive)
    found = sum(
        1 for keyword in correct.keywords
        if values.normalize_text(keyword, correct.case_sensitive) in haystack
    )
    return found / len(correct.keywords)


def _labelled(problem: Problem, label: str) -> Optional[MultipleChoiceAnswer]:
    for option in problem.choices:
        if isinstance(option, MultipleChoiceAnswer) and option.label == label:
            return option
    return None


def _suggestions(mistake: Optional[str], known: Sequence[MistakePattern]) -> Tuple[str, ...]:
    """Advice for the recognised mistake, else for the problem's known pitfalls."""
    if mistake is not None:
        return (mistakes.advice_for(mistake),)
    advice: List[str] = []
    for pattern in known:
        if pattern.advice not in advice:
            advice.append(pattern.advice)
        if len(advice) == 3:
            break
    return tuple(advice) or (mistakes.advice_for(None),)


_default_validator: Optional[AnswerValidator] = None


def validate(correct: Answer, submitted: Submission, problem: Optional[Problem] = None) -> AnswerValidationResult:
    """Module-level shortcut using a shared validator."""
    global _default_validator
    if _default_validator is None:
        _default_validator = AnswerValidator()
    return _default_validator.validate(correct, submitted, problem)


__all__ = [
    "AnswerValidator",
    "validate",
]

"""Answer checking for multiple-choice and written-response questions."""
import math
import re
from typing import Iterable, Union

from rapidfuzz.distance import Levenshtein

from adaptive_quiz.errors import ValidationError
from adaptive_quiz.models import (
    AcceptableAnswer, AnswerOption, MultipleChoiceQuestion, Question, WrittenResponseQuestion,
)

# Fuzzy matching is only attempted for answers of this many words or fewer.
FUZZY_MAX_TOKENS = 3
# Upper bound on the similarity threshold for long answers.
FUZZY_THRESHOLD_CAP = 0.8

_PUNCTUATION = re.compile(r"[.,;:!?()'\"-]")
_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Strip punctuation, collapse whitespace, trim and lowercase."""
    text = _PUNCTUATION.sub("", text)
    return _WHITESPACE.sub(" ", text).strip().lower()


def levenshtein(a: str, b: str) -> int:
    return Levenshtein.distance(a, b)


def _answer_text(answer: Union[AcceptableAnswer, str]) -> str:
    if isinstance(answer, AcceptableAnswer):
        return answer.text
    return answer


def max_allowed_distance(length: int) -> int:
    """Edit distance tolerated for a pair whose longer side has ``length`` chars."""
    threshold = min(FUZZY_THRESHOLD_CAP, 1 - (2 / length))
    return math.floor(length * (1 - threshold))


def check_written_answer(user_answer: str, acceptable_answers: Iterable[Union[AcceptableAnswer, str]]) -> bool:
    """Check a written answer against the acceptable answers.

    Exact match after normalization always wins. Otherwise answers of up to
    three words may match by Levenshtein distance, with a tolerance that
    grows with answer length; longer answers must match exactly.
    """
    normalized = normalize_text(user_answer)
    candidates = [normalize_text(_answer_text(a)) for a in acceptable_answers]

    if normalized in candidates:
        return True

    if len(normalized.split(" ")) > FUZZY_MAX_TOKENS:
        return False

    for candidate in candidates:
        length = max(len(normalized), len(candidate))
        if length == 0:
            continue
        if levenshtein(normalized, candidate) <= max_allowed_distance(length):
            return True
    return False


def check_multiple_choice(options: Iterable[AnswerOption], answer_id: int) -> bool:
    return any(option.id == answer_id and option.is_correct for option in options)


def _coerce_option_id(submission) -> int:
    if submission is None or isinstance(submission, bool) or submission == "":
        raise ValidationError("Please select an answer")
    try:
        return int(submission)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid answer option: {submission!r}") from None


def evaluate(question: Question, submission) -> bool:
    """Return whether ``submission`` answers ``question`` correctly.

    ``submission`` is an option id for multiple-choice questions and free
    text for written-response ones. Empty submissions raise
    ``ValidationError``; they are never scored as wrong.
    """
    if isinstance(question, MultipleChoiceQuestion):
        return check_multiple_choice(question.options, _coerce_option_id(submission))
    if isinstance(question, WrittenResponseQuestion):
        if not isinstance(submission, str) or not submission.strip():
            raise ValidationError("Please enter an answer")
        return check_written_answer(submission, question.acceptable_answers)
    raise TypeError(f"Unsupported question type: {type(question).__name__}")

"""
Deterministic Verdict Resolver
Decides locally whether an answer passes, fails, or must go to the remote judge.
"""
from typing import Any, Optional

from grader.schemas import Provenance, Question, QuestionType, Resolution, Verdict
from grader.services.normalizer import normalize

OBJECTIVE_TYPES = frozenset({QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE})


def is_objective(question_type: QuestionType) -> bool:
    """Objective questions are always resolved locally."""
    return question_type in OBJECTIVE_TYPES


def selected_option_text(question: Question, raw: Any) -> Optional[str]:
    """
    Maps a letter answer ("A", "b", ...) to the normalized text of that option.

    The letter is the first character of the upper-cased raw answer, so a
    leading space selects nothing.

    Returns:
        Normalized option text, or None if the answer does not select an option.
    """
    text = raw if isinstance(raw, str) else normalize(raw)
    if not text or not question.options:
        return None

    index = ord(text.upper()[0]) - ord("A")
    if 0 <= index < len(question.options):
        return normalize(question.options[index])
    return None


def canonical_option_text(question: Question) -> Optional[str]:
    """Normalized text of the option named by a single-letter canonical answer."""
    canonical = normalize(question.answer)
    if len(canonical) != 1 or not question.options:
        return None
    index = ord(canonical) - ord("A")
    if 0 <= index < len(question.options):
        return normalize(question.options[index])
    return None


def resolve(question: Question, raw: Any, *, choice_prefix: bool = False) -> Resolution:
    """
    Resolves an answer without any remote call.

    Args:
        question: The question being answered.
        raw: The user's raw answer.
        choice_prefix: Also accept a multiple choice answer when the canonical
            answer starts with it (exam flow strictness).

    Returns:
        LOCAL_PASS, LOCAL_FAIL or NEEDS_EXTERNAL_JUDGE. Objective questions and
        unanswered questions never need the judge.
    """
    user = normalize(raw)
    if not user:
        return Resolution.LOCAL_FAIL

    canonical = normalize(question.answer)

    if question.type == QuestionType.MULTIPLE_CHOICE:
        if not question.options:
            return Resolution.LOCAL_FAIL
        if user == canonical or selected_option_text(question, raw) == canonical:
            return Resolution.LOCAL_PASS
        # Option text typed out in full against a letter key.
        if canonical_option_text(question) == user:
            return Resolution.LOCAL_PASS
        if choice_prefix and canonical.startswith(user):
            return Resolution.LOCAL_PASS
        return Resolution.LOCAL_FAIL

    if user == canonical:
        return Resolution.LOCAL_PASS

    if question.type == QuestionType.TRUE_FALSE:
        return Resolution.LOCAL_FAIL

    return Resolution.NEEDS_EXTERNAL_JUDGE


def local_verdict(resolution: Resolution) -> Verdict:
    """Converts a local resolution into a verdict."""
    if resolution == Resolution.NEEDS_EXTERNAL_JUDGE:
        raise ValueError("resolution requires the remote judge")
    return Verdict(
        is_correct=resolution == Resolution.LOCAL_PASS,
        provenance=Provenance.LOCAL,
    )

"""
Practice Session
Single-question self-study flow over one subject, graded one answer at a time
with judge feedback shown to the learner.
"""
import random
from typing import Callable, List, Optional, Sequence

from grader.schemas import AnswerRecord, GradedAnswer, Question
from grader.services.judge_client import Judge
from grader.services.orchestrator import grade_single


def subjects_of(questions: Sequence[Question]) -> List[str]:
    """Distinct subjects in first-seen order."""
    seen: List[str] = []
    for question in questions:
        subject = str(question.subject or "")
        if subject not in seen:
            seen.append(subject)
    return seen


def shuffled(questions: Sequence[Question], seed: Optional[int] = None) -> List[Question]:
    """Returns a shuffled copy; the same seed always gives the same order."""
    ordered = list(questions)
    random.Random(seed).shuffle(ordered)
    return ordered


class PracticeSession:
    def __init__(
        self,
        questions: Sequence[Question],
        subject: str,
        judge: Judge,
        on_record: Optional[Callable[[AnswerRecord], None]] = None,
        *,
        seed: Optional[int] = None,
        choice_prefix: bool = False,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.subject = subject
        self.questions = shuffled(
            [question for question in questions if str(question.subject or "") == subject],
            seed,
        )
        self.judge = judge
        self.on_record = on_record
        self.choice_prefix = choice_prefix
        self._clock = clock
        self.index = 0
        self.correct = 0
        self.total = 0
        self.last_result: Optional[GradedAnswer] = None
        self.grading = False

    @property
    def current(self) -> Optional[Question]:
        if self.index < len(self.questions):
            return self.questions[self.index]
        return None

    @property
    def finished(self) -> bool:
        return self.current is None

    async def submit(self, raw: str) -> Optional[GradedAnswer]:
        """
        Grades the answer to the current question.

        Returns:
            The graded answer, or None when there is nothing to grade, the
            current result is still being shown, or grading is in flight.
        """
        question = self.current
        if question is None or self.last_result is not None or self.grading:
            return None

        self.grading = True
        try:
            result = await grade_single(
                question, raw, self.judge, choice_prefix=self.choice_prefix, clock=self._clock
            )
        finally:
            self.grading = False

        self.last_result = result
        self.total += 1
        if result.verdict.is_correct:
            self.correct += 1
        if self.on_record is not None:
            self.on_record(result.record)
        return result

    def next(self) -> Optional[Question]:
        """Moves past the shown result. Returns the new current question, None at the end."""
        self.last_result = None
        if self.index < len(self.questions):
            self.index += 1
        return self.current

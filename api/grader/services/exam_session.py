"""
Exam Session
Owns one timed attempt of one exam: answer collection, the countdown,
forced or manual submission, grading and the final report.

States: NOT_STARTED -> IN_PROGRESS -> GRADING -> REVIEWED. reset() returns to
NOT_STARTED from anywhere. Nothing is checkpointed; a lost in-progress session
loses its answers.
"""
import asyncio
import time
import uuid
from typing import Awaitable, Callable, Dict, Optional

from grader.schemas import (
    AnswerRecord,
    Exam,
    ExamReport,
    ExamState,
    SubmissionOutcome,
    SubmissionStatus,
)
from grader.services.judge_client import Judge
from grader.services.orchestrator import compute_score, grade_batch

RecordSink = Callable[[AnswerRecord], None]


class ExamSession:
    """
    One timed attempt of one exam.

    Graded records go to on_record in exam order once the attempt is reviewed.
    monotonic drives the countdown and the review age; clock stamps the records.
    """

    def __init__(
        self,
        exam: Exam,
        judge: Judge,
        on_record: Optional[RecordSink] = None,
        *,
        choice_prefix: bool = True,
        monotonic: Callable[[], float] = time.monotonic,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.exam = exam
        self.judge = judge
        self.on_record = on_record
        self.choice_prefix = choice_prefix
        self._monotonic = monotonic
        self._clock = clock
        self._question_ids = {question.id for question in exam.questions}
        self._clear()

    def _clear(self) -> None:
        self.state = ExamState.NOT_STARTED
        self.time_left = 0
        self.report: Optional[ExamReport] = None
        self._answers: Dict[str, str] = {}
        self._attempt = uuid.uuid4().hex
        self._last_tick_at = 0.0
        self._reviewed_at: Optional[float] = None

    # --- Lifecycle ---

    def start(self) -> bool:
        """Launches the attempt and starts the countdown. Only valid from NOT_STARTED."""
        if self.state != ExamState.NOT_STARTED:
            return False
        self.state = ExamState.IN_PROGRESS
        self.time_left = self.exam.duration * 60
        self._answers = {}
        self._last_tick_at = self._monotonic()
        print(f"[Exam] Started '{self.exam.title}' ({len(self.exam.questions)} questions, {self.time_left}s)")
        return True

    def reset(self) -> None:
        """Discards the attempt. An in-flight grading for it will be dropped."""
        print(f"[Exam] Reset '{self.exam.title}' from {self.state.value}")
        self._clear()

    def reviewed_for(self) -> Optional[float]:
        """Seconds since the attempt was reviewed, or None while it is not."""
        if self.state != ExamState.REVIEWED or self._reviewed_at is None:
            return None
        return self._monotonic() - self._reviewed_at

    # --- Answers ---

    @property
    def expired(self) -> bool:
        return self.state == ExamState.IN_PROGRESS and self.time_left <= 0

    @property
    def answers(self) -> Dict[str, str]:
        return dict(self._answers)

    def set_answer(self, question_id: str, raw: str) -> bool:
        """
        Records or overwrites the answer for one question.

        Returns:
            False if the session is not accepting answers or the ID is unknown.
        """
        if self.state != ExamState.IN_PROGRESS or self.expired:
            return False
        if question_id not in self._question_ids:
            return False
        self._answers[question_id] = raw
        return True

    def unanswered_count(self) -> int:
        return sum(
            1 for question in self.exam.questions
            if not self._answers.get(question.id, "").strip()
        )

    # --- Clock ---

    def tick(self) -> bool:
        """
        Advances the countdown by one second. Never suspends.

        Returns:
            True while the session is in progress with no time left, i.e. a
            forced submission is due. Once submitted the state guard absorbs
            further ticks.
        """
        if self.state != ExamState.IN_PROGRESS:
            return False
        if self.time_left > 0:
            self.time_left -= 1
        return self.time_left == 0

    def catch_up(self) -> bool:
        """Applies every whole second elapsed since the last tick. Returns tick()'s due flag."""
        if self.state != ExamState.IN_PROGRESS:
            return False
        now = self._monotonic()
        elapsed = int(now - self._last_tick_at)
        self._last_tick_at += elapsed
        for _ in range(elapsed):
            self.tick()
        return self.expired

    async def run_clock(
        self,
        interval: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> Optional[SubmissionOutcome]:
        """Ticks every interval and forces submission when time runs out."""
        attempt = self._attempt
        while self.state == ExamState.IN_PROGRESS and self._attempt == attempt:
            if self.expired:
                return await self.submit(forced=True)
            await sleep(interval)
            if self._attempt != attempt:
                break
            self._last_tick_at = self._monotonic()
            self.tick()
        return None

    # --- Submission ---

    async def submit(self, forced: bool = False, confirmed: bool = False) -> SubmissionOutcome:
        """
        Submits the attempt for grading.

        Args:
            forced: Time ran out; skips the unanswered-questions confirmation.
            confirmed: The learner accepted submitting with unanswered questions.

        Returns:
            GRADED with the report, NEEDS_CONFIRMATION, IGNORED when not in
            progress (including duplicate submissions while grading),
            DISCARDED when the session was reset during grading, or FAILED.
        """
        if self.state != ExamState.IN_PROGRESS:
            return SubmissionOutcome(status=SubmissionStatus.IGNORED)

        unanswered = self.unanswered_count()
        if not forced and not confirmed and unanswered > 0:
            return SubmissionOutcome(status=SubmissionStatus.NEEDS_CONFIRMATION, unanswered=unanswered)

        attempt = self._attempt
        answers = dict(self._answers)
        self.state = ExamState.GRADING
        print(f"[Exam] {'Forced' if forced else 'Manual'} submission of '{self.exam.title}'")

        try:
            graded = await grade_batch(
                self.exam.questions,
                answers,
                self.judge,
                choice_prefix=self.choice_prefix,
                clock=self._clock,
            )
        except Exception as e:
            print(f"[Exam] Grading failed: {e}")
            if self._attempt == attempt:
                self.state = ExamState.IN_PROGRESS
            return SubmissionOutcome(status=SubmissionStatus.FAILED, unanswered=unanswered)

        if self._attempt != attempt:
            print("[Exam] Session was reset during grading; dropping stale result")
            return SubmissionOutcome(status=SubmissionStatus.DISCARDED)

        correct_count = sum(1 for item in graded if item.verdict.is_correct)
        self.report = ExamReport(
            exam_id=self.exam.id,
            title=self.exam.title,
            score=compute_score(correct_count, len(graded)),
            correct_count=correct_count,
            total_questions=len(graded),
            total_duration_minutes=self.exam.duration,
            results=graded,
        )
        self.state = ExamState.REVIEWED
        self._reviewed_at = self._monotonic()
        print(f"[Exam] Reviewed '{self.exam.title}': score {self.report.score}")

        if self.on_record is not None:
            for item in graded:
                self.on_record(item.record)

        return SubmissionOutcome(status=SubmissionStatus.GRADED, report=self.report, unanswered=unanswered)

"""
Data Schemas for Exam Grader
Pydantic models shared by the resolver, the judge client and the exam flow.
"""
import time
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

from grader.services.normalizer import normalize


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class QuestionType(str, Enum):
    """Supported question shapes."""
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    FILL_BLANK = "fill_blank"
    SHORT_ANSWER = "short_answer"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class Resolution(str, Enum):
    """Outcome of the deterministic resolver."""
    LOCAL_PASS = "local_pass"
    LOCAL_FAIL = "local_fail"
    NEEDS_EXTERNAL_JUDGE = "needs_external_judge"


class Provenance(str, Enum):
    """Where a correctness decision was made."""
    LOCAL = "local"
    EXTERNAL = "external"


class Question(BaseModel):
    """A single question from the question bank. Immutable once created."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Question identifier")
    subject: str = Field("", description="Free-text category")
    type: QuestionType = Field(..., description="Question format type")
    question: str = Field(..., description="The prompt text")
    options: Optional[List[str]] = Field(
        None,
        description="Ordered answer choices (multiple_choice only)"
    )
    answer: str = Field(..., description="Canonical answer")
    explanation: str = Field("", description="Explanation of the answer")
    difficulty: Difficulty = Field(Difficulty.MEDIUM, description="Difficulty tier")
    created_at: int = Field(default_factory=now_ms, description="Creation time (epoch ms)")

    def integrity_problems(self) -> List[str]:
        """
        Reports violations of the multiple choice invariant.

        Returns:
            A list of human-readable problems; empty when the question is well formed.
        """
        if self.type != QuestionType.MULTIPLE_CHOICE:
            return []

        if not self.options:
            return ["multiple_choice question has no options"]

        canonical = normalize(self.answer)
        if len(canonical) == 1 and "A" <= canonical <= "Z":
            if ord(canonical) - ord("A") < len(self.options):
                return []
            return [f"answer letter {canonical} is out of range"]

        matches = [opt for opt in self.options if normalize(opt) == canonical]
        if len(matches) == 1:
            return []
        if not matches:
            return ["answer matches no option"]
        return ["answer matches more than one option"]


class CandidateAnswer(BaseModel):
    """One attempt at one question. An empty raw answer means unanswered."""
    question_id: str
    raw: str = ""


class Verdict(BaseModel):
    is_correct: bool
    feedback: Optional[str] = None
    provenance: Provenance = Provenance.LOCAL


class AnswerRecord(BaseModel):
    """Graded result handed to the history store."""
    model_config = ConfigDict(frozen=True)

    question_id: str
    subject: str
    is_correct: bool
    user_answer: str
    feedback: Optional[str] = None
    timestamp: int = Field(default_factory=now_ms)


class JudgeRequestItem(BaseModel):
    """One deferred answer sent to the remote judge."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    question: str
    correct_answer: str = Field(..., alias="correctAnswer")
    user_answer: str = Field(..., alias="userAnswer")


class Judgement(BaseModel):
    """The remote judge's decision for one item."""
    model_config = ConfigDict(populate_by_name=True)

    is_correct: bool = Field(..., alias="isCorrect")
    feedback: str = ""


class JudgedItem(Judgement):
    id: str = Field(..., description="Question ID being judged")

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, value):
        # Models sometimes echo numeric-looking IDs as JSON numbers.
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class JudgementSheet(BaseModel):
    """Structured response schema requested from the judge model."""
    results: List[JudgedItem] = Field(..., description="One judgement per question ID")

    def as_mapping(self) -> Dict[str, Judgement]:
        return {
            item.id: Judgement(is_correct=item.is_correct, feedback=item.feedback)
            for item in self.results
        }


class Exam(BaseModel):
    """An ordered question list with a time limit."""
    id: str
    title: str
    subject: str = ""
    questions: List[Question] = Field(..., description="Questions in exam order")
    duration: int = Field(..., ge=0, description="Time limit in minutes")
    created_at: int = Field(default_factory=now_ms)

    @model_validator(mode="after")
    def _unique_question_ids(self) -> "Exam":
        seen = set()
        duplicates = []
        for question in self.questions:
            if question.id in seen and question.id not in duplicates:
                duplicates.append(question.id)
            seen.add(question.id)
        if duplicates:
            raise ValueError(f"duplicate question ids: {', '.join(duplicates)}")
        return self


class ExamState(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    GRADING = "grading"
    REVIEWED = "reviewed"


class GradedAnswer(BaseModel):
    """A question paired with its verdict and the record persisted for it."""
    question: Question
    verdict: Verdict
    record: AnswerRecord


class ExamReport(BaseModel):
    """Final result of one exam attempt, consumed by the review screen."""
    exam_id: str
    title: str
    score: int = Field(..., ge=0, le=100)
    correct_count: int
    total_questions: int
    total_duration_minutes: int
    results: List[GradedAnswer]

    @computed_field
    @property
    def grade_label(self) -> str:
        if self.score >= 90:
            return "卓越"
        if self.score >= 80:
            return "优秀"
        if self.score >= 60:
            return "良好"
        return "需努力"

    @computed_field
    @property
    def passed(self) -> bool:
        return self.score >= 60


class SubmissionStatus(str, Enum):
    GRADED = "graded"
    NEEDS_CONFIRMATION = "needs_confirmation"
    IGNORED = "ignored"
    DISCARDED = "discarded"
    FAILED = "failed"


class SubmissionOutcome(BaseModel):
    status: SubmissionStatus
    report: Optional[ExamReport] = None
    unanswered: int = 0


class MasteryData(BaseModel):
    """Per-subject learning summary derived from answer history."""
    subject: str
    correct_rate: int
    coverage: int
    mastery_score: int

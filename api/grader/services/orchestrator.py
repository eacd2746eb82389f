"""
Batch Grading Orchestrator
Grades a whole submission: local resolution first, then a single judge
round-trip for every deferred answer, merged back in question order.
"""
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from grader.config import JUDGE_RESULT_MISSING_FEEDBACK, JUDGE_UNAVAILABLE_FEEDBACK
from grader.schemas import (
    AnswerRecord,
    GradedAnswer,
    Judgement,
    JudgeRequestItem,
    Provenance,
    Question,
    Resolution,
    Verdict,
    now_ms,
)
from grader.services.judge_client import Judge
from grader.services.resolver import local_verdict, resolve


def compute_score(correct_count: int, total: int) -> int:
    """
    Percentage score rounded half up, computed in integers.

    Returns:
        round(100 * correct_count / total), or 0 when there are no questions.
    """
    if total <= 0:
        return 0
    return (200 * correct_count + total) // (2 * total)


def _raw_answer(answers: Mapping[str, str], question_id: str) -> str:
    raw = answers.get(question_id)
    return raw if isinstance(raw, str) else ("" if raw is None else str(raw))


async def _judge_deferred(judge: Judge, deferred: List[JudgeRequestItem]) -> Dict[str, Verdict]:
    """Calls the judge once; on any failure every deferred item fails closed."""
    try:
        judgements: Mapping[str, Judgement] = await judge.judge(deferred)
    except Exception as e:
        print(f"[Grader] Judge unavailable, failing {len(deferred)} deferred answer(s): {e}")
        return {
            item.id: Verdict(
                is_correct=False,
                feedback=JUDGE_UNAVAILABLE_FEEDBACK,
                provenance=Provenance.EXTERNAL,
            )
            for item in deferred
        }

    verdicts: Dict[str, Verdict] = {}
    for item in deferred:
        judgement = judgements.get(item.id)
        if judgement is None:
            verdicts[item.id] = Verdict(
                is_correct=False,
                feedback=JUDGE_RESULT_MISSING_FEEDBACK,
                provenance=Provenance.EXTERNAL,
            )
        else:
            verdicts[item.id] = Verdict(
                is_correct=judgement.is_correct,
                feedback=judgement.feedback,
                provenance=Provenance.EXTERNAL,
            )
    return verdicts


async def grade_batch(
    questions: Sequence[Question],
    answers: Mapping[str, str],
    judge: Judge,
    *,
    choice_prefix: bool = False,
    clock: Optional[Callable[[], int]] = None,
) -> List[GradedAnswer]:
    """
    Grades every question of a submission.

    Args:
        questions: Questions in presentation order.
        answers: Raw answers keyed by question ID; missing IDs are unanswered.
        judge: Remote judge used for answers the resolver cannot decide.
        choice_prefix: Multiple choice prefix rule (see resolver.resolve).
        clock: Returns the record timestamp in epoch ms (defaults to now).

    Returns:
        One GradedAnswer per question, in the order of `questions`. Never raises
        because of the judge.
    """
    clock = clock or now_ms
    verdicts: Dict[str, Verdict] = {}
    deferred: List[JudgeRequestItem] = []

    for question in questions:
        raw = _raw_answer(answers, question.id)
        resolution = resolve(question, raw, choice_prefix=choice_prefix)
        if resolution == Resolution.NEEDS_EXTERNAL_JUDGE:
            deferred.append(
                JudgeRequestItem(
                    id=question.id,
                    question=question.question,
                    correct_answer=question.answer,
                    user_answer=raw,
                )
            )
        else:
            verdicts[question.id] = local_verdict(resolution)

    if deferred:
        print(f"[Grader] {len(verdicts)} resolved locally, {len(deferred)} deferred to judge")
        verdicts.update(await _judge_deferred(judge, deferred))

    timestamp = clock()
    graded: List[GradedAnswer] = []
    for question in questions:
        verdict = verdicts[question.id]
        record = AnswerRecord(
            question_id=question.id,
            subject=question.subject,
            is_correct=verdict.is_correct,
            user_answer=_raw_answer(answers, question.id),
            feedback=verdict.feedback,
            timestamp=timestamp,
        )
        graded.append(GradedAnswer(question=question, verdict=verdict, record=record))
    return graded


async def grade_single(
    question: Question,
    raw: str,
    judge: Judge,
    *,
    choice_prefix: bool = False,
    clock: Optional[Callable[[], int]] = None,
) -> GradedAnswer:
    """Grades one answer as a batch of one (practice flow)."""
    graded = await grade_batch(
        [question], {question.id: raw}, judge, choice_prefix=choice_prefix, clock=clock
    )
    return graded[0]

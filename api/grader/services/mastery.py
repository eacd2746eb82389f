"""
Mastery Statistics
Summaries of the answer history for the study dashboard.
"""
from datetime import datetime
from typing import Dict, List, Sequence

from grader.schemas import AnswerRecord, MasteryData, Question

UNCATEGORIZED = "未分类"


def _half_up(value: float) -> int:
    return int(value + 0.5)


def overall_stats(history: Sequence[AnswerRecord]) -> Dict[str, int]:
    """
    Totals across all subjects.

    Returns:
        total, correct, rate (%), active_days (distinct local dates with
        answers) and power, a 0-100 blend of volume, accuracy and regularity.
    """
    total = len(history)
    correct = sum(1 for record in history if record.is_correct)
    rate = _half_up(correct / total * 100) if total else 0
    active_days = len({datetime.fromtimestamp(record.timestamp / 1000).date() for record in history})
    power = min(100, _half_up(total / 50 * 40 + rate / 100 * 40 + active_days / 7 * 20))
    return {
        "total": total,
        "correct": correct,
        "rate": rate,
        "active_days": active_days,
        "power": power,
    }


def subject_mastery(
    questions: Sequence[Question],
    history: Sequence[AnswerRecord],
    limit: int = 6,
) -> List[MasteryData]:
    """
    Per-subject correct rate, coverage and a combined mastery score.

    Coverage is the share of a subject's questions answered at least once.
    Mastery is 0.6 * correct rate + 0.4 * coverage. Best subjects first.
    """
    subjects: List[str] = []
    for question in questions:
        subject = question.subject or UNCATEGORIZED
        if subject not in subjects:
            subjects.append(subject)

    results: List[MasteryData] = []
    for subject in subjects:
        bank = [q for q in questions if (q.subject or UNCATEGORIZED) == subject]
        records = [r for r in history if (r.subject or UNCATEGORIZED) == subject]
        correct_rate = (
            sum(1 for r in records if r.is_correct) / len(records) * 100 if records else 0.0
        )
        answered = len({r.question_id for r in records})
        coverage = answered / len(bank) * 100 if bank else 0.0
        results.append(
            MasteryData(
                subject=subject,
                correct_rate=_half_up(correct_rate),
                coverage=_half_up(coverage),
                mastery_score=_half_up(correct_rate * 0.6 + coverage * 0.4),
            )
        )

    results.sort(key=lambda item: item.mastery_score, reverse=True)
    return results[:limit]


def weak_points(history: Sequence[AnswerRecord], min_attempts: int = 4, threshold: int = 70) -> List[Dict]:
    """Subjects with at least min_attempts answers and a rate below threshold, worst first (top 3)."""
    by_subject: Dict[str, List[AnswerRecord]] = {}
    for record in history:
        by_subject.setdefault(record.subject or UNCATEGORIZED, []).append(record)

    weak = []
    for subject, records in by_subject.items():
        rate = _half_up(sum(1 for r in records if r.is_correct) / len(records) * 100)
        if len(records) >= min_attempts and rate < threshold:
            weak.append({"subject": subject, "rate": rate, "count": len(records)})

    weak.sort(key=lambda item: item["rate"])
    return weak[:3]

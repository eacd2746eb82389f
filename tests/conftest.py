"""
Pytest Configuration & Shared Fixtures
"""
import asyncio
from typing import Dict, List, Optional

import pytest

from grader.schemas import Exam, Judgement, JudgeRequestItem, Question, QuestionType


class FakeJudge:
    """Records every batch; answers from `results`, raises `error`, or waits on a gate."""

    def __init__(
        self,
        results: Optional[Dict[str, Judgement]] = None,
        error: Optional[Exception] = None,
        gated: bool = False,
    ):
        self.results = results
        self.error = error
        self.gated = gated
        self.gate: Optional[asyncio.Event] = None
        self.calls: List[List[JudgeRequestItem]] = []

    async def judge(self, batch):
        self.calls.append(list(batch))
        if self.gated:
            if self.gate is None:
                self.gate = asyncio.Event()
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if self.results is None:
            return {item.id: Judgement(is_correct=True, feedback="语义一致") for item in batch}
        return dict(self.results)


class FakeMonotonic:
    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def fake_judge():
    return FakeJudge()


@pytest.fixture
def mc_question():
    return Question(
        id="q-mc",
        subject="生物",
        type=QuestionType.MULTIPLE_CHOICE,
        question="哪种动物会汪汪叫？",
        options=["猫", "狗", "鸟"],
        answer="B",
        explanation="狗会汪汪叫。",
    )


@pytest.fixture
def tf_question():
    return Question(
        id="q-tf",
        subject="地理",
        type=QuestionType.TRUE_FALSE,
        question="地球是圆的。",
        answer="正确",
        explanation="地球近似球体。",
    )


@pytest.fixture
def fill_blank_question():
    return Question(
        id="q-fb",
        subject="地理",
        type=QuestionType.FILL_BLANK,
        question="中国的首都是____，最大的城市是____。",
        answer="北京 / 上海",
        explanation="北京是首都，上海人口最多。",
    )


@pytest.fixture
def short_answer_question():
    return Question(
        id="q-sa",
        subject="物理",
        type=QuestionType.SHORT_ANSWER,
        question="简述牛顿第一定律。",
        answer="物体在不受外力时保持静止或匀速直线运动",
        explanation="又称惯性定律。",
    )


@pytest.fixture
def sample_exam(mc_question, tf_question, short_answer_question):
    return Exam(
        id="exam-1",
        title="综合模拟卷",
        subject="综合",
        questions=[mc_question, tf_question, short_answer_question],
        duration=1,
    )

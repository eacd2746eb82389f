"""
Test Services
Tests the report generation logic.
"""
import asyncio

import pytest
from docx import Document

from conftest import FakeJudge
from grader.schemas import Judgement
from grader.services.doc_generator import generate_report_docx
from grader.services.exam_session import ExamSession


@pytest.fixture
def graded_report(sample_exam):
    judge = FakeJudge(results={"q-sa": Judgement(is_correct=False, feedback="没有提到匀速直线运动")})
    session = ExamSession(sample_exam, judge)
    session.start()
    session.set_answer("q-mc", "B")
    session.set_answer("q-tf", "对")
    session.set_answer("q-sa", "物体会停下来")
    return asyncio.run(session.submit()).report


def test_report_docx_structure(graded_report, tmp_path):
    """Test that generated DOCX has title, score and questions."""
    output_path = tmp_path / "report.docx"

    generate_report_docx(graded_report, str(output_path), subject="综合")

    assert output_path.exists()
    doc = Document(str(output_path))
    text = "\n".join([para.text for para in doc.paragraphs])

    assert "综合模拟卷" in text
    assert "得分: 67" in text
    assert "正确 2 / 3" in text
    assert "良好" in text
    assert "PASS" in text
    assert "哪种动物会汪汪叫？" in text
    assert "B. 狗" in text  # options listed for multiple choice
    assert "AI 阅卷: 没有提到匀速直线运动" in text
    assert "解析: 又称惯性定律。" in text


def test_report_docx_summary_table(graded_report, tmp_path):
    output_path = tmp_path / "report_table.docx"

    generate_report_docx(graded_report, str(output_path))

    table = Document(str(output_path)).tables[0]
    assert len(table.rows) == 1 + 3
    assert [cell.text for cell in table.rows[0].cells] == ["题号", "你的答案", "正确答案", "结果"]
    assert [cell.text for cell in table.rows[1].cells] == ["1", "B", "B", "✓"]
    assert table.rows[3].cells[3].text == "✗"


def test_report_docx_metadata(graded_report, tmp_path):
    output_path = tmp_path / "report_meta.docx"

    generate_report_docx(graded_report, str(output_path), subject="综合")

    doc = Document(str(output_path))
    assert doc.core_properties.title == "综合模拟卷"
    assert doc.core_properties.subject == "综合"


def test_report_docx_unanswered(sample_exam, tmp_path):
    session = ExamSession(sample_exam, FakeJudge())
    session.start()
    report = asyncio.run(session.submit(forced=True)).report
    output_path = tmp_path / "report_empty.docx"

    generate_report_docx(report, str(output_path))

    doc = Document(str(output_path))
    text = "\n".join([para.text for para in doc.paragraphs])
    assert "(未作答)" in text
    assert "FAIL" in text
    assert doc.tables[0].rows[1].cells[1].text == "-"

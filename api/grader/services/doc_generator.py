"""
Report Generator Service
Renders a reviewed exam attempt as a .docx report.
"""
from docx import Document
from docx.shared import Pt, Inches

from grader.schemas import ExamReport, GradedAnswer, Provenance, QuestionType


def _add_options(doc: Document, item: GradedAnswer) -> None:
    for index, text in enumerate(item.question.options or []):
        p_opt = doc.add_paragraph()
        p_opt.paragraph_format.left_indent = Inches(0.5)
        p_opt.add_run(f"{chr(ord('A') + index)}. {text}")


def _add_review(doc: Document, item: GradedAnswer) -> None:
    p_ans = doc.add_paragraph()
    p_ans.paragraph_format.left_indent = Inches(0.5)
    p_ans.add_run("你的答案: ").bold = True
    p_ans.add_run(item.record.user_answer or "(未作答)")
    p_ans.add_run("  |  正确答案: ").bold = True
    p_ans.add_run(item.question.answer)

    if item.verdict.feedback:
        p_fb = doc.add_paragraph()
        p_fb.paragraph_format.left_indent = Inches(0.5)
        label = "AI 阅卷: " if item.verdict.provenance == Provenance.EXTERNAL else "备注: "
        run = p_fb.add_run(f"{label}{item.verdict.feedback}")
        run.italic = True

    if item.question.explanation:
        p_exp = doc.add_paragraph()
        p_exp.paragraph_format.left_indent = Inches(0.5)
        run = p_exp.add_run(f"解析: {item.question.explanation}")
        run.font.size = Pt(11)


def generate_report_docx(report: ExamReport, output_path: str, subject: str = "") -> None:
    """
    Generates a .docx file from an ExamReport.

    Args:
        report: Report of a reviewed exam attempt.
        output_path: Absolute path where the .docx file should be saved.
        subject: Exam subject shown under the title.
    """
    print(f"\n[Publisher] Generating report DOCX at {output_path}...")
    doc = Document()

    core_properties = doc.core_properties
    core_properties.title = report.title
    core_properties.subject = subject

    style = doc.styles['Normal']
    style.font.size = Pt(12)

    heading = doc.add_heading(report.title, 0)
    heading.alignment = 1  # Center

    p_info = doc.add_paragraph()
    p_info.alignment = 1  # Center
    if subject:
        p_info.add_run(f"科目: {subject} | ").bold = True
    p_info.add_run(f"得分: {report.score}").bold = True
    p_info.add_run(
        f" | 正确 {report.correct_count} / {report.total_questions}"
        f" | 用时 {report.total_duration_minutes} MIN"
        f" | {report.grade_label} | {'PASS' if report.passed else 'FAIL'}"
    )

    doc.add_paragraph("_" * 50).alignment = 1  # Divider

    # Summary table
    table = doc.add_table(rows=1, cols=4)
    table.style = 'Table Grid'
    hdr_cells = table.rows[0].cells
    hdr_cells[0].text = '题号'
    hdr_cells[1].text = '你的答案'
    hdr_cells[2].text = '正确答案'
    hdr_cells[3].text = '结果'

    for number, item in enumerate(report.results, start=1):
        row_cells = table.add_row().cells
        row_cells[0].text = str(number)
        row_cells[1].text = item.record.user_answer or "-"
        row_cells[2].text = item.question.answer
        row_cells[3].text = "✓" if item.verdict.is_correct else "✗"

    # Per-question review
    doc.add_heading("作答明细回顾", level=1)
    for number, item in enumerate(report.results, start=1):
        p = doc.add_paragraph()
        p.paragraph_format.space_before = Pt(12)
        mark = "✓" if item.verdict.is_correct else "✗"
        run = p.add_run(f"{number}. [{mark}] {item.question.question}")
        run.bold = True

        if item.question.type == QuestionType.MULTIPLE_CHOICE:
            _add_options(doc, item)
        _add_review(doc, item)

    doc.save(output_path)
    print("Done! File saved.")

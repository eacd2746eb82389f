"""
Main FastAPI Application
Controller layer exposing practice grading, timed exam sessions and stats.
"""
import os
import tempfile
import uuid
from pathlib import Path
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from pydantic import BaseModel

from grader.config import (
    MAX_EXAM_SESSIONS,
    REVIEWED_SESSION_TTL_SECONDS,
    load_grading_policy,
    load_judge_config,
)
from grader.schemas import (
    AnswerRecord,
    Exam,
    ExamReport,
    ExamState,
    GradedAnswer,
    Question,
    SubmissionOutcome,
)
from grader.services.doc_generator import generate_report_docx
from grader.services.exam_session import ExamSession
from grader.services.judge_client import Judge, build_judge
from grader.services.mastery import overall_stats, subject_mastery, weak_points
from grader.services.orchestrator import grade_single

# Setup Paths
BASE_DIR = Path(__file__).resolve().parents[2]
OUTPUT_DIR = BASE_DIR / "output"

# Ensure directories exist
OUTPUT_DIR.mkdir(parents=True, exist_ok=True)

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

# In-memory state; long-term storage belongs to the history service.
SESSIONS: Dict[str, ExamSession] = {}
HISTORY: List[AnswerRecord] = []


def get_runtime_output_dir() -> Path:
    """Resolve output directory for local dev or serverless runtime."""
    if os.getenv("VERCEL"):
        return Path(tempfile.gettempdir()) / "exam-grader-output"
    return OUTPUT_DIR


class PracticeGradeRequest(BaseModel):
    question: Question
    answer: str = ""


class StartExamRequest(BaseModel):
    exam: Exam


class AnswerRequest(BaseModel):
    answer: str = ""


class SubmitRequest(BaseModel):
    confirmed: bool = False


class MasteryRequest(BaseModel):
    questions: List[Question]
    history: List[AnswerRecord]


class QuestionCheckRequest(BaseModel):
    questions: List[Question]


# Initialize FastAPI App
app = FastAPI(
    title="Exam Grader API",
    description="Answer verification and scoring for practice and timed exams",
    version="1.0.0"
)

# CORS Middleware (Allow all origins for development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_judge(
    x_judge_api_key: Optional[str] = Header(default=None, alias="X-Judge-API-Key"),
) -> Judge:
    return build_judge(load_judge_config().with_api_key(x_judge_api_key))


def get_session(session_id: str) -> ExamSession:
    session = SESSIONS.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Exam session not found")
    return session


async def sync_clock(session: ExamSession) -> None:
    """Applies elapsed time and forces submission when the clock has run out."""
    if session.catch_up():
        await session.submit(forced=True)


async def evict_sessions() -> None:
    """
    Drops finished sessions before a new one starts.

    Expired sessions are force-submitted first so their records still reach
    the history. Reviewed sessions older than REVIEWED_SESSION_TTL_SECONDS are
    dropped; at MAX_EXAM_SESSIONS the oldest sessions go, reviewed ones first.
    Sessions being graded are never evicted.
    """
    for session_id, session in list(SESSIONS.items()):
        await sync_clock(session)
        age = session.reviewed_for()
        if age is not None and age >= REVIEWED_SESSION_TTL_SECONDS:
            SESSIONS.pop(session_id, None)

    candidates = sorted(SESSIONS.items(), key=lambda item: item[1].state != ExamState.REVIEWED)
    for session_id, session in candidates:
        if len(SESSIONS) < MAX_EXAM_SESSIONS:
            break
        if session.state == ExamState.GRADING:
            continue
        print(f"[Exam] Evicting session {session_id} ({session.state.value})")
        session.reset()
        SESSIONS.pop(session_id, None)


def session_status(session_id: str, session: ExamSession) -> dict:
    return {
        "session_id": session_id,
        "exam_id": session.exam.id,
        "state": session.state.value,
        "time_left": session.time_left,
        "total_questions": len(session.exam.questions),
        "unanswered": session.unanswered_count(),
        "score": session.report.score if session.report else None,
    }


@app.get("/")
async def read_root():
    """Return API status info (UI handled by the frontend)."""
    return {"message": "Exam Grader API is running."}


@app.post("/api/practice/grade", response_model=GradedAnswer)
async def grade_practice_answer(request: PracticeGradeRequest, judge: Judge = Depends(get_judge)):
    """Grade one practice answer; judge feedback is returned to the learner."""
    policy = load_grading_policy()
    result = await grade_single(
        request.question,
        request.answer,
        judge,
        choice_prefix=policy.practice_choice_prefix,
    )
    HISTORY.append(result.record)
    return result


@app.post("/api/questions/check")
async def check_questions(request: QuestionCheckRequest):
    """Report questions that violate the multiple choice invariant."""
    problems = {}
    for question in request.questions:
        issues = question.integrity_problems()
        if issues:
            problems[question.id] = issues
    return {"valid": not problems, "problems": problems}


@app.post("/api/exams/sessions")
async def start_exam(request: StartExamRequest, judge: Judge = Depends(get_judge)):
    """Create a session for the exam and start its countdown."""
    if not request.exam.questions:
        raise HTTPException(status_code=422, detail="Exam has no questions")

    await evict_sessions()
    policy = load_grading_policy()
    session_id = uuid.uuid4().hex
    session = ExamSession(
        request.exam,
        judge,
        HISTORY.append,
        choice_prefix=policy.exam_choice_prefix,
    )
    session.start()
    SESSIONS[session_id] = session
    return session_status(session_id, session)


@app.get("/api/exams/sessions/{session_id}")
async def read_exam_session(session_id: str):
    session = get_session(session_id)
    await sync_clock(session)
    return session_status(session_id, session)


@app.put("/api/exams/sessions/{session_id}/answers/{question_id}")
async def save_answer(session_id: str, question_id: str, request: AnswerRequest):
    """Record or overwrite one answer while the exam is in progress."""
    session = get_session(session_id)
    await sync_clock(session)

    if question_id not in {question.id for question in session.exam.questions}:
        raise HTTPException(status_code=404, detail="Question not in exam")
    if not session.set_answer(question_id, request.answer):
        raise HTTPException(status_code=409, detail=f"Session is {session.state.value}; answers are closed")
    return session_status(session_id, session)


@app.post("/api/exams/sessions/{session_id}/submit", response_model=SubmissionOutcome)
async def submit_exam(session_id: str, request: SubmitRequest):
    """
    Submit the exam for grading.

    Returns needs_confirmation when questions are unanswered and the request
    is not confirmed, ignored for duplicate or late submissions.
    """
    session = get_session(session_id)
    if session.catch_up():
        return await session.submit(forced=True)
    return await session.submit(confirmed=request.confirmed)


@app.get("/api/exams/sessions/{session_id}/report", response_model=ExamReport)
async def read_exam_report(session_id: str):
    session = get_session(session_id)
    await sync_clock(session)
    if session.state != ExamState.REVIEWED or session.report is None:
        raise HTTPException(status_code=409, detail="Exam has not been graded yet")
    return session.report


@app.get("/api/exams/sessions/{session_id}/report.docx")
async def download_exam_report(session_id: str):
    """Render the reviewed attempt as a DOCX report."""
    session = get_session(session_id)
    if session.state != ExamState.REVIEWED or session.report is None:
        raise HTTPException(status_code=409, detail="Exam has not been graded yet")

    output_filename = f"report_{os.urandom(4).hex()}.docx"
    runtime_output_dir = get_runtime_output_dir()
    runtime_output_dir.mkdir(parents=True, exist_ok=True)
    output_path = runtime_output_dir / output_filename
    generate_report_docx(session.report, str(output_path), subject=session.exam.subject)

    return FileResponse(
        str(output_path),
        filename=output_filename,
        media_type=DOCX_MEDIA_TYPE,
    )


@app.delete("/api/exams/sessions/{session_id}")
async def leave_exam(session_id: str):
    """Discard the session (leaving the result screen or abandoning the exam)."""
    session = get_session(session_id)
    session.reset()
    del SESSIONS[session_id]
    return {"session_id": session_id, "status": "discarded"}


@app.get("/api/history", response_model=List[AnswerRecord])
async def read_history():
    return HISTORY


@app.post("/api/stats/mastery")
async def mastery_stats(request: MasteryRequest):
    """Dashboard summary of an answer history against a question bank."""
    return {
        "overall": overall_stats(request.history),
        "subjects": subject_mastery(request.questions, request.history),
        "weak_points": weak_points(request.history),
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "Exam Grader API"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

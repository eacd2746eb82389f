"""
Judge Smoke Flow
Validates the API endpoints, CORS and the live remote judge for exam-grader.
"""
from __future__ import annotations

import json
import os
from typing import Any, Dict

from fastapi.testclient import TestClient
from dotenv import load_dotenv

from grader.config import load_judge_config
from grader.main import app

DEFAULT_ORIGIN = "http://localhost:3000"

SMOKE_EXAM = {
    "id": "smoke-exam",
    "title": "冒烟测试卷",
    "subject": "综合",
    "duration": 5,
    "questions": [
        {
            "id": "s1",
            "subject": "地理",
            "type": "multiple_choice",
            "question": "中国的首都是？",
            "options": ["上海", "北京", "广州"],
            "answer": "B",
        },
        {
            "id": "s2",
            "subject": "物理",
            "type": "short_answer",
            "question": "简述牛顿第一定律。",
            "answer": "物体在不受外力时保持静止或匀速直线运动",
        },
    ],
}


def assert_json_response(response, label: str) -> Dict[str, Any]:
    if response.status_code != 200:
        raise SystemExit(f"{label} failed: {response.status_code} {response.text}")
    if "application/json" not in response.headers.get("content-type", ""):
        raise SystemExit(f"{label} did not return JSON")
    return response.json()


def main() -> None:
    load_dotenv()
    config = load_judge_config()
    if not config.api_key:
        raise SystemExit(f"Missing API key for judge provider: {config.provider.value}")

    origin = os.getenv("EXAM_GRADER_ORIGIN", DEFAULT_ORIGIN)
    client = TestClient(app)

    # Connectivity Check: /health
    health_body = assert_json_response(client.get("/health", headers={"Origin": origin}), "/health")
    if health_body.get("status") != "healthy":
        raise SystemExit("/health did not report healthy")

    # CORS Validation
    cors_response = client.options(
        "/health",
        headers={
            "Origin": origin,
            "Access-Control-Request-Method": "GET",
        },
    )
    cors_origin = cors_response.headers.get("access-control-allow-origin")
    if cors_origin not in ("*", origin):
        raise SystemExit(f"CORS header mismatch: {cors_origin}")

    # Flow Validation: start, answer, submit
    start_body = assert_json_response(
        client.post("/api/exams/sessions", json={"exam": SMOKE_EXAM}), "/api/exams/sessions"
    )
    session_id = start_body["session_id"]
    for question_id, answer in [("s1", "北京"), ("s2", "不受力时物体保持原来的运动状态")]:
        assert_json_response(
            client.put(f"/api/exams/sessions/{session_id}/answers/{question_id}", json={"answer": answer}),
            f"answer {question_id}",
        )

    outcome = assert_json_response(
        client.post(f"/api/exams/sessions/{session_id}/submit", json={}), "submit"
    )
    if outcome.get("status") != "graded":
        raise SystemExit(f"submit did not grade: {outcome.get('status')}")
    remote = outcome["report"]["results"][1]["verdict"]
    if remote.get("provenance") != "external":
        raise SystemExit("short answer was not sent to the remote judge")

    # Render DOCX (simulate serverless temp output)
    os.environ["VERCEL"] = "1"
    render_response = client.get(f"/api/exams/sessions/{session_id}/report.docx")
    if render_response.status_code != 200:
        raise SystemExit(f"report.docx failed: {render_response.status_code}")

    client.delete(f"/api/exams/sessions/{session_id}")

    report = {
        "health": "ok",
        "cors": "ok",
        "provider": config.provider.value,
        "score": outcome["report"]["score"],
        "judge_feedback": remote.get("feedback"),
        "render_docx": "ok",
    }
    print(json.dumps(report, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()

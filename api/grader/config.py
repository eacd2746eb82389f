"""
Configuration Module for Exam Grader
Centralizes environment variables, judge provider settings, and prompt templates.
"""
import os
from enum import Enum
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# --- API Configuration ---
MODEL_NAME = "gemini-3-flash-preview"
DEFAULT_TEMPERATURE = 0.7
DEFAULT_TOP_P = 0.95
DEFAULT_TIMEOUT_SECONDS = 60.0

# --- Grading Feedback ---
JUDGE_UNAVAILABLE_FEEDBACK = "AI 服务暂时不可用，默认判定为错误"
JUDGE_RESULT_MISSING_FEEDBACK = "阅卷结果缺失"

# --- Exam Sessions ---
REVIEWED_SESSION_TTL_SECONDS = 30 * 60
MAX_EXAM_SESSIONS = 200


class AIProvider(str, Enum):
    """Model providers that can act as the remote judge."""
    GEMINI = "gemini"
    DOUBAO = "doubao"
    DEEPSEEK = "deepseek"
    CHATGPT = "chatgpt"
    MIMO = "mimo"


# Default model and OpenAI-compatible base URL per provider.
PROVIDER_DEFAULTS = {
    AIProvider.GEMINI: (MODEL_NAME, ""),
    AIProvider.DEEPSEEK: ("deepseek-chat", "https://api.deepseek.com/v1"),
    AIProvider.DOUBAO: ("", "https://ark.cn-beijing.volces.com/api/v3"),
    AIProvider.CHATGPT: ("gpt-4o", "https://api.openai.com/v1"),
    AIProvider.MIMO: ("", ""),
}


class JudgeConfig(BaseModel):
    """Explicit judge settings, injected into the judge client at construction."""
    provider: AIProvider = AIProvider.GEMINI
    model_name: str = MODEL_NAME
    api_key: Optional[str] = None
    base_url: str = ""
    temperature: float = Field(DEFAULT_TEMPERATURE, ge=0.0, le=2.0)
    top_p: float = Field(DEFAULT_TOP_P, gt=0.0, le=1.0)
    timeout_seconds: float = Field(DEFAULT_TIMEOUT_SECONDS, gt=0.0)

    def with_api_key(self, api_key: Optional[str]) -> "JudgeConfig":
        """Returns a copy using api_key when one is given (e.g. from a request header)."""
        resolved = api_key.strip() if api_key else ""
        if not resolved:
            return self
        return self.model_copy(update={"api_key": resolved})


class GradingPolicy(BaseModel):
    """Strictness switches for the two grading flows."""
    exam_choice_prefix: bool = True
    practice_choice_prefix: bool = False


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def load_judge_config() -> JudgeConfig:
    """
    Builds the judge configuration from JUDGE_* environment variables.

    A missing API key is not an error here: the judge client reports it when
    called, and grading falls back to marking deferred answers incorrect.

    Raises:
        ValueError: If JUDGE_PROVIDER or a numeric setting is invalid.
    """
    load_dotenv()
    provider = AIProvider(os.getenv("JUDGE_PROVIDER", AIProvider.GEMINI.value).strip().lower())
    default_model, default_base_url = PROVIDER_DEFAULTS[provider]

    api_key = os.getenv("JUDGE_API_KEY")
    if not api_key and provider == AIProvider.GEMINI:
        api_key = os.getenv("GEMINI_API_KEY")

    return JudgeConfig(
        provider=provider,
        model_name=os.getenv("JUDGE_MODEL") or default_model,
        api_key=api_key or None,
        base_url=os.getenv("JUDGE_BASE_URL") or default_base_url,
        temperature=float(os.getenv("JUDGE_TEMPERATURE", DEFAULT_TEMPERATURE)),
        top_p=float(os.getenv("JUDGE_TOP_P", DEFAULT_TOP_P)),
        timeout_seconds=float(os.getenv("JUDGE_TIMEOUT", DEFAULT_TIMEOUT_SECONDS)),
    )


def load_grading_policy() -> GradingPolicy:
    """Reads EXAM_CHOICE_PREFIX / PRACTICE_CHOICE_PREFIX."""
    load_dotenv()
    return GradingPolicy(
        exam_choice_prefix=_env_flag("EXAM_CHOICE_PREFIX", True),
        practice_choice_prefix=_env_flag("PRACTICE_CHOICE_PREFIX", False),
    )


# --- Prompt Templates ---
PROMPT_TEMPLATES = {
    "judge_system": """你是一个判分专家。请用**中文**给出反馈。
判分原则：
1. 语义相近即正确，同义词、顺序不同但含义一致的多空答案都算正确。
2. 答案缺少关键要点或含有错误事实时判定为错误。
3. feedback 为一到两句简短的判分理由。

输出 JSON 对象：{{"results": [{{"id": 题目 ID, "isCorrect": 布尔值, "feedback": 字符串}}]}}
每个题目 ID 必须且只能出现一次。""",

    "judge_payload": "判分数据：{payload}",
}


def get_prompt(template_name: str, **kwargs) -> str:
    """
    Retrieves a formatted prompt template.

    Args:
        template_name: Name of the template ("judge_system" or "judge_payload").
        **kwargs: Variables to format into the template.

    Returns:
        Formatted prompt string.

    Raises:
        KeyError: If template_name is not found in templates.
    """
    if template_name not in PROMPT_TEMPLATES:
        raise KeyError(f"Prompt template '{template_name}' not found.")

    return PROMPT_TEMPLATES[template_name].format(**kwargs)

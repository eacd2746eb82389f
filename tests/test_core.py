"""
Test Core Configuration & Prompts
"""
import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from grader.config import (
    MODEL_NAME,
    AIProvider,
    JudgeConfig,
    get_prompt,
    load_grading_policy,
    load_judge_config,
)


def test_model_name_configured():
    """Verify the default judge model."""
    assert MODEL_NAME == "gemini-3-flash-preview"


def test_prompt_integrity_judge_system():
    """The system prompt renders literal JSON braces."""
    prompt = get_prompt("judge_system")
    assert "判分专家" in prompt
    assert '{"results": [{"id"' in prompt
    assert "{{" not in prompt


def test_prompt_integrity_judge_payload():
    prompt = get_prompt("judge_payload", payload='[{"id": "1"}]')
    assert prompt == '判分数据：[{"id": "1"}]'


def test_prompt_invalid_type():
    """Test that invalid template name raises KeyError."""
    with pytest.raises(KeyError):
        get_prompt("invalid_template")


def test_judge_config_defaults_to_gemini_key():
    env = {"GEMINI_API_KEY": "gem-key"}
    with patch.dict(os.environ, env, clear=True):
        with patch("grader.config.load_dotenv"):
            config = load_judge_config()

    assert config.provider == AIProvider.GEMINI
    assert config.model_name == MODEL_NAME
    assert config.api_key == "gem-key"
    assert config.timeout_seconds == 60.0


def test_judge_config_missing_key_is_not_an_error():
    with patch.dict(os.environ, {}, clear=True):
        with patch("grader.config.load_dotenv"):
            config = load_judge_config()

    assert config.api_key is None


def test_judge_config_openai_compatible_provider():
    env = {
        "JUDGE_PROVIDER": "DeepSeek",
        "JUDGE_API_KEY": "sk-123",
        "GEMINI_API_KEY": "ignored",
        "JUDGE_TEMPERATURE": "0.2",
        "JUDGE_TIMEOUT": "15",
    }
    with patch.dict(os.environ, env, clear=True):
        with patch("grader.config.load_dotenv"):
            config = load_judge_config()

    assert config.provider == AIProvider.DEEPSEEK
    assert config.model_name == "deepseek-chat"
    assert config.base_url == "https://api.deepseek.com/v1"
    assert config.api_key == "sk-123"
    assert config.temperature == 0.2
    assert config.timeout_seconds == 15.0


def test_judge_config_overrides():
    env = {"JUDGE_PROVIDER": "chatgpt", "JUDGE_MODEL": "gpt-4o-mini", "JUDGE_BASE_URL": "http://proxy/v1"}
    with patch.dict(os.environ, env, clear=True):
        with patch("grader.config.load_dotenv"):
            config = load_judge_config()

    assert config.model_name == "gpt-4o-mini"
    assert config.base_url == "http://proxy/v1"
    assert config.api_key is None


def test_judge_config_invalid_provider():
    with patch.dict(os.environ, {"JUDGE_PROVIDER": "nope"}, clear=True):
        with patch("grader.config.load_dotenv"):
            with pytest.raises(ValueError):
                load_judge_config()


def test_judge_config_rejects_out_of_range_values():
    with pytest.raises(ValidationError):
        JudgeConfig(temperature=5)
    with pytest.raises(ValidationError):
        JudgeConfig(timeout_seconds=0)


def test_with_api_key_override():
    config = JudgeConfig(api_key="from-env")
    assert config.with_api_key("  from-header ").api_key == "from-header"
    assert config.with_api_key(None) is config
    assert config.with_api_key("   ").api_key == "from-env"


def test_grading_policy_defaults_and_flags():
    with patch.dict(os.environ, {}, clear=True):
        with patch("grader.config.load_dotenv"):
            policy = load_grading_policy()
    assert policy.exam_choice_prefix is True
    assert policy.practice_choice_prefix is False

    env = {"EXAM_CHOICE_PREFIX": "false", "PRACTICE_CHOICE_PREFIX": "Yes"}
    with patch.dict(os.environ, env, clear=True):
        with patch("grader.config.load_dotenv"):
            policy = load_grading_policy()
    assert policy.exam_choice_prefix is False
    assert policy.practice_choice_prefix is True

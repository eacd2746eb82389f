"""
Remote Judge Client
Asks a language model whether subjective answers are semantically correct.

Every judge takes an ordered batch of JudgeRequestItem and returns a mapping
from question ID to Judgement. Transport, auth and parse failures raise
JudgeError; callers decide the fallback.
"""
import json
from typing import Dict, Optional, Protocol, Sequence

import httpx
from google import genai
from google.genai import errors, types
from pydantic import ValidationError

from grader.config import MODEL_NAME, AIProvider, JudgeConfig, get_prompt
from grader.schemas import Judgement, JudgementSheet, JudgeRequestItem


class JudgeError(Exception):
    """The judge could not produce a judgement (network, quota, bad response)."""


class JudgeAuthError(JudgeError):
    """The judge rejected or is missing credentials."""


class Judge(Protocol):
    async def judge(self, batch: Sequence[JudgeRequestItem]) -> Dict[str, Judgement]:
        ...


def build_payload_prompt(batch: Sequence[JudgeRequestItem]) -> str:
    """Serializes the batch with wire (camelCase) field names."""
    payload = [item.model_dump(by_alias=True) for item in batch]
    return get_prompt("judge_payload", payload=json.dumps(payload, ensure_ascii=False))


def parse_sheet(text: str, batch: Sequence[JudgeRequestItem]) -> Dict[str, Judgement]:
    """
    Parses the model's JSON text into judgements for the requested IDs.

    Accepts either {"results": [...]} or a plain object keyed by question ID.
    IDs that were not requested are dropped.

    Raises:
        JudgeError: If the text is empty or not a valid judgement document.
    """
    if not text or not text.strip():
        raise JudgeError("Empty response from judge")

    try:
        data = json.loads(text)
        if isinstance(data, dict) and "results" not in data:
            mapping = {key: Judgement.model_validate(value) for key, value in data.items()}
        else:
            mapping = JudgementSheet.model_validate(data).as_mapping()
    except (ValueError, ValidationError) as e:
        raise JudgeError(f"Malformed judge response: {e}") from e

    return _restrict(mapping, batch)


def _restrict(mapping: Dict[str, Judgement], batch: Sequence[JudgeRequestItem]) -> Dict[str, Judgement]:
    requested = {item.id for item in batch}
    return {key: value for key, value in mapping.items() if key in requested}


class GeminiJudge:
    """Judge backed by Google Gemini structured output."""

    def __init__(self, config: JudgeConfig, client: Optional[genai.Client] = None):
        self.config = config
        self._client = client

    def _get_client(self) -> genai.Client:
        if self._client is None:
            if not self.config.api_key:
                raise JudgeAuthError("AUTH_REQUIRED: judge API key is not configured")
            self._client = genai.Client(
                api_key=self.config.api_key,
                http_options=types.HttpOptions(timeout=int(self.config.timeout_seconds * 1000)),
            )
        return self._client

    async def judge(self, batch: Sequence[JudgeRequestItem]) -> Dict[str, Judgement]:
        if not batch:
            return {}

        client = self._get_client()
        print(f"[Judge] Gemini grading {len(batch)} answer(s) with {self.config.model_name}")

        try:
            response = await client.aio.models.generate_content(
                model=self.config.model_name or MODEL_NAME,
                contents=build_payload_prompt(batch),
                config=types.GenerateContentConfig(
                    system_instruction=get_prompt("judge_system"),
                    response_mime_type="application/json",
                    response_schema=JudgementSheet,
                    temperature=self.config.temperature,
                    top_p=self.config.top_p,
                ),
            )
        except errors.APIError as e:
            print(f"[Judge] Error: {e}")
            if e.code in (401, 403) or "Requested entity was not found" in str(e):
                raise JudgeAuthError(f"AUTH_REQUIRED: {e}") from e
            raise JudgeError(str(e)) from e
        except httpx.HTTPError as e:
            print(f"[Judge] Transport error: {e}")
            raise JudgeError(str(e)) from e

        parsed = response.parsed
        if isinstance(parsed, JudgementSheet):
            return _restrict(parsed.as_mapping(), batch)
        return parse_sheet(response.text or "", batch)


class OpenAICompatibleJudge:
    """Judge backed by any /chat/completions endpoint (DeepSeek, Doubao, ChatGPT, MiMo)."""

    def __init__(self, config: JudgeConfig, http_client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._http_client = http_client

    @property
    def endpoint(self) -> str:
        return f"{self.config.base_url.rstrip('/')}/chat/completions"

    def _request_body(self, batch: Sequence[JudgeRequestItem]) -> dict:
        return {
            "model": self.config.model_name,
            "messages": [
                {"role": "system", "content": get_prompt("judge_system")},
                {"role": "user", "content": build_payload_prompt(batch)},
            ],
            "temperature": self.config.temperature,
            "top_p": self.config.top_p,
            "response_format": {"type": "json_object"},
        }

    async def _post(self, client: httpx.AsyncClient, body: dict) -> httpx.Response:
        return await client.post(
            self.endpoint,
            json=body,
            headers={"Authorization": f"Bearer {self.config.api_key}"},
        )

    async def judge(self, batch: Sequence[JudgeRequestItem]) -> Dict[str, Judgement]:
        if not batch:
            return {}
        if not self.config.api_key:
            raise JudgeAuthError("AUTH_REQUIRED: judge API key is not configured")

        print(f"[Judge] {self.config.provider.value} grading {len(batch)} answer(s) at {self.endpoint}")
        body = self._request_body(batch)

        try:
            if self._http_client is not None:
                response = await self._post(self._http_client, body)
            else:
                async with httpx.AsyncClient(timeout=self.config.timeout_seconds) as client:
                    response = await self._post(client, body)
        except httpx.HTTPError as e:
            print(f"[Judge] Transport error: {e}")
            raise JudgeError(str(e)) from e

        if response.status_code in (401, 403):
            raise JudgeAuthError(f"AUTH_REQUIRED: HTTP {response.status_code}")
        if response.is_error:
            raise JudgeError(_error_message(response))

        try:
            content = response.json()["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise JudgeError(f"Unexpected completion payload: {e}") from e

        return parse_sheet(content, batch)


def _error_message(response: httpx.Response) -> str:
    try:
        message = response.json().get("error", {}).get("message")
    except (ValueError, AttributeError):
        message = None
    return message or f"HTTP {response.status_code}"


def build_judge(config: JudgeConfig) -> Judge:
    """Returns the judge implementation for the configured provider."""
    if config.provider == AIProvider.GEMINI:
        return GeminiJudge(config)
    return OpenAICompatibleJudge(config)


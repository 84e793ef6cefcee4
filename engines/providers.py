"""Outbound calls to the text-generation providers.

Every call makes exactly one HTTP attempt and reports transport or provider
trouble through :class:`ProviderResult` instead of raising, so the caller can
hand the result straight to the normalizer.
"""

from __future__ import annotations

import json
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

import requests

from env_validation import get_env_float

logger = logging.getLogger(__name__)

_LLM_LOGGER = logging.getLogger("wrestlewell.llm")
if not _LLM_LOGGER.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter("%(message)s"))
    _LLM_LOGGER.addHandler(_handler)
_LLM_LOGGER.setLevel(logging.INFO)
_LLM_LOGGER.propagate = False

OPENAI_RESPONSES_URL = "https://api.openai.com/v1/responses"
GEMINI_URL_TEMPLATE = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

DEFAULT_TIMEOUT_SECONDS = 60.0


@dataclass(frozen=True)
class ProviderResult:
    """Raw outcome of one provider call: a decoded payload or an error description."""

    provider: str
    model: str
    payload: Any = None
    error: Optional[str] = None
    status_code: Optional[int] = None
    latency_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


def llm_timeout() -> float:
    timeout = get_env_float("LLM_TIMEOUT", DEFAULT_TIMEOUT_SECONDS)
    return timeout if timeout > 0 else DEFAULT_TIMEOUT_SECONDS


def _log_call(result: ProviderResult) -> None:
    record = {
        "event": "llm_call",
        "provider": result.provider,
        "model": result.model,
        "latency_ms": result.latency_ms,
        "status": result.status_code,
        "ok": result.ok,
        "error": result.error,
    }
    try:
        _LLM_LOGGER.info(json.dumps(record, ensure_ascii=False))
    except (TypeError, ValueError):
        _LLM_LOGGER.info(record)


def post_json(
    provider: str,
    model: str,
    url: str,
    body: Mapping[str, Any],
    *,
    headers: Optional[Mapping[str, str]] = None,
    timeout: Optional[float] = None,
) -> ProviderResult:
    start = time.perf_counter()
    status_code: Optional[int] = None
    payload: Any = None
    error: Optional[str] = None
    try:
        response = requests.post(
            url,
            json=dict(body),
            headers=dict(headers or {}),
            timeout=timeout if timeout is not None else llm_timeout(),
        )
        status_code = response.status_code
        if status_code >= 400:
            error = f"HTTP {status_code}: {(response.text or '')[:300]}"
        else:
            try:
                payload = response.json()
            except ValueError as exc:
                error = f"invalid JSON body: {exc}"
    except requests.RequestException as exc:
        error = f"{type(exc).__name__}: {exc}"

    result = ProviderResult(
        provider=provider,
        model=model,
        payload=payload,
        error=error,
        status_code=status_code,
        latency_ms=int((time.perf_counter() - start) * 1000),
    )
    if error:
        logger.warning("%s call to %s failed: %s", provider, model, error)
    _log_call(result)
    return result


# ---------- provider-specific calls ----------


def call_ollama(
    messages: List[Dict[str, str]],
    *,
    url: str,
    model: str,
    temperature: float = 0.7,
) -> ProviderResult:
    body = {
        "model": model,
        "messages": messages,
        "stream": False,
        "options": {"temperature": temperature},
    }
    return post_json("ollama", model, url, body)


def call_openai(
    instructions: str,
    input_text: str,
    *,
    api_key: str,
    model: str,
    max_output_tokens: int = 350,
) -> ProviderResult:
    body = {
        "model": model,
        "instructions": instructions,
        "input": input_text,
        "max_output_tokens": max_output_tokens,
    }
    headers = {"Authorization": f"Bearer {api_key}"}
    return post_json("openai", model, OPENAI_RESPONSES_URL, body, headers=headers)


def call_gemini(
    prompt: str,
    *,
    api_key: str,
    model: str,
    temperature: float = 0.7,
    max_output_tokens: int = 512,
) -> ProviderResult:
    body = {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": {
            "temperature": temperature,
            "maxOutputTokens": max_output_tokens,
        },
    }
    headers = {"x-goog-api-key": api_key}
    url = GEMINI_URL_TEMPLATE.format(model=model)
    return post_json("gemini", model, url, body, headers=headers)


# ---------- completion extraction ----------


def strip_think(text: str) -> str:
    return re.sub(r"<think>.*?</think>", "", text or "", flags=re.DOTALL).strip()


def extract_ollama_text(payload: Any) -> str:
    if not isinstance(payload, dict):
        return ""
    message = payload.get("message")
    if isinstance(message, str):
        return strip_think(message)
    if not isinstance(message, dict):
        return ""
    content = message.get("content")
    if isinstance(content, list):
        content = "".join(str(part) for part in content if part is not None)
    if not isinstance(content, str):
        return ""
    return strip_think(content)


def extract_openai_text(payload: Any) -> str:
    if not isinstance(payload, dict):
        return ""
    output_text = payload.get("output_text")
    if isinstance(output_text, str) and output_text.strip():
        return output_text.strip()
    parts: List[str] = []
    for item in payload.get("output") or []:
        if not isinstance(item, dict):
            continue
        for content in item.get("content") or []:
            if isinstance(content, dict) and isinstance(content.get("text"), str):
                parts.append(content["text"])
    return "".join(parts).strip()


def extract_gemini_text(payload: Any) -> str:
    if not isinstance(payload, dict):
        return ""
    candidates = payload.get("candidates") or []
    if not candidates or not isinstance(candidates[0], dict):
        return ""
    content = candidates[0].get("content") or {}
    parts = content.get("parts") if isinstance(content, dict) else None
    texts = [
        part["text"]
        for part in parts or []
        if isinstance(part, dict) and isinstance(part.get("text"), str)
    ]
    return "".join(texts).strip()


__all__ = [
    "ProviderResult",
    "llm_timeout",
    "post_json",
    "call_ollama",
    "call_openai",
    "call_gemini",
    "strip_think",
    "extract_ollama_text",
    "extract_openai_text",
    "extract_gemini_text",
]

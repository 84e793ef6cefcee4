import pytest
import requests

from conftest import FakeResponse
from engines import providers


def test_ollama_call_posts_once_with_timeout(fake_post, monkeypatch):
    monkeypatch.setenv("LLM_TIMEOUT", "12.5")
    recorder = fake_post(FakeResponse(200, {"message": {"content": "hi"}}))

    result = providers.call_ollama(
        [{"role": "user", "content": "hello"}],
        url="http://localhost:11434/api/chat",
        model="llama3.2",
        temperature=0.4,
    )

    assert result.ok
    assert result.payload == {"message": {"content": "hi"}}
    assert len(recorder.calls) == 1
    call = recorder.calls[0]
    assert call["url"] == "http://localhost:11434/api/chat"
    assert call["timeout"] == 12.5
    assert call["json"] == {
        "model": "llama3.2",
        "messages": [{"role": "user", "content": "hello"}],
        "stream": False,
        "options": {"temperature": 0.4},
    }


def test_default_timeout_when_env_missing_or_invalid(fake_post, monkeypatch):
    monkeypatch.setenv("LLM_TIMEOUT", "soon")
    recorder = fake_post(FakeResponse(200, {}))
    providers.call_ollama([], url="http://x/api/chat", model="m")
    assert recorder.calls[0]["timeout"] == providers.DEFAULT_TIMEOUT_SECONDS


def test_openai_call_uses_bearer_header(fake_post):
    recorder = fake_post(FakeResponse(200, {"output_text": "ok"}))

    providers.call_openai("persona", "Athlete: hi\n\nCoach:", api_key="sk-test", model="gpt-4o-mini")

    call = recorder.calls[0]
    assert call["url"] == providers.OPENAI_RESPONSES_URL
    assert call["headers"] == {"Authorization": "Bearer sk-test"}
    assert call["json"]["instructions"] == "persona"
    assert call["json"]["input"] == "Athlete: hi\n\nCoach:"
    assert call["json"]["max_output_tokens"] == 350


def test_gemini_call_builds_model_url(fake_post):
    recorder = fake_post(FakeResponse(200, {"candidates": []}))

    providers.call_gemini("prompt text", api_key="g-key", model="gemini-test", temperature=0.2)

    call = recorder.calls[0]
    assert call["url"].endswith("/models/gemini-test:generateContent")
    assert call["headers"] == {"x-goog-api-key": "g-key"}
    assert call["json"]["contents"] == [{"parts": [{"text": "prompt text"}]}]
    assert call["json"]["generationConfig"]["temperature"] == 0.2


def test_http_error_is_reported_not_raised(fake_post):
    fake_post(FakeResponse(502, text="bad gateway"))

    result = providers.call_ollama([], url="http://x/api/chat", model="m")

    assert not result.ok
    assert result.status_code == 502
    assert result.error.startswith("HTTP 502")
    assert result.payload is None


def test_transport_error_is_reported_not_raised(fake_post):
    fake_post(requests.ConnectionError("connection refused"))

    result = providers.call_ollama([], url="http://x/api/chat", model="m")

    assert not result.ok
    assert result.status_code is None
    assert "ConnectionError" in result.error


def test_non_json_body_is_reported(fake_post):
    fake_post(FakeResponse(200, payload=None, text="<html>"))
    result = providers.call_ollama([], url="http://x/api/chat", model="m")
    assert not result.ok
    assert "invalid JSON" in result.error


def test_llm_logger_emits_json_line(fake_post, monkeypatch):
    lines = []
    monkeypatch.setattr(providers._LLM_LOGGER, "info", lambda message: lines.append(message))
    fake_post(FakeResponse(200, {"message": {"content": "x"}}))

    providers.call_ollama([], url="http://x/api/chat", model="llama3.2")

    assert len(lines) == 1
    assert '"event": "llm_call"' in lines[0]
    assert '"provider": "ollama"' in lines[0]


@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"message": {"content": "  Keep your hips down.  "}}, "Keep your hips down."),
        ({"message": {"content": ["Keep ", "moving"]}}, "Keep moving"),
        ({"message": "plain string"}, "plain string"),
        ({"message": {"content": "<think>plan</think>Hand fight first."}}, "Hand fight first."),
        ({"message": {}}, ""),
        ({"done": True}, ""),
        ("not a dict", ""),
    ],
)
def test_extract_ollama_text(payload, expected):
    assert providers.extract_ollama_text(payload) == expected


def test_extract_openai_text_prefers_output_text():
    assert providers.extract_openai_text({"output_text": " Drill it. "}) == "Drill it."


def test_extract_openai_text_joins_output_parts():
    payload = {
        "output": [
            {"type": "message", "content": [{"type": "output_text", "text": "Stay "}, {"text": "low."}]},
            "ignored",
        ]
    }
    assert providers.extract_openai_text(payload) == "Stay low."


def test_extract_gemini_text():
    payload = {"candidates": [{"content": {"parts": [{"text": "Sprawl "}, {"text": "hard."}]}}]}
    assert providers.extract_gemini_text(payload) == "Sprawl hard."
    assert providers.extract_gemini_text({"candidates": []}) == ""

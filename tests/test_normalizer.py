import json
import logging

from engines import normalizer
from engines.providers import ProviderResult, extract_ollama_text


def _ok(content):
    return ProviderResult(provider="ollama", model="llama3.2", payload={"message": {"content": content}}, status_code=200)


def _failed(error="ConnectionError: connection refused"):
    return ProviderResult(provider="ollama", model="llama3.2", error=error)


def _question(prompt="Q1", correct=2, options=None, explanation="e"):
    return {
        "prompt": prompt,
        "options": options if options is not None else ["a", "b", "c", "d"],
        "correctIndex": correct,
        "explanation": explanation,
    }


# ---------- chat ----------


def test_chat_uses_provider_text():
    reply = normalizer.normalize_chat_response(_ok("  Drill your stand-up.  "), "bottom help", extract_ollama_text)
    assert reply.text == "Drill your stand-up."
    assert reply.is_offline is False


def test_chat_transport_error_goes_offline(caplog):
    with caplog.at_level(logging.WARNING, logger="engines.normalizer"):
        reply = normalizer.normalize_chat_response(_failed(), "I gas out in the 3rd period", extract_ollama_text)

    assert reply.is_offline is True
    assert reply.text.startswith("Gassing out in the 3rd")
    assert any("offline coach reply" in record.getMessage() for record in caplog.records)


def test_chat_empty_completion_is_treated_as_failure():
    reply = normalizer.normalize_chat_response(_ok("   "), "I get ridden out on bottom", extract_ollama_text)
    assert reply.is_offline is True
    assert "bottom work" in reply.text


def test_chat_payload_without_text_field_falls_back():
    result = ProviderResult(provider="ollama", model="llama3.2", payload={"done": True}, status_code=200)
    reply = normalizer.normalize_chat_response(result, None, extract_ollama_text)
    assert reply.is_offline is True
    assert reply.text


def test_chat_extractor_errors_do_not_escape():
    def broken(_payload):
        raise KeyError("choices")

    reply = normalizer.normalize_chat_response(_ok("ignored"), "", broken)
    assert reply.is_offline is True
    assert reply.text


# ---------- quiz ----------


def test_quiz_extracts_array_from_surrounding_prose():
    text = (
        'Here are your questions: [ {"prompt":"Q1","options":["a","b","c","d"],'
        '"correctIndex":2,"explanation":"e"} ]'
    )
    batch = normalizer.normalize_quiz_response(_ok(text), "neutral", "Beginner", extract_ollama_text)

    assert batch.offline is False
    assert len(batch.questions) == 1
    assert batch.questions[0].correct_index == 2
    assert batch.questions[0].id == "ai-0"


def test_quiz_without_brackets_serves_fallback_batch():
    batch = normalizer.normalize_quiz_response(
        _ok("Sorry, I cannot do that."), "folkstyle top", "Intermediate", extract_ollama_text
    )

    assert batch.offline is True
    assert [question.id for question in batch.questions] == ["fb-0", "fb-1", "fb-2"]
    assert "folkstyle top" in batch.questions[0].prompt


def test_quiz_transport_error_serves_fallback_batch():
    batch = normalizer.normalize_quiz_response(_failed(), "neutral", "Beginner", extract_ollama_text)
    assert batch.offline is True
    assert [question.id for question in batch.questions] == ["fb-0", "fb-1", "fb-2"]


def test_quiz_reversed_brackets_and_bad_json_fall_back():
    for text in ("] nothing [", "[ not json ]", '[{"prompt": "Q1",]', "{\"questions\": []}"):
        batch = normalizer.normalize_quiz_response(_ok(text), "t", "d", extract_ollama_text)
        assert batch.offline is True, text
        assert len(batch.questions) == 3


def test_quiz_empty_array_falls_back():
    batch = normalizer.normalize_quiz_response(_ok("[]"), "t", "d", extract_ollama_text)
    assert batch.offline is True
    assert len(batch.questions) == 3


def test_quiz_drops_malformed_questions_and_renumbers():
    parsed = [
        _question(prompt="three options", options=["a", "b", "c"]),
        _question(prompt="good one", correct=0),
        _question(prompt="index out of range", correct=4),
        "not an object",
        _question(prompt="fractional index", correct=1.5),
        _question(prompt="second good", correct=3),
    ]
    batch = normalizer.normalize_quiz_response(_ok(json.dumps(parsed)), "t", "d", extract_ollama_text)

    assert batch.offline is False
    assert [question.prompt for question in batch.questions] == ["good one", "second good"]
    assert [question.id for question in batch.questions] == ["ai-0", "ai-1"]


def test_quiz_all_malformed_serves_whole_fallback_batch():
    parsed = [_question(correct=-1), _question(options=[])]
    batch = normalizer.normalize_quiz_response(_ok(json.dumps(parsed)), "t", "d", extract_ollama_text)

    assert batch.offline is True
    assert [question.id for question in batch.questions] == ["fb-0", "fb-1", "fb-2"]


def test_quiz_accepts_question_key_and_ignores_provider_ids():
    parsed = [
        {
            "id": "provider-7",
            "question": "Who has choice in the 2nd period?",
            "options": ["Ref", "Winner of the toss", "Loser of the toss", "Nobody"],
            "correctIndex": 1,
            "explanation": "The toss winner picks in the 2nd.",
        }
    ]
    batch = normalizer.normalize_quiz_response(_ok(json.dumps(parsed)), "rules", "Beginner", extract_ollama_text)

    assert batch.questions[0].id == "ai-0"
    assert batch.questions[0].prompt == "Who has choice in the 2nd period?"


def test_every_quiz_outcome_has_four_options_and_valid_index():
    outcomes = [
        _failed(),
        _ok(""),
        _ok("[1, 2, 3]"),
        _ok(json.dumps([_question()])),
    ]
    for result in outcomes:
        batch = normalizer.normalize_quiz_response(result, "t", "d", extract_ollama_text)
        assert batch.questions
        for question in batch.questions:
            assert len(question.options) == 4
            assert 0 <= question.correct_index <= 3


def test_quiz_deeply_nested_brackets_serve_fallback_batch():
    text = "[" * 200000 + "]" * 200000
    batch = normalizer.normalize_quiz_response(_ok(text), "t", "d", extract_ollama_text)

    assert batch.offline is True
    assert [question.id for question in batch.questions] == ["fb-0", "fb-1", "fb-2"]


def test_quiz_longer_than_requested_is_trimmed():
    parsed = [_question(prompt=f"Q{index}") for index in range(5)]
    batch = normalizer.normalize_quiz_response(
        _ok(json.dumps(parsed)), "t", "d", extract_ollama_text, count=2
    )

    assert batch.offline is False
    assert [question.prompt for question in batch.questions] == ["Q0", "Q1"]
    assert [question.id for question in batch.questions] == ["ai-0", "ai-1"]


def test_quiz_shorter_than_requested_is_kept():
    batch = normalizer.normalize_quiz_response(
        _ok(json.dumps([_question()])), "t", "d", extract_ollama_text, count=3
    )
    assert len(batch.questions) == 1
    assert batch.offline is False

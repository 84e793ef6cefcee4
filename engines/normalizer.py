"""Turn raw provider results into caller-facing chat replies and quiz batches.

Nothing raised by provider trouble or malformed completions escapes these
functions: every failure degrades to the offline fallback bank.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional

from pydantic import ValidationError

from engines.fallback_bank import fallback_questions, offline_coach_reply, select_fallback_bucket
from engines.providers import ProviderResult
from schemas import ChatReply, QuizBatch, QuizQuestion, find_json_array

logger = logging.getLogger(__name__)

TextExtractor = Callable[[Any], str]


def _safe_extract(result: ProviderResult, extract_text: TextExtractor) -> str:
    if not result.ok:
        return ""
    try:
        text = extract_text(result.payload)
    except (AttributeError, IndexError, KeyError, TypeError, ValueError) as exc:
        logger.warning("Could not read %s completion: %s", result.provider, exc)
        return ""
    return text.strip() if isinstance(text, str) else ""


def normalize_chat_response(
    result: ProviderResult,
    user_message: Optional[str],
    extract_text: TextExtractor,
) -> ChatReply:
    text = _safe_extract(result, extract_text)
    if text:
        return ChatReply(text=text, is_offline=False)

    bucket = select_fallback_bucket(user_message)
    logger.warning(
        "Serving offline coach reply (provider=%s, bucket=%s, reason=%s)",
        result.provider,
        bucket,
        result.error or "empty completion",
    )
    return ChatReply(text=offline_coach_reply(user_message), is_offline=True)


def fallback_batch(topic: str, difficulty: str) -> QuizBatch:
    questions = [
        QuizQuestion.model_validate({**raw, "id": f"fb-{index}"})
        for index, raw in enumerate(fallback_questions(topic, difficulty))
    ]
    return QuizBatch(questions=questions, offline=True)


def validate_questions(parsed: List[Any]) -> List[QuizQuestion]:
    """Keep the elements that satisfy the full question shape, renumbered ``ai-<n>``."""

    valid: List[QuizQuestion] = []
    for position, element in enumerate(parsed):
        if not isinstance(element, dict):
            logger.info("Dropping quiz element %d: not an object", position)
            continue
        candidate = {key: value for key, value in element.items() if key != "id"}
        try:
            question = QuizQuestion.model_validate(candidate)
        except ValidationError as exc:
            logger.info("Dropping quiz element %d: %s", position, exc.errors()[0].get("msg"))
            continue
        valid.append(question)
    return [
        question.model_copy(update={"id": f"ai-{index}"})
        for index, question in enumerate(valid)
    ]


def normalize_quiz_response(
    result: ProviderResult,
    topic: str,
    difficulty: str,
    extract_text: TextExtractor,
    count: Optional[int] = None,
) -> QuizBatch:
    """Provider batch trimmed to ``count`` questions, or the fallback batch."""

    if not result.ok:
        logger.warning("Serving fallback quiz: %s", result.error)
        return fallback_batch(topic, difficulty)

    text = _safe_extract(result, extract_text)
    parsed = find_json_array(text)
    if not parsed:
        logger.warning(
            "Serving fallback quiz: no usable JSON array in %s completion (%d chars)",
            result.provider,
            len(text),
        )
        return fallback_batch(topic, difficulty)

    questions = validate_questions(parsed)
    if not questions:
        logger.warning("Serving fallback quiz: all %d parsed questions failed validation", len(parsed))
        return fallback_batch(topic, difficulty)
    if count and len(questions) > count:
        logger.info("Trimming quiz from %d to the %d requested questions", len(questions), count)
        questions = questions[:count]
    return QuizBatch(questions=questions, offline=False)


__all__ = [
    "normalize_chat_response",
    "normalize_quiz_response",
    "fallback_batch",
    "validate_questions",
]

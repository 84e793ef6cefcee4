# app.py - WrestleWell API v1.0.0
# - Coach chat over OpenAI, Gemini or a local Ollama model, with offline fallback text
# - WrestleIQ quiz generation with strict JSON-array validation
# - Per-device record slots for the training, check-in, goals, film and recruiting pages

import logging
import os
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, Optional

from fastapi import Body, FastAPI, HTTPException, Query
from pydantic import BaseModel, ValidationError

import coach
import db
from engines import normalizer, providers
from env_validation import get_env_float
from records import (
    RECORD_MODELS,
    SINGLETON_KINDS,
    RecordDecodeError,
    RecordNotFoundError,
    RecordStore,
    apply_quiz_answer,
    email_matches,
    film_summary,
    goal_quote,
    progress_view,
    split_goals,
    stamp_login,
    weekly_training_summary,
)
from schemas import (
    CoachChatBody,
    GoalPlanBody,
    LocalChatBody,
    LoginBody,
    QuizAnswerBody,
    QuizBatch,
    QuizBody,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(_: FastAPI):
    try:
        from env_validation import validate_environment
        validate_environment()

        configured_path = os.getenv("DB_PATH", db.DB_PATH)
        if configured_path != db.DB_PATH:
            db.configure(configured_path)
        db.init()
        logger.info(
            "Providers: local=%s (%s) openai=%s gemini=%s timeout=%.1fs",
            coach.LOCAL_MODEL,
            coach.OLLAMA_URL,
            "configured" if os.getenv("OPENAI_API_KEY") else "missing key",
            "configured" if os.getenv("GEMINI_API_KEY") else "missing key",
            providers.llm_timeout(),
        )
        yield
    except Exception as e:
        logger.error("Failed to initialize application: %s", str(e), exc_info=True)
        raise


app = FastAPI(title="WrestleWell API", version="1.0.0", lifespan=_lifespan)


class ChatResult(BaseModel):
    reply: str
    offline: bool


def _chat_result(reply) -> ChatResult:
    return ChatResult(reply=reply.text, offline=reply.is_offline)


def _require_key(env_name: str, provider_label: str) -> str:
    api_key = os.getenv(env_name, "").strip()
    if not api_key:
        logger.error("AI coach error: %s is not set", env_name)
        raise HTTPException(
            status_code=500,
            detail=f"WrestleWell Coach is not configured yet (missing {provider_label} API key on the server).",
        )
    return api_key


def _require_message(body: CoachChatBody) -> str:
    message = body.message.strip()
    if not message:
        raise HTTPException(status_code=400, detail="Missing message")
    return message


# ---------- Coach chat ----------
@app.post("/api/ai-coach", response_model=ChatResult)
def ai_coach(body: CoachChatBody):
    api_key = _require_key("OPENAI_API_KEY", "OpenAI")
    message = _require_message(body)
    result = providers.call_openai(
        coach.HOSTED_COACH_PROMPT.system_template,
        coach.build_chat_input(message, body.history),
        api_key=api_key,
        model=coach.OPENAI_MODEL,
    )
    reply = normalizer.normalize_chat_response(result, message, providers.extract_openai_text)
    return _chat_result(reply)


@app.post("/api/ai-coach-gemini", response_model=ChatResult)
def ai_coach_gemini(body: CoachChatBody):
    api_key = _require_key("GEMINI_API_KEY", "Gemini")
    message = _require_message(body)
    result = providers.call_gemini(
        coach.build_chat_prompt(message, body.history),
        api_key=api_key,
        model=coach.GEMINI_MODEL_ID,
        temperature=get_env_float("LLM_TEMPERATURE", 0.7),
    )
    reply = normalizer.normalize_chat_response(result, message, providers.extract_gemini_text)
    return _chat_result(reply)


def _local_chat(message: str, history=None) -> ChatResult:
    result = providers.call_ollama(
        coach.build_local_chat_messages(message, history),
        url=coach.OLLAMA_URL,
        model=coach.LOCAL_MODEL,
        temperature=get_env_float("LLM_TEMPERATURE", 0.7),
    )
    reply = normalizer.normalize_chat_response(result, message, providers.extract_ollama_text)
    return _chat_result(reply)


@app.post("/api/ai-coach-local", response_model=ChatResult)
def ai_coach_local(body: LocalChatBody):
    return _local_chat(body.message, body.history)


@app.post("/api/goal-plan", response_model=ChatResult)
def goal_plan(body: GoalPlanBody):
    if not body.title.strip():
        raise HTTPException(status_code=400, detail="Goal title required")
    message = coach.build_goal_plan_message(body.title, body.why, body.timeframe, body.focus)
    return _local_chat(message)


# ---------- WrestleIQ ----------
@app.post("/api/wrestleiq-local", response_model=QuizBatch)
def wrestleiq_local(body: QuizBody):
    topic = body.resolved_topic
    difficulty = body.resolved_difficulty
    result = providers.call_ollama(
        coach.build_quiz_messages(topic, difficulty, body.count),
        url=coach.OLLAMA_URL,
        model=coach.LOCAL_MODEL,
        temperature=get_env_float("LLM_TEMPERATURE", 0.7),
    )
    return normalizer.normalize_quiz_response(
        result, topic, difficulty, providers.extract_ollama_text, count=body.count
    )


@app.get("/api/health")
def health():
    openai_present = bool(os.getenv("OPENAI_API_KEY", "").strip())
    gemini_present = bool(os.getenv("GEMINI_API_KEY", "").strip())
    return {
        "configured": openai_present or gemini_present,
        "openai_api_key_present": openai_present,
        "gemini_api_key_present": gemini_present,
        "local_provider_url": coach.OLLAMA_URL,
        "local_model": coach.LOCAL_MODEL,
    }


# ---------- Records ----------
def _store(device_id: Optional[str]) -> RecordStore:
    if not device_id or not device_id.strip():
        raise HTTPException(status_code=400, detail="device_id required")
    return RecordStore(device_id)


def _check_kind(kind: str) -> None:
    if kind not in RECORD_MODELS:
        raise HTTPException(status_code=404, detail=f"unknown record kind '{kind}'")


def _load(store: RecordStore, kind: str) -> list:
    try:
        return store.load(kind)
    except RecordDecodeError as exc:
        raise HTTPException(status_code=409, detail=f"stored {kind} could not be read: {exc}") from exc


def _parse_record(kind: str, payload: dict[str, Any]):
    try:
        return RECORD_MODELS[kind].model_validate(payload)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.errors(include_url=False, include_context=False)) from exc


def _dump(records) -> list[dict[str, Any]]:
    return [record.model_dump(mode="json") for record in records]


@app.get("/api/records")
def records_export(device_id: Optional[str] = None):
    store = _store(device_id)
    try:
        return store.export()
    except RecordDecodeError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@app.get("/api/records/{kind}")
def records_list(kind: str, device_id: Optional[str] = None):
    _check_kind(kind)
    return _dump(_load(_store(device_id), kind))


@app.post("/api/records/{kind}")
def records_add(kind: str, device_id: Optional[str] = None, payload: dict[str, Any] = Body(...)):
    _check_kind(kind)
    if kind in SINGLETON_KINDS:
        raise HTTPException(status_code=400, detail=f"{kind} holds a single record")
    store = _store(device_id)
    record = _parse_record(kind, payload)
    _load(store, kind)
    return _dump(store.add(kind, record))


@app.put("/api/records/{kind}/{record_id}")
def records_replace(kind: str, record_id: str, device_id: Optional[str] = None, payload: dict[str, Any] = Body(...)):
    _check_kind(kind)
    store = _store(device_id)
    record = _parse_record(kind, {**payload, "id": record_id})
    _load(store, kind)
    try:
        return _dump(store.replace(kind, record))
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=404, detail=f"{kind} record '{record_id}' not found") from exc


@app.delete("/api/records/{kind}/{record_id}")
def records_delete(kind: str, record_id: str, device_id: Optional[str] = None):
    _check_kind(kind)
    store = _store(device_id)
    _load(store, kind)
    try:
        return _dump(store.remove(kind, record_id))
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=404, detail=f"{kind} record '{record_id}' not found") from exc


@app.get("/api/profile")
def profile_get(device_id: Optional[str] = None):
    store = _store(device_id)
    _load(store, "recruiting")
    profile = store.get_single("recruiting")
    return profile.model_dump(mode="json") if profile else None


@app.put("/api/profile")
def profile_put(device_id: Optional[str] = None, payload: dict[str, Any] = Body(...)):
    store = _store(device_id)
    _load(store, "recruiting")
    record = _parse_record("recruiting", payload)
    return store.put_single("recruiting", record).model_dump(mode="json")


# ---------- Device account ----------
@app.get("/api/user")
def user_get(device_id: Optional[str] = None):
    store = _store(device_id)
    _load(store, "user")
    user = store.get_single("user")
    return user.model_dump(mode="json") if user else None


@app.put("/api/user")
def user_register(device_id: Optional[str] = None, payload: dict[str, Any] = Body(...)):
    store = _store(device_id)
    _load(store, "user")
    user = stamp_login(_parse_record("user", {**payload, "last_login": None}))
    return store.put_single("user", user).model_dump(mode="json")


@app.post("/api/user/login")
def user_login(body: LoginBody, device_id: Optional[str] = None):
    store = _store(device_id)
    _load(store, "user")
    user = store.get_single("user")
    if user is None:
        raise HTTPException(status_code=404, detail="No WrestleWell profile is saved on this device yet")
    if not body.email.strip():
        raise HTTPException(status_code=400, detail="Email required")
    if not email_matches(user, body.email):
        logger.info("Login email mismatch for device %s", store.device_id)
        raise HTTPException(status_code=401, detail="Email does not match the profile saved on this device")
    return store.put_single("user", stamp_login(user)).model_dump(mode="json")


# ---------- Summaries ----------
@app.get("/api/summary/training")
def summary_training(device_id: Optional[str] = None, today: Optional[date] = Query(default=None)):
    store = _store(device_id)
    sessions = _load(store, "sessions")
    return weekly_training_summary(sessions, today or date.today())


@app.get("/api/summary/film")
def summary_film(device_id: Optional[str] = None):
    store = _store(device_id)
    return film_summary(_load(store, "film"))


@app.get("/api/summary/goals")
def summary_goals(device_id: Optional[str] = None):
    store = _store(device_id)
    split = split_goals(_load(store, "goals"))
    active = split["active"]
    return {
        "active": _dump(active),
        "done": _dump(split["done"]),
        "quote": goal_quote(active[0].focus if active else None),
    }


@app.get("/api/wrestleiq/progress")
def wrestleiq_progress(device_id: Optional[str] = None):
    store = _store(device_id)
    _load(store, "quiz_progress")
    return progress_view(store.get_single("quiz_progress"))


@app.post("/api/wrestleiq/progress")
def wrestleiq_answer(body: QuizAnswerBody, device_id: Optional[str] = None):
    store = _store(device_id)
    _load(store, "quiz_progress")
    updated = apply_quiz_answer(store.get_single("quiz_progress"), body.correct)
    store.put_single("quiz_progress", updated)
    return progress_view(updated)

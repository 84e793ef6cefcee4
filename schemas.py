"""Pydantic schemas for request bodies, normalized model outputs and stored records."""

from __future__ import annotations

import json
from datetime import date as date_type, datetime, timezone
from typing import Any, List, Literal, Optional
from uuid import uuid4

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationInfo, field_validator

__all__ = [
    "ChatTurn",
    "CoachChatBody",
    "LocalChatBody",
    "QuizBody",
    "GoalPlanBody",
    "ChatReply",
    "QuizQuestion",
    "QuizBatch",
    "TrainingSession",
    "CheckIn",
    "Goal",
    "FilmClip",
    "RecruitingProfile",
    "UserProfile",
    "LoginBody",
    "QuizProgress",
    "QuizAnswerBody",
    "find_json_array",
]

DEFAULT_QUIZ_TOPIC = "folkstyle neutral"
DEFAULT_QUIZ_DIFFICULTY = "Intermediate"
DEFAULT_QUIZ_COUNT = 3


def _new_id() -> str:
    return uuid4().hex[:12]


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------- request bodies ----------


class ChatTurn(BaseModel):
    role: Literal["user", "coach"]
    text: str = ""


class CoachChatBody(BaseModel):
    """Body for the hosted coach endpoints."""

    message: str = ""
    history: List[ChatTurn] = Field(default_factory=list)


class LocalChatBody(BaseModel):
    message: str = ""
    history: List[ChatTurn] = Field(default_factory=list)


class QuizBody(BaseModel):
    topic: str = ""
    difficulty: str = ""
    count: int = Field(default=DEFAULT_QUIZ_COUNT, ge=1, le=10)

    @property
    def resolved_topic(self) -> str:
        return self.topic.strip() or DEFAULT_QUIZ_TOPIC

    @property
    def resolved_difficulty(self) -> str:
        return self.difficulty.strip() or DEFAULT_QUIZ_DIFFICULTY


class GoalPlanBody(BaseModel):
    title: str = Field(min_length=1)
    why: str = ""
    timeframe: Literal["this_week", "this_month", "season"] = "this_week"
    focus: Literal["mat", "lift", "mental", "school", "life"] = "mat"


class QuizAnswerBody(BaseModel):
    correct: bool


class LoginBody(BaseModel):
    email: str = ""


# ---------- normalized provider output ----------


class ChatReply(BaseModel):
    text: str = Field(min_length=1)
    is_offline: bool = False


class QuizQuestion(BaseModel):
    """One multiple-choice question; validated strictly before reaching a caller."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    prompt: str = Field(
        min_length=1,
        validation_alias=AliasChoices("prompt", "question"),
        serialization_alias="prompt",
    )
    options: List[str] = Field(min_length=4, max_length=4)
    correct_index: int = Field(
        ge=0,
        le=3,
        validation_alias=AliasChoices("correctIndex", "correct_index"),
        serialization_alias="correctIndex",
    )
    explanation: str = ""

    @field_validator("prompt")
    @classmethod
    def _prompt_not_blank(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("prompt must not be blank")
        return cleaned

    @field_validator("options")
    @classmethod
    def _options_not_blank(cls, value: List[str]) -> List[str]:
        cleaned = [option.strip() for option in value]
        if any(not option for option in cleaned):
            raise ValueError("options must be non-empty strings")
        return cleaned

    @field_validator("correct_index", mode="before")
    @classmethod
    def _reject_non_integer_index(cls, value: Any) -> Any:
        # bool is an int subclass and floats like 1.5 would otherwise be coerced.
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError("correctIndex must be an integer")
        return value

    @field_validator("explanation", mode="before")
    @classmethod
    def _explanation_text(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip()


class QuizBatch(BaseModel):
    questions: List[QuizQuestion] = Field(min_length=1)
    offline: bool = False


# ---------- stored per-device records ----------


class TrainingSession(BaseModel):
    id: str = Field(default_factory=_new_id)
    date: date_type
    type: Literal["practice", "match", "lift", "conditioning"] = "practice"
    style: Literal["folkstyle", "freestyle", "greco", "other"] = "folkstyle"
    duration_minutes: Optional[int] = Field(default=None, ge=0)
    focus: str = ""
    intensity: int = Field(default=3, ge=1, le=5)
    mood: Optional[Literal["locked-in", "confident", "tired", "stressed", "beat-up"]] = None
    notes: str = ""


class CheckIn(BaseModel):
    id: str = Field(default_factory=_new_id)
    date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    mood: Literal["Great", "Okay", "Tired", "Stressed"] = "Okay"
    stress: int = Field(default=5, ge=1, le=10)
    sleep_hours: str = ""
    weight: str = ""
    note: str = ""


class Goal(BaseModel):
    id: str = Field(default_factory=_new_id)
    title: str = Field(min_length=1)
    why: str = ""
    timeframe: Literal["this_week", "this_month", "season"] = "this_week"
    focus: Literal["mat", "lift", "mental", "school", "life"] = "mat"
    status: Literal["active", "done"] = "active"
    created_at: str = Field(default_factory=_utc_now_iso)
    updated_at: str = Field(default_factory=_utc_now_iso)


class FilmClip(BaseModel):
    id: str = Field(default_factory=_new_id)
    date: str
    opponent: Optional[str] = None
    event_name: Optional[str] = None
    result: Literal["win", "loss", "close", "unknown"] = "unknown"
    position: Optional[Literal["neutral", "top", "bottom", "scramble"]] = None
    focus: Optional[Literal["attack", "defense", "ride", "escape", "scramble", "mindset"]] = None
    period_or_time: Optional[str] = None
    what_happened: Optional[str] = None
    what_to_work_on: Optional[str] = None
    talked_with_coach: bool = False
    created_at: str = Field(default_factory=_utc_now_iso)


class RecruitingProfile(BaseModel):
    id: str = "profile"
    name: str = ""
    grad_year: str = ""
    weight_class: str = ""
    style: str = ""
    school: str = ""
    city_state: str = ""
    email: str = ""
    gpa: str = ""
    test_scores: str = ""
    major_interest: str = ""
    record: str = ""
    accomplishments: str = ""
    goals: str = ""
    video_url: str = ""
    social: str = ""


class UserProfile(BaseModel):
    """The device's account record; grad year is only kept for athletes."""

    id: str = "user"
    name: str = "Athlete"
    email: str = ""
    role: Literal["athlete", "coach", "parent", "ref"] = "athlete"
    grad_year: Optional[str] = None
    last_login: Optional[str] = None

    @field_validator("name", "email", mode="before")
    @classmethod
    def _strip_text(cls, value: Any) -> str:
        return str(value or "").strip()

    @field_validator("name")
    @classmethod
    def _default_name(cls, value: str) -> str:
        return value or "Athlete"

    @field_validator("grad_year", mode="before")
    @classmethod
    def _athlete_grad_year(cls, value: Any, info: ValidationInfo) -> Optional[str]:
        if info.data.get("role") != "athlete" or value is None:
            return None
        return str(value).strip() or None


class QuizProgress(BaseModel):
    id: str = "progress"
    xp: int = Field(default=0, ge=0)
    total_answered: int = Field(default=0, ge=0)
    total_correct: int = Field(default=0, ge=0)


# ---------- helpers ----------


def find_json_array(text: str) -> Optional[List[Any]]:
    """Return the JSON array spanning the first ``[`` to the last ``]`` in ``text``.

    ``None`` means there was no bracket pair, the slice was not valid JSON, or
    the parsed value was not a list.
    """

    if not text:
        return None
    start = text.find("[")
    end = text.rfind("]")
    if start == -1 or end == -1 or end <= start:
        return None
    try:
        parsed = json.loads(text[start : end + 1])
    except (ValueError, TypeError, RecursionError):
        return None
    if not isinstance(parsed, list):
        return None
    return parsed

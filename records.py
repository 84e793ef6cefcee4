"""Per-device record storage and the small aggregations the pages show.

Each record kind lives in one storage slot per device as a versioned JSON
envelope::

    {"schema_version": 1, "kind": "sessions", "records": [...]}

Decoding validates the envelope and every record; structurally invalid data is
reported through :class:`DecodeResult` instead of being patched with defaults.
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Type

from pydantic import BaseModel, ValidationError

import db
from schemas import (
    CheckIn,
    FilmClip,
    Goal,
    QuizProgress,
    RecruitingProfile,
    TrainingSession,
    UserProfile,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

RECORD_MODELS: Dict[str, Type[BaseModel]] = {
    "sessions": TrainingSession,
    "check_ins": CheckIn,
    "goals": Goal,
    "film": FilmClip,
    "recruiting": RecruitingProfile,
    "quiz_progress": QuizProgress,
    "user": UserProfile,
}

SINGLETON_KINDS = frozenset({"recruiting", "quiz_progress", "user"})


class UnknownRecordKindError(KeyError):
    """Raised for a record kind with no registered model."""


class RecordDecodeError(ValueError):
    """Raised when a stored slot cannot be decoded into its record models."""


class RecordNotFoundError(KeyError):
    """Raised when no stored record carries the requested id."""


@dataclass(frozen=True)
class DecodeResult:
    ok: bool
    records: Tuple[BaseModel, ...] = ()
    error: Optional[str] = None


def _model_for(kind: str) -> Type[BaseModel]:
    try:
        return RECORD_MODELS[kind]
    except KeyError:
        raise UnknownRecordKindError(kind) from None


def encode_records(kind: str, records: Iterable[BaseModel]) -> str:
    _model_for(kind)
    envelope = {
        "schema_version": SCHEMA_VERSION,
        "kind": kind,
        "records": [record.model_dump(mode="json") for record in records],
    }
    return db.json_dumps(envelope)


def decode_records(kind: str, raw: Optional[str]) -> DecodeResult:
    """Decode one slot. An absent slot is an empty, successful result."""

    model = _model_for(kind)
    if raw is None:
        return DecodeResult(ok=True)
    try:
        envelope = json.loads(raw)
    except (TypeError, ValueError) as exc:
        return DecodeResult(ok=False, error=f"slot is not valid JSON: {exc}")
    if not isinstance(envelope, dict):
        return DecodeResult(ok=False, error="slot envelope must be an object")
    version = envelope.get("schema_version")
    if version != SCHEMA_VERSION:
        return DecodeResult(ok=False, error=f"unsupported schema_version {version!r}")
    if envelope.get("kind") != kind:
        return DecodeResult(ok=False, error=f"slot holds {envelope.get('kind')!r}, expected {kind!r}")
    items = envelope.get("records")
    if not isinstance(items, list):
        return DecodeResult(ok=False, error="records must be a list")

    decoded: List[BaseModel] = []
    for index, item in enumerate(items):
        try:
            decoded.append(model.model_validate(item))
        except ValidationError as exc:
            first = exc.errors()[0]
            location = ".".join(str(part) for part in first.get("loc", ()))
            return DecodeResult(
                ok=False,
                error=f"record {index} invalid at {location or '<root>'}: {first.get('msg')}",
            )
    return DecodeResult(ok=True, records=tuple(decoded))


class RecordStore:
    """Repository for one device's records, backed by the slot table in ``db``."""

    def __init__(self, device_id: str, db_module=db):
        if not device_id or not device_id.strip():
            raise ValueError("device_id required")
        self.device_id = device_id.strip()
        self._db = db_module

    def load(self, kind: str) -> List[BaseModel]:
        result = decode_records(kind, self._db.read_slot(self.device_id, kind))
        if not result.ok:
            logger.warning("Slot %s for device %s failed to decode: %s", kind, self.device_id, result.error)
            raise RecordDecodeError(result.error)
        return list(result.records)

    def save(self, kind: str, records: Sequence[BaseModel]) -> None:
        self._db.write_slot(self.device_id, kind, encode_records(kind, records))

    def add(self, kind: str, record: BaseModel) -> List[BaseModel]:
        """Prepend ``record`` so lists stay newest-first."""
        if kind in SINGLETON_KINDS:
            raise ValueError(f"{kind} holds a single record; use put_single")
        records = [record] + [existing for existing in self.load(kind) if existing.id != record.id]
        self.save(kind, records)
        return records

    def replace(self, kind: str, record: BaseModel) -> List[BaseModel]:
        records = self.load(kind)
        for index, existing in enumerate(records):
            if existing.id == record.id:
                records[index] = record
                self.save(kind, records)
                return records
        raise RecordNotFoundError(record.id)

    def remove(self, kind: str, record_id: str) -> List[BaseModel]:
        records = self.load(kind)
        remaining = [record for record in records if record.id != record_id]
        if len(remaining) == len(records):
            raise RecordNotFoundError(record_id)
        self.save(kind, remaining)
        return remaining

    def get_single(self, kind: str) -> Optional[BaseModel]:
        records = self.load(kind)
        return records[0] if records else None

    def put_single(self, kind: str, record: BaseModel) -> BaseModel:
        if kind not in SINGLETON_KINDS:
            raise ValueError(f"{kind} holds a list of records; use add")
        self.save(kind, [record])
        return record

    def clear(self, kind: str) -> None:
        _model_for(kind)
        self._db.delete_slot(self.device_id, kind)

    def export(self) -> Dict[str, List[Dict[str, Any]]]:
        """Every decodable slot for the device, keyed by kind."""
        exported: Dict[str, List[Dict[str, Any]]] = {}
        for kind in self._db.list_slots(self.device_id):
            if kind not in RECORD_MODELS:
                continue
            exported[kind] = [record.model_dump(mode="json") for record in self.load(kind)]
        return exported


# ---------- training & mood aggregations ----------

MOOD_LABELS = {
    "locked-in": "Locked in",
    "confident": "Confident",
    "tired": "Tired",
    "stressed": "Stressed",
    "beat-up": "Beat up",
}

_HEAVY_MOODS = ("tired", "stressed", "beat-up")
_POSITIVE_MOODS = ("locked-in", "confident")

_MOOD_QUOTES: Dict[Optional[str], Tuple[str, str]] = {
    "locked-in": (
        "Trust your preparation.",
        "You've stacked work day after day. Breathe, clear your head, and let the reps you've already done take over.",
    ),
    "confident": (
        "Stay humble, stay sharp.",
        "Confidence is earned. Keep your edge by doing the little things right: stance, motion, hand fight, breathe.",
    ),
    "tired": (
        "Tired doesn't mean done.",
        "Some of your best growth happens when you're tired and still move your feet. But rest is part of the "
        "plan too: sleep, hydrate, refuel.",
    ),
    "stressed": (
        "One position at a time.",
        "When your mind is crowded, zoom in. Bottom: one good first move. Neutral: one strong tie. You don't "
        "have to win the whole season tonight.",
    ),
    "beat-up": (
        "Listen to your body.",
        "Toughness isn't ignoring pain forever. Smart wrestlers recover, take lighter days when needed, and come "
        "back sharper.",
    ),
    None: (
        "Show up, even on average days.",
        "Not every session is a highlight. Showing up on the ordinary days is what separates good from great.",
    ),
}


def sessions_in_window(
    sessions: Iterable[TrainingSession],
    today: date,
    days: int = 7,
) -> List[TrainingSession]:
    start = today - timedelta(days=days - 1)
    return [session for session in sessions if start <= session.date <= today]


def mood_tally(sessions: Iterable[TrainingSession]) -> Dict[str, int]:
    counts = {mood: 0 for mood in MOOD_LABELS}
    for session in sessions:
        if session.mood in counts:
            counts[session.mood] += 1
    return counts


def mood_summary(sessions: Sequence[TrainingSession]) -> str:
    if not sessions:
        return (
            "No mood check-ins logged yet. Once the athlete logs how they feel, you'll see simple trends here."
        )
    counts = mood_tally(sessions)
    if sum(counts.values()) == 0:
        return (
            "Mood hasn't been logged on recent sessions. Encourage the athlete to use it as a quick, honest check-in."
        )
    heavy = sum(counts[mood] for mood in _HEAVY_MOODS)
    positive = sum(counts[mood] for mood in _POSITIVE_MOODS)
    if heavy > positive and heavy >= 3:
        return (
            "There have been more tired, stressed, or beat-up days than confident ones this week. It might be "
            "worth asking how they're feeling and whether rest, recovery, or support would help."
        )
    if positive >= heavy and positive >= 3:
        return (
            "Most recorded days this week have been locked in or confident. Keep encouraging healthy routines "
            "(sleep, nutrition, and recovery) to sustain that."
        )
    return (
        "Mood check-ins have been a mix. Use them as a cue to ask open-ended questions about how training and "
        "school life are feeling."
    )


def quote_for_mood(mood: Optional[str]) -> Dict[str, str]:
    title, body = _MOOD_QUOTES.get(mood, _MOOD_QUOTES[None])
    return {"title": title, "body": body}


def latest_mood(sessions: Sequence[TrainingSession]) -> Optional[str]:
    """Mood of the newest session that logged one; ``sessions`` is newest-first."""
    for session in sessions:
        if session.mood:
            return session.mood
    return None


def weekly_training_summary(sessions: Sequence[TrainingSession], today: date) -> Dict[str, Any]:
    recent = sessions_in_window(sessions, today)
    average_intensity = (
        round(sum(session.intensity for session in recent) / len(recent), 1) if recent else None
    )
    mood = latest_mood(sessions)
    return {
        "window_start": (today - timedelta(days=6)).isoformat(),
        "window_end": today.isoformat(),
        "total": len(recent),
        "mat": sum(1 for session in recent if session.type in ("practice", "match")),
        "lift": sum(1 for session in recent if session.type == "lift"),
        "average_intensity": average_intensity,
        "mood_counts": mood_tally(recent),
        "mood_summary": mood_summary(recent),
        "latest_mood": mood,
        "latest_mood_label": MOOD_LABELS.get(mood) if mood else None,
        "quote": quote_for_mood(mood),
    }


# ---------- film, goals, quiz progress ----------

FILM_FOCUS_LABELS = {
    "attack": "Attack",
    "defense": "Defense",
    "ride": "Ride / top",
    "escape": "Escape / bottom",
    "scramble": "Scramble",
    "mindset": "Mindset",
}


def most_common_film_focus(clips: Iterable[FilmClip]) -> Optional[str]:
    """Most frequent clip focus; ties go to the focus seen first."""
    counts = Counter(clip.focus for clip in clips if clip.focus)
    if not counts:
        return None
    return counts.most_common(1)[0][0]


def film_summary(clips: Sequence[FilmClip]) -> Dict[str, Any]:
    focus = most_common_film_focus(clips)
    return {
        "total": len(clips),
        "talked_with_coach": sum(1 for clip in clips if clip.talked_with_coach),
        "most_common_focus": focus,
        "most_common_focus_label": FILM_FOCUS_LABELS.get(focus) if focus else None,
    }


_GOAL_QUOTES = {
    "mat": "Win the position, and the points will follow.",
    "lift": "Strong hips and strong habits both come from showing up when you're tired.",
    "mental": "You can't always control the result, but you can always control your effort and your response.",
    "school": "Handle your business in the classroom and the mat will feel lighter.",
    "life": "Small, consistent choices stack into big changes over a season.",
}


def goal_quote(focus: Optional[str]) -> str:
    return _GOAL_QUOTES.get(focus or "", _GOAL_QUOTES["mat"])


def split_goals(goals: Iterable[Goal]) -> Dict[str, List[Goal]]:
    split: Dict[str, List[Goal]] = {"active": [], "done": []}
    for goal in goals:
        split[goal.status].append(goal)
    return split


XP_CORRECT = 20
XP_ATTEMPT = 5


def xp_to_level(xp: int) -> Dict[str, Any]:
    if xp < 200:
        return {"level": "Beginner", "progress": xp / 200}
    if xp < 600:
        return {"level": "Intermediate", "progress": (xp - 200) / 400}
    return {"level": "Advanced", "progress": min((xp - 600) / 600, 1.0)}


def apply_quiz_answer(progress: Optional[QuizProgress], correct: bool) -> QuizProgress:
    current = progress or QuizProgress()
    return current.model_copy(
        update={
            "xp": current.xp + (XP_CORRECT if correct else XP_ATTEMPT),
            "total_answered": current.total_answered + 1,
            "total_correct": current.total_correct + (1 if correct else 0),
        }
    )


def progress_view(progress: Optional[QuizProgress]) -> Dict[str, Any]:
    current = progress or QuizProgress()
    return {**current.model_dump(mode="json"), **xp_to_level(current.xp)}


# ---------- device account ----------


def email_matches(profile: UserProfile, email: Optional[str]) -> bool:
    """Case-insensitive match against the saved email; an empty saved email never matches."""
    saved = profile.email.strip().lower()
    return bool(saved) and saved == (email or "").strip().lower()


def stamp_login(profile: UserProfile, when: Optional[datetime] = None) -> UserProfile:
    moment = when or datetime.now(timezone.utc)
    return profile.model_copy(update={"last_login": moment.isoformat()})


__all__ = [
    "SCHEMA_VERSION",
    "RECORD_MODELS",
    "SINGLETON_KINDS",
    "DecodeResult",
    "RecordStore",
    "RecordDecodeError",
    "RecordNotFoundError",
    "UnknownRecordKindError",
    "encode_records",
    "decode_records",
    "mood_tally",
    "mood_summary",
    "quote_for_mood",
    "weekly_training_summary",
    "most_common_film_focus",
    "film_summary",
    "goal_quote",
    "split_goals",
    "xp_to_level",
    "apply_quiz_answer",
    "progress_view",
    "email_matches",
    "stamp_login",
]

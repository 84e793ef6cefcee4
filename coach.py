import os
from typing import Any, Dict, List, Mapping, Optional, Sequence

from prompts.masterprompts import CoachPrompt, get_prompt
from schemas import DEFAULT_QUIZ_COUNT, DEFAULT_QUIZ_DIFFICULTY, DEFAULT_QUIZ_TOPIC

# --------- Providers from environment ---------
LOCAL_MODEL = os.getenv("LOCAL_MODEL", "llama3.2")
OLLAMA_URL = os.getenv("OLLAMA_URL", "http://localhost:11434/api/chat")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
GEMINI_MODEL_ID = os.getenv("GEMINI_MODEL_ID", "gemini-3-pro-preview")

# --------- Persona templates ---------
LOCAL_COACH_PROMPT: CoachPrompt = get_prompt("coach_local")
HOSTED_COACH_PROMPT: CoachPrompt = get_prompt("coach_hosted")
WRESTLEIQ_PROMPT: CoachPrompt = get_prompt("wrestleiq")
GOAL_PLAN_PROMPT: CoachPrompt = get_prompt("goal_plan")

HISTORY_LIMIT = 6

_SPEAKER_LABELS = {"user": "Athlete", "coach": "Coach"}

TIMEFRAME_LABELS = {
    "this_week": "this week",
    "this_month": "this month",
    "season": "this season",
}

FOCUS_LABELS = {
    "mat": "on the mat",
    "lift": "lifting / strength",
    "mental": "mindset",
    "school": "school / academics",
    "life": "life / daily habits",
}


def _turn_fields(turn: Any) -> tuple[str, str]:
    if isinstance(turn, Mapping):
        return str(turn.get("role") or ""), str(turn.get("text") or "")
    return str(getattr(turn, "role", "") or ""), str(getattr(turn, "text", "") or "")


def truncate_history(history: Optional[Sequence[Any]], limit: int = HISTORY_LIMIT) -> List[Any]:
    """Keep only the most recent ``limit`` turns."""

    if not history or limit <= 0:
        return []
    return list(history)[-limit:]


def render_history(history: Optional[Sequence[Any]]) -> str:
    lines = []
    for turn in truncate_history(history):
        role, text = _turn_fields(turn)
        text = text.strip()
        if not text:
            continue
        lines.append(f"{_SPEAKER_LABELS.get(role, 'Athlete')}: {text}")
    return "\n".join(lines)


# --------- Prompt builders ---------
def build_chat_input(message: Optional[str], history: Optional[Sequence[Any]] = None) -> str:
    """Render recent history and the new athlete turn, ending on an open ``Coach:`` line."""

    text = (message or "").strip()
    context = render_history(history)
    if context:
        return f"Here is our recent conversation:\n{context}\n\nAthlete: {text}\n\nCoach:"
    return f"Athlete: {text}\n\nCoach:"


def build_chat_prompt(
    message: Optional[str],
    history: Optional[Sequence[Any]] = None,
    *,
    persona: CoachPrompt = HOSTED_COACH_PROMPT,
) -> str:
    """Persona preamble, truncated history and the new message as one instruction string."""

    return f"{persona.system_template}\n\n{build_chat_input(message, history)}"


def build_local_chat_messages(
    message: Optional[str],
    history: Optional[Sequence[Any]] = None,
) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": LOCAL_COACH_PROMPT.system_template},
        {"role": "user", "content": build_chat_input(message, history)},
    ]


def build_quiz_prompt(
    topic: Optional[str],
    difficulty: Optional[str],
    count: int = DEFAULT_QUIZ_COUNT,
) -> tuple[str, str]:
    """Return ``(system, user)`` prompts for the quiz generator."""

    topic_text = (topic or "").strip() or DEFAULT_QUIZ_TOPIC
    difficulty_text = (difficulty or "").strip() or DEFAULT_QUIZ_DIFFICULTY
    contract = WRESTLEIQ_PROMPT.contract(count=count)
    system = f"{WRESTLEIQ_PROMPT.system_template}\n\n{contract}"
    user = (
        f"Topic: {topic_text}\n"
        f"Difficulty: {difficulty_text}\n\n"
        f"Generate {count} questions that would help a wrestler think better on the mat."
    )
    return system, user


def build_quiz_messages(
    topic: Optional[str],
    difficulty: Optional[str],
    count: int = DEFAULT_QUIZ_COUNT,
) -> List[Dict[str, str]]:
    system, user = build_quiz_prompt(topic, difficulty, count)
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]


def build_goal_plan_message(
    title: str,
    why: str = "",
    timeframe: str = "this_week",
    focus: str = "mat",
) -> str:
    return GOAL_PLAN_PROMPT.render(
        title=title.strip(),
        why=why.strip() or "Not specified",
        timeframe=TIMEFRAME_LABELS.get(timeframe, "this season"),
        focus=FOCUS_LABELS.get(focus, focus),
    )

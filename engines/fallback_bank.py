"""Canned coach replies and quiz questions served when no provider answers."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

BOTTOM = "bottom"
CONDITIONING = "conditioning"
ANXIETY = "anxiety"
WEIGHT = "weight"
GENERAL = "general"

# Checked in this order; the first bucket with a matching keyword wins.
_CHAT_BUCKETS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    (BOTTOM, ("bottom", "ridden", "ride out")),
    (CONDITIONING, ("gas", "tired", "conditioning", "3rd period")),
    (ANXIETY, ("nervous", "anxious", "anxiety", "scared", "mental")),
    (WEIGHT, ("cut", "weight", "weigh in", "weigh-in")),
)

_CHAT_REPLIES: Dict[str, Tuple[str, ...]] = {
    BOTTOM: (
        "Let's talk bottom work. A lot of wrestlers struggle here, especially against strong riders.",
        "Pick one main get-up (stand-up or sit-out) and drill it hard: 3-5 sets of 30 seconds after practice "
        "with a partner giving real pressure.",
        "Focus on first move off the whistle, hand control, and getting to your feet quickly. Ask your coach "
        "for 1-2 specific bottom drills to hit every day for the next 2 weeks.",
    ),
    CONDITIONING: (
        "Gassing out in the 3rd is usually a mix of conditioning, pacing, and nerves.",
        "After practice, add 5-8 minutes of short sprints: for example 15-20 second hard goes, "
        "30-40 seconds rest, 6-8 rounds.",
        "In live goes, work on breathing between whistles and not blowing all your energy in the first 30 seconds.",
    ),
    ANXIETY: (
        "Feeling nervous before matches is completely normal, even for tough wrestlers.",
        "Build a simple pre-match routine: a short warm-up you always do, a couple of deep breaths, and 1-2 "
        "phrases you repeat about effort (like \"hard hand-fight and move my feet\").",
        "If nerves feel really heavy or overwhelming, talk with a coach, parent, or another trusted adult, "
        "and consider a professional if needed.",
    ),
    WEIGHT: (
        "Weight and cutting need to be done safely.",
        "Always involve your coach and a parent or guardian before changing weight classes or cutting hard. "
        "Focus on consistent sleep, smart food, and staying hydrated while you work with adults on a safe plan.",
        "If you feel dizzy, weak, or obsessed with the scale, talk to someone you trust right away. "
        "No match is worth your long-term health.",
    ),
    GENERAL: (
        "Thanks for sharing that. Let's keep it simple: pick one small thing to improve over the next 1-2 weeks.",
        "Choose 1-2 key positions or habits, ask your coach for specific drills, and track how many extra "
        "focused reps you get after practice.",
        "If you want a more detailed plan, describe the situation with position, score, time left, and how you "
        "usually react.",
    ),
}


def select_fallback_bucket(message: Optional[str]) -> str:
    """Return the bucket name whose keywords first match ``message``."""

    lowered = (message or "").lower()
    for bucket, keywords in _CHAT_BUCKETS:
        if any(keyword in lowered for keyword in keywords):
            return bucket
    return GENERAL


def offline_coach_reply(message: Optional[str]) -> str:
    return " ".join(_CHAT_REPLIES[select_fallback_bucket(message)])


def fallback_questions(topic: str, difficulty: str) -> List[Dict[str, Any]]:
    """The fixed three-question quiz, with ``topic``/``difficulty`` worked into the first prompt."""

    return [
        {
            "prompt": (
                f"In {topic}, what is usually the most important first focus at a "
                f"{difficulty.lower()} level?"
            ),
            "options": [
                "Trying a big throw immediately",
                "Getting solid position first (stance, hands, head)",
                "Backing straight up to create space",
                "Dropping to your butt to avoid contact",
            ],
            "correctIndex": 1,
            "explanation": (
                "Even at higher levels, good position comes before big moves. Solid stance, head and hand "
                "position make all attacks safer and more effective."
            ),
        },
        {
            "prompt": "When you keep getting stuck in the same position, what is a good basic plan?",
            "options": [
                "Hope it goes away on its own",
                "Avoid that position in practice",
                "Ask your coach for 1-2 drills and hit extra reps every day",
                "Only watch videos and never drill",
            ],
            "correctIndex": 2,
            "explanation": (
                "Specific, focused reps on the exact position with guidance from your coach is the fastest "
                "way to fix problem spots."
            ),
        },
        {
            "prompt": "Which of these BEST describes good 'mat IQ'?",
            "options": [
                "Knowing a lot of fancy moves but never using them",
                "Understanding score, time, and position to make smart choices",
                "Only wrestling hard in the first period",
                "Ignoring your coach's plan and doing random moves",
            ],
            "correctIndex": 1,
            "explanation": (
                "Mat IQ is about awareness of score, time, and position so you can choose the "
                "highest-percentage options in each moment."
            ),
        },
    ]


__all__ = [
    "BOTTOM",
    "CONDITIONING",
    "ANXIETY",
    "WEIGHT",
    "GENERAL",
    "select_fallback_bucket",
    "offline_coach_reply",
    "fallback_questions",
]

"""Coach persona templates, one JSON file per variant."""
from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Mapping

_PROMPT_DIR = Path(__file__).resolve().parent

_REQUIRED_KEYS = ("id", "variant", "prompt_version", "label", "system_template")


@dataclass(frozen=True)
class CoachPrompt:
    """A persona preamble plus an optional machine-readable output contract."""

    id: str
    variant: str
    prompt_version: str
    label: str
    system_template: str
    output_contract: str = ""

    def render(self, **fields: Any) -> str:
        return self.system_template.format(**fields) if fields else self.system_template

    def contract(self, **fields: Any) -> str:
        return self.output_contract.format(**fields)


def _text(value: Any) -> str:
    # Templates may be stored as a list of lines to keep the JSON readable.
    if isinstance(value, list):
        value = "\n".join(str(line) for line in value)
    return str(value or "").strip()


def _load_prompt(path: Path) -> CoachPrompt:
    payload = json.loads(path.read_text(encoding="utf-8"))
    missing = [key for key in _REQUIRED_KEYS if key not in payload]
    if missing:
        raise ValueError(f"Persona file {path.name} missing keys: {', '.join(missing)}")
    variant = str(payload["variant"]).lower()
    if variant != path.stem.lower():
        raise ValueError(f"Persona file {path.name} declares variant '{variant}'")
    return CoachPrompt(
        id=str(payload["id"]),
        variant=variant,
        prompt_version=str(payload["prompt_version"]),
        label=str(payload["label"]),
        system_template=_text(payload["system_template"]),
        output_contract=_text(payload.get("output_contract")),
    )


@lru_cache(maxsize=1)
def load_prompts(directory: Path | None = None) -> Mapping[str, CoachPrompt]:
    base_dir = Path(directory) if directory else _PROMPT_DIR
    prompts: Dict[str, CoachPrompt] = {
        prompt.variant: prompt
        for prompt in (_load_prompt(path) for path in sorted(base_dir.glob("*.json")))
    }
    if not prompts:
        raise RuntimeError(f"No coach personas found in {base_dir}")
    return prompts


def get_prompt(variant: str) -> CoachPrompt:
    prompts = load_prompts()
    key = str(variant).lower()
    if key not in prompts:
        raise KeyError(f"Unknown coach persona '{variant}'. Available: {', '.join(sorted(prompts))}")
    return prompts[key]


__all__ = ["CoachPrompt", "load_prompts", "get_prompt"]

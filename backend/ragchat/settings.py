from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

from .config import PACKAGE_DIR
from .logging_utils import get_logger

log = get_logger(__name__)

DEFAULT_SETTINGS_PATH = PACKAGE_DIR / "default_settings.json"


class SettingsError(RuntimeError):
    pass


@dataclass(frozen=True)
class UiDefaults:
    system_prompt: str
    max_response: int
    user_avatar: str
    ai_avatar: str
    page_title: str


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except Exception as e:
        raise SettingsError(f"Failed to read settings file {path}: {e}") from e
    if not isinstance(data, dict):
        raise SettingsError(f"Settings file {path} must contain a JSON object")
    return data


def load_defaults(path: Path = DEFAULT_SETTINGS_PATH) -> UiDefaults:
    if not path.exists():
        raise SettingsError(f"Default settings file not found: {path}")

    raw = _read_json(path)

    prompt = raw.get("system_prompt")
    if not isinstance(prompt, str) or not prompt.strip():
        raise SettingsError("default_settings.json missing 'system_prompt'")

    try:
        max_response = int(raw.get("max_response", 800))
    except (TypeError, ValueError) as e:
        raise SettingsError(f"default_settings.json has invalid 'max_response': {raw.get('max_response')!r}") from e
    if max_response <= 0:
        raise SettingsError("default_settings.json 'max_response' must be positive")

    avatars = raw.get("avatars") if isinstance(raw.get("avatars"), dict) else {}
    return UiDefaults(
        system_prompt=prompt,
        max_response=max_response,
        user_avatar=str(avatars.get("user") or "/avatars/avatar_user.png"),
        ai_avatar=str(avatars.get("ai") or "/avatars/avatar_ai.png"),
        page_title=str(raw.get("page_title") or "Chat"),
    )


@lru_cache(maxsize=1)
def get_defaults() -> UiDefaults:
    defaults = load_defaults()
    log.info("Loaded UI defaults from %s (max_response=%d)", DEFAULT_SETTINGS_PATH, defaults.max_response)
    return defaults

"""Mirror settings, read from mirror.yaml in the working directory."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from story_mirror.engine.identity import MAX_NAME_LENGTH

SETTINGS_FILE = "mirror.yaml"
LOG_LEVEL_ENV = "MIRROR_LOG_LEVEL"

_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass
class MirrorSettings:
    launch_name: str = "story-mirror"
    description: str = ""
    mode: str = "DEFAULT"  # DEFAULT | DEBUG
    attributes: dict[str, str] = field(default_factory=dict)
    skipped_an_issue: bool = True  # False -> skipped steps are marked NOT_ISSUE
    max_name_length: int = MAX_NAME_LENGTH
    log_level: str = "WARNING"


def parse_settings(content: str) -> MirrorSettings:
    raw = yaml.safe_load(content) or {}
    if not isinstance(raw, dict):
        raise ValueError("Invalid settings: expected a mapping")

    settings = MirrorSettings()
    launch = raw.get("launch") or {}
    if not isinstance(launch, dict):
        raise ValueError('Invalid settings: "launch" must be a mapping')

    settings.launch_name = str(launch.get("name", settings.launch_name))
    settings.description = str(launch.get("description", settings.description))
    settings.mode = str(launch.get("mode", settings.mode)).upper()
    if settings.mode not in ("DEFAULT", "DEBUG"):
        raise ValueError(f"Invalid launch mode: {settings.mode}")

    attributes = launch.get("attributes") or {}
    if not isinstance(attributes, dict):
        raise ValueError('Invalid settings: "launch.attributes" must be a mapping')
    settings.attributes = {str(k): "" if v is None else str(v) for k, v in attributes.items()}

    skipped_an_issue = raw.get("skipped_an_issue", settings.skipped_an_issue)
    if not isinstance(skipped_an_issue, bool):
        raise ValueError('Invalid settings: "skipped_an_issue" must be true or false')
    settings.skipped_an_issue = skipped_an_issue
    settings.max_name_length = int(raw.get("max_name_length", settings.max_name_length))
    if settings.max_name_length < 2:
        raise ValueError("max_name_length must be at least 2")
    settings.log_level = _check_level(str(raw.get("log_level", settings.log_level)))
    return settings


def load_settings(path: str | Path | None = None) -> MirrorSettings:
    settings_path = Path(path) if path else Path.cwd() / SETTINGS_FILE
    if settings_path.exists():
        settings = parse_settings(settings_path.read_text(encoding="utf-8"))
    else:
        settings = MirrorSettings()

    env_level = os.environ.get(LOG_LEVEL_ENV)
    if env_level:
        settings.log_level = _check_level(env_level)
    return settings


def _check_level(level: str) -> str:
    level = level.upper()
    if level == "WARN":
        level = "WARNING"
    if level not in _LEVELS:
        raise ValueError(f"Invalid log level: {level}")
    return level

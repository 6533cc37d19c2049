import os
from pathlib import Path
from typing import Optional

import yaml

from codepress_core.providers.anthropic import DEFAULT_MODEL
from codepress_core.utils.ignore import DEFAULT_IGNORE_PATTERNS, load_ignore_file

DEFAULT_CONFIG: dict = {
    "model": DEFAULT_MODEL,
    "max_turns": 12,  # None = unlimited
    "blocking_only": False,
    "granularity": "hunk",  # "hunk" or "file"
    "max_chars_per_chunk": 20000,
    "exclude": [],  # extra ignore patterns (e.g. "migrations/", "*.min.js")
    "ignore_file": ".codepressignore",
    "use_default_ignores": True,
}

_UNLIMITED = {"0", "none", "unlimited"}


def parse_max_turns(value) -> Optional[int]:
    """Normalise a max-turns setting: None/0/"unlimited" mean no limit."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip().lower()
        if value in _UNLIMITED:
            return None
    try:
        turns = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"max_turns must be a non-negative integer or 'unlimited', got {value!r}")
    if turns < 0:
        raise ValueError(f"max_turns must be a non-negative integer or 'unlimited', got {value!r}")
    return turns or None


def load_config(config_path: str = ".codepress.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .codepress.yml in the current directory
      3. Environment variables (MAX_TURNS, BLOCKING_ONLY)
      4. CLI argument overrides
    """
    config = {**DEFAULT_CONFIG, "exclude": list(DEFAULT_CONFIG["exclude"])}

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    # Empty env values are how GitHub Actions passes unset inputs; treat them as absent.
    if os.environ.get("MAX_TURNS", "").strip():
        config["max_turns"] = os.environ["MAX_TURNS"]
    if os.environ.get("BLOCKING_ONLY", "").strip():
        config["blocking_only"] = os.environ["BLOCKING_ONLY"].strip().lower() == "true"

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    config["max_turns"] = parse_max_turns(config["max_turns"])

    # Resolve credentials from environment variables
    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")

    return config


def load_ignore_patterns(config: dict) -> list[str]:
    """Combine the built-in patterns, the ignore file and the config's ``exclude`` list."""
    patterns = list(DEFAULT_IGNORE_PATTERNS) if config.get("use_default_ignores", True) else []
    patterns += load_ignore_file(config.get("ignore_file") or ".codepressignore")
    patterns += list(config.get("exclude") or [])
    return patterns

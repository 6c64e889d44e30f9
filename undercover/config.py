"""Application configuration loaded from YAML and the environment."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from .engine.settings import MAX_PLAYERS, MIN_PLAYERS, GameSettings

DEFAULT_CONFIG_PATH = "config/game.yaml"


@dataclass
class AppConfig:
    """Everything the front end needs to build an engine."""
    min_players: int = MIN_PLAYERS
    max_players: int = MAX_PLAYERS
    name_max_length: int = 15
    redraw_words_each_round: bool = False
    defaults: GameSettings = field(default_factory=GameSettings)
    words_path: Optional[str] = None  # None = packaged word bank
    logging_enabled: bool = True
    log_dir: str = "games"


def _section(data: dict, name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{name}' must be a mapping")
    return value


def load_config(config_path: Optional[Union[str, Path]] = None) -> AppConfig:
    """Load configuration from a YAML file, then apply environment overrides.

    Args:
        config_path: YAML file. Falls back to UNDERCOVER_CONFIG, then
            config/game.yaml. A missing file yields the built-in defaults.

    Returns:
        The merged configuration.
    """
    path = Path(config_path or os.getenv("UNDERCOVER_CONFIG") or DEFAULT_CONFIG_PATH)
    data: dict[str, Any] = {}
    if path.exists():
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Config file {path} is not valid YAML: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")

    game = _section(data, "game")
    defaults = _section(data, "defaults")
    words = _section(data, "words")
    log_section = _section(data, "logging")

    config = AppConfig(
        min_players=game.get("min_players", MIN_PLAYERS),
        max_players=game.get("max_players", MAX_PLAYERS),
        name_max_length=game.get("name_max_length", 15),
        redraw_words_each_round=bool(game.get("redraw_words_each_round", False)),
        defaults=GameSettings().merged(defaults),
        words_path=words.get("path"),
        logging_enabled=bool(log_section.get("enabled", True)),
        log_dir=log_section.get("base_dir", "games"),
    )

    # Environment wins over the file
    if os.getenv("UNDERCOVER_WORDS"):
        config.words_path = os.getenv("UNDERCOVER_WORDS")
    if os.getenv("UNDERCOVER_LOG_DIR"):
        config.log_dir = os.getenv("UNDERCOVER_LOG_DIR")

    config.defaults.validate(min_players=config.min_players, max_players=config.max_players)
    return config

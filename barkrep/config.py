"""
barkrep.config — YAML Configuration Loader
===========================================

Reads ``barkrep.yaml`` for the handful of engine tuning values that differ
between deployments (level curve step, hint threshold, trailing window for
tier estimates).  Infrastructure secrets such as ``DATABASE_URL`` stay in
the environment.

Usage::

    from barkrep.config import load_config

    cfg = load_config()          # reads ./barkrep.yaml by default
    print(cfg.level_step)        # 100
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from barkrep.constants import DEFAULT_LEVEL_STEP


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class EngineConfig:
    """Immutable engine tuning loaded from ``barkrep.yaml``.

    Every field has a default, so an empty file (or no file at all, via
    ``EngineConfig()``) yields the standard ruleset.
    """

    # Experience points per level step (level n needs n * level_step)
    level_step: int = DEFAULT_LEVEL_STEP

    # Fraction of a hidden achievement's threshold before its hint shows
    hint_threshold: float = 0.5

    # Days of ledger history behind the tier time-to-next estimate
    trailing_window_days: int = 30

    # Accounts younger than this get the new-user points multiplier
    new_user_days: int = 30


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "barkrep.yaml") -> EngineConfig:
    """Read *path* and return an :class:`EngineConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    ValueError
        If the hint threshold is outside ``(0, 1]`` or a count is not
        positive.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy barkrep.yaml.example → barkrep.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    defaults = EngineConfig()
    cfg = EngineConfig(
        level_step=int(raw.get("level_step", defaults.level_step)),
        hint_threshold=float(raw.get("hint_threshold", defaults.hint_threshold)),
        trailing_window_days=int(
            raw.get("trailing_window_days", defaults.trailing_window_days)
        ),
        new_user_days=int(raw.get("new_user_days", defaults.new_user_days)),
    )

    if not 0 < cfg.hint_threshold <= 1:
        raise ValueError(f"hint_threshold must be in (0, 1], got {cfg.hint_threshold}")
    if cfg.level_step <= 0 or cfg.trailing_window_days <= 0:
        raise ValueError("level_step and trailing_window_days must be positive")
    return cfg

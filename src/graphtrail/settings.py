"""History settings loader.

Reads GRAPHTRAIL_MAX_HISTORY and GRAPHTRAIL_BUSY_POLICY from the
environment or falls back to defaults.
"""

from __future__ import annotations

import os
from typing import Literal, Mapping

from pydantic import BaseModel, Field, ValidationError

from .constants import (
    DEFAULT_BUSY_POLICY,
    DEFAULT_MAX_HISTORY_SIZE,
    ENV_BUSY_POLICY,
    ENV_MAX_HISTORY,
)


class HistorySettings(BaseModel):
    """Configuration for one GraphHistoryManager."""

    max_history_size: int | None = Field(default=DEFAULT_MAX_HISTORY_SIZE, ge=1)
    busy_policy: Literal["queue", "reject"] = DEFAULT_BUSY_POLICY


def _parse_max_history(raw: str) -> int | None:
    value = raw.strip().lower()
    if value in ("", "0", "none", "unbounded"):
        return None
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"{ENV_MAX_HISTORY} must be an integer or 'none', got {raw!r}") from e


def load_settings(env: Mapping[str, str] | None = None) -> HistorySettings:
    """Build settings from environment variables.

    ```
    GRAPHTRAIL_MAX_HISTORY=200      # 0 / none = keep everything
    GRAPHTRAIL_BUSY_POLICY=reject   # or queue (default)
    ```

    Raises:
        ValueError: If a variable holds an invalid value
    """
    if env is None:
        env = os.environ

    values: dict = {}
    if ENV_MAX_HISTORY in env:
        values["max_history_size"] = _parse_max_history(env[ENV_MAX_HISTORY])
    if ENV_BUSY_POLICY in env:
        values["busy_policy"] = env[ENV_BUSY_POLICY].strip().lower()

    try:
        return HistorySettings(**values)
    except ValidationError as e:
        raise ValueError(f"Invalid history settings: {e}") from e

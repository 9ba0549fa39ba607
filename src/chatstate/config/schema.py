"""Configuration schema dataclasses for chatstate.

All fields have defaults so partial configs merge together.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from chatstate.config.paths import get_default_data_dir

DEFAULT_MESSAGE = "Powered by OpenAI Vercel"

# Seconds between a session switch and the session index rebuild
DEFAULT_INDEX_DELAY = 0.5


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # TRACE, DEBUG, VERBOSE, INFO, WARNING, ERROR
    verbose: int | None = None  # 0-4, takes precedence over level
    file: str | None = None  # Log file path


@dataclass
class Config:
    """Root configuration object.

    Example config.yaml:
        global_settings:
          enterToSend: true
        session_settings:
          model: gpt-4
          continuousDialogue: true
        max_input_tokens:
          gpt-3.5: 16384
          gpt-4: 32768
        default_message: "How can I help?"
        index_delay: 0.5
        logging:
          level: info
    """

    # Raw settings payloads; validated into settings records by the store
    global_settings: dict[str, Any] = field(default_factory=dict)
    session_settings: dict[str, Any] = field(default_factory=dict)
    # Per-family budgets used when the user supplies their own API key
    max_input_tokens: dict[str, int] = field(default_factory=dict)
    default_message: str = DEFAULT_MESSAGE
    data_dir: Path = field(default_factory=get_default_data_dir)
    index_delay: float = DEFAULT_INDEX_DELAY
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    extra: dict[str, Any] = field(default_factory=dict)

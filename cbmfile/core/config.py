"""Global configuration for cbmfile.

Manages default settings for the parser, the trial translator, and the CLI.
Settings can be overridden via environment variables or explicit configuration.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

UNKNOWN_TOKEN_POLICIES = ("error", "warn", "ignore")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass
class CbmFileConfig:
    """Top-level configuration for cbmfile."""

    # Parsing
    strict: bool = True
    unknown_token_policy: str = "error"
    encoding: str = "utf-8"

    # Trial translation
    max_trials: int = 10_000_000

    # CLI
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        if self.unknown_token_policy not in UNKNOWN_TOKEN_POLICIES:
            raise ValueError(
                f"unknown_token_policy must be one of {UNKNOWN_TOKEN_POLICIES}, "
                f"got {self.unknown_token_policy!r}"
            )
        if self.max_trials <= 0:
            raise ValueError(f"max_trials must be positive, got {self.max_trials}")

    @classmethod
    def from_env(cls) -> CbmFileConfig:
        """Build config from environment variables, falling back to defaults."""
        config = cls()

        if val := os.environ.get("CBMFILE_STRICT"):
            config.strict = _parse_bool("CBMFILE_STRICT", val)
        if val := os.environ.get("CBMFILE_UNKNOWN_TOKENS"):
            config.unknown_token_policy = val.lower()
        if val := os.environ.get("CBMFILE_ENCODING"):
            config.encoding = val
        if val := os.environ.get("CBMFILE_MAX_TRIALS"):
            config.max_trials = int(val)
        if val := os.environ.get("CBMFILE_LOG_LEVEL"):
            config.log_level = val.upper()

        config.__post_init__()
        return config


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean flag, got {value!r}")


# Module-level singleton
_config: CbmFileConfig | None = None


def get_config() -> CbmFileConfig:
    """Return the global cbmfile config, lazily initialized from env."""
    global _config
    if _config is None:
        _config = CbmFileConfig.from_env()
    return _config


def set_config(config: CbmFileConfig | None) -> None:
    """Override the global config (useful in tests). None resets to env defaults."""
    global _config
    _config = config

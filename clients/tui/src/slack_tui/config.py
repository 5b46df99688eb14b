"""Process configuration for the Slack TUI (environment + flags)."""

from __future__ import annotations

import argparse
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence

DEFAULT_API_URL = "https://slack.com/api"
DEFAULT_LOG_FILE = Path.home() / ".slack_tui.log"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_DND_MINUTES = 60


class ConfigurationError(Exception):
    pass


@dataclass(frozen=True)
class ClientConfig:
    token: str
    api_url: str = DEFAULT_API_URL
    channel: str = ""
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    dnd_minutes: int = DEFAULT_DND_MINUTES
    log_file: Path = DEFAULT_LOG_FILE
    log_level: str = "INFO"

    def __repr__(self) -> str:
        return (
            f"ClientConfig(api_url={self.api_url!r}, channel={self.channel!r}, "
            f"timeout_seconds={self.timeout_seconds!r}, dnd_minutes={self.dnd_minutes!r}, "
            f"log_file={str(self.log_file)!r}, log_level={self.log_level!r})"
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="slack-tui",
        description="Keyboard-driven Slack client (token read from SLACK_TOKEN)",
    )
    parser.add_argument("--api-url", help="Slack Web API base URL")
    parser.add_argument("--channel", help="default channel id or name for sending and viewing")
    parser.add_argument("--timeout", help="per-request timeout in seconds")
    parser.add_argument("--dnd-minutes", help="snooze length used by Do Not Disturb")
    parser.add_argument("--log-file", help="path of the diagnostic log")
    parser.add_argument("--log-level", help="logging level name (DEBUG, INFO, ...)")
    return parser


def _parse_positive_float(raw: str, name: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


def _parse_positive_int(raw: str, name: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


def load_config(
    argv: Optional[Sequence[str]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ClientConfig:
    """Build the config from ``environ`` with command-line flags taking precedence.

    A missing token is not an error here; it surfaces later as a failed
    authentication so the user sees it in the error view.
    """

    env = os.environ if environ is None else environ
    args = build_parser().parse_args(argv)

    def pick(flag_value: Optional[str], env_key: str, default: str) -> str:
        if flag_value is not None:
            return flag_value
        return env.get(env_key, default)

    timeout = _parse_positive_float(
        pick(args.timeout, "SLACK_TUI_TIMEOUT", str(DEFAULT_TIMEOUT_SECONDS)), "timeout"
    )
    dnd_minutes = _parse_positive_int(
        pick(args.dnd_minutes, "SLACK_TUI_DND_MINUTES", str(DEFAULT_DND_MINUTES)), "dnd-minutes"
    )
    log_level = pick(args.log_level, "SLACK_TUI_LOG_LEVEL", "INFO").upper()
    if log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise ConfigurationError(f"unknown log level {log_level!r}")

    return ClientConfig(
        token=env.get("SLACK_TOKEN", "").strip(),
        api_url=pick(args.api_url, "SLACK_API_URL", DEFAULT_API_URL).rstrip("/"),
        channel=pick(args.channel, "SLACK_CHANNEL", "").strip(),
        timeout_seconds=timeout,
        dnd_minutes=dnd_minutes,
        log_file=Path(pick(args.log_file, "SLACK_TUI_LOG_FILE", str(DEFAULT_LOG_FILE))).expanduser(),
        log_level=log_level,
    )

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Session:
    """Authenticated handle; opaque to everything except the gateway."""

    token: str
    user_id: str
    team_id: str = ""

    def __repr__(self) -> str:
        return f"Session(user_id={self.user_id!r}, team_id={self.team_id!r})"


@dataclass(frozen=True)
class Identity:
    user_id: str
    display_name: str


@dataclass(frozen=True)
class Channel:
    id: str
    name: str


@dataclass(frozen=True)
class RawMessage:
    """A history entry as the service returns it, before name resolution."""

    user_id: str
    text: str
    ts: str


@dataclass(frozen=True)
class Message:
    author: str
    text: str
    channel_name: str
    timestamp: datetime


def parse_slack_timestamp(ts: str) -> datetime:
    """Convert a ``"<seconds>.<micros>"`` timestamp to a local datetime."""

    seconds, sep, _ = str(ts).partition(".")
    if not sep:
        return datetime.min
    try:
        return datetime.fromtimestamp(int(seconds))
    except (ValueError, OverflowError, OSError):
        return datetime.min

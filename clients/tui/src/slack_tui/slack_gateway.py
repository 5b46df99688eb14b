"""Slack Web API gateway used by the TUI task runner."""

from __future__ import annotations

import abc
import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from slack_tui.catalogs import Presence
from slack_tui.config import DEFAULT_API_URL, DEFAULT_DND_MINUTES, DEFAULT_TIMEOUT_SECONDS, ConfigurationError
from slack_tui.records import Channel, Identity, RawMessage, Session

logger = logging.getLogger(__name__)

# Slack's users.setPresence only knows "auto" and "away"; DND is a snooze.
_PRESENCE_API_VALUE = {
    Presence.ACTIVE: "auto",
    Presence.AWAY: "away",
    Presence.DND: "auto",
}
_STATUS_EMOJI = {
    Presence.ACTIVE: ":white_check_mark:",
    Presence.AWAY: ":away:",
    Presence.DND: ":no_entry:",
}


class GatewayError(Exception):
    """A chat service call failed; ``str(exc)`` is safe to show to the user."""


class ChatGateway(abc.ABC):
    """Boundary to the chat service. Every failure raises ``GatewayError``."""

    @abc.abstractmethod
    async def authenticate(self, credential: str) -> Tuple[Session, Identity]:
        ...

    @abc.abstractmethod
    async def list_channels(self, session: Session) -> List[Channel]:
        ...

    @abc.abstractmethod
    async def list_recent_messages(self, session: Session, channel_id: str, limit: int) -> List[RawMessage]:
        """Return up to ``limit`` messages, newest first."""

    @abc.abstractmethod
    async def resolve_display_name(self, session: Session, user_id: str) -> str:
        ...

    @abc.abstractmethod
    async def set_presence(self, session: Session, presence: Presence) -> None:
        ...

    @abc.abstractmethod
    async def post_message(self, session: Session, channel_id: str, text: str) -> str:
        """Post ``text`` and return the service's message receipt."""

    async def aclose(self) -> None:
        return None


class SlackGateway(ChatGateway):
    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        dnd_minutes: int = DEFAULT_DND_MINUTES,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.dnd_minutes = dnd_minutes
        self._http_session: Optional[aiohttp.ClientSession] = None
        self._user_names: Dict[str, str] = {}

    def _http(self) -> aiohttp.ClientSession:
        if self._http_session is None or self._http_session.closed:
            self._http_session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds)
            )
        return self._http_session

    async def aclose(self) -> None:
        if self._http_session is not None and not self._http_session.closed:
            await self._http_session.close()
        self._http_session = None

    async def _call(self, method: str, token: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}/{method}"
        form = {key: _form_value(value) for key, value in (payload or {}).items()}
        logger.debug("calling %s", method)
        try:
            async with self._http().post(
                url,
                data=form,
                headers={"Authorization": f"Bearer {token}"},
            ) as response:
                try:
                    body = await response.json(content_type=None)
                except ValueError:
                    body = None
                status = response.status
        except asyncio.TimeoutError:
            raise GatewayError(f"{method} timed out after {self.timeout_seconds:g}s") from None
        except aiohttp.ClientError as exc:
            raise GatewayError(f"{method} failed: {exc}") from exc

        if not isinstance(body, dict):
            raise GatewayError(f"{method} returned HTTP {status} without a JSON body")
        if not body.get("ok", False):
            raise GatewayError(str(body.get("error") or f"{method} returned HTTP {status}"))
        return body

    async def authenticate(self, credential: str) -> Tuple[Session, Identity]:
        token = (credential or "").strip()
        if not token:
            raise ConfigurationError("SLACK_TOKEN environment variable not set")
        body = await self._call("auth.test", token)
        user_id = str(body.get("user_id", ""))
        if not user_id:
            raise GatewayError("Failed to connect to Slack. Check your token.")
        session = Session(token=token, user_id=user_id, team_id=str(body.get("team_id", "")))
        identity = Identity(user_id=user_id, display_name=str(body.get("user", "")) or user_id)
        self._user_names.setdefault(user_id, identity.display_name)
        return session, identity

    async def list_channels(self, session: Session) -> List[Channel]:
        channels: List[Channel] = []
        cursor = ""
        while True:
            payload: Dict[str, Any] = {
                "exclude_archived": True,
                "types": "public_channel,private_channel",
                "limit": 200,
            }
            if cursor:
                payload["cursor"] = cursor
            body = await self._call("conversations.list", session.token, payload)
            for raw in body.get("channels", []):
                if isinstance(raw, dict) and raw.get("id"):
                    channels.append(Channel(id=str(raw["id"]), name=str(raw.get("name", raw["id"]))))
            metadata = body.get("response_metadata")
            cursor = str(metadata.get("next_cursor", "")) if isinstance(metadata, dict) else ""
            if not cursor:
                return channels

    async def list_recent_messages(self, session: Session, channel_id: str, limit: int) -> List[RawMessage]:
        body = await self._call(
            "conversations.history",
            session.token,
            {"channel": channel_id, "limit": limit},
        )
        messages: List[RawMessage] = []
        for raw in body.get("messages", []):
            if not isinstance(raw, dict):
                continue
            messages.append(
                RawMessage(
                    user_id=str(raw.get("user", "")),
                    text=str(raw.get("text", "")),
                    ts=str(raw.get("ts", "")),
                )
            )
        return messages

    async def resolve_display_name(self, session: Session, user_id: str) -> str:
        cached = self._user_names.get(user_id)
        if cached is not None:
            return cached
        body = await self._call("users.info", session.token, {"user": user_id})
        user = body.get("user")
        if not isinstance(user, dict) or not user.get("name"):
            raise GatewayError(f"users.info returned no name for {user_id}")
        name = str(user["name"])
        self._user_names[user_id] = name
        return name

    async def set_presence(self, session: Session, presence: Presence) -> None:
        await self._call("users.setPresence", session.token, {"presence": _PRESENCE_API_VALUE[presence]})
        if presence is Presence.DND:
            await self._call("dnd.setSnooze", session.token, {"num_minutes": self.dnd_minutes})
        await self._call(
            "users.profile.set",
            session.token,
            {
                "profile": {
                    "status_text": presence.label,
                    "status_emoji": _STATUS_EMOJI[presence],
                    "status_expiration": 0,
                }
            },
        )

    async def post_message(self, session: Session, channel_id: str, text: str) -> str:
        body = await self._call(
            "chat.postMessage",
            session.token,
            {"channel": channel_id, "text": text, "as_user": True},
        )
        return str(body.get("ts", ""))


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, dict):
        return json.dumps(value, separators=(",", ":"))
    return str(value)

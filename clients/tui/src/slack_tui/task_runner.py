"""Runs state-machine commands against the chat gateway off the UI thread."""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import Future
from typing import Callable, Dict, List, Optional

from slack_tui.config import ConfigurationError
from slack_tui.records import Channel, Message, RawMessage, Session, parse_slack_timestamp
from slack_tui.redact import redact_text
from slack_tui.slack_gateway import ChatGateway, GatewayError
from slack_tui.tui_model import (
    AGGREGATE_CHANNEL_LIMIT,
    AGGREGATE_MESSAGES_PER_CHANNEL,
    CHANNEL_MESSAGE_LIMIT,
    AuthFailed,
    Authenticate,
    AuthSucceeded,
    Command,
    Event,
    FetchFailed,
    FetchMessages,
    MessagePosted,
    MessagesFetched,
    PostFailed,
    PostMessage,
    PresenceFailed,
    PresenceSet,
    SetPresence,
)

logger = logging.getLogger(__name__)

UNKNOWN_USER = "Unknown User"

_FAILURE_FOR = {
    Authenticate: AuthFailed,
    FetchMessages: FetchFailed,
    SetPresence: PresenceFailed,
    PostMessage: PostFailed,
}


def _failure(command: Command, message: str) -> Event:
    if isinstance(command, FetchMessages):
        return FetchFailed(message, request_id=command.request_id)
    return _FAILURE_FOR[type(command)](message)


async def _author_name(gateway: ChatGateway, session: Session, user_id: str) -> str:
    if not user_id:
        return UNKNOWN_USER
    try:
        return await gateway.resolve_display_name(session, user_id)
    except GatewayError as exc:
        logger.debug("name lookup for %s failed: %s", user_id, exc)
        return UNKNOWN_USER


async def _channel_messages(
    gateway: ChatGateway,
    session: Session,
    channel: Channel,
    limit: int,
) -> List[Message]:
    history: List[RawMessage] = await gateway.list_recent_messages(session, channel.id, limit)
    collected: List[Message] = []
    # history is newest first; display oldest first
    for raw in reversed(history):
        collected.append(
            Message(
                author=await _author_name(gateway, session, raw.user_id),
                text=raw.text,
                channel_name=channel.name,
                timestamp=parse_slack_timestamp(raw.ts),
            )
        )
    return collected


async def fetch_messages(gateway: ChatGateway, command: FetchMessages) -> List[Message]:
    """Collect messages for the command's scope.

    Aggregate mode concatenates per-channel results in channel order; there is
    no global re-sort across channels.
    """

    if command.channel_id:
        name = next((ch.name for ch in command.channels if ch.id == command.channel_id), "")
        channel = Channel(id=command.channel_id, name=name)
        return await _channel_messages(gateway, command.session, channel, CHANNEL_MESSAGE_LIMIT)

    messages: List[Message] = []
    for channel in command.channels[:AGGREGATE_CHANNEL_LIMIT]:
        messages.extend(
            await _channel_messages(gateway, command.session, channel, AGGREGATE_MESSAGES_PER_CHANNEL)
        )
    return messages


async def execute(gateway: ChatGateway, command: Command) -> Event:
    """Run one command and return exactly one terminating event."""

    try:
        if isinstance(command, Authenticate):
            session, identity = await gateway.authenticate(command.credential)
            channels = await gateway.list_channels(session)
            return AuthSucceeded(session=session, identity=identity, channels=tuple(channels))
        if isinstance(command, FetchMessages):
            messages = await fetch_messages(gateway, command)
            return MessagesFetched(tuple(messages), request_id=command.request_id)
        if isinstance(command, SetPresence):
            await gateway.set_presence(command.session, command.presence)
            return PresenceSet(command.presence)
        if isinstance(command, PostMessage):
            receipt = await gateway.post_message(command.session, command.channel_id, command.text)
            return MessagePosted(channel_id=command.channel_id, receipt=receipt)
    except (GatewayError, ConfigurationError) as exc:
        logger.warning("%s failed: %s", type(command).__name__, redact_text(str(exc)))
        return _failure(command, str(exc))
    except Exception as exc:
        logger.exception("%s raised unexpectedly", type(command).__name__)
        return _failure(command, redact_text(str(exc)) or type(exc).__name__)
    raise TypeError(f"unsupported command {command!r}")


class TaskRunner:
    """Background asyncio loop that turns commands into events.

    ``sink`` is called from the runner thread with each resulting event;
    the UI passes ``queue.Queue.put`` so all state changes stay on its thread.
    """

    def __init__(self, gateway: ChatGateway, sink: Callable[[Event], None]) -> None:
        self.gateway = gateway
        self._sink = sink
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run_loop, name="slack-tasks", daemon=True)
        self._pending: Dict[int, Future] = {}
        self._lock = threading.Lock()
        self._started = False

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def start(self) -> None:
        if not self._started:
            self._thread.start()
            self._started = True

    def submit(self, command: Command) -> Future:
        self.start()
        logger.info("submitting %s", type(command).__name__)
        future = asyncio.run_coroutine_threadsafe(self._run(command), self._loop)
        with self._lock:
            self._pending[id(future)] = future
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.pop(id(future), None)

    async def _run(self, command: Command) -> Event:
        event = await execute(self.gateway, command)
        self._sink(event)
        return event

    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def close(self, timeout: Optional[float] = 2.0) -> None:
        if not self._started:
            self._loop.close()
            return
        try:
            asyncio.run_coroutine_threadsafe(self.gateway.aclose(), self._loop).result(timeout)
        except Exception:
            logger.exception("closing gateway failed")
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout)
        if not self._thread.is_alive():
            self._loop.close()

"""Pure-Python state machine for the Slack TUI.

``update(state, event)`` is the only way state changes. It returns the next
state together with the commands the task runner should execute; command
outcomes come back later as events. Nothing here touches the terminal or the
network.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Tuple, Union

from slack_tui.catalogs import (
    MAIN_ACTIONS,
    PRESET_MESSAGES,
    STATUS_CHOICES,
    Action,
    MenuItem,
    Presence,
)
from slack_tui.records import Channel, Identity, Message, Session

HEADER_HEIGHT = 3
FOOTER_HEIGHT = 3
MENU_WIDTH_MARGIN = 10
PANEL_WIDTH_MARGIN = 4

AGGREGATE_CHANNEL_LIMIT = 5
AGGREGATE_MESSAGES_PER_CHANNEL = 3
CHANNEL_MESSAGE_LIMIT = 10

SPINNER_FRAMES = ("⣾", "⣽", "⣻", "⢿", "⡿", "⣟", "⣯", "⣷")

QUIT_KEYS = {"q", "CTRL_C"}


class Page(Enum):
    MAIN = "main"
    MESSAGES = "messages"
    SET_STATUS = "set_status"
    PRESET_MESSAGE = "preset_message"


# Events -------------------------------------------------------------------


@dataclass(frozen=True)
class Startup:
    pass


@dataclass(frozen=True)
class KeyPressed:
    key: str


@dataclass(frozen=True)
class WindowResized:
    width: int
    height: int


@dataclass(frozen=True)
class Tick:
    pass


@dataclass(frozen=True)
class AuthSucceeded:
    session: Session
    identity: Identity
    channels: Tuple[Channel, ...]


@dataclass(frozen=True)
class AuthFailed:
    error: str


@dataclass(frozen=True)
class MessagesFetched:
    messages: Tuple[Message, ...]
    request_id: int = 0


@dataclass(frozen=True)
class FetchFailed:
    error: str
    request_id: int = 0


@dataclass(frozen=True)
class PresenceSet:
    presence: Presence


@dataclass(frozen=True)
class PresenceFailed:
    error: str


@dataclass(frozen=True)
class MessagePosted:
    channel_id: str
    receipt: str


@dataclass(frozen=True)
class PostFailed:
    error: str


Event = Union[
    Startup,
    KeyPressed,
    WindowResized,
    Tick,
    AuthSucceeded,
    AuthFailed,
    MessagesFetched,
    FetchFailed,
    PresenceSet,
    PresenceFailed,
    MessagePosted,
    PostFailed,
]

FAILURE_EVENTS = (AuthFailed, FetchFailed, PresenceFailed, PostFailed)


# Commands -----------------------------------------------------------------


@dataclass(frozen=True)
class Authenticate:
    credential: str = field(repr=False)


@dataclass(frozen=True)
class FetchMessages:
    """Fetch recent messages; an empty ``channel_id`` aggregates the first channels."""

    session: Session
    channels: Tuple[Channel, ...]
    channel_id: str = ""
    request_id: int = 0


@dataclass(frozen=True)
class SetPresence:
    session: Session
    presence: Presence


@dataclass(frozen=True)
class PostMessage:
    session: Session
    channel_id: str
    text: str


Command = Union[Authenticate, FetchMessages, SetPresence, PostMessage]


# State --------------------------------------------------------------------


@dataclass(frozen=True)
class MenuState:
    """Single-selection list with a clamped cursor."""

    items: Tuple[MenuItem, ...]
    cursor: int = 0
    width: int = 0
    height: int = 0

    @property
    def selected(self) -> Optional[MenuItem]:
        if not self.items:
            return None
        return self.items[self.cursor]

    def move(self, delta: int) -> "MenuState":
        cursor = max(0, min(len(self.items) - 1, self.cursor + delta))
        return replace(self, cursor=cursor)

    def resized(self, width: int, height: int) -> "MenuState":
        return replace(self, width=max(0, width), height=max(0, height))


@dataclass(frozen=True)
class Viewport:
    width: int = 0
    height: int = 0
    scroll: int = 0


@dataclass(frozen=True)
class AppState:
    credential: str = field(default="", repr=False)
    channel_hint: str = ""
    session: Optional[Session] = None
    identity: Optional[Identity] = None
    channels: Tuple[Channel, ...] = ()
    messages: Tuple[Message, ...] = ()
    presence: Presence = Presence.ACTIVE
    page: Page = Page.MAIN
    is_loading: bool = False
    error: str = ""
    selected_channel_id: str = ""
    width: int = 0
    height: int = 0
    main_menu: MenuState = MenuState(MAIN_ACTIONS)
    status_menu: MenuState = MenuState(STATUS_CHOICES)
    preset_menu: MenuState = MenuState(PRESET_MESSAGES)
    viewport: Viewport = Viewport()
    spinner_frame: int = 0
    # id of the newest FetchMessages; older results are dropped
    fetch_id: int = 0
    fetch_pending: bool = False
    fetch_in_background: bool = False
    done: bool = False

    @property
    def selected_channel(self) -> Optional[Channel]:
        for channel in self.channels:
            if channel.id == self.selected_channel_id:
                return channel
        return None


def initial_state(credential: str = "", channel_hint: str = "") -> AppState:
    return AppState(credential=credential, channel_hint=channel_hint)


def resolve_channel(channels: Tuple[Channel, ...], hint: str) -> str:
    """Return the id of the channel named or identified by ``hint``, or ''."""

    wanted = hint.strip().lstrip("#")
    if not wanted:
        return ""
    for channel in channels:
        if channel.id == wanted or channel.name == wanted:
            return channel.id
    return ""


def message_panel_lines(messages: Tuple[Message, ...]) -> List[str]:
    if not messages:
        return ["No messages found."]
    lines: List[str] = []
    for message in messages:
        lines.append(f"{message.timestamp.strftime('%H:%M')} {message.author} in #{message.channel_name}")
        for text_line in message.text.splitlines() or [""]:
            lines.append(f"  {text_line}")
        lines.append("")
    return lines


# Transitions --------------------------------------------------------------


def update(state: AppState, event: Event) -> Tuple[AppState, List[Command]]:
    """Apply one event and return the next state plus follow-up commands."""

    if state.done:
        return state, []
    if isinstance(event, KeyPressed):
        return _handle_key(state, event.key)
    if isinstance(event, WindowResized):
        return _resize(state, event.width, event.height), []
    if isinstance(event, Tick):
        if not state.is_loading:
            return state, []
        return replace(state, spinner_frame=(state.spinner_frame + 1) % len(SPINNER_FRAMES)), []
    if isinstance(event, Startup):
        return replace(state, is_loading=True, error=""), [Authenticate(state.credential)]
    if isinstance(event, AuthSucceeded):
        selected = resolve_channel(event.channels, state.channel_hint)
        nxt = replace(
            state,
            session=event.session,
            identity=event.identity,
            channels=tuple(event.channels),
            selected_channel_id=selected,
            error="",
        )
        return _start_fetch(nxt)
    if isinstance(event, (MessagesFetched, FetchFailed)):
        return _finish_fetch(state, event), []
    if isinstance(event, PresenceSet):
        return replace(state, presence=event.presence, is_loading=False, error="", page=Page.MAIN), []
    if isinstance(event, MessagePosted):
        nxt = replace(state, is_loading=False, error="", page=Page.MAIN)
        return _start_fetch(nxt, background=True)
    if isinstance(event, FAILURE_EVENTS):
        return replace(state, error=event.error or "unknown error", is_loading=False), []
    return state, []


def _start_fetch(state: AppState, *, background: bool = False) -> Tuple[AppState, List[Command]]:
    """Issue a fetch for the current scope; a background fetch leaves the spinner alone."""

    assert state.session is not None
    fetch_id = state.fetch_id + 1
    command = FetchMessages(
        session=state.session,
        channels=state.channels,
        channel_id=state.selected_channel_id,
        request_id=fetch_id,
    )
    nxt = replace(state, fetch_id=fetch_id, fetch_pending=True, fetch_in_background=background)
    return nxt, [command]


def _finish_fetch(state: AppState, event: Union[MessagesFetched, FetchFailed]) -> AppState:
    if event.request_id != state.fetch_id:
        return state
    # a background result must not end another operation's loading view
    is_loading = state.is_loading if state.fetch_in_background else False
    done = replace(state, fetch_pending=False, fetch_in_background=False, is_loading=is_loading)
    if isinstance(event, FetchFailed):
        return replace(done, error=event.error or "unknown error")
    return replace(
        done,
        messages=tuple(event.messages),
        error="",
        viewport=replace(state.viewport, scroll=0),
    )


def _resize(state: AppState, width: int, height: int) -> AppState:
    body_height = height - HEADER_HEIGHT - FOOTER_HEIGHT
    menu_width = width - MENU_WIDTH_MARGIN
    viewport = replace(
        state.viewport,
        width=max(0, width - PANEL_WIDTH_MARGIN),
        height=max(0, body_height),
    )
    nxt = replace(
        state,
        width=width,
        height=height,
        main_menu=state.main_menu.resized(menu_width, body_height),
        status_menu=state.status_menu.resized(menu_width, body_height),
        preset_menu=state.preset_menu.resized(menu_width, body_height),
        viewport=viewport,
    )
    return _scroll_messages(nxt, 0)


def _back_to_main(state: AppState) -> AppState:
    return replace(state, page=Page.MAIN, error="")


def _handle_key(state: AppState, key: str) -> Tuple[AppState, List[Command]]:
    if key in QUIT_KEYS:
        if state.page is Page.MAIN:
            return replace(state, done=True), []
        return _back_to_main(state), []
    if key == "ESC":
        if state.page is not Page.MAIN or state.error:
            return _back_to_main(state), []
        return state, []
    if state.error:
        return state, []

    if state.page is Page.MAIN:
        return _handle_main_key(state, key)
    if state.page is Page.MESSAGES:
        return _handle_messages_key(state, key)
    if state.page is Page.SET_STATUS:
        return _handle_status_key(state, key)
    if state.page is Page.PRESET_MESSAGE:
        return _handle_preset_key(state, key)
    return state, []


def _navigate(state: AppState, menu_name: str, key: str) -> Optional[AppState]:
    if key not in {"UP", "DOWN"}:
        return None
    if state.is_loading:
        return state
    menu: MenuState = getattr(state, menu_name)
    return replace(state, **{menu_name: menu.move(-1 if key == "UP" else 1)})


def _require_session(state: AppState) -> Optional[AppState]:
    if state.session is None:
        return replace(state, error="Slack client not initialized")
    return None


def _handle_main_key(state: AppState, key: str) -> Tuple[AppState, List[Command]]:
    moved = _navigate(state, "main_menu", key)
    if moved is not None:
        return moved, []
    if key != "ENTER":
        return state, []
    item = state.main_menu.selected
    if item is None:
        return state, []

    if item.value is Action.VIEW_MESSAGES:
        if state.is_loading:
            return state, []
        failed = _require_session(state)
        if failed is not None:
            return failed, []
        nxt = replace(
            state,
            page=Page.MESSAGES,
            is_loading=True,
            error="",
            viewport=replace(state.viewport, scroll=0),
        )
        if state.fetch_pending:
            # the refresh already running covers this scope; show it instead of refetching
            return replace(nxt, fetch_in_background=False), []
        return _start_fetch(nxt)
    if item.value is Action.SET_STATUS:
        return replace(state, page=Page.SET_STATUS), []
    if item.value is Action.SEND_PRESET:
        return replace(state, page=Page.PRESET_MESSAGE), []
    if item.value is Action.QUIT:
        return replace(state, done=True), []
    return state, []


def _scroll_messages(state: AppState, delta: int) -> AppState:
    total = len(message_panel_lines(state.messages))
    max_scroll = max(0, total - state.viewport.height)
    scroll = max(0, min(max_scroll, state.viewport.scroll + delta))
    if scroll == state.viewport.scroll:
        return state
    return replace(state, viewport=replace(state.viewport, scroll=scroll))


def _next_channel_scope(state: AppState) -> str:
    order = [""] + [channel.id for channel in state.channels]
    try:
        idx = order.index(state.selected_channel_id)
    except ValueError:
        idx = 0
    return order[(idx + 1) % len(order)]


def _handle_messages_key(state: AppState, key: str) -> Tuple[AppState, List[Command]]:
    if state.is_loading:
        return state, []
    if key in {"UP", "DOWN"}:
        return _scroll_messages(state, -1 if key == "UP" else 1), []
    if key == "TAB":
        failed = _require_session(state)
        if failed is not None:
            return failed, []
        nxt = replace(
            state,
            selected_channel_id=_next_channel_scope(state),
            is_loading=True,
            error="",
            viewport=replace(state.viewport, scroll=0),
        )
        return _start_fetch(nxt)
    return state, []


def _handle_status_key(state: AppState, key: str) -> Tuple[AppState, List[Command]]:
    moved = _navigate(state, "status_menu", key)
    if moved is not None:
        return moved, []
    if key != "ENTER" or state.is_loading:
        return state, []
    item = state.status_menu.selected
    if item is None or not isinstance(item.value, Presence):
        return state, []
    failed = _require_session(state)
    if failed is not None:
        return failed, []
    assert state.session is not None
    return replace(state, is_loading=True, error=""), [SetPresence(state.session, item.value)]


def _handle_preset_key(state: AppState, key: str) -> Tuple[AppState, List[Command]]:
    moved = _navigate(state, "preset_menu", key)
    if moved is not None:
        return moved, []
    if key != "ENTER" or state.is_loading:
        return state, []
    item = state.preset_menu.selected
    if item is None:
        return state, []
    failed = _require_session(state)
    if failed is not None:
        return failed, []
    if not state.selected_channel_id:
        return replace(state, error="No channel selected"), []
    assert state.session is not None
    command = PostMessage(state.session, state.selected_channel_id, item.description)
    return replace(state, is_loading=True, error=""), [command]

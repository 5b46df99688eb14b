"""Pure rendering of ``AppState`` into styled text lines.

Style names are resolved to terminal attributes by the curses layer, so this
module stays deterministic and testable.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Tuple

from slack_tui.catalogs import MENU_TITLES, Presence
from slack_tui.tui_model import SPINNER_FRAMES, AppState, MenuState, Page

FOOTER_HELP = "q/ctrl+c: quit • esc: back • ↑/↓: navigate • enter: select"
MESSAGES_FOOTER_HELP = FOOTER_HELP + " • tab: channel"
INITIALIZING = "Initializing..."

_PRESENCE_STYLES = {
    Presence.ACTIVE: "status_active",
    Presence.AWAY: "status_away",
    Presence.DND: "status_dnd",
}


@dataclass(frozen=True)
class Segment:
    text: str
    style: str = "plain"


@dataclass(frozen=True)
class Line:
    segments: Tuple[Segment, ...] = ()

    @property
    def text(self) -> str:
        return "".join(segment.text for segment in self.segments)


@dataclass(frozen=True)
class Screen:
    lines: Tuple[Line, ...]

    @property
    def text(self) -> str:
        return "\n".join(line.text for line in self.lines)


def _line(text: str = "", style: str = "plain") -> Line:
    return Line((Segment(text, style),)) if text else Line()


def render(state: AppState) -> Screen:
    """Render the whole screen; error beats loading beats page content."""

    if state.width == 0:
        return Screen((_line(INITIALIZING),))

    if state.error:
        body = [_line(f"Error: {state.error}", "error")]
    elif state.is_loading:
        frame = SPINNER_FRAMES[state.spinner_frame % len(SPINNER_FRAMES)]
        body = [Line((Segment(frame, "spinner"), Segment(" Loading...")))]
    elif state.page is Page.MESSAGES:
        body = _render_messages(state)
    elif state.page is Page.SET_STATUS:
        body = _render_menu(state.status_menu)
    elif state.page is Page.PRESET_MESSAGE:
        body = _render_menu(state.preset_menu)
    else:
        body = _render_menu(state.main_menu)

    lines: List[Line] = []
    lines.extend(_render_header(state))
    lines.extend(body)
    lines.extend(_render_footer(state))
    return Screen(tuple(lines))


def _render_header(state: AppState) -> List[Line]:
    name = state.identity.display_name if state.identity else ""
    status = Segment(f"● {state.presence.label}", _PRESENCE_STYLES.get(state.presence, "info"))
    title = Line((Segment(f"Slack TUI - Logged in as: {name}", "title"), Segment(" | "), status))
    channel = state.selected_channel
    scope = f"#{channel.name}" if channel else "all channels"
    return [title, _line(f"Channel: {scope}", "info"), Line()]


def _render_footer(state: AppState) -> List[Line]:
    help_text = MESSAGES_FOOTER_HELP if state.page is Page.MESSAGES else FOOTER_HELP
    return [Line(), _line(help_text, "help"), Line()]


def _visible_window(count: int, cursor: int, capacity: int) -> range:
    capacity = max(1, capacity)
    start = 0
    if cursor >= capacity:
        start = cursor - capacity + 1
    return range(start, min(count, start + capacity))


def _render_menu(menu: MenuState) -> List[Line]:
    if not menu.items:
        return [_line("Nothing to select.", "info")]
    lines = [_line(MENU_TITLES[menu.items[0].kind], "title"), Line()]
    # title + spacer, then three rows per item
    capacity = (menu.height - 2) // 3 if menu.height else len(menu.items)
    for idx in _visible_window(len(menu.items), menu.cursor, capacity):
        item = menu.items[idx]
        if idx == menu.cursor:
            lines.append(_line(f"> {item.name}", "selected"))
            lines.append(_line(f"    {item.description}", "selected"))
        else:
            lines.append(_line(f"  {item.name}", "plain"))
            lines.append(_line(f"    {item.description}", "info"))
        lines.append(Line())
    return lines


def _message_lines(state: AppState) -> Iterable[Line]:
    if not state.messages:
        yield _line("No messages found.", "info")
        return
    for message in state.messages:
        yield Line(
            (
                Segment(message.timestamp.strftime("%H:%M"), "channel"),
                Segment(" "),
                Segment(message.author, "title"),
                Segment(" in "),
                Segment(f"#{message.channel_name}", "channel"),
            )
        )
        for text_line in message.text.splitlines() or [""]:
            yield _line(f"  {text_line}", "message")
        yield Line()


def _render_messages(state: AppState) -> List[Line]:
    lines = list(_message_lines(state))
    height = state.viewport.height or len(lines)
    start = state.viewport.scroll
    return lines[start : start + height]


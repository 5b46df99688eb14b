from dataclasses import replace
from datetime import datetime

from slack_tui.catalogs import Presence
from slack_tui.records import Channel, Identity, Message, Session
from slack_tui.tui_model import (
    AuthSucceeded,
    KeyPressed,
    MessagesFetched,
    Page,
    PresenceSet,
    Startup,
    WindowResized,
    initial_state,
    message_panel_lines,
    update,
)
from slack_tui.tui_view import FOOTER_HELP, INITIALIZING, render

SESSION = Session(token="xoxb-test", user_id="U1")


def _apply(state, *events):
    for event in events:
        if isinstance(event, MessagesFetched):
            # answer the newest outstanding fetch
            event = replace(event, request_id=state.fetch_id)
        state, _ = update(state, event)
    return state


def _ready(width=100, height=40):
    return _apply(
        initial_state("xoxb-test"),
        WindowResized(width, height),
        Startup(),
        AuthSucceeded(SESSION, Identity("U1", "alice"), (Channel("C1", "general"),)),
        MessagesFetched(()),
    )


def test_initializing_before_first_resize():
    assert render(initial_state()).text == INITIALIZING


def test_header_and_footer_wrap_every_page():
    text = render(_ready()).text
    lines = text.splitlines()
    assert lines[0] == "Slack TUI - Logged in as: alice | ● Active"
    assert lines[1] == "Channel: all channels"
    assert FOOTER_HELP in text


def test_error_beats_loading_and_page():
    state = replace(_ready(), is_loading=True, page=Page.MESSAGES, error="rate limited")
    text = render(state).text
    assert "Error: rate limited" in text
    assert "Loading..." not in text
    assert "No messages found." not in text


def test_loading_beats_page_content():
    state = replace(_ready(), is_loading=True)
    text = render(state).text
    assert "Loading..." in text
    assert "Quick Actions" not in text


def test_startup_scenario_ends_with_empty_message_panel():
    state = _apply(initial_state("xoxb-test"), WindowResized(100, 40), Startup())
    assert "Loading..." in render(state).text

    state = _apply(
        state,
        AuthSucceeded(SESSION, Identity("U1", "alice"), (Channel("C1", "general"),)),
    )
    assert "Loading..." in render(state).text

    state = _apply(state, MessagesFetched(()))
    assert state.is_loading is False
    assert message_panel_lines(state.messages) == ["No messages found."]

    state = _apply(state, KeyPressed("ENTER"), MessagesFetched(()))
    assert "No messages found." in render(state).text


def test_presence_indicator_follows_confirmed_status():
    state = _apply(_ready(), KeyPressed("DOWN"), KeyPressed("ENTER"), KeyPressed("DOWN"), KeyPressed("ENTER"))
    assert render(state).text.splitlines()[0].endswith("● Active")
    assert "Loading..." in render(state).text

    state = _apply(state, PresenceSet(Presence.AWAY))
    first = render(state).lines[0]
    assert first.text.endswith("● Away")
    assert first.segments[-1].style == "status_away"
    assert "Quick Actions" in render(state).text


def test_messages_render_matches_panel_lines():
    messages = (
        Message("bob", "hello\nworld", "general", datetime(2024, 1, 2, 9, 5)),
        Message("Unknown User", "ping", "random", datetime(2024, 1, 2, 14, 30)),
    )
    state = _apply(_ready(), KeyPressed("ENTER"), MessagesFetched(messages))
    text = render(state).text
    assert "09:05 bob in #general\n  hello\n  world\n" in text
    assert "14:30 Unknown User in #random\n  ping" in text
    body = [line for line in message_panel_lines(messages)]
    assert "\n".join(body) in text


def test_message_panel_is_windowed_by_scroll():
    messages = tuple(Message("bob", f"m{i}", "general", datetime(2024, 1, 2, 9, i)) for i in range(10))
    state = _apply(_ready(height=12), KeyPressed("ENTER"), MessagesFetched(messages))
    text = render(state).text
    assert "  m0" in text
    assert "  m9" not in text

    for _ in range(100):
        state = _apply(state, KeyPressed("DOWN"))
    text = render(state).text
    assert "  m9" in text
    assert "  m0" not in text


def test_menu_marks_selected_item():
    state = _apply(_ready(), KeyPressed("DOWN"))
    lines = render(state).text.splitlines()
    assert "> Set Status" in lines
    assert "  View Messages" in lines


def test_small_menu_keeps_cursor_visible():
    state = _apply(_ready(height=14), KeyPressed("DOWN"), KeyPressed("DOWN"), KeyPressed("DOWN"))
    text = render(state).text
    assert "> Quit" in text
    assert "View Messages" not in text


def test_render_is_pure():
    state = _ready()
    assert render(state) == render(state)


def test_selected_channel_shown_in_header():
    state = replace(_ready(), selected_channel_id="C1")
    assert render(state).text.splitlines()[1] == "Channel: #general"

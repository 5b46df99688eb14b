"""Curses front end for the Slack TUI."""

from __future__ import annotations

import curses
import logging
import queue
import sys
from typing import Callable, Dict, Mapping, Optional, Sequence

from slack_tui.config import ClientConfig, ConfigurationError, load_config
from slack_tui.redact import redact_text
from slack_tui.slack_gateway import SlackGateway
from slack_tui.task_runner import TaskRunner
from slack_tui.tui_model import (
    AppState,
    AuthSucceeded,
    Command,
    Event,
    KeyPressed,
    Startup,
    Tick,
    WindowResized,
    initial_state,
    update,
)
from slack_tui.tui_view import Screen, render

logger = logging.getLogger("slack_tui")

TICK_MS = 100
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# (foreground, attribute flags); -1 is the terminal's default colour
STYLE_SPECS: Mapping[str, tuple[int, int]] = {
    "plain": (-1, 0),
    "title": (curses.COLOR_BLUE, curses.A_BOLD),
    "info": (curses.COLOR_CYAN, 0),
    "error": (curses.COLOR_RED, curses.A_BOLD),
    "help": (curses.COLOR_CYAN, curses.A_DIM),
    "channel": (curses.COLOR_GREEN, 0),
    "message": (-1, 0),
    "selected": (-1, curses.A_REVERSE | curses.A_BOLD),
    "spinner": (curses.COLOR_BLUE, 0),
    "status_active": (curses.COLOR_GREEN, curses.A_BOLD),
    "status_away": (curses.COLOR_YELLOW, curses.A_BOLD),
    "status_dnd": (curses.COLOR_RED, curses.A_BOLD),
}


def _normalize_key(key: int) -> Optional[str]:
    if key in (curses.KEY_UP, ord("k")):
        return "UP"
    if key in (curses.KEY_DOWN, ord("j")):
        return "DOWN"
    if key in (curses.KEY_ENTER, 10, 13):
        return "ENTER"
    if key == 27:
        return "ESC"
    if key == 9:
        return "TAB"
    if key == 3:  # ctrl-c in raw mode
        return "CTRL_C"
    if key in (ord("q"), ord("Q")):
        return "q"
    return None


class _RedactingFormatter(logging.Formatter):
    """Redacts the fully formatted record, tracebacks included."""

    def format(self, record: logging.LogRecord) -> str:
        return redact_text(super().format(record))


def configure_logging(config: ClientConfig) -> logging.Handler:
    """Send package logs to a file; the terminal belongs to curses."""

    config.log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(config.log_file, encoding="utf-8")
    handler.setFormatter(_RedactingFormatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(config.log_level)
    logger.propagate = False
    return handler


class Program:
    """Single-threaded driver: events in, state transitions, commands out.

    Worker results arrive through ``events``; only ``dispatch`` touches the
    state, and it is only called from the UI thread.
    """

    def __init__(self, state: AppState, submit: Callable[[Command], object]) -> None:
        self.state = state
        self.events: "queue.Queue[Event]" = queue.Queue()
        self._submit = submit

    @property
    def done(self) -> bool:
        return self.state.done

    def dispatch(self, event: Event) -> None:
        self.state, commands = update(self.state, event)
        if isinstance(event, AuthSucceeded) and self.state.channel_hint and not self.state.selected_channel_id:
            logger.warning("channel %r not found; showing all channels", self.state.channel_hint)
        for command in commands:
            self._submit(command)

    def drain(self) -> int:
        handled = 0
        while not self.done:
            try:
                event = self.events.get_nowait()
            except queue.Empty:
                break
            self.dispatch(event)
            handled += 1
        return handled

    def screen(self) -> Screen:
        return render(self.state)


def _init_styles() -> Dict[str, int]:
    attrs = {name: flags for name, (_, flags) in STYLE_SPECS.items()}
    if not curses.has_colors():
        return attrs
    try:
        curses.start_color()
        curses.use_default_colors()
    except curses.error:
        return attrs
    pairs: Dict[int, int] = {}
    for name, (fg, flags) in STYLE_SPECS.items():
        if fg < 0:
            continue
        if fg not in pairs:
            pair_id = len(pairs) + 1
            try:
                curses.init_pair(pair_id, fg, -1)
            except curses.error:
                continue
            pairs[fg] = pair_id
        attrs[name] = flags | curses.color_pair(pairs[fg])
    return attrs


def draw_screen(stdscr: curses.window, screen: Screen, attrs: Mapping[str, int]) -> None:
    stdscr.erase()
    max_y, max_x = stdscr.getmaxyx()
    for y, line in enumerate(screen.lines):
        if y >= max_y:
            break
        x = 1
        for segment in line.segments:
            room = max_x - x - 1
            if room <= 0:
                break
            stdscr.addnstr(y, x, segment.text, room, attrs.get(segment.style, 0))
            x += len(segment.text)
    stdscr.refresh()


def _run_curses(stdscr: curses.window, program: Program) -> None:
    curses.raw()
    try:
        curses.curs_set(0)
    except curses.error:
        pass
    stdscr.keypad(True)
    curses.set_escdelay(25)
    stdscr.timeout(TICK_MS)
    attrs = _init_styles()

    max_y, max_x = stdscr.getmaxyx()
    program.dispatch(WindowResized(max_x, max_y))
    program.dispatch(Startup())

    while not program.done:
        program.drain()
        if program.done:
            break
        # Drawing can fail mid-resize; the next iteration repaints.
        try:
            draw_screen(stdscr, program.screen(), attrs)
        except curses.error:
            pass

        key = stdscr.getch()
        if key == -1:
            program.dispatch(Tick())
            continue
        if key == curses.KEY_RESIZE:
            curses.update_lines_cols()
            max_y, max_x = stdscr.getmaxyx()
            program.dispatch(WindowResized(max_x, max_y))
            continue
        normalized = _normalize_key(key)
        if normalized is not None:
            program.dispatch(KeyPressed(normalized))


def main(argv: Optional[Sequence[str]] = None) -> int:
    try:
        config = load_config(argv)
    except ConfigurationError as exc:
        print(f"slack-tui: {exc}", file=sys.stderr)
        return 2

    try:
        handler = configure_logging(config)
    except OSError as exc:
        print(f"slack-tui: cannot open log file {config.log_file}: {exc}", file=sys.stderr)
        return 2
    logger.info("starting with %r", config)

    gateway = SlackGateway(
        config.api_url,
        timeout_seconds=config.timeout_seconds,
        dnd_minutes=config.dnd_minutes,
    )
    program = Program(initial_state(config.token, config.channel), lambda command: runner.submit(command))
    runner = TaskRunner(gateway, program.events.put)

    status = 0
    try:
        curses.wrapper(_run_curses, program)
    except curses.error as exc:
        logger.error("terminal initialisation failed: %s", exc)
        print(f"slack-tui: cannot initialise terminal: {exc}", file=sys.stderr)
        status = 1
    finally:
        runner.close()
        logger.info("exiting with status %d", status)
        logger.removeHandler(handler)
        handler.close()
    return status


if __name__ == "__main__":
    raise SystemExit(main())

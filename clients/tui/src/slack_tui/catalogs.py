"""Static menu catalogs for the Slack TUI."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Tuple


class MenuKind(Enum):
    ACTION = "action"
    STATUS = "status"
    PRESET = "preset"


class Action(Enum):
    VIEW_MESSAGES = "view_messages"
    SET_STATUS = "set_status"
    SEND_PRESET = "send_preset"
    QUIT = "quit"


class Presence(Enum):
    ACTIVE = "active"
    AWAY = "away"
    DND = "dnd"

    @property
    def label(self) -> str:
        return PRESENCE_LABELS[self]


PRESENCE_LABELS = {
    Presence.ACTIVE: "Active",
    Presence.AWAY: "Away",
    Presence.DND: "Do Not Disturb",
}


@dataclass(frozen=True)
class MenuItem:
    """One selectable entry; ``value`` is the Action, Presence or preset text."""

    kind: MenuKind
    name: str
    description: str
    value: object


MAIN_ACTIONS: Tuple[MenuItem, ...] = (
    MenuItem(MenuKind.ACTION, "View Messages", "View recent messages from Slack", Action.VIEW_MESSAGES),
    MenuItem(MenuKind.ACTION, "Set Status", "Change your Slack status", Action.SET_STATUS),
    MenuItem(MenuKind.ACTION, "Send Preset Message", "Send a pre-configured message", Action.SEND_PRESET),
    MenuItem(MenuKind.ACTION, "Quit", "Exit the application", Action.QUIT),
)

STATUS_CHOICES: Tuple[MenuItem, ...] = (
    MenuItem(MenuKind.STATUS, "Active", "Set your status to active", Presence.ACTIVE),
    MenuItem(MenuKind.STATUS, "Away", "Set your status to away", Presence.AWAY),
    MenuItem(MenuKind.STATUS, "Do Not Disturb", "Set your status to do not disturb", Presence.DND),
)


def _preset(name: str, text: str) -> MenuItem:
    return MenuItem(MenuKind.PRESET, name, text, text)


PRESET_MESSAGES: Tuple[MenuItem, ...] = (
    _preset("Be Right Back", "I'll be right back, give me a few minutes."),
    _preset("In a Meeting", "I'm currently in a meeting, will respond later."),
    _preset("Working on Issue", "I'm working on the issue, will update you soon."),
    _preset("Lunch Break", "I'm on lunch break, back in an hour."),
)

MENU_TITLES = {
    MenuKind.ACTION: "Quick Actions",
    MenuKind.STATUS: "Set Status",
    MenuKind.PRESET: "Preset Messages",
}

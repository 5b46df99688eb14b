"""Thin runnable wrapper for the Slack TUI."""

from slack_tui.tui_app import main

if __name__ == "__main__":
    raise SystemExit(main())

"""Redaction helpers for safe TUI diagnostics."""

from __future__ import annotations

import re

_SLACK_TOKEN_RE = re.compile(r"\bxox[abposr]-[A-Za-z0-9-]+")
_BEARER_RE = re.compile(r"(Bearer\s+)([^\s]+)", flags=re.IGNORECASE)
_KEY_VALUE_RE = re.compile(
    r"([\"']?(?:token|slack_token|credential)[\"']?\s*[:=]\s*[\"']?)([^\"'\s,}&]+)",
    flags=re.IGNORECASE,
)


def redact_text(text: str) -> str:
    """Redact Slack tokens and bearer credentials from unstructured text."""

    rendered = str(text)
    rendered = _BEARER_RE.sub(r"\1[REDACTED]", rendered)
    rendered = _KEY_VALUE_RE.sub(r"\1[REDACTED]", rendered)
    rendered = _SLACK_TOKEN_RE.sub("[REDACTED]", rendered)
    return rendered

"""Markdown context document describing one captured request."""

from __future__ import annotations

import json
from typing import Any

from binocs.store.base import RequestRecord

BACKTRACE_LINES = 15


def build_context(request: RequestRecord) -> str:
    """Render ``request`` as the markdown handed to a coding assistant.

    Empty sections are omitted. The document is the assistant's only
    information about the request.
    """
    sections = [
        _overview(request),
        _json_section("Request Parameters", request.params),
        _json_section("Request Headers", request.request_headers),
        _json_section("Response Headers", request.response_headers),
        _body_section("Request Body", request.request_body),
        _body_section("Response Body", request.response_body),
        _logs(request.logs),
        _exception(request.exception),
    ]
    return "\n\n".join(s for s in sections if s)


def format_body(body: str) -> str:
    """Pretty-print JSON bodies; anything else is returned unchanged."""
    try:
        return json.dumps(json.loads(body), indent=2)
    except (json.JSONDecodeError, TypeError):
        return body


def format_log_entry(entry: dict[str, Any]) -> str:
    timestamp = entry.get("timestamp", "")
    kind = entry.get("type")
    if kind == "controller":
        return (
            f"[{timestamp}] {entry.get('controller')}#{entry.get('action')}"
            f" - {entry.get('duration')}ms"
        )
    if kind == "redirect":
        return f"[{timestamp}] Redirect to {entry.get('location')} ({entry.get('status')})"
    rest = {k: v for k, v in entry.items() if k not in ("timestamp", "type")}
    return f"[{timestamp}] {kind}: {json.dumps(rest)}"


def _na(value: Any) -> Any:
    return "N/A" if value is None or value == "" else value


def _overview(request: RequestRecord) -> str:
    lines = [
        "## Request Overview",
        "",
        f"- **Method**: {_na(request.method)}",
        f"- **Path**: {_na(request.path)}",
        f"- **Full URL**: {_na(request.full_url)}",
        f"- **Controller**: {_na(request.controller_name)}",
        f"- **Action**: {_na(request.action_name)}",
        f"- **Status Code**: {_na(request.status_code)}",
        f"- **Duration**: {request.formatted_duration}",
        f"- **IP Address**: {_na(request.ip_address)}",
        f"- **Timestamp**: {request.created_at.isoformat() if request.created_at else 'N/A'}",
    ]
    return "\n".join(lines)


def _json_section(title: str, data: dict[str, Any] | None) -> str | None:
    if not data:
        return None
    return f"## {title}\n\n```json\n{json.dumps(data, indent=2)}\n```"


def _body_section(title: str, body: str | None) -> str | None:
    if not body or not body.strip():
        return None
    return f"## {title}\n\n```\n{format_body(body)}\n```"


def _logs(logs: list[dict[str, Any]]) -> str | None:
    if not logs:
        return None
    lines = "\n".join(format_log_entry(entry) for entry in logs)
    return f"## Request Logs\n\n```\n{lines}\n```"


def _exception(exc: dict[str, Any] | None) -> str | None:
    if not exc:
        return None
    backtrace = exc.get("backtrace") or []
    trace = "\n".join(backtrace[:BACKTRACE_LINES]) if backtrace else "No backtrace"
    return (
        "## Exception\n\n"
        f"- **Class**: {exc.get('class')}\n"
        f"- **Message**: {exc.get('message')}\n\n"
        "### Backtrace\n\n"
        f"```\n{trace}\n```"
    )

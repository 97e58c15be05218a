"""Named rich styles used by every view."""

from __future__ import annotations

from binocs.agent.record import AgentStatus

NORMAL = "white"
HEADER = "yellow"
SELECTED = "black on white"
MUTED = "dim white"
ERROR = "red"
BORDER = "blue"
TITLE = "bold yellow"
KEY_HINT = "dim yellow"
SEARCH = "black on yellow"
CURSOR = "reverse"

METHOD_GET = "blue"
METHOD_POST = "yellow"
METHOD_PUT = "magenta"
METHOD_DELETE = "red"

STATUS_SUCCESS = "blue"
STATUS_REDIRECT = "yellow"
STATUS_CLIENT_ERROR = "magenta"
STATUS_SERVER_ERROR = "red"


def bold(style: str) -> str:
    return f"bold {style}"


def method_style(method: str | None) -> str:
    match (method or "").upper():
        case "GET":
            return METHOD_GET
        case "POST":
            return METHOD_POST
        case "PUT" | "PATCH":
            return METHOD_PUT
        case "DELETE":
            return METHOD_DELETE
    return NORMAL


def status_style(status: int | None) -> str:
    if status is None:
        return MUTED
    if 200 <= status <= 299:
        return STATUS_SUCCESS
    if 300 <= status <= 399:
        return STATUS_REDIRECT
    if 400 <= status <= 499:
        return STATUS_CLIENT_ERROR
    if 500 <= status <= 599:
        return STATUS_SERVER_ERROR
    return NORMAL


def response_code_style(code: str) -> str:
    """Style for a documented response key such as ``"201"`` or ``"4XX"``."""
    if code.startswith("2"):
        return STATUS_SUCCESS
    if code.startswith("4"):
        return STATUS_CLIENT_ERROR
    if code.startswith("5"):
        return STATUS_SERVER_ERROR
    return NORMAL


def agent_status_style(status: AgentStatus) -> str:
    return {
        AgentStatus.RUNNING: STATUS_REDIRECT,
        AgentStatus.COMPLETED: STATUS_SUCCESS,
        AgentStatus.FAILED: STATUS_SERVER_ERROR,
        AgentStatus.STOPPED: STATUS_CLIENT_ERROR,
    }.get(status, MUTED)

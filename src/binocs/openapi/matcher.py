"""Match captured requests against templated OpenAPI paths."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

_PARAM_RE = re.compile(r"\{[^}]+\}")


@dataclass(frozen=True)
class OperationMatch:
    """A documented operation that a request resolved to."""

    spec_path: str
    method: str
    operation_id: str | None = None
    summary: str | None = None
    description: str | None = None
    tags: tuple[str, ...] = ()
    parameters: tuple[dict[str, Any], ...] = ()
    request_body: dict[str, Any] | None = None
    responses: dict[str, Any] = field(default_factory=dict)
    deprecated: bool = False
    security: list[Any] | None = None


def normalize_path(path: str) -> str:
    """Drop the query string and trailing slash; empty becomes ``/``."""
    path = path.split("?", 1)[0].rstrip("/")
    return path or "/"


def template_regex(spec_path: str) -> re.Pattern[str]:
    """``/users/{id}`` -> ``^/users/[^/]+$``; literal text is escaped."""
    literals = _PARAM_RE.split(spec_path)
    pattern = "[^/]+".join(re.escape(part) for part in literals)
    return re.compile(f"^{pattern}$")


def path_matches(request_path: str, spec_path: str) -> bool:
    return template_regex(spec_path).match(request_path) is not None


def merge_parameters(
    path_params: list[dict[str, Any]] | None,
    operation_params: list[dict[str, Any]] | None,
) -> tuple[dict[str, Any], ...]:
    """Path-level then operation-level parameters, unique by (in, name).

    An operation-level definition replaces a path-level one in place.
    """
    merged: dict[tuple[Any, Any], dict[str, Any]] = {}
    for params in (path_params, operation_params):
        if not isinstance(params, list):
            continue
        for param in params:
            if isinstance(param, dict):
                merged[(param.get("in"), param.get("name"))] = param
    return tuple(merged.values())


def find_operation(
    spec: dict[str, Any] | None, method: str, path: str
) -> OperationMatch | None:
    """First spec path whose template matches and which defines ``method``."""
    if not spec or not isinstance(spec.get("paths"), dict):
        return None
    method = method.lower()
    path = normalize_path(path)

    for spec_path, path_item in spec["paths"].items():
        if not isinstance(path_item, dict):
            continue
        operation = path_item.get(method)
        if not isinstance(operation, dict):
            continue
        if not path_matches(path, spec_path):
            continue
        security = operation.get("security")
        if security is None:
            security = spec.get("security")
        return OperationMatch(
            spec_path=spec_path,
            method=method,
            operation_id=operation.get("operationId"),
            summary=operation.get("summary"),
            description=operation.get("description"),
            tags=tuple(operation.get("tags") or ()),
            parameters=merge_parameters(
                path_item.get("parameters"), operation.get("parameters")
            ),
            request_body=operation.get("requestBody"),
            responses=operation.get("responses") or {},
            deprecated=bool(operation.get("deprecated", False)),
            security=security,
        )
    return None


def fallback_operation_id(method: str, spec_path: str) -> str:
    """``get /v1/{id}/items`` -> ``get_v1__id__items``."""
    op_id = f"{method}{spec_path}".replace("/", "_")
    op_id = re.sub(r"[{}]", "_", op_id)
    return re.sub(r"__+", "__", op_id)


def build_ui_url(operation: OperationMatch | None, ui_url: str | None) -> str | None:
    """Deep link into the documentation viewer: ``<ui_url>#/<tag>/<operationId>``."""
    if operation is None or not ui_url:
        return None
    tag = operation.tags[0] if operation.tags else "default"
    op_id = operation.operation_id or fallback_operation_id(
        operation.method, operation.spec_path
    )
    return f"{ui_url}#/{quote(tag, safe='')}/{op_id}"

"""OpenAPI document fetching and request-to-operation matching."""

from binocs.openapi.client import SpecCache, SpecClient, parse_spec
from binocs.openapi.matcher import (
    OperationMatch,
    build_ui_url,
    find_operation,
    normalize_path,
)

__all__ = [
    "OperationMatch",
    "SpecCache",
    "SpecClient",
    "build_ui_url",
    "find_operation",
    "normalize_path",
    "parse_spec",
]

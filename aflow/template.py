"""Resolution of ``{{namespace.path}}`` placeholders in strings and JSON bodies.

Namespaces map a name such as ``input`` or ``credential`` to data: a dict, raw
JSON bytes, or any JSON-serialisable value that encodes to an object.
"""

from __future__ import annotations

import json
import re
from typing import Any, Mapping

Namespaces = Mapping[str, Any]

_PLACEHOLDER = re.compile(r"\{\{(\w+)\.([^}]+)\}\}", re.ASCII)

_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON constant {name}")


def _marshal(value: Any) -> str:
    """Encode compactly with sorted keys and HTML-safe escapes."""
    text = json.dumps(
        value, separators=(",", ":"), sort_keys=True, ensure_ascii=False, allow_nan=False
    )
    for char, escape in _ESCAPES.items():
        text = text.replace(char, escape)
    return text


def _as_object(data: Any) -> dict[str, Any] | None:
    if isinstance(data, dict):
        return data
    try:
        if isinstance(data, (bytes, bytearray)):
            parsed = json.loads(data, parse_constant=_reject_constant)
        else:
            parsed = json.loads(json.dumps(data, allow_nan=False))
    except (TypeError, ValueError):
        return None
    return parsed if isinstance(parsed, dict) else None


def _walk_path(data: Any, path: str) -> Any:
    parts = path.split(".", 1)
    obj = _as_object(data)
    if obj is None or parts[0] not in obj:
        return None
    value = obj[parts[0]]
    if len(parts) == 1:
        return value
    return _walk_path(value, parts[1])


def _lookup(match: re.Match[str], namespaces: Namespaces) -> Any:
    namespace, path = match.group(1), match.group(2)
    if namespace not in namespaces:
        return None
    return _walk_path(namespaces[namespace], path)


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    try:
        return _marshal(value)
    except (TypeError, ValueError):
        return ""


def resolve(s: str, namespaces: Namespaces) -> str:
    """Replace every ``{{ns.path}}`` placeholder in ``s``; missing values become ``""``."""

    def replace(match: re.Match[str]) -> str:
        value = _lookup(match, namespaces)
        return "" if value is None else _stringify(value)

    return _PLACEHOLDER.sub(replace, s)


def _format_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "<nil>"
    return str(value)


def resolve_headers(headers: Mapping[str, Any], namespaces: Namespaces) -> dict[str, str]:
    """Resolve placeholders in every header value."""
    return {name: resolve(_format_value(value), namespaces) for name, value in headers.items()}


def _is_exact(s: str) -> bool:
    return _PLACEHOLDER.search(s) is not None and _PLACEHOLDER.sub("", s) == ""


def _resolve_value(value: Any, namespaces: Namespaces) -> Any:
    if isinstance(value, str):
        if _is_exact(value):
            match = _PLACEHOLDER.search(value)
            resolved = _lookup(match, namespaces) if match else None
            return "" if resolved is None else resolved
        return resolve(value, namespaces)
    if isinstance(value, dict):
        return {key: _resolve_value(item, namespaces) for key, item in value.items()}
    if isinstance(value, list):
        return [_resolve_value(item, namespaces) for item in value]
    return value


def resolve_body(body: str, namespaces: Namespaces) -> str:
    """Resolve a request body template.

    A JSON body keeps the types of values substituted for whole-string placeholders;
    anything else falls back to plain string substitution.
    """
    try:
        parsed = json.loads(body, parse_constant=_reject_constant)
        return _marshal(_resolve_value(parsed, namespaces))
    except (TypeError, ValueError):
        return resolve(body, namespaces)
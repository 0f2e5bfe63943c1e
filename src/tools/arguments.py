"""Tool-call argument accessors.

Arguments come from the oracle unvalidated; shape errors surface here as
InvalidArgumentsError and end up as failed tool results.
"""

from __future__ import annotations

import re
from typing import Any, Mapping

from core.errors import InvalidArgumentsError

# DNS-1123 subdomain (object names) and label (namespace names).
_SUBDOMAIN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")
_LABEL = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")


def require_str(args: Mapping[str, Any], key: str) -> str:
    value = args.get(key)
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgumentsError(f"'{key}' must be a non-empty string")
    return value.strip()


def optional_str(args: Mapping[str, Any], key: str) -> str | None:
    value = args.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise InvalidArgumentsError(f"'{key}' must be a string")
    return value


def to_int(value: Any, key: str) -> int:
    # bool is an int subclass; reject it explicitly.
    if isinstance(value, bool):
        raise InvalidArgumentsError(f"'{key}' must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise InvalidArgumentsError(f"'{key}' must be an integer")


def require_int(args: Mapping[str, Any], key: str) -> int:
    if key not in args or args[key] is None:
        raise InvalidArgumentsError(f"'{key}' is required")
    return to_int(args[key], key)


def optional_int(args: Mapping[str, Any], key: str, default: int | None = None) -> int | None:
    value = args.get(key)
    if value is None or value == "":
        return default
    return to_int(value, key)


def optional_mapping(args: Mapping[str, Any], key: str) -> dict[str, Any] | None:
    value = args.get(key)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise InvalidArgumentsError(f"'{key}' must be an object")
    return dict(value)


def require_mapping(args: Mapping[str, Any], key: str) -> dict[str, Any]:
    value = optional_mapping(args, key)
    if value is None:
        raise InvalidArgumentsError(f"'{key}' must be an object")
    return value


def require_name(args: Mapping[str, Any], key: str = "name") -> str:
    """Object name; anything outside DNS-1123 (e.g. a leading '-') is rejected."""

    value = require_str(args, key)
    if len(value) > 253 or not _SUBDOMAIN.match(value):
        raise InvalidArgumentsError(f"'{key}' is not a valid resource name: {value!r}")
    return value


def require_namespace(args: Mapping[str, Any], key: str = "namespace") -> str:
    value = require_str(args, key)
    if len(value) > 63 or not _LABEL.match(value):
        raise InvalidArgumentsError(f"'{key}' is not a valid namespace name: {value!r}")
    return value


def optional_name(args: Mapping[str, Any], key: str) -> str | None:
    if optional_str(args, key) is None:
        return None
    return require_name(args, key)

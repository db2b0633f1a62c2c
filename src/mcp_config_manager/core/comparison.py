"""Structural equality for JSON-like config values."""

from typing import Any, Dict, Iterable, Optional

from mcp_config_manager.core.models import TRANSIENT_KEYS


def _normalize(value: Any) -> Any:
    # bool is an int subclass; keep true != 1 like JSON does.
    if isinstance(value, bool):
        return ("bool", value)
    if isinstance(value, dict):
        return {k: _normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    return value


def structural_equal(a: Any, b: Any, ignore_keys: Optional[Iterable[str]] = None) -> bool:
    """
    Deep-compare two JSON-like values.

    Mapping key order is irrelevant, list order is significant. When both
    values are mappings, the keys in ``ignore_keys`` (the transient response
    fields by default) are dropped from the top level before comparing.
    Nested values are compared in full, so an env var that happens to be
    called ``enabled`` still counts.
    """
    ignored = frozenset(TRANSIENT_KEYS if ignore_keys is None else ignore_keys)
    if isinstance(a, dict) and isinstance(b, dict):
        a = {k: v for k, v in a.items() if k not in ignored}
        b = {k: v for k, v in b.items() if k not in ignored}
    return _normalize(a) == _normalize(b)


def servers_equal(
    a: Optional[Dict[str, Any]],
    b: Optional[Dict[str, Any]],
    ignore_keys: Optional[Iterable[str]] = None,
) -> bool:
    """Compare two ``mcpServers`` maps definition by definition."""
    a = a or {}
    b = b or {}
    if set(a) != set(b):
        return False
    return all(structural_equal(a[name], b[name], ignore_keys) for name in a)

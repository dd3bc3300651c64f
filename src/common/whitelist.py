from __future__ import annotations

import json
from typing import Any, List, Optional, Set, Union


Allowed = Set[Union[int, str]]


def _coerce(item: Any) -> Optional[Union[int, str]]:
    # bool is an int subclass; never treat True/False as chat 1/0
    if isinstance(item, bool):
        return None
    if isinstance(item, int):
        return item
    if isinstance(item, float):
        return int(item) if item.is_integer() else None
    if isinstance(item, str):
        s = item.strip().strip("\"'")
        if not s:
            return None
        try:
            return int(s)
        except ValueError:
            return s
    return None


def parse_allowed_chat_ids(raw: Optional[str]) -> Allowed:
    """Parse allowed chat ids from CSV or JSON array.

    Accepts either:
    - JSON array: e.g., "[12345, -67890, \"@mychannel\"]"
    - CSV (commas/newlines/spaces treated as separators): "12345, -67890, @mychannel"

    Returns a set of chat identifiers (ints for numeric ids, str otherwise).
    Empty or invalid input yields an empty set.
    """
    if not raw or not isinstance(raw, str):
        return set()

    items: List[Any]
    try:
        data = json.loads(raw)
    except ValueError:
        data = None
    if isinstance(data, list):
        items = data
    else:
        norm = raw.replace("\n", ",").replace(" ", ",")
        items = [tok for tok in norm.split(",") if tok.strip()]

    out: Allowed = set()
    for item in items:
        value = _coerce(item)
        if value is not None:
            out.add(value)
    return out


def _norm_handle(s: str) -> str:
    return s.strip().lstrip("@").lower()


def is_chat_allowed(chat_id: Any, allowed: Allowed, *, username: Optional[str] = None) -> bool:
    """Return True if an inbound chat may use the bot.

    - An empty allow-list allows nobody.
    - Numeric ids (int or numeric str) must be listed.
    - A chat username (with or without '@', case-insensitive) matching a
      listed handle is also accepted.
    """
    if not allowed:
        return False

    cid = _coerce(chat_id)
    if isinstance(cid, int) and cid in allowed:
        return True

    handles = {_norm_handle(s) for s in allowed if isinstance(s, str)}
    for candidate in (cid if isinstance(cid, str) else None, username):
        if isinstance(candidate, str) and candidate and _norm_handle(candidate) in handles:
            return True
    return False


def is_target_allowed(target: Union[int, str], allowed: Allowed) -> bool:
    """Return True if an outbound target chat is allowed.

    Unlike inbound checks, an empty allow-list means no restriction.
    """
    if not allowed:
        return True
    return is_chat_allowed(target, allowed)


__all__ = ["Allowed", "parse_allowed_chat_ids", "is_chat_allowed", "is_target_allowed"]

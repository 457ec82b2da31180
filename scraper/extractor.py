"""Locate the ``"initialState":`` JSON block embedded in marketplace pages."""

import json
import logging
from typing import Any, Callable

log = logging.getLogger(__name__)

STATE_MARKER = '"initialState":'

BLOCKED_TOKENS = (
    "captcha",
    "verify you are human",
    "account-verification",
    "suspicious-traffic",
    "punish",
)


def _balanced_end(text: str, start: int) -> int | None:
    depth = 0
    for i in range(start, len(text)):
        ch = text[i]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return None


def _scan(html: str, accept: Callable[[dict], bool]) -> dict | None:
    search_from = 0
    while search_from < len(html):
        idx = html.find(STATE_MARKER, search_from)
        if idx < 0:
            return None

        json_start = idx + len(STATE_MARKER)
        json_end = _balanced_end(html, json_start)
        if json_end is None:
            search_from = json_start
            continue

        try:
            state = json.loads(html[json_start : json_end + 1])
        except json.JSONDecodeError as e:
            log.debug(f"Skipping malformed state block at {json_start}: {e}")
            search_from = json_start + 1
            continue

        if isinstance(state, dict) and accept(state):
            return state
        search_from = json_end + 1

    return None


def _has_results(state: dict) -> bool:
    results = state.get("results")
    return isinstance(results, list) and len(results) > 0


def _has_components(state: dict) -> bool:
    return isinstance(state.get("components"), dict)


def extract_state(html: str) -> dict | None:
    """Return the first embedded listing payload with a non-empty ``results`` list."""
    return _scan(html, _has_results)


def extract_detail_state(html: str) -> dict | None:
    """Return the first embedded item-page payload carrying a ``components`` object."""
    return _scan(html, _has_components)


def dig(data: Any, *keys: str | int, default: Any = None) -> Any:
    """Walk nested dicts/lists, returning ``default`` at the first missing step."""
    for key in keys:
        if isinstance(key, int) and isinstance(data, list) and -len(data) <= key < len(data):
            data = data[key]
        elif isinstance(key, str) and isinstance(data, dict) and key in data:
            data = data[key]
        else:
            return default
    return default if data is None else data


def extract_best_seller_ids(state: dict[str, Any]) -> set[str]:
    selected = dig(
        state, "melidata_track", "event_data", "highlights_info", "best_seller_info", "selected"
    )
    if not isinstance(selected, list):
        return set()
    return {item_id for item_id in selected if isinstance(item_id, str)}


def looks_blocked(html: str) -> bool:
    lowered = html.lower()
    return any(token in lowered for token in BLOCKED_TOKENS)

"""
Visibility - Which player seats may see which elements.

An element either carries an explicit visibility setting or inherits the
setting of its nearest ancestor; the root defaults to visible to all.

A setting is a dict:
    {"mode": "owner", "addPlayers": [2], "exceptPlayers": [3]}

Modes:
- all: everyone
- owner: only the seat in the element's (or nearest ancestor's) `player`
  attribute
- hidden: nobody; the element is replaced by a placeholder
- count-only: nobody sees the contents, but the child count is kept
- unordered: nobody sees the contents (order is not revealed either)

exceptPlayers always wins over addPlayers, which always wins over the mode.

Filtering works on exported tree JSON, so the same code serves the truth
export and the lagged theatre snapshot.
"""

from __future__ import annotations
from copy import deepcopy
from typing import Any


VISIBILITY_MODES = frozenset({"all", "owner", "hidden", "count-only", "unordered"})

DEFAULT_VISIBILITY: dict[str, Any] = {"mode": "all"}

# Attribute holding an element's owning seat
OWNER_ATTRIBUTE = "player"


def normalize_visibility(value: str | dict[str, Any] | None) -> dict[str, Any] | None:
    """
    Turn a mode name or config dict into a stored visibility setting.

    None clears the explicit setting. Raises ValueError for unknown modes
    or malformed player lists.
    """
    if value is None:
        return None
    if isinstance(value, str):
        value = {"mode": value}
    if not isinstance(value, dict):
        raise ValueError(f"Invalid visibility: {value!r}")

    mode = value.get("mode", "all")
    if mode not in VISIBILITY_MODES:
        raise ValueError(f"Unknown visibility mode: {mode!r}")

    setting: dict[str, Any] = {"mode": mode}
    for key in ("addPlayers", "exceptPlayers"):
        players = value.get(key)
        if players is None:
            continue
        if not all(isinstance(p, int) for p in players):
            raise ValueError(f"{key} must be a list of seats")
        setting[key] = sorted(set(players))
    return setting


def can_player_see(visibility: dict[str, Any], seat: int, owner: int | None) -> bool:
    """True if `seat` may see an element with this (resolved) visibility."""
    if seat in visibility.get("exceptPlayers", ()):
        return False
    if seat in visibility.get("addPlayers", ()):
        return True

    mode = visibility.get("mode", "all")
    if mode == "all":
        return True
    if mode == "owner":
        return owner is not None and seat == owner
    return False


def filter_view_for_player(tree: dict[str, Any], seat: int) -> dict[str, Any]:
    """
    Return a copy of an exported tree with what `seat` may not see removed.

    Elements the seat can't see become placeholders: a count-only element
    keeps its name, its $-prefixed attributes and a `childCount`; anything
    else keeps only className, id and a `__hidden` marker. Game-level keys
    on the root are kept as they are.
    """
    return _filter_node(tree, seat, DEFAULT_VISIBILITY, None)


def _filter_node(
    node: dict[str, Any],
    seat: int,
    inherited: dict[str, Any],
    inherited_owner: int | None,
) -> dict[str, Any]:
    attributes = node.get("attributes") or {}
    visibility = node.get("visibility") or inherited
    owner = attributes.get(OWNER_ATTRIBUTE, inherited_owner)
    children = node.get("children") or []

    if not can_player_see(visibility, seat, owner):
        if visibility.get("mode") == "count-only":
            return {
                "className": node.get("className"),
                "id": node.get("id"),
                "name": node.get("name", ""),
                "attributes": {k: deepcopy(v) for k, v in attributes.items() if k.startswith("$")},
                "children": [],
                "childCount": len(children),
            }
        return {
            "className": node.get("className"),
            "id": node.get("id"),
            "attributes": {"__hidden": True},
            "children": [],
        }

    filtered = {key: deepcopy(value) for key, value in node.items() if key != "children"}
    filtered["children"] = [
        _filter_node(child, seat, visibility, owner) for child in children
    ]
    return filtered

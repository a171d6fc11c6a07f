"""
Element Tree - Generic game elements and their JSON form.

Every piece of game state that can be animated lives in one tree:
- The Game is the root (id 0)
- Spaces, pieces, cards etc. are GameElement subclasses
- Each element has a stable integer ID, a name and an attribute map

Design principles:
- Elements never mutate themselves directly from game code: the public
  methods (create, put_into, remove, set_attribute) go through commands so
  that they are recorded in history
- The *_internal methods do the actual work and notify the active
  mutation capture context
- Serializable: to_json() / from_json() round-trip the whole subtree
"""

from __future__ import annotations
from copy import deepcopy
from typing import Any, TYPE_CHECKING

from .command import (
    AddVisibleTo,
    CreateElement,
    MoveElement,
    RemoveElement,
    SetAttribute,
    SetVisibility,
)
from .mutation_capture import CreateMutation, MoveMutation, SetAttributeMutation

if TYPE_CHECKING:
    from .game import Game


# ID reserved for the off-tree pile. Never serialized.
PILE_ID = -1


class GameElement:
    """
    A node in the game tree.

    Subclasses only need to exist (for their class name); attributes are
    kept in a plain dict so any element can be serialized generically.
    """

    def __init__(
        self,
        name: str,
        element_id: int,
        game: Game | None = None,
        attributes: dict[str, Any] | None = None,
        class_name: str | None = None,
    ):
        self.name = name
        self.id = element_id
        self.game = game
        self.attributes: dict[str, Any] = dict(attributes or {})
        self.class_name = class_name or type(self).__name__
        # Explicit visibility setting; None inherits from the parent
        self.visibility: dict[str, Any] | None = None
        self._children: list[GameElement] = []
        self._parent: GameElement | None = None

    def __repr__(self) -> str:
        return f"{self.class_name}({self.name!r}, id={self.id})"

    # =========================================================================
    # Tree navigation
    # =========================================================================

    @property
    def parent(self) -> GameElement | None:
        return self._parent

    @property
    def children(self) -> list[GameElement]:
        """Children in order (copy)."""
        return list(self._children)

    def get(self, attribute: str, default: Any = None) -> Any:
        return self.attributes.get(attribute, default)

    def all(self, cls: type[GameElement] | None = None, name: str | None = None) -> list[GameElement]:
        """All descendants (depth first) matching an optional class and name."""
        found = []
        for child in self._children:
            if (cls is None or isinstance(child, cls)) and (name is None or child.name == name):
                found.append(child)
            found.extend(child.all(cls, name))
        return found

    def first(self, cls: type[GameElement] | None = None, name: str | None = None) -> GameElement | None:
        matches = self.all(cls, name)
        return matches[0] if matches else None

    def find_by_id(self, element_id: int) -> GameElement | None:
        if self.id == element_id:
            return self
        for child in self._children:
            found = child.find_by_id(element_id)
            if found is not None:
                return found
        return None

    # =========================================================================
    # Public mutations (recorded as commands)
    # =========================================================================

    def create(self, cls: type[GameElement], name: str, **attributes: Any) -> GameElement:
        """Create a child element of the given class."""
        game = self._require_game()
        game.register_element_class(cls)
        new_id = game.peek_next_id()
        result = game.execute(CreateElement(
            class_name=cls.__name__,
            name=name,
            parent_id=self.id,
            attributes=attributes or None,
        ))
        if not result.success:
            raise ValueError(result.error)
        return game.get_element_by_id(new_id)

    def put_into(self, destination: GameElement, position: str = "last") -> None:
        """Move this element under another element."""
        result = self._require_game().execute(MoveElement(
            element_id=self.id,
            destination_id=destination.id,
            position=position,
        ))
        if not result.success:
            raise ValueError(result.error)

    def remove(self) -> None:
        """Remove this element from play (moves it to the pile)."""
        result = self._require_game().execute(RemoveElement(element_id=self.id))
        if not result.success:
            raise ValueError(result.error)

    def set_attribute(self, attribute: str, value: Any) -> None:
        result = self._require_game().execute(SetAttribute(
            element_id=self.id,
            attribute=attribute,
            value=value,
        ))
        if not result.success:
            raise ValueError(result.error)

    def set_visibility(self, visibility: str | dict[str, Any] | None) -> None:
        """Set who may see this element (a mode name, a config dict, or None to inherit)."""
        result = self._require_game().execute(SetVisibility(element_id=self.id, visibility=visibility))
        if not result.success:
            raise ValueError(result.error)

    def add_visible_to(self, *players: int) -> None:
        result = self._require_game().execute(AddVisibleTo(element_id=self.id, players=list(players)))
        if not result.success:
            raise ValueError(result.error)

    # =========================================================================
    # Internal mutations (used by the command executor)
    # =========================================================================

    def _create_internal(
        self,
        cls: type[GameElement],
        name: str,
        attributes: dict[str, Any] | None = None,
        class_name: str | None = None,
    ) -> GameElement:
        game = self._require_game()
        element = cls(
            name=name,
            element_id=game.allocate_id(),
            game=game,
            attributes=attributes,
            class_name=class_name,
        )
        element._parent = self
        self._children.append(element)
        game.index_element(element)

        game.record_mutation(CreateMutation(
            parent_id=self.id,
            element_id=element.id,
            class_name=element.class_name,
            name=element.name,
            attributes=deepcopy(element.attributes),
        ))
        return element

    def _move_internal(self, destination: GameElement, position: str = "last") -> None:
        previous = self._parent
        if previous is not None:
            previous._children.remove(self)
        if position == "first":
            destination._children.insert(0, self)
        else:
            destination._children.append(self)
        self._parent = destination

        self._require_game().record_mutation(MoveMutation(
            element_id=self.id,
            from_parent_id=previous.id if previous is not None else PILE_ID,
            to_parent_id=destination.id,
            position=position,
        ))

    def _set_attribute_internal(self, attribute: str, value: Any) -> None:
        old_value = self.attributes.get(attribute)
        self.attributes[attribute] = value
        self._require_game().record_mutation(SetAttributeMutation(
            element_id=self.id,
            attribute=attribute,
            old_value=deepcopy(old_value),
            new_value=deepcopy(value),
        ))

    def _unset_attribute_internal(self, attribute: str) -> None:
        old_value = self.attributes.pop(attribute, None)
        self._require_game().record_mutation(SetAttributeMutation(
            element_id=self.id,
            attribute=attribute,
            old_value=deepcopy(old_value),
            new_value=None,
        ))

    def _set_visibility_internal(self, visibility: dict[str, Any] | None) -> None:
        self.visibility = deepcopy(visibility)

    def _require_game(self) -> Game:
        if self.game is None:
            raise ValueError(f"{self!r} is not attached to a game")
        return self.game

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_json(self) -> dict[str, Any]:
        """Serialize this element and its subtree."""
        data = {
            "className": self.class_name,
            "id": self.id,
            "name": self.name,
            "attributes": deepcopy(self.attributes),
            "children": [child.to_json() for child in self._children],
        }
        if self.visibility is not None:
            data["visibility"] = deepcopy(self.visibility)
        return data

    @classmethod
    def from_json(
        cls,
        data: dict[str, Any],
        game: Game,
        registry: dict[str, type[GameElement]],
    ) -> GameElement:
        """
        Rebuild a subtree from its JSON form.

        Unknown class names fall back to GameElement but keep their
        className so that a re-export is identical.
        """
        class_name = data["className"]
        element_cls = registry.get(class_name, GameElement)
        element = element_cls(
            name=data.get("name", ""),
            element_id=data["id"],
            game=game,
            attributes=deepcopy(data.get("attributes") or {}),
            class_name=class_name,
        )
        element.visibility = deepcopy(data.get("visibility"))
        for child_data in data.get("children") or []:
            child = GameElement.from_json(child_data, game, registry)
            child._parent = element
            element._children.append(child)
        return element

"""
Content registries.

Plain keyed stores with no temporal logic: scenes by id, game actions by
id, and the program choice lookup used by the navigator.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, List, Optional, Tuple, TypeVar, Union

from ..bus import EventBus, EventKind
from ..config import DEFAULT_MESSAGES
from ..types import ALL_COMMAND_KEYS, parse_command_key
from .models import Choice, ChoiceList, ProgramNode, Scene, SingleChoice

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Registry(Generic[T]):
    """
    Thread-safe keyed store.

    Subclasses define key_of() to derive the key from an item.
    """

    def __init__(self, name: str = "registry"):
        self.name = name
        self._items: Dict[str, T] = {}
        self._lock = threading.RLock()

    def key_of(self, item: T) -> str:
        raise NotImplementedError

    def register(self, item: T) -> None:
        """Add an item, replacing any item with the same key."""
        key = self.key_of(item)
        with self._lock:
            if key in self._items:
                logger.debug(f"{self.name}: replacing {key}")
            self._items[key] = item

    def unregister(self, key: str) -> bool:
        with self._lock:
            return self._items.pop(key, None) is not None

    def get(self, key: str) -> Optional[T]:
        with self._lock:
            return self._items.get(key)

    def has(self, key: str) -> bool:
        with self._lock:
            return key in self._items

    def list_all(self) -> List[T]:
        with self._lock:
            return list(self._items.values())

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._items.keys())

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._items


class SceneRegistry(Registry[Scene]):
    """Loaded scenes keyed by scene id."""

    def __init__(self):
        super().__init__("scenes")

    def key_of(self, item: Scene) -> str:
        return item.id


# --- Actions ---

@dataclass
class ActionContext:
    """
    What an action sees when it runs.

    Attributes:
        state: Snapshot of the application state
        scene: Current scene, if in game mode
        command: Command key that triggered the action
        bus: Event bus for publishing output
    """
    state: Any
    scene: Optional[Scene] = None
    command: Optional[str] = None
    bus: Optional[EventBus] = None

    def say(self, text: str) -> None:
        """Publish an output message."""
        if self.bus is not None:
            self.bus.emit(EventKind.OUTPUT, text=text)


@dataclass
class GameAction:
    """
    A command-triggered behavior registered by content or the host.

    Attributes:
        id: Unique id
        name: Display name used in messages
        commands: Command keys that trigger the action
        action: Callable run with an ActionContext
        condition: Optional eligibility check
    """
    id: str
    name: str
    action: Callable[[ActionContext], None]
    commands: List[str] = field(default_factory=list)
    description: str = ""
    condition: Optional[Callable[[ActionContext], bool]] = None

    def __post_init__(self):
        self.commands = [parse_command_key(c) for c in self.commands]

    def is_available(self, context: ActionContext) -> bool:
        return self.condition is None or bool(self.condition(context))


class ActionRegistry(Registry[GameAction]):
    """
    Game actions keyed by id.

    Actions never propagate errors: a failing action publishes an error
    event and reports False.
    """

    def __init__(self, bus: EventBus, messages: Optional[Dict[str, str]] = None):
        super().__init__("actions")
        self.bus = bus
        self.messages = messages or {}

    def key_of(self, item: GameAction) -> str:
        return item.id

    def find_action_for_command(self, key: str, context: ActionContext) -> Optional[GameAction]:
        """First registered action that lists the command and whose condition holds."""
        key = parse_command_key(key)
        for action in self.list_all():
            if key not in action.commands:
                continue
            try:
                if action.is_available(context):
                    return action
            except Exception as e:
                logger.warning(f"Condition of action {action.id} failed: {e}")
        return None

    def execute(self, action_id: str, context: ActionContext) -> bool:
        """
        Run an action by id.

        Returns:
            True if the action ran without raising
        """
        action = self.get(action_id)
        if action is None:
            logger.debug(f"No action {action_id}")
            return False

        try:
            available = action.is_available(context)
        except Exception as e:
            logger.warning(f"Condition of action {action.id} failed: {e}")
            available = False
        if not available:
            template = self.messages.get("action_unavailable") or DEFAULT_MESSAGES["action_unavailable"]
            self.bus.emit(EventKind.OUTPUT, text=template.format(name=action.name))
            return False

        return self._run(action, context)

    def execute_for_command(self, key: str, context: ActionContext) -> bool:
        """Run the action bound to a command, if any."""
        action = self.find_action_for_command(key, context)
        if action is None:
            return False
        return self._run(action, context)

    def _run(self, action: GameAction, context: ActionContext) -> bool:
        try:
            action.action(context)
        except Exception as e:
            logger.error(f"Action {action.id} failed: {e}", exc_info=True)
            self.bus.emit(
                EventKind.ERROR,
                message=f"Error executing action {action.id}",
                error=str(e),
                action=action.id,
            )
            return False
        self.bus.emit(
            EventKind.COMMAND_EXECUTED,
            action=action.id,
            command=context.command,
        )
        return True

    def debug_info(self) -> Dict[str, Any]:
        return {"total_actions": len(self), "action_ids": self.keys()}


# --- Program choices ---

Slot = Union[SingleChoice, ChoiceList]


class ProgramChoiceLookup:
    """
    Choice slots by command key.

    Slots come from the current program node. A host can register extra
    slots that take precedence over the node's own: either for one node
    id, or for every node (node_id="*"). Lookups check the node-specific
    slot, then the global slot, then the node.
    """

    ANY_NODE = "*"

    def __init__(self):
        self._slots: Dict[Tuple[str, str], Slot] = {}
        self._lock = threading.RLock()

    def register(self, key: str, slot: Union[Slot, Choice], node_id: str = ANY_NODE) -> None:
        """
        Register a slot for a command key.

        Raises:
            ValueError: If key is not one of the eight commands
        """
        if isinstance(slot, Choice):
            slot = SingleChoice(choice=slot)
        entry = (node_id, parse_command_key(key))
        with self._lock:
            if entry in self._slots:
                logger.debug(f"Program choices: replacing {entry[1]} for {node_id}")
            self._slots[entry] = slot

    def unregister(self, key: str, node_id: str = ANY_NODE) -> bool:
        try:
            entry = (node_id, parse_command_key(key))
        except ValueError:
            return False
        with self._lock:
            return self._slots.pop(entry, None) is not None

    def list_all(self) -> List[Tuple[str, str, Slot]]:
        """Registered slots as (node_id, key, slot)."""
        with self._lock:
            return [(node_id, key, slot) for (node_id, key), slot in self._slots.items()]

    def clear(self) -> None:
        with self._lock:
            self._slots.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._slots)

    def _registered(self, node: ProgramNode, key: str) -> Optional[Slot]:
        with self._lock:
            slot = self._slots.get((node.id, key))
            if slot is None:
                slot = self._slots.get((self.ANY_NODE, key))
            return slot

    def lookup(self, node: Optional[ProgramNode], key: str) -> Optional[Slot]:
        if node is None:
            return None
        try:
            key = parse_command_key(key)
        except ValueError:
            return None
        slot = self._registered(node, key)
        return slot if slot is not None else node.slot(key)

    def has(self, node: Optional[ProgramNode], key: str) -> bool:
        slot = self.lookup(node, key)
        return slot is not None and slot.size > 0

    def resolve(self, slot: Optional[Slot], cursor: int = 0) -> Optional[Choice]:
        """Pick the choice at the cursor, wrapping around lists."""
        if slot is None:
            return None
        return slot.at(cursor)

    def labels(self, node: Optional[ProgramNode]) -> Dict[str, List[str]]:
        """Labels of every populated slot, in command-key order."""
        if node is None:
            return {}
        result: Dict[str, List[str]] = {}
        for key in ALL_COMMAND_KEYS:
            slot = self.lookup(node, key)
            if slot is None:
                continue
            if isinstance(slot, ChoiceList):
                labels = [c.label for c in slot.choices]
            else:
                labels = [slot.choice.label]
            if labels:
                result[key] = labels
        return result

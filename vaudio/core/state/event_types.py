"""
Event types for the state reducer.

All state mutations are represented as events. This enables:
- Deterministic replay
- Single-writer pattern (no races)
- Transaction boundaries
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from ...content.models import Choice, GameGraph, ProgramNode


class StateEventType(str, Enum):
    """All possible state mutation events."""

    # Mode and program navigation
    MODE_SET = "mode_set"
    PROGRAM_SET = "program_set"
    PROGRAM_PUSH = "program_push"
    PROGRAM_POP = "program_pop"
    GAME_SET = "game_set"

    # Scenes
    SCENE_SET = "scene_set"
    HISTORY_PUSH = "history_push"

    # Selection
    SELECTION_SET = "selection_set"
    SELECTION_CLEAR = "selection_clear"

    # Lists
    LIST_SET = "list_set"

    # Game data
    VARIABLE_SET = "variable_set"
    VARIABLE_REMOVE = "variable_remove"
    INVENTORY_ADD = "inventory_add"
    INVENTORY_REMOVE = "inventory_remove"
    PLAYER_UPDATE = "player_update"

    # Lifecycle
    GAME_STATE_RESET = "game_state_reset"
    STATE_RESET = "state_reset"
    RUNNING_SET = "running_set"

    # Transaction control
    TRANSACTION_BEGIN = "transaction_begin"
    TRANSACTION_COMMIT = "transaction_commit"
    TRANSACTION_ABORT = "transaction_abort"


@dataclass(frozen=True)
class StateEvent:
    """
    Immutable event representing a state mutation.

    Attributes:
        event_type: Type of mutation
        payload: Event-specific data
        timestamp: When event was created (ISO format)
        seq: Sequence number assigned by the store
        txn_id: Transaction to buffer into; None means the innermost
            open transaction, or immediate application if none is open
        source: What created this event (for debugging)
    """
    event_type: StateEventType
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())
    seq: int = 0
    txn_id: Optional[str] = None
    source: str = "unknown"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for logging. Model payloads are reduced to their ids."""
        return {
            "event_type": self.event_type.value,
            "payload": {k: _loggable(v) for k, v in self.payload.items()},
            "timestamp": self.timestamp,
            "seq": self.seq,
            "txn_id": self.txn_id,
            "source": self.source,
        }


def _loggable(value: Any) -> Any:
    if isinstance(value, (ProgramNode, GameGraph)):
        return value.id
    if isinstance(value, Choice):
        return value.label
    return value


# Event factory functions

def mode_set_event(mode: Any, txn_id: Optional[str] = None) -> StateEvent:
    return StateEvent(
        event_type=StateEventType.MODE_SET,
        payload={"mode": mode},
        txn_id=txn_id,
        source="mode_set_event",
    )


def program_set_event(
    node: ProgramNode,
    path: Optional[str] = None,
    txn_id: Optional[str] = None,
) -> StateEvent:
    """Replace the current program node. A None path keeps the previous path."""
    return StateEvent(
        event_type=StateEventType.PROGRAM_SET,
        payload={"node": node, "path": path},
        txn_id=txn_id,
        source="program_set_event",
    )


def program_push_event(path: str, txn_id: Optional[str] = None) -> StateEvent:
    return StateEvent(
        event_type=StateEventType.PROGRAM_PUSH,
        payload={"path": path},
        txn_id=txn_id,
        source="program_push_event",
    )


def program_pop_event(txn_id: Optional[str] = None) -> StateEvent:
    return StateEvent(
        event_type=StateEventType.PROGRAM_POP,
        payload={},
        txn_id=txn_id,
        source="program_pop_event",
    )


def game_set_event(
    game: Optional[GameGraph],
    path: Optional[str] = None,
    txn_id: Optional[str] = None,
) -> StateEvent:
    return StateEvent(
        event_type=StateEventType.GAME_SET,
        payload={"game": game, "path": path},
        txn_id=txn_id,
        source="game_set_event",
    )


def scene_set_event(scene_id: str, txn_id: Optional[str] = None) -> StateEvent:
    return StateEvent(
        event_type=StateEventType.SCENE_SET,
        payload={"scene_id": scene_id},
        txn_id=txn_id,
        source="scene_set_event",
    )


def history_push_event(scene_id: str, txn_id: Optional[str] = None) -> StateEvent:
    return StateEvent(
        event_type=StateEventType.HISTORY_PUSH,
        payload={"scene_id": scene_id},
        txn_id=txn_id,
        source="history_push_event",
    )


def selection_set_event(
    key: str,
    choice: Choice,
    node: ProgramNode,
    cursor: int = 0,
    txn_id: Optional[str] = None,
) -> StateEvent:
    """Store a pending selection and start awaiting confirmation."""
    return StateEvent(
        event_type=StateEventType.SELECTION_SET,
        payload={"key": key, "choice": choice, "node": node, "cursor": cursor},
        txn_id=txn_id,
        source="selection_set_event",
    )


def selection_clear_event(txn_id: Optional[str] = None) -> StateEvent:
    return StateEvent(
        event_type=StateEventType.SELECTION_CLEAR,
        payload={},
        txn_id=txn_id,
        source="selection_clear_event",
    )


def list_set_event(
    list_name: Any,
    extra_frame_number: Optional[str] = None,
    txn_id: Optional[str] = None,
) -> StateEvent:
    return StateEvent(
        event_type=StateEventType.LIST_SET,
        payload={"list": list_name, "extra_frame_number": extra_frame_number},
        txn_id=txn_id,
        source="list_set_event",
    )


def variable_set_event(name: str, value: Any, txn_id: Optional[str] = None) -> StateEvent:
    return StateEvent(
        event_type=StateEventType.VARIABLE_SET,
        payload={"name": name, "value": value},
        txn_id=txn_id,
        source="variable_set_event",
    )


def variable_remove_event(name: str, txn_id: Optional[str] = None) -> StateEvent:
    return StateEvent(
        event_type=StateEventType.VARIABLE_REMOVE,
        payload={"name": name},
        txn_id=txn_id,
        source="variable_remove_event",
    )


def inventory_add_event(item: str, txn_id: Optional[str] = None) -> StateEvent:
    return StateEvent(
        event_type=StateEventType.INVENTORY_ADD,
        payload={"item": item},
        txn_id=txn_id,
        source="inventory_add_event",
    )


def inventory_remove_event(item: str, txn_id: Optional[str] = None) -> StateEvent:
    return StateEvent(
        event_type=StateEventType.INVENTORY_REMOVE,
        payload={"item": item},
        txn_id=txn_id,
        source="inventory_remove_event",
    )


def player_update_event(
    name: Optional[str] = None,
    stats: Optional[Dict[str, Any]] = None,
    txn_id: Optional[str] = None,
) -> StateEvent:
    """Rename the player and/or merge stat changes."""
    return StateEvent(
        event_type=StateEventType.PLAYER_UPDATE,
        payload={"name": name, "stats": dict(stats or {})},
        txn_id=txn_id,
        source="player_update_event",
    )


def game_state_reset_event(txn_id: Optional[str] = None) -> StateEvent:
    return StateEvent(
        event_type=StateEventType.GAME_STATE_RESET,
        payload={},
        txn_id=txn_id,
        source="game_state_reset_event",
    )


def state_reset_event(txn_id: Optional[str] = None) -> StateEvent:
    return StateEvent(
        event_type=StateEventType.STATE_RESET,
        payload={},
        txn_id=txn_id,
        source="state_reset_event",
    )


def running_set_event(running: bool) -> StateEvent:
    return StateEvent(
        event_type=StateEventType.RUNNING_SET,
        payload={"running": running},
        source="running_set_event",
    )


def transaction_begin_event(txn_id: str) -> StateEvent:
    """Begin a transaction - events buffered until commit."""
    return StateEvent(
        event_type=StateEventType.TRANSACTION_BEGIN,
        txn_id=txn_id,
        source="transaction",
    )


def transaction_commit_event(txn_id: str) -> StateEvent:
    """Commit transaction - apply all buffered events."""
    return StateEvent(
        event_type=StateEventType.TRANSACTION_COMMIT,
        txn_id=txn_id,
        source="transaction",
    )


def transaction_abort_event(txn_id: str, reason: str) -> StateEvent:
    """Abort transaction - discard all buffered events."""
    return StateEvent(
        event_type=StateEventType.TRANSACTION_ABORT,
        payload={"reason": reason},
        txn_id=txn_id,
        source="transaction",
    )

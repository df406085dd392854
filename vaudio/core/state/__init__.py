# State management with event sourcing
from .app_state import AppState, GameState, ListName, Mode
from .event_types import StateEvent, StateEventType
from .reducer import reduce_events, reduce_state
from .store import StateStore, check_invariants

__all__ = [
    "AppState",
    "GameState",
    "ListName",
    "Mode",
    "StateEvent",
    "StateEventType",
    "reduce_events",
    "reduce_state",
    "StateStore",
    "check_invariants",
]

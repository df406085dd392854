"""
Pure reducer for state transitions.

Uses a dispatch dictionary keyed by event type. Handlers never mutate
their input: they shallow-copy the state and replace only the fields
they change.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable

from .app_state import AppState, GameState, ListName, Mode
from .event_types import StateEvent, StateEventType

logger = logging.getLogger(__name__)

Handler = Callable[[AppState, Dict[str, Any]], AppState]


def _cleared_selection(state: AppState) -> AppState:
    return replace(
        state,
        selected_option=None,
        selected_choice=None,
        selected_node=None,
        selection_cursor=0,
        awaiting_confirmation=False,
    )


def _handle_mode_set(state: AppState, payload: Dict[str, Any]) -> AppState:
    return replace(state, mode=Mode(payload["mode"]))


def _handle_program_set(state: AppState, payload: Dict[str, Any]) -> AppState:
    # Selection is left alone: it is bound to the node it was made on
    path = payload.get("path")
    return replace(
        state,
        current_program=payload["node"],
        current_program_path=path if path is not None else state.current_program_path,
    )


def _handle_program_push(state: AppState, payload: Dict[str, Any]) -> AppState:
    return replace(state, program_stack=state.program_stack + [payload["path"]])


def _handle_program_pop(state: AppState, payload: Dict[str, Any]) -> AppState:
    if not state.program_stack:
        return state
    return replace(state, program_stack=state.program_stack[:-1])


def _handle_game_set(state: AppState, payload: Dict[str, Any]) -> AppState:
    return replace(
        state,
        current_game=payload.get("game"),
        current_game_path=payload.get("path"),
    )


def _handle_scene_set(state: AppState, payload: Dict[str, Any]) -> AppState:
    game_state = replace(state.game_state, current_scene=payload["scene_id"])
    return replace(state, game_state=game_state)


def _handle_history_push(state: AppState, payload: Dict[str, Any]) -> AppState:
    game_state = replace(
        state.game_state,
        history=state.game_state.history + [payload["scene_id"]],
    )
    return replace(state, game_state=game_state)


def _handle_selection_set(state: AppState, payload: Dict[str, Any]) -> AppState:
    return replace(
        state,
        selected_option=payload["key"],
        selected_choice=payload["choice"],
        selected_node=payload["node"],
        selection_cursor=payload.get("cursor", 0),
        awaiting_confirmation=True,
    )


def _handle_selection_clear(state: AppState, payload: Dict[str, Any]) -> AppState:
    return _cleared_selection(state)


def _handle_list_set(state: AppState, payload: Dict[str, Any]) -> AppState:
    return replace(
        state,
        current_list=ListName(payload["list"]),
        extra_frame_number=payload.get("extra_frame_number"),
    )


def _handle_variable_set(state: AppState, payload: Dict[str, Any]) -> AppState:
    variables = dict(state.game_state.variables)
    variables[payload["name"]] = payload.get("value")
    return replace(state, game_state=replace(state.game_state, variables=variables))


def _handle_variable_remove(state: AppState, payload: Dict[str, Any]) -> AppState:
    if payload["name"] not in state.game_state.variables:
        return state
    variables = dict(state.game_state.variables)
    del variables[payload["name"]]
    return replace(state, game_state=replace(state.game_state, variables=variables))


def _handle_inventory_add(state: AppState, payload: Dict[str, Any]) -> AppState:
    inventory = state.game_state.inventory + [payload["item"]]
    return replace(state, game_state=replace(state.game_state, inventory=inventory))


def _handle_inventory_remove(state: AppState, payload: Dict[str, Any]) -> AppState:
    item = payload["item"]
    if item not in state.game_state.inventory:
        return state
    inventory = list(state.game_state.inventory)
    inventory.remove(item)
    return replace(state, game_state=replace(state.game_state, inventory=inventory))


def _handle_player_update(state: AppState, payload: Dict[str, Any]) -> AppState:
    player = copy.deepcopy(state.game_state.player)
    if payload.get("name"):
        player["name"] = payload["name"]
    stats = dict(player.get("stats") or {})
    stats.update(payload.get("stats") or {})
    player["stats"] = stats
    return replace(state, game_state=replace(state.game_state, player=player))


def _handle_game_state_reset(state: AppState, payload: Dict[str, Any]) -> AppState:
    return replace(state, game_state=GameState())


def _handle_state_reset(state: AppState, payload: Dict[str, Any]) -> AppState:
    return AppState(running=state.running)


def _handle_running_set(state: AppState, payload: Dict[str, Any]) -> AppState:
    return replace(state, running=bool(payload["running"]))


def _handle_noop(state: AppState, payload: Dict[str, Any]) -> AppState:
    """No-op handler for transaction events."""
    return state


# O(1) dispatch table
_EVENT_HANDLERS: Dict[StateEventType, Handler] = {
    StateEventType.MODE_SET: _handle_mode_set,
    StateEventType.PROGRAM_SET: _handle_program_set,
    StateEventType.PROGRAM_PUSH: _handle_program_push,
    StateEventType.PROGRAM_POP: _handle_program_pop,
    StateEventType.GAME_SET: _handle_game_set,
    StateEventType.SCENE_SET: _handle_scene_set,
    StateEventType.HISTORY_PUSH: _handle_history_push,
    StateEventType.SELECTION_SET: _handle_selection_set,
    StateEventType.SELECTION_CLEAR: _handle_selection_clear,
    StateEventType.LIST_SET: _handle_list_set,
    StateEventType.VARIABLE_SET: _handle_variable_set,
    StateEventType.VARIABLE_REMOVE: _handle_variable_remove,
    StateEventType.INVENTORY_ADD: _handle_inventory_add,
    StateEventType.INVENTORY_REMOVE: _handle_inventory_remove,
    StateEventType.PLAYER_UPDATE: _handle_player_update,
    StateEventType.GAME_STATE_RESET: _handle_game_state_reset,
    StateEventType.STATE_RESET: _handle_state_reset,
    StateEventType.RUNNING_SET: _handle_running_set,
    StateEventType.TRANSACTION_BEGIN: _handle_noop,
    StateEventType.TRANSACTION_COMMIT: _handle_noop,
    StateEventType.TRANSACTION_ABORT: _handle_noop,
}


def reduce_state(state: AppState, event: StateEvent) -> AppState:
    """Apply an event to produce a new state. The input is not modified."""
    handler = _EVENT_HANDLERS.get(event.event_type)

    if handler is None:
        logger.warning(f"Unknown event type: {event.event_type}")
        return state

    return handler(state, event.payload)


def reduce_events(initial_state: AppState, events: Iterable[StateEvent]) -> AppState:
    """Apply a sequence of events to get final state."""
    state = initial_state
    for event in events:
        state = reduce_state(state, event)
    return state

"""
Application state shapes.

AppState is only ever replaced by the reducer; readers get deep copies
from the store.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ...content.models import Choice, GameGraph, ProgramNode


class Mode(str, Enum):
    PROGRAM = "program"
    GAME = "game"


class ListName(str, Enum):
    """Which choice list a program screen is showing."""
    MAIN = "main"
    EXTRA = "extra"


def default_player() -> Dict[str, Any]:
    return {"name": "Player", "stats": {}}


@dataclass
class GameState:
    """Per-game progress, reset whenever a game is entered."""
    current_scene: str = ""
    inventory: List[str] = field(default_factory=list)
    variables: Dict[str, Any] = field(default_factory=dict)
    history: List[str] = field(default_factory=list)
    player: Dict[str, Any] = field(default_factory=default_player)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_scene": self.current_scene,
            "inventory": list(self.inventory),
            "variables": dict(self.variables),
            "history": list(self.history),
            "player": dict(self.player),
        }


@dataclass
class AppState:
    """
    Whole-engine state.

    Attributes:
        mode: Program (menus) or game (scenes)
        current_program: Active menu node
        current_program_path: Content path the active node was loaded from
        current_game: Active game graph
        current_game_path: Directory of the active game
        game_state: Scene progress
        program_stack: Paths to reload on "-"
        selected_option: Pending selection key, if any
        selected_choice: Choice bound when the selection was made
        selected_node: Node the selection was made on
        selection_cursor: Position within a list slot
        awaiting_confirmation: True while a selection waits for 3+4
        current_list: Main or extra list
        extra_frame_number: Extra-frame key being shown
        running: Whether the run loop is active
    """
    mode: Mode = Mode.PROGRAM
    current_program: Optional[ProgramNode] = None
    current_program_path: Optional[str] = None
    current_game: Optional[GameGraph] = None
    current_game_path: Optional[str] = None
    game_state: GameState = field(default_factory=GameState)
    program_stack: List[str] = field(default_factory=list)
    selected_option: Optional[str] = None
    selected_choice: Optional[Choice] = None
    selected_node: Optional[ProgramNode] = None
    selection_cursor: int = 0
    awaiting_confirmation: bool = False
    current_list: ListName = ListName.MAIN
    extra_frame_number: Optional[str] = None
    running: bool = False

    def summary(self) -> Dict[str, Any]:
        """Compact view for logging and debugging."""
        return {
            "mode": self.mode.value,
            "program": self.current_program.id if self.current_program else None,
            "program_path": self.current_program_path,
            "game": self.current_game.id if self.current_game else None,
            "scene": self.game_state.current_scene or None,
            "stack": list(self.program_stack),
            "selected": self.selected_option,
            "awaiting_confirmation": self.awaiting_confirmation,
            "list": self.current_list.value,
            "extra": self.extra_frame_number,
            "running": self.running,
        }

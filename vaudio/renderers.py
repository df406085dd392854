"""
Render sinks.

The engine talks to a renderer through the Renderer protocol only.
ConsoleRenderer is the text implementation used by the CLI; tests pass
a stream (io.StringIO) and inspect what was written.
"""
from __future__ import annotations

import sys
from typing import Dict, Optional, Protocol, TextIO

from .content.models import ProgramNode, Scene
from .content.registries import ProgramChoiceLookup
from .core.state import AppState, GameState, ListName
from .types import ALL_COMMAND_KEYS

# Keyboard letters the console runner maps to each combination
COMBINATION_HINTS: Dict[str, str] = {
    "1+2": "q",
    "1+4": "w",
    "3+2": "e",
    "3+4": "r",
}


class Renderer(Protocol):
    """What the engine needs from an output sink."""

    def render_program(self, node: Optional[ProgramNode], app_state: AppState) -> None: ...

    def render_game(self, scene: Optional[Scene], game_state: GameState) -> None: ...

    def show_message(self, text: str) -> None: ...

    def show_selection(self, key: str, label: str) -> None: ...

    def clear(self) -> None: ...


class ConsoleRenderer:
    """
    Plain-text renderer.

    Args:
        stream: Where to write (stdout by default)
        show_hints: Print the combination key hints under each screen
        clear_screen: Emit an ANSI clear before each screen
    """

    def __init__(
        self,
        stream: Optional[TextIO] = None,
        show_hints: bool = True,
        clear_screen: bool = False,
    ):
        self.stream = stream or sys.stdout
        self.show_hints = show_hints
        self.clear_screen = clear_screen
        self._choices = ProgramChoiceLookup()

    def _write(self, line: str = "") -> None:
        self.stream.write(line + "\n")
        self.stream.flush()

    def clear(self) -> None:
        if self.clear_screen:
            self.stream.write("\033[2J\033[H")
            self.stream.flush()

    def render_program(self, node: Optional[ProgramNode], app_state: AppState) -> None:
        self.clear()
        if node is None:
            self._write("(no program loaded)")
            return

        self._write(f"=== {node.id} ===")
        if node.description:
            self._write(node.description)
        self._write()

        if app_state.current_list == ListName.EXTRA:
            self._write(f"[extra {app_state.extra_frame_number or '-'}]")
        else:
            for key, labels in self._choices.labels(node).items():
                marker = ">" if key == app_state.selected_option else " "
                self._write(f"{marker} {self._key_label(key)}: {' | '.join(labels)}")

        if app_state.awaiting_confirmation and app_state.selected_choice is not None:
            self._write()
            self._write(f"Selected: {app_state.selected_choice.label} (confirm with {self._key_label('3+4')})")
        self._hints()

    def render_game(self, scene: Optional[Scene], game_state: GameState) -> None:
        self.clear()
        if scene is None:
            self._write(f"(scene {game_state.current_scene or '?'} unavailable)")
            return

        self._write(f"=== {scene.title or scene.id} ===")
        if scene.description:
            self._write(scene.description)
        self._write()
        for key in ALL_COMMAND_KEYS:
            entries = scene.choices.get(key)
            if entries:
                self._write(f"  {self._key_label(key)}: {entries[0].text}")
        self._hints()

    def show_message(self, text: str) -> None:
        self._write(f"* {text}")

    def show_selection(self, key: str, label: str) -> None:
        self._write(f"> {key}: {label}")

    def _key_label(self, key: str) -> str:
        hint = COMBINATION_HINTS.get(key)
        return f"{key} ({hint})" if hint and self.show_hints else key

    def _hints(self) -> None:
        if not self.show_hints:
            return
        hints = "  ".join(f"{letter}={key}" for key, letter in COMBINATION_HINTS.items())
        self._write()
        self._write(f"[1-4 select]  {hints}")

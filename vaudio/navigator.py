"""
Narrative navigation state machine.

Consumes resolved commands and drives program trees (menus) and game
graphs (scenes). handle() is the only entry point that mutates
application state, and it does so exclusively through the state store.

Program mode, no pending selection:
    1-4   select the slot (preview, await confirmation)
    1+2   toggle between the program menu and the game menu
    1+4   toggle the extra frame
    3+2   run the node's return choice
    3+4   confirm (no-op without a selection)

Game mode looks each command up in the game's command_map
(choice | menu | info | repeat).

Content-load failures abort the surrounding store transaction, leave
state as it was, and are reported on the bus. Only ExitRequested
escapes handle().
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from .bus import EventBus, EventKind
from .config import EngineConfig
from .content.loader import ContentLoader, join_content_path
from .content.models import (
    Choice,
    ChoiceKind,
    CommandAction,
    ExtraFrame,
    ProgramNode,
    Scene,
)
from .content.registries import (
    ActionContext,
    ActionRegistry,
    ProgramChoiceLookup,
    SceneRegistry,
)
from .core.state import AppState, ListName, Mode, StateStore
from .core.state.event_types import (
    game_set_event,
    game_state_reset_event,
    history_push_event,
    list_set_event,
    mode_set_event,
    program_pop_event,
    program_push_event,
    program_set_event,
    scene_set_event,
    selection_clear_event,
    selection_set_event,
)
from .errors import ContentLoadError, ExitRequested, InvariantViolation, NavigationError
from .logging_config import log_fields
from .types import ResolvedCommand, pair_key

logger = logging.getLogger(__name__)

EXIT_TARGET = "*"
BACK_TARGET = "-"
PROGRAM_PREFIX = "@/"
GAME_PREFIX = "games/"


class NarrativeNavigator:
    """
    Stack-based navigation over programs and games.

    Example:
        >>> navigator = NarrativeNavigator(store, loader, bus, config=config)
        >>> navigator.start()                     # loads the initial menu
        >>> navigator.handle(ResolvedCommand.from_key("1"))
        >>> navigator.handle(ResolvedCommand.from_key("3+4"))
    """

    def __init__(
        self,
        store: StateStore,
        loader: ContentLoader,
        bus: EventBus,
        scenes: Optional[SceneRegistry] = None,
        actions: Optional[ActionRegistry] = None,
        config: Optional[EngineConfig] = None,
        choices: Optional[ProgramChoiceLookup] = None,
    ):
        self.store = store
        self.loader = loader
        self.bus = bus
        self.config = config or EngineConfig()
        self.scenes = scenes if scenes is not None else SceneRegistry()
        self.actions = actions if actions is not None else ActionRegistry(bus, self.config.messages)
        self.choices = choices or ProgramChoiceLookup()

        # Scenes loaded from disk, keyed by (game dir, scene id). Kept out of
        # the scene registry, which only changes on explicit register calls.
        self._scene_cache: Dict[Tuple[str, str], Scene] = {}
        self.handled_count = 0

    # --- public API ---

    def start(self) -> None:
        """
        Load the initial menu.

        Raises:
            ContentLoadError: The engine cannot start without it
        """
        path = self.config.initial_menu
        with self.store.transaction():
            node = self.loader.load_program(path)
            self.store.dispatch(mode_set_event(Mode.PROGRAM))
            self.store.dispatch(program_set_event(node, path))
        logger.info(f"Loaded initial menu {node.id}", extra=log_fields(subsystem="navigator"))
        self.bus.emit(EventKind.PROGRAM_CHANGED, program=node.id, path=path)

    def handle(self, command: ResolvedCommand) -> None:
        """
        Apply one resolved command.

        Raises:
            ExitRequested: The "*" navigation target was reached
            InvariantViolation: The command is not a single or a legal pair
        """
        if len(command.signals) == 2 and pair_key(*command.signals) is None:
            raise InvariantViolation(f"Illegal pair reached the navigator: {command.signals!r}")

        self.handled_count += 1
        state = self.store.state
        logger.debug(
            f"Handling {command.key}",
            extra=log_fields(
                subsystem="navigator",
                command=command.key,
                source=command.source,
                mode=state.mode.value,
            ),
        )

        if state.mode == Mode.GAME:
            self._handle_game(command)
        else:
            self._handle_program(command)

    def current_scene(self) -> Optional[Scene]:
        """Scene for the current game state, from the registry or loaded from disk."""
        state = self.store.state
        if state.mode != Mode.GAME or state.current_game is None:
            return None
        scene_id = state.game_state.current_scene
        if not scene_id:
            return None
        return self._scene(state, scene_id)

    # --- program mode ---

    def _handle_program(self, command: ResolvedCommand) -> None:
        key = command.key
        state = self.store.state

        if not command.is_pair:
            self._select(key)
            return

        if key == "3+4":
            if state.awaiting_confirmation:
                self._confirm()
            return

        if state.awaiting_confirmation:
            # Any other combination abandons the pending selection
            self.store.dispatch(selection_clear_event())

        if key == "1+2":
            self._toggle_menu()
        elif key == "1+4":
            self._toggle_extra()
        elif key == "3+2":
            self._return_choice()
        else:
            self._say("command_not_recognized")

    def _select(self, key: str) -> None:
        state = self.store.state
        node = state.current_program
        slot = self.choices.lookup(node, key)

        cursor = 0
        if (
            slot is not None
            and state.awaiting_confirmation
            and state.selected_option == key
            and state.selected_node == node
        ):
            cursor = state.selection_cursor + 1

        choice = self.choices.resolve(slot, cursor)
        if choice is None:
            self._say("option_not_available")
            return

        self.store.dispatch(selection_set_event(key, choice, node, cursor))
        self.bus.emit(
            EventKind.SELECTION,
            key=key,
            label=choice.label,
            cursor=cursor,
            options=slot.size,
        )

    def _confirm(self) -> None:
        state = self.store.state
        choice = state.selected_choice
        node = state.selected_node
        key = state.selected_option
        # Cleared first so a re-entrant handle() sees no pending selection
        self.store.dispatch(selection_clear_event())
        if choice is None or node is None:
            return
        logger.info(
            f"Confirmed {key} on {node.id}: {choice.label!r}",
            extra=log_fields(subsystem="navigator", command=key),
        )
        self._execute_choice(choice, node)

    def _execute_choice(self, choice: Choice, node: ProgramNode) -> None:
        kind = choice.kind
        if kind == ChoiceKind.SUBMENU:
            submenu = node.submenu(choice)
            self.store.dispatch(program_set_event(submenu))
            logger.info(f"Opened submenu {submenu.id}", extra=log_fields(subsystem="navigator"))
            self.bus.emit(EventKind.PROGRAM_CHANGED, program=submenu.id, path=None)
        elif kind == ChoiceKind.NAVIGATE:
            self.navigate(choice.goto)
        else:
            logger.debug(f"Choice {choice.label!r} has no effect")

    def _toggle_menu(self) -> None:
        node = self.store.state.current_program
        if node is not None and node.is_game_context:
            path = self.config.game_menu
        else:
            path = self.config.program_menu
        self._load_program(path)

    def _toggle_extra(self) -> None:
        state = self.store.state
        if state.current_list == ListName.EXTRA:
            self.store.dispatch(list_set_event(ListName.MAIN, None))
            return

        node = state.current_program
        extra_key = node.extra if node is not None else None
        try:
            with self.store.transaction():
                self.store.dispatch(list_set_event(ListName.EXTRA, extra_key))
                frame = self._load_extra_frame(state, extra_key) if extra_key else None
        except ContentLoadError as e:
            self._load_failed("extra_frame_error", e)
            return

        if frame is not None:
            self._say("extra_frame", key=extra_key, description=frame.description)

    def _load_extra_frame(self, state: AppState, extra_key: str) -> ExtraFrame:
        game = state.current_game
        relative = game.extra.get(extra_key) if game is not None else None
        if relative is None:
            raise ContentLoadError(f"extra:{extra_key}", "no extra frame mapped for this key")
        return self.loader.load_extra(state.current_game_path or "", relative)

    def _return_choice(self) -> None:
        node = self.store.state.current_program
        choice = self.choices.resolve(self.choices.lookup(node, "3+2"))
        if choice is None or node is None:
            self._say("return_not_available")
            return
        self._execute_choice(choice, node)

    # --- navigation ---

    def navigate(self, target: str) -> None:
        """
        Resolve a navigation target.

        Raises:
            ExitRequested: For the "*" target
        """
        logger.info(f"Navigate to {target!r}", extra=log_fields(subsystem="navigator"))
        try:
            self._navigate(target)
        except NavigationError as e:
            logger.warning(f"{e}", extra=log_fields(subsystem="navigator"))
            self._say("navigation_not_implemented", target=target)

    def _navigate(self, target: str) -> None:
        if target == EXIT_TARGET:
            raise ExitRequested("exit requested by content")
        if target == BACK_TARGET:
            self._back()
        elif target.startswith(PROGRAM_PREFIX):
            path = join_content_path(self.config.program_root, target[len(PROGRAM_PREFIX):])
            self._load_program(path, push=self.config.initial_menu)
        elif target.startswith(GAME_PREFIX):
            self._enter_game(target)
        else:
            raise NavigationError(target, "no resolver for this target")

    def _back(self) -> None:
        stack = self.store.state.program_stack
        if not stack:
            logger.debug("Back with empty stack ignored")
            return
        path = stack[-1]
        try:
            with self.store.transaction():
                self.store.dispatch(program_pop_event())
                node = self.loader.load_program(path)
                self.store.dispatch(mode_set_event(Mode.PROGRAM))
                self.store.dispatch(program_set_event(node, path))
        except ContentLoadError as e:
            self._load_failed("program_load_error", e, path=path)
            return
        self.bus.emit(EventKind.PROGRAM_CHANGED, program=node.id, path=path)

    def _load_program(self, path: str, push: Optional[str] = None) -> bool:
        previous_mode = self.store.state.mode
        try:
            with self.store.transaction():
                node = self.loader.load_program(path)
                if push is not None:
                    self.store.dispatch(program_push_event(push))
                self.store.dispatch(selection_clear_event())
                self.store.dispatch(mode_set_event(Mode.PROGRAM))
                self.store.dispatch(program_set_event(node, path))
        except ContentLoadError as e:
            self._load_failed("program_load_error", e, path=path)
            return False

        logger.info(f"Loaded program {node.id} from {path}", extra=log_fields(subsystem="navigator"))
        if previous_mode != Mode.PROGRAM:
            self.bus.emit(EventKind.MODE_CHANGED, previous=previous_mode.value, mode=Mode.PROGRAM.value)
        self.bus.emit(EventKind.PROGRAM_CHANGED, program=node.id, path=path)
        return True

    def _enter_game(self, target: str) -> None:
        previous_mode = self.store.state.mode
        try:
            with self.store.transaction():
                game, game_dir = self.loader.load_game(target)
                scene = self.loader.load_scene(game_dir, game.entry, game.scene_dir)
                self.store.dispatch(selection_clear_event())
                self.store.dispatch(list_set_event(ListName.MAIN, None))
                self.store.dispatch(game_set_event(game, game_dir))
                self.store.dispatch(game_state_reset_event())
                self.store.dispatch(scene_set_event(scene.id))
                self.store.dispatch(mode_set_event(Mode.GAME))
        except ContentLoadError as e:
            self._load_failed("game_load_error", e, path=target)
            return

        self._scene_cache[(game_dir, scene.id)] = scene
        logger.info(
            f"Entered game {game.id} at scene {scene.id}",
            extra=log_fields(subsystem="navigator", mode=Mode.GAME.value),
        )
        if previous_mode != Mode.GAME:
            self.bus.emit(EventKind.MODE_CHANGED, previous=previous_mode.value, mode=Mode.GAME.value)
        self.bus.emit(EventKind.SCENE_CHANGED, previous=None, current=scene.id, game=game.id)

    # --- game mode ---

    def _handle_game(self, command: ResolvedCommand) -> None:
        key = command.key
        game = self.store.state.current_game
        action = game.action_for(key) if game is not None else None

        if action == CommandAction.CHOICE:
            self._game_choice(key)
        elif action == CommandAction.MENU:
            self._load_program(self.config.initial_menu)
        elif action in (CommandAction.INFO, CommandAction.REPEAT):
            self._delegate(key)
        else:
            self._say("command_not_recognized")

    def _game_choice(self, key: str) -> None:
        state = self.store.state
        try:
            scene = self.current_scene()
        except ContentLoadError as e:
            self._load_failed("scene_load_error", e, path=state.game_state.current_scene)
            return

        entry = scene.first_choice(key) if scene is not None else None
        if entry is None:
            self._say("choice_not_available")
            return

        try:
            with self.store.transaction():
                target = self._scene(state, entry.goto)
                self.store.dispatch(history_push_event(scene.id))
                self.store.dispatch(scene_set_event(target.id))
        except ContentLoadError as e:
            self._load_failed("scene_load_error", e, path=entry.goto)
            return

        logger.info(
            f"Scene {scene.id} -> {target.id}",
            extra=log_fields(subsystem="navigator", command=key, mode=Mode.GAME.value),
        )
        self.bus.emit(EventKind.SCENE_CHANGED, previous=scene.id, current=target.id, choice=entry.text)

    def _delegate(self, key: str) -> None:
        context = ActionContext(
            state=self.store.get_snapshot(),
            scene=self._quiet_current_scene(),
            command=key,
            bus=self.bus,
        )
        if not self.actions.execute_for_command(key, context):
            logger.debug(f"No action handled {key}")

    def _quiet_current_scene(self) -> Optional[Scene]:
        try:
            return self.current_scene()
        except ContentLoadError:
            return None

    def _scene(self, state: AppState, ref: str) -> Scene:
        registered = self.scenes.get(ref)
        if registered is not None:
            return registered

        game_dir = state.current_game_path or ""
        cached = self._scene_cache.get((game_dir, ref))
        if cached is not None:
            return cached

        scene_dir = state.current_game.scene_dir if state.current_game else "scenes"
        scene = self.loader.load_scene(game_dir, ref, scene_dir)
        self._scene_cache[(game_dir, scene.id)] = scene
        return scene

    # --- output ---

    def _say(self, name: str, **params: Any) -> None:
        text = self.config.message(name, **params)
        self.bus.emit(EventKind.OUTPUT, text=text, message=name)

    def _load_failed(self, name: str, error: ContentLoadError, **params: Any) -> None:
        logger.warning(f"{error}", extra=log_fields(subsystem="navigator"))
        self.bus.emit(
            EventKind.ERROR,
            message=str(error),
            path=error.path,
            reason=error.reason,
        )
        self._say(name, **params)

    def debug_info(self) -> Dict[str, Any]:
        return {
            "handled": self.handled_count,
            "cached_scenes": len(self._scene_cache),
            "registered_scenes": len(self.scenes),
            "state": self.store.state.summary(),
        }

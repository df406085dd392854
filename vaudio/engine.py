"""
VAudio engine.

Wires the event bus, state store, content loader, registries and
navigator, and runs the single-consumer loop:

    render -> next resolved command -> navigator.handle -> repeat

Input arrives through an input sink (QueuedInput in production, a
scripted sink in tests). Output leaves through a Renderer, fed both by
the loop and by bus events.
"""
from __future__ import annotations

import threading
from typing import Any, Callable, Dict, List, Optional, Protocol

from .bus import BusEvent, EventBus, EventKind
from .config import EngineConfig, load_messages
from .content.loader import ContentLoader
from .content.registries import ActionRegistry, GameAction, SceneRegistry
from .core.state import AppState, Mode, StateStore
from .core.state.event_types import running_set_event
from .errors import ContentLoadError, ExitRequested
from .input import InputProcessor, QueuedInput
from .logging_config import get_logger, log_fields
from .navigator import NarrativeNavigator
from .renderers import ConsoleRenderer, Renderer
from .types import ResolvedCommand

logger = get_logger(__name__)


class InputSink(Protocol):
    """Source of resolved commands for the run loop."""

    def initialize(self) -> None: ...

    def get_next_resolved_command(self, timeout: Optional[float] = None) -> Optional[ResolvedCommand]: ...

    def cancel_pending(self) -> bool: ...

    def cleanup(self) -> None: ...


class VaudioEngine:
    """
    Top-level engine object.

    Example:
        >>> engine = VaudioEngine(EngineConfig(content_root="./content"))
        >>> engine.initialize()
        >>> engine.run()
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        renderer: Optional[Renderer] = None,
        input_sink: Optional[InputSink] = None,
        bus: Optional[EventBus] = None,
        loader: Optional[ContentLoader] = None,
        scenes: Optional[SceneRegistry] = None,
        actions: Optional[ActionRegistry] = None,
    ):
        """
        Args:
            config: Engine settings; content messages from
                program/config.json are merged under config.messages
            renderer: Output sink (console on stdout by default)
            input_sink: Command source (a QueuedInput over a threaded
                InputProcessor by default)
        """
        config = config or EngineConfig()
        content_messages = load_messages(config.content_root)
        self.config = config.with_messages({**content_messages, **config.messages})

        self.bus = bus or EventBus()
        self.store = StateStore(AppState(), bus=self.bus)
        self.loader = loader or ContentLoader(self.config.content_root)
        self.scenes = scenes if scenes is not None else SceneRegistry()
        self.actions = actions if actions is not None else ActionRegistry(self.bus, self.config.messages)
        self.navigator = NarrativeNavigator(
            self.store,
            self.loader,
            self.bus,
            scenes=self.scenes,
            actions=self.actions,
            config=self.config,
        )

        self.renderer: Renderer = renderer or ConsoleRenderer()
        self.input: InputSink = input_sink or QueuedInput(InputProcessor(self.config))

        self._stop_requested = threading.Event()
        self._initialized = False
        self.commands_handled = 0
        self._unsubscribers: List[Callable[[], None]] = [
            self.bus.subscribe(EventKind.OUTPUT, self._on_output),
            self.bus.subscribe(EventKind.SELECTION, self._on_selection),
            self.bus.subscribe(EventKind.ERROR, self._on_error),
        ]

    # --- bus bridge ---

    def _on_output(self, event: BusEvent) -> None:
        text = event.payload.get("text")
        if text:
            self.renderer.show_message(str(text))

    def _on_selection(self, event: BusEvent) -> None:
        self.renderer.show_selection(
            str(event.payload.get("key", "")),
            str(event.payload.get("label", "")),
        )

    def _on_error(self, event: BusEvent) -> None:
        logger.warning(
            f"Engine error: {event.payload.get('message')}",
            extra=log_fields(subsystem="engine", seq=event.seq),
        )

    # --- lifecycle ---

    @property
    def running(self) -> bool:
        return self.store.state.running

    def initialize(self) -> None:
        """
        Connect the input sink and load the initial menu.

        Raises:
            ContentLoadError: The initial menu could not be loaded
        """
        self._stop_requested.clear()
        self.input.initialize()
        try:
            self.navigator.start()
        except ContentLoadError:
            logger.error(f"Initial menu {self.config.initial_menu} failed to load")
            self.input.cleanup()
            raise
        self._initialized = True
        logger.info("Engine initialized", extra=log_fields(subsystem="engine"))

    def register_action(self, action: GameAction) -> None:
        self.actions.register(action)

    def run(self, max_commands: Optional[int] = None) -> int:
        """
        Run the command loop until exit, stop() or input exhaustion.

        Args:
            max_commands: Stop after handling this many commands

        Returns:
            Number of commands handled in this run
        """
        if not self._initialized:
            self.initialize()

        handled = 0
        self.store.dispatch(running_set_event(True))
        self.bus.emit(EventKind.ENGINE_STARTED)
        logger.event(EventKind.ENGINE_STARTED.value, "Engine started", subsystem="engine")

        reason = "input_closed"
        try:
            while not self._stop_requested.is_set():
                if max_commands is not None and handled >= max_commands:
                    reason = "max_commands"
                    break

                self.render()
                command = self.input.get_next_resolved_command()
                if command is None:
                    if self._stop_requested.is_set():
                        reason = "stopped"
                    break

                handled += 1
                if not self.step(command):
                    reason = "exit"
                    break
            else:
                reason = "stopped"
        finally:
            self.stop()
            logger.event(
                EventKind.ENGINE_STOPPED.value,
                f"Engine stopped ({reason}) after {handled} commands",
                subsystem="engine",
                reason=reason,
            )
            self.bus.emit(EventKind.ENGINE_STOPPED, reason=reason, handled=handled)

        return handled

    def step(self, command: ResolvedCommand) -> bool:
        """
        Handle one command.

        Returns:
            False if the command requested exit, True otherwise
        """
        self.commands_handled += 1
        self.bus.emit(EventKind.COMMAND_RESOLVED, **command.to_dict())
        try:
            self.navigator.handle(command)
        except ExitRequested:
            logger.info("Exit requested", extra=log_fields(subsystem="engine", command=command.key))
            return False
        return True

    def stop(self) -> None:
        """Cancel pending input, release the input sink and clear running."""
        self._stop_requested.set()
        # Closing the sink first releases a producer blocked on a full queue,
        # which holds the resolver lock that cancel_pending needs
        self.input.cleanup()
        self.input.cancel_pending()
        self._initialized = False
        if self.store.state.running:
            self.store.dispatch(running_set_event(False))

    def close(self) -> None:
        """Stop and detach the bus bridge."""
        self.stop()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

    # --- output ---

    def render(self) -> None:
        """Draw the current screen."""
        state = self.store.get_snapshot()
        if state.mode == Mode.GAME:
            try:
                scene = self.navigator.current_scene()
            except ContentLoadError as e:
                logger.warning(f"Cannot render scene: {e}")
                scene = None
            self.renderer.render_game(scene, state.game_state)
        else:
            self.renderer.render_program(state.current_program, state)

    def debug_info(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "commands_handled": self.commands_handled,
            "navigator": self.navigator.debug_info(),
            "actions": self.actions.debug_info(),
            "loader": self.loader.get_statistics(),
            "bus": {
                "published": self.bus.published,
                "failed_deliveries": self.bus.failed_deliveries,
            },
        }

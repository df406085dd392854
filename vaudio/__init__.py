"""
VAudio - a four-button interactive fiction engine.

Raw device events become four atomic signals, a timing-window resolver
turns signals into single or paired commands, and a narrative navigator
walks program menus and game scenes in response.
"""
from .bus import BusEvent, EventBus, EventKind
from .config import EngineConfig
from .engine import VaudioEngine
from .errors import ContentLoadError, ExitRequested, InvariantViolation, NavigationError, VaudioError
from .input import InputProcessor, QueuedInput
from .navigator import NarrativeNavigator
from .renderers import ConsoleRenderer, Renderer
from .types import ResolvedCommand, Signal

__version__ = "0.1.0"

__all__ = [
    "BusEvent",
    "EventBus",
    "EventKind",
    "EngineConfig",
    "VaudioEngine",
    "ContentLoadError",
    "ExitRequested",
    "InvariantViolation",
    "NavigationError",
    "VaudioError",
    "InputProcessor",
    "QueuedInput",
    "NarrativeNavigator",
    "ConsoleRenderer",
    "Renderer",
    "ResolvedCommand",
    "Signal",
    "__version__",
]

"""
Engine configuration.

Load engine settings (content paths, combination window, device
mappings, message strings) from JSON or YAML files, or use one of the
built-in presets.
"""
from __future__ import annotations

import copy
import json
import logging
import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)


# User-facing message strings. Placeholders use str.format syntax.
DEFAULT_MESSAGES: Dict[str, str] = {
    "option_not_available": "Option not available.",
    "command_not_recognized": "Command not recognized.",
    "return_not_available": "Return command not available in this context.",
    "choice_not_available": "Choice not available.",
    "navigation_not_implemented": "Navigation not implemented: {target}",
    "program_load_error": "Error loading program: {path}",
    "game_load_error": "Error loading game: {path}",
    "scene_load_error": "Error loading scene: {path}",
    "extra_frame_error": "Error loading extra frame.",
    "extra_frame": "Extra frame {key}: {description}",
    "action_unavailable": "The action \"{name}\" is not available right now.",
}

# Keys used by existing content config.json files, mapped to the names above
CONTENT_MESSAGE_KEYS: Dict[str, str] = {
    "optionNotAvailable": "option_not_available",
    "commandNotRecognized": "command_not_recognized",
    "returnNotAvailable": "return_not_available",
    "choiceNotAvailable": "choice_not_available",
    "navigationNotImplemented": "navigation_not_implemented",
    "programLoadError": "program_load_error",
    "gameLoadError": "game_load_error",
    "sceneLoadError": "scene_load_error",
    "extraFrameError": "extra_frame_error",
}

# Content placeholders with a different name here
CONTENT_PLACEHOLDERS: Dict[str, str] = {"{goto}": "{target}"}


@dataclass
class EngineConfig:
    """
    Configuration for one engine instance.

    Attributes:
        content_root: Directory holding program/ and games/ content
        initial_menu: Program loaded at start and by the game "menu" action
        program_menu: Program loaded by 1+2 outside a game context
        game_menu: Program loaded by 1+2 inside a game context
        program_root: Directory that "@/" navigation targets are relative to
        combination_window_ms: Time allowed between the two signals of a pair
        enable_combinations: When False every signal is emitted alone
        queue_maxsize: Capacity of the resolved-command queue
        log_level: Root log level used by the CLI
        device_mappings: Per-device trigger overrides, e.g. {"keyboard": {"j": 1}}
        messages: Message overrides merged over DEFAULT_MESSAGES
    """
    content_root: str = "."
    initial_menu: str = "program/initial/menu.json"
    program_menu: str = "program/program-menu.json"
    game_menu: str = "games/game-menu.json"
    program_root: str = "program"
    combination_window_ms: int = 500
    enable_combinations: bool = True
    queue_maxsize: int = 64
    log_level: str = "INFO"
    device_mappings: Dict[str, Dict[str, int]] = field(default_factory=dict)
    messages: Dict[str, str] = field(default_factory=dict)

    def message(self, name: str, **params: Any) -> str:
        """Look up a message string and fill its placeholders."""
        template = self.messages.get(name) or DEFAULT_MESSAGES.get(name, name)
        try:
            return template.format(**params)
        except (KeyError, IndexError, ValueError):
            logger.warning(f"Bad placeholders in message {name!r}: {template!r}")
            return template

    def with_messages(self, messages: Dict[str, str]) -> "EngineConfig":
        """Return a copy whose messages are overridden by `messages`."""
        merged = copy.deepcopy(self)
        merged.messages.update({k: v for k, v in messages.items() if isinstance(v, str)})
        return merged

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        """Create from dictionary, ignoring unknown keys."""
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})

    def save(self, path: str) -> None:
        """Save config to JSON file."""
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: str) -> Optional["EngineConfig"]:
        """Load config from a JSON or YAML file. Returns None on failure."""
        if not os.path.exists(path):
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                content = f.read()

            if path.endswith((".yaml", ".yml")):
                data = yaml.safe_load(content)
            else:
                data = json.loads(content)

            if not isinstance(data, dict):
                logger.warning(f"Config {path} is not a mapping")
                return None
            return cls.from_dict(data)

        except (OSError, ValueError, yaml.YAMLError, TypeError) as e:
            logger.warning(f"Failed to load config from {path}: {e}")
            return None


def load_messages(content_root: str, relative_path: str = "program/config.json") -> Dict[str, str]:
    """
    Read localized messages from the content tree.

    The file is expected to hold {"messages": {...}}. Keys may use either
    the names in DEFAULT_MESSAGES or the camelCase names of existing
    content (see CONTENT_MESSAGE_KEYS). Missing or broken files fall back
    to an empty mapping, so DEFAULT_MESSAGES apply.
    """
    path = os.path.join(content_root, relative_path)
    if not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring unreadable messages file {path}: {e}")
        return {}
    messages = data.get("messages") if isinstance(data, dict) else None
    if not isinstance(messages, dict):
        return {}
    return normalize_messages(messages)


def normalize_messages(messages: Dict[str, Any]) -> Dict[str, str]:
    """Map content message keys and placeholders onto DEFAULT_MESSAGES names."""
    result: Dict[str, str] = {}
    for key, text in messages.items():
        if not isinstance(text, str):
            continue
        name = CONTENT_MESSAGE_KEYS.get(key, key)
        if name not in DEFAULT_MESSAGES:
            logger.debug(f"Unknown message key {key!r}")
        for old, new in CONTENT_PLACEHOLDERS.items():
            text = text.replace(old, new)
        # An explicit internal name wins over its camelCase alias
        if name != key and name in messages:
            continue
        result[name] = text
    return result


# Built-in presets
PRESETS: Dict[str, EngineConfig] = {
    "default": EngineConfig(),
    # Longer window for players who press the two buttons slowly
    "relaxed": EngineConfig(combination_window_ms=900),
    "strict": EngineConfig(combination_window_ms=250),
    "no_combinations": EngineConfig(enable_combinations=False),
}


def get_preset(name: str) -> Optional[EngineConfig]:
    """Get a copy of a built-in preset by name."""
    preset = PRESETS.get(name.lower())
    return copy.deepcopy(preset) if preset else None


def list_presets() -> List[str]:
    """List available preset names."""
    return list(PRESETS.keys())


class ConfigManager:
    """
    Manages engine configurations with preset + custom file support.

    Example:
        >>> manager = ConfigManager("./configs")
        >>> config = manager.get("relaxed")    # built-in preset
        >>> config = manager.get("kiosk")      # ./configs/kiosk.yaml
    """

    def __init__(self, config_dir: str = "./vaudio_configs"):
        """
        Initialize config manager.

        Args:
            config_dir: Directory for custom config files
        """
        self.config_dir = config_dir
        self._cache: Dict[str, EngineConfig] = {}

    def get(self, name: str) -> Optional[EngineConfig]:
        """
        Get a config by name.

        Checks in order:
        1. Cache
        2. Custom file (config_dir/name.json, .yaml or .yml)
        3. Built-in presets

        Args:
            name: Config or preset name

        Returns:
            EngineConfig or None if not found
        """
        name_lower = name.lower()

        if name_lower in self._cache:
            return self._cache[name_lower]

        for ext in [".json", ".yaml", ".yml"]:
            path = os.path.join(self.config_dir, f"{name_lower}{ext}")
            config = EngineConfig.load(path)
            if config:
                self._cache[name_lower] = config
                return config

        preset = get_preset(name_lower)
        if preset:
            self._cache[name_lower] = preset
            return preset

        return None

    def save(self, config: EngineConfig, name: str) -> str:
        """
        Save a config to file.

        Returns:
            Path where config was saved
        """
        os.makedirs(self.config_dir, exist_ok=True)
        path = os.path.join(self.config_dir, f"{name.lower()}.json")
        config.save(path)
        self._cache[name.lower()] = config
        return path

    def list_available(self) -> List[str]:
        """List all available configs (presets + custom files)."""
        available = set(list_presets())

        if os.path.exists(self.config_dir):
            for f in os.listdir(self.config_dir):
                if f.endswith((".json", ".yaml", ".yml")):
                    available.add(os.path.splitext(f)[0])

        return sorted(available)

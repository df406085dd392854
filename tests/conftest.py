"""
Shared fixtures: a small content tree on disk, a bus recorder and a
navigator wired to a fresh store.
"""
import json
import os
from typing import Any, Dict, List

import pytest
import yaml

from vaudio.bus import BusEvent, EventBus, EventKind
from vaudio.config import EngineConfig
from vaudio.content.loader import ContentLoader
from vaudio.core.resolver import ManualScheduler
from vaudio.core.state import AppState, StateStore
from vaudio.navigator import NarrativeNavigator
from vaudio.types import ResolvedCommand


INITIAL_MENU = {
    "id": "initial",
    "description": "Welcome",
    "extra": 1,
    "choice": {
        "1": {
            "label": "Explore",
            "choice": {
                "1": {"label": "Deep", "goto": "@/deep.json"},
                "2": {"label": "Nowhere", "goto": "somewhere/else"},
            },
        },
        "2": {"label": "Play forest", "goto": "games/forest"},
        "3": [
            {"label": "Option A", "goto": "@/deep.json"},
            {"label": "Option B"},
        ],
        "4": {"label": "Quit", "goto": "*"},
        "3+2": {"label": "Return", "goto": "-"},
    },
}

FOREST_GAME = {
    "id": "forest-game",
    "title": "The Forest",
    "entry": "forest",
    "author": "Someone",
    "extra": {"1": "extras/map.json"},
    "config": {
        "language": "en",
        "command_map": {
            "1": "choice",
            "2": "choice",
            "3": "choice",
            "4": "choice",
            "1+2": "menu",
            "1+4": "info",
            "3+2": "repeat",
        },
    },
}

FOREST_SCENE = {
    "id": "forest",
    "title": "Forest",
    "description": "Tall trees all around.",
    "choices": {
        "1": [{"text": "Walk to the river", "goto": "river"}],
        "2": [{"text": "Enter the cave", "goto": "cave"}],
        "3": {"text": "Climb a tree", "goto": "canopy.yaml"},
    },
}

RIVER_SCENE = {
    "id": "river",
    "title": "River",
    "description": "Cold water.",
    "choices": {"1": [{"text": "Back to the forest", "goto": "forest"}]},
}


def write_json(root, relative: str, data: Dict[str, Any]) -> None:
    path = os.path.join(str(root), *relative.split("/"))
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f)


def write_yaml(root, relative: str, data: Dict[str, Any]) -> None:
    path = os.path.join(str(root), *relative.split("/"))
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f)


@pytest.fixture
def content_root(tmp_path):
    """Content tree with two menus, one playable game and one broken game."""
    write_json(tmp_path, "program/initial/menu.json", INITIAL_MENU)
    write_json(tmp_path, "program/deep.json", {
        "id": "deep",
        "description": "Deeper",
        "choice": {"1": {"label": "Up", "goto": "-"}},
    })
    write_json(tmp_path, "program/program-menu.json", {"id": "program-menu", "choice": {}})
    write_json(tmp_path, "games/game-menu.json", {"id": "game-menu", "choice": {}})
    write_json(tmp_path, "games/forest/main.json", FOREST_GAME)
    write_json(tmp_path, "games/forest/scenes/forest.json", FOREST_SCENE)
    write_json(tmp_path, "games/forest/scenes/river.json", RIVER_SCENE)
    write_yaml(tmp_path, "games/forest/canopy.yaml", {"id": "canopy", "title": "Canopy"})
    write_json(tmp_path, "games/forest/extras/map.json", {"id": "map", "description": "A map of the woods"})
    os.makedirs(os.path.join(str(tmp_path), "games", "broken"))
    return tmp_path


class BusRecorder:
    """Collects every event published on a bus."""

    def __init__(self, bus: EventBus):
        self.events: List[BusEvent] = []
        for kind in EventKind:
            bus.subscribe(kind, self.events.append)

    def of(self, kind: EventKind) -> List[BusEvent]:
        return [e for e in self.events if e.kind == kind]

    def messages(self) -> List[str]:
        return [e.payload.get("message") for e in self.of(EventKind.OUTPUT)]

    def texts(self) -> List[str]:
        return [e.payload.get("text") for e in self.of(EventKind.OUTPUT)]

    def clear(self) -> None:
        self.events.clear()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def recorder(bus):
    return BusRecorder(bus)


@pytest.fixture
def clock():
    return ManualScheduler()


@pytest.fixture
def config(content_root):
    return EngineConfig(content_root=str(content_root))


@pytest.fixture
def store(bus):
    return StateStore(AppState(), bus=bus)


@pytest.fixture
def navigator(store, bus, config):
    """Navigator with the initial menu already loaded."""
    nav = NarrativeNavigator(store, ContentLoader(config.content_root), bus, config=config)
    nav.start()
    return nav


def press(navigator: NarrativeNavigator, *keys: str) -> None:
    """Send commands to the navigator by key."""
    for key in keys:
        navigator.handle(ResolvedCommand.from_key(key))

"""
Content loader.

Reads program, game, scene and extra-frame files from the content tree
(JSON or YAML) and validates them into models. Every failure surfaces as
ContentLoadError so the navigator can abort its transaction cleanly.
"""
from __future__ import annotations

import json
import logging
import os
import posixpath
from typing import Any, Dict, List, NoReturn, Optional, Tuple, Type, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from ..errors import ContentLoadError
from .models import ExtraFrame, GameGraph, ProgramNode, Scene

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

CONTENT_EXTENSIONS = (".json", ".yaml", ".yml")
GAME_MAIN_FILES = ("main.json", "main.yaml", "main.yml")


def join_content_path(*parts: str) -> str:
    """Join content-relative paths with forward slashes."""
    cleaned = [p.strip("/") for p in parts if p and p.strip("/")]
    return posixpath.normpath("/".join(cleaned)) if cleaned else ""


class ContentLoader:
    """
    Loads content files relative to a root directory.

    Example:
        >>> loader = ContentLoader("./content")
        >>> menu = loader.load_program("program/initial/menu.json")
        >>> game, game_dir = loader.load_game("games/forest")
    """

    def __init__(self, root: str):
        self.root = os.path.abspath(root)
        self.load_count = 0
        self.error_count = 0

    def full_path(self, relative_path: str) -> str:
        return os.path.join(self.root, *relative_path.split("/"))

    def exists(self, relative_path: str) -> bool:
        return os.path.isfile(self.full_path(relative_path))

    def load(self, relative_path: str) -> Dict[str, Any]:
        """
        Read and parse one content file.

        Raises:
            ContentLoadError: Missing, unreadable or unparsable file, or a
                document that is not a mapping
        """
        path = self.full_path(relative_path)
        if not os.path.isfile(path):
            self._fail(relative_path, "file not found")

        try:
            with open(path, "r", encoding="utf-8") as f:
                text = f.read()
        except OSError as e:
            self._fail(relative_path, f"unreadable: {e}")
        except UnicodeDecodeError as e:
            self._fail(relative_path, f"not valid UTF-8: {e}")

        try:
            if relative_path.endswith((".yaml", ".yml")):
                data = yaml.safe_load(text)
            else:
                data = json.loads(text)
        except (ValueError, yaml.YAMLError) as e:
            self._fail(relative_path, f"parse error: {e}")

        if not isinstance(data, dict):
            self._fail(relative_path, "document is not a mapping")

        self.load_count += 1
        logger.debug(f"Loaded {relative_path}")
        return data

    def _validate(self, model: Type[M], data: Dict[str, Any], relative_path: str) -> M:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            first = e.errors()[0] if e.errors() else {}
            where = ".".join(str(part) for part in first.get("loc", ()))
            self._fail(relative_path, f"invalid {model.__name__} at {where or '<root>'}: {first.get('msg', e)}")

    def _fail(self, relative_path: str, reason: str) -> NoReturn:
        self.error_count += 1
        logger.warning(f"Content load failed for {relative_path}: {reason}")
        raise ContentLoadError(relative_path, reason)

    def load_program(self, relative_path: str) -> ProgramNode:
        return self._validate(ProgramNode, self.load(relative_path), relative_path)

    def find_game_main(self, game_dir: str) -> str:
        """Locate main.json (or main.yaml / main.yml) inside a game directory."""
        for name in GAME_MAIN_FILES:
            candidate = join_content_path(game_dir, name)
            if self.exists(candidate):
                return candidate
        self._fail(join_content_path(game_dir, GAME_MAIN_FILES[0]), "file not found")

    def load_game(self, game_dir: str) -> Tuple[GameGraph, str]:
        """
        Load a game graph.

        Returns:
            (graph, normalized game directory)
        """
        game_dir = join_content_path(game_dir)
        main = self.find_game_main(game_dir)
        return self._validate(GameGraph, self.load(main), main), game_dir

    def scene_candidates(self, game_dir: str, ref: str, scene_dir: str = "scenes") -> List[str]:
        """Paths tried for a scene reference, in order."""
        ext = "" if ref.endswith(CONTENT_EXTENSIONS) else ".json"
        candidates = [join_content_path(game_dir, ref)]
        if ext:
            candidates.append(join_content_path(game_dir, ref + ext))
        if scene_dir:
            candidates.append(join_content_path(game_dir, scene_dir, ref + ext))
        # Preserve order, drop duplicates
        return list(dict.fromkeys(candidates))

    def resolve_scene_path(self, game_dir: str, ref: str, scene_dir: str = "scenes") -> Optional[str]:
        """
        Resolve a scene reference to an existing file.

        Tries the reference as given, then with a .json extension, then
        inside the scene directory.
        """
        for candidate in self.scene_candidates(game_dir, ref, scene_dir):
            if self.exists(candidate):
                return candidate
        return None

    def load_scene(self, game_dir: str, ref: str, scene_dir: str = "scenes") -> Scene:
        path = self.resolve_scene_path(game_dir, ref, scene_dir)
        if path is None:
            self._fail(join_content_path(game_dir, ref), "scene not found")
        return self._validate(Scene, self.load(path), path)

    def load_extra(self, game_dir: str, relative_path: str) -> ExtraFrame:
        path = join_content_path(game_dir, relative_path)
        return self._validate(ExtraFrame, self.load(path), path)

    def get_statistics(self) -> Dict[str, Any]:
        return {
            "root": self.root,
            "loaded": self.load_count,
            "errors": self.error_count,
        }

"""
Content models for programs (menus), game graphs, scenes and extra frames.

Content files are validated once, when loaded. A choice slot in a content
file may hold a single choice object or a list of them; both forms are
turned into a tagged slot here so navigation code never inspects raw
shapes.
"""
from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..types import parse_command_key


class ChoiceKind(str, Enum):
    """What confirming a choice does."""
    SUBMENU = "submenu"    # has a nested choice mapping
    NAVIGATE = "navigate"  # has a goto target
    DEAD = "dead"          # neither; confirming is a no-op


class CommandAction(str, Enum):
    """Game-mode meaning of a command, from config.command_map."""
    CHOICE = "choice"
    MENU = "menu"
    INFO = "info"
    REPEAT = "repeat"


def _coerce_slot(raw: Any) -> Any:
    if isinstance(raw, (SingleChoice, ChoiceList)):
        return raw
    if isinstance(raw, Choice):
        return SingleChoice(choice=raw)
    if isinstance(raw, list):
        return {"kind": "list", "choices": raw}
    if isinstance(raw, dict):
        if raw.get("kind") in ("single", "list") and ("choice" in raw or "choices" in raw):
            return raw
        return {"kind": "single", "choice": raw}
    raise ValueError(f"choice slot must be an object or a list, got {type(raw).__name__}")


def _coerce_slots(value: Any) -> Any:
    """Normalize command keys and wrap each raw slot."""
    if value is None:
        return value
    if not isinstance(value, dict):
        raise ValueError("choice must be a mapping of command keys")
    return {
        parse_command_key(key): _coerce_slot(raw)
        for key, raw in value.items()
        if raw is not None
    }


class Choice(BaseModel):
    """
    One selectable menu entry.

    Attributes:
        label: Text shown to the player
        goto: Navigation target ("*", "-", "@/<path>", "games/<path>")
        choice: Nested mapping; confirming opens it as a submenu
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    label: str = ""
    goto: Optional[str] = None
    choice: Optional[Dict[str, "ChoiceSlot"]] = None

    @field_validator("choice", mode="before")
    @classmethod
    def _slots(cls, value: Any) -> Any:
        return _coerce_slots(value)

    @property
    def kind(self) -> ChoiceKind:
        # An empty nested mapping still opens an (empty) submenu
        if self.choice is not None:
            return ChoiceKind.SUBMENU
        if self.goto:
            return ChoiceKind.NAVIGATE
        return ChoiceKind.DEAD


class SingleChoice(BaseModel):
    """Slot holding exactly one choice."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["single"] = "single"
    choice: Choice

    def at(self, cursor: int = 0) -> Optional[Choice]:
        return self.choice

    @property
    def size(self) -> int:
        return 1


class ChoiceList(BaseModel):
    """Slot holding several choices; repeated selection cycles through them."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["list"] = "list"
    choices: List[Choice] = Field(default_factory=list)

    def at(self, cursor: int = 0) -> Optional[Choice]:
        if not self.choices:
            return None
        return self.choices[cursor % len(self.choices)]

    @property
    def size(self) -> int:
        return len(self.choices)


ChoiceSlot = Annotated[Union[SingleChoice, ChoiceList], Field(discriminator="kind")]

Choice.model_rebuild()
SingleChoice.model_rebuild()
ChoiceList.model_rebuild()


class ProgramNode(BaseModel):
    """
    A menu screen.

    Attributes:
        id: Node id; ids containing "game" mark the game context for 1+2
        description: Text rendered above the choices
        choice: Command key -> slot
        extra: Extra-frame key shown by 1+4
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    description: str = ""
    choice: Dict[str, ChoiceSlot] = Field(default_factory=dict)
    extra: Optional[str] = None

    @field_validator("choice", mode="before")
    @classmethod
    def _slots(cls, value: Any) -> Any:
        return _coerce_slots(value)

    @field_validator("extra", mode="before")
    @classmethod
    def _extra_to_str(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    def slot(self, key: str) -> Optional[Union[SingleChoice, ChoiceList]]:
        try:
            return self.choice.get(parse_command_key(key))
        except ValueError:
            return None

    def submenu(self, choice: Choice) -> "ProgramNode":
        """Materialize the synthetic node for a choice's nested mapping."""
        return ProgramNode(
            id=f"{self.id}_submenu",
            description=choice.label,
            choice=dict(choice.choice or {}),
        )

    @property
    def is_game_context(self) -> bool:
        return "game" in self.id


class SceneChoice(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    text: str = ""
    goto: str


class Scene(BaseModel):
    """
    A node of a game graph.

    audio and background are carried for render sinks that use them.
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    title: str = ""
    description: str = ""
    choices: Dict[str, List[SceneChoice]] = Field(default_factory=dict)
    audio: Optional[str] = None
    background: Optional[str] = None

    @field_validator("choices", mode="before")
    @classmethod
    def _normalize_keys(cls, value: Any) -> Any:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError("choices must be a mapping of command keys")
        normalized = {}
        for key, entries in value.items():
            if entries is None:
                continue
            if isinstance(entries, dict):
                entries = [entries]
            normalized[parse_command_key(key)] = entries
        return normalized

    def first_choice(self, key: str) -> Optional[SceneChoice]:
        try:
            entries = self.choices.get(parse_command_key(key))
        except ValueError:
            return None
        return entries[0] if entries else None


class SceneModule(BaseModel):
    path: str = "scenes"


class GameModules(BaseModel):
    model_config = ConfigDict(extra="allow")

    scene: SceneModule = Field(default_factory=SceneModule)


class GameSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    language: List[str] = Field(default_factory=list)
    command_map: Dict[str, CommandAction] = Field(default_factory=dict)

    @field_validator("language", mode="before")
    @classmethod
    def _language_list(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        return value or []

    @field_validator("command_map", mode="before")
    @classmethod
    def _normalize_keys(cls, value: Any) -> Any:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError("command_map must be a mapping of command keys")
        return {parse_command_key(k): v for k, v in value.items()}


class GameGraph(BaseModel):
    """
    A game's main file.

    Attributes:
        entry: Scene reference loaded when the game starts
        extra: Extra-frame key -> path relative to the game directory
        module: Content module locations (only the scene directory is used)
        config: Languages and the command map
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    title: str = ""
    entry: str
    version: Optional[str] = None
    author: List[str] = Field(default_factory=list)
    license: Optional[str] = None
    description: str = ""
    tag: List[str] = Field(default_factory=list)
    extra: Dict[str, str] = Field(default_factory=dict)
    module: GameModules = Field(default_factory=GameModules)
    config: GameSettings = Field(default_factory=GameSettings)

    @field_validator("author", "tag", mode="before")
    @classmethod
    def _str_list(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        return value or []

    @field_validator("extra", mode="before")
    @classmethod
    def _extra_keys(cls, value: Any) -> Any:
        return {str(k): v for k, v in (value or {}).items()}

    @property
    def scene_dir(self) -> str:
        return self.module.scene.path

    def action_for(self, key: str) -> Optional[CommandAction]:
        try:
            return self.config.command_map.get(parse_command_key(key))
        except ValueError:
            return None


class ExtraFrame(BaseModel):
    """Supplementary screen shown by 1+4. Unknown fields are kept."""
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    description: str = ""

# Content models, loading and registries
from .loader import ContentLoader, join_content_path
from .models import (
    Choice,
    ChoiceKind,
    ChoiceList,
    CommandAction,
    ExtraFrame,
    GameGraph,
    ProgramNode,
    Scene,
    SceneChoice,
    SingleChoice,
)
from .registries import (
    ActionContext,
    ActionRegistry,
    GameAction,
    ProgramChoiceLookup,
    Registry,
    SceneRegistry,
)

__all__ = [
    "ContentLoader",
    "join_content_path",
    "Choice",
    "ChoiceKind",
    "ChoiceList",
    "CommandAction",
    "ExtraFrame",
    "GameGraph",
    "ProgramNode",
    "Scene",
    "SceneChoice",
    "SingleChoice",
    "ActionContext",
    "ActionRegistry",
    "GameAction",
    "ProgramChoiceLookup",
    "Registry",
    "SceneRegistry",
]

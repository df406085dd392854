"""
Device adapters.

Each adapter turns one device's raw events into zero-or-one Signal.
"""
from typing import Dict, Mapping, Optional, Type

from .base import DeviceAdapter, DeviceType, TriggerMapping, coerce_mappings
from .controller import ControllerAdapter
from .keyboard import KeyboardAdapter
from .pointer import PointerAdapter
from .touch import GestureConfig, TouchAdapter
from .voice import VoiceAdapter, normalize_text

ADAPTER_CLASSES: Dict[DeviceType, Type[DeviceAdapter]] = {
    DeviceType.KEYBOARD: KeyboardAdapter,
    DeviceType.POINTER: PointerAdapter,
    DeviceType.CONTROLLER: ControllerAdapter,
    DeviceType.TOUCH: TouchAdapter,
    DeviceType.VOICE: VoiceAdapter,
}


def create_adapter(device: DeviceType, custom_mappings: Optional[Mapping] = None) -> DeviceAdapter:
    """Build the adapter for a device type with config-file mappings applied."""
    cls = ADAPTER_CLASSES[DeviceType(device)]
    return cls(coerce_mappings(custom_mappings))


__all__ = [
    "DeviceAdapter",
    "DeviceType",
    "TriggerMapping",
    "KeyboardAdapter",
    "PointerAdapter",
    "ControllerAdapter",
    "TouchAdapter",
    "GestureConfig",
    "VoiceAdapter",
    "ADAPTER_CLASSES",
    "create_adapter",
    "coerce_mappings",
    "normalize_text",
]

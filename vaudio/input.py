"""
Input processing.

InputProcessor owns one adapter per device plus the command resolver.
QueuedInput is the input sink the engine reads from: resolved commands
arriving on device or timer threads are funnelled through a bounded
queue to the single thread that runs the navigator.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Union

from .config import EngineConfig
from .core.queues import CommandQueue, OverflowPolicy
from .core.resolver import CommandResolver, Scheduler, ThreadingScheduler
from .devices import DeviceAdapter, DeviceType, create_adapter
from .types import ResolvedCommand, Signal

logger = logging.getLogger(__name__)


class InputProcessor:
    """
    Routes raw device events through adapters into the resolver.

    Example:
        >>> processor = InputProcessor(EngineConfig(), ManualScheduler())
        >>> processor.subscribe(lambda cmd: print(cmd.key))
        >>> processor.keyboard("w"); processor.keyboard("e")
        1+2
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        scheduler: Optional[Scheduler] = None,
    ):
        self.config = config or EngineConfig()
        self.scheduler = scheduler or ThreadingScheduler()
        self.resolver = CommandResolver(
            self.scheduler,
            window_ms=self.config.combination_window_ms,
            enable_combinations=self.config.enable_combinations,
        )
        self._adapters: Dict[DeviceType, DeviceAdapter] = {
            device: create_adapter(device, self.config.device_mappings.get(device.value))
            for device in DeviceType
        }

    def get_adapter(self, device: Union[DeviceType, str]) -> DeviceAdapter:
        return self._adapters[DeviceType(device)]

    def feed(self, device: Union[DeviceType, str], raw: Any) -> Optional[Signal]:
        """
        Normalize a raw event and hand the signal to the resolver.

        Returns:
            The signal produced, or None if the event was ignored
        """
        device = DeviceType(device)
        signal = self._adapters[device].normalize(raw)
        if signal is None:
            return None
        self.resolver.accept(signal, device.value, raw=raw)
        return signal

    # Convenience entry points

    def keyboard(self, key: str, **modifiers: bool) -> Optional[Signal]:
        event: Dict[str, Any] = {"key": key}
        event.update(modifiers)
        return self.feed(DeviceType.KEYBOARD, event)

    def pointer(self, raw: Mapping[str, Any]) -> Optional[Signal]:
        return self.feed(DeviceType.POINTER, raw)

    def controller(self, raw: Mapping[str, Any]) -> Optional[Signal]:
        return self.feed(DeviceType.CONTROLLER, raw)

    def touch(self, raw: Mapping[str, Any]) -> Optional[Signal]:
        return self.feed(DeviceType.TOUCH, raw)

    def voice(
        self,
        utterance: str,
        confidence: float = 1.0,
        alternates: Optional[Sequence[str]] = None,
    ) -> Optional[Signal]:
        return self.feed(DeviceType.VOICE, {
            "utterance": utterance,
            "confidence": confidence,
            "alternates": list(alternates or []),
        })

    # Resolver passthroughs

    def force(self, key: Union[str, ResolvedCommand], source: str = "manual") -> ResolvedCommand:
        return self.resolver.force(key, source)

    def cancel(self) -> bool:
        return self.resolver.cancel()

    def subscribe(self, callback: Callable[[ResolvedCommand], None]) -> Callable[[], None]:
        return self.resolver.subscribe(callback)

    def close(self) -> None:
        self.resolver.close()
        self.scheduler.shutdown()

    def debug_info(self) -> Dict[str, Any]:
        return {
            "resolver": self.resolver.debug_info(),
            "devices": {
                device.value: adapter.get_statistics()
                for device, adapter in self._adapters.items()
            },
        }


class QueuedInput:
    """
    Input sink backed by a CommandQueue.

    initialize() connects the queue to the processor's resolver;
    get_next_resolved_command() blocks the consumer until a command is
    ready; cleanup() cancels pending combinations and unblocks waiters.
    """

    def __init__(
        self,
        processor: InputProcessor,
        capacity: Optional[int] = None,
        policy: OverflowPolicy = OverflowPolicy.BLOCK,
    ):
        self.processor = processor
        self.queue = CommandQueue(
            capacity=capacity or processor.config.queue_maxsize,
            policy=policy,
        )
        self._unsubscribe: Optional[Callable[[], None]] = None

    def initialize(self) -> None:
        if self._unsubscribe is not None:
            return
        self.queue.reopen()
        self._unsubscribe = self.processor.subscribe(self.queue.offer)
        logger.debug("Input sink connected to resolver")

    def get_next_resolved_command(self, timeout: Optional[float] = None) -> Optional[ResolvedCommand]:
        """Block until a command is available. None on timeout or after cleanup."""
        return self.queue.get(timeout)

    def cancel_pending(self) -> bool:
        return self.processor.cancel()

    def cleanup(self) -> None:
        # Close first so a producer blocked on a full queue lets go of the resolver
        self.queue.close()
        dropped = self.queue.clear()
        if dropped:
            logger.debug(f"Discarded {dropped} unprocessed commands")
        self.processor.cancel()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        logger.debug("Input sink cleaned up")

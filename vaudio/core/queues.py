"""
Resolved-command queue with backpressure handling.

Sits between the resolver (which emits on device and timer threads) and
the single consumer thread that runs the navigator. The default policy
blocks producers when full, so commands are never dropped silently.
"""
from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional

from ..types import ResolvedCommand

logger = logging.getLogger(__name__)


class OverflowPolicy(str, Enum):
    """What a full queue does with one more command."""
    BLOCK = "block"     # producer waits for room
    OLDEST = "oldest"   # evict the longest-waiting command
    NEWEST = "newest"   # refuse the incoming command


@dataclass(frozen=True)
class DroppedCommand:
    """A command the queue discarded under OLDEST or NEWEST."""
    key: str
    source: str
    policy: OverflowPolicy
    depth: int
    dropped_at: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "source": self.source,
            "policy": self.policy.value,
            "depth": self.depth,
            "dropped_at": self.dropped_at,
        }


DropCallback = Callable[[DroppedCommand], None]


class CommandQueue:
    """
    Thread-safe FIFO of resolved commands.

    close() wakes every waiter: a blocked get() drains what is left and
    then returns None, and blocked or later put() calls are refused.

    Example:
        >>> queue = CommandQueue(capacity=2, policy=OverflowPolicy.OLDEST)
        >>> for key in ("1", "2", "3+4"):
        ...     queue.put(ResolvedCommand.from_key(key))
        >>> queue.get_nowait().key
        '2'
    """

    def __init__(
        self,
        capacity: int = 64,
        policy: OverflowPolicy = OverflowPolicy.BLOCK,
        on_drop: Optional[DropCallback] = None,
    ):
        """
        Args:
            capacity: Maximum number of queued commands
            policy: Overflow handling
            on_drop: Called with each DroppedCommand
        """
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self.policy = OverflowPolicy(policy)
        self.on_drop = on_drop

        self._items: Deque[ResolvedCommand] = deque()
        self._lock = threading.Lock()
        self._readable = threading.Condition(self._lock)
        self._writable = threading.Condition(self._lock)
        self._closed = False

        self.enqueued = 0
        self.delivered = 0
        self.peak_depth = 0
        self._dropped: List[DroppedCommand] = []

    # --- producers ---

    def put(self, command: ResolvedCommand, timeout: Optional[float] = None) -> bool:
        """
        Enqueue a command.

        Args:
            timeout: Seconds a BLOCK producer may wait; None waits forever

        Returns:
            True if the command was queued
        """
        with self._lock:
            if self._closed:
                return False

            if len(self._items) >= self.capacity:
                if self.policy == OverflowPolicy.NEWEST:
                    self._drop(command)
                    return False
                if self.policy == OverflowPolicy.OLDEST:
                    self._drop(self._items.popleft())
                else:
                    has_room = self._writable.wait_for(
                        lambda: self._closed or len(self._items) < self.capacity,
                        timeout,
                    )
                    if self._closed or not has_room:
                        return False

            self._items.append(command)
            self.enqueued += 1
            self.peak_depth = max(self.peak_depth, len(self._items))
            self._readable.notify()
            return True

    def offer(self, command: ResolvedCommand) -> None:
        """Resolver callback: enqueue, logging a refused command."""
        if not self.put(command):
            logger.warning(f"Command {command.key} from {command.source} not queued")

    # --- consumer ---

    def get(self, timeout: Optional[float] = None) -> Optional[ResolvedCommand]:
        """
        Take the oldest command, waiting up to `timeout` seconds.

        Returns:
            The command, or None on timeout or once closed and drained
        """
        with self._lock:
            self._readable.wait_for(lambda: self._closed or bool(self._items), timeout)
            return self._take()

    def get_nowait(self) -> Optional[ResolvedCommand]:
        with self._lock:
            return self._take()

    def _take(self) -> Optional[ResolvedCommand]:
        if not self._items:
            return None
        self.delivered += 1
        self._writable.notify()
        return self._items.popleft()

    def _drop(self, command: ResolvedCommand) -> None:
        dropped = DroppedCommand(
            key=command.key,
            source=command.source,
            policy=self.policy,
            depth=len(self._items),
        )
        self._dropped.append(dropped)
        logger.warning(
            f"Dropped command {dropped.key} from {dropped.source} "
            f"(policy={self.policy.value}, depth={dropped.depth})"
        )
        if self.on_drop is not None:
            try:
                self.on_drop(dropped)
            except Exception as e:
                logger.warning(f"Drop callback failed: {e}")

    # --- lifecycle ---

    def close(self) -> None:
        """Refuse further commands and wake all waiters."""
        with self._lock:
            self._closed = True
            self._readable.notify_all()
            self._writable.notify_all()

    def reopen(self) -> None:
        with self._lock:
            self._closed = False

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def clear(self) -> int:
        """Discard queued commands and return how many there were."""
        with self._lock:
            count = len(self._items)
            self._items.clear()
            self._writable.notify_all()
            return count

    # --- introspection ---

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def is_full(self) -> bool:
        with self._lock:
            return len(self._items) >= self.capacity

    def dropped(self) -> List[DroppedCommand]:
        with self._lock:
            return list(self._dropped)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "depth": len(self._items),
                "capacity": self.capacity,
                "peak_depth": self.peak_depth,
                "policy": self.policy.value,
                "enqueued": self.enqueued,
                "delivered": self.delivered,
                "dropped": len(self._dropped),
                "closed": self._closed,
            }

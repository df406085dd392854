"""
Command resolver.

Turns a stream of signals into resolved commands using a timing window:
- A first signal opens a pending combination and starts a countdown.
- A duplicate signal inside the window is ignored.
- A second distinct signal closes the window. Legal pairs emit one pair
  command; illegal pairs emit both signals as singles, lowest first.
- When the countdown elapses the lone pending signal is emitted.

Timers are abstracted behind a Scheduler so tests can drive a virtual
clock instead of sleeping.
"""
from __future__ import annotations

import heapq
import itertools
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

from ..logging_config import get_logger
from ..types import ResolvedCommand, Signal, pair_key, to_signal

logger = get_logger(__name__)

CommandCallback = Callable[[ResolvedCommand], None]

DEFAULT_WINDOW_MS = 500


# --- Schedulers ---

class ScheduledCall(ABC):
    """Handle to a scheduled callback."""

    @abstractmethod
    def cancel(self) -> None:
        """Prevent the callback from running. Safe to call more than once."""

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        ...


class Scheduler(ABC):
    """Source of time and delayed callbacks."""

    @abstractmethod
    def schedule(self, delay_ms: float, callback: Callable[[], None]) -> ScheduledCall:
        """Run callback once after delay_ms."""

    @abstractmethod
    def now(self) -> float:
        """Current time in seconds."""

    def shutdown(self) -> None:
        """Release scheduler resources."""


class _TimerCall(ScheduledCall):
    def __init__(self, timer: threading.Timer):
        self._timer = timer
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True
        self._timer.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ThreadingScheduler(Scheduler):
    """Wall-clock scheduler backed by threading.Timer."""

    def schedule(self, delay_ms: float, callback: Callable[[], None]) -> ScheduledCall:
        timer = threading.Timer(max(0.0, delay_ms) / 1000.0, callback)
        timer.daemon = True
        timer.start()
        return _TimerCall(timer)

    def now(self) -> float:
        return time.time()


@dataclass(order=True)
class _ManualCall(ScheduledCall):
    deadline: float
    order: int
    callback: Callable[[], None] = field(compare=False)
    _cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler(Scheduler):
    """
    Virtual clock for tests and scripted runs.

    Nothing fires until advance() is called. Due calls run in deadline
    order (ties in scheduling order), and calls scheduled by a running
    callback fire in the same advance() if they fall due.

    Example:
        >>> clock = ManualScheduler()
        >>> fired = []
        >>> clock.schedule(500, lambda: fired.append("done"))
        >>> clock.advance(499); fired
        []
        >>> clock.advance(1); fired
        ['done']
    """

    def __init__(self, start: float = 0.0):
        self._now_ms = start * 1000.0
        self._heap: List[_ManualCall] = []
        self._order = itertools.count()
        self._lock = threading.RLock()

    def schedule(self, delay_ms: float, callback: Callable[[], None]) -> ScheduledCall:
        with self._lock:
            call = _ManualCall(self._now_ms + max(0.0, delay_ms), next(self._order), callback)
            heapq.heappush(self._heap, call)
            return call

    def now(self) -> float:
        with self._lock:
            return self._now_ms / 1000.0

    def advance(self, ms: float) -> int:
        """
        Move the clock forward and fire every call that falls due.

        Returns:
            Number of callbacks run
        """
        with self._lock:
            target = self._now_ms + ms
            fired = 0
            while self._heap and self._heap[0].deadline <= target:
                call = heapq.heappop(self._heap)
                if call.cancelled:
                    continue
                self._now_ms = call.deadline
                call.callback()
                fired += 1
            self._now_ms = target
            return fired

    def pending(self) -> int:
        """Number of live (not cancelled, not fired) calls."""
        with self._lock:
            return sum(1 for call in self._heap if not call.cancelled)


# --- Resolver ---

@dataclass
class PendingCombination:
    """Signals collected inside the current window."""
    signals: List[Signal]
    source: str
    started_at: float
    generation: int
    timer: Optional[ScheduledCall] = None
    raw: Any = None


class CommandResolver:
    """
    Timing-window combination detector.

    Thread-safe: accept() may be called from device threads while the
    countdown fires on a timer thread. Emission happens with the lock
    held (re-entrant) after the pending state is cleared, so callbacks
    can call accept(), force() or cancel() synchronously.

    Example:
        >>> clock = ManualScheduler()
        >>> resolver = CommandResolver(clock)
        >>> resolver.subscribe(lambda cmd: print(cmd.key))
        >>> resolver.accept(Signal.ONE, "keyboard")
        >>> resolver.accept(Signal.TWO, "keyboard")
        1+2
    """

    def __init__(
        self,
        scheduler: Scheduler,
        window_ms: int = DEFAULT_WINDOW_MS,
        enable_combinations: bool = True,
    ):
        """
        Initialize the resolver.

        Args:
            scheduler: Timer source
            window_ms: Time allowed between the two signals of a pair
            enable_combinations: When False every signal is emitted alone
        """
        self.scheduler = scheduler
        self.window_ms = window_ms
        self.enable_combinations = enable_combinations

        self._lock = threading.RLock()
        self._pending: Optional[PendingCombination] = None
        self._generation = 0
        self._callbacks: List[CommandCallback] = []
        self._closed = False

        # Statistics
        self.accepted_count = 0
        self.ignored_count = 0
        self.emitted_count = 0
        self.pair_count = 0
        self.split_count = 0
        self.timeout_count = 0

    # --- subscriptions ---

    def subscribe(self, callback: CommandCallback) -> Callable[[], None]:
        """
        Register a callback for resolved commands.

        Returns:
            Unsubscribe function
        """
        with self._lock:
            self._callbacks.append(callback)

        def unsubscribe():
            self.unsubscribe(callback)

        return unsubscribe

    def unsubscribe(self, callback: CommandCallback) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    # --- input ---

    def accept(
        self,
        signal: Union[Signal, int],
        source: str = "unknown",
        timestamp: Optional[float] = None,
        raw: Any = None,
    ) -> None:
        """
        Feed one signal into the resolver.

        Args:
            signal: Signal or int 1-4; anything else is logged and ignored
            source: Device tag carried into the resolved command
            timestamp: Arrival time in seconds (defaults to scheduler time)
            raw: Originating raw event
        """
        resolved = to_signal(signal)
        if resolved is None:
            logger.warning(f"Ignoring invalid signal {signal!r} from {source}")
            return

        with self._lock:
            if self._closed:
                logger.debug(f"Resolver closed, dropping signal {int(resolved)}")
                return
            self.accepted_count += 1
            now = timestamp if timestamp is not None else self.scheduler.now()

            if not self.enable_combinations:
                self._emit(ResolvedCommand.single(resolved, source, timestamp=now, raw=raw))
                return

            pending = self._pending
            if pending is None:
                self._open(resolved, source, now, raw)
                return

            if resolved in pending.signals:
                self.ignored_count += 1
                logger.debug(f"Duplicate signal {int(resolved)} ignored")
                return

            first = pending.signals[0]
            self._clear_pending()
            key = pair_key(first, resolved)
            if key is not None:
                self.pair_count += 1
                logger.latency(
                    f"Pair {key}",
                    (now - pending.started_at) * 1000.0,
                    subsystem="resolver",
                    source=source,
                    command=key,
                )
                self._emit(ResolvedCommand.pair(first, resolved, source, timestamp=now, raw=raw))
            else:
                self.split_count += 1
                low, high = sorted((first, resolved))
                logger.debug(f"Illegal pair {int(first)}+{int(resolved)}, emitting singles")
                self._emit(ResolvedCommand.single(low, source, timestamp=now, raw=raw))
                self._emit(ResolvedCommand.single(high, source, timestamp=now, raw=raw))

    def force(self, command: Union[ResolvedCommand, str], source: str = "manual") -> ResolvedCommand:
        """
        Cancel any pending combination and emit a command immediately.

        Args:
            command: A ResolvedCommand or a command key such as "3+4"

        Raises:
            ValueError: If the key is not one of the eight commands
        """
        if not isinstance(command, ResolvedCommand):
            command = ResolvedCommand.from_key(command, source, timestamp=self.scheduler.now())
        with self._lock:
            self._clear_pending()
            logger.debug(f"Forced command {command.key}")
            self._emit(command)
        return command

    def cancel(self) -> bool:
        """
        Discard the pending combination without emitting.

        Returns:
            True if something was pending
        """
        with self._lock:
            had_pending = self._pending is not None
            self._clear_pending()
            return had_pending

    def close(self) -> None:
        """Cancel pending work and drop all subscribers."""
        with self._lock:
            self._clear_pending()
            self._callbacks.clear()
            self._closed = True

    @property
    def has_pending(self) -> bool:
        with self._lock:
            return self._pending is not None

    def pending_signals(self) -> List[Signal]:
        with self._lock:
            return list(self._pending.signals) if self._pending else []

    # --- internals (lock held) ---

    def _open(self, signal: Signal, source: str, now: float, raw: Any) -> None:
        self._generation += 1
        generation = self._generation
        pending = PendingCombination([signal], source, now, generation, raw=raw)
        self._pending = pending
        pending.timer = self.scheduler.schedule(
            self.window_ms, lambda: self._on_timeout(generation)
        )
        logger.debug(f"Opened window for signal {int(signal)} (gen={generation})")

    def _clear_pending(self) -> None:
        pending = self._pending
        self._pending = None
        # Invalidate any timer that is already running
        self._generation += 1
        if pending is not None and pending.timer is not None:
            pending.timer.cancel()

    def _on_timeout(self, generation: int) -> None:
        with self._lock:
            pending = self._pending
            if pending is None or pending.generation != generation:
                logger.debug(f"Stale timer gen={generation} ignored")
                return
            self._pending = None
            self._generation += 1
            self.timeout_count += 1
            signal = pending.signals[0]
            logger.debug(f"Window elapsed, emitting single {int(signal)}")
            self._emit(ResolvedCommand.single(
                signal, pending.source, timestamp=self.scheduler.now(), raw=pending.raw,
            ))

    def _emit(self, command: ResolvedCommand) -> None:
        self.emitted_count += 1
        for callback in list(self._callbacks):
            try:
                callback(command)
            except Exception as e:
                logger.error(f"Command callback failed for {command.key}: {e}", exc_info=True)

    def debug_info(self) -> Dict[str, Any]:
        """Snapshot of resolver state and counters."""
        with self._lock:
            return {
                "window_ms": self.window_ms,
                "enable_combinations": self.enable_combinations,
                "pending": [int(s) for s in self._pending.signals] if self._pending else [],
                "generation": self._generation,
                "subscribers": len(self._callbacks),
                "closed": self._closed,
                "accepted": self.accepted_count,
                "ignored": self.ignored_count,
                "emitted": self.emitted_count,
                "pairs": self.pair_count,
                "split_pairs": self.split_count,
                "timeouts": self.timeout_count,
            }

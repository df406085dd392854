"""
Tests for the timing-window command resolver.

All timing is driven by ManualScheduler; only the threading smoke test
touches the wall clock.
"""
import itertools
import threading

import pytest

from vaudio.core.resolver import CommandResolver, ThreadingScheduler
from vaudio.types import LEGAL_PAIRS, Signal

LEGAL = [tuple(sorted(pair)) for pair in LEGAL_PAIRS]
ILLEGAL = [
    (a, b)
    for a, b in itertools.combinations(list(Signal), 2)
    if frozenset({a, b}) not in LEGAL_PAIRS
]


@pytest.fixture
def resolver(clock):
    return CommandResolver(clock, window_ms=500)


@pytest.fixture
def emitted(resolver):
    commands = []
    resolver.subscribe(commands.append)
    return commands


class TestManualScheduler:
    """Test the virtual clock."""

    def test_fires_only_when_due(self, clock):
        fired = []
        clock.schedule(100, lambda: fired.append("a"))

        assert clock.advance(99) == 0
        assert fired == []
        assert clock.advance(1) == 1
        assert fired == ["a"]
        assert clock.now() == pytest.approx(0.1)

    def test_cancelled_calls_never_fire(self, clock):
        fired = []
        call = clock.schedule(10, lambda: fired.append("a"))
        call.cancel()

        assert clock.pending() == 0
        clock.advance(100)
        assert fired == []
        assert call.cancelled

    def test_fires_in_deadline_order(self, clock):
        fired = []
        clock.schedule(30, lambda: fired.append(30))
        clock.schedule(10, lambda: fired.append(10))
        clock.schedule(10, lambda: fired.append("10b"))

        clock.advance(50)

        assert fired == [10, "10b", 30]


class TestSingles:
    """Test single-signal resolution."""

    def test_lone_signal_emits_after_window(self, clock, resolver, emitted):
        """One signal and an elapsed window give exactly one single."""
        resolver.accept(Signal.TWO, "keyboard")

        clock.advance(499)
        assert emitted == []
        clock.advance(1)
        assert [c.key for c in emitted] == ["2"]
        assert emitted[0].source == "keyboard"

        clock.advance(5000)
        assert len(emitted) == 1

    def test_duplicates_do_not_emit_early(self, clock, resolver, emitted):
        for _ in range(5):
            resolver.accept(Signal.ONE)

        assert emitted == []
        assert resolver.pending_signals() == [Signal.ONE]
        assert resolver.ignored_count == 4

        clock.advance(500)
        assert [c.key for c in emitted] == ["1"]

    def test_duplicate_does_not_extend_window(self, clock, resolver, emitted):
        resolver.accept(Signal.ONE)
        clock.advance(300)
        resolver.accept(Signal.ONE)
        clock.advance(200)

        assert [c.key for c in emitted] == ["1"]

    def test_signal_after_window_opens_new_one(self, clock, resolver, emitted):
        resolver.accept(Signal.ONE)
        clock.advance(600)
        resolver.accept(Signal.TWO)
        clock.advance(600)

        assert [c.key for c in emitted] == ["1", "2"]

    def test_invalid_signal_ignored(self, clock, resolver, emitted):
        resolver.accept(0)
        resolver.accept(5)
        resolver.accept("x")

        clock.advance(1000)
        assert emitted == []
        assert not resolver.has_pending

    def test_combinations_disabled_emits_immediately(self, clock):
        resolver = CommandResolver(clock, enable_combinations=False)
        commands = []
        resolver.subscribe(commands.append)

        resolver.accept(Signal.ONE)
        resolver.accept(Signal.TWO)

        assert [c.key for c in commands] == ["1", "2"]
        assert clock.pending() == 0


class TestPairs:
    """Test pair resolution."""

    @pytest.mark.parametrize("pair", LEGAL)
    def test_legal_pair_in_either_order(self, clock, pair):
        """Both arrival orders resolve to the same single pair command."""
        results = []
        for first, second in (pair, pair[::-1]):
            resolver = CommandResolver(clock, window_ms=500)
            commands = []
            resolver.subscribe(commands.append)

            resolver.accept(first)
            clock.advance(200)
            resolver.accept(second)
            clock.advance(1000)

            assert len(commands) == 1
            assert commands[0].is_pair
            results.append(commands[0])

        assert results[0].key == results[1].key
        assert results[0].signals == results[1].signals

    @pytest.mark.parametrize("pair", ILLEGAL)
    def test_illegal_pair_emits_two_singles(self, clock, resolver, emitted, pair):
        high, low = max(pair), min(pair)
        resolver.accept(high)
        resolver.accept(low)
        clock.advance(1000)

        assert [c.key for c in emitted] == [str(int(low)), str(int(high))]
        assert not any(c.is_pair for c in emitted)
        assert resolver.split_count == 1

    def test_pair_cancels_timer(self, clock, resolver, emitted):
        resolver.accept(Signal.THREE)
        resolver.accept(Signal.FOUR)

        assert clock.pending() == 0
        clock.advance(1000)
        assert [c.key for c in emitted] == ["3+4"]

    def test_second_signal_at_window_edge_is_late(self, clock, resolver, emitted):
        resolver.accept(Signal.ONE)
        clock.advance(500)
        resolver.accept(Signal.TWO)
        clock.advance(500)

        assert [c.key for c in emitted] == ["1", "2"]


class TestForceAndCancel:
    """Test force-emit and cancellation."""

    def test_force_supersedes_pending(self, clock, resolver, emitted):
        resolver.accept(Signal.ONE)

        command = resolver.force("2+1")

        assert command.key == "1+2"
        assert [c.key for c in emitted] == ["1+2"]
        clock.advance(1000)
        assert len(emitted) == 1

    def test_force_rejects_unknown_key(self, resolver):
        with pytest.raises(ValueError):
            resolver.force("2+4")

    def test_cancel_discards_pending(self, clock, resolver, emitted):
        resolver.accept(Signal.ONE)

        assert resolver.cancel() is True
        assert resolver.cancel() is False
        clock.advance(1000)
        assert emitted == []

    def test_stale_timer_is_ignored(self, clock, resolver, emitted):
        """A timer that fires after its window was resolved does nothing."""
        captured = []
        original = clock.schedule

        def capture(delay_ms, callback):
            captured.append(callback)
            return original(delay_ms, callback)

        clock.schedule = capture
        resolver.accept(Signal.ONE)
        resolver.accept(Signal.TWO)

        captured[0]()

        assert [c.key for c in emitted] == ["1+2"]

    def test_close_drops_further_input(self, clock, resolver, emitted):
        resolver.accept(Signal.ONE)
        resolver.close()
        resolver.accept(Signal.TWO)
        clock.advance(1000)

        assert emitted == []
        assert resolver.debug_info()["closed"] is True


class TestCallbacks:
    """Test subscriber handling."""

    def test_failing_callback_does_not_block_others(self, clock, resolver):
        def broken(command):
            raise RuntimeError("boom")

        later = []
        resolver.subscribe(broken)
        resolver.subscribe(later.append)
        resolver.accept(Signal.ONE)
        resolver.accept(Signal.TWO)

        assert [c.key for c in later] == ["1+2"]
        assert resolver.emitted_count == 1

    def test_unsubscribe(self, clock, resolver):
        commands = []
        unsubscribe = resolver.subscribe(commands.append)
        unsubscribe()

        resolver.force("1")
        assert commands == []

    def test_callback_can_reenter(self, clock, resolver, emitted):
        """A callback may feed the resolver again while it is emitting."""
        def chain(command):
            if command.key == "1":
                resolver.accept(Signal.THREE)

        resolver.subscribe(chain)
        resolver.accept(Signal.ONE)
        clock.advance(500)
        clock.advance(500)

        assert [c.key for c in emitted] == ["1", "3"]

    def test_statistics(self, clock, resolver, emitted):
        resolver.accept(Signal.ONE)
        resolver.accept(Signal.TWO)
        resolver.accept(Signal.THREE)
        clock.advance(500)

        info = resolver.debug_info()
        assert info["accepted"] == 3
        assert info["pairs"] == 1
        assert info["timeouts"] == 1
        assert info["emitted"] == 2


class TestThreadingScheduler:
    """Smoke test against the wall clock."""

    def test_single_emitted_after_window(self):
        resolver = CommandResolver(ThreadingScheduler(), window_ms=20)
        done = threading.Event()
        commands = []

        def on_command(command):
            commands.append(command)
            done.set()

        resolver.subscribe(on_command)
        resolver.accept(Signal.FOUR, "controller")

        assert done.wait(2.0)
        assert [(c.key, c.source) for c in commands] == [("4", "controller")]

"""
Tests for the input processor and the queued input sink.
"""
import pytest

from vaudio.config import EngineConfig
from vaudio.devices import DeviceType
from vaudio.input import InputProcessor, QueuedInput
from vaudio.types import Signal


@pytest.fixture
def processor(clock):
    return InputProcessor(EngineConfig(combination_window_ms=300), clock)


@pytest.fixture
def commands(processor):
    received = []
    processor.subscribe(received.append)
    return received


class TestInputProcessor:
    """Test routing from devices to the resolver."""

    def test_keyboard_pair(self, processor, commands):
        assert processor.keyboard("w") == Signal.ONE
        assert processor.keyboard("e") == Signal.TWO

        assert [c.key for c in commands] == ["1+2"]
        assert commands[0].source == "keyboard"

    def test_pair_across_devices(self, processor, commands):
        processor.controller({"button": 2})
        processor.touch({"type": "tap", "x": 1800, "y": 900})

        assert [c.key for c in commands] == ["3+4"]

    def test_window_from_config(self, clock, processor, commands):
        processor.pointer({"button": 0})
        clock.advance(300)

        assert [c.key for c in commands] == ["1"]
        assert commands[0].source == "pointer"

    def test_unmapped_event_is_not_fed(self, clock, processor, commands):
        assert processor.keyboard("z") is None
        clock.advance(1000)

        assert commands == []
        assert not processor.resolver.has_pending

    def test_voice(self, clock, processor, commands):
        processor.voice("para baixo", confidence=0.9)
        clock.advance(300)

        assert [c.key for c in commands] == ["3"]

    def test_device_mappings_from_config(self, clock):
        config = EngineConfig(device_mappings={"keyboard": {"j": 4}, "controller": {"0": 3}})
        processor = InputProcessor(config, clock)

        assert processor.keyboard("j") == Signal.FOUR
        assert processor.get_adapter("controller").button(0) == Signal.THREE

    def test_force_and_cancel(self, clock, processor, commands):
        processor.keyboard("w")
        assert processor.cancel() is True

        processor.force("3+4")
        clock.advance(1000)

        assert [c.key for c in commands] == ["3+4"]

    def test_debug_info(self, processor):
        processor.keyboard("w")
        info = processor.debug_info()

        assert info["resolver"]["pending"] == [1]
        assert info["devices"][DeviceType.KEYBOARD.value]["signals"] == 1

    def test_close_stops_resolution(self, clock, processor, commands):
        processor.keyboard("w")
        processor.close()
        clock.advance(1000)

        assert commands == []


class TestQueuedInput:
    """Test the queue-backed input sink."""

    def test_resolved_commands_are_queued(self, clock, processor):
        sink = QueuedInput(processor, capacity=4)
        sink.initialize()

        processor.keyboard("s")
        processor.keyboard("d")
        processor.keyboard("w")
        clock.advance(300)

        assert sink.get_next_resolved_command(timeout=0).key == "3+4"
        assert sink.get_next_resolved_command(timeout=0).key == "1"
        assert sink.get_next_resolved_command(timeout=0.01) is None

    def test_initialize_is_idempotent(self, processor):
        sink = QueuedInput(processor)
        sink.initialize()
        sink.initialize()

        processor.force("1")

        assert len(sink.queue) == 1

    def test_cleanup_unblocks_and_discards(self, processor):
        sink = QueuedInput(processor)
        sink.initialize()
        processor.force("2")
        processor.keyboard("w")

        sink.cleanup()

        assert sink.get_next_resolved_command() is None
        assert not processor.resolver.has_pending
        processor.force("3")
        assert len(sink.queue) == 0

    def test_reinitialize_after_cleanup(self, processor):
        sink = QueuedInput(processor)
        sink.initialize()
        sink.cleanup()
        sink.initialize()

        processor.force("4")

        assert sink.get_next_resolved_command(timeout=0).key == "4"

    def test_cancel_pending(self, processor):
        sink = QueuedInput(processor)
        processor.keyboard("w")
        assert sink.cancel_pending() is True

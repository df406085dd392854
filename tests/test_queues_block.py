"""
Tests for the BLOCK overflow policy and close() under threads.
"""
import io
import threading
import time

from vaudio.config import EngineConfig
from vaudio.core.queues import CommandQueue, OverflowPolicy
from vaudio.core.resolver import ManualScheduler
from vaudio.engine import VaudioEngine
from vaudio.input import InputProcessor, QueuedInput
from vaudio.renderers import ConsoleRenderer
from vaudio.types import ResolvedCommand


def test_queue_overflow_block():
    """
    Verify CommandQueue with OverflowPolicy.BLOCK never exceeds capacity.
    Scenario: 2 device threads mashing buttons, 1 slow navigator thread.
    """
    queue = CommandQueue(capacity=3, policy=OverflowPolicy.BLOCK)
    stop_event = threading.Event()

    def device(source):
        keys = ("1", "2", "3", "4")
        i = 0
        while not stop_event.is_set():
            queue.put(ResolvedCommand.from_key(keys[i % 4], source), timeout=0.01)
            i += 1

    def slow_navigator():
        while not stop_event.is_set():
            time.sleep(0.02)
            queue.get(timeout=0.01)

    threads = [
        threading.Thread(target=device, args=("keyboard",)),
        threading.Thread(target=device, args=("controller",)),
        threading.Thread(target=slow_navigator),
    ]
    for t in threads:
        t.start()

    depths = []
    for _ in range(20):
        depth = len(queue)
        if depth > 3:
            depths.append(depth)
        time.sleep(0.01)

    stop_event.set()
    for t in threads:
        t.join(timeout=1.0)

    assert not depths, f"Queue exceeded capacity: {depths}"
    assert queue.stats()["dropped"] == 0
    assert queue.stats()["peak_depth"] <= 3


def test_block_times_out_when_full():
    queue = CommandQueue(capacity=1)
    queue.put(ResolvedCommand.from_key("1"))

    assert queue.put(ResolvedCommand.from_key("2"), timeout=0.01) is False
    assert len(queue) == 1


def test_close_wakes_blocked_consumer():
    queue = CommandQueue(capacity=2)
    results = []

    consumer = threading.Thread(target=lambda: results.append(queue.get()))
    consumer.start()
    queue.close()
    consumer.join(timeout=1.0)

    assert not consumer.is_alive()
    assert results == [None]


def test_close_wakes_blocked_producer():
    queue = CommandQueue(capacity=1)
    queue.put(ResolvedCommand.from_key("1"))
    results = []

    producer = threading.Thread(target=lambda: results.append(queue.put(ResolvedCommand.from_key("2"))))
    producer.start()
    queue.close()
    producer.join(timeout=1.0)

    assert not producer.is_alive()
    assert results == [False]


def test_closed_queue_drains_before_returning_none():
    queue = CommandQueue(capacity=2)
    queue.put(ResolvedCommand.from_key("3+4"))
    queue.close()

    assert queue.get().key == "3+4"
    assert queue.get() is None

    queue.reopen()
    assert queue.put(ResolvedCommand.from_key("1")) is True


def test_engine_stop_releases_producer_blocked_on_full_queue():
    """
    A device thread blocked on a full queue holds the resolver lock;
    stopping the engine must still finish.
    """
    config = EngineConfig(queue_maxsize=1)
    processor = InputProcessor(config, ManualScheduler())
    sink = QueuedInput(processor)
    sink.initialize()
    engine = VaudioEngine(config, renderer=ConsoleRenderer(io.StringIO()), input_sink=sink)

    processor.force("1")
    producer = threading.Thread(target=processor.force, args=("2",), daemon=True)
    producer.start()
    time.sleep(0.05)
    assert producer.is_alive()

    stopper = threading.Thread(target=engine.stop, daemon=True)
    stopper.start()
    stopper.join(timeout=2.0)
    producer.join(timeout=1.0)

    assert not stopper.is_alive()
    assert not producer.is_alive()
    assert sink.queue.closed
    assert engine.running is False

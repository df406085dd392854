# Core runtime: command resolution, queues and the state store
from .queues import CommandQueue, DroppedCommand, OverflowPolicy
from .resolver import (
    CommandResolver,
    ManualScheduler,
    ScheduledCall,
    Scheduler,
    ThreadingScheduler,
)

__all__ = [
    "CommandQueue",
    "DroppedCommand",
    "OverflowPolicy",
    "CommandResolver",
    "ManualScheduler",
    "ScheduledCall",
    "Scheduler",
    "ThreadingScheduler",
]

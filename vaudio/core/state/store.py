"""
State store with event log and transaction support.

Only the store changes AppState. Writers call dispatch(); readers call
get_snapshot(), or use the `state` property on the navigator thread.

Navigation that touches several fields, or that depends on content
loading, runs inside a transaction: events are buffered and only
applied on commit, so an aborted load leaves state untouched.
"""
from __future__ import annotations

import copy
import logging
import threading
import uuid
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Deque, Dict, Iterator, List, Optional

from ...bus import EventBus, EventKind
from ...errors import InvariantViolation
from .app_state import AppState
from .event_types import (
    StateEvent,
    StateEventType,
    transaction_abort_event,
    transaction_begin_event,
    transaction_commit_event,
)
from .reducer import reduce_state

logger = logging.getLogger(__name__)

Subscriber = Callable[[AppState, StateEvent], None]


@dataclass
class Transaction:
    """Events held back until the transaction commits."""
    txn_id: str
    events: List[StateEvent] = field(default_factory=list)
    started_at: str = field(default_factory=lambda: datetime.now().isoformat())


def check_invariants(state: AppState) -> None:
    """
    Raise InvariantViolation if the state is inconsistent.

    A pending confirmation always has a selected option.
    """
    if state.awaiting_confirmation and state.selected_option is None:
        raise InvariantViolation("awaiting_confirmation set without a selected option")


class StateStore:
    """
    Event-sourced application state.

    Dispatch is serialized by a re-entrant lock. Transactions nest; only
    the outermost commit applies the folded events. Applied events are
    logged, passed to subscribers and announced on the bus.

    Example:
        >>> store = StateStore(AppState(), bus)
        >>> with store.transaction():
        ...     store.dispatch(mode_set_event(Mode.GAME))
        ...     store.dispatch(scene_set_event("forest"))
        >>> store.get_snapshot().mode
        <Mode.GAME: 'game'>
    """

    def __init__(
        self,
        initial_state: Optional[AppState] = None,
        bus: Optional[EventBus] = None,
        max_event_log: int = 1000,
    ):
        """
        Initialize the store.

        Args:
            initial_state: Starting state (defaults to an empty AppState)
            bus: Bus that receives a state_updated event per applied event
            max_event_log: Size of the replay log
        """
        self._state = copy.deepcopy(initial_state) if initial_state else AppState()
        self._bus = bus
        self._lock = threading.RLock()
        self._seq = 0

        self._event_log: Deque[StateEvent] = deque(maxlen=max_event_log)

        # Active transactions in begin order; the last is the innermost
        self._transactions: Dict[str, Transaction] = {}

        self._subscribers: List[Subscriber] = []

    @property
    def state(self) -> AppState:
        """Live state object. Read-only by convention; use get_snapshot() across threads."""
        return self._state

    def dispatch(self, event: StateEvent) -> bool:
        """
        Apply an event, or buffer it in the open transaction.

        Events without a txn_id join the innermost open transaction.
        RUNNING_SET never does, so the run flag stays live.

        Returns:
            True if event was applied, False if buffered in a transaction

        Raises:
            InvariantViolation: If applying the event breaks a state invariant
        """
        with self._lock:
            self._seq += 1
            txn_id = event.txn_id
            if (
                txn_id is None
                and event.event_type not in (
                    StateEventType.TRANSACTION_BEGIN,
                    StateEventType.RUNNING_SET,
                )
                and self._transactions
            ):
                txn_id = next(reversed(self._transactions))
            event = StateEvent(
                event_type=event.event_type,
                payload=event.payload,
                timestamp=event.timestamp,
                seq=self._seq,
                txn_id=txn_id,
                source=event.source,
            )

            self._event_log.append(event)

            if event.event_type == StateEventType.TRANSACTION_BEGIN:
                self._begin_transaction(event)
                return False

            elif event.event_type == StateEventType.TRANSACTION_COMMIT:
                return self._commit_transaction(event)

            elif event.event_type == StateEventType.TRANSACTION_ABORT:
                self._abort_transaction(event)
                return False

            if event.txn_id and event.txn_id in self._transactions:
                self._transactions[event.txn_id].events.append(event)
                logger.debug(f"Buffered {event.event_type.value} in transaction {event.txn_id}")
                return False

            return self._apply_event(event)

    def _apply_event(self, event: StateEvent) -> bool:
        """Reduce, check invariants, then notify. Lock held."""
        try:
            new_state = reduce_state(self._state, event)
        except (KeyError, ValueError, TypeError) as e:
            logger.error(f"Failed to apply event {event.event_type.value}: {e}")
            return False

        check_invariants(new_state)
        self._state = new_state

        for sub in list(self._subscribers):
            try:
                sub(self._state, event)
            except Exception as e:
                logger.warning(f"State subscriber failed on {event.event_type.value}: {e}")

        if self._bus is not None:
            self._bus.emit(
                EventKind.STATE_UPDATED,
                event_type=event.event_type.value,
                seq=event.seq,
                txn_id=event.txn_id,
            )

        logger.debug(f"Applied {event.event_type.value} (seq={event.seq})")
        return True

    def _begin_transaction(self, event: StateEvent) -> None:
        txn_id = event.txn_id or str(uuid.uuid4())

        if txn_id in self._transactions:
            logger.warning(f"Transaction {txn_id} already active, ignoring begin")
            return

        self._transactions[txn_id] = Transaction(txn_id=txn_id)
        logger.debug(f"Transaction {txn_id} started")

    def _commit_transaction(self, event: StateEvent) -> bool:
        """Apply buffered events, or hand them to the enclosing transaction."""
        txn_id = event.txn_id
        if not txn_id or txn_id not in self._transactions:
            logger.warning(f"No transaction {txn_id} to commit")
            return False

        txn = self._transactions.pop(txn_id)
        logger.debug(f"Committing transaction {txn_id} with {len(txn.events)} events")

        # Inner commits fold into the enclosing transaction
        if self._transactions:
            outer = self._transactions[next(reversed(self._transactions))]
            outer.events.extend(txn.events)
            return True

        for buffered_event in txn.events:
            self._apply_event(buffered_event)
        return True

    def _abort_transaction(self, event: StateEvent) -> None:
        """Drop buffered events. State is untouched."""
        txn_id = event.txn_id
        if not txn_id or txn_id not in self._transactions:
            logger.warning(f"No transaction {txn_id} to abort")
            return

        txn = self._transactions.pop(txn_id)
        reason = event.payload.get("reason", "unknown")
        logger.warning(
            f"Aborted transaction {txn_id}: {reason}. "
            f"Discarded {len(txn.events)} events"
        )

    # --- transaction API ---

    def begin(self, txn_id: Optional[str] = None) -> str:
        """Open a transaction and return its id."""
        txn_id = txn_id or str(uuid.uuid4())
        self.dispatch(transaction_begin_event(txn_id))
        return txn_id

    def commit(self, txn_id: str) -> bool:
        return self.dispatch(transaction_commit_event(txn_id))

    def abort(self, txn_id: str, reason: str = "aborted") -> None:
        self.dispatch(transaction_abort_event(txn_id, reason))

    @contextmanager
    def transaction(self, txn_id: Optional[str] = None) -> Iterator[str]:
        """
        Run a block as one transaction.

        Events dispatched inside the block without an explicit txn_id are
        buffered. The transaction commits when the block exits normally
        and aborts (re-raising) when an exception escapes.
        """
        with self._lock:
            txn_id = self.begin(txn_id)
            try:
                yield txn_id
            except BaseException as e:
                self.abort(txn_id, reason=f"{type(e).__name__}: {e}")
                raise
            self.commit(txn_id)

    def has_active_transaction(self, txn_id: Optional[str] = None) -> bool:
        with self._lock:
            if txn_id is None:
                return bool(self._transactions)
            return txn_id in self._transactions

    def get_pending_event_count(self, txn_id: str) -> int:
        """How many events a transaction is holding."""
        with self._lock:
            if txn_id in self._transactions:
                return len(self._transactions[txn_id].events)
            return 0

    # --- reads ---

    def get_snapshot(self) -> AppState:
        """
        Deep copy of the current state, safe to keep and read on any thread.
        """
        with self._lock:
            return copy.deepcopy(self._state)

    def get_event_log(self, n: Optional[int] = None) -> List[StateEvent]:
        """The last `n` logged events (all of them when n is None)."""
        with self._lock:
            events = list(self._event_log)
            if n is not None:
                events = events[-n:]
            return events

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Call `callback(new_state, event)` after every applied event.

        A failing callback is logged and does not affect the others.

        Returns:
            Unsubscribe function
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

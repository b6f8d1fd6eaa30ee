# sagaharness/core/registry.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, Generator, Iterator, List, Optional, Tuple

from sagaharness.interfaces.types import ActionType, ErrorFactory

logger = logging.getLogger(__name__)


class _DeferredState(Enum):
    PENDING = auto()
    FULFILLED = auto()
    REJECTED = auto()


class Deferred:
    """
    A one-shot completion handle that moves from pending to fulfilled or
    rejected exactly once. Later settle calls are ignored.

    The handle is not bound to an event loop, so it can be created and
    settled from plain synchronous code. Each await gets its own waiter
    future; cancelling one awaiter leaves the handle and the other awaiters
    untouched. Awaiting a fulfilled handle returns None; awaiting a rejected
    one raises its error.
    """

    __slots__ = ("_state", "_error", "_waiters")

    def __init__(self) -> None:
        self._state = _DeferredState.PENDING
        self._error: Optional[BaseException] = None
        self._waiters: List[asyncio.Future] = []

    @property
    def settled(self) -> bool:
        return self._state is not _DeferredState.PENDING

    def done(self) -> bool:
        return self.settled

    def fulfilled(self) -> bool:
        return self._state is _DeferredState.FULFILLED

    def rejected(self) -> bool:
        return self._state is _DeferredState.REJECTED

    def exception(self) -> Optional[BaseException]:
        """The rejection error, or None if pending or fulfilled."""
        return self._error

    def resolve(self) -> bool:
        """
        Fulfil the handle.

        :return: True if this call settled the handle.
        """
        if self.settled:
            return False
        self._state = _DeferredState.FULFILLED
        self._wake_waiters()
        return True

    def reject(self, error: BaseException) -> bool:
        """
        Reject the handle with error.

        :return: True if this call settled the handle.
        """
        if self.settled:
            return False
        self._state = _DeferredState.REJECTED
        self._error = error
        self._wake_waiters()
        return True

    def _wake_waiters(self) -> None:
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)

    async def _wait(self) -> None:
        if not self.settled:
            waiter = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)
            try:
                await waiter
            finally:
                if waiter in self._waiters:
                    self._waiters.remove(waiter)
        if self._state is _DeferredState.REJECTED:
            raise self._error
        return None

    def __await__(self) -> Generator:
        return self._wait().__await__()

    def __repr__(self) -> str:
        return f"<Deferred {self._state.name.lower()}>"


@dataclass
class ActionRecord:
    """
    Per-type bookkeeping: how often the type was dispatched and the handle
    current waiters hold.
    """

    count: int = 0
    deferred: Deferred = field(default_factory=Deferred)

    @property
    def settled(self) -> bool:
        return self.deferred.settled


class WaitRegistry:
    """
    Maps action types to their ActionRecord and settles waits as actions are
    recorded.

    Once sealed with a terminal outcome, any handle created afterwards is
    settled with that outcome right away instead of staying pending.
    """

    def __init__(self) -> None:
        self._records: Dict[ActionType, ActionRecord] = {}
        self._terminal: Optional[ErrorFactory] = None

    def ensure(self, action_type: ActionType, future_only: bool = False) -> ActionRecord:
        """
        Return the live record for action_type, creating it if missing.

        :param action_type: The awaited action type.
        :param future_only: Swap in a fresh, unsettled handle even if one
                            exists. The count is kept.
        """
        record = self._records.get(action_type)
        if record is None:
            record = self._records[action_type] = ActionRecord()
        elif future_only:
            record.deferred = Deferred()
        else:
            return record

        if self._terminal is not None:
            record.deferred.reject(self._terminal(action_type))
            logger.debug("Wait for %s created after the root process ended; settled at once", action_type)
        else:
            logger.debug("Waiting for %s (future_only=%s)", action_type, future_only)
        return record

    def record(self, action_type: ActionType) -> ActionRecord:
        """
        Count one dispatch of action_type and fulfil its handle if pending.
        """
        record = self._records.get(action_type)
        if record is None:
            record = self._records[action_type] = ActionRecord()
        record.count += 1
        if record.deferred.resolve():
            logger.debug("Resolved wait for %s", action_type)
        return record

    def count(self, action_type: ActionType) -> int:
        record = self._records.get(action_type)
        return record.count if record else 0

    def was_called(self, action_type: ActionType) -> bool:
        return self.count(action_type) > 0

    def pending(self) -> List[Tuple[ActionType, ActionRecord]]:
        """Records whose handle has not settled yet, in creation order."""
        return [(t, r) for t, r in self._records.items() if not r.settled]

    def reject_pending(self, error_for: ErrorFactory) -> int:
        """
        Reject every unsettled handle with error_for(action_type).

        :return: The number of handles rejected.
        """
        rejected = 0
        for action_type, record in self.pending():
            record.deferred.reject(error_for(action_type))
            rejected += 1
        return rejected

    def seal(self, error_for: ErrorFactory) -> None:
        """Settle handles created from now on with error_for(action_type)."""
        self._terminal = error_for

    def unseal(self) -> None:
        self._terminal = None

    @property
    def sealed(self) -> bool:
        return self._terminal is not None

    def clear(self) -> None:
        """Forget every record. Handles already given out are unaffected."""
        self._records.clear()

    def __contains__(self, action_type: object) -> bool:
        return action_type in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ActionType]:
        return iter(self._records)

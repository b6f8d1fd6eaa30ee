# sagaharness/runtime/supervisor.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import logging
from enum import Enum, auto
from typing import Optional, Set

from sagaharness.core.errors import AwaitedActionNeverCalled
from sagaharness.core.registry import WaitRegistry
from sagaharness.runtime.task import RootTask

logger = logging.getLogger(__name__)


class SupervisorState(Enum):
    """Lifecycle of a supervised root process. Both end states are terminal."""

    IDLE = auto()  # Nothing started yet
    RUNNING = auto()
    COMPLETED = auto()  # Returned or was cancelled
    FAILED = auto()  # An error escaped the root


class RootTaskSupervisor:
    """
    Watches root processes and settles the waits they leave behind.

    When a process completes, every wait still pending is rejected with
    AwaitedActionNeverCalled. When it fails, every pending wait is rejected
    with the very error that escaped it. Once no watched process is running,
    the registry is sealed so waits created later settle the same way.
    """

    def __init__(self, registry: WaitRegistry) -> None:
        self._registry = registry
        self._running: Set[RootTask] = set()
        self._state = SupervisorState.IDLE
        self._error: Optional[BaseException] = None

    @property
    def state(self) -> SupervisorState:
        return self._state

    @property
    def running(self) -> int:
        return len(self._running)

    @property
    def error(self) -> Optional[BaseException]:
        """The error of the last failed process, if any."""
        return self._error

    def watch(self, task: RootTask) -> RootTask:
        self._running.add(task)
        self._state = SupervisorState.RUNNING
        self._registry.unseal()
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: RootTask) -> None:
        self._running.discard(task)
        error = None if task.cancelled() else task.exception()
        if error is None:
            self._on_completed(task)
        else:
            self._on_failed(task, error)

    def _on_completed(self, task: RootTask) -> None:
        self._state = SupervisorState.COMPLETED
        rejected = self._registry.reject_pending(AwaitedActionNeverCalled)
        logger.debug("Root process %s completed; %d pending wait(s) rejected", task.name, rejected)
        if not self._running:
            self._registry.seal(AwaitedActionNeverCalled)

    def _on_failed(self, task: RootTask, error: BaseException) -> None:
        self._state = SupervisorState.FAILED
        self._error = error
        rejected = self._registry.reject_pending(lambda action_type: error)
        logger.warning(
            "Root process %s failed with %s: %s; %d pending wait(s) rejected",
            task.name,
            type(error).__name__,
            error,
            rejected,
        )
        if not self._running:
            self._registry.seal(lambda action_type: error)

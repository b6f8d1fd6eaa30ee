# sagaharness/interfaces/protocols.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class MiddlewareAPI(Protocol):
    """
    The store surface handed to every middleware when the chain is built.

    Methods:
        get_state(): Returns the current state.
        dispatch(action): Dispatches through the whole chain, from the top.

    Runtime Invariants:
    - dispatch() always re-enters the chain at its first middleware.
    """

    def get_state(self) -> Any:
        """Return the current state."""
        ...

    def dispatch(self, action: Any) -> Any:
        """Dispatch an action through the full middleware chain."""
        ...


@runtime_checkable
class Monitor(Protocol):
    """
    Observer of the effect runtime. Every method is optional; the runtime only
    calls the ones an object actually defines.

    Methods:
        on_action_dispatched(action): An action reached the runtime.
        on_task_started(task): A root process was started.
        on_task_done(task): A root process finished, failed or was cancelled.
        on_task_error(task, error): A root process failed with error.

    Error Handling:
    - Exceptions raised by monitor methods propagate to whoever triggered the
      notification (the dispatch caller or the event loop's handler).
    """

    def on_action_dispatched(self, action: Any) -> None:
        ...

    def on_task_started(self, task: Any) -> None:
        ...

    def on_task_done(self, task: Any) -> None:
        ...

    def on_task_error(self, task: Any, error: BaseException) -> None:
        ...

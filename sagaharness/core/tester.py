# sagaharness/core/tester.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import logging
import warnings
from collections.abc import Mapping
from typing import Any, List, Optional

from sagaharness.core.actions import (
    SET_STATE_ACTION_TYPE,
    UPDATE_STATE_ACTION_TYPE,
    Action,
    reset_action,
)
from sagaharness.core.errors import CallerError
from sagaharness.core.recorder import ActionRecorder
from sagaharness.core.reducers import SnapshotResolver, StateOverrideLayer, combine_reducers, resolve_reducer
from sagaharness.core.registry import Deferred, WaitRegistry
from sagaharness.core.store import Store
from sagaharness.core.validations import TesterConfig
from sagaharness.interfaces.types import ActionType, Middleware, Process, ReducerComposer, ReducerSpec
from sagaharness.runtime.effects import EffectRuntime
from sagaharness.runtime.supervisor import RootTaskSupervisor
from sagaharness.runtime.task import RootTask

logger = logging.getLogger(__name__)


def _warn_deprecated(name: str, replacement: str) -> None:
    # stacklevel 3 points at the caller of the deprecated method
    warnings.warn(
        f"SagaTester.{name}() is deprecated; use {replacement}() instead",
        DeprecationWarning,
        stacklevel=3,
    )


class SagaTester:
    """
    Integration-test harness for a store driven by reducers and background
    processes. Every action dispatched through it, by the test or by a
    process, is logged and counted, and tests can await future actions.

    Dispatch order is fixed: caller middlewares, the recorder, the effect
    runtime, then the reducer.
    """

    def __init__(
        self,
        initial_state: Any = None,
        reducers: ReducerSpec = None,
        middlewares: Optional[List[Middleware]] = None,
        combine_reducers: ReducerComposer = combine_reducers,
        ignore_reserved_actions: bool = True,
        options: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """
        :param initial_state: State before any action; defaults to an empty dict.
        :param reducers: A reducer, a mapping of slot name to reducer, or None
                         to keep state as injected.
        :param middlewares: Middlewares run before the recorder, in order.
        :param combine_reducers: Composer for the mapping form of reducers.
        :param ignore_reserved_actions: Skip the store's housekeeping actions
                                        when recording.
        :param options: Passed to the effect runtime as is.
        :raises CallerError: If the configuration is malformed.
        :raises ConfigurationError: If the effect runtime rejects options.
        """
        config = TesterConfig(
            initial_state=initial_state,
            reducers=reducers,
            middlewares=middlewares,
            combine_reducers=combine_reducers,
            ignore_reserved_actions=ignore_reserved_actions,
            options=options,
        ).validate()

        self._called_actions: List[Action] = []
        self._registry = WaitRegistry()
        self._runtime = EffectRuntime(config.options)
        self._supervisor = RootTaskSupervisor(self._registry)

        reducer = resolve_reducer(config.reducers, config.combine_reducers)
        self._snapshot = SnapshotResolver(reducer)
        initial = self._snapshot.resolve(config.initial_state)

        recorder = ActionRecorder(self._called_actions, self._registry, config.ignore_reserved_actions)
        self._store = Store(
            StateOverrideLayer(reducer, self._snapshot),
            initial,
            [*config.middlewares, recorder, self._runtime.middleware],
        )

    @property
    def runtime(self) -> EffectRuntime:
        return self._runtime

    @property
    def supervisor(self) -> RootTaskSupervisor:
        return self._supervisor

    @property
    def snapshot(self) -> Any:
        """A copy of the state reset() restores."""
        return self._snapshot.snapshot

    def start(self, process: Process, *args: Any) -> RootTask:
        """
        Start process(io, *args) and supervise it. Must be called with a
        running event loop.
        """
        task = self._runtime.run(process, *args)
        return self._supervisor.watch(task)

    def run(self, process: Process, *args: Any):
        """Start process and return an awaitable that settles with it."""
        return self.start(process, *args).to_future()

    def dispatch(self, action: Any) -> Any:
        """
        Dispatch an action synchronously.

        :return: The value returned by the middleware chain.
        """
        return self._store.dispatch(action)

    def get_state(self) -> Any:
        return self._store.get_state()

    def update_state(self, partial: Mapping[str, Any]) -> None:
        """Merge partial into the state without logging or counting it."""
        self._inject_state(partial, counted=False)

    def set_state(self, partial: Mapping[str, Any]) -> None:
        """Deprecated: like update_state, but the action is logged and counted."""
        _warn_deprecated("set_state", "update_state")
        self._inject_state(partial, counted=True)

    def _inject_state(self, partial: Mapping[str, Any], counted: bool) -> None:
        if not isinstance(partial, Mapping):
            raise CallerError(f"State updates must be mappings, got {type(partial).__name__}")
        action_type = SET_STATE_ACTION_TYPE if counted else UPDATE_STATE_ACTION_TYPE
        self._store.dispatch(Action(action_type, payload=dict(partial)))

    def reset(self, clear_log: bool = False) -> None:
        """
        Restore the initial state.

        :param clear_log: Also forget every called action and counter.
        """
        self._store.dispatch(reset_action)
        if clear_log:
            # Clear in place; other references to the log see it emptied
            self._called_actions.clear()
            self._registry.clear()
            logger.debug("Cleared action log")

    def get_called_actions(self) -> List[Action]:
        return list(self._called_actions)

    def get_latest_called_action(self) -> Optional[Action]:
        return self._called_actions[-1] if self._called_actions else None

    def get_actions_called(self) -> List[Action]:
        """Deprecated alias of get_called_actions()."""
        _warn_deprecated("get_actions_called", "get_called_actions")
        return self.get_called_actions()

    def get_last_action_called(self) -> Optional[Action]:
        """Deprecated alias of get_latest_called_action()."""
        _warn_deprecated("get_last_action_called", "get_latest_called_action")
        return self.get_latest_called_action()

    def get_latest_called_actions(self, num: int = 1) -> List[Action]:
        if isinstance(num, bool) or not isinstance(num, int) or num < 1:
            raise CallerError(f"num must be a positive integer, got {num!r}")
        return self._called_actions[-num:]

    def was_called(self, action_type: ActionType) -> bool:
        return self._registry.was_called(action_type)

    def num_called(self, action_type: ActionType) -> int:
        return self._registry.count(action_type)

    def wait_for(self, action_type: ActionType, future_only: bool = False) -> Deferred:
        """
        Return a handle that settles once action_type is dispatched.

        Without future_only, a past dispatch counts and every caller shares
        one handle. With future_only, only the next dispatch from now on does.
        """
        if not isinstance(action_type, str) or not action_type:
            raise CallerError(f"action_type must be a non-empty string, got {action_type!r}")
        return self._registry.ensure(action_type, future_only).deferred

# sagaharness/runtime/effects.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Callable, Dict, Optional

from sagaharness.core.actions import Action, to_action
from sagaharness.core.errors import CallerError, ConfigurationError
from sagaharness.interfaces.protocols import MiddlewareAPI, Monitor
from sagaharness.interfaces.types import Dispatch, Process
from sagaharness.runtime.channel import ActionChannel, Pattern
from sagaharness.runtime.task import RootTask, TaskScope

logger = logging.getLogger(__name__)

KNOWN_OPTIONS = frozenset({"context", "on_error", "monitor"})


def _validate_options(options: Any) -> Dict[str, Any]:
    if options is None:
        return {}
    if not isinstance(options, Mapping):
        raise ConfigurationError(f"Effect runtime options must be a mapping, got {type(options).__name__}")
    unknown = set(options) - KNOWN_OPTIONS
    if unknown:
        raise ConfigurationError(f"Unknown effect runtime options: {', '.join(sorted(map(str, unknown)))}")
    if "context" in options and not isinstance(options["context"], Mapping):
        raise ConfigurationError("options['context'] must be a mapping")
    if options.get("on_error") is not None and not callable(options["on_error"]):
        raise ConfigurationError("options['on_error'] must be callable")
    return dict(options)


class EffectRuntime:
    """
    Runs background processes (async functions) against a store. Mounted as
    the last middleware of the chain, it lets each action reach the reducer
    first and then hands it to every process waiting for it.
    """

    def __init__(self, options: Optional[Mapping[str, Any]] = None) -> None:
        """
        :param options: Optional mapping with 'context', 'on_error' and 'monitor'.
        :raises ConfigurationError: If options has the wrong shape.
        """
        options = _validate_options(options)
        self._context: Dict[str, Any] = dict(options.get("context", {}))
        self._on_error: Optional[Callable[[BaseException], Any]] = options.get("on_error")
        self._monitor: Optional[Monitor] = options.get("monitor")
        self._channel = ActionChannel()
        self._store_api: Optional[MiddlewareAPI] = None
        self._counter = 0

    @property
    def channel(self) -> ActionChannel:
        return self._channel

    @property
    def mounted(self) -> bool:
        return self._store_api is not None

    @property
    def monitor(self) -> Optional[Monitor]:
        return self._monitor

    def middleware(self, store_api: MiddlewareAPI):
        """Mount the runtime on a store. Used as the innermost middleware."""
        self._store_api = store_api

        def wrap(next_dispatch: Dispatch) -> Dispatch:
            def dispatch(action: Any) -> Any:
                action = to_action(action)
                result = next_dispatch(action)
                self._notify("on_action_dispatched", action)
                self._channel.emit(action)
                return result

            return dispatch

        return wrap

    def run(self, process: Process, *args: Any) -> RootTask:
        """
        Start process(io, *args) as a root task.

        :raises CallerError: If the runtime is not mounted or process is not
                             an async function.
        """
        if not self.mounted:
            raise CallerError("The effect runtime must be mounted on a store before running a process")
        if not callable(process):
            raise CallerError(f"Process must be an async function, got {type(process).__name__}")
        self._counter += 1
        name = f"{getattr(process, '__name__', 'process')}-{self._counter}"
        scope = TaskScope()
        io = Effects(self, scope)
        coro = process(io, *args)
        if not inspect.iscoroutine(coro):
            raise CallerError(f"{name} did not return a coroutine; define it with 'async def'")

        task = asyncio.Task(scope.drive(coro), loop=asyncio.get_running_loop(), name=name, eager_start=True)
        root = RootTask(task, scope, name)
        logger.debug("Started root process %s", name)
        self._notify("on_task_started", root)
        root.add_done_callback(self._task_done)
        return root

    def _task_done(self, task: RootTask) -> None:
        self._notify("on_task_done", task)
        if task.cancelled():
            logger.debug("Root process %s was cancelled", task.name)
            return
        error = task.exception()
        if error is None:
            logger.debug("Root process %s completed", task.name)
            return
        self._notify("on_task_error", task, error)
        if self._on_error is not None:
            self._on_error(error)
        else:
            logger.error("Uncaught error in root process %s", task.name, exc_info=error)

    def _notify(self, hook: str, *args: Any) -> None:
        if self._monitor is not None and hasattr(self._monitor, hook):
            getattr(self._monitor, hook)(*args)

    def get_state(self) -> Any:
        return self._store_api.get_state()

    def dispatch(self, action: Any) -> Any:
        return self._store_api.dispatch(action)

    @property
    def context(self) -> Mapping[str, Any]:
        return MappingProxyType(self._context)


class Effects:
    """
    The handle a process receives as its first argument. Every side effect a
    process performs against the store goes through it.
    """

    def __init__(self, runtime: EffectRuntime, scope: TaskScope) -> None:
        self._runtime = runtime
        self._scope = scope

    @property
    def context(self) -> Mapping[str, Any]:
        """Read-only view of options['context']."""
        return self._runtime.context

    def select(self, selector: Optional[Callable[..., Any]] = None, *args: Any) -> Any:
        """Current state, or selector(state, *args)."""
        state = self._runtime.get_state()
        if selector is None:
            return state
        return selector(state, *args)

    async def put(self, action: Any) -> Any:
        """Dispatch an action through the whole chain."""
        return self._runtime.dispatch(action)

    async def take(self, pattern: Pattern) -> Action:
        """Wait for the next dispatched action matching pattern."""
        subscription = self._runtime.channel.subscribe(pattern, once=True)
        try:
            return await subscription.get()
        finally:
            self._runtime.channel.unsubscribe(subscription)

    async def call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Call fn and await the result if it is awaitable."""
        result = fn(*args, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def delay(self, seconds: float, value: Any = None) -> Any:
        return await asyncio.sleep(seconds, result=value)

    def fork(self, process: Process, *args: Any) -> asyncio.Task:
        """
        Start process(io, *args) attached to the current root process. The
        root does not complete before its forks, and a failing fork fails it.
        """
        coro = process(self, *args)
        if not inspect.iscoroutine(coro):
            raise CallerError(f"{getattr(process, '__name__', process)!r} did not return a coroutine")
        return self._scope.fork(coro, name=getattr(process, "__name__", None))

    def cancel(self, task: asyncio.Task) -> None:
        task.cancel()

    def take_every(self, pattern: Pattern, worker: Process, *args: Any) -> asyncio.Task:
        """Fork worker(io, *args, action) for every matching action."""
        subscription = self._runtime.channel.subscribe(pattern)

        async def watcher(io: Effects) -> None:
            try:
                while True:
                    action = await subscription.get()
                    io.fork(worker, *args, action)
            finally:
                self._runtime.channel.unsubscribe(subscription)

        return self.fork(watcher)

    def take_latest(self, pattern: Pattern, worker: Process, *args: Any) -> asyncio.Task:
        """Like take_every, but a new match cancels the worker still running."""
        subscription = self._runtime.channel.subscribe(pattern)

        async def watcher(io: Effects) -> None:
            last: Optional[asyncio.Task] = None
            try:
                while True:
                    action = await subscription.get()
                    if last is not None and not last.done():
                        last.cancel()
                    last = io.fork(worker, *args, action)
            finally:
                self._runtime.channel.unsubscribe(subscription)

        return self.fork(watcher)

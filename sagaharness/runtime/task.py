# sagaharness/runtime/task.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import asyncio
from typing import Any, Callable, Coroutine, Generator, List, Optional, Set


def spawn(coro: Coroutine, name: Optional[str] = None) -> asyncio.Task:
    """
    Start coro as a task that runs synchronously up to its first suspension,
    so that subscriptions it makes exist before the caller continues.
    """
    loop = asyncio.get_running_loop()
    return asyncio.Task(coro, loop=loop, name=name, eager_start=True)


class TaskScope:
    """
    Tracks the tasks forked below one root process. The first child failure
    cancels the remaining children and the owning task; drive() then
    re-raises that failure as the root's own.
    """

    def __init__(self) -> None:
        self._children: Set[asyncio.Task] = set()
        self._owner: Optional[asyncio.Task] = None
        self.error: Optional[BaseException] = None

    def fork(self, coro: Coroutine, name: Optional[str] = None) -> asyncio.Task:
        task = spawn(coro, name=name)
        if task.done():
            self._child_done(task)
        else:
            self._children.add(task)
            task.add_done_callback(self._child_done)
        return task

    def _child_done(self, task: asyncio.Task) -> None:
        self._children.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is None or self.error is not None:
            return
        self.error = error
        self.cancel()
        if self._owner is not None and not self._owner.done():
            self._owner.cancel()

    def cancel(self) -> None:
        for child in list(self._children):
            child.cancel()

    async def join(self) -> None:
        while self._children:
            await asyncio.wait(set(self._children))

    async def drive(self, coro: Coroutine) -> Any:
        """Run coro, then wait for every forked child."""
        self._owner = asyncio.current_task()
        try:
            result = await coro
            await self.join()
        except asyncio.CancelledError:
            self.cancel()
            if self.error is not None:
                raise self.error from None
            raise
        except BaseException:
            self.cancel()
            raise
        if self.error is not None:
            raise self.error
        return result

    @property
    def children(self) -> List[asyncio.Task]:
        return list(self._children)


class RootTask:
    """
    Handle on a running root process. Completion and failure are read from
    the underlying asyncio task; cancellation is delegated to it.
    """

    def __init__(self, task: asyncio.Task, scope: TaskScope, name: str) -> None:
        self._task = task
        self._scope = scope
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @property
    def scope(self) -> TaskScope:
        return self._scope

    def done(self) -> bool:
        return self._task.done()

    def cancelled(self) -> bool:
        return self._task.cancelled()

    def is_running(self) -> bool:
        return not self._task.done()

    def result(self) -> Any:
        return self._task.result()

    def exception(self) -> Optional[BaseException]:
        return self._task.exception()

    def cancel(self, msg: Optional[str] = None) -> bool:
        return self._task.cancel(msg)

    def add_done_callback(self, fn: Callable[["RootTask"], None]) -> None:
        """Call fn(self) once the process has finished, failed or been cancelled."""
        self._task.add_done_callback(lambda _: fn(self))

    def to_future(self) -> asyncio.Task:
        return self._task

    def __await__(self) -> Generator:
        return self._task.__await__()

    def __repr__(self) -> str:
        if not self._task.done():
            status = "running"
        elif self._task.cancelled():
            status = "cancelled"
        elif self._task.exception() is not None:
            status = "failed"
        else:
            status = "done"
        return f"<RootTask {self._name} {status}>"

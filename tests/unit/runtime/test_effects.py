# tests/unit/runtime/test_effects.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import asyncio
import logging
from unittest.mock import MagicMock

import pytest

from sagaharness.core.actions import Action
from sagaharness.core.errors import CallerError, ConfigurationError
from sagaharness.core.store import Store
from sagaharness.interfaces.protocols import MiddlewareAPI, Monitor
from sagaharness.runtime.effects import EffectRuntime
from sagaharness.runtime.task import RootTask


def mount(runtime, reducer=None, state=None):
    """Build a store whose innermost middleware is the runtime."""
    return Store(reducer or (lambda s, a: s), state if state is not None else {}, [runtime.middleware])


# -----------------------------------------------------------------------------
# options
# -----------------------------------------------------------------------------


def test_accepts_no_options():
    runtime = EffectRuntime()
    assert dict(runtime.context) == {}
    assert not runtime.mounted


@pytest.mark.parametrize(
    "options",
    [
        "not a mapping",
        ["context"],
        {"unknown": 1},
        {"context": 5},
        {"on_error": 5},
    ],
)
def test_rejects_invalid_options(options):
    with pytest.raises(ConfigurationError):
        EffectRuntime(options)


def test_context_is_read_only():
    runtime = EffectRuntime({"context": {"api": "x"}})
    assert runtime.context["api"] == "x"
    with pytest.raises(TypeError):
        runtime.context["api"] = "y"


def test_run_requires_mounting():
    runtime = EffectRuntime()

    async def process(io):
        pass

    with pytest.raises(CallerError):
        runtime.run(process)


@pytest.mark.asyncio
async def test_run_requires_async_function():
    runtime = EffectRuntime()
    mount(runtime)

    def not_async(io):
        return 5

    with pytest.raises(CallerError):
        runtime.run(not_async)
    with pytest.raises(CallerError):
        runtime.run("nope")


# -----------------------------------------------------------------------------
# middleware
# -----------------------------------------------------------------------------


def test_action_reaches_reducer_before_processes(mock_monitor):
    runtime = EffectRuntime({"monitor": mock_monitor})
    states = []
    mock_monitor.on_action_dispatched.side_effect = lambda action: states.append(store.get_state())
    store = mount(runtime, reducer=lambda s, a: {"last": a.type}, state={})
    store.dispatch(Action("A"))
    assert states == [{"last": "A"}]
    mock_monitor.on_action_dispatched.assert_called_once_with(Action("A"))


# -----------------------------------------------------------------------------
# processes
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_run_starts_process_eagerly(root_tasks):
    runtime = EffectRuntime()
    mount(runtime)
    flags = []

    async def process(io, value):
        flags.append(value)

    task = runtime.run(process, "started")
    root_tasks.append(task)
    assert isinstance(task, RootTask)
    assert flags == ["started"]
    assert task.name == "process-1"
    await task


@pytest.mark.asyncio
async def test_put_select_and_context():
    runtime = EffectRuntime({"context": {"step": 2}})
    store = mount(runtime, reducer=lambda s, a: {"n": s["n"] + a.get("by", 0)}, state={"n": 0})

    async def process(io):
        await io.put({"type": "ADD", "by": io.context["step"]})
        return io.select(lambda state, key: state[key], "n")

    assert await runtime.run(process) == 2
    assert store.get_state() == {"n": 2}


@pytest.mark.asyncio
async def test_take_waits_for_next_matching_action():
    runtime = EffectRuntime()
    store = mount(runtime)

    async def process(io):
        first = await io.take("GO")
        second = await io.take(["STOP", "HALT"])
        return first, second

    task = runtime.run(process)
    store.dispatch(Action("NOISE"))
    store.dispatch(Action("GO", n=1))
    await asyncio.sleep(0)
    store.dispatch(Action("HALT"))
    assert await task == (Action("GO", n=1), Action("HALT"))
    assert len(runtime.channel) == 0


@pytest.mark.asyncio
async def test_call_and_delay():
    runtime = EffectRuntime()
    mount(runtime)

    async def fetch(value):
        await asyncio.sleep(0)
        return value * 2

    async def process(io):
        doubled = await io.call(fetch, 4)
        plain = await io.call(lambda x, y=0: x + y, 1, y=2)
        delayed = await io.delay(0.001, "late")
        return doubled, plain, delayed

    assert await runtime.run(process) == (8, 3, "late")


@pytest.mark.asyncio
async def test_root_waits_for_forks():
    runtime = EffectRuntime()
    mount(runtime)
    trace = []

    async def child(io, label):
        await io.delay(0.01)
        trace.append(label)

    async def process(io):
        io.fork(child, "child")
        trace.append("parent")

    await runtime.run(process)
    assert trace == ["parent", "child"]


@pytest.mark.asyncio
async def test_fork_rejects_sync_functions():
    runtime = EffectRuntime()
    mount(runtime)

    async def process(io):
        io.fork(lambda io: None)

    with pytest.raises(CallerError):
        await runtime.run(process)


@pytest.mark.asyncio
async def test_failing_fork_fails_root():
    runtime = EffectRuntime({"on_error": lambda error: None})
    mount(runtime)
    error = RuntimeError("fork failed")

    async def child(io):
        await io.delay(0)
        raise error

    async def process(io):
        io.fork(child)
        await io.take("NEVER")

    with pytest.raises(RuntimeError) as exc_info:
        await runtime.run(process)
    assert exc_info.value is error


@pytest.mark.asyncio
async def test_take_every_forks_a_worker_per_action(root_tasks):
    runtime = EffectRuntime()
    store = mount(runtime)
    handled = []

    async def worker(io, prefix, action):
        handled.append(f"{prefix}{action.n}")

    async def process(io):
        io.take_every("PING", worker, "ping-")

    task = runtime.run(process)
    root_tasks.append(task)
    for n in range(3):
        store.dispatch(Action("PING", n=n))
    for _ in range(5):
        await asyncio.sleep(0)
    assert handled == ["ping-0", "ping-1", "ping-2"]
    assert not task.done()


@pytest.mark.asyncio
async def test_take_latest_cancels_running_worker(root_tasks):
    runtime = EffectRuntime()
    store = mount(runtime)
    started, finished = [], []

    async def worker(io, action):
        started.append(action.n)
        await io.delay(0.01)
        finished.append(action.n)

    async def process(io):
        io.take_latest("SEARCH", worker)

    root_tasks.append(runtime.run(process))
    store.dispatch(Action("SEARCH", n=1))
    await asyncio.sleep(0)
    store.dispatch(Action("SEARCH", n=2))
    await asyncio.sleep(0.05)
    assert started == [1, 2]
    assert finished == [2]


@pytest.mark.asyncio
async def test_cancel_effect():
    runtime = EffectRuntime()
    mount(runtime)

    async def sleeper(io):
        await io.delay(10)

    async def process(io):
        task = io.fork(sleeper)
        io.cancel(task)
        return "cancelled"

    assert await runtime.run(process) == "cancelled"


# -----------------------------------------------------------------------------
# monitoring and error reporting
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_monitor_sees_task_lifecycle(mock_monitor):
    runtime = EffectRuntime({"monitor": mock_monitor})
    mount(runtime)

    async def process(io):
        return 1

    task = runtime.run(process)
    await task
    await asyncio.sleep(0)
    mock_monitor.on_task_started.assert_called_once_with(task)
    mock_monitor.on_task_done.assert_called_once_with(task)
    mock_monitor.on_task_error.assert_not_called()


@pytest.mark.asyncio
async def test_on_error_receives_root_failure(mock_monitor):
    on_error = MagicMock()
    runtime = EffectRuntime({"on_error": on_error, "monitor": mock_monitor})
    mount(runtime)
    error = ValueError("escaped")

    async def process(io):
        raise error

    task = runtime.run(process)
    with pytest.raises(ValueError):
        await task
    await asyncio.sleep(0)
    on_error.assert_called_once_with(error)
    mock_monitor.on_task_error.assert_called_once_with(task, error)


@pytest.mark.asyncio
async def test_root_failure_logged_without_on_error(caplog):
    runtime = EffectRuntime()
    mount(runtime)

    async def process(io):
        raise ValueError("unhandled")

    with caplog.at_level(logging.ERROR, logger="sagaharness.runtime.effects"):
        task = runtime.run(process)
        with pytest.raises(ValueError):
            await task
        await asyncio.sleep(0)
    assert "Uncaught error in root process process-1" in caplog.text


def test_monitor_without_hooks_is_ignored():
    runtime = EffectRuntime({"monitor": object()})
    store = mount(runtime)
    store.dispatch(Action("A"))


class RecordingMonitor:
    def __init__(self):
        self.events = []

    def on_action_dispatched(self, action):
        self.events.append(("action", action.type))

    def on_task_started(self, task):
        self.events.append(("started", task.name))

    def on_task_done(self, task):
        self.events.append(("done", task.name))

    def on_task_error(self, task, error):
        self.events.append(("error", task.name))


@pytest.mark.asyncio
async def test_monitor_protocol_receives_hooks_in_order():
    monitor = RecordingMonitor()
    assert isinstance(monitor, Monitor)
    runtime = EffectRuntime({"monitor": monitor})
    assert runtime.monitor is monitor
    mount(runtime)

    async def ping(io):
        await io.delay(0)
        await io.put({"type": "PING"})

    await runtime.run(ping)
    await asyncio.sleep(0)
    assert monitor.events == [("started", "ping-1"), ("action", "PING"), ("done", "ping-1")]


def test_runtime_is_mounted_with_middleware_api():
    seen = []
    runtime = EffectRuntime()

    def spy(api):
        seen.append(api)
        return lambda next_dispatch: next_dispatch

    Store(lambda s, a: s, {}, [spy, runtime.middleware])
    assert runtime.mounted
    assert isinstance(seen[0], MiddlewareAPI)
    assert runtime.get_state() == {}

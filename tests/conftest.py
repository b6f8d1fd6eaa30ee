# tests/conftest.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import asyncio
from unittest.mock import MagicMock

import pytest
import pytest_asyncio

SOME_ACTION_TYPE = "SOME_ACTION_TYPE"
OTHER_ACTION_TYPE = "OTHER_ACTION_TYPE"
ANOTHER_ACTION_TYPE = "ANOTHER_ACTION_TYPE"


def pytest_configure(config):
    """Register custom marks."""
    config.addinivalue_line("markers", "property: mark test as a property-based test")


@pytest.fixture
def some_action():
    from sagaharness.core.actions import Action

    return Action(SOME_ACTION_TYPE)


@pytest.fixture
def other_action():
    from sagaharness.core.actions import Action

    return Action(OTHER_ACTION_TYPE)


@pytest.fixture
def another_action():
    from sagaharness.core.actions import Action

    return Action(ANOTHER_ACTION_TYPE)


@pytest.fixture
def counter_reducer():
    """A reducer over {"count": n} that increments on INCR."""

    def reducer(state, action):
        if state is None:
            state = {"count": 0}
        if action.type == "INCR":
            return {**state, "count": state["count"] + 1}
        return state

    return reducer


@pytest.fixture
def tester():
    """A SagaTester with default configuration."""
    from sagaharness.core.tester import SagaTester

    return SagaTester()


@pytest.fixture
def registry():
    from sagaharness.core.registry import WaitRegistry

    return WaitRegistry()


@pytest.fixture
def mock_monitor():
    """A monitor with every hook mocked."""
    monitor = MagicMock()
    monitor.on_action_dispatched = MagicMock()
    monitor.on_task_started = MagicMock()
    monitor.on_task_done = MagicMock()
    monitor.on_task_error = MagicMock()
    return monitor


@pytest_asyncio.fixture
async def root_tasks():
    """Collects root tasks and cancels the ones still running after the test."""
    tasks = []
    yield tasks
    for task in tasks:
        if not task.done():
            task.cancel()
    await asyncio.gather(*(task.to_future() for task in tasks), return_exceptions=True)
    # let forked children finish their own cancellation
    await asyncio.sleep(0)


@pytest.fixture
def settle():
    """Returns a coroutine function that lets scheduled callbacks run."""

    async def _settle(turns: int = 5) -> None:
        for _ in range(turns):
            await asyncio.sleep(0)

    return _settle

# sagaharness/__init__.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details
"""
Integration-test harness for reducer-driven stores with asynchronous
background processes.

Dispatch actions, run processes, and observe which actions were produced,
how often, and when a given action type eventually shows up.
"""

from sagaharness.core.actions import (
    INIT_ACTION_TYPE,
    RESERVED_PREFIX,
    RESET_ACTION_TYPE,
    SET_STATE_ACTION_TYPE,
    UPDATE_STATE_ACTION_TYPE,
    Action,
    reset_action,
)
from sagaharness.core.errors import AwaitedActionNeverCalled, CallerError, ConfigurationError, HarnessError
from sagaharness.core.reducers import combine_reducers
from sagaharness.core.registry import Deferred
from sagaharness.core.tester import SagaTester
from sagaharness.runtime.effects import EffectRuntime, Effects
from sagaharness.runtime.supervisor import SupervisorState
from sagaharness.runtime.task import RootTask

__all__ = [
    "Action",
    "AwaitedActionNeverCalled",
    "CallerError",
    "ConfigurationError",
    "Deferred",
    "EffectRuntime",
    "Effects",
    "HarnessError",
    "INIT_ACTION_TYPE",
    "RESERVED_PREFIX",
    "RESET_ACTION_TYPE",
    "RootTask",
    "SET_STATE_ACTION_TYPE",
    "SagaTester",
    "SupervisorState",
    "UPDATE_STATE_ACTION_TYPE",
    "combine_reducers",
    "reset_action",
]

# sagaharness/core/reducers.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from enum import Enum, auto
from typing import Any, Dict, Optional

from sagaharness.core.actions import (
    INIT_ACTION_TYPE,
    RESET_ACTION_TYPE,
    SET_STATE_ACTION_TYPE,
    UPDATE_STATE_ACTION_TYPE,
    Action,
)
from sagaharness.core.errors import CallerError
from sagaharness.interfaces.types import Reducer, ReducerComposer, ReducerSpec

logger = logging.getLogger(__name__)


def combine_reducers(reducers: Mapping[str, Reducer]) -> Reducer:
    """
    Compose a mapping of slot name -> reducer into one reducer over a dict.

    Each slot reducer receives its own slice of state, or None when the slot
    is missing, and must return a non-None value. Keys of the incoming state
    that have no reducer are dropped.
    """
    if not isinstance(reducers, Mapping):
        raise CallerError("combine_reducers() expects a mapping of slot name to reducer")
    slots = dict(reducers)
    for key, reducer in slots.items():
        if not callable(reducer):
            raise CallerError(f"Reducer for slot '{key}' is not callable")

    def combination(state: Optional[Mapping[str, Any]], action: Action) -> Dict[str, Any]:
        state = state or {}
        next_state: Dict[str, Any] = {}
        for key, reducer in slots.items():
            value = reducer(state.get(key), action)
            if value is None:
                raise CallerError(f"Reducer for slot '{key}' returned None for action {action.type!r}")
            next_state[key] = value
        return next_state

    return combination


def identity_reducer(state: Any, action: Action) -> Any:
    return state


def resolve_reducer(reducers: ReducerSpec, combine: ReducerComposer = combine_reducers) -> Reducer:
    """
    Turn the ``reducers`` configuration into a single reducer.

    :param reducers: None, a reducer function, or a mapping of slot reducers.
    :param combine: Composer applied to the mapping form.
    """
    if reducers is None:
        return identity_reducer
    if isinstance(reducers, Mapping):
        return combine(reducers)
    if callable(reducers):
        return reducers
    raise CallerError(f"reducers must be a function or a mapping, got {type(reducers).__name__}")


def deep_merge(base: Mapping[str, Any], update: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively overlay update onto base. Neither input is modified."""
    merged = dict(base)
    for key, value in update.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def merge_state(state: Optional[Mapping[str, Any]], partial: Any) -> Dict[str, Any]:
    """
    Overlay a partial state onto state. Top-level keys are replaced, except
    slots where both old and new values are mappings, which are deep merged.
    """
    if not isinstance(partial, Mapping):
        raise CallerError(f"State updates must be mappings, got {type(partial).__name__}")
    if state is None:
        state = {}
    if not isinstance(state, Mapping):
        raise CallerError(f"Cannot merge a state update into a {type(state).__name__} state")
    merged = dict(state)
    for key, value in partial.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


class SnapshotResolver:
    """
    Computes the authoritative initial state exactly once by running the
    composed reducer against the store's init action.
    """

    def __init__(self, reducer: Reducer) -> None:
        self._reducer = reducer
        self._snapshot: Any = None
        self._resolved = False

    def resolve(self, initial_state: Any = None) -> Any:
        """
        Run the reducer over initial_state and freeze the result.

        :raises CallerError: If the snapshot was already resolved.
        """
        if self._resolved:
            raise CallerError("The state snapshot has already been resolved")
        state = self._reducer(initial_state, Action(INIT_ACTION_TYPE))
        self._snapshot = copy.deepcopy(state)
        self._resolved = True
        logger.debug("Resolved state snapshot: %r", self._snapshot)
        return state

    @property
    def resolved(self) -> bool:
        return self._resolved

    @property
    def snapshot(self) -> Any:
        """A fresh copy of the snapshot."""
        if not self._resolved:
            raise CallerError("The state snapshot has not been resolved yet")
        return copy.deepcopy(self._snapshot)


class ActionKind(Enum):
    RESET = auto()
    OVERRIDE = auto()
    NORMAL = auto()


def classify(action: Action) -> ActionKind:
    if action.type == RESET_ACTION_TYPE:
        return ActionKind.RESET
    if action.type in (SET_STATE_ACTION_TYPE, UPDATE_STATE_ACTION_TYPE):
        return ActionKind.OVERRIDE
    return ActionKind.NORMAL


class StateOverrideLayer:
    """
    Reducer wrapper owning the harness pseudo-actions. Reset returns the
    snapshot and state injections are merged into a copy of the snapshot;
    neither reaches the wrapped reducer. Everything else is handed to the wrapped reducer.
    """

    def __init__(self, reducer: Reducer, snapshot: SnapshotResolver) -> None:
        self._reducer = reducer
        self._snapshot = snapshot

    @property
    def wrapped(self) -> Reducer:
        return self._reducer

    def __call__(self, state: Any, action: Action) -> Any:
        kind = classify(action)
        if kind is ActionKind.RESET:
            return self._snapshot.snapshot
        if kind is ActionKind.OVERRIDE:
            return merge_state(self._snapshot.snapshot, action.get("payload", {}))
        return self._reducer(state, action)

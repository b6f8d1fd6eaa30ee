# sagaharness/core/store.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from typing import Any, Iterable, List

from sagaharness.core.actions import INIT_ACTION_TYPE, Action, to_action
from sagaharness.core.errors import CallerError
from sagaharness.interfaces.protocols import MiddlewareAPI
from sagaharness.interfaces.types import Dispatch, Middleware, Reducer


class _StoreAPI:
    """
    Internal view of the store given to middlewares. Its dispatch always goes
    through the complete chain, so a middleware dispatching a new action sees
    it pass through every link again.
    """

    def __init__(self, store: "Store") -> None:
        self._store = store

    def get_state(self) -> Any:
        return self._store.get_state()

    def dispatch(self, action: Any) -> Any:
        return self._store.dispatch(action)


class Store:
    """
    A minimal state container: one reducer, the current state, and a
    middleware chain wrapped around the reducer call.
    """

    def __init__(self, reducer: Reducer, preloaded_state: Any = None, middlewares: Iterable[Middleware] = ()) -> None:
        """
        :param reducer: Reducer applied to every action that reaches the end of the chain.
        :param preloaded_state: State handed to the reducer with the init action.
        :param middlewares: Middlewares in call order, outermost first.
        """
        self._reducer = reducer
        self._reducing = False
        self._state = reducer(preloaded_state, Action(INIT_ACTION_TYPE))

        api: MiddlewareAPI = _StoreAPI(self)
        chain: List[Dispatch] = [middleware(api) for middleware in middlewares]
        dispatch: Dispatch = self._reduce
        for link in reversed(chain):
            dispatch = link(dispatch)
        self._dispatch = dispatch

    def get_state(self) -> Any:
        """Return the current state."""
        return self._state

    def dispatch(self, action: Any) -> Any:
        """
        Send an action through the middleware chain and the reducer.

        :param action: An Action or a mapping with a 'type' key.
        :return: Whatever the outermost middleware returns.
        """
        return self._dispatch(to_action(action))

    def _reduce(self, action: Any) -> Any:
        action = to_action(action)
        if self._reducing:
            raise CallerError("Reducers may not dispatch actions.")
        self._reducing = True
        try:
            self._state = self._reducer(self._state, action)
        finally:
            self._reducing = False
        return action

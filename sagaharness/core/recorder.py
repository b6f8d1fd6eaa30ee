# sagaharness/core/recorder.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import logging
from typing import Any, List

from sagaharness.core.actions import RESERVED_PREFIX, UPDATE_STATE_ACTION_TYPE, Action, is_reserved, to_action
from sagaharness.core.registry import WaitRegistry
from sagaharness.interfaces.protocols import MiddlewareAPI
from sagaharness.interfaces.types import Dispatch

logger = logging.getLogger(__name__)


class ActionRecorder:
    """
    Middleware that appends every recorded action to the log and counts it in
    the wait registry before handing it down the chain.

    Silent state updates are never recorded. Actions in the reserved
    namespace are skipped unless ignore_reserved_actions is False.
    """

    def __init__(
        self,
        log: List[Action],
        registry: WaitRegistry,
        ignore_reserved_actions: bool = True,
        reserved_prefix: str = RESERVED_PREFIX,
    ) -> None:
        self._log = log
        self._registry = registry
        self._ignore_reserved = ignore_reserved_actions
        self._reserved_prefix = reserved_prefix

    def should_record(self, action: Action) -> bool:
        if action.type == UPDATE_STATE_ACTION_TYPE:
            return False
        if self._ignore_reserved and is_reserved(action.type, self._reserved_prefix):
            return False
        return True

    def __call__(self, store_api: MiddlewareAPI):
        def wrap(next_dispatch: Dispatch) -> Dispatch:
            def dispatch(action: Any) -> Any:
                action = to_action(action)
                if self.should_record(action):
                    self._log.append(action)
                    self._registry.record(action.type)
                    logger.debug("Recorded %s (#%d)", action.type, len(self._log))
                return next_dispatch(action)

            return dispatch

        return wrap

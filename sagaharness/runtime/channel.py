# sagaharness/runtime/channel.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import asyncio
from typing import Any, Callable, List, Sequence, Union

from sagaharness.core.actions import Action
from sagaharness.core.errors import CallerError

WILDCARD = "*"

Pattern = Union[str, Callable[[Action], bool], Sequence[Any]]


def compile_pattern(pattern: Pattern) -> Callable[[Action], bool]:
    """
    Build a matcher for a take pattern: "*" matches everything, a string
    matches one action type, a predicate is called with the action, and a
    list or tuple matches if any of its patterns does.
    """
    if pattern == WILDCARD:
        return lambda action: True
    if isinstance(pattern, str):
        return lambda action: action.type == pattern
    if isinstance(pattern, (list, tuple)):
        matchers = [compile_pattern(p) for p in pattern]
        return lambda action: any(m(action) for m in matchers)
    if callable(pattern):
        return lambda action: bool(pattern(action))
    raise CallerError(f"Unsupported take pattern: {pattern!r}")


class Subscription:
    """
    A buffered stream of actions matching one pattern. One-shot subscriptions
    detach themselves after the first match.
    """

    def __init__(self, pattern: Pattern, once: bool = False) -> None:
        self.pattern = pattern
        self.once = once
        self._matches = compile_pattern(pattern)
        self._queue: asyncio.Queue = asyncio.Queue()

    def matches(self, action: Action) -> bool:
        return self._matches(action)

    def put(self, action: Action) -> None:
        self._queue.put_nowait(action)

    async def get(self) -> Action:
        return await self._queue.get()


class ActionChannel:
    """
    Fans dispatched actions out to the subscriptions that match them, in
    subscription order.
    """

    def __init__(self) -> None:
        self._subscriptions: List[Subscription] = []

    def subscribe(self, pattern: Pattern, once: bool = False) -> Subscription:
        subscription = Subscription(pattern, once=once)
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def emit(self, action: Action) -> None:
        for subscription in list(self._subscriptions):
            if not subscription.matches(action):
                continue
            subscription.put(action)
            if subscription.once:
                self.unsubscribe(subscription)

    def __len__(self) -> int:
        return len(self._subscriptions)

# sagaharness/interfaces/types.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

from sagaharness.interfaces.protocols import MiddlewareAPI

ActionType = str
State = Any

# Callback Types
Reducer = Callable[[Optional[State], Any], State]
ReducerSpec = Union[Reducer, Mapping[str, Reducer], None]
Dispatch = Callable[[Any], Any]
Middleware = Callable[[MiddlewareAPI], Callable[[Dispatch], Dispatch]]
ReducerComposer = Callable[[Mapping[str, Reducer]], Reducer]
Process = Callable[..., Awaitable[Any]]
ErrorFactory = Callable[[ActionType], BaseException]

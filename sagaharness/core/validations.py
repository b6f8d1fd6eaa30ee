# sagaharness/core/validations.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, List, Optional

from sagaharness.core.errors import CallerError
from sagaharness.core.reducers import combine_reducers
from sagaharness.interfaces.types import Middleware, ReducerComposer, ReducerSpec


@dataclass
class TesterConfig:
    """
    Construction settings of a SagaTester. ``options`` is passed through to
    the effect runtime untouched, which validates it on its own.
    """

    initial_state: Any = None
    reducers: ReducerSpec = None
    middlewares: List[Middleware] = field(default_factory=list)
    combine_reducers: ReducerComposer = combine_reducers
    ignore_reserved_actions: bool = True
    options: Optional[Mapping[str, Any]] = None

    def __post_init__(self) -> None:
        if self.initial_state is None:
            self.initial_state = {}
        if self.middlewares is None:
            self.middlewares = []

    def validate(self) -> "TesterConfig":
        """
        Check the configuration shape.

        :raises CallerError: If a setting has the wrong type.
        """
        _DefaultConfigRules.validate_reducers(self.reducers)
        self.middlewares = _DefaultConfigRules.validate_middlewares(self.middlewares)
        if not callable(self.combine_reducers):
            raise CallerError("combine_reducers must be callable")
        if not isinstance(self.ignore_reserved_actions, bool):
            raise CallerError("ignore_reserved_actions must be a bool")
        return self


class _DefaultConfigRules:
    """
    Built-in checks for the reducers and middlewares settings.
    """

    @staticmethod
    def validate_reducers(reducers: ReducerSpec) -> None:
        if reducers is None or callable(reducers):
            return
        if not isinstance(reducers, Mapping):
            raise CallerError(f"reducers must be a function or a mapping, got {type(reducers).__name__}")
        for key, reducer in reducers.items():
            if not isinstance(key, str):
                raise CallerError(f"Reducer slot names must be strings, got {key!r}")
            if not callable(reducer):
                raise CallerError(f"Reducer for slot '{key}' is not callable")

    @staticmethod
    def validate_middlewares(middlewares: Any) -> List[Middleware]:
        if isinstance(middlewares, (str, bytes, Mapping)) or not hasattr(middlewares, "__iter__"):
            raise CallerError("middlewares must be a list of middleware functions")
        middlewares = list(middlewares)
        for index, middleware in enumerate(middlewares):
            if not callable(middleware):
                raise CallerError(f"Middleware at position {index} is not callable")
        return middlewares

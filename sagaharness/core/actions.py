# sagaharness/core/actions.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Dict, Iterator

from sagaharness.core.errors import CallerError

# Housekeeping actions owned by the store. Ignored by the recorder by default.
RESERVED_PREFIX = "@@store/"
INIT_ACTION_TYPE = RESERVED_PREFIX + "INIT"

RESET_ACTION_TYPE = "@@harness/RESET"
SET_STATE_ACTION_TYPE = "@@harness/SET_STATE"
UPDATE_STATE_ACTION_TYPE = "@@harness/UPDATE_STATE"


class Action(Mapping):
    """
    An immutable record describing an event applied to state. Every action has
    a string ``type``; any other fields are free-form.

    Fields can be read as items or attributes. Equality is structural, so an
    action compares equal to any mapping holding the same items.
    """

    __slots__ = ("_fields",)

    def __init__(self, type: str, **fields: Any) -> None:
        if not isinstance(type, str) or not type:
            raise CallerError(f"Action type must be a non-empty string, got {type!r}")
        data: Dict[str, Any] = {"type": type}
        data.update(fields)
        object.__setattr__(self, "_fields", data)

    @property
    def type(self) -> str:
        """The action type."""
        return self._fields["type"]

    def __getitem__(self, key: str) -> Any:
        return self._fields[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __getattr__(self, name: str) -> Any:
        if name == "_fields":
            raise AttributeError(name)
        try:
            return self._fields[name]
        except KeyError:
            raise AttributeError(name) from None

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Action is immutable")

    def __delattr__(self, name: str) -> None:
        raise AttributeError("Action is immutable")

    def __reduce__(self):
        fields = {k: v for k, v in self._fields.items() if k != "type"}
        return (_rebuild, (self.type, fields))

    def with_fields(self, **fields: Any) -> "Action":
        """
        Return a copy of this action with extra or replaced fields. The type
        cannot be changed this way.

        :param fields: Fields to add or overwrite.
        """
        if "type" in fields:
            raise CallerError("with_fields() cannot change the action type")
        data = {k: v for k, v in self._fields.items() if k != "type"}
        data.update(fields)
        return Action(self.type, **data)

    def to_dict(self) -> Dict[str, Any]:
        """Plain dict copy of the action."""
        return dict(self._fields)

    def __repr__(self) -> str:
        extra = ", ".join(f"{k}={v!r}" for k, v in self._fields.items() if k != "type")
        return f"Action({self.type!r}{', ' + extra if extra else ''})"


def _rebuild(action_type: str, fields: Dict[str, Any]) -> Action:
    return Action(action_type, **fields)


def to_action(obj: Any) -> Action:
    """
    Coerce an Action or a mapping with a ``type`` key into an Action.

    :raises CallerError: If obj is not a mapping or has no valid type.
    """
    if isinstance(obj, Action):
        return obj
    if not isinstance(obj, Mapping):
        raise CallerError(f"Actions must be mappings with a 'type' key, got {type(obj).__name__}")
    if "type" not in obj:
        raise CallerError(f"Action {dict(obj)!r} has no 'type'")
    fields = {str(k): v for k, v in obj.items() if k != "type"}
    return Action(obj["type"], **fields)


def is_reserved(action_type: str, prefix: str = RESERVED_PREFIX) -> bool:
    """True if the type belongs to the store's housekeeping namespace."""
    return action_type.startswith(prefix)


reset_action = Action(RESET_ACTION_TYPE)

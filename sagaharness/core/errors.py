# sagaharness/core/errors.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details


class HarnessError(Exception):
    """
    Base exception class for errors raised by the saga test harness.
    """


class ConfigurationError(HarnessError):
    """
    Raised at construction time when the effect runtime rejects its options.
    """


class CallerError(HarnessError):
    """
    Raised when a harness operation receives invalid arguments, such as a
    malformed configuration or an action without a type.
    """


class AwaitedActionNeverCalled(HarnessError):
    """
    Raised against a pending wait when the root process completes without
    ever dispatching the awaited action type.
    """

    def __init__(self, action_type: str) -> None:
        super().__init__(f"{action_type} was waited for but never called")
        self.action_type = action_type

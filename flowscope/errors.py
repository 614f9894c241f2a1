"""Error types raised by flowscope."""

from __future__ import annotations


class FlowscopeError(Exception):
    """Base class for flowscope errors."""


class FetchFailure(FlowscopeError):
    """The record store could not serve a fetch.

    The message is shown to the user verbatim.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvariantViolation(FlowscopeError):
    """A record does not have the shape the aggregation layer relies on."""

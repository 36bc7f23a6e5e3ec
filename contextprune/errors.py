"""Shared error types for contextprune.

Scoring and selection never raise for well-formed input: degraded inputs get
neutral scores and an unknown undo id is a boolean failure. These errors are
reserved for caller mistakes at the edges (names, raw records).
"""


class ContextPruneError(Exception):
    """Base error for contextprune."""


class UnknownStrategyError(ContextPruneError):
    """Requested pruning strategy name isn't registered."""


class UnknownProfileError(ContextPruneError):
    """Requested scoring profile name isn't registered."""


class InvalidSummaryLevelError(ContextPruneError):
    """Summary level is not one of immediate/session/project."""


class NormalizationError(ContextPruneError):
    """A raw conversation record could not be turned into a message."""

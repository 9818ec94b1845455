from __future__ import annotations


class ReconcileError(RuntimeError):
    """Failure that aborts the current cycle before any intent is submitted."""


class FeedUnavailable(ReconcileError):
    pass


class LevelsUnavailable(ReconcileError):
    pass


class PriceRepresentationError(ReconcileError):
    pass


class ExecutionError(RuntimeError):
    pass

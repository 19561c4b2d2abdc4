"""Cooperative cancellation token shared by batch tasks."""

from __future__ import annotations


class CancellationToken:
    """Flag checked at every suspension point of a batch's tasks.

    Cancelling never interrupts a platform call in progress; callers check
    the token between calls and before persisting results.
    """

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        """Return whether cancellation was requested."""
        return self._cancelled

    def cancel(self) -> None:
        """Request cancellation; repeated calls are no-ops."""
        self._cancelled = True

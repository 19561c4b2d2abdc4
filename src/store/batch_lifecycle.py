"""Ingestion batch lifecycle state machine."""

from __future__ import annotations

from core.errors import SkorlyBatchError
from core.types import BatchState

ALLOWED_STATE_TRANSITIONS: dict[BatchState, tuple[BatchState, ...]] = {
    "pending": ("processing", "failed", "cancelled"),
    "processing": ("completed", "failed", "cancelled"),
    "completed": (),
    "failed": (),
    "cancelled": (),
}


def validate_transition(current: BatchState, next_state: BatchState) -> None:
    """Validate one lifecycle transition against allowed state machine edges."""
    allowed_states = ALLOWED_STATE_TRANSITIONS[current]
    if next_state not in allowed_states:
        raise SkorlyBatchError(
            f"Invalid batch state transition {current!r} -> {next_state!r}. "
            f"Allowed: {', '.join(allowed_states) or 'none'}."
        )

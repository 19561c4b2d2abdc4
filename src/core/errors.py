"""Skorly exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each subsystem raises a specific error type for debuggability.
"""

from __future__ import annotations


class SkorlyError(Exception):
    """Base exception for all Skorly failures."""


class SkorlyConfigError(SkorlyError):
    """Raised for invalid runtime configuration or settings files."""


class SkorlyValidationError(SkorlyError):
    """Raised when a submitted batch is malformed before any external call."""


class SkorlyFetchError(SkorlyError):
    """Raised when a platform fetch cannot produce statistics.

    Attributes:
        platform: Platform name the fetch targeted.
        kind: Error taxonomy label recorded on the batch error log.
    """

    kind = "transient-api"

    def __init__(self, platform: str, message: str) -> None:
        super().__init__(message)
        self.platform = platform


class TransientFetchError(SkorlyFetchError):
    """Raised for timeouts, network errors, 5xx and throttling signals."""

    kind = "transient-api"


class PermanentFetchError(SkorlyFetchError):
    """Raised for unknown users, malformed responses and unsupported platforms."""

    kind = "permanent-api"


class SkorlyStoreError(SkorlyError):
    """Raised for persistence failures; escalates to batch failure."""


class SkorlyBatchError(SkorlyError):
    """Raised for unknown batches and invalid batch lifecycle transitions."""


class SkorlyTriggerError(SkorlyError):
    """Raised when a roster run is requested while another one is running."""


class SkorlyDependencyError(SkorlyError):
    """Raised when an optional runtime dependency is missing."""

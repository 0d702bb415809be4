"""Exception types raised by the scan/clean pipeline."""

from __future__ import annotations


class SweepError(Exception):
    """Base class for all safesweep errors."""


class InvalidStateError(SweepError):
    """Raised when an operation is requested in a state that forbids it."""


class ProviderScanError(SweepError):
    """Raised by a scan provider that could not finish its scan."""

    def __init__(self, provider_id: str, message: str, partial_items: list | None = None) -> None:
        super().__init__(f"{provider_id}: {message}")
        self.provider_id = provider_id
        self.partial_items = partial_items or []


class ItemHashError(SweepError):
    """Raised when a candidate could not be hashed."""

    def __init__(self, locator: str, cause: str) -> None:
        super().__init__(f"{locator}: {cause}")
        self.locator = locator


class BackupError(SweepError):
    """Base class for backup and restore failures."""


class BackupIOError(BackupError):
    """Raised when the backup copy could not be written."""


class BackupVerificationFailed(BackupError):
    """Raised when a backup copy does not hash to the same value as its source."""

    reason = "BackupVerificationFailed"


class RestoreError(BackupError):
    """Raised when a backup could not be restored or verified after restore."""


class EraseError(SweepError):
    """Raised when an item could not be fully destroyed."""


class CatastrophicIOError(EraseError):
    """Raised when an overwrite pass fails mid-write (e.g. the volume went away)."""

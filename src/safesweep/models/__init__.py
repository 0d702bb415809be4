"""safesweep data models."""

from safesweep.models.item import Category, CleanableItem, ItemDomain, RiskTier
from safesweep.models.scan_result import DuplicateGroup, ScanOptions, ScanResult
from safesweep.models.clean_result import BackupRecord, CleaningResult, FailedItem
from safesweep.models.progress import CleanProgress, ScanProgress
from safesweep.models.provider import CacheDirProvider, ScanProvider

__all__ = [
    "BackupRecord",
    "CacheDirProvider",
    "Category",
    "CleanProgress",
    "CleanableItem",
    "CleaningResult",
    "DuplicateGroup",
    "FailedItem",
    "ItemDomain",
    "RiskTier",
    "ScanOptions",
    "ScanProgress",
    "ScanProvider",
    "ScanResult",
]

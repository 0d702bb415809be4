"""Risk classification and the default-selection policy.

Everything here is pure: no I/O, no clock reads. The only time input is
the explicit ``reference_time`` the caller passes in.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from safesweep.models.item import Category, CleanableItem, ItemDomain, RiskTier

RECENT_WINDOW = timedelta(days=1)


def base_tier(category: Category) -> RiskTier:
    """Risk tier implied by the category alone."""
    match category:
        case Category.TEMP_FILES | Category.THUMBNAILS:
            return RiskTier.SAFE
        case Category.CACHE | Category.LOG_FILES | Category.BROWSER_CACHE:
            return RiskTier.LOW
        case Category.TRASH | Category.BROWSER_HISTORY | Category.BROWSER_COOKIES:
            return RiskTier.MEDIUM
        case Category.USER_FILES | Category.STARTUP_ENTRY | Category.REGISTRY_ENTRY:
            return RiskTier.MEDIUM
        case Category.BROWSER_CREDENTIALS | Category.SYSTEM_FILES:
            return RiskTier.HIGH


def classify(item: CleanableItem, *, reference_time: datetime | None = None) -> RiskTier:
    """Return the risk tier for *item*.

    Rules, applied in order:

    1. category base tier;
    2. items flagged ``protected`` in their metadata are CRITICAL;
    3. file items modified within a day of ``reference_time`` move up one
       tier, since something may still be using them;
    4. the provider's ``risk_hint`` acts as a floor.
    """
    tier = base_tier(item.category)

    if item.metadata.get("protected"):
        tier = RiskTier.CRITICAL

    if reference_time is not None and reference_time.tzinfo is None:
        reference_time = reference_time.astimezone(timezone.utc)

    if (
        reference_time is not None
        and item.last_modified is not None
        and item.domain is ItemDomain.FILE
        and reference_time - item.last_modified < RECENT_WINDOW
    ):
        tier = RiskTier(min(tier + 1, RiskTier.CRITICAL))

    if item.risk_hint is not None:
        tier = max(tier, item.risk_hint)

    return RiskTier(tier)


def annotate(items: list[CleanableItem], reference_time: datetime | None = None) -> list[CleanableItem]:
    """Return copies of *items* carrying their classified risk tier."""
    return [item.with_risk(classify(item, reference_time=reference_time)) for item in items]


def raise_to_floor(item: CleanableItem) -> CleanableItem:
    """Return *item* with its tier no lower than its category, protection flag and hint allow.

    Items that never went through :func:`annotate` carry the SAFE default.
    """
    floor = classify(item)
    if item.risk >= floor:
        return item
    return item.with_risk(floor)


def default_selected(tier: RiskTier) -> bool:
    """Items at LOW or below are pre-selected; everything else is opt-in."""
    return tier <= RiskTier.LOW


def requires_backup(tier: RiskTier) -> bool:
    return tier >= RiskTier.MEDIUM


def requires_secure_erase(tier: RiskTier) -> bool:
    return tier >= RiskTier.HIGH

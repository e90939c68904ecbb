"""Scope resolver: which asset tags an activity expects to see."""
from typing import AsyncIterator, Set

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.asset import AssetStatus
from app.models.counting import CountingActivity
from app.services.asset_registry import AssetRegistry


class ScopeResolver:
    """
    Computes the expected set of an activity: every asset that is not
    DISPOSED and matches the activity's location and category filters
    (each optional, combined with AND). Read-only.
    """

    def __init__(self, db: AsyncSession):
        self.registry = AssetRegistry(db)

    async def iter_expected_tags(self, activity: CountingActivity) -> AsyncIterator[str]:
        """Stream expected tags in ascending order."""
        async for batch in self.registry.find_by_scope(
            location_id=activity.location_id,
            category_id=activity.category_id,
            exclude_status=AssetStatus.DISPOSED,
        ):
            for tag in batch:
                yield tag

    async def resolve_expected_set(self, activity: CountingActivity) -> Set[str]:
        return {tag async for tag in self.iter_expected_tags(activity)}

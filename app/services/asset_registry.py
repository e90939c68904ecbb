"""
Asset Registry Adapter.

The only way the counting engine touches the asset register:
- find_by_tag: registry-wide lookup used by the scan classifier
- find_by_scope: keyset-paginated stream of tags matching an activity scope
- bulk_set_status: single-statement status change used by settlement
- create: new asset for a promoted unrecorded tag
"""
import logging
from typing import AsyncIterator, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.core.enum_utils import get_enum_value, normalize_tag
from app.core.exceptions import AssetTagConflictError, CountingValidationError
from app.models.asset import Asset, AssetCategory, AssetLocation, AssetStatus
from app.models.user import User
from app.schemas.counting import AssetBrief, MissingAsset, UnrecordedAssetCreate


logger = logging.getLogger(__name__)


def scope_conditions(
    location_id: Optional[UUID],
    category_id: Optional[UUID],
    exclude_status: AssetStatus = AssetStatus.DISPOSED,
) -> list:
    """
    WHERE clauses for an activity scope. Filters combine with AND;
    an unset filter does not restrict.
    """
    conditions = [Asset.status != exclude_status.value]
    if location_id is not None:
        conditions.append(Asset.location_id == location_id)
    if category_id is not None:
        conditions.append(Asset.category_id == category_id)
    return conditions


def to_brief(asset: Asset) -> AssetBrief:
    """Build the display projection of an asset with its relations loaded."""
    return AssetBrief(
        id=asset.id,
        asset_tag=asset.asset_tag,
        name=asset.name,
        status=asset.status,
        category_id=asset.category_id,
        category_name=asset.category.name if asset.category else None,
        location_id=asset.location_id,
        location_name=asset.location.name if asset.location else None,
        assigned_to_user_id=asset.assigned_to_user_id,
        assigned_user_name=asset.assigned_to.display_name if asset.assigned_to else None,
        image_url=asset.image_url,
    )


class AssetRegistry:
    """Read/write access to the asset register for the counting engine."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ========================================================================
    # LOOKUPS
    # ========================================================================

    async def find_by_tag(self, tag: str) -> Optional[Asset]:
        """Get an asset by tag with category, location and assignee loaded."""
        result = await self.db.execute(
            select(Asset)
            .options(
                selectinload(Asset.category),
                selectinload(Asset.location),
                selectinload(Asset.assigned_to),
            )
            .where(Asset.asset_tag == normalize_tag(tag))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_by_scope(
        self,
        location_id: Optional[UUID] = None,
        category_id: Optional[UUID] = None,
        exclude_status: AssetStatus = AssetStatus.DISPOSED,
        batch_size: Optional[int] = None,
    ) -> AsyncIterator[List[str]]:
        """
        Yield tags of assets in scope, in batches ordered by tag.

        Uses keyset pagination (tag > last seen tag) so large registers are
        never read in one query.
        """
        batch_size = batch_size or settings.COUNTING_SCOPE_BATCH_SIZE
        conditions = scope_conditions(location_id, category_id, exclude_status)
        last_tag: Optional[str] = None

        while True:
            query = select(Asset.asset_tag).where(*conditions)
            if last_tag is not None:
                query = query.where(Asset.asset_tag > last_tag)
            query = query.order_by(Asset.asset_tag).limit(batch_size)

            result = await self.db.execute(query)
            tags = list(result.scalars().all())
            if not tags:
                break

            yield tags

            if len(tags) < batch_size:
                break
            last_tag = tags[-1]

    async def describe_tags(self, tags: Sequence[str]) -> List[MissingAsset]:
        """
        Display rows for the given tags, ordered by tag ascending.

        Tags are looked up in sorted chunks so the IN list stays bounded.
        """
        if not tags:
            return []

        ordered = sorted(tags)
        batch_size = settings.COUNTING_SCOPE_BATCH_SIZE
        rows: List[MissingAsset] = []

        for start in range(0, len(ordered), batch_size):
            chunk = ordered[start:start + batch_size]
            result = await self.db.execute(
                select(
                    Asset.asset_tag,
                    Asset.name,
                    AssetCategory.name.label("category_name"),
                    AssetLocation.name.label("location_name"),
                    User.full_name.label("assigned_user_name"),
                )
                .outerjoin(AssetCategory, Asset.category_id == AssetCategory.id)
                .outerjoin(AssetLocation, Asset.location_id == AssetLocation.id)
                .outerjoin(User, Asset.assigned_to_user_id == User.id)
                .where(Asset.asset_tag.in_(chunk))
                .order_by(Asset.asset_tag)
            )
            rows.extend(MissingAsset.model_validate(dict(row)) for row in result.mappings().all())

        return rows

    async def get_location(self, location_id: UUID) -> Optional[AssetLocation]:
        return await self.db.get(AssetLocation, location_id)

    async def get_category(self, category_id: UUID) -> Optional[AssetCategory]:
        return await self.db.get(AssetCategory, category_id)

    async def list_locations(self) -> List[AssetLocation]:
        result = await self.db.execute(select(AssetLocation).order_by(AssetLocation.name))
        return list(result.scalars().all())

    async def list_categories(self) -> List[AssetCategory]:
        result = await self.db.execute(select(AssetCategory).order_by(AssetCategory.name))
        return list(result.scalars().all())

    # ========================================================================
    # WRITES
    # ========================================================================

    async def bulk_set_status(self, tags: Sequence[str], status: AssetStatus) -> int:
        """
        Set ``status`` on every asset whose tag is in ``tags`` with one UPDATE.

        Only the status column is written. Assets already in ``status`` are
        left alone and not counted. Returns the number of rows changed.
        """
        if not tags:
            return 0

        result = await self.db.execute(
            update(Asset)
            .where(
                Asset.asset_tag.in_(list(tags)),
                Asset.status != status.value,
            )
            .values(status=get_enum_value(status))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def create(
        self,
        data: UnrecordedAssetCreate,
        status: AssetStatus = AssetStatus.IN_STORAGE,
    ) -> Asset:
        """
        Create a new asset. Raises AssetTagConflictError if the tag is taken.

        Runs inside the caller's transaction; nothing is committed here.
        """
        tag = normalize_tag(data.asset_tag)
        if not tag:
            raise CountingValidationError("Asset tag is required")

        if await self.get_category(data.category_id) is None:
            raise CountingValidationError(f"Unknown asset category {data.category_id}")
        if data.location_id is not None and await self.get_location(data.location_id) is None:
            raise CountingValidationError(f"Unknown asset location {data.location_id}")

        if await self.find_by_tag(tag) is not None:
            raise AssetTagConflictError(tag)

        asset = Asset(
            asset_tag=tag,
            name=data.name,
            category_id=data.category_id,
            location_id=data.location_id,
            assigned_to_user_id=data.assigned_to_user_id,
            status=get_enum_value(status),
            purchase_date=data.purchase_date,
            purchase_cost=data.purchase_cost,
            notes=data.notes,
            image_url=data.image_url,
        )
        self.db.add(asset)

        try:
            await self.db.flush()
        except IntegrityError as e:
            # Another request registered the same tag between the check and the insert
            logger.warning(f"Asset tag {tag} taken concurrently: {e.orig}")
            raise AssetTagConflictError(tag) from e

        return asset

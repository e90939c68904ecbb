"""
Scan Ledger Service.

Append-only log of accepted scans per counting activity. Rows are written once
by the scan classifier; the only later change is re-pointing an UNRECORDED row
to the asset created for it by promotion.
"""
import logging
from typing import List, Optional, Set
from uuid import UUID

from sqlalchemy import select, func, distinct
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.core.enum_utils import get_enum_value
from app.core.exceptions import DuplicateScanError
from app.models.asset import Asset, AssetLocation
from app.models.counting import CountingScan, DuplicateScanAttempt, ScanClassification
from app.models.user import User
from app.schemas.counting import ScanLine


logger = logging.getLogger(__name__)

UNIQUE_TAG_CONSTRAINT = "uq_acs_activity_tag"


def _is_duplicate_tag_violation(error: IntegrityError) -> bool:
    """True if the IntegrityError comes from the (activity_id, asset_tag) constraint."""
    message = str(error.orig)
    # PostgreSQL names the constraint, SQLite names the columns
    return UNIQUE_TAG_CONSTRAINT in message or "asset_counting_scans.asset_tag" in message


class ScanLedger:
    """Reads and appends scan events for counting activities."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find(self, activity_id: UUID, tag: str) -> Optional[CountingScan]:
        """Get the scan of ``tag`` in an activity, if any."""
        result = await self.db.execute(
            select(CountingScan).where(
                CountingScan.activity_id == activity_id,
                CountingScan.asset_tag == tag,
            )
        )
        return result.scalar_one_or_none()

    async def append(
        self,
        activity_id: UUID,
        tag: str,
        scanned_by_user_id: UUID,
        asset_id: Optional[UUID],
        classification: ScanClassification,
    ) -> CountingScan:
        """
        Append a scan event.

        The unique constraint on (activity_id, asset_tag) is the final guard
        against two concurrent submissions of the same tag; losing that race
        raises DuplicateScanError like the ordinary duplicate check.
        """
        if classification == ScanClassification.DUPLICATE:
            raise ValueError("Duplicate scans are never written to the ledger")

        scan = CountingScan(
            activity_id=activity_id,
            asset_tag=tag,
            scanned_by_user_id=scanned_by_user_id,
            asset_id=asset_id,
            found_status=get_enum_value(classification),
        )
        self.db.add(scan)

        try:
            await self.db.flush()
        except IntegrityError as e:
            if _is_duplicate_tag_violation(e):
                logger.warning(f"Concurrent scan of {tag} in activity {activity_id} lost the insert race")
                raise DuplicateScanError(tag, activity_id) from e
            raise

        return scan

    async def reclassify(
        self,
        scan: CountingScan,
        asset_id: UUID,
        classification: ScanClassification = ScanClassification.FOUND,
    ) -> CountingScan:
        """Link a scan to an asset and change its classification."""
        scan.asset_id = asset_id
        scan.found_status = get_enum_value(classification)
        await self.db.flush()
        return scan

    async def scanned_tags(self, activity_id: UUID) -> Set[str]:
        """Distinct tags scanned in an activity."""
        result = await self.db.execute(
            select(distinct(CountingScan.asset_tag)).where(
                CountingScan.activity_id == activity_id
            )
        )
        return set(result.scalars().all())

    async def list_lines(self, activity_id: UUID) -> List[ScanLine]:
        """
        Scan events of an activity, most recent first (ties by tag).

        Asset metadata is joined by tag so a tag registered after it was
        scanned shows its current name and location.
        """
        scanner = aliased(User)
        owner = aliased(User)

        query = (
            select(
                CountingScan.asset_tag,
                CountingScan.scanned_at,
                CountingScan.found_status,
                scanner.full_name.label("scanned_by_name"),
                Asset.name.label("asset_name"),
                AssetLocation.name.label("location_name"),
                owner.full_name.label("assigned_user_name"),
            )
            .outerjoin(scanner, CountingScan.scanned_by_user_id == scanner.id)
            .outerjoin(Asset, CountingScan.asset_tag == Asset.asset_tag)
            .outerjoin(AssetLocation, Asset.location_id == AssetLocation.id)
            .outerjoin(owner, Asset.assigned_to_user_id == owner.id)
            .where(CountingScan.activity_id == activity_id)
            .order_by(CountingScan.scanned_at.desc(), CountingScan.asset_tag)
        )

        result = await self.db.execute(query)
        return [ScanLine.model_validate(dict(row)) for row in result.mappings().all()]

    # ========================================================================
    # DUPLICATE ATTEMPT AUDIT
    # ========================================================================

    async def record_duplicate_attempt(
        self,
        activity_id: UUID,
        tag: str,
        attempted_by_user_id: UUID,
    ) -> DuplicateScanAttempt:
        """Record a rejected re-scan. Not part of the ledger proper."""
        attempt = DuplicateScanAttempt(
            activity_id=activity_id,
            asset_tag=tag,
            attempted_by_user_id=attempted_by_user_id,
        )
        self.db.add(attempt)
        await self.db.flush()
        return attempt

    async def count_duplicate_attempts(self, activity_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(DuplicateScanAttempt.id)).where(
                DuplicateScanAttempt.activity_id == activity_id
            )
        )
        return result.scalar() or 0

"""
Scan Classifier Service.

Handles a scanned tag submitted during a counting activity:
1. Normalise the tag (trim, upper-case)
2. Reject tags already counted in the activity (DUPLICATE)
3. Look the tag up in the whole asset register (not scope-restricted)
4. Record FOUND or UNRECORDED in the scan ledger

Also promotes an UNRECORDED scan to a newly registered asset.
"""
import logging
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.enum_utils import is_status, normalize_tag
from app.core.exceptions import (
    CountingError,
    CountingNotFoundError,
    CountingValidationError,
    DuplicateScanError,
    ScanAlreadyPromotedError,
)
from app.database import run_in_transaction
from app.models.asset import Asset, AssetStatus
from app.models.counting import ScanClassification
from app.schemas.counting import ScanResult, UnrecordedAssetCreate
from app.services.activity_service import ActivityService
from app.services.asset_registry import AssetRegistry, to_brief
from app.services.counting_state_machine import ensure_open
from app.services.scan_ledger import ScanLedger


logger = logging.getLogger(__name__)


def classification_message(classification: ScanClassification, tag: str) -> str:
    """Operator-facing feedback for a scan outcome."""
    if classification == ScanClassification.FOUND:
        return f"Asset {tag} found"
    if classification == ScanClassification.UNRECORDED:
        return f"Tag {tag} is not in the asset register"
    if classification == ScanClassification.DUPLICATE:
        return f"Asset tag {tag} has already been counted in this activity"
    raise ValueError(f"Unknown scan classification: {classification}")


class ScanClassifier:
    """Classifies and records scans for counting activities."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.activities = ActivityService(db)
        self.ledger = ScanLedger(db)
        self.registry = AssetRegistry(db)

    async def submit_scan(self, activity_id: UUID, raw_tag: str, scanned_by_id: UUID) -> ScanResult:
        """
        Classify and record one scan.

        Raises:
            CountingValidationError: tag is blank
            CountingNotFoundError: activity does not exist
            ActivityStateError: activity no longer accepts scans
            DuplicateScanError: tag already counted in this activity
        """
        tag = normalize_tag(raw_tag)
        if not tag:
            raise CountingValidationError("Asset tag is required")

        async def _scan() -> ScanResult:
            # FOR SHARE: scans run side by side, settlement waits for them
            activity = await self.activities.require_activity(activity_id, lock="share")
            ensure_open(activity.status)

            if await self.ledger.find(activity_id, tag) is not None:
                raise DuplicateScanError(tag, activity_id)

            asset = await self.registry.find_by_tag(tag)
            classification = ScanClassification.FOUND if asset else ScanClassification.UNRECORDED

            scan = await self.ledger.append(
                activity_id=activity_id,
                tag=tag,
                scanned_by_user_id=scanned_by_id,
                asset_id=asset.id if asset else None,
                classification=classification,
            )

            return ScanResult(
                classification=classification,
                asset_tag=tag,
                scanned_at=scan.scanned_at,
                message=classification_message(classification, tag),
                asset=to_brief(asset) if asset else None,
            )

        try:
            result = await run_in_transaction(self.db, _scan)
        except DuplicateScanError:
            logger.warning(f"Duplicate scan of {tag} in activity {activity_id} by {scanned_by_id}")
            if settings.COUNTING_AUDIT_DUPLICATE_SCANS:
                await self._audit_duplicate(activity_id, tag, scanned_by_id)
            raise

        logger.info(f"Scan {tag} in activity {activity_id}: {result.classification.value}")
        return result

    async def _audit_duplicate(self, activity_id: UUID, tag: str, attempted_by_id: UUID) -> None:
        """Record a rejected re-scan. A failed audit write never hides the rejection."""
        async def _record():
            await self.ledger.record_duplicate_attempt(activity_id, tag, attempted_by_id)

        try:
            await run_in_transaction(self.db, _record)
        except (CountingError, SQLAlchemyError) as e:
            logger.warning(f"Could not record duplicate scan of {tag} in activity {activity_id}: {e}")

    async def register_unrecorded_asset(
        self,
        activity_id: UUID,
        data: UnrecordedAssetCreate,
        registered_by_id: UUID,
    ) -> Asset:
        """
        Create an asset for an UNRECORDED scan and relink the scan to it.

        Asset creation and scan relinking commit together or not at all.

        Raises:
            CountingValidationError: tag blank or attributes invalid
            CountingNotFoundError: activity or scan does not exist
            ActivityStateError: activity no longer accepts promotions
            ScanAlreadyPromotedError: scan already linked to an asset
            AssetTagConflictError: tag already belongs to an asset
        """
        tag = normalize_tag(data.asset_tag)
        if not tag:
            raise CountingValidationError("Asset tag is required")

        async def _promote() -> Asset:
            activity = await self.activities.require_activity(activity_id, lock="share")
            ensure_open(activity.status)

            scan = await self.ledger.find(activity_id, tag)
            if scan is None:
                raise CountingNotFoundError(f"Tag {tag} has not been scanned in activity {activity_id}")
            if is_status(scan.found_status, ScanClassification.FOUND):
                raise ScanAlreadyPromotedError(tag)

            asset = await self.registry.create(
                data.model_copy(update={"asset_tag": tag}),
                status=AssetStatus.IN_STORAGE,
            )
            await self.ledger.reclassify(scan, asset.id, ScanClassification.FOUND)
            return asset

        asset = await run_in_transaction(self.db, _promote)
        logger.info(
            f"Unrecorded tag {tag} in activity {activity_id} registered as asset {asset.id} "
            f"by {registered_by_id}"
        )
        return asset

"""
Counting Activity Service.

Activity store: creates activities, reads them back with display names, and
closes them on settlement. Activities are never deleted here.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enum_utils import get_enum_value
from app.core.exceptions import CountingNotFoundError, CountingValidationError
from app.database import run_in_transaction
from app.models.asset import AssetCategory, AssetLocation
from app.models.counting import ActivityStatus, CountingActivity, CountingScan
from app.models.user import User
from app.schemas.counting import ActivityCreate, ActivityResponse, ActivitySummary
from app.services.asset_registry import AssetRegistry
from app.services.counting_state_machine import validate_transition


logger = logging.getLogger(__name__)


class ActivityService:
    """Service for counting activity headers."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.registry = AssetRegistry(db)

    # ========================================================================
    # CREATE
    # ========================================================================

    async def create_activity(self, data: ActivityCreate, created_by_id: UUID) -> CountingActivity:
        """Create a counting activity, ready for scanning (IN_PROGRESS)."""
        name = (data.name or "").strip()
        if not name:
            raise CountingValidationError("Activity name is required")

        async def _create() -> CountingActivity:
            if data.location_id is not None and await self.registry.get_location(data.location_id) is None:
                raise CountingValidationError(f"Unknown asset location {data.location_id}")
            if data.category_id is not None and await self.registry.get_category(data.category_id) is None:
                raise CountingValidationError(f"Unknown asset category {data.category_id}")

            activity = CountingActivity(
                name=name,
                location_id=data.location_id,
                category_id=data.category_id,
                status=get_enum_value(ActivityStatus.IN_PROGRESS),
                start_date=datetime.now(timezone.utc),
                user_id=created_by_id,
            )
            self.db.add(activity)
            await self.db.flush()
            return activity

        activity = await run_in_transaction(self.db, _create)
        logger.info(f"Counting activity '{activity.name}' ({activity.id}) created by {created_by_id}")
        return activity

    # ========================================================================
    # READ
    # ========================================================================

    async def get_activity(self, activity_id: UUID, lock: Optional[str] = None) -> Optional[CountingActivity]:
        """
        Get an activity by ID.

        lock="share" takes FOR SHARE (scans), lock="update" takes FOR UPDATE
        (settlement) so the two serialise on the activity row.
        """
        query = (
            select(CountingActivity)
            .where(CountingActivity.id == activity_id)
            .execution_options(populate_existing=True)
        )
        if lock == "update":
            query = query.with_for_update()
        elif lock == "share":
            query = query.with_for_update(read=True)

        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def require_activity(self, activity_id: UUID, lock: Optional[str] = None) -> CountingActivity:
        """Get an activity or raise CountingNotFoundError."""
        activity = await self.get_activity(activity_id, lock=lock)
        if activity is None:
            raise CountingNotFoundError(f"Counting activity {activity_id} not found")
        return activity

    def _summary_query(self):
        scan_counts = (
            select(
                CountingScan.activity_id,
                func.count(CountingScan.id).label("scan_count"),
            )
            .group_by(CountingScan.activity_id)
            .subquery()
        )
        return (
            select(
                CountingActivity,
                User.full_name.label("user_full_name"),
                AssetLocation.name.label("location_name"),
                AssetCategory.name.label("category_name"),
                func.coalesce(scan_counts.c.scan_count, 0).label("scan_count"),
            )
            .outerjoin(User, CountingActivity.user_id == User.id)
            .outerjoin(AssetLocation, CountingActivity.location_id == AssetLocation.id)
            .outerjoin(AssetCategory, CountingActivity.category_id == AssetCategory.id)
            .outerjoin(scan_counts, scan_counts.c.activity_id == CountingActivity.id)
        )

    @staticmethod
    def _to_summary(row) -> ActivitySummary:
        base = ActivityResponse.model_validate(row.CountingActivity)
        return ActivitySummary(
            **base.model_dump(),
            user_full_name=row.user_full_name,
            location_name=row.location_name,
            category_name=row.category_name,
            scan_count=row.scan_count,
        )

    async def list_activities(
        self,
        status: Optional[ActivityStatus] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[ActivitySummary]:
        """List activities newest first."""
        query = self._summary_query()
        if status:
            query = query.where(CountingActivity.status == get_enum_value(status))

        query = query.order_by(CountingActivity.start_date.desc()).offset(skip).limit(limit)

        result = await self.db.execute(query)
        return [self._to_summary(row) for row in result.all()]

    async def get_summary(self, activity_id: UUID) -> ActivitySummary:
        """Get one activity with display names, or raise CountingNotFoundError."""
        result = await self.db.execute(
            self._summary_query().where(CountingActivity.id == activity_id)
        )
        row = result.first()
        if row is None:
            raise CountingNotFoundError(f"Counting activity {activity_id} not found")
        return self._to_summary(row)

    # ========================================================================
    # CLOSE
    # ========================================================================

    async def mark_completed(self, activity: CountingActivity) -> CountingActivity:
        """
        Set status COMPLETED and end_date. Runs inside the settlement
        transaction; nothing is committed here.
        """
        validate_transition(activity.status, ActivityStatus.COMPLETED.value)
        activity.status = get_enum_value(ActivityStatus.COMPLETED)
        activity.end_date = datetime.now(timezone.utc)
        await self.db.flush()
        return activity

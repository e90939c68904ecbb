"""
Settlement Service.

Closes a counting activity in one transaction:
1. Lock the activity row (FOR UPDATE) so no scan commits in between
2. Recompute the missing set
3. Mark every missing asset DISPOSED with a single UPDATE
4. Set the activity COMPLETED with end_date = now

Any failure rolls back all of it: no asset is disposed and the activity
stays IN_PROGRESS.
"""
import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enum_utils import to_enum
from app.database import run_in_transaction
from app.models.asset import AssetStatus
from app.models.counting import ActivityStatus
from app.schemas.counting import SettlementResult
from app.services.activity_service import ActivityService
from app.services.asset_registry import AssetRegistry
from app.services.counting_state_machine import validate_transition
from app.services.reconciliation_service import ReconciliationService


logger = logging.getLogger(__name__)


class SettlementService:
    """Settles counting activities."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.activities = ActivityService(db)
        self.reconciliation = ReconciliationService(db)
        self.registry = AssetRegistry(db)

    async def settle(self, activity_id: UUID) -> SettlementResult:
        """
        Settle an activity.

        Raises:
            CountingNotFoundError: activity does not exist
            ActivityStateError: activity is not IN_PROGRESS
        """

        async def _settle() -> SettlementResult:
            activity = await self.activities.require_activity(activity_id, lock="update")
            validate_transition(activity.status, ActivityStatus.COMPLETED.value)

            sets = await self.reconciliation.compute_sets(activity)
            missing = sorted(sets.missing)

            disposed = await self.registry.bulk_set_status(missing, AssetStatus.DISPOSED)
            await self.activities.mark_completed(activity)

            return SettlementResult(
                activity_id=activity.id,
                status=to_enum(activity.status, ActivityStatus),
                end_date=activity.end_date,
                missing_count=len(missing),
                disposed_count=disposed,
                missing_tags=missing,
            )

        result = await run_in_transaction(self.db, _settle)
        logger.info(
            f"Activity {activity_id} settled: {result.missing_count} missing, "
            f"{result.disposed_count} assets disposed"
        )
        return result

"""
Reconciliation Service.

Live comparison of what an activity expects against what it has scanned:

    missing    = expected - scanned
    found      = expected & scanned
    unrecorded = scanned - expected

Read-only. Two calls with no writes in between return the same report.
"""
from dataclasses import dataclass, field
from typing import Set
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.counting import CountingActivity
from app.schemas.counting import ActivityDetail, ReconciliationReport, ReconciliationSummary
from app.services.activity_service import ActivityService
from app.services.asset_registry import AssetRegistry
from app.services.scan_ledger import ScanLedger
from app.services.scope_resolver import ScopeResolver


@dataclass
class ReconciliationSets:
    """Expected and scanned tags of an activity and the sets derived from them."""
    expected: Set[str] = field(default_factory=set)
    scanned: Set[str] = field(default_factory=set)

    @property
    def missing(self) -> Set[str]:
        return self.expected - self.scanned

    @property
    def found(self) -> Set[str]:
        return self.expected & self.scanned

    @property
    def unrecorded(self) -> Set[str]:
        return self.scanned - self.expected


class ReconciliationService:
    """Builds reconciliation reports for counting activities."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.activities = ActivityService(db)
        self.ledger = ScanLedger(db)
        self.registry = AssetRegistry(db)
        self.scope = ScopeResolver(db)

    async def compute_sets(self, activity: CountingActivity) -> ReconciliationSets:
        """Expected and scanned sets as they are right now."""
        return ReconciliationSets(
            expected=await self.scope.resolve_expected_set(activity),
            scanned=await self.ledger.scanned_tags(activity.id),
        )

    async def reconcile(self, activity_id: UUID) -> ReconciliationReport:
        """
        Full report: counts plus scan, missing, found and unrecorded lists.

        Scan lists are most recent first, the missing list is by tag ascending.
        """
        activity = await self.activities.require_activity(activity_id)
        sets = await self.compute_sets(activity)

        scan_list = await self.ledger.list_lines(activity_id)
        missing_list = await self.registry.describe_tags(sets.missing)

        return ReconciliationReport(
            activity=await self.activities.get_summary(activity_id),
            summary=ReconciliationSummary(
                expected=len(sets.expected),
                scanned=len(sets.scanned),
                missing=len(sets.missing),
                found=len(sets.found),
                unrecorded=len(sets.unrecorded),
            ),
            scan_list=scan_list,
            missing_list=missing_list,
            found_list=[line for line in scan_list if line.asset_tag in sets.expected],
            unrecorded_list=[line for line in scan_list if line.asset_tag not in sets.expected],
        )

    async def activity_detail(self, activity_id: UUID) -> ActivityDetail:
        """Activity header with progress counts, scans and missing assets."""
        activity = await self.activities.require_activity(activity_id)
        sets = await self.compute_sets(activity)

        return ActivityDetail(
            activity=await self.activities.get_summary(activity_id),
            expected=len(sets.expected),
            scanned=len(sets.scanned),
            missing=len(sets.missing),
            duplicate_attempts=await self.ledger.count_duplicate_attempts(activity_id),
            scan_list=await self.ledger.list_lines(activity_id),
            missing_list=await self.registry.describe_tags(sets.missing),
        )

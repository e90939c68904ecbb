"""
Asset Counting API Endpoints.

Physical asset counting:
- Counting activities (create, list, detail)
- Scans and promotion of unrecorded tags
- Reconciliation report
- Settlement

Counting failures are raised as CountingError and rendered by the handler
registered in app.main (400/404/409/503).
"""
from typing import Optional, List
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.api.deps import CurrentUser, DB
from app.models.counting import ActivityStatus
from app.schemas.counting import (
    ActivityCreate, ActivityResponse, ActivitySummary, ActivityDetail,
    ScanCreate, ScanResult, ScanLine,
    UnrecordedAssetCreate, AssetResponse,
    ReconciliationReport, SettlementResult,
    CountingOptions, NamedOption,
)
from app.services.activity_service import ActivityService
from app.services.asset_registry import AssetRegistry
from app.services.reconciliation_service import ReconciliationService
from app.services.scan_classifier import ScanClassifier
from app.services.scan_ledger import ScanLedger
from app.services.settlement_service import SettlementService

router = APIRouter()


# ============================================================================
# ACTIVITIES
# ============================================================================

@router.post(
    "/activities",
    response_model=ActivityResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Counting Activity"
)
async def create_activity(
    data: ActivityCreate,
    db: DB,
    current_user: CurrentUser,
):
    """Create a counting activity. It starts IN_PROGRESS."""
    service = ActivityService(db)
    return await service.create_activity(data, current_user.id)


@router.get(
    "/activities",
    response_model=List[ActivitySummary],
    summary="List Counting Activities"
)
async def list_activities(
    db: DB,
    current_user: CurrentUser,
    status: Optional[ActivityStatus] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
):
    """List counting activities, newest first."""
    service = ActivityService(db)
    return await service.list_activities(status=status, skip=skip, limit=limit)


@router.get(
    "/activities/{activity_id}",
    response_model=ActivityDetail,
    summary="Get Counting Activity"
)
async def get_activity(
    activity_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    """Activity header with progress counts, scans and missing assets."""
    service = ReconciliationService(db)
    return await service.activity_detail(activity_id)


# ============================================================================
# SCANS
# ============================================================================

@router.post(
    "/activities/{activity_id}/scans",
    response_model=ScanResult,
    status_code=status.HTTP_201_CREATED,
    summary="Submit Scan"
)
async def submit_scan(
    activity_id: UUID,
    data: ScanCreate,
    db: DB,
    current_user: CurrentUser,
):
    """
    Classify a scanned tag as FOUND or UNRECORDED and record it.

    A tag already counted in the activity is answered with 409 and
    classification DUPLICATE.
    """
    service = ScanClassifier(db)
    return await service.submit_scan(activity_id, data.asset_tag, current_user.id)


@router.get(
    "/activities/{activity_id}/scans",
    response_model=List[ScanLine],
    summary="List Scans"
)
async def list_scans(
    activity_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    """Scans of an activity, most recent first."""
    await ActivityService(db).require_activity(activity_id)
    return await ScanLedger(db).list_lines(activity_id)


@router.post(
    "/activities/{activity_id}/unrecorded",
    response_model=AssetResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register Unrecorded Asset"
)
async def register_unrecorded_asset(
    activity_id: UUID,
    data: UnrecordedAssetCreate,
    db: DB,
    current_user: CurrentUser,
):
    """Create an asset for an unrecorded scan and mark the scan FOUND."""
    service = ScanClassifier(db)
    return await service.register_unrecorded_asset(activity_id, data, current_user.id)


# ============================================================================
# RECONCILIATION & SETTLEMENT
# ============================================================================

@router.get(
    "/activities/{activity_id}/report",
    response_model=ReconciliationReport,
    summary="Reconciliation Report"
)
async def get_report(
    activity_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    """Expected, scanned, missing, found and unrecorded assets of an activity."""
    service = ReconciliationService(db)
    return await service.reconcile(activity_id)


@router.post(
    "/activities/{activity_id}/settle",
    response_model=SettlementResult,
    summary="Settle Counting Activity"
)
async def settle_activity(
    activity_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    """Mark missing assets DISPOSED and complete the activity."""
    service = SettlementService(db)
    return await service.settle(activity_id)


# ============================================================================
# FORM OPTIONS
# ============================================================================

@router.get(
    "/options",
    response_model=CountingOptions,
    summary="Activity Scope Options"
)
async def get_options(
    db: DB,
    current_user: CurrentUser,
):
    """Locations and categories an activity can be scoped to."""
    registry = AssetRegistry(db)
    return CountingOptions(
        locations=[NamedOption.model_validate(loc) for loc in await registry.list_locations()],
        categories=[NamedOption.model_validate(cat) for cat in await registry.list_categories()],
    )

"""
Asset Counting Schemas.

Pydantic schemas for counting activities, scans, reconciliation and settlement.
"""
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import Field

from app.models.asset import AssetStatus
from app.models.counting import ActivityStatus, ScanClassification
from app.schemas.base import BaseCreateSchema, BaseResponseSchema


# ============================================================================
# ACTIVITY SCHEMAS
# ============================================================================

class ActivityCreate(BaseCreateSchema):
    """Schema for creating a counting activity."""
    name: str = Field(..., max_length=200)
    location_id: Optional[UUID] = None
    category_id: Optional[UUID] = None


class ActivityResponse(BaseResponseSchema):
    """Schema for counting activity response."""
    id: UUID
    name: str
    status: ActivityStatus
    location_id: Optional[UUID] = None
    category_id: Optional[UUID] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    user_id: UUID


class ActivitySummary(ActivityResponse):
    """Activity row for the list view, with display names joined in."""
    user_full_name: Optional[str] = None
    location_name: Optional[str] = None
    category_name: Optional[str] = None
    scan_count: int = 0


# ============================================================================
# ASSET SCHEMAS
# ============================================================================

class AssetBrief(BaseResponseSchema):
    """Asset display attributes returned with a FOUND scan."""
    id: UUID
    asset_tag: str
    name: str
    status: AssetStatus
    category_id: Optional[UUID] = None
    category_name: Optional[str] = None
    location_id: Optional[UUID] = None
    location_name: Optional[str] = None
    assigned_to_user_id: Optional[UUID] = None
    assigned_user_name: Optional[str] = None
    image_url: Optional[str] = None


class UnrecordedAssetCreate(BaseCreateSchema):
    """Schema for registering an unrecorded tag as a new asset."""
    asset_tag: str = Field(..., max_length=100)
    name: str = Field(..., min_length=1, max_length=200)
    category_id: UUID
    location_id: Optional[UUID] = None
    assigned_to_user_id: Optional[UUID] = None
    purchase_date: date
    purchase_cost: Decimal = Field(..., ge=0)
    notes: Optional[str] = None
    image_url: Optional[str] = Field(None, max_length=500)


class AssetResponse(BaseResponseSchema):
    """Schema for an asset created by promotion."""
    id: UUID
    asset_tag: str
    name: str
    status: AssetStatus
    category_id: Optional[UUID] = None
    location_id: Optional[UUID] = None
    assigned_to_user_id: Optional[UUID] = None
    purchase_date: Optional[date] = None
    purchase_cost: Optional[Decimal] = None
    notes: Optional[str] = None
    image_url: Optional[str] = None
    created_at: datetime


# ============================================================================
# SCAN SCHEMAS
# ============================================================================

class ScanCreate(BaseCreateSchema):
    """Schema for submitting a scanned tag."""
    asset_tag: str = Field(..., max_length=100)


class ScanResult(BaseResponseSchema):
    """Outcome of an accepted scan."""
    classification: ScanClassification
    asset_tag: str
    scanned_at: datetime
    message: str
    asset: Optional[AssetBrief] = None


class ScanLine(BaseResponseSchema):
    """Scan ledger row with display metadata."""
    asset_tag: str
    scanned_at: datetime
    found_status: ScanClassification
    scanned_by_name: Optional[str] = None
    asset_name: Optional[str] = None
    location_name: Optional[str] = None
    assigned_user_name: Optional[str] = None


class MissingAsset(BaseResponseSchema):
    """Expected asset that has not been scanned."""
    asset_tag: str
    name: str
    category_name: Optional[str] = None
    location_name: Optional[str] = None
    assigned_user_name: Optional[str] = None


# ============================================================================
# RECONCILIATION SCHEMAS
# ============================================================================

class ReconciliationSummary(BaseResponseSchema):
    """Counts for each reconciliation set."""
    expected: int
    scanned: int
    missing: int
    found: int
    unrecorded: int


class ReconciliationReport(BaseResponseSchema):
    """Live reconciliation view of an activity."""
    activity: ActivitySummary
    summary: ReconciliationSummary
    scan_list: List[ScanLine]
    missing_list: List[MissingAsset]
    found_list: List[ScanLine]
    unrecorded_list: List[ScanLine]


class ActivityDetail(BaseResponseSchema):
    """Activity header with progress counts, scans and missing assets."""
    activity: ActivitySummary
    expected: int
    scanned: int
    missing: int
    duplicate_attempts: int
    scan_list: List[ScanLine]
    missing_list: List[MissingAsset]


# ============================================================================
# SETTLEMENT SCHEMAS
# ============================================================================

class SettlementResult(BaseResponseSchema):
    """Outcome of settling an activity."""
    activity_id: UUID
    status: ActivityStatus
    end_date: datetime
    missing_count: int
    disposed_count: int
    missing_tags: List[str]


# ============================================================================
# FORM OPTIONS
# ============================================================================

class NamedOption(BaseResponseSchema):
    """Id/name pair for select inputs."""
    id: UUID
    name: str


class CountingOptions(BaseResponseSchema):
    """Locations and categories available as activity scope."""
    locations: List[NamedOption]
    categories: List[NamedOption]

"""
Asset Counting Models.

Models for physical asset counting:
- Counting activities (header with optional location/category scope)
- Scan ledger (one row per counted tag per activity)
- Duplicate scan attempts (audit of rejected re-scans)
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List
from uuid import UUID, uuid4

from sqlalchemy import String, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.asset import Asset, AssetCategory, AssetLocation
from app.models.user import User


# ============================================================================
# ENUMS
# ============================================================================

class ActivityStatus(str, Enum):
    """Status of a counting activity."""
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class ScanClassification(str, Enum):
    """Outcome of a scan."""
    FOUND = "FOUND"              # Tag matches an asset in the register
    UNRECORDED = "UNRECORDED"    # Tag unknown to the register
    DUPLICATE = "DUPLICATE"      # Tag already counted in this activity (never stored on a scan row)


# ============================================================================
# MODELS
# ============================================================================

class CountingActivity(Base):
    """
    One physical counting exercise.

    Scope filters are optional and combine with AND: an activity with both a
    location and a category expects only assets matching both.
    end_date stays NULL until the activity is settled.
    """
    __tablename__ = "asset_counting_activities"
    __table_args__ = (
        Index("idx_aca_status", "status"),
    )

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=ActivityStatus.IN_PROGRESS.value
    )

    # Scope
    location_id: Mapped[Optional[UUID]] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("asset_locations.id"), nullable=True
    )
    category_id: Mapped[Optional[UUID]] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("asset_categories.id"), nullable=True
    )

    start_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Owner
    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )

    # Relationships
    user: Mapped["User"] = relationship("User")
    location: Mapped[Optional["AssetLocation"]] = relationship("AssetLocation")
    category: Mapped[Optional["AssetCategory"]] = relationship("AssetCategory")
    scans: Mapped[List["CountingScan"]] = relationship(
        back_populates="activity",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<CountingActivity(name='{self.name}', status='{self.status}')>"


class CountingScan(Base):
    """
    Scan ledger entry. At most one row per (activity, tag).
    """
    __tablename__ = "asset_counting_scans"
    __table_args__ = (
        UniqueConstraint("activity_id", "asset_tag", name="uq_acs_activity_tag"),
        Index("idx_acs_activity_scanned", "activity_id", "scanned_at"),
    )

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    activity_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("asset_counting_activities.id", ondelete="CASCADE"),
        nullable=False
    )
    asset_tag: Mapped[str] = mapped_column(String(100), nullable=False)

    scanned_by_user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    scanned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # NULL when the tag did not match any asset at scan time
    asset_id: Mapped[Optional[UUID]] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("assets.id", ondelete="SET NULL"),
        nullable=True
    )
    found_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ScanClassification.UNRECORDED.value
    )

    # Relationships
    activity: Mapped["CountingActivity"] = relationship(back_populates="scans")
    scanned_by: Mapped["User"] = relationship("User")
    asset: Mapped[Optional["Asset"]] = relationship("Asset")

    def __repr__(self) -> str:
        return f"<CountingScan(asset_tag='{self.asset_tag}', found_status='{self.found_status}')>"


class DuplicateScanAttempt(Base):
    """
    Audit record of a rejected re-scan. Not part of the scan ledger.
    """
    __tablename__ = "asset_counting_duplicate_attempts"
    __table_args__ = (
        Index("idx_acda_activity", "activity_id"),
    )

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    activity_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("asset_counting_activities.id", ondelete="CASCADE"),
        nullable=False
    )
    asset_tag: Mapped[str] = mapped_column(String(100), nullable=False)
    attempted_by_user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    attempted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

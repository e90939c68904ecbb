"""Asset register models used by the counting engine.

The register itself is owned by the asset management module; the counting
engine reads assets by tag and by scope, creates assets when an unrecorded tag
is promoted, and marks missing assets DISPOSED on settlement.
"""
import uuid
from datetime import datetime, date, timezone
from enum import Enum
from typing import Optional
from decimal import Decimal

from sqlalchemy import String, DateTime, ForeignKey, Text, Numeric, Date, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.enum_utils import enum_comment
from app.database import Base
from app.models.user import User


# ==================== Enums ====================

class AssetStatus(str, Enum):
    """Asset lifecycle status."""
    IN_USE = "IN_USE"
    IN_STORAGE = "IN_STORAGE"
    UNDER_MAINTENANCE = "UNDER_MAINTENANCE"
    DISPOSED = "DISPOSED"


# ==================== Location / Category ====================

class AssetLocation(Base):
    """Physical location an asset is kept at."""
    __tablename__ = "asset_locations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    def __repr__(self) -> str:
        return f"<AssetLocation(name='{self.name}')>"


class AssetCategory(Base):
    """
    Categories for assets.
    Examples: Furniture, Vehicles, Office Equipment
    """
    __tablename__ = "asset_categories"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    def __repr__(self) -> str:
        return f"<AssetCategory(name='{self.name}')>"


# ==================== Asset ====================

class Asset(Base):
    """
    Asset register entry identified by a unique, upper-case tag.
    """
    __tablename__ = "assets"
    __table_args__ = (
        Index("idx_assets_scope", "status", "location_id", "category_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    # Identification
    asset_tag: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        comment="Barcode / RFID tag, stored trimmed and upper-case"
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    # Classification & placement
    category_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("asset_categories.id", ondelete="RESTRICT"),
        nullable=True,
        index=True
    )
    location_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("asset_locations.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    assigned_to_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    # Status - VARCHAR, see AssetStatus
    status: Mapped[str] = mapped_column(
        String(50),
        default=AssetStatus.IN_STORAGE.value,
        nullable=False,
        comment=enum_comment(AssetStatus)
    )

    # Purchase Details
    purchase_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    purchase_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    category: Mapped[Optional["AssetCategory"]] = relationship("AssetCategory")
    location: Mapped[Optional["AssetLocation"]] = relationship("AssetLocation")
    assigned_to: Mapped[Optional["User"]] = relationship("User")

    def __repr__(self) -> str:
        return f"<Asset(asset_tag='{self.asset_tag}', status='{self.status}')>"

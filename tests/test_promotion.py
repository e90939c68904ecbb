from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select, func

from app.core.exceptions import (
    AssetTagConflictError,
    CountingNotFoundError,
    CountingValidationError,
    ScanAlreadyPromotedError,
)
from app.models.asset import Asset
from app.models.counting import CountingScan
from app.schemas.counting import ActivityCreate, UnrecordedAssetCreate
from app.services.activity_service import ActivityService
from app.services.scan_classifier import ScanClassifier


def _attributes(seed, tag="ZZZ", **overrides):
    values = dict(
        asset_tag=tag,
        name="Unlabelled printer",
        category_id=seed.category_2,
        location_id=seed.location_5,
        purchase_date=date(2024, 1, 15),
        purchase_cost=Decimal("250.00"),
    )
    values.update(overrides)
    return UnrecordedAssetCreate(**values)


async def _scanned_activity(db, seed, tag="ZZZ"):
    activity = await ActivityService(db).create_activity(ActivityCreate(name="Promotion"), seed.user_id)
    await ScanClassifier(db).submit_scan(activity.id, tag, seed.user_id)
    return activity.id


async def _asset_count(db, tag):
    return (await db.execute(select(func.count(Asset.id)).where(Asset.asset_tag == tag))).scalar()


async def _scan_row(db, activity_id, tag):
    result = await db.execute(
        select(CountingScan.asset_id, CountingScan.found_status).where(
            CountingScan.activity_id == activity_id,
            CountingScan.asset_tag == tag,
        )
    )
    return result.one()


@pytest.mark.asyncio
async def test_promotion_creates_asset_and_relinks_scan(db, seed):
    activity_id = await _scanned_activity(db, seed)

    asset = await ScanClassifier(db).register_unrecorded_asset(activity_id, _attributes(seed), seed.user_id)

    assert asset.asset_tag == "ZZZ"
    assert asset.status == "IN_STORAGE"
    assert asset.category_id == seed.category_2
    assert asset.purchase_cost == Decimal("250.00")

    asset_id, found_status = await _scan_row(db, activity_id, "ZZZ")
    assert asset_id == asset.id
    assert found_status == "FOUND"


@pytest.mark.asyncio
async def test_promotion_normalises_tag(db, seed):
    activity_id = await _scanned_activity(db, seed, tag="ZZZ")

    asset = await ScanClassifier(db).register_unrecorded_asset(
        activity_id, _attributes(seed, tag=" zzz "), seed.user_id
    )

    assert asset.asset_tag == "ZZZ"


@pytest.mark.asyncio
async def test_tag_cannot_be_promoted_twice(db, seed):
    activity_id = await _scanned_activity(db, seed)
    classifier = ScanClassifier(db)
    await classifier.register_unrecorded_asset(activity_id, _attributes(seed), seed.user_id)

    with pytest.raises(ScanAlreadyPromotedError):
        await classifier.register_unrecorded_asset(activity_id, _attributes(seed), seed.user_id)

    assert await _asset_count(db, "ZZZ") == 1


@pytest.mark.asyncio
async def test_found_scan_cannot_be_promoted(db, seed, add_asset):
    await add_asset("A1")
    activity_id = await _scanned_activity(db, seed, tag="A1")

    with pytest.raises(ScanAlreadyPromotedError):
        await ScanClassifier(db).register_unrecorded_asset(activity_id, _attributes(seed, tag="A1"), seed.user_id)


@pytest.mark.asyncio
async def test_promoting_unscanned_tag_is_not_found(db, seed):
    activity_id = await _scanned_activity(db, seed)

    with pytest.raises(CountingNotFoundError):
        await ScanClassifier(db).register_unrecorded_asset(activity_id, _attributes(seed, tag="NEVER"), seed.user_id)

    assert await _asset_count(db, "NEVER") == 0


@pytest.mark.asyncio
async def test_promoting_into_unknown_activity_is_not_found(db, seed):
    with pytest.raises(CountingNotFoundError):
        await ScanClassifier(db).register_unrecorded_asset(uuid4(), _attributes(seed), seed.user_id)


@pytest.mark.asyncio
async def test_tag_registered_elsewhere_meanwhile_is_a_conflict(db, seed, add_asset):
    activity_id = await _scanned_activity(db, seed)
    await add_asset("ZZZ")

    with pytest.raises(AssetTagConflictError):
        await ScanClassifier(db).register_unrecorded_asset(activity_id, _attributes(seed), seed.user_id)

    asset_id, found_status = await _scan_row(db, activity_id, "ZZZ")
    assert asset_id is None
    assert found_status == "UNRECORDED"
    assert await _asset_count(db, "ZZZ") == 1


@pytest.mark.asyncio
async def test_unknown_category_is_rejected(db, seed):
    activity_id = await _scanned_activity(db, seed)

    with pytest.raises(CountingValidationError):
        await ScanClassifier(db).register_unrecorded_asset(
            activity_id, _attributes(seed, category_id=uuid4()), seed.user_id
        )

    assert await _asset_count(db, "ZZZ") == 0


@pytest.mark.asyncio
async def test_failed_relink_leaves_no_asset_behind(db, seed, monkeypatch):
    activity_id = await _scanned_activity(db, seed)
    classifier = ScanClassifier(db)

    async def _broken_reclassify(*args, **kwargs):
        raise RuntimeError("ledger write failed")

    monkeypatch.setattr(classifier.ledger, "reclassify", _broken_reclassify)

    with pytest.raises(RuntimeError):
        await classifier.register_unrecorded_asset(activity_id, _attributes(seed), seed.user_id)

    assert await _asset_count(db, "ZZZ") == 0
    asset_id, found_status = await _scan_row(db, activity_id, "ZZZ")
    assert asset_id is None
    assert found_status == "UNRECORDED"

from uuid import uuid4

import pytest
from sqlalchemy import select

from app.core.exceptions import ActivityStateError, CountingNotFoundError
from app.models.asset import Asset, AssetStatus
from app.models.counting import ActivityStatus, CountingActivity
from app.schemas.counting import ActivityCreate
from app.services.activity_service import ActivityService
from app.services.scan_classifier import ScanClassifier
from app.services.settlement_service import SettlementService


async def _new_activity(db, seed, **scope):
    activity = await ActivityService(db).create_activity(ActivityCreate(name="Settle me", **scope), seed.user_id)
    return activity.id


async def _status_of(db, tag):
    return (await db.execute(select(Asset.status).where(Asset.asset_tag == tag))).scalar_one()


async def _activity_row(db, activity_id):
    result = await db.execute(
        select(CountingActivity.status, CountingActivity.end_date).where(CountingActivity.id == activity_id)
    )
    return result.one()


@pytest.mark.asyncio
async def test_scenario_settle_disposes_only_missing_in_scope(db, seed, add_asset):
    await add_asset("A3", location_id=seed.location_5)
    await add_asset("A4", location_id=seed.location_6)
    activity_id = await _new_activity(db, seed, location_id=seed.location_5)

    result = await SettlementService(db).settle(activity_id)

    assert result.status == ActivityStatus.COMPLETED
    assert result.missing_count == 1
    assert result.disposed_count == 1
    assert result.missing_tags == ["A3"]
    assert result.end_date is not None

    assert await _status_of(db, "A3") == "DISPOSED"
    assert await _status_of(db, "A4") == "IN_STORAGE"

    status, end_date = await _activity_row(db, activity_id)
    assert status == "COMPLETED"
    assert end_date is not None


@pytest.mark.asyncio
async def test_scanned_assets_are_not_disposed(db, seed, add_asset):
    await add_asset("A1", status=AssetStatus.IN_USE)
    await add_asset("A2")
    activity_id = await _new_activity(db, seed)
    await ScanClassifier(db).submit_scan(activity_id, "A1", seed.user_id)
    await ScanClassifier(db).submit_scan(activity_id, "ZZZ", seed.user_id)

    result = await SettlementService(db).settle(activity_id)

    assert result.missing_tags == ["A2"]
    assert await _status_of(db, "A1") == "IN_USE"
    assert await _status_of(db, "A2") == "DISPOSED"


@pytest.mark.asyncio
async def test_nothing_missing_completes_without_disposal(db, seed, add_asset):
    await add_asset("A1")
    activity_id = await _new_activity(db, seed)
    await ScanClassifier(db).submit_scan(activity_id, "A1", seed.user_id)

    result = await SettlementService(db).settle(activity_id)

    assert result.missing_count == 0
    assert result.disposed_count == 0
    assert await _status_of(db, "A1") == "IN_STORAGE"


@pytest.mark.asyncio
async def test_open_activity_has_no_end_date(db, seed):
    activity_id = await _new_activity(db, seed)

    status, end_date = await _activity_row(db, activity_id)

    assert status == "IN_PROGRESS"
    assert end_date is None


@pytest.mark.asyncio
async def test_settling_twice_is_rejected(db, seed, add_asset):
    await add_asset("A1")
    activity_id = await _new_activity(db, seed)
    service = SettlementService(db)
    await service.settle(activity_id)

    with pytest.raises(ActivityStateError):
        await service.settle(activity_id)


@pytest.mark.asyncio
async def test_settling_unknown_activity_is_not_found(db, seed):
    with pytest.raises(CountingNotFoundError):
        await SettlementService(db).settle(uuid4())


@pytest.mark.asyncio
async def test_failure_after_dispose_rolls_everything_back(db, seed, add_asset, monkeypatch):
    await add_asset("A1")
    await add_asset("A2", location_id=seed.location_5)
    activity_id = await _new_activity(db, seed)
    service = SettlementService(db)

    async def _crash(activity):
        raise RuntimeError("crash between dispose and close")

    monkeypatch.setattr(service.activities, "mark_completed", _crash)

    with pytest.raises(RuntimeError):
        await service.settle(activity_id)

    assert await _status_of(db, "A1") == "IN_STORAGE"
    assert await _status_of(db, "A2") == "IN_STORAGE"
    status, end_date = await _activity_row(db, activity_id)
    assert status == "IN_PROGRESS"
    assert end_date is None


@pytest.mark.asyncio
async def test_settled_activity_rejects_promotion(db, seed):
    from datetime import date
    from decimal import Decimal

    from app.schemas.counting import UnrecordedAssetCreate

    activity_id = await _new_activity(db, seed)
    await ScanClassifier(db).submit_scan(activity_id, "ZZZ", seed.user_id)
    await SettlementService(db).settle(activity_id)

    with pytest.raises(ActivityStateError):
        await ScanClassifier(db).register_unrecorded_asset(
            activity_id,
            UnrecordedAssetCreate(
                asset_tag="ZZZ",
                name="Late entry",
                category_id=seed.category_1,
                purchase_date=date(2024, 1, 1),
                purchase_cost=Decimal("1"),
            ),
            seed.user_id,
        )

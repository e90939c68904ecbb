import asyncio

import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import OperationalError

from app.core.exceptions import CountingTransientError, ErrorCategory, TransactionTimeoutError
from app.database import run_in_transaction
from app.models.asset import AssetLocation


async def _location_count(db, name):
    return (await db.execute(select(func.count(AssetLocation.id)).where(AssetLocation.name == name))).scalar()


@pytest.mark.asyncio
async def test_commits_on_success(db):
    async def _work():
        db.add(AssetLocation(name="Annex"))
        await db.flush()
        return "done"

    assert await run_in_transaction(db, _work) == "done"
    assert await _location_count(db, "Annex") == 1


@pytest.mark.asyncio
async def test_rolls_back_and_reraises_on_error(db):
    async def _work():
        db.add(AssetLocation(name="Annex"))
        await db.flush()
        raise ValueError("boom")

    with pytest.raises(ValueError):
        await run_in_transaction(db, _work)

    assert await _location_count(db, "Annex") == 0


@pytest.mark.asyncio
async def test_timeout_rolls_back_as_transient(db):
    async def _slow():
        db.add(AssetLocation(name="Slow"))
        await db.flush()
        await asyncio.sleep(0.5)

    with pytest.raises(TransactionTimeoutError) as exc_info:
        await run_in_transaction(db, _slow, timeout=0.05)

    assert exc_info.value.category == ErrorCategory.TRANSIENT
    assert exc_info.value.status_code == 503
    assert await _location_count(db, "Slow") == 0


@pytest.mark.asyncio
async def test_store_unavailable_is_transient(db):
    async def _unavailable():
        raise OperationalError("SELECT 1", {}, Exception("server closed the connection"))

    with pytest.raises(CountingTransientError):
        await run_in_transaction(db, _unavailable)

"""
Managed Position Repository Tests

MongoDB collection is mocked - documents are checked at the driver boundary.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock
from datetime import datetime
from decimal import Decimal
from bson import ObjectId

from stopguard.domain.models.managed_position import (
    ACTIVE_STATUSES,
    ManagedPosition,
    ManagedPositionStatus,
    PositionSide,
)
from stopguard.repositories.managed_position_repository import ManagedPositionRepository
from stopguard.shared.exceptions import NotFoundError


OBJECT_ID = ObjectId("65a1b2c3d4e5f60718293a4b")


@pytest.fixture
def collection():
    collection = MagicMock()
    collection.insert_one = AsyncMock(return_value=MagicMock(inserted_id=OBJECT_ID))
    collection.find_one = AsyncMock()
    collection.find_one_and_update = AsyncMock()
    collection.create_index = AsyncMock()
    return collection


@pytest.fixture
def repository(collection):
    db = MagicMock()
    db.__getitem__.return_value = collection
    db.name = "stopguard_test"
    return ManagedPositionRepository(db)


def stored_document(**overrides):
    document = {
        "_id": OBJECT_ID,
        "symbol": "AAPL",
        "qty": 10.0,
        "side": "long",
        "entry_price": 150.0,
        "entry_order_id": "entry-1",
        "stop_loss_pct": 2.0,
        "take_profit_pct": 5.0,
        "trailing_stop": True,
        "stop_loss_price": 147.0,
        "take_profit_price": 157.5,
        "status": "monitoring",
        "current_price": 151.25,
        "unrealized_pl": 12.5,
        "unrealized_plpc": 0.8333,
        "created_at": datetime(2024, 1, 2, 15, 30),
        "updated_at": datetime(2024, 1, 2, 15, 31),
    }
    document.update(overrides)
    return document


@pytest.mark.asyncio
async def test_create_converts_values(repository, collection):
    position = ManagedPosition(
        symbol="AAPL",
        qty=Decimal("10"),
        side=PositionSide.LONG,
        entry_price=Decimal("150"),
        stop_loss_pct=Decimal("2"),
        take_profit_pct=Decimal("5"),
        stop_loss_price=Decimal("147.00"),
        take_profit_price=Decimal("157.50"),
    )
    
    created = await repository.create(position)
    
    assert created.id == str(OBJECT_ID)
    document = collection.insert_one.await_args.args[0]
    assert "id" not in document and "_id" not in document
    assert document["side"] == "long"
    assert document["status"] == "active"
    assert document["stop_loss_price"] == 147.0
    assert isinstance(document["qty"], float)


@pytest.mark.asyncio
async def test_get_restores_domain_types(repository, collection):
    collection.find_one.return_value = stored_document()
    
    position = await repository.get(str(OBJECT_ID))
    
    collection.find_one.assert_awaited_once_with({"_id": OBJECT_ID})
    assert position.id == str(OBJECT_ID)
    assert position.side == PositionSide.LONG
    assert position.status == ManagedPositionStatus.MONITORING
    assert position.current_price == Decimal("151.25")
    assert position.take_profit_price == Decimal("157.5")
    assert position.created_at.tzinfo is not None


@pytest.mark.asyncio
async def test_get_malformed_id(repository, collection):
    assert await repository.get("not-an-object-id") is None
    collection.find_one.assert_not_awaited()


@pytest.mark.asyncio
async def test_list_by_status_query(repository, collection):
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.to_list = AsyncMock(return_value=[stored_document()])
    collection.find.return_value = cursor
    
    positions = await repository.list_by_status(ACTIVE_STATUSES, symbol="AAPL")
    
    collection.find.assert_called_once_with({
        "status": {"$in": ["active", "monitoring"]},
        "symbol": "AAPL",
    })
    cursor.sort.assert_called_once_with([("created_at", -1)])
    cursor.limit.assert_not_called()
    assert [p.symbol for p in positions] == ["AAPL"]


@pytest.mark.asyncio
async def test_update_sets_patch(repository, collection):
    collection.find_one_and_update.return_value = stored_document(
        status="closed", closed_price=145.0, closed_reason="stop_loss_triggered"
    )
    
    position = await repository.update(str(OBJECT_ID), {
        "status": ManagedPositionStatus.CLOSED,
        "closed_price": Decimal("145"),
        "closed_reason": "stop_loss_triggered",
    })
    
    filter, update = collection.find_one_and_update.await_args.args[:2]
    assert filter == {"_id": OBJECT_ID}
    assert update["$set"]["status"] == "closed"
    assert update["$set"]["closed_price"] == 145.0
    assert "updated_at" in update["$set"]
    assert position.closed_price == Decimal("145.0")
    assert position.is_closed()


@pytest.mark.asyncio
async def test_update_missing(repository, collection):
    collection.find_one_and_update.return_value = None
    
    with pytest.raises(NotFoundError):
        await repository.update(str(OBJECT_ID), {"current_price": Decimal("1")})
    
    with pytest.raises(NotFoundError):
        await repository.update("bad-id", {"current_price": Decimal("1")})


@pytest.mark.asyncio
async def test_ensure_indexes(repository, collection):
    await repository.ensure_indexes()
    
    assert collection.create_index.await_count == 3

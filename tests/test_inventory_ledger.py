"""InventoryLedger: guarded reserve and compensating release."""

import asyncio
from decimal import Decimal

import pytest

from storefront.domain.exceptions import InsufficientStockError, ProductNotFoundError, ValidationError
from storefront.domain.models import Product


async def _reserve(uow, product_id, quantity):
    async with uow() as u:
        remaining = await u.inventory.reserve(product_id, quantity)
        await u.commit()
    return remaining


async def test_reserve_decrements_and_returns_remaining_stock(uow, seed, stock_of, lamp):
    await seed(lamp)

    assert await _reserve(uow, lamp.id, 4) == 6
    assert await stock_of(lamp.id) == 6


async def test_reserve_whole_stock_leaves_zero(uow, seed, stock_of, lamp):
    await seed(lamp)

    assert await _reserve(uow, lamp.id, 10) == 0
    assert await stock_of(lamp.id) == 0


async def test_reserve_more_than_available_fails_and_keeps_stock(uow, seed, stock_of, lamp):
    await seed(lamp)

    with pytest.raises(InsufficientStockError) as exc_info:
        await _reserve(uow, lamp.id, 11)

    assert exc_info.value.available == 10
    assert exc_info.value.required == 11
    assert await stock_of(lamp.id) == 10


async def test_reserve_unknown_product(uow):
    with pytest.raises(ProductNotFoundError):
        await _reserve(uow, "missing", 1)


async def test_reserve_rejects_non_positive_quantity(uow, seed, lamp):
    await seed(lamp)

    with pytest.raises(ValidationError):
        await _reserve(uow, lamp.id, 0)


async def test_release_adds_stock_back(uow, seed, stock_of, lamp):
    await seed(lamp)
    await _reserve(uow, lamp.id, 3)

    async with uow() as u:
        assert await u.inventory.release(lamp.id, 3) == 10
        await u.commit()

    assert await stock_of(lamp.id) == 10


async def test_release_unknown_product(uow):
    async with uow() as u:
        with pytest.raises(ProductNotFoundError):
            await u.inventory.release("missing", 1)


@pytest.mark.parametrize("quantity", [0, -5, 2**31])
async def test_release_rejects_out_of_range_quantity(uow, seed, stock_of, lamp, quantity):
    await seed(lamp)

    async with uow() as u:
        with pytest.raises(ValidationError):
            await u.inventory.release(lamp.id, quantity)
        await u.commit()

    assert await stock_of(lamp.id) == 10


async def test_reserve_rejects_quantity_beyond_integer_range(uow, seed, stock_of, lamp):
    await seed(lamp)

    with pytest.raises(ValidationError):
        await _reserve(uow, lamp.id, 10**20)

    assert await stock_of(lamp.id) == 10


async def test_concurrent_reservations_never_oversell(uow, seed, stock_of):
    await seed(Product(id="prod-last", name="Last One", price=Decimal("5.00"), stock=1))

    results = await asyncio.gather(
        *[_reserve(uow, "prod-last", 1) for _ in range(5)],
        return_exceptions=True,
    )

    assert results.count(0) == 1
    assert sum(isinstance(r, InsufficientStockError) for r in results) == 4
    assert await stock_of("prod-last") == 0


async def test_uncommitted_reservation_is_discarded(uow, seed, stock_of, lamp):
    await seed(lamp)

    async with uow() as u:
        assert await u.inventory.reserve(lamp.id, 4) == 6

    assert await stock_of(lamp.id) == 10

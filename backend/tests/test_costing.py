"""Weighted-average costing, the single-pool strategy and FIFO products without batches."""

import pytest

from conftest import active_remaining, movement_total
from stockledger.errors import InsufficientStock, InvalidInput
from stockledger.models import (
    BatchSource,
    BatchStatus,
    MovementAction,
    Sale,
    StockBatch,
    StockMovement,
)
from stockledger.services import inventory_service, movement_service, sales_service
from stockledger.services.costing import (
    AveragePoolStrategy,
    FifoBatchStrategy,
    get_strategy,
    weighted_average_cost_cents,
)


# =============================================================================
# COST AVERAGING
# =============================================================================


class TestWeightedAverageCost:

    def test_equal_quantities(self):
        assert weighted_average_cost_cents(10, 100, 10, 200) == 150

    def test_weighted_by_quantity(self):
        # (30*100 + 10*200) / 40 = 125
        assert weighted_average_cost_cents(30, 100, 10, 200) == 125

    def test_rounds_half_up(self):
        # (100 + 101) / 2 = 100.5
        assert weighted_average_cost_cents(1, 100, 1, 101) == 101

    def test_rounds_to_nearest(self):
        # (100 + 2*101) / 3 = 100.67
        assert weighted_average_cost_cents(1, 100, 2, 101) == 101
        # (2*100 + 101) / 3 = 100.33
        assert weighted_average_cost_cents(2, 100, 1, 101) == 100

    def test_nothing_on_hand_takes_added_cost(self):
        assert weighted_average_cost_cents(0, 0, 5, 240) == 240

    def test_nothing_at_all_keeps_current_cost(self):
        assert weighted_average_cost_cents(0, 80, 0, 240) == 80

    def test_negative_quantity_rejected(self):
        with pytest.raises(InvalidInput):
            weighted_average_cost_cents(-1, 100, 1, 100)


# =============================================================================
# STRATEGY SELECTION
# =============================================================================


class TestStrategySelection:

    def test_fifo_product(self, product):
        assert isinstance(get_strategy(product), FifoBatchStrategy)

    def test_pool_product(self, pool_product):
        assert isinstance(get_strategy(pool_product), AveragePoolStrategy)


# =============================================================================
# SINGLE-POOL PRODUCTS
# =============================================================================


class TestAveragePool:

    def test_replenish_blends_cost(self, db_session, pool_product):
        inventory_service.replenish(pool_product.id, 10, 100, 150)
        result = inventory_service.replenish(pool_product.id, 10, 200, 160)

        assert result.batch is None
        assert result.status == "ACTIVE"
        assert pool_product.quantity == 20
        assert pool_product.cost_price_cents == 150
        assert pool_product.price_cents == 160
        assert db_session.query(StockBatch).filter_by(product_id=pool_product.id).count() == 0

    def test_sale_uses_pool_cost_and_price(self, db_session, pool_product):
        inventory_service.replenish(pool_product.id, 10, 100, 150)
        inventory_service.replenish(pool_product.id, 10, 200, 160)

        result = sales_service.sell(pool_product.id, 5)

        assert len(result.sales) == 1
        sale = result.sales[0]
        assert sale.batch_id is None
        assert sale.unit_cost_cents == 150
        assert sale.unit_price_cents == 160
        assert sale.total_price_cents == 800
        assert result.remaining_stock == 15

    def test_add_movement_with_cost_blends(self, db_session, pool_product):
        inventory_service.replenish(pool_product.id, 30, 100, 150)
        movement_service.update_stock(pool_product.id, 10, MovementAction.ADD, unit_cost_cents=200)

        assert pool_product.quantity == 40
        assert pool_product.cost_price_cents == 125

    def test_add_movement_without_cost_keeps_average(self, db_session, pool_product):
        inventory_service.replenish(pool_product.id, 10, 100, 150)
        movement_service.update_stock(pool_product.id, 5, MovementAction.RETURN)

        assert pool_product.quantity == 15
        assert pool_product.cost_price_cents == 100

    def test_oversell_rejected(self, db_session, pool_product):
        inventory_service.replenish(pool_product.id, 3, 100, 150)

        with pytest.raises(InsufficientStock):
            sales_service.sell(pool_product.id, 4)

        assert pool_product.quantity == 3
        assert db_session.query(Sale).count() == 0
        assert movement_total(pool_product.id) == 3


# =============================================================================
# FIFO PRODUCTS WITHOUT BATCHES
# =============================================================================


@pytest.fixture
def unbatched_product(db_session, product):
    """A FIFO product holding stock recorded before it had any batches."""
    product.quantity = 5
    product.cost_price_cents = 100
    product.price_cents = 150
    db_session.add(StockMovement(
        product_id=product.id,
        action=MovementAction.ADD,
        previous_quantity=0,
        new_quantity=5,
        quantity_changed=5,
        unit_cost_cents=100,
        total_value_cents=500,
    ))
    db_session.commit()
    return product


class TestFifoWithoutBatches:

    def test_sale_draws_from_product_stock(self, db_session, unbatched_product):
        result = sales_service.sell(unbatched_product.id, 2)

        assert len(result.sales) == 1
        sale = result.sales[0]
        assert sale.batch_id is None
        assert sale.unit_cost_cents == 100
        assert sale.unit_price_cents == 150
        assert result.remaining_stock == 3
        assert unbatched_product.quantity == 3
        assert movement_total(unbatched_product.id) == 3
        assert db_session.query(StockBatch).filter_by(product_id=unbatched_product.id).count() == 0

    def test_oversell_rejected(self, db_session, unbatched_product):
        with pytest.raises(InsufficientStock) as excinfo:
            sales_service.sell(unbatched_product.id, 6)

        assert excinfo.value.details["available"] == 5
        assert unbatched_product.quantity == 5
        assert db_session.query(Sale).count() == 0

    def test_first_replenish_opens_batch_for_existing_stock(self, db_session, unbatched_product):
        sales_service.sell(unbatched_product.id, 2)

        result = inventory_service.replenish(unbatched_product.id, 10, 120, 170)

        opening = (
            db_session.query(StockBatch)
            .filter_by(product_id=unbatched_product.id, source=BatchSource.MOVEMENT)
            .one()
        )
        assert opening.status == BatchStatus.ACTIVE
        assert opening.quantity_remaining == 3
        assert opening.unit_cost_cents == 100
        # Existing stock is still on the shelf, so the new lot waits
        assert result.batch.status == BatchStatus.PENDING
        assert unbatched_product.quantity == 3
        assert active_remaining(unbatched_product.id) == 3
        assert movement_total(unbatched_product.id) == 3

    def test_opening_batch_sells_before_new_lot(self, db_session, unbatched_product):
        inventory_service.replenish(unbatched_product.id, 10, 120, 170)

        result = sales_service.sell(unbatched_product.id, 5)

        assert [s.unit_cost_cents for s in result.sales] == [100]
        assert unbatched_product.quantity == 10
        assert unbatched_product.cost_price_cents == 120
        assert active_remaining(unbatched_product.id) == 10

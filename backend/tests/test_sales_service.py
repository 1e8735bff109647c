"""
Sale/allocation engine tests.

Verifies:
- One Sale row per batch touched, sharing a request_id
- Insufficient stock leaves every quantity untouched
- Pending stock activates when active stock runs out
- Revenue / cost / profit come from Sale rows
"""

import pytest

from conftest import active_remaining, movement_total
from stockledger.errors import InsufficientStock, InvalidInput, NotFound
from stockledger.models import (
    AlertType,
    BatchStatus,
    InventoryAlert,
    MovementAction,
    Sale,
    StockBatch,
    StockMovement,
)
from stockledger.services import inventory_service, movement_service, products_service, sales_service


class TestSellScenario:

    def test_replenish_then_sell_to_zero(self, db_session, product):
        replenished = inventory_service.replenish(product.id, 10, 100, 150)
        assert replenished.batch.status == BatchStatus.ACTIVE
        assert product.quantity == 10

        first = sales_service.sell(product.id, 4)
        assert len(first.sales) == 1
        assert first.sales[0].total_price_cents == 600
        assert first.remaining_stock == 6

        second = sales_service.sell(product.id, 6)
        assert second.remaining_stock == 0
        batch = db_session.get(StockBatch, replenished.batch.id)
        assert batch.status == BatchStatus.SOLD_OUT
        assert batch.quantity_remaining == 0

        out_alerts = db_session.query(InventoryAlert).filter_by(
            product_id=product.id, alert_type=AlertType.OUT_OF_STOCK
        ).all()
        assert len(out_alerts) == 1
        assert out_alerts[0].resolved is False

    def test_sale_spanning_two_batches(self, db_session, product):
        inventory_service.replenish(product.id, 3, 100, 150)
        # Second lot returned to the shelf, active alongside the first
        movement_service.update_stock(product.id, 5, MovementAction.RETURN, unit_cost_cents=110)

        result = sales_service.sell(product.id, 4)

        assert [s.quantity_sold for s in result.sales] == [3, 1]
        assert len({s.request_id for s in result.sales}) == 1
        assert result.quantity_sold == 4
        assert result.sales[0].unit_cost_cents == 100
        assert result.sales[1].unit_cost_cents == 110
        assert result.remaining_stock == 4
        assert active_remaining(product.id) == 4

    def test_one_sold_movement_per_allocation(self, db_session, product):
        inventory_service.replenish(product.id, 3, 100, 150)
        movement_service.update_stock(product.id, 5, MovementAction.RETURN)

        result = sales_service.sell(product.id, 4)

        sold = db_session.query(StockMovement).filter_by(
            product_id=product.id, action=MovementAction.SOLD
        ).order_by(StockMovement.id).all()
        assert [m.quantity_changed for m in sold] == [-3, -1]
        assert all(m.reference == f"SALE_{result.request_id}" for m in sold)
        assert movement_total(product.id) == product.quantity


class TestSellFailures:

    def test_oversell_changes_nothing(self, db_session, product):
        inventory_service.replenish(product.id, 3, 100, 150)
        movements_before = db_session.query(StockMovement).count()

        with pytest.raises(InsufficientStock) as exc:
            sales_service.sell(product.id, 4)

        assert exc.value.details["available"] == 3
        assert product.quantity == 3
        assert active_remaining(product.id) == 3
        assert db_session.query(Sale).count() == 0
        assert db_session.query(StockMovement).count() == movements_before

    def test_pending_stock_not_sellable(self, db_session, product):
        inventory_service.replenish(product.id, 2, 100, 150)
        inventory_service.replenish(product.id, 10, 100, 150)

        with pytest.raises(InsufficientStock):
            sales_service.sell(product.id, 3)

    @pytest.mark.parametrize("quantity", [0, -2, 1.5, True, "abc"])
    def test_invalid_quantity(self, db_session, product, quantity):
        with pytest.raises(InvalidInput):
            sales_service.sell(product.id, quantity)

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFound):
            sales_service.sell(999999, 1)

    def test_inactive_product(self, db_session, product):
        inventory_service.replenish(product.id, 3, 100, 150)
        products_service.update_product(product.id, {"is_active": False})

        with pytest.raises(InvalidInput):
            sales_service.sell(product.id, 1)

    def test_credit_sale_requires_customer(self, db_session, product):
        inventory_service.replenish(product.id, 3, 100, 150)

        with pytest.raises(InvalidInput):
            sales_service.sell(product.id, 1, is_credit=True)

    def test_credit_sale_unknown_customer(self, db_session, product):
        inventory_service.replenish(product.id, 3, 100, 150)

        with pytest.raises(NotFound):
            sales_service.sell(product.id, 1, customer_id=424242, is_credit=True)
        assert product.quantity == 3


class TestPendingActivation:

    def test_depletion_activates_pending_batch(self, db_session, product, notifier):
        inventory_service.replenish(product.id, 2, 100, 150)
        pending = inventory_service.replenish(product.id, 10, 120, 180).batch
        notifier.reset()

        result = sales_service.sell(product.id, 2)

        assert result.remaining_stock == 10
        batch = db_session.get(StockBatch, pending.id)
        assert batch.status == BatchStatus.ACTIVE
        assert batch.activated_at is not None
        assert product.price_cents == 180
        assert active_remaining(product.id) == 10
        assert movement_total(product.id) == 10

        ready = db_session.query(InventoryAlert).filter_by(
            product_id=product.id, alert_type=AlertType.REPLENISH_READY, batch_id=pending.id
        ).all()
        out = db_session.query(InventoryAlert).filter_by(
            product_id=product.id, alert_type=AlertType.OUT_OF_STOCK
        ).all()
        assert len(ready) == 1
        assert len(out) == 1
        assert out[0].resolved is True
        assert out[0].resolution_notes.startswith("Superseded")
        assert ready[0].resolved is False
        assert notifier.replenishment_active == [(product.id, pending.id)]

    def test_next_sale_uses_activated_batch_prices(self, db_session, product):
        inventory_service.replenish(product.id, 2, 100, 150)
        inventory_service.replenish(product.id, 10, 120, 180)
        sales_service.sell(product.id, 2)

        result = sales_service.sell(product.id, 1)

        assert result.sales[0].unit_cost_cents == 120
        assert result.sales[0].unit_price_cents == 180


class TestSalesSummary:

    def test_profit_from_sale_rows(self, db_session, product):
        inventory_service.replenish(product.id, 10, 100, 150)
        sales_service.sell(product.id, 4)
        sales_service.sell(product.id, 2)

        summary = sales_service.get_sales_summary(product.id)

        assert summary["sale_requests"] == 2
        assert summary["units_sold"] == 6
        assert summary["revenue_cents"] == 900
        assert summary["cost_cents"] == 600
        assert summary["profit_cents"] == 300
        assert summary["outstanding_credit_cents"] == 0

    def test_list_sales_by_request(self, db_session, product):
        inventory_service.replenish(product.id, 10, 100, 150)
        result = sales_service.sell(product.id, 4)

        rows = sales_service.list_sales(request_id=result.request_id)
        assert [r.id for r in rows] == [s.id for s in result.sales]

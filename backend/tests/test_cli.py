"""`flask ledger ...` commands."""

import pytest

from stockledger.models import Product
from stockledger.services import credit_service, inventory_service


@pytest.fixture
def runner(app, db_session):
    return app.test_cli_runner()


class TestLedgerCommands:

    def test_create_product_and_replenish(self, runner, db_session):
        created = runner.invoke(args=["ledger", "create-product", "--sku", "RICE-5KG", "--name", "Rice 5kg"])
        assert created.exit_code == 0, created.output
        product = db_session.query(Product).filter_by(sku="RICE-5KG").one()

        replenished = runner.invoke(args=[
            "ledger", "replenish", str(product.id),
            "--quantity", "10", "--unit-cost", "100", "--unit-price", "150",
        ])

        assert replenished.exit_code == 0, replenished.output
        assert "ACTIVE" in replenished.output
        assert db_session.get(Product, product.id).quantity == 10

    def test_replenish_rejects_zero_cost(self, runner, product):
        result = runner.invoke(args=[
            "ledger", "replenish", str(product.id),
            "--quantity", "10", "--unit-cost", "0", "--unit-price", "150",
        ])

        assert result.exit_code != 0
        assert "unit_cost_cents" in result.output

    def test_status(self, runner, product):
        inventory_service.replenish(product.id, 3, 100, 150)

        result = runner.invoke(args=["ledger", "status"])

        assert result.exit_code == 0
        assert product.sku in result.output
        assert "Low Stock" in result.output

    def test_alerts_lists_open(self, runner, product):
        inventory_service.replenish(product.id, 1, 100, 150)

        result = runner.invoke(args=["ledger", "alerts"])

        assert "REPLENISH_READY" in result.output

    def test_reconcile(self, runner, product, customer):
        inventory_service.replenish(product.id, 5, 100, 150)
        credit_service.borrow(customer.id, product.id, 2)

        result = runner.invoke(args=["ledger", "reconcile"])

        assert result.exit_code == 0
        assert "PASS 1 customer" in result.output

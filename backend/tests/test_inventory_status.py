"""Inventory status classifier: quantity -> level / urgency."""

import pytest

from stockledger.errors import InvalidInput
from stockledger.services.inventory_status import (
    CRITICAL,
    IN_STOCK,
    LOW,
    OUT_OF_STOCK,
    classify,
)


class TestDefaultThresholds:

    @pytest.mark.parametrize(
        "quantity,expected",
        [
            (0, OUT_OF_STOCK),
            (1, CRITICAL),
            (2, CRITICAL),
            (3, LOW),
            (5, LOW),
            (6, IN_STOCK),
            (10_000, IN_STOCK),
        ],
    )
    def test_levels(self, quantity, expected):
        assert classify(quantity) == expected

    def test_out_of_stock_is_most_urgent(self):
        status = classify(0)
        assert status.priority == 1
        assert status.urgency == "critical"
        assert status.should_reorder is True

    def test_in_stock_needs_no_reorder(self):
        status = classify(50)
        assert status.should_reorder is False
        assert status.urgency == "none"
        assert status.label == "In Stock"


class TestCustomThresholds:

    def test_product_threshold_overrides_default(self):
        assert classify(8, low_threshold=10) == LOW
        assert classify(11, low_threshold=10) == IN_STOCK

    def test_critical_threshold(self):
        assert classify(4, low_threshold=10, critical_threshold=4) == CRITICAL
        assert classify(5, low_threshold=10, critical_threshold=4) == LOW

    def test_zero_low_threshold_only_flags_empty(self):
        assert classify(0, low_threshold=0, critical_threshold=0) == OUT_OF_STOCK
        assert classify(1, low_threshold=0, critical_threshold=0) == IN_STOCK


class TestInputHandling:

    def test_same_input_same_output(self):
        assert [classify(3, 5, 2) for _ in range(5)] == [LOW] * 5

    def test_negative_quantity_rejected(self):
        with pytest.raises(InvalidInput):
            classify(-1)

    @pytest.mark.parametrize("bad", [True, 1.5, "3", None])
    def test_non_integer_rejected(self, bad):
        with pytest.raises(InvalidInput):
            classify(bad)

    def test_to_dict(self):
        assert classify(0).to_dict() == {
            "level": "OUT_OF_STOCK",
            "label": "Out of Stock",
            "priority": 1,
            "should_reorder": True,
            "urgency": "critical",
        }

# Overview: Pure stock-level classification used by alerts, summaries and reorder suggestions.

from __future__ import annotations

from dataclasses import dataclass

from ..errors import InvalidInput

DEFAULT_LOW_THRESHOLD = 5
DEFAULT_CRITICAL_THRESHOLD = 2

LEVEL_OUT_OF_STOCK = "OUT_OF_STOCK"
LEVEL_CRITICAL = "CRITICAL"
LEVEL_LOW = "LOW"
LEVEL_IN_STOCK = "IN_STOCK"


@dataclass(frozen=True)
class InventoryStatus:
    level: str
    label: str
    priority: int  # 1 = most urgent
    should_reorder: bool
    urgency: str

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "label": self.label,
            "priority": self.priority,
            "should_reorder": self.should_reorder,
            "urgency": self.urgency,
        }


OUT_OF_STOCK = InventoryStatus(LEVEL_OUT_OF_STOCK, "Out of Stock", 1, True, "critical")
CRITICAL = InventoryStatus(LEVEL_CRITICAL, "Critical Stock", 2, True, "high")
LOW = InventoryStatus(LEVEL_LOW, "Low Stock", 3, True, "medium")
IN_STOCK = InventoryStatus(LEVEL_IN_STOCK, "In Stock", 4, False, "none")


def classify(
    quantity: int,
    low_threshold: int | None = None,
    critical_threshold: int | None = None,
) -> InventoryStatus:
    """
    Map an on-hand quantity to a status level.

        0                      -> OUT_OF_STOCK / critical
        <= critical_threshold  -> CRITICAL     / high
        <= low_threshold       -> LOW          / medium
        otherwise              -> IN_STOCK     / none

    None thresholds fall back to the defaults (5 and 2). The result depends
    only on the arguments.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidInput("quantity must be an integer")
    if quantity < 0:
        raise InvalidInput("quantity must be >= 0")

    low = DEFAULT_LOW_THRESHOLD if low_threshold is None else low_threshold
    critical = DEFAULT_CRITICAL_THRESHOLD if critical_threshold is None else critical_threshold

    if quantity == 0:
        return OUT_OF_STOCK
    if quantity <= critical:
        return CRITICAL
    if quantity <= low:
        return LOW
    return IN_STOCK

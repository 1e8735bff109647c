from .inventory import (
    Product,
    StockBatch,
    StockMovement,
    InventoryAlert,
    CostingMethod,
    BatchStatus,
    BatchSource,
    MovementAction,
    AlertType,
)
from .customers import Customer, DebtTransaction, DebtType
from .sales import Sale, SalePayment

__all__ = [
    'Product', 'StockBatch', 'StockMovement', 'InventoryAlert',
    'CostingMethod', 'BatchStatus', 'BatchSource', 'MovementAction', 'AlertType',
    'Customer', 'DebtTransaction', 'DebtType',
    'Sale', 'SalePayment',
]

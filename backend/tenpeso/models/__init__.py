from .catalog import Product
from .inventory import InventoryBatch, InventoryLot
from .orders import Order, OrderItem, OrderItemLotAllocation, Payment
from .expenses import Expense
from .settings import AppSetting
from .audit import AuditEvent

__all__ = [
    'Product',
    'InventoryBatch', 'InventoryLot',
    'Order', 'OrderItem', 'OrderItemLotAllocation', 'Payment',
    'Expense',
    'AppSetting',
    'AuditEvent',
]

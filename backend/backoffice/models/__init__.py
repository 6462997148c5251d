from .auth import User
from .customers import Customer, Store
from .inventory import (
    Category, Product, StockMovement,
    ProductionLog, ProductionLogItem,
    StockAdjustment, StockAdjustmentItem,
    StockOpname, StockOpnameItem,
)
from .sales import Order, OrderItem, Invoice, InvoiceItem, Payment
from .documents import PurchaseOrder, PurchaseOrderItem, Delivery, DeliveryItem, DocumentSequence
from .finance import SalesTarget, Transaction, TransactionItem

__all__ = [
    'User',
    'Customer', 'Store',
    'Category', 'Product', 'StockMovement',
    'ProductionLog', 'ProductionLogItem',
    'StockAdjustment', 'StockAdjustmentItem',
    'StockOpname', 'StockOpnameItem',
    'Order', 'OrderItem', 'Invoice', 'InvoiceItem', 'Payment',
    'PurchaseOrder', 'PurchaseOrderItem', 'Delivery', 'DeliveryItem', 'DocumentSequence',
    'SalesTarget', 'Transaction', 'TransactionItem',
]

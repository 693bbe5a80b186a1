from .catalog import Vendor, Product
from .orders import Order, OrderItem, ORDER_STATUSES
from .sales import VendorSale, SalesReconciliation, SALE_TYPES, SALE_STATUSES, PAYMENT_METHODS
from .stock import StockMovement, MOVEMENT_TYPES, INBOUND_TYPES, OUTBOUND_TYPES, REFERENCE_TYPES

__all__ = [
    'Vendor', 'Product',
    'Order', 'OrderItem', 'ORDER_STATUSES',
    'VendorSale', 'SalesReconciliation', 'SALE_TYPES', 'SALE_STATUSES', 'PAYMENT_METHODS',
    'StockMovement', 'MOVEMENT_TYPES', 'INBOUND_TYPES', 'OUTBOUND_TYPES', 'REFERENCE_TYPES',
]

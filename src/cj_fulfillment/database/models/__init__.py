"""
SQLAlchemy models for the order tables the fulfillment core touches.

Models:
- Order: Local shop order
- OrderItem: Order line (product/variant and quantity)
- SupplierOrder: Link to the order created at CJ Dropshipping
- OrderTracking: Latest tracking snapshot, one per order
"""

from .base import Base
from .order import Order, OrderItem
from .supplier_order import SupplierOrder
from .order_tracking import OrderTracking

__all__ = [
    "Base",
    "Order",
    "OrderItem",
    "SupplierOrder",
    "OrderTracking",
]

"""
SupplierOrder model - link between a local order and its CJ order.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship

from .base import Base, new_id, utcnow


class SupplierOrder(Base):
    """
    Fulfillment-side order created at the supplier.

    A failed placement is kept with ``supplier_status='failed'`` and the
    supplier's error message; a retry updates the same row.
    """

    __tablename__ = "supplier_orders"

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    # Supplier identifiers
    supplier_order_id = Column(String(128), nullable=True, index=True)
    supplier_order_number = Column(String(128), nullable=True)
    supplier_status = Column(String(64), nullable=True)  # Created, failed, ...

    # Shipping
    tracking_number = Column(String(128), nullable=True)
    logistic_name = Column(String(255), nullable=True)

    error_message = Column(Text, nullable=True)

    # Timestamps
    placed_at = Column(DateTime(timezone=True), nullable=True)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    order = relationship("Order", back_populates="supplier_orders")

    @property
    def is_failed(self) -> bool:
        return self.supplier_status == "failed"

    def __repr__(self):
        return (
            f"<SupplierOrder(order_id={self.order_id}, supplier_order_id='{self.supplier_order_id}', "
            f"status='{self.supplier_status}')>"
        )

"""
Order and OrderItem models - local shop orders.

Only the columns the fulfillment core reads or writes are modelled; the
surrounding shop owns the rest of the schema.
"""

from sqlalchemy import Column, String, Integer, Float, DateTime, ForeignKey, Index, Text
from sqlalchemy.orm import relationship

from .base import Base, new_id, utcnow


class Order(Base):
    """
    Local order placed by a shop customer.

    ``status`` follows pending -> processing -> shipped -> delivered, with
    cancelled and refunded as terminal states.
    """

    __tablename__ = "orders"

    # Primary Key
    id = Column(String(36), primary_key=True, default=new_id)
    order_number = Column(String(64), nullable=False, unique=True)

    # Status
    status = Column(String(32), nullable=False, default="pending")
    payment_status = Column(String(32), nullable=False, default="pending")

    # Customer
    billing_email = Column(String(255), nullable=True)
    billing_name = Column(String(255), nullable=True)
    billing_country = Column(String(100), nullable=True)
    customer_notes = Column(Text, nullable=True)

    # Shipping address
    shipping_name = Column(String(255), nullable=True)
    shipping_address_line1 = Column(String(500), nullable=True)
    shipping_address_line2 = Column(String(500), nullable=True)
    shipping_city = Column(String(255), nullable=True)
    shipping_province = Column(String(255), nullable=True)
    shipping_postal_code = Column(String(32), nullable=True)
    shipping_country = Column(String(100), nullable=True)
    shipping_phone = Column(String(64), nullable=True)

    # Fulfillment
    tracking_number = Column(String(128), nullable=True)
    tracking_url = Column(String(1000), nullable=True)
    total = Column(Float, nullable=True)

    # Timestamps
    shipped_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    supplier_orders = relationship(
        "SupplierOrder",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="SupplierOrder.created_at",
    )
    tracking = relationship("OrderTracking", back_populates="order", uselist=False,
                            cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_orders_status", "status"),
    )

    def __repr__(self):
        return f"<Order(id={self.id}, number='{self.order_number}', status='{self.status}')>"


class OrderItem(Base):
    """One line of a local order."""

    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    product_id = Column(String(128), nullable=False)
    variant_id = Column(String(128), nullable=True)
    product_name = Column(String(500), nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Float, nullable=True)

    order = relationship("Order", back_populates="items")

    def __repr__(self):
        return f"<OrderItem(order_id={self.order_id}, product_id='{self.product_id}', qty={self.quantity})>"

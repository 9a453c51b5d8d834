"""
OrderTracking model - latest tracking snapshot per order.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from .base import Base, new_id, utcnow


class OrderTracking(Base):
    """
    Most recent carrier tracking row for an order (one row per order).

    ``tracking_status`` keeps the carrier's raw text; ``tracking_stage`` is
    its normalized stage, or NULL when the text is not recognized.
    """

    __tablename__ = "order_tracking"

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, unique=True)

    tracking_number = Column(String(128), nullable=True)
    logistic_name = Column(String(255), nullable=True)
    tracking_from = Column(String(100), nullable=True)
    tracking_to = Column(String(100), nullable=True)
    delivery_day = Column(String(64), nullable=True)
    delivery_time = Column(String(64), nullable=True)
    tracking_status = Column(String(500), nullable=True)
    tracking_stage = Column(String(64), nullable=True)
    last_mile_carrier = Column(String(255), nullable=True)
    last_track_number = Column(String(128), nullable=True)

    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    order = relationship("Order", back_populates="tracking")

    def __repr__(self):
        return f"<OrderTracking(order_id={self.order_id}, stage='{self.tracking_stage}')>"

"""
SQLAlchemy ORM models for the restaurant order service.

Tables:
    orders             — order headers (customer, canonical phone, total, status)
    order_items        — order lines, written as one batch per order
    whatsapp_messages  — append-only audit trail of every WhatsApp dispatch
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, DateTime, Text, ForeignKey, Index,
)
from sqlalchemy.orm import relationship

from database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp (SQLite stores DateTime without tzinfo)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _new_id() -> str:
    return str(uuid.uuid4())


class Order(Base):
    """A customer's food order."""
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_new_id)
    customer_name = Column(String(200), nullable=False)
    customer_phone = Column(String(15), nullable=False)  # canonical, e.g. 213551234567
    total_amount = Column(Integer, nullable=False)  # whole currency units
    status = Column(
        String(20), nullable=False, default="pending"
    )  # pending | confirmed | ready | completed | cancelled
    daily_sequence = Column(Integer, nullable=True)  # advisory "Commande N" number
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    items = relationship(
        "OrderItem",
        back_populates="order",
        lazy="select",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderItem.id",
    )

    __table_args__ = (
        # Per-phone sliding-window rate limit and order history
        Index("ix_orders_phone_created", "customer_phone", "created_at"),
        # Daily numbering (count since midnight)
        Index("ix_orders_created", "created_at"),
    )


class OrderItem(Base):
    """One line of an order. Never updated; deleted only with its order."""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(
        String(36),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    menu_item_id = Column(String(64), nullable=False)  # opaque catalogue reference
    item_name_fr = Column(String(200), nullable=False)
    item_name_ar = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Integer, nullable=False)

    # Relationships
    order = relationship("Order", back_populates="items")

    @property
    def subtotal(self) -> int:
        return self.quantity * self.unit_price


class WhatsAppMessage(Base):
    """
    Audit record for one WhatsApp dispatch attempt.

    Written as "pending" before the provider call, then updated exactly once
    to "sent" (with the provider SID) or "failed" (with the error). Never
    deleted. order_id is not a foreign key, so the trail outlives any
    compensated order.
    """
    __tablename__ = "whatsapp_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(36), nullable=True, index=True)
    recipient_phone = Column(String(15), nullable=False)
    message_type = Column(String(20), nullable=False)  # "template" | "session"
    template_name = Column(String(100), nullable=True)
    message_content = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="pending")  # pending | sent | failed
    twilio_message_sid = Column(String(64), nullable=True)
    twilio_error_code = Column(String(50), nullable=True)
    twilio_error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    sent_at = Column(DateTime, nullable=True)

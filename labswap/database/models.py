from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .db import Base


class Lab(Base):
    __tablename__ = "labs"

    id = Column(Integer, primary_key=True, index=True)
    lab_name = Column(String, nullable=False)
    contact_email = Column(String)
    created_at = Column(DateTime, default=datetime.utcnow)

    items = relationship("Item", back_populates="owner")


class Item(Base):
    __tablename__ = "items"
    __table_args__ = (
        Index("idx_items_owner_listing", "owner_id", "listing_type"),
        CheckConstraint("quantity >= 0", name="ck_items_quantity_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("labs.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    listing_type = Column(String, nullable=False, default="exchange")
    status = Column(String, nullable=False, default="active")
    quantity = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    last_updated = Column(DateTime, default=datetime.utcnow)

    owner = relationship("Lab", back_populates="items")


class ExchangeRequest(Base):
    __tablename__ = "exchange_requests"
    __table_args__ = (
        Index("idx_exchange_requests_initiator_created", "initiator_id", "created_at"),
        Index("idx_exchange_requests_responder_status", "responder_id", "status", "created_at"),
        Index("idx_exchange_requests_status", "status"),
        Index("idx_exchange_requests_expires_at", "expires_at"),
        CheckConstraint("requested_quantity >= 1", name="ck_exchange_requests_requested_quantity"),
    )

    id = Column(String(36), primary_key=True)
    request_number = Column(String(32), unique=True, nullable=False)
    initiator_id = Column(Integer, ForeignKey("labs.id"), nullable=False)
    responder_id = Column(Integer, ForeignKey("labs.id"), nullable=False)
    target_item_id = Column(Integer, ForeignKey("items.id"), nullable=False)
    requested_quantity = Column(Integer, nullable=False)
    offer_kind = Column(String(20), nullable=False)
    offered_item_id = Column(Integer, ForeignKey("items.id"))
    offer = Column(JSON, nullable=False)
    message = Column(Text)
    status = Column(String(20), nullable=False, default="pending")
    counter_offer = Column(JSON)
    rejection_reason = Column(Text)
    withdrawal_reason = Column(Text)
    source = Column(String(10), default="api")
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    last_status_change_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=False)
    viewed_at = Column(DateTime)
    responded_at = Column(DateTime)
    withdrawn_at = Column(DateTime)

    initiator = relationship("Lab", foreign_keys=[initiator_id])
    responder = relationship("Lab", foreign_keys=[responder_id])
    target_item = relationship("Item", foreign_keys=[target_item_id])
    offered_item = relationship("Item", foreign_keys=[offered_item_id])
    events = relationship(
        "ExchangeStatusEvent",
        back_populates="request",
        order_by="ExchangeStatusEvent.id",
    )


class ExchangeStatusEvent(Base):
    """Append-only audit row, one per status transition (creation included)."""

    __tablename__ = "exchange_status_events"
    __table_args__ = (Index("idx_exchange_status_events_request", "request_id", "id"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    request_id = Column(String(36), ForeignKey("exchange_requests.id"), nullable=False)
    from_status = Column(String(20))
    to_status = Column(String(20), nullable=False)
    action = Column(String(20), nullable=False)
    actor_id = Column(Integer)
    reason = Column(Text)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    request = relationship("ExchangeRequest", back_populates="events")

from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import relationship
from app.db.base import Base


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"            # waiting for admin confirmation
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"        # absorbing
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"            # client absent


class LocationType(str, Enum):
    """Where the service takes place."""

    CLIENT_ADDRESS = "client_address"
    PROVIDER_LOCATION = "provider_location"
    TO_BE_DETERMINED = "to_be_determined"


class PaymentMethod(str, Enum):
    CASH = "cash"
    MOBILE_MONEY = "mobile_money"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    booking_number = Column(String, unique=True, index=True, nullable=False)

    client_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    provider_id = Column(Integer, ForeignKey("service_providers.id"), nullable=False, index=True)

    # contact snapshot taken at creation, not kept in sync with the user
    contact_name = Column(String, nullable=False)
    contact_phone = Column(String, nullable=True)
    contact_email = Column(String, nullable=True)

    scheduled_date = Column(Date, nullable=False)
    scheduled_time = Column(String, nullable=False)  # "14:30"

    # service location
    location_type = Column(String, nullable=False)
    location_address = Column(String, nullable=True)
    location_city = Column(String, nullable=True)
    location_district = Column(String, nullable=True)
    location_lat = Column(Float, nullable=True)
    location_lng = Column(Float, nullable=True)
    location_instructions = Column(String, nullable=True)

    client_notes = Column(String, nullable=True)
    provider_notes = Column(String, nullable=True)
    admin_notes = Column(String, nullable=True)

    # pricing
    service_total = Column(Float, nullable=False)
    platform_fee = Column(Float, nullable=False, default=0)
    total_amount = Column(Float, nullable=False)
    currency = Column(String, nullable=False, default="FCFA")

    status = Column(String, nullable=False, default=BookingStatus.PENDING.value)

    # payment is recorded only
    payment_method = Column(String, nullable=False)
    payment_status = Column(String, nullable=False, default=PaymentStatus.PENDING.value)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    transaction_id = Column(String, nullable=True)

    provider_can_see_contact = Column(Boolean, nullable=False, default=False)

    client_rating = Column(Integer, nullable=True)
    client_rating_comment = Column(String, nullable=True)
    client_rated_at = Column(DateTime(timezone=True), nullable=True)
    provider_rating = Column(Integer, nullable=True)
    provider_rating_comment = Column(String, nullable=True)
    provider_rated_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # bumped on every flush; UPDATEs are issued "WHERE version = <loaded>"
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # relationships
    client = relationship("User", foreign_keys=[client_id], lazy="selectin")
    provider = relationship("ServiceProvider", foreign_keys=[provider_id], lazy="selectin")
    lines = relationship(
        "BookingLine",
        back_populates="booking",
        order_by="BookingLine.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    status_history = relationship(
        "BookingStatusHistory",
        back_populates="booking",
        order_by="BookingStatusHistory.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class BookingLine(Base):
    __tablename__ = "booking_lines"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    position = Column(Integer, nullable=False)

    quantity = Column(Integer, nullable=False, default=1)
    price = Column(Float, nullable=False)  # line total, quantity and options applied
    selected_options = Column(JSON, nullable=False, default=list)  # [{"name": ..., "price": ...}]

    booking = relationship("Booking", back_populates="lines")
    service = relationship("Service", lazy="selectin")


class BookingStatusHistory(Base):
    """Append-only; one row per status change, creation included."""
    __tablename__ = "booking_status_history"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String, nullable=False)
    changed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    changed_at = Column(DateTime(timezone=True), nullable=False)
    note = Column(String, nullable=False, default="")

    booking = relationship("Booking", back_populates="status_history")

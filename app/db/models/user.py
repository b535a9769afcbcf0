# app/db/models/user.py
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship
from app.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    phone = Column(String, nullable=True)

    # client / provider / admin
    role = Column(String, nullable=False, default="client", server_default="client")
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # set only for provider accounts
    provider_profile = relationship(
        "ServiceProvider",
        back_populates="owner",
        uselist=False,
        lazy="selectin",
    )

    booking_history = relationship(
        "ClientBookingLink",
        back_populates="user",
        order_by="ClientBookingLink.linked_at",
    )

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class ClientBookingLink(Base):
    """
    Denormalised booking history of a client.
    Written best-effort after a booking is created; the bookings table
    itself (bookings.client_id) stays the source of truth.
    """
    __tablename__ = "client_booking_history"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), primary_key=True)
    linked_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="booking_history")

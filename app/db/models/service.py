# app/db/models/service.py

from sqlalchemy import Column, DateTime, Integer, String, ForeignKey, Boolean, Float, func
from sqlalchemy.orm import relationship
from app.db.base import Base


class Service(Base):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)

    # Foreign keys
    provider_id = Column(Integer, ForeignKey("service_providers.id", ondelete="CASCADE"), nullable=False)

    # Basic details
    title = Column(String, nullable=False)
    category = Column(String, nullable=True)

    # Pricing
    base_price = Column(Float, nullable=False)
    price_type = Column(String, nullable=False, default="fixed")  # fixed / hourly / estimate
    currency = Column(String, nullable=False, default="FCFA")
    has_discount = Column(Boolean, nullable=False, default=False)
    discounted_price = Column(Float, nullable=True)  # OPTIONAL

    # Status
    is_available = Column(Boolean, nullable=False, default=True)

    # Statistics
    booking_count = Column(Integer, nullable=False, default=0)
    average_rating = Column(Float, nullable=False, default=0)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    provider = relationship("ServiceProvider", back_populates="services")
    additional_options = relationship(
        "ServiceOption",
        back_populates="service",
        lazy="selectin",
        order_by="ServiceOption.id",
    )
    ratings = relationship(
        "ServiceRating",
        back_populates="service",
        order_by="ServiceRating.id",
    )


class ServiceOption(Base):
    """Paid extra a client can add to a service line (flat amount)."""
    __tablename__ = "service_options"

    id = Column(Integer, primary_key=True, index=True)
    service_id = Column(Integer, ForeignKey("services.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    price = Column(Float, nullable=False, default=0)
    description = Column(String, nullable=True)

    service = relationship("Service", back_populates="additional_options")


class ServiceRating(Base):
    __tablename__ = "service_ratings"

    id = Column(Integer, primary_key=True, index=True)
    service_id = Column(Integer, ForeignKey("services.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True)

    rating = Column(Integer, nullable=False)   # 1..5
    comment = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    service = relationship("Service", back_populates="ratings")

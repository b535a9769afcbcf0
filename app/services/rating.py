# app/services/rating.py
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import AuthorizationError, ConflictError, InternalError, ValidationError
from app.db.models.booking import Booking, BookingStatus
from app.db.models.provider import ProviderRating, ServiceProvider
from app.db.models.service import Service, ServiceRating
from app.db.models.user import User
from app.services.booking_lifecycle import commit_booking

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


def _check_rating_value(rating) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")
    return rating


def _mean(values) -> float:
    values = list(values)
    if not values:
        return 0.0
    return float(sum(values)) / len(values)


# Helper: recalc provider aggregates
def recalculate_provider_rating(db: Session, provider: ServiceProvider) -> None:
    rows = db.query(ProviderRating.rating).filter(ProviderRating.provider_id == provider.id).all()
    provider.average_rating = _mean(r[0] for r in rows)
    provider.total_ratings = len(rows)


def recalculate_service_rating(db: Session, service: Service) -> None:
    rows = db.query(ServiceRating.rating).filter(ServiceRating.service_id == service.id).all()
    service.average_rating = _mean(r[0] for r in rows)


def _apply_aggregates(db: Session, booking: Booking, user: User, rating: int, comment: str) -> None:
    provider = db.query(ServiceProvider).filter(ServiceProvider.id == booking.provider_id).first()
    if provider is not None:
        db.add(ProviderRating(
            provider_id=provider.id,
            user_id=user.id,
            booking_id=booking.id,
            rating=rating,
            comment=comment,
        ))
        db.flush()
        recalculate_provider_rating(db, provider)

    service_ids = list(dict.fromkeys(line.service_id for line in booking.lines))
    for service_id in service_ids:
        service = db.query(Service).filter(Service.id == service_id).first()
        if service is None:
            continue
        db.add(ServiceRating(
            service_id=service.id,
            user_id=user.id,
            booking_id=booking.id,
            rating=rating,
            comment=comment,
        ))
        db.flush()
        recalculate_service_rating(db, service)

    db.commit()


def rate_booking(
    db: Session,
    booking: Booking,
    client: User,
    rating,
    comment: Optional[str] = None,
) -> Booking:
    """
    Client rates a completed booking, once.

    The booking's rating is committed first and acts as the guard: a retry
    or a concurrent duplicate is rejected from then on, even if the provider
    and service aggregates below failed to update on the earlier attempt.
    """
    rating = _check_rating_value(rating)

    if booking.client_id != client.id:
        raise AuthorizationError("Not allowed to rate this booking")
    if booking.status != BookingStatus.COMPLETED.value:
        raise ConflictError("Only completed bookings can be rated")
    if booking.client_rating is not None:
        raise ConflictError("You have already rated this booking")

    comment = comment or ""
    booking.client_rating = rating
    booking.client_rating_comment = comment
    booking.client_rated_at = datetime.now(timezone.utc)
    commit_booking(db, booking)

    try:
        _apply_aggregates(db, booking, client, rating, comment)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Rating aggregates not updated for booking %s", booking.booking_number)
        raise InternalError("Rating saved but provider/service averages could not be updated")

    db.refresh(booking)
    logger.info("Booking %s rated %s by client #%s", booking.booking_number, rating, client.id)
    return booking


def rate_client(
    db: Session,
    booking: Booking,
    provider_user: User,
    rating,
    comment: Optional[str] = None,
) -> Booking:
    """Provider rates the client of a completed booking, once. Booking-local."""
    rating = _check_rating_value(rating)

    profile = provider_user.provider_profile
    if profile is None or profile.id != booking.provider_id:
        raise AuthorizationError("Not allowed to rate this booking")
    if booking.status != BookingStatus.COMPLETED.value:
        raise ConflictError("Only completed bookings can be rated")
    if booking.provider_rating is not None:
        raise ConflictError("You have already rated this client")

    booking.provider_rating = rating
    booking.provider_rating_comment = comment or ""
    booking.provider_rated_at = datetime.now(timezone.utc)
    commit_booking(db, booking)

    logger.info("Client of booking %s rated %s by provider #%s", booking.booking_number, rating, profile.id)
    return booking

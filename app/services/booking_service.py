# app/services/booking_service.py
import logging
import math
import re
import secrets
import string
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from app.db.models.booking import (
    Booking,
    BookingLine,
    BookingStatus,
    LocationType,
    PaymentStatus,
)
from app.db.models.service import Service
from app.db.models.user import ClientBookingLink, User
from app.schemas.booking import BookingCreate
from app.services import catalog
from app.services.booking_lifecycle import (
    ADMIN,
    CLIENT,
    apply_transition,
    commit_booking,
    parse_status,
    record_status,
)
from app.services.pricing import compute_pricing

logger = logging.getLogger(__name__)

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
_NUMBER_ALPHABET = string.ascii_uppercase + string.digits

CLIENT_CANCEL_NOTE = "Cancelled by client"


def generate_booking_number(db: Session) -> str:
    """BK + YYMMDD + 6 random characters, e.g. BK241019X7K2QD."""
    prefix = "BK" + datetime.now(timezone.utc).strftime("%y%m%d")
    while True:
        candidate = prefix + "".join(secrets.choice(_NUMBER_ALPHABET) for _ in range(6))
        exists = db.query(Booking.id).filter(Booking.booking_number == candidate).first()
        if not exists:
            return candidate


# -------------------------
# Create
# -------------------------
def _validate_request(payload: BookingCreate) -> LocationType:
    if not payload.services:
        raise ValidationError("Select at least one service")

    if not payload.scheduled_date or not payload.scheduled_time:
        raise ValidationError("Provide an appointment date and time")
    if not _TIME_RE.match(payload.scheduled_time):
        raise ValidationError("scheduled_time must use the HH:MM format")

    location = payload.service_location
    if location is None or not location.type:
        raise ValidationError("Specify where the service takes place")
    try:
        return LocationType(location.type)
    except ValueError:
        raise ValidationError(
            f"Unknown location type. Choose from: {', '.join(t.value for t in LocationType)}"
        )


def _link_client_history(db: Session, client: User, booking: Booking) -> None:
    try:
        db.add(ClientBookingLink(user_id=client.id, booking_id=booking.id))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.warning(
            "Could not link booking %s to client #%s history",
            booking.booking_number, client.id, exc_info=True,
        )


def _bump_booking_counts(db: Session, service_ids: Iterable[int]) -> None:
    for service_id in sorted(set(service_ids)):
        try:
            db.execute(
                update(Service)
                .where(Service.id == service_id)
                .values(booking_count=Service.booking_count + 1)
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.warning("Could not increment booking_count of service #%s", service_id, exc_info=True)


def create_booking(db: Session, client: User, payload: BookingCreate) -> Booking:
    location_type = _validate_request(payload)

    services = catalog.get_available_services(db, (line.service_id for line in payload.services))
    pricing = compute_pricing(payload.services, services)

    provider = catalog.get_provider(db, pricing.provider_id)
    if not provider.accepts_bookings:
        raise ConflictError("This provider is not available at the moment")

    location = payload.service_location
    booking = Booking(
        booking_number=generate_booking_number(db),
        client_id=client.id,
        provider_id=provider.id,
        contact_name=client.name,
        contact_phone=client.phone,
        contact_email=client.email,
        scheduled_date=payload.scheduled_date,
        scheduled_time=payload.scheduled_time,
        location_type=location_type.value,
        location_address=location.address,
        location_city=location.city,
        location_district=location.district,
        location_lat=location.coordinates.lat if location.coordinates else None,
        location_lng=location.coordinates.lng if location.coordinates else None,
        location_instructions=location.instructions,
        client_notes=payload.client_notes,
        service_total=pricing.service_total,
        platform_fee=pricing.platform_fee,
        total_amount=pricing.total_amount,
        currency=pricing.currency,
        status=BookingStatus.PENDING.value,
        payment_method=payload.payment_method.value,
        payment_status=PaymentStatus.PENDING.value,
        provider_can_see_contact=False,
    )
    for position, line in enumerate(pricing.lines):
        booking.lines.append(BookingLine(
            service_id=line.service_id,
            position=position,
            quantity=line.quantity,
            price=line.price,
            selected_options=line.selected_options,
        ))
    record_status(booking, BookingStatus.PENDING, client, "")

    db.add(booking)
    db.commit()
    db.refresh(booking)
    logger.info(
        "Booking %s created by client #%s for provider #%s (total %s %s)",
        booking.booking_number, client.id, provider.id, booking.total_amount, booking.currency,
    )

    # denormalised counters; failures are logged, the booking stands
    _link_client_history(db, client, booking)
    _bump_booking_counts(db, (line.service_id for line in pricing.lines))

    db.refresh(booking)
    return booking


# -------------------------
# Read
# -------------------------
def get_booking(db: Session, booking_id: int) -> Booking:
    booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if not booking:
        raise NotFoundError("Booking not found")
    return booking


def _status_filter(status: Optional[str]) -> Optional[str]:
    if not status:
        return None
    return parse_status(status).value


def list_client_bookings(db: Session, client: User, status: Optional[str] = None) -> List[Booking]:
    q = db.query(Booking).filter(Booking.client_id == client.id)
    status = _status_filter(status)
    if status:
        q = q.filter(Booking.status == status)
    return q.order_by(Booking.created_at.desc(), Booking.id.desc()).all()


def list_provider_bookings(db: Session, user: User, status: Optional[str] = None) -> List[Booking]:
    profile = catalog.get_provider_profile(user)
    if profile is None:
        raise AuthorizationError("You need a provider profile to access this resource")

    q = db.query(Booking).filter(Booking.provider_id == profile.id)
    status = _status_filter(status)
    if status:
        q = q.filter(Booking.status == status)
    return q.order_by(Booking.scheduled_date.asc(), Booking.scheduled_time.asc(), Booking.id.asc()).all()


def list_all_bookings(
    db: Session,
    status: Optional[str] = None,
    provider_id: Optional[int] = None,
    client_id: Optional[int] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[Booking], int, int]:
    """Returns (rows, total, pages)."""
    q = db.query(Booking)
    status = _status_filter(status)
    if status:
        q = q.filter(Booking.status == status)
    if provider_id:
        q = q.filter(Booking.provider_id == provider_id)
    if client_id:
        q = q.filter(Booking.client_id == client_id)

    total = q.count()
    offset = (page - 1) * limit
    rows = q.order_by(Booking.created_at.desc(), Booking.id.desc()).offset(offset).limit(limit).all()
    pages = math.ceil(total / limit) if limit else 0
    return rows, total, pages


# -------------------------
# Transitions
# -------------------------
def update_status(
    db: Session,
    booking_id: int,
    admin: User,
    status: Optional[str],
    note: Optional[str] = None,
) -> Booking:
    target = parse_status(status)
    booking = get_booking(db, booking_id)
    apply_transition(db, booking, target, admin, ADMIN, note or "")
    return commit_booking(db, booking)


def cancel_booking(db: Session, booking_id: int, client: User, reason: Optional[str] = None) -> Booking:
    booking = get_booking(db, booking_id)

    if booking.client_id != client.id:
        raise AuthorizationError("Not allowed to cancel this booking")

    current = BookingStatus(booking.status)
    if current in (BookingStatus.COMPLETED, BookingStatus.CANCELLED):
        raise ConflictError("This booking cannot be cancelled (already completed or cancelled)")
    if current is BookingStatus.IN_PROGRESS:
        raise ConflictError("A booking in progress cannot be cancelled. Contact an administrator.")

    note = f"{CLIENT_CANCEL_NOTE}. Reason: {reason}" if reason else CLIENT_CANCEL_NOTE
    apply_transition(db, booking, BookingStatus.CANCELLED, client, CLIENT, note)
    return commit_booking(db, booking)

# app/services/booking_lifecycle.py
"""
Booking status state machine.

Every status change goes through apply_transition(), which owns the
transition table, the absorbing-`completed` rule, the status history and
the side effects of entering a state.

    pending -> confirmed -> in_progress -> completed      (admin)
    pending | confirmed | no_show -> cancelled            (client or admin)
    pending | confirmed -> no_show                        (admin)

Admins may also move any non-completed booking to any other status.
`completed` accepts no transition from anyone, itself included.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, FrozenSet, Tuple

from sqlalchemy import update
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import ConflictError, ValidationError
from app.db.models.booking import Booking, BookingStatus, BookingStatusHistory
from app.db.models.provider import ServiceProvider
from app.db.models.user import User

logger = logging.getLogger(__name__)

ADMIN = "admin"
CLIENT = "client"

VALID_STATUSES: Tuple[str, ...] = tuple(s.value for s in BookingStatus)

# (current, requested) -> roles allowed to request it
TRANSITIONS: Dict[Tuple[BookingStatus, BookingStatus], FrozenSet[str]] = {
    (current, target): frozenset({ADMIN})
    for current in BookingStatus
    if current is not BookingStatus.COMPLETED
    for target in BookingStatus
}
TRANSITIONS[(BookingStatus.PENDING, BookingStatus.CANCELLED)] = frozenset({ADMIN, CLIENT})
TRANSITIONS[(BookingStatus.CONFIRMED, BookingStatus.CANCELLED)] = frozenset({ADMIN, CLIENT})
TRANSITIONS[(BookingStatus.NO_SHOW, BookingStatus.CANCELLED)] = frozenset({ADMIN, CLIENT})

# timestamp column stamped when a booking enters the state
ENTRY_TIMESTAMPS: Dict[BookingStatus, str] = {
    BookingStatus.CONFIRMED: "confirmed_at",
    BookingStatus.COMPLETED: "completed_at",
    BookingStatus.CANCELLED: "cancelled_at",
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def parse_status(value) -> BookingStatus:
    try:
        return BookingStatus(value)
    except ValueError:
        raise ValidationError(
            f"Invalid status. Choose from: {', '.join(VALID_STATUSES)}",
            details={"valid_statuses": list(VALID_STATUSES)},
        )


def can_transition(current: BookingStatus, target: BookingStatus, role: str) -> bool:
    return role in TRANSITIONS.get((current, target), frozenset())


def check_transition(current: BookingStatus, target: BookingStatus, role: str) -> None:
    if current is BookingStatus.COMPLETED:
        raise ConflictError("Cannot modify a completed booking")
    if not can_transition(current, target, role):
        raise ConflictError(
            f"A {role} cannot move a booking from '{current.value}' to '{target.value}'"
        )


def record_status(booking: Booking, status: BookingStatus, actor: User, note: str = "") -> BookingStatusHistory:
    entry = BookingStatusHistory(
        status=status.value,
        changed_by_id=actor.id if actor else None,
        changed_at=_now(),
        note=note or "",
    )
    booking.status_history.append(entry)
    return entry


def apply_transition(
    db: Session,
    booking: Booking,
    new_status,
    actor: User,
    role: str,
    note: str = "",
) -> Booking:
    """
    Validate and apply a status change in the session. Does not commit;
    callers finish with commit_booking() so a lost race surfaces as a
    ConflictError and nothing from this request is kept.
    """
    target = parse_status(new_status)
    current = BookingStatus(booking.status)
    check_transition(current, target, role)

    entry = record_status(booking, target, actor, note)
    booking.status = target.value
    # always dirty the row so the versioned UPDATE runs, even for same-status moves
    booking.updated_at = entry.changed_at

    stamp = ENTRY_TIMESTAMPS.get(target)
    if stamp:
        setattr(booking, stamp, entry.changed_at)

    if target is BookingStatus.COMPLETED:
        # current can't be completed here, so this runs once per booking
        db.execute(
            update(ServiceProvider)
            .where(ServiceProvider.id == booking.provider_id)
            .values(completed_bookings=ServiceProvider.completed_bookings + 1)
        )

    logger.info(
        "Booking %s: %s -> %s by %s #%s",
        booking.booking_number, current.value, target.value, role, getattr(actor, "id", None),
    )
    return booking


def commit_booking(db: Session, booking: Booking) -> Booking:
    """Commit pending changes; the versioned UPDATE fails if someone else committed first."""
    booking_id = booking.id
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        logger.warning("Concurrent update lost on booking id=%s", booking_id)
        raise ConflictError("Booking was modified by another request, reload and retry")
    db.refresh(booking)
    return booking

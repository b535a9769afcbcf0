# app/services/visibility.py
"""
Read-time projection of a booking for a given viewer.

Providers see masked client contact details until an admin reveals them.
Nothing here is persisted; the stored booking always keeps the real contact.
"""
import logging
from typing import Any, Dict

from sqlalchemy.orm import Session

from app.core.exceptions import AuthorizationError
from app.db.models.booking import Booking
from app.db.models.user import User
from app.schemas.booking import BookingResponse, ContactInfo
from app.services.booking_lifecycle import commit_booking

logger = logging.getLogger(__name__)

VIEWER_CLIENT = "client"
VIEWER_PROVIDER = "provider"
VIEWER_ADMIN = "admin"

MASK = "***********"


def masked_contact(booking_number: str) -> ContactInfo:
    return ContactInfo(name=f"Client #{booking_number[-4:]}", phone=MASK, email=MASK)


def is_redacted(booking: Booking, viewer_role: str) -> bool:
    # depends on the flag only, never on status
    return viewer_role == VIEWER_PROVIDER and not booking.provider_can_see_contact


def present_booking(booking: Booking, viewer_role: str) -> Dict[str, Any]:
    view = BookingResponse.from_booking(booking)
    if not is_redacted(booking, viewer_role):
        return view.model_dump(mode="json")

    # history entries written by the client would still carry its user id
    history = [
        h.model_copy(update={"changed_by": None}) if h.changed_by == booking.client_id else h
        for h in view.status_history
    ]
    view = view.model_copy(update={
        "contact_info": masked_contact(booking.booking_number),
        "status_history": history,
    })
    return view.model_dump(mode="json", exclude={"client"})


def viewer_role_for(booking: Booking, user: User) -> str:
    """Decide which projection `user` gets for `booking`, or refuse access."""
    if user.is_admin:
        return VIEWER_ADMIN
    if booking.client_id == user.id:
        return VIEWER_CLIENT
    profile = user.provider_profile
    if profile is not None and booking.provider_id == profile.id:
        return VIEWER_PROVIDER
    raise AuthorizationError("Not allowed to view this booking")


def reveal_contact(db: Session, booking: Booking, admin: User) -> Booking:
    """Let the provider see the client's contact details. There is no undo."""
    if not booking.provider_can_see_contact:
        booking.provider_can_see_contact = True
        commit_booking(db, booking)
        logger.info("Contact revealed on booking %s by admin #%s", booking.booking_number, admin.id)
    return booking

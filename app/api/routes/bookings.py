from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import envelope
from app.core.security import get_current_user, require_admin, require_client
from app.db.base import get_db
from app.db.models.user import User
from app.schemas.booking import BookingCancel, BookingCreate, BookingRate, BookingStatusUpdate
from app.services import booking_service, rating
from app.services.visibility import (
    VIEWER_ADMIN,
    VIEWER_CLIENT,
    VIEWER_PROVIDER,
    present_booking,
    viewer_role_for,
)

router = APIRouter(prefix="/bookings", tags=["bookings"])


# Client creates booking

@router.post("", status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: BookingCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_client),
):
    booking = booking_service.create_booking(db, current_user, payload)
    return envelope(
        True,
        message="Booking created. Waiting for administrator confirmation.",
        data=present_booking(booking, VIEWER_CLIENT),
    )


# Client views their bookings

@router.get("/my-bookings")
def my_bookings(
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    bookings = booking_service.list_client_bookings(db, current_user, status)
    return envelope(
        True,
        count=len(bookings),
        data=[present_booking(b, VIEWER_CLIENT) for b in bookings],
    )


# Provider views their bookings (contact gated)

@router.get("/provider-bookings")
def provider_bookings(
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    bookings = booking_service.list_provider_bookings(db, current_user, status)
    return envelope(
        True,
        count=len(bookings),
        data=[present_booking(b, VIEWER_PROVIDER) for b in bookings],
    )


# Admin views all bookings

@router.get("/all")
def all_bookings(
    status: Optional[str] = Query(None),
    provider: Optional[int] = Query(None),
    client: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    limit = min(limit or settings.default_page_size, settings.max_page_size)
    rows, total, pages = booking_service.list_all_bookings(
        db, status=status, provider_id=provider, client_id=client, page=page, limit=limit,
    )
    return envelope(
        True,
        count=len(rows),
        total=total,
        page=page,
        pages=pages,
        data=[present_booking(b, VIEWER_ADMIN) for b in rows],
    )


# Any party of the booking

@router.get("/{booking_id}")
def get_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    booking = booking_service.get_booking(db, booking_id)
    role = viewer_role_for(booking, current_user)
    return envelope(True, data=present_booking(booking, role))


# Admin moves a booking through its lifecycle

@router.patch("/{booking_id}/status")
def update_booking_status(
    booking_id: int,
    payload: BookingStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    booking = booking_service.update_status(db, booking_id, current_user, payload.status, payload.note)
    return envelope(
        True,
        message=f'Status updated to "{booking.status}"',
        data=present_booking(booking, VIEWER_ADMIN),
    )


# Client cancels booking

@router.patch("/{booking_id}/cancel")
def cancel_booking(
    booking_id: int,
    payload: Optional[BookingCancel] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    reason = payload.reason if payload else None
    booking = booking_service.cancel_booking(db, booking_id, current_user, reason)
    return envelope(True, message="Booking cancelled", data=present_booking(booking, VIEWER_CLIENT))


# Client rates a completed booking

@router.post("/{booking_id}/rate")
def rate_booking(
    booking_id: int,
    payload: BookingRate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    booking = booking_service.get_booking(db, booking_id)
    booking = rating.rate_booking(db, booking, current_user, payload.rating, payload.comment)
    return envelope(True, message="Rating added", data=present_booking(booking, VIEWER_CLIENT))


# Provider rates the client of a completed booking

@router.post("/{booking_id}/rate-client")
def rate_client(
    booking_id: int,
    payload: BookingRate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    booking = booking_service.get_booking(db, booking_id)
    booking = rating.rate_client(db, booking, current_user, payload.rating, payload.comment)
    return envelope(True, message="Client rated", data=present_booking(booking, VIEWER_PROVIDER))

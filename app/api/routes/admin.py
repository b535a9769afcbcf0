# app/api/routes/admin.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.errors import envelope
from app.core.security import require_admin
from app.db.base import get_db
from app.db.models.user import User
from app.services import booking_service
from app.services.visibility import VIEWER_ADMIN, present_booking, reveal_contact

router = APIRouter(prefix="/admin", tags=["admin"])


# --------------------------------------------------
# Bookings: reveal client contact to the provider
# --------------------------------------------------
@router.patch("/bookings/{booking_id}/reveal-contact")
def admin_reveal_contact(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    booking = booking_service.get_booking(db, booking_id)
    booking = reveal_contact(db, booking, current_user)
    return envelope(
        True,
        message="Client contact details are now visible to the provider",
        data=present_booking(booking, VIEWER_ADMIN),
    )

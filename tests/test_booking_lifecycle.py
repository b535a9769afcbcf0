import pytest

from app.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from app.db.models.booking import Booking, BookingStatus
from app.db.models.provider import ServiceProvider
from app.db.models.service import Service
from app.schemas.booking import BookingCreate
from app.services import booking_service
from app.services.booking_lifecycle import ADMIN, CLIENT, TRANSITIONS, can_transition


ALL = list(BookingStatus)


# --------------------------
# Transition table
# --------------------------
@pytest.mark.parametrize("target", ALL)
def test_completed_accepts_nothing(target):
    assert not can_transition(BookingStatus.COMPLETED, target, ADMIN)
    assert not can_transition(BookingStatus.COMPLETED, target, CLIENT)
    assert (BookingStatus.COMPLETED, target) not in TRANSITIONS


@pytest.mark.parametrize("current", [s for s in ALL if s is not BookingStatus.COMPLETED])
@pytest.mark.parametrize("target", ALL)
def test_admin_may_set_any_status_on_open_bookings(current, target):
    assert can_transition(current, target, ADMIN)


def test_client_may_only_cancel():
    allowed = {(c, t) for c in ALL for t in ALL if can_transition(c, t, CLIENT)}
    assert allowed == {
        (BookingStatus.PENDING, BookingStatus.CANCELLED),
        (BookingStatus.CONFIRMED, BookingStatus.CANCELLED),
        (BookingStatus.NO_SHOW, BookingStatus.CANCELLED),
    }


# --------------------------
# Creation
# --------------------------
def test_new_booking_is_pending_with_one_history_entry(make_booking, client_user):
    booking = make_booking()

    assert booking.status == "pending"
    assert booking.booking_number.startswith("BK")
    assert len(booking.status_history) == 1
    entry = booking.status_history[0]
    assert entry.status == "pending"
    assert entry.changed_by_id == client_user.id
    assert entry.note == ""


def test_contact_info_is_a_snapshot(db, make_booking, client_user):
    booking = make_booking()

    client_user.name = "Awa D. (renamed)"
    client_user.phone = "+221779999999"
    db.commit()
    db.refresh(booking)

    assert booking.contact_name == "Awa Diallo"
    assert booking.contact_phone == "+221770000001"
    assert booking.contact_email == "awa@example.com"


def test_creation_updates_counters_and_client_history(db, make_booking, client_user, service_a, service_b):
    booking = make_booking()

    db.refresh(service_a)
    db.refresh(service_b)
    db.refresh(client_user)
    assert service_a.booking_count == 1
    assert service_b.booking_count == 1
    assert [link.booking_id for link in client_user.booking_history] == [booking.id]


def test_suspended_provider_rejects_bookings(db, make_booking, provider):
    provider.is_suspended = True
    db.commit()

    with pytest.raises(ConflictError):
        make_booking()


def test_inactive_provider_rejects_bookings(db, make_booking, provider):
    provider.is_active = False
    db.commit()

    with pytest.raises(ConflictError):
        make_booking()


def test_mixed_providers_leave_nothing_behind(db, client_user, booking_payload, service_a, other_service):
    payload = BookingCreate(**booking_payload(service_a.id, other_service.id))

    with pytest.raises(ValidationError):
        booking_service.create_booking(db, client_user, payload)

    db.expire_all()
    assert db.query(Booking).count() == 0
    assert db.get(Service, service_a.id).booking_count == 0
    assert db.get(Service, other_service.id).booking_count == 0


def test_unavailable_service_is_not_found(db, make_booking, service_a):
    service_a.is_available = False
    db.commit()

    with pytest.raises(NotFoundError):
        make_booking()


# --------------------------
# Admin transitions
# --------------------------
def test_happy_path_stamps_timestamps(db, make_booking, admin_user):
    booking = make_booking(BookingStatus.COMPLETED)

    assert booking.status == "completed"
    assert booking.confirmed_at is not None
    assert booking.completed_at is not None
    assert booking.cancelled_at is None
    assert [h.status for h in booking.status_history] == ["pending", "confirmed", "in_progress", "completed"]
    assert all(h.changed_by_id == admin_user.id for h in booking.status_history[1:])


def test_invalid_status_lists_valid_values(make_booking, admin_user, db):
    booking = make_booking()

    with pytest.raises(ValidationError) as exc:
        booking_service.update_status(db, booking.id, admin_user, "archived")

    for value in ("pending", "confirmed", "in_progress", "completed", "cancelled", "no_show"):
        assert value in exc.value.message


@pytest.mark.parametrize("target", [s.value for s in ALL])
def test_completed_is_absorbing(db, make_booking, admin_user, target):
    booking = make_booking(BookingStatus.COMPLETED)
    history_before = len(booking.status_history)

    with pytest.raises(ConflictError) as exc:
        booking_service.update_status(db, booking.id, admin_user, target)

    assert "completed" in exc.value.message
    db.refresh(booking)
    assert booking.status == "completed"
    assert len(booking.status_history) == history_before


def test_completion_counts_once_and_retry_is_rejected(db, make_booking, admin_user, provider):
    booking = make_booking(BookingStatus.CONFIRMED)

    booking_service.update_status(db, booking.id, admin_user, "completed", "done")
    db.refresh(provider)
    assert provider.completed_bookings == 1

    with pytest.raises(ConflictError):
        booking_service.update_status(db, booking.id, admin_user, "completed", "done again")

    db.expire_all()
    assert db.get(ServiceProvider, provider.id).completed_bookings == 1


def test_admin_may_reopen_a_cancelled_booking(db, make_booking, admin_user):
    booking = make_booking(BookingStatus.CANCELLED)

    booking = booking_service.update_status(db, booking.id, admin_user, "pending", "reopened")

    assert booking.status == "pending"
    assert booking.status_history[-1].note == "reopened"


def test_history_is_append_only(db, make_booking, admin_user):
    booking = make_booking()

    for target in ("confirmed", "in_progress", "completed"):
        before = [(h.id, h.status, h.changed_by_id, h.changed_at, h.note) for h in booking.status_history]
        booking = booking_service.update_status(db, booking.id, admin_user, target, f"to {target}")
        after = [(h.id, h.status, h.changed_by_id, h.changed_at, h.note) for h in booking.status_history]

        assert len(after) == len(before) + 1
        assert after[: len(before)] == before

    assert booking.status_history[-1].note == "to completed"


# --------------------------
# Client cancellation
# --------------------------
def test_client_cancels_pending_booking_with_reason(db, make_booking, client_user):
    booking = make_booking()

    booking = booking_service.cancel_booking(db, booking.id, client_user, "schedule conflict")

    assert booking.status == "cancelled"
    assert booking.cancelled_at is not None
    assert len(booking.status_history) == 2
    last = booking.status_history[-1]
    assert last.status == "cancelled"
    assert "schedule conflict" in last.note
    assert last.note.startswith("Cancelled by client")
    assert last.changed_by_id == client_user.id


def test_client_cancel_without_reason_uses_fixed_note(db, make_booking, client_user):
    booking = make_booking(BookingStatus.CONFIRMED)

    booking = booking_service.cancel_booking(db, booking.id, client_user)

    assert booking.status_history[-1].note == "Cancelled by client"


def test_only_the_owner_can_cancel(db, make_booking, other_client):
    booking = make_booking()

    with pytest.raises(AuthorizationError):
        booking_service.cancel_booking(db, booking.id, other_client, "not mine")


def test_client_cancels_no_show_booking(db, make_booking, client_user):
    booking = make_booking(BookingStatus.NO_SHOW)

    booking = booking_service.cancel_booking(db, booking.id, client_user, "schedule conflict")

    assert booking.status == "cancelled"
    assert booking.cancelled_at is not None
    assert [h.status for h in booking.status_history][-2:] == ["no_show", "cancelled"]
    assert booking.status_history[-1].note == "Cancelled by client. Reason: schedule conflict"


@pytest.mark.parametrize(
    "status",
    [BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.IN_PROGRESS],
)
def test_client_cannot_cancel_closed_or_running_booking(db, make_booking, client_user, status):
    booking = make_booking(status)
    history_before = len(booking.status_history)

    with pytest.raises(ConflictError):
        booking_service.cancel_booking(db, booking.id, client_user, "too late")

    db.refresh(booking)
    assert booking.status == status.value
    assert len(booking.status_history) == history_before


def test_in_progress_cancellation_points_to_admin(db, make_booking, client_user):
    booking = make_booking(BookingStatus.IN_PROGRESS)

    with pytest.raises(ConflictError) as exc:
        booking_service.cancel_booking(db, booking.id, client_user)

    assert "administrator" in exc.value.message

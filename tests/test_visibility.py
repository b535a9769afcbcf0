import pytest

from app.core.exceptions import AuthorizationError
from app.db.models.booking import BookingStatus
from app.services import booking_service
from app.services.visibility import (
    MASK,
    VIEWER_ADMIN,
    VIEWER_CLIENT,
    VIEWER_PROVIDER,
    present_booking,
    reveal_contact,
    viewer_role_for,
)


def test_provider_view_is_masked_and_drops_client(make_booking):
    booking = make_booking()

    view = present_booking(booking, VIEWER_PROVIDER)

    assert "client" not in view
    assert view["contact_info"] == {
        "name": "Client #" + booking.booking_number[-4:],
        "phone": MASK,
        "email": MASK,
    }


@pytest.mark.parametrize("viewer", [VIEWER_CLIENT, VIEWER_ADMIN])
def test_client_and_admin_always_see_contact(make_booking, client_user, viewer):
    booking = make_booking()

    view = present_booking(booking, viewer)

    assert view["client"]["id"] == client_user.id
    assert view["contact_info"] == {
        "name": "Awa Diallo",
        "phone": "+221770000001",
        "email": "awa@example.com",
    }


@pytest.mark.parametrize("status", list(BookingStatus))
def test_redaction_ignores_status(make_booking, status):
    booking = make_booking(status)

    view = present_booking(booking, VIEWER_PROVIDER)

    assert view["contact_info"]["phone"] == MASK
    assert "client" not in view


def test_provider_view_hides_client_id_in_history(db, make_booking, client_user, admin_user):
    booking = make_booking(BookingStatus.CONFIRMED)
    booking = booking_service.cancel_booking(db, booking.id, client_user, "travelling")

    view = present_booking(booking, VIEWER_PROVIDER)

    assert [h["changed_by"] for h in view["status_history"]] == [None, admin_user.id, None]
    assert [h["status"] for h in view["status_history"]] == ["pending", "confirmed", "cancelled"]


def test_history_actors_kept_once_revealed(db, make_booking, client_user, admin_user):
    booking = make_booking()
    reveal_contact(db, booking, admin_user)

    view = present_booking(booking, VIEWER_PROVIDER)

    assert [h["changed_by"] for h in view["status_history"]] == [client_user.id]


def test_redaction_is_not_stored(db, make_booking):
    booking = make_booking()

    present_booking(booking, VIEWER_PROVIDER)
    db.refresh(booking)

    assert booking.contact_phone == "+221770000001"
    assert booking.contact_name == "Awa Diallo"


def test_reveal_lets_provider_see_contact(db, make_booking, admin_user, client_user):
    booking = make_booking(BookingStatus.CONFIRMED)

    reveal_contact(db, booking, admin_user)
    view = present_booking(booking, VIEWER_PROVIDER)

    assert booking.provider_can_see_contact is True
    assert view["client"]["id"] == client_user.id
    assert view["contact_info"]["phone"] == "+221770000001"


def test_reveal_is_idempotent_and_does_not_touch_status(db, make_booking, admin_user):
    booking = make_booking()

    reveal_contact(db, booking, admin_user)
    reveal_contact(db, booking, admin_user)

    assert booking.provider_can_see_contact is True
    assert booking.status == "pending"
    assert len(booking.status_history) == 1


def test_transitions_never_reveal(db, make_booking):
    booking = make_booking(BookingStatus.COMPLETED)

    assert booking.provider_can_see_contact is False


def test_viewer_roles(make_booking, client_user, other_client, provider_user, other_provider_user, admin_user):
    booking = make_booking()

    assert viewer_role_for(booking, admin_user) == VIEWER_ADMIN
    assert viewer_role_for(booking, client_user) == VIEWER_CLIENT
    assert viewer_role_for(booking, provider_user) == VIEWER_PROVIDER
    with pytest.raises(AuthorizationError):
        viewer_role_for(booking, other_client)
    with pytest.raises(AuthorizationError):
        viewer_role_for(booking, other_provider_user)

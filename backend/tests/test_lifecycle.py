"""
Tests for booking lifecycle transitions: player/owner cancellation, admin
override, detail updates and the completion sweep.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.core.exceptions import InvalidStateError
from app.models.booking import Booking
from app.repositories import booking_repository
from app.services import lifecycle_service
from tests.conftest import days_from_today


# --- player cancellation ---


@pytest.mark.asyncio
async def test_player_cancels_own_booking(client: AsyncClient, player, player_headers, make_booking):
    player_id = player.id
    booking = await make_booking(player)

    response = await client.delete(f"/api/v1/bookings/{booking.id}", headers=player_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Booking cancelled"
    assert data["booking"]["status"] == "cancelled"
    assert data["booking"]["cancelled_by"] == player_id
    assert data["booking"]["cancellation_reason"] is None
    assert data["booking"]["cancelled_at"] is not None


@pytest.mark.asyncio
async def test_player_can_cancel_past_booking(client: AsyncClient, player, player_headers, make_booking):
    """The player path has no date cutoff."""
    booking = await make_booking(player, days=-3)
    response = await client.delete(f"/api/v1/bookings/{booking.id}", headers=player_headers)
    assert response.status_code == 200
    assert response.json()["booking"]["status"] == "cancelled"


@pytest.mark.asyncio
async def test_player_cannot_cancel_others_booking(client: AsyncClient, player, other_player_headers, make_booking):
    booking = await make_booking(player)
    response = await client.delete(f"/api/v1/bookings/{booking.id}", headers=other_player_headers)
    assert response.status_code == 403
    assert response.json()["kind"] == "Forbidden"


@pytest.mark.asyncio
async def test_cancel_missing_booking(client: AsyncClient, player_headers):
    response = await client.delete("/api/v1/bookings/99999", headers=player_headers)
    assert response.status_code == 404
    assert response.json()["kind"] == "NotFound:Booking"


@pytest.mark.asyncio
async def test_cancel_twice_is_invalid_state(client: AsyncClient, player, player_headers, make_booking):
    booking = await make_booking(player)
    await client.delete(f"/api/v1/bookings/{booking.id}", headers=player_headers)

    response = await client.delete(f"/api/v1/bookings/{booking.id}", headers=player_headers)
    assert response.status_code == 400
    assert response.json()["kind"] == "Invalid:State"


@pytest.mark.asyncio
async def test_cancel_completed_booking_is_invalid_state(client: AsyncClient, player, player_headers, make_booking):
    booking = await make_booking(player, days=-1, status="completed")
    response = await client.delete(f"/api/v1/bookings/{booking.id}", headers=player_headers)
    assert response.json()["kind"] == "Invalid:State"


# --- owner cancellation ---


@pytest.mark.asyncio
async def test_owner_cancels_upcoming_booking_with_default_reason(
    client: AsyncClient, player, owner, owner_headers, make_booking
):
    owner_id = owner.id
    booking = await make_booking(player, days=2)

    response = await client.post(f"/api/v1/bookings/{booking.id}/cancel", headers=owner_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Booking cancelled successfully"
    assert data["booking"]["status"] == "cancelled"
    assert data["booking"]["cancellation_reason"] == "Cancelled by venue owner"
    assert data["booking"]["cancelled_by"] == owner_id
    assert data["booking"]["cancelled_at"] is not None


@pytest.mark.asyncio
async def test_owner_cancel_with_reason(client: AsyncClient, player, owner_headers, make_booking):
    booking = await make_booking(player, days=2)
    response = await client.post(
        f"/api/v1/bookings/{booking.id}/cancel",
        json={"reason": "Court resurfacing"},
        headers=owner_headers,
    )
    assert response.status_code == 200
    assert response.json()["booking"]["cancellation_reason"] == "Court resurfacing"


@pytest.mark.asyncio
@pytest.mark.parametrize("days", [0, -1])
async def test_owner_cannot_cancel_today_or_past(client: AsyncClient, player, owner_headers, make_booking, days):
    booking = await make_booking(player, days=days)
    response = await client.post(f"/api/v1/bookings/{booking.id}/cancel", headers=owner_headers)
    assert response.status_code == 400
    assert response.json()["kind"] == "Invalid:PastBooking"


@pytest.mark.asyncio
async def test_owner_cannot_cancel_at_other_venue(client: AsyncClient, player, other_owner_headers, make_booking):
    booking = await make_booking(player, days=2)
    response = await client.post(f"/api/v1/bookings/{booking.id}/cancel", headers=other_owner_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_player_cannot_use_owner_cancel(client: AsyncClient, player, player_headers, make_booking):
    booking = await make_booking(player, days=2)
    response = await client.post(f"/api/v1/bookings/{booking.id}/cancel", headers=player_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_owner_cancel_after_player_cancel(client: AsyncClient, player, player_headers, owner_headers, make_booking):
    """Whichever cancel lands second sees the booking already cancelled."""
    booking = await make_booking(player, days=2)
    first = await client.delete(f"/api/v1/bookings/{booking.id}", headers=player_headers)
    assert first.status_code == 200

    second = await client.post(f"/api/v1/bookings/{booking.id}/cancel", headers=owner_headers)
    assert second.status_code == 400
    assert second.json()["kind"] == "Invalid:State"


# --- compare-and-set ---


@pytest.mark.asyncio
async def test_transition_status_is_compare_and_set(db_session, player, make_booking):
    booking = await make_booking(player)

    applied = await booking_repository.transition_status(db_session, booking.id, "confirmed", status="cancelled")
    await db_session.commit()
    assert applied is True

    again = await booking_repository.transition_status(db_session, booking.id, "confirmed", status="completed")
    await db_session.commit()
    assert again is False

    status = (await db_session.execute(select(Booking.status).where(Booking.id == booking.id))).scalar_one()
    assert status == "cancelled"


@pytest.mark.asyncio
async def test_cancel_with_stale_read_loses(db_session, player, owner, make_booking):
    """
    A cancel that read 'confirmed' before another writer cancelled the booking
    is rejected instead of overwriting the first cancellation.
    """
    owner_id = owner.id
    stale = await make_booking(player, days=2)
    await booking_repository.transition_status(db_session, stale.id, "confirmed", status="cancelled")
    await db_session.commit()

    with pytest.raises(InvalidStateError):
        await lifecycle_service._cancel(db_session, stale, cancelled_by=owner_id, reason="late")


# --- admin override ---


@pytest.mark.asyncio
async def test_admin_marks_no_show(client: AsyncClient, player, admin_headers, make_booking):
    booking = await make_booking(player, days=-1)
    response = await client.put(
        f"/api/v1/bookings/{booking.id}/status", json={"status": "no-show"}, headers=admin_headers
    )
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Booking status updated"
    assert data["booking"]["status"] == "no-show"


@pytest.mark.asyncio
async def test_admin_invalid_status(client: AsyncClient, player, admin_headers, make_booking):
    booking = await make_booking(player)
    response = await client.put(
        f"/api/v1/bookings/{booking.id}/status", json={"status": "archived"}, headers=admin_headers
    )
    assert response.status_code == 400
    assert response.json()["kind"] == "Invalid:Status"


@pytest.mark.asyncio
async def test_admin_status_missing_booking(client: AsyncClient, admin_headers):
    response = await client.put("/api/v1/bookings/99999/status", json={"status": "completed"}, headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_admin_status_requires_admin(client: AsyncClient, player, owner_headers, make_booking):
    booking = await make_booking(player)
    response = await client.put(
        f"/api/v1/bookings/{booking.id}/status", json={"status": "completed"}, headers=owner_headers
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_cancel_then_reconfirm(client: AsyncClient, player, admin, admin_headers, make_booking):
    admin_id = admin.id
    booking = await make_booking(player)

    cancelled = await client.put(
        f"/api/v1/bookings/{booking.id}/status", json={"status": "cancelled"}, headers=admin_headers
    )
    body = cancelled.json()["booking"]
    assert body["status"] == "cancelled"
    assert body["cancellation_reason"] == "Cancelled by administrator"
    assert body["cancelled_by"] == admin_id

    restored = await client.put(
        f"/api/v1/bookings/{booking.id}/status", json={"status": "confirmed"}, headers=admin_headers
    )
    assert restored.status_code == 200
    body = restored.json()["booking"]
    assert body["status"] == "confirmed"
    assert body["cancellation_reason"] is None
    assert body["cancelled_by"] is None
    assert body["cancelled_at"] is None


@pytest.mark.asyncio
async def test_admin_reconfirm_into_taken_slot(
    client: AsyncClient, player, other_player, admin_headers, make_booking
):
    """Re-confirming a cancelled booking must not create a double booking."""
    old = await make_booking(player, status="cancelled")
    await make_booking(other_player, start="10:30", end="11:30")

    response = await client.put(
        f"/api/v1/bookings/{old.id}/status", json={"status": "confirmed"}, headers=admin_headers
    )
    assert response.status_code == 409
    body = response.json()
    assert body["kind"] == "Conflict:SlotTaken"
    assert body["context"]["time_slot"] == {"start": "10:30", "end": "11:30"}


# --- detail updates ---


@pytest.mark.asyncio
async def test_update_booking_window(client: AsyncClient, player, player_headers, make_booking):
    booking = await make_booking(player)
    response = await client.put(
        f"/api/v1/bookings/{booking.id}",
        json={"time_slot": {"start": "14:00", "end": "15:30"}},
        headers=player_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["time_slot"] == {"start": "14:00", "end": "15:30"}
    assert data["duration"] == 90
    assert data["court"] == "C1"


@pytest.mark.asyncio
async def test_update_booking_can_shift_over_itself(client: AsyncClient, player, player_headers, make_booking):
    booking = await make_booking(player)
    response = await client.put(
        f"/api/v1/bookings/{booking.id}",
        json={"time_slot": {"start": "10:30", "end": "11:30"}},
        headers=player_headers,
    )
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_update_booking_into_taken_slot(
    client: AsyncClient, player, other_player, player_headers, make_booking
):
    booking = await make_booking(player)
    await make_booking(other_player, court="C2")

    response = await client.put(f"/api/v1/bookings/{booking.id}", json={"court": "C2"}, headers=player_headers)
    assert response.status_code == 409
    assert response.json()["kind"] == "Conflict:SlotTaken"


@pytest.mark.asyncio
async def test_update_booking_to_past_date(client: AsyncClient, player, player_headers, make_booking):
    booking = await make_booking(player)
    response = await client.put(
        f"/api/v1/bookings/{booking.id}",
        json={"date": days_from_today(-1).isoformat()},
        headers=player_headers,
    )
    assert response.status_code == 400
    assert response.json()["kind"] == "Invalid:PastDate"


@pytest.mark.asyncio
async def test_update_booking_rejects_status_field(client: AsyncClient, player, player_headers, make_booking):
    """Status is changed through the lifecycle endpoints only."""
    booking = await make_booking(player)
    response = await client.put(
        f"/api/v1/bookings/{booking.id}", json={"status": "completed"}, headers=player_headers
    )
    assert response.status_code == 422
    assert response.json()["kind"] == "Invalid:Request"


@pytest.mark.asyncio
async def test_update_cancelled_booking(client: AsyncClient, player, player_headers, make_booking):
    booking = await make_booking(player, status="cancelled")
    response = await client.put(f"/api/v1/bookings/{booking.id}", json={"court": "C2"}, headers=player_headers)
    assert response.status_code == 400
    assert response.json()["kind"] == "Invalid:State"


@pytest.mark.asyncio
async def test_update_others_booking(client: AsyncClient, player, other_player_headers, make_booking):
    booking = await make_booking(player)
    response = await client.put(f"/api/v1/bookings/{booking.id}", json={"court": "C2"}, headers=other_player_headers)
    assert response.status_code == 403


# --- sweep ---


@pytest.mark.asyncio
async def test_complete_past_bookings(db_session, player, make_booking):
    two_days_ago = await make_booking(player, days=-2)
    yesterday = await make_booking(player, days=-1, court="C2")
    today_booking = await make_booking(player, days=0, court="C3")
    cancelled = await make_booking(player, days=-1, court="C4", status="cancelled")

    completed = await lifecycle_service.complete_past_bookings(db_session)
    assert completed == 2

    rows = dict(
        (await db_session.execute(select(Booking.id, Booking.status))).all()
    )
    assert rows[two_days_ago.id] == "completed"
    assert rows[yesterday.id] == "completed"
    assert rows[today_booking.id] == "confirmed"
    assert rows[cancelled.id] == "cancelled"

from datetime import date, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from eventspark.models.user import User

from .conftest import (
    FakeGateway,
    RecordingNotifier,
    auth_headers,
    make_event,
    make_user,
)

pytestmark = pytest.mark.asyncio

API = "/api/v1"


async def test_signup_signin_and_me(client: AsyncClient) -> None:
    response = await client.post(
        f"{API}/auth/signup",
        json={
            "name": "Ada Lovelace",
            "email": "Ada@Example.com",
            "password": "engine1",
            "role": "organizer",
        },
    )
    assert response.status_code == 201
    body = response.json()
    assert body["user"]["email"] == "ada@example.com"
    assert body["user"]["role"] == "organizer"

    response = await client.post(
        f"{API}/auth/signin", json={"email": "ada@example.com", "password": "engine1"}
    )
    assert response.status_code == 200
    token = response.json()["access_token"]

    response = await client.get(
        f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"}
    )
    assert response.status_code == 200
    assert response.json()["name"] == "Ada Lovelace"


async def test_signup_rejects_admin_and_duplicates(client: AsyncClient) -> None:
    payload = {"name": "Root", "email": "root@example.com", "password": "secret1"}

    response = await client.post(f"{API}/auth/signup", json={**payload, "role": "admin"})
    assert response.status_code == 400

    assert (await client.post(f"{API}/auth/signup", json=payload)).status_code == 201
    assert (await client.post(f"{API}/auth/signup", json=payload)).status_code == 400


async def test_form_login_and_bad_password(
    client: AsyncClient, attendee: User
) -> None:
    response = await client.post(
        f"{API}/auth/login/access-token",
        data={"username": attendee.email, "password": "secret123"},
    )
    assert response.status_code == 200
    assert response.json()["token_type"] == "bearer"

    response = await client.post(
        f"{API}/auth/signin", json={"email": attendee.email, "password": "wrong"}
    )
    assert response.status_code == 400


async def test_protected_routes_need_a_token(client: AsyncClient) -> None:
    response = await client.get(f"{API}/bookings/me")
    assert response.status_code == 401


async def test_event_lifecycle(
    client: AsyncClient, organizer: User, attendee: User
) -> None:
    event_day = (date.today() + timedelta(days=14)).isoformat()
    response = await client.post(
        f"{API}/events/",
        headers=auth_headers(organizer),
        json={
            "name": "Spring Fair",
            "description": "Food and music",
            "date": event_day,
            "time": "18:30",
            "venue": "Park",
            "category": "festival",
            "total_seats": 40,
            "ticket_price": "20.00",
            "dynamic_pricing_enabled": True,
            "pricing_rules": [{"threshold": 40, "percentage": 25}],
        },
    )
    assert response.status_code == 201
    event = response.json()
    assert event["current_ticket_price"] == "25.00"
    assert event["available_seats"] == 40

    response = await client.post(
        f"{API}/events/",
        headers=auth_headers(attendee),
        json={"name": "Gatecrash", "description": "x", "date": event_day, "time": "19:00", "venue": "Park",
              "category": "festival", "total_seats": 10, "ticket_price": "5.00"},
    )
    assert response.status_code == 403

    response = await client.get(f"{API}/events/", headers=auth_headers(attendee))
    assert [e["name"] for e in response.json()] == ["Spring Fair"]

    response = await client.put(
        f"{API}/events/{event['id']}",
        headers=auth_headers(organizer),
        json={"venue": "Town Square"},
    )
    assert response.status_code == 200
    assert response.json()["venue"] == "Town Square"

    response = await client.get(f"{API}/events/organizer/{organizer.id}")
    assert [e["id"] for e in response.json()] == [event["id"]]

    response = await client.delete(
        f"{API}/events/{event['id']}", headers=auth_headers(organizer)
    )
    assert response.status_code == 204

    response = await client.get(
        f"{API}/events/{event['id']}", headers=auth_headers(attendee)
    )
    assert response.status_code == 404
    assert response.json() == {
        "success": False,
        "error": {"code": "NOT_FOUND", "message": "Event not found"},
    }


async def test_booking_and_payment_flow(
    client: AsyncClient,
    db: AsyncSession,
    organizer: User,
    attendee: User,
    notifier: RecordingNotifier,
) -> None:
    event = await make_event(db, organizer, total_seats=20)
    headers = auth_headers(attendee)

    response = await client.post(
        f"{API}/bookings/",
        headers=headers,
        json={"event_id": event.id, "seat_number": "B4"},
    )
    assert response.status_code == 201
    booking = response.json()["booking"]
    assert booking["payment_status"] == "pending"
    assert response.json()["event"]["venue"] == "Blue Hall"

    response = await client.get(
        f"{API}/bookings/event/{event.id}/seats", headers=headers
    )
    seats = {s["seat_number"]: s["is_available"] for s in response.json()["available_seats"]}
    assert seats["B4"] is False
    assert seats["B5"] is True

    response = await client.post(
        f"{API}/bookings/{booking['id']}/payment",
        headers=headers,
        json={"payment_method": "card"},
    )
    assert response.status_code == 200
    assert response.json()["booking"]["payment_status"] == "completed"
    assert notifier.sent == [
        ("eventspark.tasks.send_booking_confirmation_email", [attendee.id, booking["id"]])
    ]

    response = await client.get(f"{API}/bookings/me", headers=headers)
    assert [b["seat_number"] for b in response.json()] == ["B4"]
    assert response.json()[0]["event"]["name"] == "Jazz Night"

    response = await client.get(
        f"{API}/bookings/{booking['id']}", headers=auth_headers(organizer)
    )
    assert response.status_code == 403


async def test_seat_conflict_is_409(
    client: AsyncClient, db: AsyncSession, organizer: User, attendee: User
) -> None:
    event = await make_event(db, organizer)
    rival = await make_user(db, email="rival@example.com")
    await client.post(
        f"{API}/bookings/bulk",
        headers=auth_headers(rival),
        json={"event_id": event.id, "seat_numbers": ["A1", "A3"]},
    )

    response = await client.post(
        f"{API}/bookings/bulk",
        headers=auth_headers(attendee),
        json={"event_id": event.id, "seat_numbers": ["A1", "A2", "A3"]},
    )

    assert response.status_code == 409
    assert response.json()["error"] == {
        "code": "CONFLICT",
        "message": "Seats already booked: A1, A3",
    }


async def test_invalid_seat_is_400(
    client: AsyncClient, db: AsyncSession, organizer: User, attendee: User
) -> None:
    event = await make_event(db, organizer, total_seats=100)
    response = await client.post(
        f"{API}/bookings/",
        headers=auth_headers(attendee),
        json={"event_id": event.id, "seat_number": "K1"},
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION"


async def test_failed_payment_is_402(
    client: AsyncClient,
    db: AsyncSession,
    organizer: User,
    attendee: User,
    gateway: FakeGateway,
) -> None:
    gateway.succeed = False
    event = await make_event(db, organizer)
    headers = auth_headers(attendee)
    response = await client.post(
        f"{API}/bookings/",
        headers=headers,
        json={"event_id": event.id, "seat_number": "A1"},
    )
    booking_id = response.json()["booking"]["id"]

    response = await client.post(
        f"{API}/bookings/{booking_id}/payment", headers=headers, json={}
    )

    assert response.status_code == 402
    assert response.json()["error"]["message"] == "Payment failed. Please try again."
    response = await client.get(f"{API}/bookings/{booking_id}", headers=headers)
    assert response.json()["payment_status"] == "failed"


async def test_sell_tickets_endpoint(
    client: AsyncClient, db: AsyncSession, organizer: User, attendee: User
) -> None:
    event = await make_event(db, organizer, total_seats=5)

    response = await client.post(
        f"{API}/events/{event.id}/sell-tickets",
        headers=auth_headers(organizer),
        json={"quantity": 3},
    )
    assert response.status_code == 200
    assert response.json()["event"]["sold_tickets"] == 3
    assert response.json()["total_revenue"] == "150.00"

    response = await client.post(
        f"{API}/events/{event.id}/sell-tickets",
        headers=auth_headers(organizer),
        json={"quantity": 3},
    )
    assert response.status_code == 409

    response = await client.post(
        f"{API}/events/{event.id}/sell-tickets",
        headers=auth_headers(attendee),
        json={"quantity": 1},
    )
    assert response.status_code == 403


async def test_admin_user_management(
    client: AsyncClient,
    admin: User,
    attendee: User,
    notifier: RecordingNotifier,
) -> None:
    headers = auth_headers(admin)

    response = await client.post(
        f"{API}/users/",
        headers=headers,
        json={"name": "Olga Organizer", "email": "olga@example.com", "role": "organizer"},
    )
    assert response.status_code == 201
    invited_id = response.json()["id"]
    assert notifier.sent[0][0] == "eventspark.tasks.send_user_invite_email"
    assert notifier.sent[0][1][0] == invited_id

    response = await client.get(f"{API}/users/?role=organizer", headers=headers)
    assert [u["email"] for u in response.json()] == ["olga@example.com"]

    response = await client.patch(
        f"{API}/users/role",
        headers=headers,
        json={"email": attendee.email, "role": "organizer"},
    )
    assert response.status_code == 200
    assert response.json()["role"] == "organizer"
    assert notifier.sent[-1] == (
        "eventspark.tasks.send_role_change_email",
        [attendee.id, "user", "organizer"],
    )

    response = await client.patch(
        f"{API}/users/role",
        headers=headers,
        json={"email": attendee.email, "role": "organizer"},
    )
    assert response.status_code == 409

    response = await client.patch(
        f"{API}/users/role",
        headers=headers,
        json={"email": "nobody@example.com", "role": "admin"},
    )
    assert response.status_code == 404


async def test_user_management_is_admin_only(
    client: AsyncClient, organizer: User
) -> None:
    response = await client.get(f"{API}/users/", headers=auth_headers(organizer))
    assert response.status_code == 403


async def test_request_id_is_echoed(client: AsyncClient) -> None:
    response = await client.get("/", headers={"X-Request-ID": "req-123"})
    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == "req-123"


async def test_metrics_endpoint(client: AsyncClient) -> None:
    response = await client.get("/metrics")
    assert response.status_code == 200
    assert "eventspark_http_requests_total" in response.text



async def test_signup_sends_code_and_verify_email(
    client: AsyncClient, notifier: RecordingNotifier
) -> None:
    response = await client.post(
        f"{API}/auth/signup",
        json={"name": "Grace Hopper", "email": "grace@example.com", "password": "cobol59"},
    )
    assert response.status_code == 201
    assert response.json()["user"]["is_email_verified"] is False
    token = response.json()["access_token"]

    task, (_, otp, purpose) = notifier.sent[-1]
    assert (task, purpose) == ("eventspark.tasks.send_otp_email", "verify")

    wrong = "000000" if otp != "000000" else "111111"
    response = await client.post(
        f"{API}/auth/verify-email", json={"email": "grace@example.com", "otp": wrong}
    )
    assert response.status_code == 400
    assert response.json()["error"] == {"code": "VALIDATION", "message": "Invalid OTP"}

    response = await client.post(
        f"{API}/auth/verify-email", json={"email": "grace@example.com", "otp": otp}
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Email verified successfully"

    response = await client.get(
        f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"}
    )
    assert response.json()["is_email_verified"] is True


async def test_forgot_and_reset_password(
    client: AsyncClient, attendee: User, notifier: RecordingNotifier
) -> None:
    response = await client.post(
        f"{API}/auth/forgot-password", json={"email": "ghost@example.com"}
    )
    assert response.status_code == 200
    assert notifier.sent == []

    response = await client.post(
        f"{API}/auth/forgot-password", json={"email": attendee.email}
    )
    assert response.status_code == 200
    _, (_, otp, purpose) = notifier.sent[-1]
    assert purpose == "reset"

    body = {"email": attendee.email, "otp": otp}
    response = await client.post(f"{API}/auth/verify-otp", json=body)
    assert response.status_code == 200
    response = await client.post(
        f"{API}/auth/reset-password", json={**body, "new_password": "fresh-pass"}
    )
    assert response.status_code == 200

    response = await client.post(
        f"{API}/auth/signin", json={"email": attendee.email, "password": "secret123"}
    )
    assert response.status_code == 400
    response = await client.post(
        f"{API}/auth/signin", json={"email": attendee.email, "password": "fresh-pass"}
    )
    assert response.status_code == 200

    response = await client.post(f"{API}/auth/verify-otp", json=body)
    assert response.status_code == 400


async def test_malformed_code_is_422(client: AsyncClient, attendee: User) -> None:
    response = await client.post(
        f"{API}/auth/verify-otp", json={"email": attendee.email, "otp": "12ab"}
    )
    assert response.status_code == 422


async def test_profile_read_and_update(client: AsyncClient, attendee: User) -> None:
    headers = auth_headers(attendee)

    response = await client.get(f"{API}/auth/profile", headers=headers)
    assert response.status_code == 200
    assert response.json()["email"] == attendee.email

    response = await client.patch(
        f"{API}/auth/profile",
        headers=headers,
        json={"name": "New Name", "phone_number": "+44 20 7946 0000"},
    )
    assert response.status_code == 200
    assert response.json()["name"] == "New Name"
    assert response.json()["phone_number"] == "+44 20 7946 0000"

    response = await client.patch(
        f"{API}/auth/profile",
        headers=headers,
        json={"current_password": "wrong-one", "new_password": "another1"},
    )
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Current password is incorrect"

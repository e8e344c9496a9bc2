"""
Test API endpoints.
"""
from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from expo_reserve.core.security import Principal, Role
from expo_reserve.models.expos import ExpoStatus

ORGANIZER = Principal(id="org-1", role=Role.ORGANIZER)
OTHER_ORGANIZER = Principal(id="org-2", role=Role.ORGANIZER)
ADMIN = Principal(id="admin-1", role=Role.ADMIN)
EXHIBITOR = Principal(id="exh-1", role=Role.EXHIBITOR)
OTHER_EXHIBITOR = Principal(id="exh-2", role=Role.EXHIBITOR)
ATTENDEE = Principal(id="att-1", role=Role.ATTENDEE)


def _dates(days: int = 3) -> dict:
    start = datetime.now(timezone.utc) + timedelta(days=1)
    return {"start_date": start.isoformat(), "end_date": (start + timedelta(days=days)).isoformat()}


class TestAuthentication:
    """Requests without a valid bearer token."""

    def test_missing_token(self, client: TestClient):
        response = client.post("/expos", json={"title": "Expo", **_dates()})

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["kind"] == "Unauthenticated"

    def test_bad_token(self, client: TestClient):
        response = client.get("/report", headers={"Authorization": "Bearer nonsense"})

        assert response.status_code == 401

    def test_public_reads_need_no_token(self, client: TestClient, db_session: Session, factories):
        expo = factories.expo(db_session)
        factories.expo(db_session, status=ExpoStatus.DRAFT)

        assert client.get(f"/expos/{expo.id}").status_code == 200
        assert [e["id"] for e in client.get("/expos").json()] == [expo.id]
        assert client.get(f"/resources/{expo.id}/available").status_code == 200


class TestExpoEndpoints:
    """Test expo-related API endpoints."""

    def test_create_expo(self, client: TestClient, headers):
        """Test creating an expo via API."""
        response = client.post("/expos", json={"title": "API Expo", **_dates()}, headers=headers(ORGANIZER))

        assert response.status_code == 201
        data = response.json()
        assert data["title"] == "API Expo"
        assert data["status"] == "draft"
        assert data["organizer_id"] == ORGANIZER.id
        assert data["max_booths_per_exhibitor"] == 1
        assert data["allow_booth_sharing"] is False

    def test_create_expo_wrong_role(self, client: TestClient, headers):
        response = client.post("/expos", json={"title": "Nope", **_dates()}, headers=headers(EXHIBITOR))

        assert response.status_code == 403
        assert response.json()["kind"] == "Forbidden"

    def test_create_expo_validation(self, client: TestClient, headers):
        """End date before start date."""
        dates = _dates()
        response = client.post(
            "/expos",
            json={"title": "Backwards", "start_date": dates["end_date"], "end_date": dates["start_date"]},
            headers=headers(ORGANIZER),
        )

        assert response.status_code == 422

    def test_get_expo_not_found(self, client: TestClient):
        response = client.get("/expos/99999")

        assert response.status_code == 404
        assert response.json() == {"detail": "Expo not found", "kind": "NotFound", "resource_id": 99999}

    def test_publish_then_complete(self, client: TestClient, db_session: Session, factories, headers):
        expo = factories.expo(db_session, status=ExpoStatus.DRAFT)

        published = client.put(f"/expos/{expo.id}/publish", headers=headers(ORGANIZER))
        completed = client.put(f"/expos/{expo.id}/complete", headers=headers(ORGANIZER))
        again = client.put(f"/expos/{expo.id}/publish", headers=headers(ORGANIZER))

        assert published.json()["status"] == "published"
        assert completed.json()["status"] == "completed"
        assert again.status_code == 409
        assert again.json()["kind"] == "InvalidTransition"

    def test_other_organizer_cannot_manage(self, client: TestClient, db_session: Session, factories, headers):
        expo = factories.expo(db_session, status=ExpoStatus.DRAFT)

        response = client.put(f"/expos/{expo.id}/publish", headers=headers(OTHER_ORGANIZER))

        assert response.status_code == 403

    def test_unpublish_requires_policy(self, client: TestClient, db_session: Session, factories, headers):
        expo = factories.expo(db_session)

        response = client.put(f"/expos/{expo.id}/unpublish", headers=headers(ORGANIZER))

        assert response.status_code == 422

    def test_unpublish_cascade(self, client: TestClient, db_session: Session, factories, headers):
        expo = factories.expo(db_session)
        booth = factories.booth(db_session, expo)
        booked = client.post(f"/resources/{booth.id}/book", headers=headers(EXHIBITOR)).json()

        response = client.put(
            f"/expos/{expo.id}/unpublish", params={"policy": "cascade_cancel"}, headers=headers(ORGANIZER)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["expo"]["status"] == "draft"
        assert data["cancelled_reservation_ids"] == [booked["id"]]
        reservation = client.get(f"/reservations/{booked['id']}", headers=headers(EXHIBITOR)).json()
        assert reservation["status"] == "cancelled"

    def test_unpublish_block(self, client: TestClient, db_session: Session, factories, headers):
        expo = factories.expo(db_session)
        booth = factories.booth(db_session, expo)
        client.post(f"/resources/{booth.id}/book", headers=headers(EXHIBITOR))

        response = client.put(f"/expos/{expo.id}/unpublish", params={"policy": "block"}, headers=headers(ORGANIZER))

        assert response.status_code == 409
        assert client.get(f"/expos/{expo.id}").json()["status"] == "published"

    def test_delete_expo(self, client: TestClient, db_session: Session, factories, headers):
        expo = factories.expo(db_session)

        response = client.delete(f"/expos/{expo.id}", headers=headers(ORGANIZER))

        assert response.status_code == 204
        assert client.get(f"/expos/{expo.id}").status_code == 404

    def test_create_booth_and_session(self, client: TestClient, db_session: Session, factories, headers):
        expo = factories.expo(db_session)
        starts = datetime.now(timezone.utc) + timedelta(hours=1)

        booth = client.post(
            f"/expos/{expo.id}/booths",
            json={"name": "B7", "capacity": 2, "price_tier": "premium"},
            headers=headers(ORGANIZER),
        )
        session = client.post(
            f"/expos/{expo.id}/sessions",
            json={
                "name": "Panel",
                "max_attendees": 40,
                "starts_at": starts.isoformat(),
                "ends_at": (starts + timedelta(hours=1)).isoformat(),
            },
            headers=headers(ORGANIZER),
        )

        assert booth.status_code == 201
        assert booth.json()["kind"] == "booth"
        assert booth.json()["price_tier"] == "premium"
        assert booth.json()["status"] == "available"
        assert session.status_code == 201
        assert session.json()["capacity"] == 40

    def test_create_booth_wrong_role(self, client: TestClient, db_session: Session, factories, headers):
        expo = factories.expo(db_session)

        response = client.post(f"/expos/{expo.id}/booths", json={"name": "B7"}, headers=headers(ATTENDEE))

        assert response.status_code == 403


class TestBookingEndpoints:
    """Test booking-related API endpoints."""

    def test_book_booth(self, client: TestClient, db_session: Session, factories, headers):
        """Test booking a booth via API."""
        booth = factories.booth(db_session, factories.expo(db_session))

        response = client.post(f"/resources/{booth.id}/book", headers=headers(EXHIBITOR))

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "confirmed"
        assert data["resource_id"] == booth.id
        assert data["principal_id"] == EXHIBITOR.id

    def test_book_full_booth(self, client: TestClient, db_session: Session, factories, headers):
        booth = factories.booth(db_session, factories.expo(db_session))
        client.post(f"/resources/{booth.id}/book", headers=headers(EXHIBITOR))

        response = client.post(f"/resources/{booth.id}/book", headers=headers(OTHER_EXHIBITOR))

        assert response.status_code == 409
        assert response.json()["kind"] == "CapacityExceeded"
        assert response.json()["resource_id"] == booth.id

    def test_book_twice(self, client: TestClient, db_session: Session, factories, headers):
        booth = factories.booth(db_session, factories.expo(db_session), capacity=3)
        client.post(f"/resources/{booth.id}/book", headers=headers(EXHIBITOR))

        response = client.post(f"/resources/{booth.id}/book", headers=headers(EXHIBITOR))

        assert response.status_code == 409
        assert response.json()["kind"] == "AlreadyReserved"

    def test_attendee_cannot_book_booth(self, client: TestClient, db_session: Session, factories, headers):
        booth = factories.booth(db_session, factories.expo(db_session))

        response = client.post(f"/resources/{booth.id}/book", headers=headers(ATTENDEE))

        assert response.status_code == 403
        db_session.refresh(booth)
        assert booth.confirmed_count == 0

    def test_attendee_registers_for_session(self, client: TestClient, db_session: Session, factories, headers):
        session = factories.session(db_session, factories.expo(db_session))

        response = client.post(f"/resources/{session.id}/book", headers=headers(ATTENDEE))

        assert response.status_code == 200

    def test_organizer_cannot_register(self, client: TestClient, db_session: Session, factories, headers):
        session = factories.session(db_session, factories.expo(db_session))

        response = client.post(f"/resources/{session.id}/book", headers=headers(ORGANIZER))

        assert response.status_code == 403

    def test_book_closed_expo(self, client: TestClient, db_session: Session, factories, headers):
        booth = factories.booth(db_session, factories.expo(db_session, status=ExpoStatus.DRAFT))

        response = client.post(f"/resources/{booth.id}/book", headers=headers(EXHIBITOR))

        assert response.status_code == 409
        assert response.json()["kind"] == "LifecycleClosed"

    def test_book_unknown_resource(self, client: TestClient, headers):
        response = client.post("/resources/4242/book", headers=headers(EXHIBITOR))

        assert response.status_code == 404

    def test_available_excludes_full(self, client: TestClient, db_session: Session, factories, headers):
        expo = factories.expo(db_session)
        full = factories.booth(db_session, expo, name="A1")
        free = factories.booth(db_session, expo, name="A2")
        client.post(f"/resources/{full.id}/book", headers=headers(EXHIBITOR))

        response = client.get(f"/resources/{expo.id}/available")

        assert [r["id"] for r in response.json()] == [free.id]

    def test_second_booth_over_quota(self, client: TestClient, db_session: Session, factories, headers):
        """Test that the per-exhibitor booth quota surfaces as a 409."""
        expo = factories.expo(db_session)
        first = factories.booth(db_session, expo, name="A1")
        second = factories.booth(db_session, expo, name="A2")
        client.post(f"/resources/{first.id}/book", headers=headers(EXHIBITOR))

        response = client.post(f"/resources/{second.id}/book", headers=headers(EXHIBITOR))

        assert response.status_code == 409
        assert response.json()["kind"] == "BoothLimitReached"
        assert response.json()["resource_id"] == second.id


class TestResourceEndpoints:
    """Test updating and deleting booths and sessions."""

    def test_update_booth(self, client: TestClient, db_session: Session, factories, headers):
        """Test renaming and growing a booth via API."""
        booth = factories.booth(db_session, factories.expo(db_session))

        response = client.put(
            f"/resources/booths/{booth.id}", json={"name": "Corner", "capacity": 2}, headers=headers(ORGANIZER)
        )

        assert response.status_code == 200
        assert response.json()["name"] == "Corner"
        assert response.json()["capacity"] == 2
        assert response.json()["price_tier"] == "standard"

    def test_update_booth_below_confirmed(self, client: TestClient, db_session: Session, factories, headers):
        booth = factories.booth(db_session, factories.expo(db_session))
        client.post(f"/resources/{booth.id}/book", headers=headers(EXHIBITOR))

        response = client.put(f"/resources/booths/{booth.id}", json={"capacity": 0}, headers=headers(ORGANIZER))

        assert response.status_code == 409
        assert response.json()["kind"] == "CapacityExceeded"

    def test_update_booth_as_session(self, client: TestClient, db_session: Session, factories, headers):
        booth = factories.booth(db_session, factories.expo(db_session))

        response = client.put(f"/resources/sessions/{booth.id}", json={"name": "x"}, headers=headers(ORGANIZER))

        assert response.status_code == 404

    def test_close_session_registration(self, client: TestClient, db_session: Session, factories, headers):
        """Test that switching registration off stops new registrations."""
        session = factories.session(db_session, factories.expo(db_session))

        updated = client.put(
            f"/resources/sessions/{session.id}", json={"allow_registration": False}, headers=headers(ORGANIZER)
        )
        response = client.post(f"/resources/{session.id}/book", headers=headers(ATTENDEE))

        assert updated.status_code == 200
        assert updated.json()["allow_registration"] is False
        assert response.status_code == 409
        assert response.json()["kind"] == "LifecycleClosed"

    def test_exhibitor_cannot_manage(self, client: TestClient, db_session: Session, factories, headers):
        booth = factories.booth(db_session, factories.expo(db_session))

        updated = client.put(f"/resources/booths/{booth.id}", json={"capacity": 5}, headers=headers(EXHIBITOR))
        deleted = client.delete(f"/resources/{booth.id}", headers=headers(ATTENDEE))

        assert updated.status_code == deleted.status_code == 403

    def test_delete_resource(self, client: TestClient, db_session: Session, factories, headers):
        """Test deleting a booth, refused while it is reserved."""
        expo = factories.expo(db_session)
        reserved = factories.booth(db_session, expo, name="A1")
        free = factories.booth(db_session, expo, name="A2")
        client.post(f"/resources/{reserved.id}/book", headers=headers(EXHIBITOR))

        refused = client.delete(f"/resources/{reserved.id}", headers=headers(ORGANIZER))
        deleted = client.delete(f"/resources/{free.id}", headers=headers(ORGANIZER))

        assert refused.status_code == 409
        assert refused.json()["kind"] == "InvalidTransition"
        assert deleted.status_code == 204
        assert client.get(f"/resources/{expo.id}/available").json() == []


class TestReservationEndpoints:
    """Viewing and cancelling reservations."""

    def test_cancel_and_cancel_again(self, client: TestClient, db_session: Session, factories, headers):
        booth = factories.booth(db_session, factories.expo(db_session))
        booked = client.post(f"/resources/{booth.id}/book", headers=headers(EXHIBITOR)).json()

        first = client.post(f"/reservations/{booked['id']}/cancel", headers=headers(EXHIBITOR))
        second = client.post(f"/reservations/{booked['id']}/cancel", headers=headers(EXHIBITOR))

        assert first.status_code == second.status_code == 200
        assert first.json() == second.json()
        assert second.json()["status"] == "cancelled"
        db_session.refresh(booth)
        assert booth.confirmed_count == 0

    def test_stranger_cannot_view_or_cancel(self, client: TestClient, db_session: Session, factories, headers):
        booth = factories.booth(db_session, factories.expo(db_session))
        booked = client.post(f"/resources/{booth.id}/book", headers=headers(EXHIBITOR)).json()

        viewed = client.get(f"/reservations/{booked['id']}", headers=headers(OTHER_EXHIBITOR))
        cancelled = client.post(f"/reservations/{booked['id']}/cancel", headers=headers(OTHER_EXHIBITOR))

        assert viewed.status_code == cancelled.status_code == 403
        assert cancelled.json()["kind"] == "NotOwner"

    def test_expo_organizer_can_cancel(self, client: TestClient, db_session: Session, factories, headers):
        booth = factories.booth(db_session, factories.expo(db_session))
        booked = client.post(f"/resources/{booth.id}/book", headers=headers(EXHIBITOR)).json()

        response = client.post(f"/reservations/{booked['id']}/cancel", headers=headers(ORGANIZER))

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

    def test_unknown_reservation(self, client: TestClient, headers):
        assert client.get("/reservations/777", headers=headers(ADMIN)).status_code == 404


class TestApplicationEndpoints:
    def test_apply_and_approve(self, client: TestClient, db_session: Session, factories, headers):
        expo = factories.expo(db_session)

        applied = client.post(f"/expos/{expo.id}/applications", json={"company_name": "Acme"}, headers=headers(EXHIBITOR))
        approved = client.put(f"/applications/{applied.json()['id']}/approve", headers=headers(ORGANIZER))

        assert applied.status_code == 201
        assert applied.json()["status"] == "pending"
        assert approved.status_code == 200
        assert approved.json()["status"] == "approved"

    def test_duplicate_application(self, client: TestClient, db_session: Session, factories, headers):
        expo = factories.expo(db_session)
        client.post(f"/expos/{expo.id}/applications", json={"company_name": "Acme"}, headers=headers(EXHIBITOR))

        response = client.post(f"/expos/{expo.id}/applications", json={"company_name": "Acme"}, headers=headers(EXHIBITOR))

        assert response.status_code == 409
        assert response.json()["kind"] == "DuplicateApplication"

    def test_exhibitor_cannot_review(self, client: TestClient, db_session: Session, factories, headers):
        expo = factories.expo(db_session)
        applied = client.post(f"/expos/{expo.id}/applications", json={"company_name": "Acme"}, headers=headers(EXHIBITOR))

        response = client.put(f"/applications/{applied.json()['id']}/reject", headers=headers(EXHIBITOR))

        assert response.status_code == 403


class TestReportEndpoints:
    """Test report API endpoints."""

    def test_overall_report(self, client: TestClient, db_session: Session, factories, headers):
        booth = factories.booth(db_session, factories.expo(db_session), capacity=4)
        client.post(f"/resources/{booth.id}/book", headers=headers(EXHIBITOR))

        response = client.get("/report", headers=headers(ADMIN))

        assert response.status_code == 200
        assert response.json() == {"total_expos": 1, "total_capacity": 4, "total_confirmed": 1, "occupancy": 0.25}

    def test_report_forbidden_for_attendee(self, client: TestClient, headers):
        assert client.get("/report", headers=headers(ATTENDEE)).status_code == 403

    def test_expo_report_owner_only(self, client: TestClient, db_session: Session, factories, headers):
        expo = factories.expo(db_session)
        factories.booth(db_session, expo)

        own = client.get(f"/report/expo/{expo.id}", headers=headers(ORGANIZER))
        other = client.get(f"/report/expo/{expo.id}", headers=headers(OTHER_ORGANIZER))

        assert own.status_code == 200
        assert own.json()["by_kind"]["booth"]["capacity"] == 1
        assert other.status_code == 403

    def test_resource_report(self, client: TestClient, db_session: Session, factories, headers):
        booth = factories.booth(db_session, factories.expo(db_session), capacity=2)
        client.post(f"/resources/{booth.id}/book", headers=headers(EXHIBITOR))

        response = client.get(f"/report/resource/{booth.id}", headers=headers(ORGANIZER))

        assert response.status_code == 200
        assert response.json()["occupancy"] == 0.5

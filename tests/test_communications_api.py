from datetime import datetime, timezone
from types import SimpleNamespace

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from crm_admin.core.database import Base, get_db
from crm_admin.core.errors import register_exception_handlers
from crm_admin.deps import get_current_user
from crm_admin.models.client import Client
from crm_admin.models.staff import Staff
from crm_admin.models.staff_communication import StaffCommunication
from crm_admin.routers.staff import router as staff_router
from tests.fixtures_data import BOOKING_CLIENT, SAAS_CLIENT


def _build_client(user_client_id: str = BOOKING_CLIENT["id"]):
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    db = testing_session_local()
    db.add(Client(**BOOKING_CLIENT))
    db.add(Client(**SAAS_CLIENT))
    db.add(
        Staff(
            id="staff-booking",
            client_id=BOOKING_CLIENT["id"],
            employee_id="EMP-AAAAAA",
            first_name="Arta",
            last_name="Hoxha",
            email="arta@metrosuites.al",
            date_of_join=datetime(2024, 3, 15, tzinfo=timezone.utc),
            communication_preferences={"email": True, "sms": False},
        )
    )
    db.add(
        Staff(
            id="staff-silent",
            client_id=BOOKING_CLIENT["id"],
            employee_id="EMP-BBBBBB",
            first_name="Blerim",
            last_name="Gashi",
            date_of_join=datetime(2024, 3, 15, tzinfo=timezone.utc),
        )
    )
    db.add(
        Staff(
            id="staff-saas",
            client_id=SAAS_CLIENT["id"],
            employee_id="EMP-CCCCCC",
            first_name="Jane",
            last_name="Doe",
            date_of_join=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
    )
    db.commit()

    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(staff_router)
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_current_user] = lambda: SimpleNamespace(
        id="user-1",
        client_id=user_client_id,
        role="ADMIN",
        email="admin@metrosuites.al",
    )

    return TestClient(app), db


def test_send_email_communication_records_sent_entry():
    client, db = _build_client()

    response = client.post(
        "/api/staff/staff-booking/communications",
        json={"type": "EMAIL", "subject": "Shift change", "message": "See you at 8"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "SENT"
    assert body["subject"] == "Shift change"
    assert db.query(StaffCommunication).count() == 1


def test_note_gets_default_subject_and_ignores_preferences():
    client, _db = _build_client()

    response = client.post(
        "/api/staff/staff-silent/communications",
        json={"type": "NOTE", "message": "Keys returned"},
    )

    assert response.status_code == 200
    assert response.json()["subject"] == "Staff Note"


def test_sms_requires_opt_in():
    client, _db = _build_client()

    response = client.post(
        "/api/staff/staff-booking/communications",
        json={"type": "SMS", "subject": "Hi", "message": "Ping"},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Staff member has not opted in for SMS communications"}


def test_email_requires_stored_preferences():
    client, _db = _build_client()

    response = client.post(
        "/api/staff/staff-silent/communications",
        json={"type": "EMAIL", "subject": "Hi", "message": "Ping"},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Staff member has no communication preferences set"}


def test_missing_message_is_rejected():
    client, _db = _build_client()

    response = client.post("/api/staff/staff-booking/communications", json={"type": "EMAIL"})

    assert response.status_code == 400
    assert response.json() == {"error": "Type and message are required"}


def test_list_returns_newest_first():
    client, _db = _build_client()
    client.post("/api/staff/staff-booking/communications", json={"type": "NOTE", "message": "first"})
    client.post("/api/staff/staff-booking/communications", json={"type": "NOTE", "message": "second"})

    response = client.get("/api/staff/staff-booking/communications")

    assert response.status_code == 200
    assert [entry["message"] for entry in response.json()] == ["second", "first"]


def test_non_booking_client_is_forbidden():
    client, _db = _build_client(user_client_id=SAAS_CLIENT["id"])

    response = client.get("/api/staff/staff-saas/communications")

    assert response.status_code == 403


def test_staff_of_another_client_is_forbidden():
    client, _db = _build_client()

    response = client.get("/api/staff/staff-saas/communications")

    assert response.status_code == 403

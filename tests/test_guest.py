from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy import select

from campus.core.auth import Principal, ensure_school_access
from campus.core.exceptions import PermissionDenied
from campus.core.security import utcnow
from campus.models import Announcement, GuestSession
from campus.models.user import STAFF_ROLES

from .conftest import auth_headers


async def test_guest_login_without_school(client):
    response = await client.post("/api/auth/guest-login")
    assert response.status_code == 200
    body = response.json()
    assert body["user"]["role"] == "guest"
    assert body["user"]["is_guest"] is True
    assert body["user"]["school_id"] is None
    assert body["redirect_to"] == "/dashboard/guest"
    assert body["limitations"][-1] == "Session expires in 24 hours"


async def test_guest_login_scoped_to_school(client, school):
    response = await client.post("/api/auth/guest-login", json={"school_code": school.code.lower()})
    assert response.status_code == 200
    assert response.json()["user"]["school_code"] == school.code


async def test_guest_login_unknown_school(client):
    response = await client.post("/api/auth/guest-login", json={"school_code": "NOPE999"})
    assert response.status_code == 404


async def test_guest_demo_session_lasts_a_week(client, db):
    response = await client.post("/api/guest/login")
    assert response.status_code == 200
    session = (await db.execute(select(GuestSession))).scalar_one()
    remaining = session.expires_at.replace(tzinfo=None) - utcnow().replace(tzinfo=None)
    assert timedelta(days=6, hours=23) < remaining <= timedelta(days=7)


async def test_guest_session_is_read_only(client, guest_token, school):
    headers = auth_headers(guest_token)
    response = await client.post(f"/api/announcements/school/{school.id}", headers=headers,
                                 json={"title": "Hello there", "content": "Not allowed"})
    assert response.status_code == 403
    assert response.json()["error"] == "Guest sessions are read-only"

    response = await client.put("/api/users/00000000-0000-0000-0000-000000000000", headers=headers,
                                json={"first_name": "Mallory"})
    assert response.status_code == 403


async def test_guest_can_read_school_announcements(client, guest_token, school, school_admin, db):
    db.add(Announcement(school_id=school.id, author_id=school_admin.id, title="Open day",
                        content="Visit us", target_audience="all"))
    db.add(Announcement(school_id=school.id, author_id=school_admin.id, title="Staff meeting",
                        content="Staff only", target_audience="staff"))
    await db.commit()

    response = await client.get(f"/api/announcements/school/{school.id}", headers=auth_headers(guest_token))
    assert response.status_code == 200
    titles = [a["title"] for a in response.json()["items"]]
    assert titles == ["Open day"]


async def test_guest_cannot_read_other_school(client, guest_token, make_school):
    other = await make_school("Hill Top College")
    response = await client.get(f"/api/events/school/{other.id}", headers=auth_headers(guest_token))
    assert response.status_code == 403


async def test_guest_blocked_from_member_routes(client, guest_token, school):
    response = await client.get(f"/api/students/school/{school.id}", headers=auth_headers(guest_token))
    assert response.status_code == 403


@pytest.mark.parametrize("path", [
    "/api/students/{student}",
    "/api/students/{student}/grades",
    "/api/grades/student/{student}",
    "/api/fees/student/{student}/status",
    "/api/fees/student/{student}/payments",
    "/api/attendance/student/{student}/summary",
    "/api/reports/student/{student}/report-card",
    "/api/timetables/class/{school_class}",
    "/api/fees/structure/school/{school}",
    "/api/subjects/school/{school}",
    "/api/terms/school/{school}",
])
async def test_guest_cannot_read_student_records(client, guest_token, school, school_class, make_student, path):
    student = await make_student(school_class)
    url = path.format(student=student.id, school_class=school_class.id, school=school.id)
    response = await client.get(url, headers=auth_headers(guest_token))
    assert response.status_code == 403
    assert response.json()["current"] == "guest"


async def test_guest_rejected_where_roles_are_required(db, school):
    principal = Principal(id=uuid4(), role="guest", claims={}, is_guest=True, school_id=school.id)
    await ensure_school_access(db, principal, school.id)
    with pytest.raises(PermissionDenied):
        await ensure_school_access(db, principal, school.id, roles=STAFF_ROLES)


async def test_guest_may_logout(client, guest_token):
    headers = auth_headers(guest_token)
    response = await client.post("/api/auth/logout", headers=headers)
    assert response.status_code == 200
    response = await client.get("/api/auth/session", headers=headers)
    assert response.status_code == 401
    assert response.json()["error"] == "Token revoked"


async def test_guest_session_info(client, guest_token, school):
    response = await client.get("/api/auth/session", headers=auth_headers(guest_token))
    body = response.json()
    assert body["is_guest"] is True
    assert body["read_only"] is True
    assert body["school_id"] == str(school.id)
    assert body["banner"]


async def test_expired_guest_session(client, guest_token, db):
    session = (await db.execute(select(GuestSession))).scalar_one()
    session.expires_at = utcnow() - timedelta(minutes=1)
    await db.commit()
    response = await client.get("/api/auth/session", headers=auth_headers(guest_token))
    assert response.status_code == 401
    assert response.json()["error"] == "Token expired"


async def test_guest_dashboard(client, guest_token, school):
    response = await client.get("/api/dashboard/guest", headers=auth_headers(guest_token))
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Welcome guest! Limited demo access enabled."
    assert body["school"]["code"] == school.code
    assert "announcements" in body and "upcoming_events" in body
    assert body["limitations"][-1] == "Session expires in 24 hours"


async def test_demo_dashboard_reports_week_long_expiry(client):
    response = await client.post("/api/guest/login")
    assert response.json()["limitations"][-1] == "Session expires in 168 hours"

    response = await client.get("/api/dashboard/guest", headers=auth_headers(response.json()["token"]))
    assert response.status_code == 200
    assert response.json()["limitations"][-1] == "Session expires in 168 hours"


async def test_guest_refresh_keeps_expiry(client, guest_token):
    response = await client.post("/api/auth/refresh", headers=auth_headers(guest_token))
    assert response.status_code == 200
    assert response.json()["token"]

from datetime import timedelta

import pytest

from campus.core.security import utcnow
from campus.services.announcement_service import visible_audiences


def test_visible_audiences():
    assert visible_audiences("principal") is None
    assert visible_audiences("super_admin") is None
    assert visible_audiences("teacher") == ["all", "teachers", "staff"]
    assert visible_audiences("guest") == ["all"]
    assert visible_audiences("sales_admin") == ["all"]


@pytest.fixture
async def student_user(make_user, school):
    return await make_user("student", school=school)


async def test_announcement_audiences(client, school, admin_headers, student_user, teacher_headers, login_as):
    for title, audience in [("Sports day", "all"), ("Staff briefing", "staff"), ("Exam timetable", "students")]:
        response = await client.post(f"/api/announcements/school/{school.id}", headers=admin_headers,
                                     json={"title": title, "content": "Details inside", "targetAudience": audience})
        assert response.status_code == 201

    student_headers = await login_as(student_user, school)
    response = await client.get(f"/api/announcements/school/{school.id}", headers=student_headers)
    assert sorted(a["title"] for a in response.json()["items"]) == ["Exam timetable", "Sports day"]

    response = await client.get(f"/api/announcements/school/{school.id}", headers=teacher_headers)
    assert sorted(a["title"] for a in response.json()["items"]) == ["Sports day", "Staff briefing"]

    response = await client.get(f"/api/announcements/school/{school.id}", headers=admin_headers)
    assert response.json()["pagination"]["total"] == 3

    response = await client.get(f"/api/announcements/school/{school.id}", headers=admin_headers,
                                params={"audience": "staff"})
    assert [a["title"] for a in response.json()["items"]] == ["Staff briefing"]


async def test_announcement_notifies_audience(client, school, admin_headers, student_user, teacher_user, login_as):
    await client.post(f"/api/announcements/school/{school.id}", headers=admin_headers,
                      json={"title": "Exam timetable", "content": "Exams start Monday", "target_audience": "students"})
    student_headers = await login_as(student_user, school)
    response = await client.get(f"/api/notifications/user/{student_user.id}/unread-count", headers=student_headers)
    assert response.json()["unread_count"] == 1

    teacher_headers = await login_as(teacher_user, school)
    response = await client.get(f"/api/notifications/user/{teacher_user.id}/unread-count", headers=teacher_headers)
    assert response.json()["unread_count"] == 0


async def test_expired_and_draft_announcements_hidden(client, school, admin_headers, student_user, login_as):
    past = (utcnow() - timedelta(days=1)).isoformat()
    await client.post(f"/api/announcements/school/{school.id}", headers=admin_headers,
                      json={"title": "Old news", "content": "Gone", "expires_at": past})
    await client.post(f"/api/announcements/school/{school.id}", headers=admin_headers,
                      json={"title": "Draft notice", "content": "Not yet", "is_published": False})
    student_headers = await login_as(student_user, school)
    response = await client.get(f"/api/announcements/school/{school.id}", headers=student_headers)
    assert response.json()["items"] == []


async def test_announcement_edit_permissions(client, school, admin_headers, teacher_headers, teacher_user,
                                             make_user, login_as):
    response = await client.post(f"/api/announcements/school/{school.id}", headers=teacher_headers,
                                 json={"title": "Homework", "content": "Page 12"})
    announcement_id = response.json()["id"]

    other_teacher = await make_user("teacher", school=school)
    other_headers = await login_as(other_teacher, school)
    response = await client.put(f"/api/announcements/{announcement_id}", headers=other_headers,
                                json={"title": "Changed"})
    assert response.status_code == 403

    response = await client.put(f"/api/announcements/{announcement_id}", headers=teacher_headers,
                                json={"priority": "high"})
    assert response.json()["announcement"]["priority"] == "high"

    response = await client.delete(f"/api/announcements/{announcement_id}", headers=admin_headers)
    assert response.status_code == 200


async def test_student_cannot_post_announcement(client, school, student_user, login_as):
    headers = await login_as(student_user, school)
    response = await client.post(f"/api/announcements/school/{school.id}", headers=headers,
                                 json={"title": "Party", "content": "Everyone come"})
    assert response.status_code == 403


async def test_events(client, school, admin_headers, teacher_headers):
    start = utcnow() + timedelta(days=3)
    response = await client.post(f"/api/events/school/{school.id}", headers=admin_headers, json={
        "title": "Inter-house sports", "eventType": "sports",
        "startDate": start.isoformat(), "endDate": (start + timedelta(hours=6)).isoformat(),
    })
    assert response.status_code == 201
    event_id = response.json()["id"]

    response = await client.post(f"/api/events/school/{school.id}", headers=admin_headers, json={
        "title": "PTA meeting", "event_type": "meeting",
        "start_date": start.isoformat(), "end_date": (start - timedelta(hours=1)).isoformat(),
    })
    assert response.status_code == 422

    response = await client.get(f"/api/events/school/{school.id}", headers=teacher_headers,
                                params={"event_type": "sports"})
    assert [e["title"] for e in response.json()["items"]] == ["Inter-house sports"]

    response = await client.put(f"/api/events/{event_id}", headers=admin_headers,
                                json={"end_date": (start - timedelta(days=1)).isoformat()})
    assert response.status_code == 400

    response = await client.delete(f"/api/events/{event_id}", headers=admin_headers)
    assert response.status_code == 200
    response = await client.get(f"/api/events/school/{school.id}", headers=teacher_headers)
    assert response.json()["items"] == []


async def test_event_dates_mixing_offsets(client, school, admin_headers):
    start = (utcnow() + timedelta(days=10)).replace(microsecond=0)
    naive_end = start.replace(tzinfo=None)
    response = await client.post(f"/api/events/school/{school.id}", headers=admin_headers, json={
        "title": "Science fair", "start_date": start.isoformat(),
        "end_date": (naive_end + timedelta(hours=2)).isoformat(),
    })
    assert response.status_code == 201

    response = await client.post(f"/api/events/school/{school.id}", headers=admin_headers, json={
        "title": "Science fair", "start_date": start.isoformat(),
        "end_date": (naive_end - timedelta(hours=1)).isoformat(),
    })
    assert response.status_code == 422


async def test_messaging(client, school, teacher_user, teacher_headers, student_user, login_as):
    response = await client.post("/api/messages", headers=teacher_headers, json={
        "recipientId": str(student_user.id), "subject": "Homework", "content": "Please submit by Friday",
    })
    assert response.status_code == 201
    message_id = response.json()["id"]

    student_headers = await login_as(student_user, school)
    response = await client.get(f"/api/messages/user/{student_user.id}", headers=student_headers)
    assert response.json()["items"][0]["subject"] == "Homework"

    response = await client.get(f"/api/messages/user/{teacher_user.id}", headers=teacher_headers,
                                params={"type": "sent"})
    assert response.json()["pagination"]["total"] == 1

    response = await client.get(f"/api/messages/user/{teacher_user.id}", headers=student_headers)
    assert response.status_code == 403

    response = await client.patch(f"/api/messages/{message_id}/read", headers=teacher_headers)
    assert response.status_code == 403
    response = await client.patch(f"/api/messages/{message_id}/read", headers=student_headers)
    assert response.json()["data"]["is_read"] is True


async def test_message_to_unknown_user(client, teacher_headers):
    response = await client.post("/api/messages", headers=teacher_headers, json={
        "recipient_id": "00000000-0000-0000-0000-000000000000", "content": "Hello",
    })
    assert response.status_code == 404


async def test_notifications(client, school, teacher_headers, student_user, login_as):
    for n in range(3):
        await client.post("/api/messages", headers=teacher_headers,
                          json={"recipient_id": str(student_user.id), "content": f"Note {n}"})
    headers = await login_as(student_user, school)

    response = await client.get(f"/api/notifications/user/{student_user.id}", headers=headers,
                                params={"unread_only": True})
    items = response.json()["items"]
    assert len(items) == 3

    response = await client.patch(f"/api/notifications/{items[0]['id']}/read", headers=headers)
    assert response.json()["notification"]["is_read"] is True

    response = await client.patch(f"/api/notifications/{items[0]['id']}/read", headers=teacher_headers)
    assert response.status_code == 403

    response = await client.patch(f"/api/notifications/user/{student_user.id}/read-all", headers=headers)
    assert response.json()["updated"] == 2

    response = await client.get(f"/api/notifications/user/{student_user.id}/unread-count", headers=headers)
    assert response.json()["unread_count"] == 0

    response = await client.get(f"/api/notifications/user/{student_user.id}", headers=teacher_headers)
    assert response.status_code == 403

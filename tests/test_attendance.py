from datetime import date, timedelta

from campus.services.attendance_service import attendance_rate


def test_attendance_rate_counts_late_as_present():
    assert attendance_rate({"present": 6, "late": 2, "absent": 1, "excused": 1}) == 80.0
    assert attendance_rate({}) == 0.0


async def test_mark_and_overwrite_attendance(client, school_class, teacher_headers, admin_headers, make_student):
    first = await make_student(school_class)
    second = await make_student(school_class)
    today = date.today().isoformat()

    response = await client.post(f"/api/attendance/class/{school_class.id}", headers=teacher_headers, json={
        "date": today,
        "attendance": [
            {"studentId": str(first.id), "status": "present"},
            {"studentId": str(second.id), "status": "absent", "remarks": "Sick"},
        ],
    })
    assert response.status_code == 200
    assert response.json()["recorded"] == 2

    response = await client.post(f"/api/attendance/class/{school_class.id}", headers=teacher_headers, json={
        "date": today, "attendance": [{"student_id": str(second.id), "status": "late"}],
    })
    assert response.status_code == 200

    response = await client.get(f"/api/attendance/class/{school_class.id}/date/{today}", headers=admin_headers)
    statuses = {s["student_id"]: s["status"] for s in response.json()["students"]}
    assert statuses == {str(first.id): "present", str(second.id): "late"}


async def test_unknown_student_rejected(client, school_class, teacher_headers, make_school, make_student):
    other_school = await make_school("Hilltop College")
    outsider = await make_student(school_id=other_school.id)
    response = await client.post(f"/api/attendance/class/{school_class.id}", headers=teacher_headers, json={
        "date": date.today().isoformat(), "attendance": [{"student_id": str(outsider.id), "status": "present"}],
    })
    assert response.status_code == 404


async def test_invalid_status_and_empty_list(client, school_class, teacher_headers, make_student):
    student = await make_student(school_class)
    url = f"/api/attendance/class/{school_class.id}"
    response = await client.post(url, headers=teacher_headers, json={
        "date": date.today().isoformat(), "attendance": [{"student_id": str(student.id), "status": "asleep"}],
    })
    assert response.status_code == 422
    response = await client.post(url, headers=teacher_headers, json={"date": date.today().isoformat(), "attendance": []})
    assert response.status_code == 422


async def test_student_summary_with_range(client, school, school_class, teacher_headers, make_user, login_as,
                                          make_student):
    user = await make_user("student", school=school)
    student = await make_student(school_class, user=user)
    today = date.today()
    for offset, status in [(0, "present"), (1, "absent"), (2, "late"), (10, "absent")]:
        await client.post(f"/api/attendance/class/{school_class.id}", headers=teacher_headers, json={
            "date": (today - timedelta(days=offset)).isoformat(),
            "attendance": [{"student_id": str(student.id), "status": status}],
        })

    headers = await login_as(user, school)
    response = await client.get(f"/api/attendance/student/{student.id}/summary", headers=headers,
                                params={"start_date": (today - timedelta(days=5)).isoformat()})
    body = response.json()
    assert body["total_days"] == 3
    assert body["absent"] == 1
    assert body["attendance_rate"] == 66.67

    response = await client.get(f"/api/students/{student.id}/attendance", headers=headers)
    assert len(response.json()["recent"]) == 4


async def test_parent_cannot_mark(client, school, school_class, make_user, login_as, make_student):
    parent = await make_user("parent", school=school)
    student = await make_student(school_class)
    headers = await login_as(parent, school)
    response = await client.post(f"/api/attendance/class/{school_class.id}", headers=headers, json={
        "date": date.today().isoformat(), "attendance": [{"student_id": str(student.id), "status": "present"}],
    })
    assert response.status_code == 403

from campus.models import ParentStudent


async def test_create_and_list_students(client, school, admin_headers, school_class):
    response = await client.post(f"/api/students/school/{school.id}", headers=admin_headers, json={
        "studentId": "stu-100", "firstName": "Tunde", "lastName": "Bello", "gender": "male",
        "classId": str(school_class.id),
    })
    assert response.status_code == 201
    assert response.json()["student"]["student_id"] == "STU-100"

    response = await client.get(f"/api/students/school/{school.id}", headers=admin_headers)
    body = response.json()
    assert body["pagination"]["total"] == 1
    assert body["items"][0]["class_name"] == "JSS 1A"


async def test_duplicate_student_id(client, school, admin_headers, make_student):
    await make_student(student_id="STU-100")
    response = await client.post(f"/api/students/school/{school.id}", headers=admin_headers, json={
        "student_id": "STU-100", "first_name": "Tunde", "last_name": "Bello",
    })
    assert response.status_code == 409


async def test_invalid_gender(client, school, admin_headers):
    response = await client.post(f"/api/students/school/{school.id}", headers=admin_headers, json={
        "student_id": "STU-101", "first_name": "Tunde", "last_name": "Bello", "gender": "unknown",
    })
    assert response.status_code == 422


async def test_class_capacity_enforced(client, school, admin_headers, db, school_class, make_student):
    school_class.capacity = 1
    await db.commit()
    await make_student(school_class)
    response = await client.post(f"/api/students/school/{school.id}", headers=admin_headers, json={
        "student_id": "STU-200", "first_name": "Kemi", "last_name": "Ojo", "class_id": str(school_class.id),
    })
    assert response.status_code == 400
    assert "full capacity" in response.json()["error"]


async def test_list_defaults_to_active_and_searches(client, school, admin_headers, make_student):
    await make_student(first_name="Amaka")
    await make_student(first_name="Bisi", status="graduated")
    response = await client.get(f"/api/students/school/{school.id}", headers=admin_headers)
    assert [s["first_name"] for s in response.json()["items"]] == ["Amaka"]

    response = await client.get(f"/api/students/school/{school.id}", headers=admin_headers,
                                params={"status": "graduated", "search": "bis"})
    assert [s["first_name"] for s in response.json()["items"]] == ["Bisi"]


async def test_update_student(client, admin_headers, make_student):
    student = await make_student()
    response = await client.put(f"/api/students/{student.id}", headers=admin_headers,
                                json={"status": "transferred", "guardian_phone": "+234 803 000 1111"})
    assert response.status_code == 200
    body = response.json()["student"]
    assert body["status"] == "transferred"
    assert body["guardian_phone"] == "+2348030001111"


async def test_update_student_null_fields(client, admin_headers, make_student, school_class):
    student = await make_student(school_class)
    response = await client.put(f"/api/students/{student.id}", headers=admin_headers, json={"first_name": None})
    assert response.status_code == 422

    response = await client.put(f"/api/students/{student.id}", headers=admin_headers, json={"class_id": None})
    assert response.status_code == 200
    assert response.json()["student"]["class_id"] is None


async def test_student_sees_only_self(client, school, make_user, login_as, make_student):
    me = await make_user("student", school=school)
    mine = await make_student(user=me)
    other = await make_student()
    headers = await login_as(me, school)
    assert (await client.get(f"/api/students/{mine.id}", headers=headers)).status_code == 200
    assert (await client.get(f"/api/students/{other.id}", headers=headers)).status_code == 403


async def test_parent_sees_linked_children(client, school, make_user, login_as, make_student, db):
    parent = await make_user("parent")
    child = await make_student()
    stranger = await make_student()
    db.add(ParentStudent(parent_id=parent.id, student_id=child.id))
    await db.commit()
    headers = await login_as(parent)
    assert (await client.get(f"/api/students/{child.id}/attendance", headers=headers)).status_code == 200
    assert (await client.get(f"/api/students/{stranger.id}/attendance", headers=headers)).status_code == 403


async def test_csv_import_reports_row_errors(client, school, admin_headers, school_class, make_student):
    await make_student(student_id="STU-001")
    csv_text = (
        "Student ID,First Name,Last Name,Gender,Class Name\n"
        "STU-010,Ngozi,Eze,female,JSS 1A\n"
        "STU-001,Duplicate,Person,male,\n"
        "STU-011,X,Short,male,\n"
        "STU-012,Obi,Nwosu,male,SS 3Z\n"
        "007,Chike,Obi,,\n"
    )
    response = await client.post(
        f"/api/students/school/{school.id}/import",
        headers=admin_headers,
        files={"file": ("students.csv", csv_text.encode(), "text/csv")},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["created"] == 2
    assert sorted(body["student_ids"]) == ["007", "STU-010"]
    errors = {e["row_number"]: e["error"] for e in body["errors"]}
    assert set(errors) == {3, 4, 5}
    assert "already exists" in errors[3]
    assert "first_name" in errors[4]
    assert "Unknown class" in errors[5]


async def test_csv_import_missing_columns(client, school, admin_headers):
    response = await client.post(
        f"/api/students/school/{school.id}/import",
        headers=admin_headers,
        files={"file": ("students.csv", b"first_name,last_name\nAda,Obi\n", "text/csv")},
    )
    assert response.status_code == 400
    assert "Missing required columns" in response.json()["error"]


async def test_csv_template(client, school, admin_headers):
    response = await client.get(f"/api/students/school/{school.id}/import/template", headers=admin_headers)
    assert response.status_code == 200
    assert response.text.splitlines()[0].startswith("student_id,first_name,last_name")


async def test_teacher_cannot_create_student(client, school, teacher_headers):
    response = await client.post(f"/api/students/school/{school.id}", headers=teacher_headers, json={
        "student_id": "STU-300", "first_name": "Tunde", "last_name": "Bello",
    })
    assert response.status_code == 403

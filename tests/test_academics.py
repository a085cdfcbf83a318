from uuid import UUID

from campus.models import SchoolClass, Teacher, User


async def test_create_teacher_with_new_account(client, school, admin_headers, db):
    response = await client.post(f"/api/teachers/school/{school.id}", headers=admin_headers, json={
        "email": "Musa@Example.com", "firstName": "Musa", "lastName": "Danjuma",
        "employeeId": "emp-010", "salary": "150000.00",
    })
    assert response.status_code == 201
    teacher = response.json()["teacher"]
    assert teacher["employee_id"] == "EMP-010"
    assert teacher["email"] == "musa@example.com"
    assert teacher["salary"] == 150000.0

    user = await db.get(User, UUID(teacher["user_id"]))
    assert user.role == "teacher"


async def test_duplicate_employee_id(client, school, admin_headers, teacher):
    response = await client.post(f"/api/teachers/school/{school.id}", headers=admin_headers, json={
        "email": "other@example.com", "first_name": "Musa", "last_name": "Danjuma", "employee_id": "EMP-001",
    })
    assert response.status_code == 409


async def test_list_and_get_teacher(client, school, admin_headers, teacher, teacher_headers):
    response = await client.get(f"/api/teachers/school/{school.id}", headers=admin_headers,
                                params={"search": "emp-0"})
    assert response.json()["pagination"]["total"] == 1

    response = await client.get(f"/api/teachers/{teacher.id}", headers=teacher_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["employee_id"] == "EMP-001"
    assert body["classes"] == [] and body["subjects"] == []


async def test_update_teacher_status(client, admin_headers, teacher, teacher_headers):
    response = await client.put(f"/api/teachers/{teacher.id}", headers=teacher_headers, json={"status": "inactive"})
    assert response.status_code == 403
    response = await client.put(f"/api/teachers/{teacher.id}", headers=admin_headers, json={"status": "inactive"})
    assert response.json()["teacher"]["status"] == "inactive"


async def test_class_lifecycle(client, school, admin_headers, teacher, subject, make_student, db):
    response = await client.post(f"/api/classes/school/{school.id}", headers=admin_headers, json={
        "name": "JSS 2B", "level": "JSS2", "capacity": 2, "classTeacherId": str(teacher.id),
    })
    assert response.status_code == 201
    class_id = response.json()["id"]

    response = await client.post(f"/api/classes/{class_id}/subjects", headers=admin_headers,
                                 json={"subject_id": str(subject.id), "teacher_id": str(teacher.id)})
    assert response.status_code == 201

    new_class = await db.get(SchoolClass, UUID(class_id))
    await make_student(new_class)
    await make_student(new_class)

    response = await client.get(f"/api/classes/{class_id}", headers=admin_headers)
    body = response.json()
    assert body["student_count"] == 2
    assert body["subjects"][0]["code"] == "MTH"

    response = await client.put(f"/api/classes/{class_id}", headers=admin_headers, json={"capacity": 1})
    assert response.status_code == 400
    assert "enrolment" in response.json()["error"]

    response = await client.get(f"/api/classes/school/{school.id}", headers=admin_headers)
    counts = {c["name"]: c["student_count"] for c in response.json()["classes"]}
    assert counts["JSS 2B"] == 2


async def test_class_teacher_from_other_school(client, school, admin_headers, make_school, make_user, db):
    other_school = await make_school("Other Academy")
    other_user = await make_user("teacher", school=other_school)
    stranger = Teacher(school_id=other_school.id, user_id=other_user.id, employee_id="EMP-900")
    db.add(stranger)
    await db.commit()
    response = await client.post(f"/api/classes/school/{school.id}", headers=admin_headers, json={
        "name": "JSS 3C", "level": "JSS3", "class_teacher_id": str(stranger.id),
    })
    assert response.status_code == 404


async def test_subjects(client, school, admin_headers, teacher_headers, subject):
    response = await client.post(f"/api/subjects/school/{school.id}", headers=admin_headers,
                                 json={"name": "English Language", "code": "eng"})
    assert response.status_code == 201
    assert response.json()["subject"]["code"] == "ENG"

    response = await client.post(f"/api/subjects/school/{school.id}", headers=admin_headers,
                                 json={"name": "Further Maths", "code": "mth"})
    assert response.status_code == 409

    response = await client.get(f"/api/subjects/school/{school.id}", headers=teacher_headers)
    assert [s["code"] for s in response.json()["subjects"]] == ["ENG", "MTH"]

    response = await client.put(f"/api/subjects/{subject.id}", headers=teacher_headers, json={"is_core": False})
    assert response.status_code == 403

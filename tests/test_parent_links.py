async def _request_code(client, headers, student, **extra):
    response = await client.post("/api/parent-links/request", headers=headers,
                                 json={"studentId": str(student.id), **extra})
    assert response.status_code == 201
    return response.json()["link"]


async def test_link_flow(client, school, school_class, admin_headers, make_user, login_as, make_student):
    student = await make_student(school_class, first_name="Zainab")
    link = await _request_code(client, admin_headers, student, parent_email="mum@example.com",
                               relationship_type="mother")
    assert len(link["code"]) == 8

    parent = await make_user("parent", email="mum@example.com")
    parent_headers = await login_as(parent)
    response = await client.post("/api/parent-links/claim", headers=parent_headers,
                                 json={"code": link["code"].lower()})
    assert response.status_code == 200
    assert response.json()["link"]["status"] == "claimed"

    response = await client.get("/api/parent-links/my", headers=parent_headers)
    assert response.json()["children"] == []

    response = await client.post(f"/api/parent-links/{link['id']}/approve", headers=admin_headers)
    assert response.json()["link"]["status"] == "approved"

    response = await client.get("/api/parent-links/my", headers=parent_headers)
    children = response.json()["children"]
    assert children[0]["relationship"] == "mother"
    assert children[0]["class_name"] == "JSS 1A"

    response = await client.get(f"/api/students/{student.id}", headers=parent_headers)
    assert response.status_code == 200


async def test_code_bound_to_email(client, admin_headers, make_user, login_as, make_student):
    student = await make_student()
    link = await _request_code(client, admin_headers, student, parent_email="dad@example.com")
    stranger = await make_user("parent", email="someone@example.com")
    response = await client.post("/api/parent-links/claim", headers=await login_as(stranger),
                                 json={"code": link["code"]})
    assert response.status_code == 403


async def test_code_cannot_be_reused(client, admin_headers, make_user, login_as, make_student):
    student = await make_student()
    link = await _request_code(client, admin_headers, student)
    first = await make_user("parent")
    second = await make_user("parent")
    assert (await client.post("/api/parent-links/claim", headers=await login_as(first),
                              json={"code": link["code"]})).status_code == 200
    response = await client.post("/api/parent-links/claim", headers=await login_as(second),
                                 json={"code": link["code"]})
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid or expired link code"


async def test_only_parents_claim(client, admin_headers, teacher_headers, make_student):
    student = await make_student()
    link = await _request_code(client, admin_headers, student)
    response = await client.post("/api/parent-links/claim", headers=teacher_headers, json={"code": link["code"]})
    assert response.status_code == 403


async def test_reject_and_review_rules(client, admin_headers, teacher_headers, make_user, login_as, make_student):
    student = await make_student()
    link = await _request_code(client, teacher_headers, student)

    response = await client.post(f"/api/parent-links/{link['id']}/approve", headers=admin_headers)
    assert response.status_code == 400

    parent = await make_user("parent")
    await client.post("/api/parent-links/claim", headers=await login_as(parent), json={"code": link["code"]})
    response = await client.post(f"/api/parent-links/{link['id']}/reject", headers=teacher_headers)
    assert response.status_code == 403
    response = await client.post(f"/api/parent-links/{link['id']}/reject", headers=admin_headers)
    assert response.json()["link"]["status"] == "rejected"


async def test_parent_cannot_request_code(client, school, make_user, login_as, make_student):
    parent = await make_user("parent", school=school)
    student = await make_student()
    response = await client.post("/api/parent-links/request", headers=await login_as(parent, school),
                                 json={"student_id": str(student.id)})
    assert response.status_code == 403

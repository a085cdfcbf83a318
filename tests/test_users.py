from sqlalchemy import select

from campus.models import SchoolUser


async def test_list_members_with_role_filter(client, school, admin_headers, teacher_user):
    response = await client.get(f"/api/users/school/{school.id}", headers=admin_headers, params={"role": "teacher"})
    assert response.status_code == 200
    body = response.json()
    assert body["pagination"]["total"] == 1
    assert body["items"][0]["id"] == str(teacher_user.id)
    assert body["items"][0]["school_role"] == "teacher"


async def test_teacher_cannot_list_members(client, school, teacher_headers):
    response = await client.get(f"/api/users/school/{school.id}", headers=teacher_headers)
    assert response.status_code == 403


async def test_user_can_update_self_but_not_role(client, make_user, login_as):
    user = await make_user("parent")
    headers = await login_as(user)
    response = await client.put(f"/api/users/{user.id}", headers=headers, json={"first_name": "Chidi"})
    assert response.status_code == 200
    assert response.json()["user"]["first_name"] == "Chidi"

    response = await client.put(f"/api/users/{user.id}", headers=headers, json={"role": "super_admin"})
    assert response.status_code == 403

    response = await client.put(f"/api/users/{user.id}", headers=headers, json={"lastName": None})
    assert response.status_code == 422


async def test_user_cannot_view_others(client, make_user, login_as):
    alice = await make_user("parent")
    bob = await make_user("parent")
    response = await client.get(f"/api/users/{bob.id}", headers=await login_as(alice))
    assert response.status_code == 403


async def test_super_admin_changes_role(client, make_user, super_admin, login_as):
    user = await make_user("staff")
    response = await client.put(f"/api/users/{user.id}", headers=await login_as(super_admin),
                                json={"role": "teacher"})
    assert response.status_code == 200
    assert response.json()["user"]["role"] == "teacher"


async def test_add_new_member(client, school, admin_headers):
    response = await client.post(f"/api/users/school/{school.id}/add", headers=admin_headers, json={
        "email": "new.staff@example.com", "role": "staff", "first_name": "Bola", "last_name": "Ade",
        "password": "Welcome123",
    })
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "User created and added to school"
    assert body["user"]["school_role"] == "staff"


async def test_add_existing_member_twice(client, school, admin_headers, make_user):
    user = await make_user("teacher", email="known@example.com")
    payload = {"email": "known@example.com", "role": "teacher"}
    response = await client.post(f"/api/users/school/{school.id}/add", headers=admin_headers, json=payload)
    assert response.status_code == 201
    assert response.json()["message"] == "User added to school"
    assert response.json()["user"]["id"] == str(user.id)

    response = await client.post(f"/api/users/school/{school.id}/add", headers=admin_headers, json=payload)
    assert response.status_code == 400


async def test_remove_member_deactivates(client, school, admin_headers, teacher_user, teacher_headers, db):
    response = await client.delete(f"/api/users/school/{school.id}/remove/{teacher_user.id}", headers=admin_headers)
    assert response.status_code == 200
    membership = (await db.execute(select(SchoolUser).where(SchoolUser.user_id == teacher_user.id))).scalar_one()
    await db.refresh(membership)
    assert membership.is_active is False

    response = await client.get(f"/api/subjects/school/{school.id}", headers=teacher_headers)
    assert response.status_code == 403


async def test_admin_cannot_remove_self(client, school, admin_headers, school_admin):
    response = await client.delete(f"/api/users/school/{school.id}/remove/{school_admin.id}", headers=admin_headers)
    assert response.status_code == 403


async def test_change_member_role(client, school, admin_headers, teacher_user):
    response = await client.put(f"/api/users/school/{school.id}/role/{teacher_user.id}", headers=admin_headers,
                                json={"role": "principal"})
    assert response.status_code == 200
    assert response.json()["school_role"] == "principal"

import pytest

from campus.utils.navigation import can, dashboard_for, menu_for, permissions_for, resolve_path


def test_dashboard_for_roles():
    assert dashboard_for("principal") == "/dashboard/school"
    assert dashboard_for("finance_admin") == "/dashboard/admin"
    assert dashboard_for("nobody") == "/auth/login"


def test_permissions_matrix():
    teacher = permissions_for("teacher")
    assert teacher["grades"]["can_create"] is True
    assert teacher["grades"]["can_delete"] is False
    assert teacher["fees"]["can_view"] is False
    assert all(permissions_for("super_admin")["schools"].values())
    assert permissions_for("school_admin")["schools"] == {
        "can_view": True, "can_create": False, "can_edit": True, "can_delete": False, "can_manage": False,
    }
    assert permissions_for("unknown")["students"]["can_view"] is False


def test_admin_roles_share_menu():
    assert menu_for("support_admin") == menu_for("super_admin")
    assert menu_for("unknown") == []


@pytest.mark.parametrize("role,path,expected", [
    ("teacher", "/grades", None),
    ("teacher", "/fees", "/dashboard/teacher"),
    ("teacher", "/dashboard/admin", "/dashboard/teacher"),
    ("student", "/profile", None),
    ("guest", "/settings", "/dashboard/guest"),
    ("guest", "announcements/", None),
    ("parent", "/nowhere", "/dashboard/parent"),
])
def test_resolve_path(role, path, expected):
    assert resolve_path(role, path) == expected


def test_can():
    assert can("staff", "fees", "create")
    assert not can("student", "grades", "edit")


async def test_navigation_for_school_member(client, teacher_headers):
    response = await client.get("/api/navigation", headers=teacher_headers)
    body = response.json()
    assert body["role"] == "teacher"
    assert body["is_guest"] is False
    assert body["dashboard"] == "/dashboard/teacher"
    assert body["menu"][0]["path"] == "/dashboard/teacher"


async def test_navigation_uses_school_role(client, school, make_user, login_as):
    user = await make_user("teacher", school=school, school_role="principal")
    response = await client.get("/api/navigation", headers=await login_as(user, school))
    assert response.json()["dashboard"] == "/dashboard/school"


async def test_navigation_for_guest(client, guest_token):
    headers = {"Authorization": f"Bearer {guest_token}"}
    response = await client.get("/api/navigation", headers=headers)
    assert response.json()["role"] == "guest"

    response = await client.get("/api/navigation/resolve", headers=headers, params={"path": "/students"})
    assert response.json() == {"path": "/students", "allowed": False, "redirect_to": "/dashboard/guest"}


async def test_navigation_requires_token(client):
    response = await client.get("/api/navigation")
    assert response.status_code == 401
    assert response.json()["redirect_to"] == "/auth/login"

from datetime import timedelta

from sqlalchemy import select

from campus.core.security import create_access_token
from campus.models import LoginEvent, User

from .conftest import PASSWORD, auth_headers


REGISTRATION = {
    "email": "Jane.Doe@Example.com",
    "password": "Secret123",
    "firstName": "Jane",
    "lastName": "Doe",
    "role": "parent",
}


async def test_register_returns_token_and_dashboard(client):
    response = await client.post("/api/auth/register", json=REGISTRATION)
    assert response.status_code == 201
    body = response.json()
    assert body["token"]
    assert body["user"]["email"] == "jane.doe@example.com"
    assert body["redirect_to"] == "/dashboard/parent"


async def test_register_duplicate_email(client):
    await client.post("/api/auth/register", json=REGISTRATION)
    response = await client.post("/api/auth/register", json=REGISTRATION)
    assert response.status_code == 400
    assert response.json()["error"] == "User already exists with this email"


async def test_register_rejects_admin_roles(client):
    response = await client.post("/api/auth/register", json={**REGISTRATION, "role": "super_admin"})
    assert response.status_code == 422
    assert response.json()["error"] == "Validation failed"


async def test_register_with_school_code_creates_membership(client, school):
    response = await client.post(
        "/api/auth/register",
        json={**REGISTRATION, "role": "teacher", "schoolCode": school.code},
    )
    assert response.status_code == 201
    assert response.json()["user"]["school_id"] == str(school.id)


async def test_login_with_email_is_case_insensitive(client, make_user, db):
    user = await make_user("student", email="pupil@example.com")
    response = await client.post("/api/auth/login",
                                 json={"email_or_phone": "PUPIL@example.com", "password": PASSWORD})
    assert response.status_code == 200
    assert response.json()["redirect_to"] == "/dashboard/student"

    events = (await db.execute(select(LoginEvent).where(LoginEvent.user_id == user.id))).scalars().all()
    assert [e.success for e in events] == [True]


async def test_login_redirect_follows_school_role(client, make_user, school):
    user = await make_user("teacher", school=school, school_role="principal", email="head@example.com")
    response = await client.post("/api/auth/login", json={"email_or_phone": user.email, "password": PASSWORD})
    assert response.status_code == 200
    assert response.json()["redirect_to"] == "/dashboard/school"

    headers = {"Authorization": f"Bearer {response.json()['token']}"}
    response = await client.get("/api/navigation", headers=headers)
    assert response.json()["dashboard"] == "/dashboard/school"


async def test_login_wrong_password(client, make_user):
    await make_user("student", email="pupil@example.com")
    response = await client.post("/api/auth/login",
                                 json={"email_or_phone": "pupil@example.com", "password": "Wrong1234"})
    assert response.status_code == 401
    body = response.json()
    assert body["error"] == "Invalid credentials"
    assert body["redirect_to"] == "/auth/login"


async def test_login_by_phone(client, make_user):
    await make_user("parent", phone="+2348011112222")
    response = await client.post("/api/auth/login",
                                 json={"email_or_phone": "+234 801 111 2222", "password": PASSWORD})
    assert response.status_code == 200


async def test_login_inactive_user(client, make_user):
    await make_user("student", email="gone@example.com", is_active=False)
    response = await client.post("/api/auth/login",
                                 json={"email_or_phone": "gone@example.com", "password": PASSWORD})
    assert response.status_code == 401


async def test_protected_route_requires_token(client):
    response = await client.get("/api/auth/profile")
    assert response.status_code == 401
    assert response.json() == {
        "error": "Access token required",
        "type": "AuthenticationError",
        "redirect_to": "/auth/login",
    }


async def test_expired_token(client, make_user):
    user = await make_user("student")
    token = create_access_token(user.id, {"role": "student"}, expires_delta=timedelta(seconds=-5))
    response = await client.get("/api/auth/profile", headers=auth_headers(token))
    assert response.status_code == 401
    assert response.json()["error"] == "Token expired"


async def test_garbage_token(client):
    response = await client.get("/api/auth/profile", headers=auth_headers("not-a-jwt"))
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid token"


async def test_profile_lists_memberships(client, school_admin, admin_headers, school):
    response = await client.get("/api/auth/profile", headers=admin_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["user"]["email"] == school_admin.email
    assert body["schools"][0]["code"] == school.code


async def test_logout_revokes_token(client, make_user, login_as):
    user = await make_user("teacher")
    headers = await login_as(user)
    response = await client.post("/api/auth/logout", headers=headers)
    assert response.status_code == 200
    assert response.json()["redirect_to"] == "/auth/login"

    response = await client.get("/api/auth/profile", headers=headers)
    assert response.status_code == 401
    assert response.json()["error"] == "Token revoked"


async def test_refresh_issues_new_token(client, school_admin, admin_headers):
    response = await client.post("/api/auth/refresh", headers=admin_headers)
    assert response.status_code == 200
    token = response.json()["token"]
    assert token != admin_headers["Authorization"].split()[1]
    assert (await client.get("/api/auth/profile", headers=auth_headers(token))).status_code == 200


async def test_session_info(client, admin_headers, school):
    response = await client.get("/api/auth/session", headers=admin_headers)
    body = response.json()
    assert body["role"] == "school_admin"
    assert body["is_guest"] is False
    assert body["school_id"] == str(school.id)
    assert 0 < body["seconds_remaining"] <= 7 * 24 * 3600


async def test_otp_login_flow(client, make_user):
    await make_user("student", email="otp@example.com")
    response = await client.post("/api/auth/request-otp", json={"email_or_phone": "otp@example.com"})
    assert response.status_code == 200
    otp = response.json()["otp"]

    response = await client.post("/api/auth/verify-otp", json={"email_or_phone": "otp@example.com", "otp": otp})
    assert response.status_code == 200
    assert response.json()["token"]

    # one-time use
    response = await client.post("/api/auth/verify-otp", json={"email_or_phone": "otp@example.com", "otp": otp})
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid or expired OTP"


async def test_new_otp_supersedes_previous(client, make_user):
    await make_user("student", email="otp@example.com")
    first = (await client.post("/api/auth/request-otp", json={"email_or_phone": "otp@example.com"})).json()["otp"]
    second = (await client.post("/api/auth/request-otp", json={"email_or_phone": "otp@example.com"})).json()["otp"]
    if first != second:
        response = await client.post("/api/auth/verify-otp",
                                     json={"email_or_phone": "otp@example.com", "otp": first})
        assert response.status_code == 400
    response = await client.post("/api/auth/verify-otp", json={"email_or_phone": "otp@example.com", "otp": second})
    assert response.status_code == 200


async def test_request_otp_unknown_account(client):
    response = await client.post("/api/auth/request-otp", json={"email_or_phone": "nobody@example.com"})
    assert response.status_code == 404


async def test_password_reset_flow(client, make_user):
    await make_user("parent", email="reset@example.com")
    response = await client.post("/api/auth/forgot-password", json={"email": "reset@example.com"})
    assert response.status_code == 200
    token = response.json()["reset_token"]

    response = await client.post("/api/auth/reset-password", json={"token": token, "new_password": "Brandnew99"})
    assert response.status_code == 200

    response = await client.post("/api/auth/login",
                                 json={"email_or_phone": "reset@example.com", "password": "Brandnew99"})
    assert response.status_code == 200

    response = await client.post("/api/auth/reset-password", json={"token": token, "new_password": "Another99"})
    assert response.status_code == 400


async def test_forgot_password_does_not_leak_accounts(client):
    response = await client.post("/api/auth/request-reset", json={"email_or_phone": "ghost@example.com"})
    assert response.status_code == 200
    assert "reset_token" not in response.json()


async def test_admin_login_rejects_school_roles(client, make_user):
    await make_user("school_admin", email="head@example.com")
    response = await client.post("/api/auth/admin-login", json={"email": "head@example.com", "password": PASSWORD})
    assert response.status_code == 401


async def test_admin_login(client, make_user):
    await make_user("super_admin", email="root@example.com")
    response = await client.post("/api/auth/admin-login", json={"email": "root@example.com", "password": PASSWORD})
    assert response.status_code == 200
    body = response.json()
    assert body["admin_access"] is True
    assert body["redirect_to"] == "/dashboard/admin"


async def test_magic_link_flow(client, super_admin, login_as, db):
    headers = await login_as(super_admin)
    response = await client.post("/api/auth/magic-link", headers=headers,
                                 json={"email": "support@example.com", "admin_role": "support_admin"})
    assert response.status_code == 201
    token = response.json()["token"]

    response = await client.post("/api/auth/magic-login", json={"token": token})
    assert response.status_code == 200
    assert response.json()["user"]["role"] == "support_admin"

    response = await client.post("/api/auth/magic-login", json={"token": token})
    assert response.status_code == 400

    user = (await db.execute(select(User).where(User.email == "support@example.com"))).scalar_one()
    assert user.email_verified is True


async def test_magic_link_requires_super_admin(client, make_user, login_as):
    support = await make_user("support_admin")
    response = await client.post("/api/auth/magic-link", headers=await login_as(support),
                                 json={"email": "x@example.com", "admin_role": "sales_admin"})
    assert response.status_code == 403

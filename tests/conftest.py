import os

# Settings are read at import time, so the test environment goes in first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["CACHE_ENABLED"] = "false"
os.environ["ASYNC_DELIVERY"] = "false"
os.environ["AUTH_RATE_LIMIT"] = "1000"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["EXPOSE_DEV_SECRETS"] = "true"
os.environ["ADMIN_ACCESS_KEY"] = ""

from datetime import date, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from campus.core.database import get_db
from campus.core.rate_limiter import rate_limiter
from campus.core.security import create_access_token, get_password_hash, utcnow
from campus.main import app
from campus.models import (
    AcademicTerm, Base, School, SchoolClass, SchoolUser, Student, Subject, Teacher, User,
)

PASSWORD = "Password1"


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    rate_limiter.reset()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
    rate_limiter.reset()


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def token_for(user: User, membership: SchoolUser = None) -> str:
    claims = {"role": user.role, "type": "access"}
    if membership is not None:
        claims["school_id"] = str(membership.school_id)
        claims["school_role"] = membership.role
    return create_access_token(user.id, claims)


@pytest.fixture
def make_school(db):
    counter = {"n": 0}

    async def _make(name: str = "Green Valley High", **kwargs) -> School:
        counter["n"] += 1
        school = School(
            name=name,
            code=kwargs.pop("code", f"GREENV{100 + counter['n']}"),
            email=kwargs.pop("email", f"school{counter['n']}@example.com"),
            city=kwargs.pop("city", "Lagos"),
            features={},
            settings={},
            **kwargs,
        )
        db.add(school)
        await db.commit()
        await db.refresh(school)
        return school

    return _make


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    async def _make(role: str = "student", school: School = None, school_role: str = None,
                    email: str = None, password: str = PASSWORD, **kwargs) -> User:
        counter["n"] += 1
        user = User(
            email=email or f"{role}{counter['n']}@example.com",
            password_hash=get_password_hash(password),
            role=role,
            first_name=kwargs.pop("first_name", "Test"),
            last_name=kwargs.pop("last_name", role.replace("_", " ").title().replace(" ", "")),
            **kwargs,
        )
        db.add(user)
        await db.flush()
        if school is not None:
            db.add(SchoolUser(school_id=school.id, user_id=user.id, role=school_role or role, joined_at=utcnow()))
        await db.commit()
        await db.refresh(user)
        return user

    return _make


@pytest.fixture
def login_as(db):
    """Bearer headers for ``user``, scoped to ``school`` when given."""
    async def _headers(user: User, school: School = None) -> dict:
        membership = None
        if school is not None:
            membership = (await db.execute(
                select(SchoolUser).where(SchoolUser.user_id == user.id, SchoolUser.school_id == school.id)
            )).scalar_one_or_none()
        return auth_headers(token_for(user, membership))

    return _headers


@pytest.fixture
async def school(make_school):
    return await make_school()


@pytest.fixture
async def school_admin(make_user, school):
    return await make_user("school_admin", school=school)


@pytest.fixture
async def admin_headers(login_as, school_admin, school):
    return await login_as(school_admin, school)


@pytest.fixture
async def super_admin(make_user):
    return await make_user("super_admin")


@pytest.fixture
async def term(db, school):
    term = AcademicTerm(
        school_id=school.id,
        name="First Term",
        session="2025/2026",
        start_date=date.today() - timedelta(days=30),
        end_date=date.today() + timedelta(days=60),
        is_current=True,
    )
    db.add(term)
    await db.commit()
    await db.refresh(term)
    return term


@pytest.fixture
async def school_class(db, school):
    school_class = SchoolClass(school_id=school.id, name="JSS 1A", level="JSS1", capacity=30)
    db.add(school_class)
    await db.commit()
    await db.refresh(school_class)
    return school_class


@pytest.fixture
async def subject(db, school):
    subject = Subject(school_id=school.id, name="Mathematics", code="MTH", is_core=True)
    db.add(subject)
    await db.commit()
    await db.refresh(subject)
    return subject


@pytest.fixture
def make_student(db, school):
    counter = {"n": 0}

    async def _make(school_class: SchoolClass = None, user: User = None, **kwargs) -> Student:
        counter["n"] += 1
        student = Student(
            school_id=kwargs.pop("school_id", school.id),
            class_id=school_class.id if school_class else None,
            user_id=user.id if user else None,
            student_id=kwargs.pop("student_id", f"STU-{counter['n']:03d}"),
            first_name=kwargs.pop("first_name", "Ada"),
            last_name=kwargs.pop("last_name", f"Pupil{counter['n']}"),
            **kwargs,
        )
        db.add(student)
        await db.commit()
        await db.refresh(student)
        return student

    return _make


@pytest.fixture
async def teacher_user(make_user, school):
    return await make_user("teacher", school=school)


@pytest.fixture
async def teacher(db, school, teacher_user):
    teacher = Teacher(school_id=school.id, user_id=teacher_user.id, employee_id="EMP-001")
    db.add(teacher)
    await db.commit()
    await db.refresh(teacher)
    return teacher


@pytest.fixture
async def teacher_headers(login_as, teacher_user, school):
    return await login_as(teacher_user, school)


@pytest.fixture
async def guest_token(client, school):
    response = await client.post("/api/auth/guest-login", json={"school_code": school.code})
    assert response.status_code == 200
    return response.json()["token"]

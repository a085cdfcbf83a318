from decimal import Decimal

import pytest
from sqlalchemy import select

from campus.models import Notification, ParentStudent
from campus.services.fee_service import fee_status, generate_reference


def test_fee_status():
    assert fee_status(Decimal("100"), Decimal("0")) == "unpaid"
    assert fee_status(Decimal("100"), Decimal("40")) == "partial"
    assert fee_status(Decimal("100"), Decimal("100")) == "paid"


def test_generate_reference_format():
    reference = generate_reference()
    assert reference.startswith("PAY-")
    assert len(reference.split("-")[2]) == 8


@pytest.fixture
async def tuition(client, school, admin_headers, term):
    response = await client.post("/api/fees/structure", headers=admin_headers, json={
        "schoolId": str(school.id), "academicTermId": str(term.id), "name": "Tuition", "amount": "5000.00",
    })
    assert response.status_code == 201
    return response.json()["id"]


async def test_structures_listed_for_members(client, school, tuition, teacher_headers):
    response = await client.get(f"/api/fees/structure/school/{school.id}", headers=teacher_headers)
    structures = response.json()["fee_structures"]
    assert [s["name"] for s in structures] == ["Tuition"]
    assert structures[0]["amount"] == 5000.0


async def test_teacher_cannot_create_structure(client, school, teacher_headers):
    response = await client.post("/api/fees/structure", headers=teacher_headers, json={
        "school_id": str(school.id), "name": "Bus", "amount": 100,
    })
    assert response.status_code == 403


async def test_payment_flow(client, school, school_class, admin_headers, tuition, make_user, make_student, db):
    user = await make_user("student", school=school)
    student = await make_student(school_class, user=user)

    response = await client.post("/api/fees/payment", headers=admin_headers, json={
        "student_id": str(student.id), "fee_structure_id": tuition, "amount": "3000", "payment_method": "cash",
    })
    assert response.status_code == 201
    assert response.json()["reference"].startswith("PAY-")

    response = await client.get(f"/api/fees/student/{student.id}/status", headers=admin_headers)
    body = response.json()
    assert body["status"] == "partial"
    assert body["balance"] == 2000.0
    assert body["fees"][0]["paid"] == 3000.0

    response = await client.post("/api/fees/payment", headers=admin_headers, json={
        "student_id": str(student.id), "fee_structure_id": tuition, "amount": "2500", "payment_method": "card",
    })
    assert response.status_code == 400
    assert "outstanding balance of 2000.0" in response.json()["error"]

    response = await client.post("/api/fees/payment", headers=admin_headers, json={
        "student_id": str(student.id), "fee_structure_id": tuition, "amount": "2000",
        "payment_method": "bank_transfer", "reference": "BANK-42",
    })
    assert response.status_code == 201

    response = await client.get(f"/api/fees/student/{student.id}/status", headers=admin_headers)
    assert response.json()["status"] == "paid"

    response = await client.get(f"/api/fees/student/{student.id}/payments", headers=admin_headers)
    assert response.json()["pagination"]["total"] == 2

    result = await db.execute(select(Notification).where(Notification.user_id == user.id))
    assert len(result.scalars().all()) == 2


async def test_duplicate_reference(client, admin_headers, tuition, make_student):
    student = await make_student()
    payload = {"student_id": str(student.id), "fee_structure_id": tuition, "amount": "100",
               "payment_method": "cash", "reference": "REF-1"}
    assert (await client.post("/api/fees/payment", headers=admin_headers, json=payload)).status_code == 201
    assert (await client.post("/api/fees/payment", headers=admin_headers, json=payload)).status_code == 409


async def test_class_specific_fee_applies_only_to_that_class(client, school, school_class, admin_headers, tuition,
                                                             make_student):
    response = await client.post("/api/fees/structure", headers=admin_headers, json={
        "school_id": str(school.id), "class_id": str(school_class.id), "name": "Lab fee", "amount": "1000",
    })
    assert response.status_code == 201
    in_class = await make_student(school_class)
    unplaced = await make_student()

    status_in_class = (await client.get(f"/api/fees/student/{in_class.id}/status", headers=admin_headers)).json()
    status_unplaced = (await client.get(f"/api/fees/student/{unplaced.id}/status", headers=admin_headers)).json()
    assert status_in_class["total_due"] == 6000.0
    assert status_unplaced["total_due"] == 5000.0

    lab_fee = response.json()["id"]
    response = await client.post("/api/fees/payment", headers=admin_headers, json={
        "student_id": str(unplaced.id), "fee_structure_id": lab_fee, "amount": "500", "payment_method": "cash",
    })
    assert response.status_code == 400
    assert response.json()["field"] == "fee_structure_id"

    response = await client.post("/api/fees/payment", headers=admin_headers, json={
        "student_id": str(in_class.id), "fee_structure_id": lab_fee, "amount": "500", "payment_method": "cash",
    })
    assert response.status_code == 201


async def test_school_summary(client, school, admin_headers, tuition, make_student):
    first = await make_student()
    await make_student()
    await client.post("/api/fees/payment", headers=admin_headers, json={
        "student_id": str(first.id), "fee_structure_id": tuition, "amount": "3000", "payment_method": "cash",
    })
    response = await client.get(f"/api/fees/school/{school.id}/summary", headers=admin_headers)
    body = response.json()
    assert body["expected"] == 10000.0
    assert body["collected"] == 3000.0
    assert body["outstanding"] == 7000.0
    assert body["collection_rate"] == 30.0


async def test_parent_views_child_fees_only(client, school, tuition, make_user, login_as, make_student, db):
    parent = await make_user("parent")
    child = await make_student()
    other = await make_student()
    db.add(ParentStudent(parent_id=parent.id, student_id=child.id))
    await db.commit()
    headers = await login_as(parent)
    assert (await client.get(f"/api/fees/student/{child.id}/status", headers=headers)).status_code == 200
    assert (await client.get(f"/api/fees/student/{other.id}/payments", headers=headers)).status_code == 403

from datetime import date

import pytest

from campus.models import Grade, Subject
from campus.services.report_service import weighted_percentage


def test_weighted_percentage():
    assert weighted_percentage([(30, 40), (45, 60)]) == 75.0
    assert weighted_percentage([]) == 0.0


@pytest.fixture
async def graded_class(db, school_class, subject, term, teacher_user, make_student):
    english = Subject(school_id=school_class.school_id, name="English", code="ENG")
    db.add(english)
    await db.flush()
    top = await make_student(school_class, first_name="Chioma")
    second = await make_student(school_class, first_name="Emeka")
    rows = [
        (top, subject, 30, 40, "test"), (top, subject, 45, 60, "exam"), (top, english, 90, 100, "exam"),
        (second, subject, 20, 40, "test"), (second, english, 55, 100, "exam"),
    ]
    for student, subj, score, max_score, kind in rows:
        db.add(Grade(student_id=student.id, subject_id=subj.id, class_id=school_class.id,
                     academic_term_id=term.id, assessment_type=kind, score=score, max_score=max_score,
                     recorded_by=teacher_user.id))
    await db.commit()
    return top, second


async def test_report_card(client, admin_headers, graded_class, term, school_class, teacher_headers):
    top, _ = graded_class
    await client.post(f"/api/attendance/class/{school_class.id}", headers=teacher_headers, json={
        "date": date.today().isoformat(), "attendance": [{"student_id": str(top.id), "status": "present"}],
    })
    response = await client.get(f"/api/reports/student/{top.id}/report-card", headers=admin_headers,
                                params={"term_id": str(term.id)})
    assert response.status_code == 200
    body = response.json()
    averages = {s["subject_name"]: (s["average"], s["grade"]) for s in body["subjects"]}
    assert averages == {"English": (90.0, "A"), "Mathematics": (75.0, "B")}
    assert body["overall_average"] == 82.5
    assert body["overall_grade"] == "A"
    assert body["attendance"]["present"] == 1
    assert body["term"]["session"] == "2025/2026"


async def test_report_card_requires_term(client, admin_headers, graded_class):
    top, _ = graded_class
    response = await client.get(f"/api/reports/student/{top.id}/report-card", headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "term_id is required"


async def test_class_performance_ranking(client, teacher_headers, graded_class, school_class):
    top, second = graded_class
    response = await client.get(f"/api/reports/class/{school_class.id}/performance", headers=teacher_headers)
    body = response.json()
    assert [r["student_id"] for r in body["ranking"]] == [str(top.id), str(second.id)]
    assert body["ranking"][0]["position"] == 1
    maths = next(s for s in body["subjects"] if s["subject_name"] == "Mathematics")
    assert maths["highest"] == 75.0
    assert maths["lowest"] == 50.0
    assert maths["assessments"] == 3


async def test_school_analytics(client, school, admin_headers, teacher_headers, graded_class, super_admin, login_as):
    response = await client.get(f"/api/reports/school/{school.id}/analytics", headers=admin_headers)
    body = response.json()
    assert body["total_assessments"] == 5
    assert sum(body["grade_distribution"].values()) == 5
    assert body["grade_distribution"]["D"] == 2

    assert (await client.get(f"/api/reports/school/{school.id}/analytics",
                             headers=teacher_headers)).status_code == 403
    headers = await login_as(super_admin)
    assert (await client.get(f"/api/reports/school/{school.id}/analytics", headers=headers)).status_code == 200

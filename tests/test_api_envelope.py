from datetime import date

from workforce_api.extensions import db
from workforce_api.models.leave import LeaveType
from workforce_api.models.performance import ReviewCycle
from workforce_api.models.user import User
from workforce_api.services.salary_service import rotate_structure, split_ctc


def test_missing_token_is_401(client):
    r = client.get("/api/v1/employees")
    assert r.status_code == 401
    body = r.get_json()
    assert body["success"] is False
    assert body["message"] == "Unauthorized"


def test_missing_permission_is_403(client, make_employee, auth_headers):
    emp = make_employee()
    r = client.post("/api/v1/payroll/generate", json={"month": 6, "year": 2025}, headers=auth_headers(emp))
    assert r.status_code == 403
    assert r.get_json() == {"success": False, "message": "Forbidden", "code": "forbidden"}


def test_not_found_envelope(client, make_employee, auth_headers):
    hr = make_employee("hr")
    r = client.get("/api/v1/employees/9999", headers=auth_headers(hr))
    assert r.status_code == 404
    body = r.get_json()
    assert body["success"] is False
    assert body["code"] == "not_found"


def test_validation_envelope(client, make_employee, auth_headers):
    emp = make_employee()
    r = client.post("/api/v1/leave/requests", json={"start_date": "2025-05-05"}, headers=auth_headers(emp))
    assert r.status_code == 400
    assert r.get_json()["code"] == "validation_error"


def test_state_conflict_envelope(client, make_employee, auth_headers):
    emp = make_employee()
    headers = auth_headers(emp)
    assert client.post("/api/v1/attendance/check-in", headers=headers).status_code == 201
    r = client.post("/api/v1/attendance/check-in", headers=headers)
    assert r.status_code == 400
    assert r.get_json()["code"] == "already_checked_in"


def test_check_in_success_envelope(client, make_employee, auth_headers):
    emp = make_employee()
    r = client.post("/api/v1/attendance/check-in", headers=auth_headers(emp))
    assert r.status_code == 201
    body = r.get_json()
    assert body["success"] is True
    assert body["message"] == "Checked in"
    assert body["data"]["employee_id"] == emp.id
    assert body["data"]["status"] == "present"


def test_duplicate_leave_type_hides_detail(client, make_employee, auth_headers):
    hr = make_employee("hr")
    db.session.add(LeaveType(code="CL", name="Casual Leave"))
    db.session.commit()
    payload = {"code": "cl", "name": "Casual again"}

    r = client.post("/api/v1/leave/types", json=payload, headers=auth_headers(hr))
    assert r.status_code == 400
    assert r.get_json()["code"] == "duplicate"
    assert "error" not in r.get_json()


def test_inactive_user_is_rejected(client, make_employee, auth_headers):
    hr = make_employee("hr")
    headers = auth_headers(hr)
    user = db.session.get(User, hr.user_id)
    user.status = "inactive"
    db.session.commit()
    r = client.get("/api/v1/employees", headers=headers)
    assert r.status_code == 401


def test_paged_list_meta(client, make_employee, auth_headers):
    hr = make_employee("hr")
    for _ in range(3):
        make_employee()
    r = client.get("/api/v1/employees?page=1&size=2", headers=auth_headers(hr))
    body = r.get_json()
    assert r.status_code == 200
    assert len(body["data"]) == 2
    assert body["meta"] == {"page": 1, "size": 2, "total": 4}


def test_generate_payroll_over_http(client, make_employee, auth_headers):
    hr = make_employee("hr")
    emp = make_employee()
    rotate_structure(emp, effective_from=date(2025, 1, 1), **split_ctc(30000))
    db.session.commit()

    r = client.post("/api/v1/payroll/generate", json={"month": 6, "year": 2025, "employee_id": emp.id},
                    headers=auth_headers(hr))
    assert r.status_code == 201
    data = r.get_json()["data"]
    assert data["summary"]["generated"] == 1
    assert data["errors"] == []


def test_generate_payroll_cli(app, make_employee):
    emp = make_employee()
    rotate_structure(emp, effective_from=date(2025, 1, 1), **split_ctc(30000))
    db.session.commit()

    runner = app.test_cli_runner()
    result = runner.invoke(args=["generate-payroll", "--month", "6", "--year", "2025", "--employee-id", str(emp.id)])
    assert result.exit_code == 0
    assert "generated=1 failed=0" in result.output


def test_review_lookup_is_forbidden_for_other_employees(client, make_employee, auth_headers):
    emp = make_employee()
    stranger = make_employee()
    cycle = ReviewCycle(name="H1 2025", start_date=date(2025, 1, 1), end_date=date(2025, 6, 30), status="Active")
    db.session.add(cycle); db.session.commit()
    payload = {"employee_id": emp.id, "review_cycle_id": cycle.id}

    assert client.post("/api/v1/performance/reviews", json=payload, headers=auth_headers(emp)).status_code == 201
    r = client.post("/api/v1/performance/reviews", json=payload, headers=auth_headers(stranger))
    assert r.status_code == 403
    assert r.get_json()["code"] == "forbidden"
    assert "data" not in r.get_json()

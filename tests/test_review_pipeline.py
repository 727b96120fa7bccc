from datetime import date
from decimal import Decimal

import pytest

from workforce_api.common.errors import AuthorizationError, StateConflictError, ValidationError
from workforce_api.extensions import db
from workforce_api.models.performance import Goal, ReviewCycle
from workforce_api.services import goal_service
from workforce_api.services import review_service as svc


@pytest.fixture
def org(make_employee):
    hr = make_employee("hr")
    manager = make_employee("manager")
    emp = make_employee(manager=manager)
    return hr, manager, emp


@pytest.fixture
def cycle(app):
    c = ReviewCycle(name="H1 2025", start_date=date(2025, 1, 1), end_date=date(2025, 6, 30), status="Active")
    db.session.add(c); db.session.commit()
    return c


def _goal(emp, progress, status="Active", title="Ship it"):
    g = Goal(title=title, start_date=date(2025, 1, 1), end_date=date(2025, 6, 30),
             status=status, progress=progress, weightage=50)
    g.assignees = [emp]
    db.session.add(g); db.session.commit()
    return g


def _set_cycle(cycle, status):
    cycle.status = status
    db.session.commit()


def test_final_rating_formula():
    assert svc.calculate_final_rating([50, 100], 4, 5) == Decimal("4.10")
    # provisional before manager/hr stages
    assert svc.calculate_final_rating([100]) == Decimal("3.00")
    assert svc.calculate_final_rating([]) == Decimal("0.60")


def test_full_pipeline(org, cycle, actor_of):
    hr, manager, emp = org
    _goal(emp, 60)
    _goal(emp, 10, status="Draft", title="Not snapshotted")

    review, created = svc.create_or_get_review(actor_of(emp), emp.id, cycle.id)
    assert created is True
    assert [g.title for g in review.goals] == ["Ship it"]

    again, created = svc.create_or_get_review(actor_of(emp), emp.id, cycle.id)
    assert created is False and again.id == review.id

    rg = review.goals[0]
    review = svc.submit_self_review(actor_of(emp), review.id, self_rating=4,
                                    goals=[{"id": rg.id, "final_progress": 80, "comment": "done mostly"}])
    assert review.status == "Self Submitted"
    assert review.final_rating == Decimal("2.52")

    review = svc.submit_manager_review(actor_of(manager), review.id, manager_rating=4, comments="solid")
    assert review.status == "Manager Reviewed"
    assert review.final_rating == Decimal("3.72")

    review = svc.submit_hr_review(actor_of(hr), review.id, hr_rating=5)
    assert review.final_rating == Decimal("4.22")

    review = svc.finalize_review(actor_of(hr), review.id)
    assert review.status == "Finalized"
    assert review.final_rating == Decimal("4.22")
    assert svc.is_editable(review) is False


def test_out_of_order_transition(org, cycle, actor_of):
    _, manager, emp = org
    review, _ = svc.create_or_get_review(actor_of(emp), emp.id, cycle.id)
    with pytest.raises(StateConflictError):
        svc.submit_manager_review(actor_of(manager), review.id, manager_rating=3)


def test_only_reporting_manager_reviews(org, cycle, make_employee, actor_of):
    _, _, emp = org
    stranger = make_employee("manager")
    review, _ = svc.create_or_get_review(actor_of(emp), emp.id, cycle.id)
    svc.submit_self_review(actor_of(emp), review.id, self_rating=3)
    with pytest.raises(AuthorizationError):
        svc.submit_manager_review(actor_of(stranger), review.id, manager_rating=3)


def test_only_hr_submits_hr_stage(org, cycle, actor_of):
    _, manager, emp = org
    review, _ = svc.create_or_get_review(actor_of(emp), emp.id, cycle.id)
    svc.submit_self_review(actor_of(emp), review.id, self_rating=3)
    svc.submit_manager_review(actor_of(manager), review.id, manager_rating=3)
    with pytest.raises(AuthorizationError):
        svc.submit_hr_review(actor_of(manager), review.id, hr_rating=3)


@pytest.mark.parametrize("rating", [0, 6, "3.5", "x", None])
def test_rating_must_be_whole_1_to_5(org, cycle, actor_of, rating):
    _, _, emp = org
    review, _ = svc.create_or_get_review(actor_of(emp), emp.id, cycle.id)
    with pytest.raises(ValidationError):
        svc.submit_self_review(actor_of(emp), review.id, self_rating=rating)


def test_cannot_start_review_in_inactive_cycle(org, cycle, actor_of):
    _, _, emp = org
    _set_cycle(cycle, "Upcoming")
    with pytest.raises(StateConflictError) as ei:
        svc.create_or_get_review(actor_of(emp), emp.id, cycle.id)
    assert ei.value.code == "cycle_not_active"


def test_closed_cycle_freezes_edits_but_allows_finalize(org, cycle, actor_of):
    hr, manager, emp = org
    review, _ = svc.create_or_get_review(actor_of(emp), emp.id, cycle.id)
    svc.submit_self_review(actor_of(emp), review.id, self_rating=4)
    svc.submit_manager_review(actor_of(manager), review.id, manager_rating=4)

    _set_cycle(cycle, "Closed")
    with pytest.raises(StateConflictError):
        svc.submit_hr_review(actor_of(hr), review.id, hr_rating=4)

    _set_cycle(cycle, "Active")
    svc.submit_hr_review(actor_of(hr), review.id, hr_rating=4)
    _set_cycle(cycle, "Closed")
    assert svc.finalize_review(actor_of(hr), review.id).status == "Finalized"


def test_cycle_with_reviews_cannot_be_deleted(org, cycle, actor_of):
    _, _, emp = org
    svc.create_or_get_review(actor_of(emp), emp.id, cycle.id)
    with pytest.raises(StateConflictError) as ei:
        svc.delete_cycle(cycle.id)
    assert ei.value.code == "in_use"


def test_cycle_dates_validated(app):
    with pytest.raises(ValidationError):
        svc.create_cycle({"name": "Bad", "start_date": date(2025, 6, 1), "end_date": date(2025, 1, 1)})
    c = svc.create_cycle({"name": "H2", "start_date": date(2025, 7, 1), "end_date": date(2025, 12, 31)})
    assert c.status == "Upcoming"


def test_goal_progress_completes_active_goal(org, actor_of):
    _, _, emp = org
    g = _goal(emp, 40)
    g = goal_service.update_progress(actor_of(emp), g.id, 100)
    assert g.status == "Completed"


def test_goal_progress_by_non_assignee_forbidden(org, make_employee, actor_of):
    _, _, emp = org
    g = _goal(emp, 40)
    other = make_employee()
    with pytest.raises(AuthorizationError):
        goal_service.update_progress(actor_of(other), g.id, 50)


def test_existing_review_is_not_returned_to_strangers(org, cycle, make_employee, actor_of):
    hr, manager, emp = org
    review, _ = svc.create_or_get_review(actor_of(emp), emp.id, cycle.id)
    svc.submit_self_review(actor_of(emp), review.id, self_rating=2, comments="private notes")
    stranger = make_employee()

    with pytest.raises(AuthorizationError):
        svc.create_or_get_review(actor_of(stranger), emp.id, cycle.id)

    # the reporting manager and HR still get the same review back
    for who in (manager, hr):
        again, created = svc.create_or_get_review(actor_of(who), emp.id, cycle.id)
        assert created is False and again.id == review.id

# workforce_api/blueprints/reviews.py
from flask import Blueprint, request

from workforce_api.common.auth import requires_perms, requires_roles, current_actor
from workforce_api.common.errors import AuthorizationError, ValidationError
from workforce_api.common.http import ok
from workforce_api.common.paging import body, page_limit, paginate
from workforce_api.services import review_service as svc

bp = Blueprint("reviews", __name__, url_prefix="/api/v1/performance/reviews")


@bp.post("")
@requires_perms("performance.reviews.write")
def create_or_get():
    d = body()
    actor = current_actor()
    employee_id = d.get("employee_id") or actor.employee_id
    if not (employee_id and d.get("review_cycle_id")):
        raise ValidationError("employee_id and review_cycle_id are required")
    review, created = svc.create_or_get_review(actor, int(employee_id), int(d["review_cycle_id"]))
    return ok(review.to_dict(), 201 if created else 200,
              message="Review created" if created else "Review already exists")


@bp.get("/my")
@requires_perms("performance.reviews.read")
def my_reviews():
    return ok([r.to_dict() for r in svc.my_reviews(current_actor())])


@bp.get("/team")
@requires_perms("performance.reviews.read")
def team_reviews():
    rows = svc.team_reviews(current_actor(), request.args.get("review_cycle_id", type=int))
    return ok([r.to_dict() for r in rows])


@bp.get("")
@requires_roles("hr", "admin")
def all_reviews():
    page, size = page_limit()
    q = svc.all_reviews(
        current_actor(),
        review_cycle_id=request.args.get("review_cycle_id", type=int),
        status=request.args.get("status") or None,
    )
    items, total = paginate(q, page, size)
    return ok([r.to_dict() for r in items], page=page, size=size, total=total)


@bp.get("/<int:review_id>")
@requires_perms("performance.reviews.read")
def get_review(review_id: int):
    actor = current_actor()
    review = svc.get_review(review_id)
    if not svc.can_view(actor, review):
        raise AuthorizationError("You cannot view this review")
    data = review.to_dict()
    data["is_editable"] = svc.is_editable(review)
    return ok(data)


@bp.post("/<int:review_id>/self")
@requires_perms("performance.reviews.write")
def submit_self(review_id: int):
    d = body()
    r = svc.submit_self_review(current_actor(), review_id, self_rating=d.get("self_rating"),
                               goals=d.get("goals"), comments=d.get("comments"))
    return ok(r.to_dict(), message="Self review submitted")


@bp.post("/<int:review_id>/manager")
@requires_perms("performance.reviews.write")
def submit_manager(review_id: int):
    d = body()
    r = svc.submit_manager_review(current_actor(), review_id, manager_rating=d.get("manager_rating"),
                                  goals=d.get("goals"), comments=d.get("comments"))
    return ok(r.to_dict(), message="Manager review submitted")


@bp.post("/<int:review_id>/hr")
@requires_roles("hr", "admin")
def submit_hr(review_id: int):
    d = body()
    r = svc.submit_hr_review(current_actor(), review_id, hr_rating=d.get("hr_rating"), comments=d.get("comments"))
    return ok(r.to_dict(), message="HR review submitted")


@bp.post("/<int:review_id>/finalize")
@requires_roles("hr", "admin")
def finalize(review_id: int):
    r = svc.finalize_review(current_actor(), review_id)
    return ok(r.to_dict(), message="Review finalized")

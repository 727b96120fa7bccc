# workforce_api/common/paging.py
from datetime import datetime

from flask import request

from workforce_api.common.errors import ValidationError

DEFAULT_PAGE = 1
DEFAULT_SIZE = 20
MAX_SIZE = 100


def page_limit():
    try:
        page = max(int(request.args.get("page", DEFAULT_PAGE)), 1)
    except (TypeError, ValueError):
        page = DEFAULT_PAGE
    try:
        size = int(request.args.get("size", DEFAULT_SIZE))
        size = max(1, min(size, MAX_SIZE))
    except (TypeError, ValueError):
        size = DEFAULT_SIZE
    return page, size


def paginate(query, page: int, size: int):
    """Return (items, total) for a SQLAlchemy query."""
    total = query.order_by(None).count()
    items = query.offset((page - 1) * size).limit(size).all()
    return items, total


def parse_date(s, field_name: str = "date", required: bool = False):
    if not s:
        if required:
            raise ValidationError(f"{field_name} is required")
        return None
    for fmt in ("%Y-%m-%d", "%d-%m-%Y"):
        try:
            return datetime.strptime(str(s), fmt).date()
        except ValueError:
            pass
    raise ValidationError(f"Invalid {field_name}; expected YYYY-MM-DD")


def body():
    return request.get_json(silent=True) or {}

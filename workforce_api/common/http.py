# workforce_api/common/http.py
from flask import current_app, jsonify


def _expose_detail() -> bool:
    return bool(current_app.debug or current_app.config.get("EXPOSE_ERROR_DETAIL"))


def ok(data=None, status=200, message=None, **meta):
    payload = {"success": True, "data": data}
    if message:
        payload["message"] = message
    if meta:
        payload["meta"] = meta
    return jsonify(payload), status


def fail(message="Bad Request", status=400, code=None, detail=None):
    payload = {"success": False, "message": message}
    if code:
        payload["code"] = code
    # detail is dev-only
    if detail and _expose_detail():
        payload["error"] = detail
    return jsonify(payload), status

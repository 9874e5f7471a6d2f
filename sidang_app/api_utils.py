from flask import jsonify

from . import current_exam_type


def api_success(data=None, meta=None, status=200):
    meta = dict(meta or {})
    # Every payload is scoped to one exam type
    meta.setdefault("exam_type", current_exam_type().value)
    body = {"success": True, "data": data if data is not None else {}, "meta": meta}
    return jsonify(body), status


def api_error(code="error", message="", status=400):
    body = {"success": False, "error": {"code": code, "message": message}}
    return jsonify(body), status

from flask import jsonify, request

from ..services.results import VALIDATION, failure

ERROR_STATUS = {
    "validation": 400,
    "forbidden": 403,
    "not_found": 404,
    "conflict": 409,
    "internal": 500,
}


def service_response(result, success_status=200):
    """Translate a service result dict into a (json, status) Flask response."""
    body = {k: v for k, v in result.items() if k not in ("success", "error", "error_type")}

    if result.get("success"):
        body["status"] = "success"
        return jsonify(body), success_status

    body["status"] = "error"
    body["message"] = result.get("error") or "Unexpected error"
    return jsonify(body), ERROR_STATUS.get(result.get("error_type"), 500)


def json_object():
    """
    The request body as a dict. A missing or unparsable body reads as empty;
    valid JSON that is not an object gives None.
    """
    data = request.get_json(force=True, silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        return None
    return data


def invalid_body():
    return service_response(failure(VALIDATION, "Request body must be a JSON object"))

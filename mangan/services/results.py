VALIDATION = "validation"
FORBIDDEN = "forbidden"
NOT_FOUND = "not_found"
CONFLICT = "conflict"
INTERNAL = "internal"


def failure(error_type, error, **extra):
    result = {"success": False, "error": error, "error_type": error_type}
    result.update(extra)
    return result


def success(message=None, **data):
    result = {"success": True}
    if message:
        result["message"] = message
    result.update(data)
    return result

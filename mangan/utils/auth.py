import datetime
from dataclasses import dataclass
from functools import wraps
from typing import Optional

import bcrypt
import jwt
from flask import current_app, jsonify, request

CUSTOMER = "CUSTOMER"


@dataclass(frozen=True)
class Caller:
    """Authenticated identity handed explicitly to every service call."""

    id: int
    kind: str  # "customer" or "staff"
    role: Optional[str] = None

    @property
    def is_customer(self):
        return self.kind == "customer"

    @property
    def is_staff(self):
        return self.kind == "staff"

    def has_role(self, *roles):
        if self.is_customer:
            return CUSTOMER in roles
        return self.role in roles


def hash_password(password):
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())


def check_password(password, stored_hash):
    if not stored_hash:
        return False
    if isinstance(stored_hash, str):
        stored_hash = stored_hash.encode("utf-8")
    return bcrypt.checkpw(password.encode("utf-8"), stored_hash)


def issue_token(caller, email):
    hours = current_app.config.get("JWT_EXPIRES_HOURS", 12)
    payload = {
        "user_id": caller.id,
        "email": email,
        "kind": caller.kind,
        "role": caller.role,
        "exp": datetime.datetime.now(datetime.timezone.utc)
        + datetime.timedelta(hours=hours),
    }
    return jwt.encode(payload, current_app.config["SECRET_KEY"], algorithm="HS256")


def decode_token(token):
    payload = jwt.decode(token, current_app.config["SECRET_KEY"], algorithms=["HS256"])
    return Caller(id=int(payload["user_id"]), kind=payload["kind"], role=payload.get("role"))


def token_required(*roles):
    """
    Require a valid bearer token and pass the caller to the view as ``caller``.

    ``roles`` may contain staff roles (ADMIN, OWNER, COURIER) and/or CUSTOMER;
    an empty list accepts any authenticated caller.
    """

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            header = request.headers.get("Authorization", "")
            if not header.startswith("Bearer "):
                return jsonify({"status": "error", "message": "Missing bearer token"}), 401

            try:
                caller = decode_token(header.split(" ", 1)[1].strip())
            except jwt.ExpiredSignatureError:
                return jsonify({"status": "error", "message": "Token expired"}), 401
            except (jwt.InvalidTokenError, KeyError, ValueError):
                return jsonify({"status": "error", "message": "Invalid token"}), 401

            if roles and not caller.has_role(*roles):
                return jsonify({"status": "error", "message": "Access denied"}), 403

            return view(*args, caller=caller, **kwargs)

        return wrapper

    return decorator

import re

from flask import Blueprint, jsonify, current_app
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from ..extensions import db
from ..models import Customer, StaffUser
from ..services.projections import customer_dict, staff_dict
from ..utils.auth import Caller, check_password, hash_password, issue_token
from ..utils.responses import invalid_body, json_object

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_registration(data):
    """Return an error message for the first invalid registration field, or None."""
    name = (data.get("name") or "").strip()
    email = (data.get("email") or "").strip()
    phone = (data.get("phone") or "").strip()
    address = (data.get("address") or "").strip()
    password = data.get("password") or ""
    confirm = data.get("confirm_password")

    if not 2 <= len(name) <= 100:
        return "Name must be 2-100 characters"
    if not EMAIL_PATTERN.match(email):
        return "A valid email is required"
    if not phone.isdigit() or not 10 <= len(phone) <= 15:
        return "Phone number must be 10-15 digits"
    if not 10 <= len(address) <= 255:
        return "Address must be 10-255 characters"
    if len(password) < 6:
        return "Password must be at least 6 characters"
    if confirm is not None and confirm != password:
        return "Passwords do not match"
    return None


@auth_bp.route("/register", methods=["POST"])
def register_customer():
    """
    Register a new customer account
    ---
    tags:
      - Authentication
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [name, email, phone, address, password]
          properties:
            name:
              type: string
            email:
              type: string
            phone:
              type: string
              example: "081234567890"
            address:
              type: string
            password:
              type: string
            confirm_password:
              type: string
    responses:
      201:
        description: Customer registered
      400:
        description: Invalid input or email already registered
    """
    try:
        data = json_object()
        if data is None:
            return invalid_body()

        error = validate_registration(data)
        if error:
            return jsonify({"status": "error", "message": error}), 400

        email = data["email"].strip().lower()
        existing = db.session.scalar(select(Customer).where(Customer.email == email))
        if existing:
            return jsonify({"status": "error", "message": "Email already registered"}), 400

        customer = Customer(
            name=data["name"].strip(),
            email=email,
            password_hash=hash_password(data["password"]),
            phone=data["phone"].strip(),
            address1=data["address"].strip(),
        )
        db.session.add(customer)
        db.session.commit()

        return jsonify({
            "status": "success",
            "message": "Customer registered successfully",
            "user": customer_dict(customer)
        }), 201

    except IntegrityError:
        db.session.rollback()
        return jsonify({"status": "error", "message": "Email already registered"}), 400

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Register customer failed: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500


@auth_bp.route("/login", methods=["POST"])
def login_customer():
    """
    Customer login
    ---
    tags:
      - Authentication
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            email:
              type: string
            password:
              type: string
    responses:
      200:
        description: Login successful, returns a bearer token
      401:
        description: Invalid credentials
    """
    try:
        data = json_object()
        if data is None:
            return invalid_body()
        email = (data.get("email") or "").strip().lower()
        password = data.get("password")

        if not email or not password:
            return jsonify({
                "status": "error",
                "message": "Email and password required"
            }), 400

        customer = db.session.scalar(select(Customer).where(Customer.email == email))
        if not customer or not check_password(password, customer.password_hash):
            return jsonify({"status": "error", "message": "Invalid credentials"}), 401

        token = issue_token(Caller(id=customer.id, kind="customer"), customer.email)

        return jsonify({
            "status": "success",
            "message": "Login successful",
            "token": token,
            "user": customer_dict(customer, contact_only=True)
        }), 200

    except Exception as e:
        current_app.logger.error(f"Customer login failed: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500


@auth_bp.route("/staff/login", methods=["POST"])
def login_staff():
    """
    Staff login (admin, owner, courier)
    ---
    tags:
      - Authentication
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            email:
              type: string
            password:
              type: string
    responses:
      200:
        description: Login successful, token carries the staff role
      401:
        description: Invalid credentials
    """
    try:
        data = json_object()
        if data is None:
            return invalid_body()
        email = (data.get("email") or "").strip().lower()
        password = data.get("password")

        if not email or not password:
            return jsonify({
                "status": "error",
                "message": "Email and password required"
            }), 400

        user = db.session.scalar(select(StaffUser).where(StaffUser.email == email))
        if not user or not check_password(password, user.password_hash):
            return jsonify({"status": "error", "message": "Invalid credentials"}), 401

        caller = Caller(id=user.id, kind="staff", role=user.role.value)
        token = issue_token(caller, user.email)

        return jsonify({
            "status": "success",
            "message": "Login successful",
            "token": token,
            "user": staff_dict(user)
        }), 200

    except Exception as e:
        current_app.logger.error(f"Staff login failed: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500

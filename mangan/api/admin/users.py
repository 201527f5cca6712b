from flask import Blueprint, request, jsonify, current_app
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from ...extensions import db
from ...models import Customer, Delivery, Order, OrderStatus, StaffRole, StaffUser
from ...routes.auth import EMAIL_PATTERN
from ...services.projections import customer_dict, staff_dict
from ...utils.auth import hash_password, token_required
from ...utils.responses import invalid_body, json_object

admin_users_bp = Blueprint("admin_users", __name__, url_prefix="/api/admin/users")

ADMIN = StaffRole.ADMIN.value


def _parse_role(value):
    try:
        return StaffRole(str(value).strip().upper())
    except ValueError:
        return None


@admin_users_bp.route("", methods=["GET"])
@token_required(ADMIN)
def list_staff(caller):
    """
    List staff accounts
    ---
    tags:
      - Staff
    security:
      - Bearer: []
    parameters:
      - in: query
        name: role
        type: string
        enum: [ADMIN, OWNER, COURIER]
        required: false
    responses:
      200:
        description: Staff accounts
    """
    try:
        stmt = select(StaffUser).order_by(StaffUser.created_at.desc(), StaffUser.id.desc())
        role_param = request.args.get("role")
        if role_param:
            role = _parse_role(role_param)
            if not role:
                return jsonify({"status": "error", "message": f"Unknown role '{role_param}'"}), 400
            stmt = stmt.where(StaffUser.role == role)

        users = db.session.scalars(stmt).all()
        return jsonify({"status": "success", "data": [staff_dict(u) for u in users]}), 200
    except Exception as e:
        current_app.logger.error(f"List staff failed: {e}")
        return jsonify({"status": "error", "message": "Failed to load staff"}), 500


@admin_users_bp.route("", methods=["POST"])
@token_required(ADMIN)
def create_staff(caller):
    """
    Create a staff account
    ---
    tags:
      - Staff
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [name, email, password, role]
          properties:
            name:
              type: string
            email:
              type: string
            password:
              type: string
            role:
              type: string
              enum: [ADMIN, OWNER, COURIER]
    responses:
      201:
        description: Staff account created
      400:
        description: Invalid input or duplicate email
    """
    try:
        data = json_object()
        if data is None:
            return invalid_body()
        name = (data.get("name") or "").strip()
        email = (data.get("email") or "").strip().lower()
        password = data.get("password") or ""
        role = _parse_role(data.get("role"))

        if not 2 <= len(name) <= 30:
            return jsonify({"status": "error", "message": "Name must be 2-30 characters"}), 400
        if not EMAIL_PATTERN.match(email):
            return jsonify({"status": "error", "message": "A valid email is required"}), 400
        if len(password) < 6:
            return jsonify({"status": "error", "message": "Password must be at least 6 characters"}), 400
        if not role:
            return jsonify({"status": "error", "message": "Role must be ADMIN, OWNER or COURIER"}), 400

        existing = db.session.scalar(select(StaffUser).where(StaffUser.email == email))
        if existing:
            return jsonify({"status": "error", "message": "Email already exists"}), 400

        user = StaffUser(name=name, email=email, password_hash=hash_password(password), role=role)
        db.session.add(user)
        db.session.commit()

        return jsonify({
            "status": "success",
            "message": "Staff account created",
            "data": staff_dict(user)
        }), 201

    except IntegrityError:
        db.session.rollback()
        return jsonify({"status": "error", "message": "Email already exists"}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Create staff failed: {e}")
        return jsonify({"status": "error", "message": "Failed to create staff account"}), 500


@admin_users_bp.route("/<int:user_id>", methods=["PUT"])
@token_required(ADMIN)
def update_staff(user_id, caller):
    """
    Update a staff account
    ---
    tags:
      - Staff
    security:
      - Bearer: []
    parameters:
      - in: path
        name: user_id
        type: integer
        required: true
      - in: body
        name: body
        schema:
          type: object
          properties:
            name:
              type: string
            email:
              type: string
            password:
              type: string
            role:
              type: string
    responses:
      200:
        description: Staff account updated
      404:
        description: Staff account not found
    """
    try:
        user = db.session.get(StaffUser, user_id)
        if not user:
            return jsonify({"status": "error", "message": "Staff account not found"}), 404

        data = json_object()
        if data is None:
            return invalid_body()

        if "name" in data:
            name = (data.get("name") or "").strip()
            if not 2 <= len(name) <= 30:
                return jsonify({"status": "error", "message": "Name must be 2-30 characters"}), 400
            user.name = name

        if "email" in data:
            email = (data.get("email") or "").strip().lower()
            if not EMAIL_PATTERN.match(email):
                return jsonify({"status": "error", "message": "A valid email is required"}), 400
            taken = db.session.scalar(
                select(StaffUser).where(StaffUser.email == email, StaffUser.id != user.id)
            )
            if taken:
                return jsonify({"status": "error", "message": "Email already exists"}), 400
            user.email = email

        if "role" in data:
            role = _parse_role(data.get("role"))
            if not role:
                return jsonify({"status": "error", "message": "Role must be ADMIN, OWNER or COURIER"}), 400
            user.role = role

        if data.get("password"):
            if len(data["password"]) < 6:
                return jsonify({"status": "error", "message": "Password must be at least 6 characters"}), 400
            user.password_hash = hash_password(data["password"])

        db.session.commit()
        return jsonify({
            "status": "success",
            "message": "Staff account updated",
            "data": staff_dict(user)
        }), 200

    except IntegrityError:
        db.session.rollback()
        return jsonify({"status": "error", "message": "Email already exists"}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Update staff {user_id} failed: {e}")
        return jsonify({"status": "error", "message": "Failed to update staff account"}), 500


@admin_users_bp.route("/<int:user_id>", methods=["DELETE"])
@token_required(ADMIN)
def delete_staff(user_id, caller):
    """
    Delete a staff account
    ---
    tags:
      - Staff
    security:
      - Bearer: []
    parameters:
      - in: path
        name: user_id
        type: integer
        required: true
    responses:
      200:
        description: Staff account deleted
      409:
        description: Courier still has deliveries, or deleting own account
    """
    try:
        user = db.session.get(StaffUser, user_id)
        if not user:
            return jsonify({"status": "error", "message": "Staff account not found"}), 404
        if user.id == caller.id:
            return jsonify({"status": "error", "message": "You cannot delete your own account"}), 409

        assigned = db.session.scalar(
            select(func.count(Delivery.id)).where(Delivery.courier_id == user.id)
        )
        if assigned:
            return jsonify({
                "status": "error",
                "message": "Courier has delivery history and cannot be deleted"
            }), 409

        db.session.delete(user)
        db.session.commit()
        return jsonify({"status": "success", "message": "Staff account deleted"}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Delete staff {user_id} failed: {e}")
        return jsonify({"status": "error", "message": "Failed to delete staff account"}), 500


@admin_users_bp.route("/couriers", methods=["GET"])
@token_required(ADMIN)
def list_couriers(caller):
    """
    Couriers available for assignment, with their active delivery count
    ---
    tags:
      - Staff
    security:
      - Bearer: []
    responses:
      200:
        description: Couriers
    """
    try:
        couriers = db.session.scalars(
            select(StaffUser).where(StaffUser.role == StaffRole.COURIER).order_by(StaffUser.name)
        ).all()
        active_rows = db.session.execute(
            select(Delivery.courier_id, func.count(Delivery.id))
            .join(Order, Order.id == Delivery.order_id)
            .where(Order.status == OrderStatus.SHIPPING)
            .group_by(Delivery.courier_id)
        ).all()
        active = {courier_id: int(count) for courier_id, count in active_rows}

        data = []
        for courier in couriers:
            row = staff_dict(courier)
            row["active_deliveries"] = active.get(courier.id, 0)
            data.append(row)

        return jsonify({"status": "success", "data": data}), 200
    except Exception as e:
        current_app.logger.error(f"List couriers failed: {e}")
        return jsonify({"status": "error", "message": "Failed to load couriers"}), 500


@admin_users_bp.route("/customers", methods=["GET"])
@token_required(ADMIN, StaffRole.OWNER.value)
def list_customers(caller):
    """
    List customers with their order counts
    ---
    tags:
      - Staff
    security:
      - Bearer: []
    responses:
      200:
        description: Customers
    """
    try:
        customers = db.session.scalars(
            select(Customer).order_by(Customer.created_at.desc(), Customer.id.desc())
        ).all()
        counts = dict(
            db.session.execute(
                select(Order.customer_id, func.count(Order.id)).group_by(Order.customer_id)
            ).all()
        )

        data = []
        for customer in customers:
            row = customer_dict(customer)
            row["order_count"] = int(counts.get(customer.id, 0))
            data.append(row)

        return jsonify({"status": "success", "data": data}), 200
    except Exception as e:
        current_app.logger.error(f"List customers failed: {e}")
        return jsonify({"status": "error", "message": "Failed to load customers"}), 500

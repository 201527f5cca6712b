from datetime import datetime

from flask import Blueprint, jsonify, current_app
from ...extensions import db
from ...models import Customer
from ...services.projections import customer_dict
from ...utils import s3_utils
from ...utils.auth import CUSTOMER, check_password, hash_password, token_required
from ...utils.responses import invalid_body, json_object

customer_bp = Blueprint("customer_details", __name__, url_prefix="/api/customer")

PHOTO_FOLDER = "mangan/customers/photos"
ID_CARD_FOLDER = "mangan/customers/id-cards"


@customer_bp.route("/profile", methods=["GET"])
@token_required(CUSTOMER)
def get_profile(caller):
    """
    Get the logged-in customer's profile
    ---
    tags:
      - Customer
    security:
      - Bearer: []
    responses:
      200:
        description: Customer profile
      404:
        description: Customer not found
    """
    try:
        customer = db.session.get(Customer, caller.id)
        if not customer:
            return jsonify({"status": "error", "message": "Customer not found"}), 404

        return jsonify({"status": "success", "data": customer_dict(customer)}), 200
    except Exception as e:
        current_app.logger.error(f"Get profile for customer {caller.id} failed: {e}")
        return jsonify({"status": "error", "message": "Failed to load profile"}), 500


@customer_bp.route("/profile", methods=["PUT"])
@token_required(CUSTOMER)
def update_profile(caller):
    """
    Update the logged-in customer's profile
    ---
    tags:
      - Customer
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            name:
              type: string
            phone:
              type: string
            address1:
              type: string
            address2:
              type: string
            address3:
              type: string
            birth_date:
              type: string
              format: date
            photo:
              type: string
              description: base64 data:image URI
            id_card_image:
              type: string
              description: base64 data:image URI
            current_password:
              type: string
            new_password:
              type: string
    responses:
      200:
        description: Profile updated
      400:
        description: Invalid input
    """
    try:
        customer = db.session.get(Customer, caller.id)
        if not customer:
            return jsonify({"status": "error", "message": "Customer not found"}), 404

        data = json_object()
        if data is None:
            return invalid_body()

        if "name" in data:
            name = (data.get("name") or "").strip()
            if not 2 <= len(name) <= 100:
                return jsonify({"status": "error", "message": "Name must be 2-100 characters"}), 400
            customer.name = name

        if "phone" in data:
            phone = (data.get("phone") or "").strip()
            if not phone.isdigit() or not 10 <= len(phone) <= 15:
                return jsonify({"status": "error", "message": "Phone number must be 10-15 digits"}), 400
            customer.phone = phone

        for field in ("address1", "address2", "address3"):
            if field in data:
                value = (data.get(field) or "").strip() or None
                if value and len(value) > 255:
                    return jsonify({"status": "error", "message": f"{field} is too long"}), 400
                setattr(customer, field, value)

        if "birth_date" in data:
            raw = data.get("birth_date")
            try:
                customer.birth_date = (
                    datetime.strptime(raw, "%Y-%m-%d").date() if raw else None
                )
            except (TypeError, ValueError):
                return jsonify({"status": "error", "message": "birth_date must be YYYY-MM-DD"}), 400

        # Images arrive as base64 data URIs and are stored as hosted URLs
        if data.get("photo"):
            customer.photo = s3_utils.upload_base64_image(data["photo"], PHOTO_FOLDER)
        if data.get("id_card_image"):
            customer.id_card_image = s3_utils.upload_base64_image(
                data["id_card_image"], ID_CARD_FOLDER
            )

        if data.get("new_password"):
            if not check_password(data.get("current_password") or "", customer.password_hash):
                return jsonify({"status": "error", "message": "Current password is incorrect"}), 400
            if len(data["new_password"]) < 6:
                return jsonify({"status": "error", "message": "Password must be at least 6 characters"}), 400
            customer.password_hash = hash_password(data["new_password"])

        db.session.commit()

        return jsonify({
            "status": "success",
            "message": "Profile updated",
            "data": customer_dict(customer)
        }), 200

    except ValueError as e:
        db.session.rollback()
        return jsonify({"status": "error", "message": str(e)}), 400

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Update profile for customer {caller.id} failed: {e}")
        return jsonify({"status": "error", "message": "Failed to update profile"}), 500

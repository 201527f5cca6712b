from flask import Blueprint, request, current_app
from ...extensions import db
from ...models import Delivery, StaffRole
from ...services import dashboard_service, order_status
from ...services.email_service import EmailService
from ...utils.auth import token_required
from ...utils.responses import invalid_body, json_object, service_response

deliveries_bp = Blueprint("deliveries", __name__, url_prefix="/api/deliveries")

ADMIN = StaffRole.ADMIN.value
OWNER = StaffRole.OWNER.value
COURIER = StaffRole.COURIER.value


def notify_delivered(delivery_id):
    if current_app.config.get("TESTING"):
        return
    try:
        delivery = db.session.get(Delivery, delivery_id)
        order = delivery.order
        result = EmailService().send_delivery_notice(
            order.customer.email,
            order.customer.name,
            order.tracking_code,
            delivery.courier.name,
        )
        if not result.get("success"):
            current_app.logger.error(
                f"Delivery email for {order.tracking_code} failed: {result.get('error')}"
            )
    except Exception as e:
        current_app.logger.error(f"Delivery email for delivery {delivery_id} failed: {e}")


@deliveries_bp.route("", methods=["GET"])
@token_required(ADMIN, OWNER)
def all_deliveries(caller):
    """
    All deliveries, or one courier's deliveries
    ---
    tags:
      - Deliveries
    security:
      - Bearer: []
    parameters:
      - in: query
        name: status
        type: string
        enum: [SHIPPING, DELIVERED]
      - in: query
        name: courier_id
        type: integer
    responses:
      200:
        description: Deliveries with order and customer contact
    """
    courier_id = request.args.get("courier_id", type=int)
    if courier_id is not None:
        return service_response(
            dashboard_service.get_courier_deliveries(caller, courier_id=courier_id)
        )
    return service_response(
        dashboard_service.get_all_deliveries(caller, status=request.args.get("status"))
    )


@deliveries_bp.route("/mine", methods=["GET"])
@token_required(COURIER)
def my_deliveries(caller):
    """
    Deliveries assigned to the logged-in courier
    ---
    tags:
      - Deliveries
    security:
      - Bearer: []
    parameters:
      - in: query
        name: active
        type: boolean
        description: Only deliveries still in transit
    responses:
      200:
        description: Deliveries
    """
    active_only = request.args.get("active", "false").lower() in ("1", "true", "yes")
    return service_response(
        dashboard_service.get_courier_deliveries(caller, active_only=active_only)
    )


@deliveries_bp.route("/<int:delivery_id>/delivered", methods=["POST"])
@token_required(COURIER, ADMIN)
def mark_delivered(delivery_id, caller):
    """
    Confirm that a delivery has arrived
    ---
    tags:
      - Deliveries
    security:
      - Bearer: []
    parameters:
      - in: path
        name: delivery_id
        type: integer
        required: true
      - in: body
        name: body
        schema:
          type: object
          properties:
            proof_image:
              type: string
              description: Optional base64 data:image URI
    responses:
      200:
        description: Delivery and order are DELIVERED
      409:
        description: Delivery is not in transit
    """
    data = json_object()
    if data is None:
        return invalid_body()
    result = order_status.mark_delivered(caller, delivery_id, data.get("proof_image"))
    if result["success"]:
        notify_delivered(delivery_id)
    return service_response(result)

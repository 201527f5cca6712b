from flask import Blueprint, request, current_app
from ...extensions import db
from ...models import Order, StaffRole
from ...services import dashboard_service, order_service, order_status
from ...services.email_service import EmailService
from ...services.results import VALIDATION, failure
from ...utils.auth import CUSTOMER, token_required
from ...utils.responses import invalid_body, json_object, service_response

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")

ADMIN = StaffRole.ADMIN.value
OWNER = StaffRole.OWNER.value


def notify_order_created(order_id):
    """Email the tracking code to the customer; failures never affect the order."""
    if current_app.config.get("TESTING"):
        return
    try:
        order = db.session.get(Order, order_id)
        result = EmailService().send_order_confirmation(
            order.customer.email,
            order.customer.name,
            order.tracking_code,
            order.total,
            order.payment_method.label,
        )
        if not result.get("success"):
            current_app.logger.error(
                f"Order confirmation email for {order.tracking_code} failed: {result.get('error')}"
            )
    except Exception as e:
        current_app.logger.error(f"Order confirmation email for order {order_id} failed: {e}")


@orders_bp.route("", methods=["POST"])
@token_required(CUSTOMER)
def create_order(caller):
    """
    Check out the cart
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [items, payment_method]
          properties:
            items:
              type: array
              items:
                $ref: '#/definitions/CartItem'
            payment_method:
              type: string
              example: "Transfer Bank - Bank BCA"
    responses:
      201:
        description: Order created
        schema:
          type: object
          properties:
            status:
              type: string
              example: success
            order_id:
              type: integer
            tracking_code:
              type: string
            total:
              type: integer
      400:
        description: Invalid cart or prices changed
      404:
        description: Stale cart, some packages no longer exist
    """
    data = json_object()
    if data is None:
        return invalid_body()
    result = order_service.create_order(caller, data.get("items"), data.get("payment_method"))
    if result["success"]:
        notify_order_created(result["order_id"])
    return service_response(result, 201)


@orders_bp.route("/mine", methods=["GET"])
@token_required(CUSTOMER)
def my_orders(caller):
    """
    Orders of the logged-in customer, newest first
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    responses:
      200:
        description: Orders
    """
    return service_response(order_service.get_orders_by_customer(caller))


@orders_bp.route("", methods=["GET"])
@token_required(ADMIN, OWNER)
def all_orders(caller):
    """
    All orders, optionally filtered
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    parameters:
      - in: query
        name: status
        type: string
      - in: query
        name: month
        type: string
        description: YYYY-MM
      - in: query
        name: customer_id
        type: integer
    responses:
      200:
        description: Orders
    """
    customer_id = request.args.get("customer_id", type=int)
    if customer_id is not None:
        return service_response(order_service.get_orders_by_customer(caller, customer_id))
    return service_response(
        order_service.get_all_orders(
            caller, status=request.args.get("status"), month=request.args.get("month")
        )
    )


@orders_bp.route("/awaiting-courier", methods=["GET"])
@token_required(ADMIN)
def awaiting_courier(caller):
    """
    Orders ready for dispatch without a courier
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    parameters:
      - in: query
        name: limit
        type: integer
        default: 10
    responses:
      200:
        description: Orders awaiting a courier
    """
    limit = request.args.get("limit", default=10, type=int)
    return service_response(dashboard_service.get_orders_awaiting_courier(caller, limit=limit))


@orders_bp.route("/<int:order_id>", methods=["GET"])
@token_required(CUSTOMER, ADMIN, OWNER)
def get_order(order_id, caller):
    """
    Order detail with lines, payment method and delivery
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    parameters:
      - in: path
        name: order_id
        type: integer
        required: true
    responses:
      200:
        description: Order
        schema:
          $ref: '#/definitions/Order'
      404:
        description: Order not found
    """
    return service_response(order_service.get_order(caller, order_id))


@orders_bp.route("/<int:order_id>/payment-proof", methods=["POST"])
@token_required(CUSTOMER)
def upload_payment_proof(order_id, caller):
    """
    Upload a transfer receipt for an order awaiting confirmation
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    parameters:
      - in: path
        name: order_id
        type: integer
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            image:
              type: string
              description: base64 data:image URI
    responses:
      200:
        description: Proof uploaded
      409:
        description: Order already processed
    """
    data = json_object()
    if data is None:
        return invalid_body()
    return service_response(order_service.upload_payment_proof(caller, order_id, data.get("image")))


@orders_bp.route("/<int:order_id>/status", methods=["PATCH"])
@token_required(ADMIN)
def update_status(order_id, caller):
    """
    Move an order to another status
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    parameters:
      - in: path
        name: order_id
        type: integer
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            status:
              type: string
              enum: [PROCESSING, AWAITING_COURIER, CANCELLED]
    responses:
      200:
        description: Status updated
      409:
        description: Transition not allowed from the current status
    """
    data = json_object()
    if data is None:
        return invalid_body()
    return service_response(
        order_status.transition_order_status(caller, order_id, data.get("status"))
    )


@orders_bp.route("/<int:order_id>/cancel", methods=["POST"])
@token_required(CUSTOMER, ADMIN)
def cancel_order(order_id, caller):
    """
    Cancel an order
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    parameters:
      - in: path
        name: order_id
        type: integer
        required: true
    responses:
      200:
        description: Order cancelled
      409:
        description: Order can no longer be cancelled
    """
    return service_response(order_status.cancel_order(caller, order_id))


@orders_bp.route("/<int:order_id>/courier", methods=["POST"])
@token_required(ADMIN)
def assign_courier(order_id, caller):
    """
    Assign a courier and start shipping
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    parameters:
      - in: path
        name: order_id
        type: integer
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            courier_id:
              type: integer
    responses:
      201:
        description: Delivery created, order is SHIPPING
        schema:
          $ref: '#/definitions/Delivery'
      409:
        description: Delivery already exists or order not ready
    """
    data = json_object()
    if data is None:
        return invalid_body()
    courier_id = data.get("courier_id")
    if not isinstance(courier_id, int) or isinstance(courier_id, bool):
        return service_response(failure(VALIDATION, "courier_id must be an integer"))
    return service_response(order_status.assign_courier(caller, order_id, courier_id), 201)

from flask import Blueprint
from ...models import StaffRole
from ...services import payment_methods as service
from ...utils.auth import token_required
from ...utils.responses import invalid_body, json_object, service_response

payment_methods_bp = Blueprint("payment_methods", __name__, url_prefix="/api/payment-methods")

ADMIN = StaffRole.ADMIN.value


@payment_methods_bp.route("", methods=["GET"])
def list_payment_methods():
    """
    List payment methods with their account details
    ---
    tags:
      - Payment Methods
    responses:
      200:
        description: Payment methods
    """
    return service_response(service.list_payment_methods())


@payment_methods_bp.route("", methods=["POST"])
@token_required(ADMIN)
def create_payment_method(caller):
    """
    Create a payment method
    ---
    tags:
      - Payment Methods
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            label:
              type: string
              example: "Transfer Bank - Bank BCA"
    responses:
      201:
        description: Payment method created
      409:
        description: Label already exists
    """
    data = json_object()
    if data is None:
        return invalid_body()
    return service_response(service.create_payment_method(caller, data.get("label")), 201)


@payment_methods_bp.route("/<int:method_id>", methods=["PUT"])
@token_required(ADMIN)
def update_payment_method(method_id, caller):
    """
    Rename a payment method
    ---
    tags:
      - Payment Methods
    security:
      - Bearer: []
    parameters:
      - in: path
        name: method_id
        type: integer
        required: true
      - in: body
        name: body
        schema:
          type: object
          properties:
            label:
              type: string
    responses:
      200:
        description: Payment method updated
    """
    data = json_object()
    if data is None:
        return invalid_body()
    return service_response(service.update_payment_method(caller, method_id, data.get("label")))


@payment_methods_bp.route("/<int:method_id>", methods=["DELETE"])
@token_required(ADMIN)
def delete_payment_method(method_id, caller):
    """
    Delete a payment method that no order uses
    ---
    tags:
      - Payment Methods
    security:
      - Bearer: []
    parameters:
      - in: path
        name: method_id
        type: integer
        required: true
    responses:
      200:
        description: Payment method deleted
      409:
        description: Payment method is referenced by orders
    """
    return service_response(service.delete_payment_method(caller, method_id))


@payment_methods_bp.route("/<int:method_id>/details", methods=["POST"])
@token_required(ADMIN)
def create_payment_detail(method_id, caller):
    """
    Add an account detail (account number, payee, logo) to a payment method
    ---
    tags:
      - Payment Methods
    security:
      - Bearer: []
    parameters:
      - in: path
        name: method_id
        type: integer
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            account_number:
              type: string
            payee_name:
              type: string
            logo:
              type: string
              description: URL or base64 data:image URI
    responses:
      201:
        description: Detail created
    """
    data = json_object()
    if data is None:
        return invalid_body()
    result = service.create_payment_method_detail(
        caller,
        method_id,
        data.get("account_number"),
        data.get("payee_name"),
        logo=data.get("logo"),
    )
    return service_response(result, 201)


@payment_methods_bp.route("/details/<int:detail_id>", methods=["PUT"])
@token_required(ADMIN)
def update_payment_detail(detail_id, caller):
    data = json_object()
    if data is None:
        return invalid_body()
    result = service.update_payment_method_detail(
        caller,
        detail_id,
        account_number=data.get("account_number"),
        payee_name=data.get("payee_name"),
        logo=data.get("logo"),
    )
    return service_response(result)


@payment_methods_bp.route("/details/<int:detail_id>", methods=["DELETE"])
@token_required(ADMIN)
def delete_payment_detail(detail_id, caller):
    return service_response(service.delete_payment_method_detail(caller, detail_id))

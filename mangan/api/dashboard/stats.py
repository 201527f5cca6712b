from flask import Blueprint, request
from ...models import StaffRole
from ...services import dashboard_service
from ...utils.auth import token_required
from ...utils.responses import service_response

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")

ADMIN = StaffRole.ADMIN.value
OWNER = StaffRole.OWNER.value


@dashboard_bp.route("/stats", methods=["GET"])
@token_required(ADMIN, OWNER)
def get_stats(caller):
    """
    Order, customer, package and revenue totals
    ---
    tags:
      - Dashboard
    security:
      - Bearer: []
    responses:
      200:
        description: Dashboard statistics
        schema:
          type: object
          properties:
            status:
              type: string
            data:
              type: object
              properties:
                total_orders:
                  type: integer
                total_customers:
                  type: integer
                total_packages:
                  type: integer
                orders_by_status:
                  type: object
                awaiting_confirmation:
                  type: integer
                processing:
                  type: integer
                completed:
                  type: integer
                total_revenue:
                  type: integer
      500:
        description: Datastore failure, zero-filled data is still returned
    """
    return service_response(dashboard_service.get_dashboard_stats(caller))


@dashboard_bp.route("/top-packages", methods=["GET"])
@token_required(ADMIN, OWNER)
def top_packages(caller):
    """
    Best-selling packages by number of order lines
    ---
    tags:
      - Dashboard
    security:
      - Bearer: []
    parameters:
      - in: query
        name: limit
        type: integer
        default: 5
    responses:
      200:
        description: Top packages
    """
    limit = request.args.get("limit", default=5, type=int)
    return service_response(dashboard_service.get_top_packages(caller, limit=limit))


@dashboard_bp.route("/monthly-revenue", methods=["GET"])
@token_required(ADMIN, OWNER)
def monthly_revenue(caller):
    """
    Delivered revenue per month for one year
    ---
    tags:
      - Dashboard
    security:
      - Bearer: []
    parameters:
      - in: query
        name: year
        type: integer
    responses:
      200:
        description: Twelve monthly buckets
    """
    year = request.args.get("year", type=int)
    return service_response(dashboard_service.get_monthly_revenue(caller, year=year))


@dashboard_bp.route("/courier-stats", methods=["GET"])
@token_required(ADMIN, StaffRole.COURIER.value)
def courier_stats(caller):
    """
    Delivery counts for a courier (couriers always see their own)
    ---
    tags:
      - Dashboard
    security:
      - Bearer: []
    parameters:
      - in: query
        name: courier_id
        type: integer
    responses:
      200:
        description: total, shipping and delivered counts
    """
    courier_id = request.args.get("courier_id", type=int)
    return service_response(dashboard_service.get_courier_stats(caller, courier_id=courier_id))

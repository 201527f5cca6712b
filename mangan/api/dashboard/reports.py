from flask import Blueprint, request, send_file
from ...models import StaffRole
from ...services import dashboard_service
from ...services.results import VALIDATION, failure
from ...utils.auth import token_required
from ...utils.responses import invalid_body, json_object, service_response

reports_bp = Blueprint("reports", __name__, url_prefix="/api/dashboard/sales-report")


@reports_bp.route("", methods=["GET"])
@token_required(StaffRole.ADMIN.value, StaffRole.OWNER.value)
def sales_report(caller):
    """
    Sales report rows and summary
    ---
    tags:
      - Dashboard
    security:
      - Bearer: []
    parameters:
      - in: query
        name: month
        type: string
        description: YYYY-MM
      - in: query
        name: status
        type: string
    responses:
      200:
        description: One row per order plus totals
    """
    return service_response(
        dashboard_service.build_sales_report(
            caller, month=request.args.get("month"), status=request.args.get("status")
        )
    )


@reports_bp.route("/export", methods=["POST"])
@token_required(StaffRole.ADMIN.value, StaffRole.OWNER.value)
def export_sales_report(caller):
    """
    Download the sales report as an Excel workbook
    ---
    tags:
      - Dashboard
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            month:
              type: string
            status:
              type: string
            year:
              type: integer
    produces:
      - application/vnd.openxmlformats-officedocument.spreadsheetml.sheet
    responses:
      200:
        description: .xlsx file
    """
    selected = json_object()
    if selected is None:
        return invalid_body()
    year = selected.get("year")
    if year is not None:
        try:
            year = int(year)
        except (TypeError, ValueError):
            return service_response(failure(VALIDATION, "year must be a number"))

    result = dashboard_service.export_sales_report(
        caller,
        month=selected.get("month"),
        status=selected.get("status"),
        year=year,
    )
    if not result["success"]:
        return service_response(result)

    return send_file(
        result["file"],
        as_attachment=True,
        download_name=result["filename"],
        mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )

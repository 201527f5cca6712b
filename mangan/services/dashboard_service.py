"""
Read-only dashboard queries.

Nothing here is cached. When the datastore fails, the functions log the
error and return ``success: False`` together with zero-filled data so the
dashboards still render.
"""
import calendar
from datetime import datetime
from io import BytesIO

import pandas as pd
from flask import current_app
from sqlalchemy import extract, func, select
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import (
    Customer,
    Delivery,
    DeliveryStatus,
    Order,
    OrderLine,
    OrderStatus,
    Package,
    StaffRole,
)
from .order_service import parse_month
from .projections import customer_dict, delivery_dict, order_dict
from .results import FORBIDDEN, INTERNAL, VALIDATION, failure, success

MONTH_NAMES = list(calendar.month_name)[1:]
REPORT_ROLES = (StaffRole.ADMIN.value, StaffRole.OWNER.value)


def _empty_stats():
    return {
        "total_orders": 0,
        "total_customers": 0,
        "total_packages": 0,
        "orders_by_status": {s.value: 0 for s in OrderStatus},
        "awaiting_confirmation": 0,
        "processing": 0,
        "completed": 0,
        "total_revenue": 0,
    }


def _empty_months():
    return [{"month": name, "revenue": 0} for name in MONTH_NAMES]


def get_dashboard_stats(caller):
    if not caller.has_role(*REPORT_ROLES):
        return failure(FORBIDDEN, "Access denied", data=_empty_stats())

    try:
        stats = _empty_stats()
        stats["total_orders"] = db.session.scalar(select(func.count(Order.id))) or 0
        stats["total_customers"] = db.session.scalar(select(func.count(Customer.id))) or 0
        stats["total_packages"] = db.session.scalar(select(func.count(Package.id))) or 0

        rows = db.session.execute(
            select(Order.status, func.count(Order.id)).group_by(Order.status)
        ).all()
        for status, count in rows:
            stats["orders_by_status"][status.value] = int(count)

        by_status = stats["orders_by_status"]
        stats["awaiting_confirmation"] = by_status[OrderStatus.AWAITING_CONFIRMATION.value]
        stats["processing"] = by_status[OrderStatus.PROCESSING.value]
        stats["completed"] = by_status[OrderStatus.DELIVERED.value]

        revenue = db.session.scalar(
            select(func.sum(Order.total)).where(Order.status == OrderStatus.DELIVERED)
        )
        stats["total_revenue"] = int(revenue or 0)

        return success(data=stats)
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Get dashboard stats failed: {e}")
        return failure(INTERNAL, "Failed to load dashboard statistics", data=_empty_stats())


def get_top_packages(caller, limit=5):
    if not caller.has_role(*REPORT_ROLES):
        return failure(FORBIDDEN, "Access denied", data=[])
    if not isinstance(limit, int) or limit < 1:
        return failure(VALIDATION, "limit must be a positive integer", data=[])

    try:
        sold = func.count(OrderLine.id).label("sold")
        rows = db.session.execute(
            select(OrderLine.package_id, sold)
            .where(OrderLine.package_id.is_not(None))
            .group_by(OrderLine.package_id)
            .order_by(sold.desc(), OrderLine.package_id)
            .limit(limit)
        ).all()

        ids = [row.package_id for row in rows]
        packages = {
            p.id: p
            for p in db.session.scalars(select(Package).where(Package.id.in_(ids))).all()
        } if ids else {}

        data = []
        for row in rows:
            package = packages.get(row.package_id)
            data.append(
                {
                    "id": row.package_id,
                    "name": package.name if package else "Unknown",
                    "price": int(package.price) if package else 0,
                    "type": package.type.value if package else None,
                    "category": package.category.value if package else None,
                    "sold": int(row.sold),
                }
            )
        return success(data=data)
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Get top packages failed: {e}")
        return failure(INTERNAL, "Failed to load best-selling packages", data=[])


def get_monthly_revenue(caller, year=None):
    if not caller.has_role(*REPORT_ROLES):
        return failure(FORBIDDEN, "Access denied", data=_empty_months())

    year = year or datetime.now().year
    try:
        month = extract("month", Order.ordered_at).label("month")
        rows = db.session.execute(
            select(month, func.sum(Order.total).label("revenue"))
            .where(
                Order.status == OrderStatus.DELIVERED,
                Order.ordered_at >= datetime(year, 1, 1),
                Order.ordered_at < datetime(year + 1, 1, 1),
            )
            .group_by(month)
        ).all()

        data = _empty_months()
        for row in rows:
            data[int(row.month) - 1]["revenue"] = int(row.revenue or 0)
        return success(year=year, data=data)
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Get monthly revenue for {year} failed: {e}")
        return failure(INTERNAL, "Failed to load monthly revenue", year=year, data=_empty_months())


def get_orders_awaiting_courier(caller, limit=10):
    """Orders ready for dispatch that have no delivery yet, oldest first."""
    if not caller.has_role(StaffRole.ADMIN.value):
        return failure(FORBIDDEN, "Access denied", data=[])

    try:
        orders = db.session.scalars(
            select(Order)
            .options(selectinload(Order.customer))
            .outerjoin(Delivery, Delivery.order_id == Order.id)
            .where(
                Order.status.in_([OrderStatus.PROCESSING, OrderStatus.AWAITING_COURIER]),
                Delivery.id.is_(None),
            )
            .order_by(Order.ordered_at.asc(), Order.id.asc())
            .limit(limit)
        ).all()

        data = [
            {
                "id": o.id,
                "tracking_code": o.tracking_code,
                "status": o.status.value,
                "customer": o.customer.name,
                "address": o.customer.address1 or "-",
                "ordered_at": o.ordered_at.isoformat(),
            }
            for o in orders
        ]
        return success(data=data)
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Get orders awaiting courier failed: {e}")
        return failure(INTERNAL, "Failed to load orders awaiting a courier", data=[])


def _delivery_row(delivery):
    data = delivery_dict(delivery)
    order = delivery.order
    data["order"] = {
        "id": order.id,
        "tracking_code": order.tracking_code,
        "status": order.status.value,
        "total": int(order.total),
        "ordered_at": order.ordered_at.isoformat(),
        "customer": customer_dict(order.customer, contact_only=True),
    }
    data["order"]["customer"]["address2"] = order.customer.address2
    data["order"]["customer"]["address3"] = order.customer.address3
    return data


def _delivery_query():
    return select(Delivery).options(
        selectinload(Delivery.courier),
        selectinload(Delivery.order).selectinload(Order.customer),
    )


def get_courier_deliveries(caller, courier_id=None, active_only=False):
    if caller.has_role(StaffRole.COURIER.value):
        if courier_id is not None and courier_id != caller.id:
            return failure(FORBIDDEN, "Couriers can only view their own deliveries", data=[])
        courier_id = caller.id
    elif not caller.has_role(StaffRole.ADMIN.value):
        return failure(FORBIDDEN, "Access denied", data=[])
    elif courier_id is None:
        return failure(VALIDATION, "courier_id is required", data=[])

    try:
        stmt = _delivery_query().where(Delivery.courier_id == courier_id)
        if active_only:
            # A delivery stays SHIPPING when an admin cancels its order
            stmt = stmt.join(Delivery.order).where(
                Delivery.status == DeliveryStatus.SHIPPING,
                Order.status == OrderStatus.SHIPPING,
            )
        deliveries = db.session.scalars(
            stmt.order_by(Delivery.dispatched_at.desc(), Delivery.id.desc())
        ).all()
        return success(data=[_delivery_row(d) for d in deliveries])
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Get deliveries for courier {courier_id} failed: {e}")
        return failure(INTERNAL, "Failed to load deliveries", data=[])


def get_all_deliveries(caller, status=None):
    if not caller.has_role(*REPORT_ROLES):
        return failure(FORBIDDEN, "Access denied", data=[])

    stmt = _delivery_query()
    if status:
        try:
            stmt = stmt.where(Delivery.status == DeliveryStatus(status.upper()))
        except ValueError:
            return failure(VALIDATION, f"Unknown delivery status '{status}'", data=[])

    try:
        deliveries = db.session.scalars(
            stmt.order_by(Delivery.dispatched_at.desc(), Delivery.id.desc())
        ).all()
        return success(data=[_delivery_row(d) for d in deliveries])
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Get all deliveries failed: {e}")
        return failure(INTERNAL, "Failed to load deliveries", data=[])


def get_courier_stats(caller, courier_id=None):
    empty = {"total": 0, "shipping": 0, "delivered": 0}
    if caller.has_role(StaffRole.COURIER.value):
        courier_id = caller.id
    elif not caller.has_role(StaffRole.ADMIN.value):
        return failure(FORBIDDEN, "Access denied", data=empty)
    elif courier_id is None:
        return failure(VALIDATION, "courier_id is required", data=empty)

    try:
        rows = db.session.execute(
            select(Delivery.status, Order.status, func.count(Delivery.id))
            .join(Delivery.order)
            .where(Delivery.courier_id == courier_id)
            .group_by(Delivery.status, Order.status)
        ).all()
        data = dict(empty)
        for delivery_status, order_status, count in rows:
            data["total"] += int(count)
            if delivery_status == DeliveryStatus.DELIVERED:
                data["delivered"] += int(count)
            elif order_status == OrderStatus.SHIPPING:
                data["shipping"] += int(count)
        return success(data=data)
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Get courier stats for {courier_id} failed: {e}")
        return failure(INTERNAL, "Failed to load courier statistics", data=empty)


def build_sales_report(caller, month=None, status=None):
    """One row per order, for the owner's sales page and the Excel export."""
    if not caller.has_role(*REPORT_ROLES):
        return failure(FORBIDDEN, "Access denied", data=[], summary={})

    stmt = select(Order).options(
        selectinload(Order.customer),
        selectinload(Order.payment_method),
        selectinload(Order.lines).selectinload(OrderLine.package),
    )
    if month:
        bounds = parse_month(month)
        if not bounds:
            return failure(VALIDATION, "month must be in YYYY-MM format", data=[], summary={})
        stmt = stmt.where(Order.ordered_at >= bounds[0], Order.ordered_at < bounds[1])
    if status:
        try:
            stmt = stmt.where(Order.status == OrderStatus(status.upper()))
        except ValueError:
            return failure(VALIDATION, f"Unknown order status '{status}'", data=[], summary={})

    try:
        orders = db.session.scalars(stmt.order_by(Order.ordered_at.desc(), Order.id.desc())).all()
        rows = [
            {
                "order_id": o.id,
                "tracking_code": o.tracking_code,
                "ordered_at": o.ordered_at.strftime("%Y-%m-%d %H:%M"),
                "customer": o.customer.name,
                "packages": ", ".join(
                    line.package.name if line.package else "Unknown" for line in o.lines
                ),
                "items": len(o.lines),
                "payment_method": o.payment_method.label,
                "status": o.status.value,
                "total": int(o.total),
            }
            for o in orders
        ]
        delivered = [r for r in rows if r["status"] == OrderStatus.DELIVERED.value]
        summary = {
            "orders": len(rows),
            "delivered_orders": len(delivered),
            "revenue": sum(r["total"] for r in delivered),
        }
        return success(data=rows, summary=summary)
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Build sales report failed: {e}")
        return failure(INTERNAL, "Failed to build sales report", data=[], summary={})


def export_sales_report(caller, month=None, status=None, year=None):
    """Render the sales report (and a monthly revenue sheet) as an .xlsx file."""
    report = build_sales_report(caller, month=month, status=status)
    if not report["success"]:
        return report

    revenue = get_monthly_revenue(caller, year=year)
    if not revenue["success"]:
        return revenue

    output = BytesIO()
    columns = [
        "order_id",
        "tracking_code",
        "ordered_at",
        "customer",
        "packages",
        "items",
        "payment_method",
        "status",
        "total",
    ]
    with pd.ExcelWriter(output, engine="xlsxwriter") as writer:
        df_sales = pd.DataFrame(report["data"], columns=columns)
        df_sales.to_excel(writer, sheet_name="Sales", index=False)

        df_revenue = pd.DataFrame(revenue["data"], columns=["month", "revenue"])
        df_revenue.to_excel(writer, sheet_name=f"Revenue {revenue['year']}", index=False)

    output.seek(0)
    filename = f"Mangan_Sales_{datetime.now().strftime('%Y%m%d_%H%M%S')}.xlsx"
    return success(file=output, filename=filename, summary=report["summary"])

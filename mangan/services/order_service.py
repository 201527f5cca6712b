"""
Order creation and the customer-facing order operations.

Every function takes the authenticated ``Caller`` explicitly and returns a
result dict (see ``results.py``); nothing raises past these functions.
"""
from datetime import datetime

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import (
    Customer,
    Delivery,
    Order,
    OrderLine,
    OrderStatus,
    Package,
    PaymentMethod,
    StaffRole,
)
from ..utils import s3_utils
from .payment_methods import resolve_payment_method
from .projections import order_dict
from .results import CONFLICT, FORBIDDEN, INTERNAL, NOT_FOUND, VALIDATION, failure, success
from .tracking import generate_tracking_code

PROOF_FOLDER = "mangan/payment-proofs"
TRACKING_CODE_ATTEMPTS = 5


def _order_query():
    return select(Order).options(
        selectinload(Order.lines).selectinload(OrderLine.package),
        selectinload(Order.payment_method).selectinload(PaymentMethod.details),
        selectinload(Order.delivery).selectinload(Delivery.courier),
        selectinload(Order.customer),
    )


def _to_positive_int(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not value.is_integer():
            return None
        value = int(value)
    if isinstance(value, str):
        value = value.strip()
        if not value.isdigit():
            return None
        value = int(value)
    if not isinstance(value, int) or value <= 0:
        return None
    return value


def _parse_cart(items):
    """Return ([(package_id, subtotal), ...], error)."""
    if not isinstance(items, list) or not items:
        return None, "Order must contain at least one item"

    lines = []
    for index, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            return None, f"Item {index} is malformed"
        package_id = _to_positive_int(item.get("package_id"))
        if package_id is None:
            return None, f"Item {index} has an invalid package_id"
        subtotal = _to_positive_int(item.get("subtotal"))
        if subtotal is None:
            return None, f"Item {index} has an invalid subtotal"
        lines.append((package_id, subtotal))
    return lines, None


def _unused_tracking_code():
    for _ in range(TRACKING_CODE_ATTEMPTS):
        code = generate_tracking_code()
        taken = db.session.scalar(select(Order.id).where(Order.tracking_code == code))
        if not taken:
            return code
    return None


def create_order(caller, items, payment_method_label):
    if caller is None or not caller.is_customer:
        return failure(FORBIDDEN, "Only customers can place orders")

    lines, error = _parse_cart(items)
    if error:
        return failure(VALIDATION, error)
    if not isinstance(payment_method_label, str) or not payment_method_label.strip():
        return failure(VALIDATION, "Payment method is required")

    try:
        customer = db.session.get(Customer, caller.id)
        if not customer:
            return failure(NOT_FOUND, f"Customer {caller.id} not found")

        # --- Every package in the cart must still exist ---
        requested_ids = {package_id for package_id, _ in lines}
        packages = {
            p.id: p
            for p in db.session.scalars(
                select(Package).where(Package.id.in_(sorted(requested_ids)))
            ).all()
        }
        missing = sorted(requested_ids - packages.keys())
        if missing:
            return failure(
                NOT_FOUND,
                "Stale cart: package(s) "
                + ", ".join(str(i) for i in missing)
                + " no longer exist",
                invalid_package_ids=missing,
            )

        if current_app.config.get("ENFORCE_CATALOG_PRICES", True):
            mismatched = sorted(
                {pid for pid, subtotal in lines if int(packages[pid].price) != subtotal}
            )
            if mismatched:
                return failure(
                    VALIDATION,
                    "Prices changed for package(s) "
                    + ", ".join(str(i) for i in mismatched)
                    + ", please refresh your cart",
                    mismatched_package_ids=mismatched,
                )

        total = sum(subtotal for _, subtotal in lines)

        resolved = resolve_payment_method(payment_method_label)
        if not resolved["success"]:
            return resolved

        tracking_code = _unused_tracking_code()
        if not tracking_code:
            return failure(CONFLICT, "Could not allocate a tracking code, please retry")

        order = Order(
            customer_id=customer.id,
            payment_method_id=resolved["payment_method_id"],
            tracking_code=tracking_code,
            ordered_at=datetime.now(),
            total=total,
            status=OrderStatus.AWAITING_CONFIRMATION,
            lines=[OrderLine(package_id=pid, subtotal=subtotal) for pid, subtotal in lines],
        )
        db.session.add(order)
        db.session.commit()

        return success(
            "Order created",
            order_id=order.id,
            tracking_code=tracking_code,
            total=total,
        )

    except IntegrityError as e:
        db.session.rollback()
        current_app.logger.error(f"Create order integrity error: {e}")
        return failure(CONFLICT, "Order could not be saved, the cart may be out of date")
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Create order failed for customer {caller.id}: {e}")
        return failure(INTERNAL, "An error occurred while creating the order")


def get_order(caller, order_id):
    try:
        order = db.session.scalar(_order_query().where(Order.id == order_id))
        if not order:
            return failure(NOT_FOUND, f"Order {order_id} not found")

        if caller.is_customer and order.customer_id != caller.id:
            return failure(FORBIDDEN, "You can only view your own orders")

        return success(data=order_dict(order, include_customer=caller.is_staff))
    except Exception as e:
        current_app.logger.error(f"Get order {order_id} failed: {e}")
        return failure(INTERNAL, "Failed to load order")


def get_orders_by_customer(caller, customer_id=None):
    if caller.is_customer:
        if customer_id is not None and customer_id != caller.id:
            return failure(FORBIDDEN, "You can only view your own orders", data=[])
        customer_id = caller.id
    elif not caller.has_role(StaffRole.ADMIN.value, StaffRole.OWNER.value):
        return failure(FORBIDDEN, "Access denied", data=[])
    elif customer_id is None:
        return failure(VALIDATION, "customer_id is required", data=[])

    try:
        orders = db.session.scalars(
            _order_query()
            .where(Order.customer_id == customer_id)
            .order_by(Order.ordered_at.desc(), Order.id.desc())
        ).all()
        return success(data=[order_dict(o) for o in orders])
    except Exception as e:
        current_app.logger.error(f"Get orders for customer {customer_id} failed: {e}")
        return failure(INTERNAL, "Failed to load orders", data=[])


def parse_month(month):
    """Parse ``YYYY-MM`` into a [start, end) datetime range."""
    try:
        start = datetime.strptime(month, "%Y-%m")
    except (TypeError, ValueError):
        return None
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def get_all_orders(caller, status=None, month=None):
    if not caller.has_role(StaffRole.ADMIN.value, StaffRole.OWNER.value):
        return failure(FORBIDDEN, "Access denied", data=[])

    stmt = _order_query()
    if status:
        try:
            stmt = stmt.where(Order.status == OrderStatus(status.upper()))
        except ValueError:
            return failure(VALIDATION, f"Unknown order status '{status}'", data=[])
    if month:
        bounds = parse_month(month)
        if not bounds:
            return failure(VALIDATION, "month must be in YYYY-MM format", data=[])
        stmt = stmt.where(Order.ordered_at >= bounds[0], Order.ordered_at < bounds[1])

    try:
        orders = db.session.scalars(
            stmt.order_by(Order.ordered_at.desc(), Order.id.desc())
        ).all()
        return success(data=[order_dict(o, include_customer=True) for o in orders])
    except Exception as e:
        current_app.logger.error(f"Get all orders failed: {e}")
        return failure(INTERNAL, "Failed to load orders", data=[])


def upload_payment_proof(caller, order_id, image_data):
    if caller is None or not caller.is_customer:
        return failure(FORBIDDEN, "Only the ordering customer can upload a payment proof")
    if not s3_utils.is_image_data_uri(image_data):
        return failure(VALIDATION, "Payment proof must be a base64 data:image URI")

    uploaded = None
    try:
        order = db.session.get(Order, order_id)
        if not order:
            return failure(NOT_FOUND, f"Order {order_id} not found")
        if order.customer_id != caller.id:
            return failure(FORBIDDEN, "You can only update your own orders")
        if order.status != OrderStatus.AWAITING_CONFIRMATION:
            return failure(CONFLICT, "Order has already been processed")
        if "cod" in order.payment_method.label.lower():
            return failure(VALIDATION, "Cash on delivery orders do not need a payment proof")

        uploaded = s3_utils.upload_base64_image(image_data, PROOF_FOLDER)
        order.payment_proof = uploaded
        db.session.commit()
        return success("Payment proof uploaded", payment_proof=order.payment_proof)

    except ValueError as e:
        db.session.rollback()
        return failure(VALIDATION, str(e))
    except Exception as e:
        db.session.rollback()
        s3_utils.discard_upload(uploaded)
        current_app.logger.error(f"Upload payment proof for order {order_id} failed: {e}")
        return failure(INTERNAL, "Failed to upload payment proof")

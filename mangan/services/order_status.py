"""
Order lifecycle. Valid transitions enforce business rules.

SHIPPING and DELIVERED are reached only through ``assign_courier`` and
``mark_delivered``, which update the Order and its Delivery row in the same
commit.
"""
from datetime import datetime

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Delivery, DeliveryStatus, Order, OrderStatus, StaffRole, StaffUser
from ..utils import s3_utils
from .projections import delivery_dict
from .results import CONFLICT, FORBIDDEN, INTERNAL, NOT_FOUND, VALIDATION, failure, success

DELIVERY_PROOF_FOLDER = "mangan/deliveries"

# Current status -> statuses it may move to
VALID_TRANSITIONS = {
    OrderStatus.AWAITING_CONFIRMATION: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {
        OrderStatus.AWAITING_COURIER,
        OrderStatus.SHIPPING,
        OrderStatus.CANCELLED,
    },
    OrderStatus.AWAITING_COURIER: {OrderStatus.SHIPPING, OrderStatus.CANCELLED},
    OrderStatus.SHIPPING: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),  # terminal
    OrderStatus.CANCELLED: set(),  # terminal
}

DELIVERY_DRIVEN = {OrderStatus.SHIPPING, OrderStatus.DELIVERED}


def can_transition(current, target):
    """True if an order in ``current`` may move to ``target``."""
    return target in VALID_TRANSITIONS.get(current, set())


def _coerce_status(value):
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(str(value).strip().upper())
    except ValueError:
        return None


def _is_admin(caller):
    return caller is not None and caller.has_role(StaffRole.ADMIN.value)


def transition_order_status(caller, order_id, target_status):
    if not _is_admin(caller):
        return failure(FORBIDDEN, "Only admins can change order status")

    target = _coerce_status(target_status)
    if target is None:
        return failure(VALIDATION, f"Unknown order status '{target_status}'")
    if target in DELIVERY_DRIVEN:
        return failure(
            VALIDATION,
            "Use courier assignment or delivery confirmation to move an order to "
            f"{target.value}",
        )

    try:
        order = db.session.get(Order, order_id)
        if not order:
            return failure(NOT_FOUND, f"Order {order_id} not found")

        if not can_transition(order.status, target):
            return failure(
                CONFLICT,
                f"Cannot move order from {order.status.value} to {target.value}",
            )

        previous = order.status
        order.status = target
        db.session.commit()
        return success(
            "Order status updated",
            order_id=order.id,
            previous_status=previous.value,
            status=order.status.value,
        )
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Transition order {order_id} to {target.value} failed: {e}")
        return failure(INTERNAL, "An error occurred while updating the order status")


def assign_courier(caller, order_id, courier_id):
    if not _is_admin(caller):
        return failure(FORBIDDEN, "Only admins can assign couriers")

    try:
        order = db.session.get(Order, order_id)
        if not order:
            return failure(NOT_FOUND, f"Order {order_id} not found")

        courier = db.session.get(StaffUser, courier_id)
        if not courier or courier.role != StaffRole.COURIER:
            return failure(NOT_FOUND, f"Courier {courier_id} not found")

        existing = db.session.scalar(select(Delivery).where(Delivery.order_id == order.id))
        if existing:
            return failure(CONFLICT, "Delivery already exists for this order")

        # PROCESSING passes through AWAITING_COURIER implicitly
        if order.status not in (OrderStatus.PROCESSING, OrderStatus.AWAITING_COURIER):
            return failure(
                CONFLICT,
                f"Cannot assign a courier while the order is {order.status.value}",
            )

        delivery = Delivery(
            order_id=order.id,
            courier_id=courier.id,
            dispatched_at=datetime.now(),
            status=DeliveryStatus.SHIPPING,
        )
        db.session.add(delivery)
        order.status = OrderStatus.SHIPPING
        db.session.commit()

        return success("Courier assigned", data=delivery_dict(delivery))

    except IntegrityError:
        db.session.rollback()
        return failure(CONFLICT, "Delivery already exists for this order")
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Assign courier {courier_id} to order {order_id} failed: {e}")
        return failure(INTERNAL, "An error occurred while assigning the courier")


def mark_delivered(caller, delivery_id, proof_image=None):
    if caller is None or not caller.has_role(StaffRole.ADMIN.value, StaffRole.COURIER.value):
        return failure(FORBIDDEN, "Only couriers and admins can confirm deliveries")
    if proof_image is not None and not s3_utils.is_image_data_uri(proof_image):
        return failure(VALIDATION, "Delivery proof must be a base64 data:image URI")

    uploaded = None
    try:
        delivery = db.session.get(Delivery, delivery_id)
        if not delivery:
            return failure(NOT_FOUND, f"Delivery {delivery_id} not found")

        if caller.role == StaffRole.COURIER.value and delivery.courier_id != caller.id:
            return failure(FORBIDDEN, "This delivery is assigned to another courier")

        order = delivery.order
        if delivery.status != DeliveryStatus.SHIPPING or order.status != OrderStatus.SHIPPING:
            return failure(CONFLICT, "Delivery is not in transit")

        if proof_image is not None:
            uploaded = s3_utils.upload_base64_image(proof_image, DELIVERY_PROOF_FOLDER)
            delivery.proof_image = uploaded

        delivery.status = DeliveryStatus.DELIVERED
        delivery.arrived_at = datetime.now()
        order.status = OrderStatus.DELIVERED
        db.session.commit()

        return success("Delivery confirmed", data=delivery_dict(delivery))

    except ValueError as e:
        db.session.rollback()
        return failure(VALIDATION, str(e))
    except Exception as e:
        db.session.rollback()
        s3_utils.discard_upload(uploaded)
        current_app.logger.error(f"Mark delivery {delivery_id} delivered failed: {e}")
        return failure(INTERNAL, "An error occurred while confirming the delivery")


def cancel_order(caller, order_id):
    """
    Customers may withdraw an unconfirmed, unpaid order (the order is deleted).
    Admins may cancel any order that has not been delivered yet.
    """
    if caller is None:
        return failure(FORBIDDEN, "Authentication required")
    if caller.is_staff and not _is_admin(caller):
        return failure(FORBIDDEN, "Only admins can cancel orders")

    try:
        order = db.session.get(Order, order_id)
        if not order:
            return failure(NOT_FOUND, f"Order {order_id} not found")

        if caller.is_customer:
            if order.customer_id != caller.id:
                return failure(FORBIDDEN, "You can only cancel your own orders")
            if order.status != OrderStatus.AWAITING_CONFIRMATION:
                return failure(CONFLICT, "Order has already been processed and cannot be cancelled")
            if order.payment_proof:
                return failure(
                    CONFLICT, "Payment proof already uploaded, awaiting admin confirmation"
                )

            db.session.delete(order)
            db.session.commit()
            return success("Order cancelled", order_id=order_id, deleted=True)

        if not can_transition(order.status, OrderStatus.CANCELLED):
            return failure(
                CONFLICT, f"Cannot cancel an order that is {order.status.value}"
            )

        order.status = OrderStatus.CANCELLED
        db.session.commit()
        return success(
            "Order cancelled", order_id=order.id, status=order.status.value, deleted=False
        )

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Cancel order {order_id} failed: {e}")
        return failure(INTERNAL, "An error occurred while cancelling the order")

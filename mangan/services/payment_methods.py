from flask import current_app
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Order, PaymentMethod, PaymentMethodDetail, StaffRole
from ..utils import s3_utils
from .projections import payment_detail_dict, payment_method_dict
from .results import CONFLICT, FORBIDDEN, INTERNAL, NOT_FOUND, VALIDATION, failure, success

LOGO_FOLDER = "mangan/payment-methods"


def _clean_label(label):
    return label.strip() if isinstance(label, str) else ""


def _validate_label(label):
    if not 2 <= len(label) <= 50:
        return "Payment method label must be 2-50 characters"
    return None


def _is_admin(caller):
    return caller is not None and caller.has_role(StaffRole.ADMIN.value)


def resolve_payment_method(label):
    """
    Find the payment method with exactly this label, creating it if missing.

    Runs in its own transaction so a later failure while persisting an order
    never rolls back (or half-applies) the payment method row.
    """
    label = _clean_label(label)
    error = _validate_label(label)
    if error:
        return failure(VALIDATION, error)

    try:
        method = db.session.scalar(select(PaymentMethod).where(PaymentMethod.label == label))
        if method:
            return success(payment_method_id=method.id, created=False)

        method = PaymentMethod(label=label)
        db.session.add(method)
        db.session.commit()
        return success(payment_method_id=method.id, created=True)

    except IntegrityError:
        # Another request created the same label first
        db.session.rollback()
        method = db.session.scalar(select(PaymentMethod).where(PaymentMethod.label == label))
        if method:
            return success(payment_method_id=method.id, created=False)
        return failure(INTERNAL, "Failed to resolve payment method")
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Resolve payment method '{label}' failed: {e}")
        return failure(INTERNAL, "Failed to resolve payment method")


def list_payment_methods():
    try:
        methods = db.session.scalars(
            select(PaymentMethod).order_by(PaymentMethod.created_at.desc(), PaymentMethod.id.desc())
        ).all()
        return success(data=[payment_method_dict(m) for m in methods])
    except Exception as e:
        current_app.logger.error(f"List payment methods failed: {e}")
        return failure(INTERNAL, "Failed to load payment methods", data=[])


def create_payment_method(caller, label):
    if not _is_admin(caller):
        return failure(FORBIDDEN, "Only admins can manage payment methods")

    label = _clean_label(label)
    error = _validate_label(label)
    if error:
        return failure(VALIDATION, error)

    try:
        if db.session.scalar(select(PaymentMethod).where(PaymentMethod.label == label)):
            return failure(CONFLICT, f"Payment method '{label}' already exists")

        method = PaymentMethod(label=label)
        db.session.add(method)
        db.session.commit()
        return success("Payment method created", data=payment_method_dict(method))
    except IntegrityError:
        db.session.rollback()
        return failure(CONFLICT, f"Payment method '{label}' already exists")
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Create payment method failed: {e}")
        return failure(INTERNAL, "Failed to create payment method")


def update_payment_method(caller, method_id, label):
    if not _is_admin(caller):
        return failure(FORBIDDEN, "Only admins can manage payment methods")

    label = _clean_label(label)
    error = _validate_label(label)
    if error:
        return failure(VALIDATION, error)

    try:
        method = db.session.get(PaymentMethod, method_id)
        if not method:
            return failure(NOT_FOUND, f"Payment method {method_id} not found")

        method.label = label
        db.session.commit()
        return success("Payment method updated", data=payment_method_dict(method))
    except IntegrityError:
        db.session.rollback()
        return failure(CONFLICT, f"Payment method '{label}' already exists")
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Update payment method {method_id} failed: {e}")
        return failure(INTERNAL, "Failed to update payment method")


def delete_payment_method(caller, method_id):
    if not _is_admin(caller):
        return failure(FORBIDDEN, "Only admins can manage payment methods")

    try:
        method = db.session.get(PaymentMethod, method_id)
        if not method:
            return failure(NOT_FOUND, f"Payment method {method_id} not found")

        in_use = db.session.scalar(
            select(func.count(Order.id)).where(Order.payment_method_id == method_id)
        )
        if in_use:
            return failure(
                CONFLICT, f"Payment method is used by {in_use} order(s) and cannot be deleted"
            )

        db.session.delete(method)
        db.session.commit()
        return success("Payment method deleted")
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Delete payment method {method_id} failed: {e}")
        return failure(INTERNAL, "Failed to delete payment method")


def _validate_detail(account_number, payee_name):
    if not isinstance(account_number, str) or not 5 <= len(account_number.strip()) <= 25:
        return "Account number must be 5-25 characters"
    if not isinstance(payee_name, str) or not 2 <= len(payee_name.strip()) <= 50:
        return "Payee name must be 2-50 characters"
    return None


def _resolve_logo(logo):
    if s3_utils.is_image_data_uri(logo):
        return s3_utils.upload_base64_image(logo, LOGO_FOLDER)
    return logo


def create_payment_method_detail(caller, method_id, account_number, payee_name, logo=None):
    if not _is_admin(caller):
        return failure(FORBIDDEN, "Only admins can manage payment methods")

    error = _validate_detail(account_number, payee_name)
    if error:
        return failure(VALIDATION, error)

    try:
        method = db.session.get(PaymentMethod, method_id)
        if not method:
            return failure(NOT_FOUND, f"Payment method {method_id} not found")

        detail = PaymentMethodDetail(
            payment_method_id=method.id,
            account_number=account_number.strip(),
            payee_name=payee_name.strip(),
            logo_url=_resolve_logo(logo),
        )
        db.session.add(detail)
        db.session.commit()
        return success("Payment detail created", data=payment_detail_dict(detail))
    except ValueError as e:
        db.session.rollback()
        return failure(VALIDATION, str(e))
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Create payment detail for method {method_id} failed: {e}")
        return failure(INTERNAL, "Failed to create payment detail")


def update_payment_method_detail(caller, detail_id, account_number=None, payee_name=None, logo=None):
    if not _is_admin(caller):
        return failure(FORBIDDEN, "Only admins can manage payment methods")

    try:
        detail = db.session.get(PaymentMethodDetail, detail_id)
        if not detail:
            return failure(NOT_FOUND, f"Payment detail {detail_id} not found")

        error = _validate_detail(
            account_number if account_number is not None else detail.account_number,
            payee_name if payee_name is not None else detail.payee_name,
        )
        if error:
            return failure(VALIDATION, error)

        if account_number is not None:
            detail.account_number = account_number.strip()
        if payee_name is not None:
            detail.payee_name = payee_name.strip()
        if logo is not None:
            detail.logo_url = _resolve_logo(logo)

        db.session.commit()
        return success("Payment detail updated", data=payment_detail_dict(detail))
    except ValueError as e:
        db.session.rollback()
        return failure(VALIDATION, str(e))
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Update payment detail {detail_id} failed: {e}")
        return failure(INTERNAL, "Failed to update payment detail")


def delete_payment_method_detail(caller, detail_id):
    if not _is_admin(caller):
        return failure(FORBIDDEN, "Only admins can manage payment methods")

    try:
        detail = db.session.get(PaymentMethodDetail, detail_id)
        if not detail:
            return failure(NOT_FOUND, f"Payment detail {detail_id} not found")

        db.session.delete(detail)
        db.session.commit()
        return success("Payment detail deleted")
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Delete payment detail {detail_id} failed: {e}")
        return failure(INTERNAL, "Failed to delete payment detail")

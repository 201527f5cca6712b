"""
Row-to-dict projections shared by the services and the blueprints.

Enum columns are emitted as their string value and timestamps as ISO 8601.
"""


def _iso(value):
    return value.isoformat() if value else None


def _enum(value):
    return value.value if value is not None else None


def package_dict(package):
    return {
        "id": package.id,
        "name": package.name,
        "type": _enum(package.type),
        "category": _enum(package.category),
        "pax": package.pax,
        "price": int(package.price),
        "description": package.description,
        "images": [url for url in (package.image1, package.image2, package.image3) if url],
        "created_at": _iso(package.created_at),
    }


def payment_detail_dict(detail):
    return {
        "id": detail.id,
        "payment_method_id": detail.payment_method_id,
        "account_number": detail.account_number,
        "payee_name": detail.payee_name,
        "logo_url": detail.logo_url,
    }


def payment_method_dict(method, include_details=True):
    data = {"id": method.id, "label": method.label}
    if include_details:
        data["details"] = [payment_detail_dict(d) for d in method.details]
    return data


def customer_dict(customer, contact_only=False):
    data = {
        "id": customer.id,
        "name": customer.name,
        "phone": customer.phone,
        "address1": customer.address1,
    }
    if contact_only:
        return data
    data.update(
        {
            "email": customer.email,
            "address2": customer.address2,
            "address3": customer.address3,
            "photo": customer.photo,
            "id_card_image": customer.id_card_image,
            "birth_date": _iso(customer.birth_date),
            "created_at": _iso(customer.created_at),
        }
    )
    return data


def staff_dict(user):
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": _enum(user.role),
        "created_at": _iso(user.created_at),
    }


def delivery_dict(delivery):
    return {
        "id": delivery.id,
        "order_id": delivery.order_id,
        "courier_id": delivery.courier_id,
        "courier_name": delivery.courier.name if delivery.courier else None,
        "status": _enum(delivery.status),
        "dispatched_at": _iso(delivery.dispatched_at),
        "arrived_at": _iso(delivery.arrived_at),
        "proof_image": delivery.proof_image,
    }


def order_line_dict(line):
    return {
        "id": line.id,
        "package_id": line.package_id,
        "subtotal": int(line.subtotal),
        "package": package_dict(line.package) if line.package else None,
    }


def order_dict(order, include_customer=False):
    data = {
        "id": order.id,
        "customer_id": order.customer_id,
        "tracking_code": order.tracking_code,
        "ordered_at": _iso(order.ordered_at),
        "total": int(order.total),
        "status": _enum(order.status),
        "payment_proof": order.payment_proof,
        "payment_method": payment_method_dict(order.payment_method)
        if order.payment_method
        else None,
        "lines": [order_line_dict(line) for line in order.lines],
        "delivery": delivery_dict(order.delivery) if order.delivery else None,
    }
    if include_customer and order.customer:
        data["customer"] = customer_dict(order.customer, contact_only=True)
    return data

"""
Swagger/OpenAPI configuration for the Mangan catering API
"""

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec",
            "route": "/apispec.json",
            "rule_filter": lambda rule: True,
            "model_filter": lambda tag: True,
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/api/docs",
}

SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Mangan Catering API",
        "description": "REST API for catering orders: package catalog, checkout, payment proofs, courier dispatch and owner reports",
        "contact": {"email": "support@mangan.id"},
        "version": "1.0.0",
    },
    "host": "",
    "basePath": "/api",
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": 'JWT Authorization header using the Bearer scheme. Example: "Authorization: Bearer {token}"',
        }
    },
    "security": [{"Bearer": []}],
    "tags": [
        {"name": "Authentication", "description": "Customer and staff login"},
        {"name": "Customer", "description": "Customer profile"},
        {"name": "Staff", "description": "Staff account management"},
        {"name": "Packages", "description": "Catering package catalog"},
        {"name": "Payment Methods", "description": "Payment channels and account details"},
        {"name": "Orders", "description": "Checkout, payment proof and order status"},
        {"name": "Deliveries", "description": "Courier dispatch and delivery confirmation"},
        {"name": "Dashboard", "description": "Statistics and reports"},
    ],
    "definitions": {
        "Error": {
            "type": "object",
            "properties": {
                "status": {"type": "string", "example": "error"},
                "message": {"type": "string"},
            },
        },
        "Success": {
            "type": "object",
            "properties": {
                "status": {"type": "string", "example": "success"},
                "message": {"type": "string"},
            },
        },
        "Package": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "name": {"type": "string"},
                "type": {"type": "string", "enum": ["BUFFET", "BOX"]},
                "category": {
                    "type": "string",
                    "enum": ["WEDDING", "MEMORIAL", "BIRTHDAY", "FIELD_TRIP", "MEETING"],
                },
                "pax": {"type": "integer"},
                "price": {"type": "integer"},
                "description": {"type": "string"},
                "images": {"type": "array", "items": {"type": "string"}},
            },
        },
        "CartItem": {
            "type": "object",
            "required": ["package_id", "subtotal"],
            "properties": {
                "package_id": {"type": "integer", "example": 1},
                "subtotal": {"type": "integer", "example": 900000},
            },
        },
        "Order": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "tracking_code": {"type": "string", "example": "MNG2610190042"},
                "ordered_at": {"type": "string", "format": "date-time"},
                "total": {"type": "integer"},
                "status": {
                    "type": "string",
                    "enum": [
                        "AWAITING_CONFIRMATION",
                        "PROCESSING",
                        "AWAITING_COURIER",
                        "SHIPPING",
                        "DELIVERED",
                        "CANCELLED",
                    ],
                },
                "payment_proof": {"type": "string"},
                "lines": {"type": "array", "items": {"type": "object"}},
                "delivery": {"$ref": "#/definitions/Delivery"},
            },
        },
        "Delivery": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "order_id": {"type": "integer"},
                "courier_id": {"type": "integer"},
                "courier_name": {"type": "string"},
                "status": {"type": "string", "enum": ["SHIPPING", "DELIVERED"]},
                "dispatched_at": {"type": "string", "format": "date-time"},
                "arrived_at": {"type": "string", "format": "date-time"},
                "proof_image": {"type": "string"},
            },
        },
    },
}

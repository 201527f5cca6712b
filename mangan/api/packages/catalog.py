from flask import Blueprint, request, jsonify, current_app
from sqlalchemy import select
from ...extensions import db
from ...models import Package, PackageCategory, PackageType, StaffRole
from ...services.projections import package_dict
from ...utils import s3_utils
from ...utils.auth import token_required
from ...utils.responses import invalid_body, json_object

packages_bp = Blueprint("packages", __name__, url_prefix="/api/packages")

PACKAGE_FOLDER = "mangan/packages"
IMAGE_FIELDS = ("image1", "image2", "image3")


def _parse_enum(enum_cls, value):
    try:
        return enum_cls(str(value).strip().upper())
    except ValueError:
        return None


def _store_image(value):
    """Upload base64 images; plain URLs are kept as they are."""
    if s3_utils.is_image_data_uri(value):
        return s3_utils.upload_base64_image(value, PACKAGE_FOLDER)
    return value


def _apply_package_fields(package, data, partial):
    """Validate ``data`` onto ``package``; returns an error message or None."""
    if not partial or "name" in data:
        name = (data.get("name") or "").strip()
        if not 2 <= len(name) <= 50:
            return "Package name must be 2-50 characters"
        package.name = name

    if not partial or "type" in data:
        package_type = _parse_enum(PackageType, data.get("type"))
        if not package_type:
            return "Type must be BUFFET or BOX"
        package.type = package_type

    if not partial or "category" in data:
        category = _parse_enum(PackageCategory, data.get("category"))
        if not category:
            return "Unknown package category"
        package.category = category

    if not partial or "pax" in data:
        try:
            pax = int(data.get("pax"))
        except (TypeError, ValueError):
            return "pax must be a number"
        if pax < 1:
            return "pax must be at least 1"
        package.pax = pax

    if not partial or "price" in data:
        try:
            price = int(data.get("price"))
        except (TypeError, ValueError):
            return "price must be a number"
        if price < 1000:
            return "price must be at least 1000"
        package.price = price

    if "description" in data:
        package.description = (data.get("description") or "").strip() or None

    images = data.get("images")
    if isinstance(images, list):
        if len(images) > 3:
            return "A package can have at most 3 images"
        images = list(images) + [None] * (3 - len(images))
        for field, value in zip(IMAGE_FIELDS, images):
            setattr(package, field, _store_image(value) if value else None)
    else:
        for field in IMAGE_FIELDS:
            if field in data:
                value = data.get(field)
                setattr(package, field, _store_image(value) if value else None)

    return None


@packages_bp.route("", methods=["GET"])
def list_packages():
    """
    List catering packages
    ---
    tags:
      - Packages
    parameters:
      - in: query
        name: type
        type: string
        enum: [BUFFET, BOX]
      - in: query
        name: category
        type: string
      - in: query
        name: search
        type: string
        description: Case-insensitive name search
    responses:
      200:
        description: Packages
        schema:
          type: object
          properties:
            status:
              type: string
            data:
              type: array
              items:
                $ref: '#/definitions/Package'
    """
    try:
        stmt = select(Package)

        type_param = request.args.get("type")
        if type_param:
            package_type = _parse_enum(PackageType, type_param)
            if not package_type:
                return jsonify({"status": "error", "message": f"Unknown package type '{type_param}'"}), 400
            stmt = stmt.where(Package.type == package_type)

        category_param = request.args.get("category")
        if category_param:
            category = _parse_enum(PackageCategory, category_param)
            if not category:
                return jsonify({"status": "error", "message": f"Unknown category '{category_param}'"}), 400
            stmt = stmt.where(Package.category == category)

        search = (request.args.get("search") or "").strip()
        if search:
            stmt = stmt.where(Package.name.ilike(f"%{search}%"))

        packages = db.session.scalars(
            stmt.order_by(Package.created_at.desc(), Package.id.desc())
        ).all()
        return jsonify({"status": "success", "data": [package_dict(p) for p in packages]}), 200

    except Exception as e:
        current_app.logger.error(f"List packages failed: {e}")
        return jsonify({"status": "error", "message": "Failed to load packages"}), 500


@packages_bp.route("/<int:package_id>", methods=["GET"])
def get_package(package_id):
    """
    Get a package by ID
    ---
    tags:
      - Packages
    parameters:
      - in: path
        name: package_id
        type: integer
        required: true
    responses:
      200:
        description: Package
      404:
        description: Package not found
    """
    try:
        package = db.session.get(Package, package_id)
        if not package:
            return jsonify({"status": "error", "message": "Package not found"}), 404
        return jsonify({"status": "success", "data": package_dict(package)}), 200
    except Exception as e:
        current_app.logger.error(f"Get package {package_id} failed: {e}")
        return jsonify({"status": "error", "message": "Failed to load package"}), 500


@packages_bp.route("", methods=["POST"])
@token_required(StaffRole.ADMIN.value)
def create_package(caller):
    """
    Create a package
    ---
    tags:
      - Packages
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [name, type, category, pax, price]
          properties:
            name:
              type: string
            type:
              type: string
            category:
              type: string
            pax:
              type: integer
            price:
              type: integer
            description:
              type: string
            images:
              type: array
              items:
                type: string
              description: Up to three URLs or base64 data:image URIs
    responses:
      201:
        description: Package created
      400:
        description: Invalid input
    """
    try:
        data = json_object()
        if data is None:
            return invalid_body()
        package = Package()
        error = _apply_package_fields(package, data, partial=False)
        if error:
            return jsonify({"status": "error", "message": error}), 400

        db.session.add(package)
        db.session.commit()

        return jsonify({
            "status": "success",
            "message": "Package created",
            "data": package_dict(package)
        }), 201

    except ValueError as e:
        db.session.rollback()
        return jsonify({"status": "error", "message": str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Create package failed: {e}")
        return jsonify({"status": "error", "message": "Failed to create package"}), 500


@packages_bp.route("/<int:package_id>", methods=["PUT"])
@token_required(StaffRole.ADMIN.value)
def update_package(package_id, caller):
    """
    Update a package
    ---
    tags:
      - Packages
    security:
      - Bearer: []
    parameters:
      - in: path
        name: package_id
        type: integer
        required: true
      - in: body
        name: body
        schema:
          $ref: '#/definitions/Package'
    responses:
      200:
        description: Package updated
      404:
        description: Package not found
    """
    try:
        package = db.session.get(Package, package_id)
        if not package:
            return jsonify({"status": "error", "message": "Package not found"}), 404

        data = json_object()
        if data is None:
            return invalid_body()
        error = _apply_package_fields(package, data, partial=True)
        if error:
            db.session.rollback()
            return jsonify({"status": "error", "message": error}), 400

        db.session.commit()
        return jsonify({
            "status": "success",
            "message": "Package updated",
            "data": package_dict(package)
        }), 200

    except ValueError as e:
        db.session.rollback()
        return jsonify({"status": "error", "message": str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Update package {package_id} failed: {e}")
        return jsonify({"status": "error", "message": "Failed to update package"}), 500


@packages_bp.route("/<int:package_id>", methods=["DELETE"])
@token_required(StaffRole.ADMIN.value)
def delete_package(package_id, caller):
    """
    Delete a package. Past order lines keep their subtotal and lose the link.
    ---
    tags:
      - Packages
    security:
      - Bearer: []
    parameters:
      - in: path
        name: package_id
        type: integer
        required: true
    responses:
      200:
        description: Package deleted
      404:
        description: Package not found
    """
    try:
        package = db.session.get(Package, package_id)
        if not package:
            return jsonify({"status": "error", "message": "Package not found"}), 404

        images = [getattr(package, field) for field in IMAGE_FIELDS if getattr(package, field)]

        for line in package.order_lines:
            line.package_id = None
        db.session.delete(package)
        db.session.commit()

        bucket = current_app.config.get("S3_BUCKET_NAME")
        base_url = current_app.config.get("S3_BASE_URL") or ""
        for url in images:
            if bucket and base_url and url.startswith(base_url):
                s3_utils.delete_file_from_s3(url, bucket)

        return jsonify({"status": "success", "message": "Package deleted"}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Delete package {package_id} failed: {e}")
        return jsonify({"status": "error", "message": "Failed to delete package"}), 500

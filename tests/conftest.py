"""
Pytest configuration and shared fixtures for the Mangan backend tests.

Every test gets a fresh schema on an in-memory SQLite database unless
MYSQL_TEST_URL points at a dedicated test database.
"""

import pytest
import os
import sys
import json
from datetime import datetime
from flask import Flask

os.environ["FLASK_ENV"] = "testing"
os.environ["TESTING"] = "True"

from main import create_app  # noqa: E402
from mangan.config import is_production_database  # noqa: E402
from mangan.extensions import db as database  # noqa: E402
from mangan.models import (  # noqa: E402
    Base,
    Customer,
    Order,
    OrderLine,
    OrderStatus,
    Package,
    PackageCategory,
    PackageType,
    PaymentMethod,
    PaymentMethodDetail,
    StaffRole,
    StaffUser,
)
from mangan.utils import s3_utils  # noqa: E402
from mangan.utils.auth import Caller, hash_password  # noqa: E402

TEST_PASSWORD = "password123"
FAKE_IMAGE = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR4nGNgYGBgAAAABQABpfZFQAAAAABJRU5ErkJggg=="


@pytest.fixture(scope="session")
def app():
    """Create and configure a test app instance."""
    test_db_url = os.environ.get("MYSQL_TEST_URL") or "sqlite://"

    if is_production_database(test_db_url):
        print(f" DANGER: Database URL appears to be production: {test_db_url}")
        print(" Tests aborted to prevent data loss!")
        sys.exit(1)

    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": test_db_url,
            "SECRET_KEY": "test-secret-key-for-testing-only",
            "S3_BUCKET_NAME": "test-bucket",
            "S3_BASE_URL": None,
            "ENFORCE_CATALOG_PRICES": True,
        }
    )
    yield app


@pytest.fixture
def db(app: Flask):
    """Fresh tables for every test."""
    with app.app_context():
        if not app.config.get("TESTING"):
            print(" DANGER: Not in testing mode!")
            sys.exit(1)

        Base.metadata.create_all(bind=database.engine)

        yield database

        database.session.remove()
        Base.metadata.drop_all(bind=database.engine)


@pytest.fixture
def db_session(db):
    return db.session


@pytest.fixture
def client(app, db):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture(autouse=True)
def fake_image_host(monkeypatch):
    """Replace S3 uploads with predictable URLs."""
    uploaded = []

    def fake_upload(data_uri, folder):
        if not s3_utils.is_image_data_uri(data_uri):
            raise ValueError("Image must be a base64 data:image URI")
        url = f"https://cdn.test/{folder}/{len(uploaded) + 1}.png"
        uploaded.append(url)
        return url

    monkeypatch.setattr(s3_utils, "upload_base64_image", fake_upload)
    monkeypatch.setattr(s3_utils, "delete_file_from_s3", lambda url, bucket: True)
    return uploaded


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_customer(db_session):
    customer = Customer(
        name="Budi Santoso",
        email="budi@example.com",
        password_hash=hash_password(TEST_PASSWORD),
        phone="081234567890",
        address1="Jl. Merdeka No. 10, Bandung",
    )
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture
def other_customer(db_session):
    customer = Customer(
        name="Siti Aminah",
        email="siti@example.com",
        password_hash=hash_password(TEST_PASSWORD),
        phone="081298765432",
        address1="Jl. Sudirman No. 5, Jakarta",
    )
    db_session.add(customer)
    db_session.commit()
    return customer


def _staff(db_session, name, email, role):
    user = StaffUser(
        name=name, email=email, password_hash=hash_password(TEST_PASSWORD), role=role
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def sample_admin(db_session):
    return _staff(db_session, "Admin Mangan", "admin@mangan.id", StaffRole.ADMIN)


@pytest.fixture
def sample_owner(db_session):
    return _staff(db_session, "Owner Mangan", "owner@mangan.id", StaffRole.OWNER)


@pytest.fixture
def sample_courier(db_session):
    return _staff(db_session, "Kurir Mangan", "kurir@mangan.id", StaffRole.COURIER)


@pytest.fixture
def second_courier(db_session):
    return _staff(db_session, "Kurir Dua", "kurir2@mangan.id", StaffRole.COURIER)


@pytest.fixture
def sample_packages(db_session):
    """Package A (100000) and package B (50000)."""
    package_a = Package(
        name="Nasi Box Rapat Standard",
        type=PackageType.BOX,
        category=PackageCategory.MEETING,
        pax=30,
        price=100000,
        description="Nasi box dengan ayam goreng",
    )
    package_b = Package(
        name="Tumpeng Selamatan",
        type=PackageType.BUFFET,
        category=PackageCategory.MEMORIAL,
        pax=20,
        price=50000,
    )
    db_session.add_all([package_a, package_b])
    db_session.commit()
    return package_a, package_b


@pytest.fixture
def cod_method(db_session):
    method = PaymentMethod(label="COD")
    db_session.add(method)
    db_session.commit()
    return method


@pytest.fixture
def transfer_method(db_session):
    method = PaymentMethod(
        label="Transfer Bank - Bank BCA",
        details=[PaymentMethodDetail(account_number="1234567890", payee_name="PT Mangan")],
    )
    db_session.add(method)
    db_session.commit()
    return method


@pytest.fixture
def make_order(db_session, sample_customer, sample_packages, transfer_method):
    """Insert an order directly in the given status."""

    def _make(status=OrderStatus.AWAITING_CONFIRMATION, payment_proof=None, customer=None,
              tracking_code=None, ordered_at=None):
        package_a, package_b = sample_packages
        owner = customer or sample_customer
        count = db_session.query(Order).count()
        order = Order(
            customer_id=owner.id,
            payment_method_id=transfer_method.id,
            tracking_code=tracking_code or f"MNG261019{count:04d}",
            ordered_at=ordered_at or datetime.now(),
            total=150000,
            status=status,
            payment_proof=payment_proof,
            lines=[
                OrderLine(package_id=package_a.id, subtotal=100000),
                OrderLine(package_id=package_b.id, subtotal=50000),
            ],
        )
        db_session.add(order)
        db_session.commit()
        return order

    return _make


# ---------------------------------------------------------------------------
# Callers and auth headers
# ---------------------------------------------------------------------------


@pytest.fixture
def caller_for():
    """Build the service-level Caller for a Customer or StaffUser row."""

    def _caller(user):
        if isinstance(user, Customer):
            return Caller(id=user.id, kind="customer")
        return Caller(id=user.id, kind="staff", role=user.role.value)

    return _caller


def _login(client, url, email):
    response = client.post(
        url,
        data=json.dumps({"email": email, "password": TEST_PASSWORD}),
        content_type="application/json",
    )
    if response.status_code == 200:
        token = json.loads(response.data)["token"]
        return {"Authorization": f"Bearer {token}"}
    return {}


@pytest.fixture
def customer_headers(client, sample_customer):
    return _login(client, "/api/auth/login", sample_customer.email)


@pytest.fixture
def other_customer_headers(client, other_customer):
    return _login(client, "/api/auth/login", other_customer.email)


@pytest.fixture
def admin_headers(client, sample_admin):
    return _login(client, "/api/auth/staff/login", sample_admin.email)


@pytest.fixture
def owner_headers(client, sample_owner):
    return _login(client, "/api/auth/staff/login", sample_owner.email)


@pytest.fixture
def courier_headers(client, sample_courier):
    return _login(client, "/api/auth/staff/login", sample_courier.email)


@pytest.fixture
def image_uri():
    return FAKE_IMAGE

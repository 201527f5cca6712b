import pytest
import json

from mangan.models import OrderLine, Package, StaffUser


@pytest.fixture
def package_payload():
    return {
        "name": "Paket Studi Tour Hemat",
        "type": "BOX",
        "category": "FIELD_TRIP",
        "pax": 200,
        "price": 4000000,
        "description": "Nasi box ekonomis untuk rombongan besar",
    }


@pytest.mark.catalog
class TestPackageCatalog:
    """Public package browsing."""

    def test_list_packages(self, client, sample_packages):
        response = client.get('/api/packages')

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['status'] == 'success'
        assert len(data['data']) == 2

    def test_filter_by_type_and_category(self, client, sample_packages):
        package_a, _ = sample_packages

        response = client.get('/api/packages?type=box&category=MEETING')

        data = json.loads(response.data)['data']
        assert [p['id'] for p in data] == [package_a.id]

    def test_search_is_case_insensitive(self, client, sample_packages):
        _, package_b = sample_packages

        response = client.get('/api/packages?search=TUMPENG')

        data = json.loads(response.data)['data']
        assert [p['id'] for p in data] == [package_b.id]

    def test_unknown_category(self, client, sample_packages):
        response = client.get('/api/packages?category=PICNIC')

        assert response.status_code == 400

    def test_get_package(self, client, sample_packages):
        package_a, _ = sample_packages

        response = client.get(f'/api/packages/{package_a.id}')

        assert response.status_code == 200
        data = json.loads(response.data)['data']
        assert data['price'] == 100000
        assert data['images'] == []

    def test_get_missing_package(self, client):
        response = client.get('/api/packages/999')

        assert response.status_code == 404


@pytest.mark.catalog
class TestPackageAdmin:
    """Package management by admins."""

    def test_create_package_with_images(self, client, admin_headers, package_payload, image_uri):
        package_payload["images"] = [image_uri, "https://example.com/already-hosted.jpg"]

        response = client.post(
            '/api/packages',
            data=json.dumps(package_payload),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 201
        data = json.loads(response.data)['data']
        assert data['category'] == 'FIELD_TRIP'
        assert len(data['images']) == 2
        assert data['images'][0].startswith("https://cdn.test/mangan/packages/")
        assert data['images'][1] == "https://example.com/already-hosted.jpg"

    @pytest.mark.parametrize("field,value", [
        ("name", "A"),
        ("type", "PICNIC"),
        ("category", "FUNERAL"),
        ("pax", 0),
        ("price", 999),
        ("price", "mahal"),
    ])
    def test_create_package_validation(self, client, admin_headers, package_payload, field, value):
        package_payload[field] = value

        response = client.post(
            '/api/packages',
            data=json.dumps(package_payload),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 400

    def test_too_many_images(self, client, admin_headers, package_payload):
        package_payload["images"] = ["https://example.com/1.jpg"] * 4

        response = client.post(
            '/api/packages',
            data=json.dumps(package_payload),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 400

    def test_create_package_body_must_be_object(self, client, admin_headers, package_payload):
        response = client.post(
            '/api/packages',
            data=json.dumps([package_payload]),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 400
        assert json.loads(response.data)['message'] == "Request body must be a JSON object"

    def test_update_package_price(self, client, admin_headers, sample_packages):
        package_a, _ = sample_packages

        response = client.put(
            f'/api/packages/{package_a.id}',
            data=json.dumps({"price": 125000}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 200
        assert json.loads(response.data)['data']['price'] == 125000

    def test_invalid_update_leaves_package_unchanged(self, client, admin_headers, sample_packages, db_session):
        package_a, _ = sample_packages

        response = client.put(
            f'/api/packages/{package_a.id}',
            data=json.dumps({"name": "Paket Baru", "pax": -1}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 400
        assert db_session.get(Package, package_a.id).name == "Nasi Box Rapat Standard"

    def test_delete_package_keeps_order_history(self, client, admin_headers, make_order,
                                                sample_packages, db_session):
        package_a, _ = sample_packages
        package_id = package_a.id
        order = make_order()

        response = client.delete(f'/api/packages/{package_id}', headers=admin_headers)

        assert response.status_code == 200
        assert db_session.get(Package, package_id) is None
        lines = db_session.query(OrderLine).filter_by(order_id=order.id).all()
        assert len(lines) == 2
        assert sorted(line.package_id is None for line in lines) == [False, True]

    def test_customer_cannot_create_package(self, client, customer_headers, package_payload):
        response = client.post(
            '/api/packages',
            data=json.dumps(package_payload),
            content_type='application/json',
            headers=customer_headers
        )

        assert response.status_code == 403


@pytest.mark.auth
class TestStaffAdmin:
    """Staff account management."""

    def test_create_courier(self, client, admin_headers):
        response = client.post(
            '/api/admin/users',
            data=json.dumps({
                "name": "Kurir Baru",
                "email": "kurir.baru@mangan.id",
                "password": "kurir123",
                "role": "courier"
            }),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 201
        assert json.loads(response.data)['data']['role'] == 'COURIER'

    def test_staff_name_limit(self, client, admin_headers):
        response = client.post(
            '/api/admin/users',
            data=json.dumps({
                "name": "N" * 31,
                "email": "long@mangan.id",
                "password": "kurir123",
                "role": "COURIER"
            }),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 400

    def test_duplicate_staff_email(self, client, admin_headers, sample_courier):
        response = client.post(
            '/api/admin/users',
            data=json.dumps({
                "name": "Kurir Lain",
                "email": sample_courier.email,
                "password": "kurir123",
                "role": "COURIER"
            }),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 400

    def test_list_couriers(self, client, admin_headers, sample_courier, sample_owner):
        response = client.get('/api/admin/users/couriers', headers=admin_headers)

        assert response.status_code == 200
        data = json.loads(response.data)['data']
        assert [c['id'] for c in data] == [sample_courier.id]
        assert data[0]['active_deliveries'] == 0

    def test_list_customers_with_order_count(self, client, owner_headers, make_order, sample_customer):
        make_order()
        make_order()

        response = client.get('/api/admin/users/customers', headers=owner_headers)

        assert response.status_code == 200
        data = json.loads(response.data)['data']
        assert data[0]['id'] == sample_customer.id
        assert data[0]['order_count'] == 2

    def test_admin_cannot_delete_self(self, client, admin_headers, sample_admin):
        response = client.delete(f'/api/admin/users/{sample_admin.id}', headers=admin_headers)

        assert response.status_code == 409

    def test_delete_staff(self, client, admin_headers, sample_owner, db_session):
        owner_id = sample_owner.id
        response = client.delete(f'/api/admin/users/{owner_id}', headers=admin_headers)

        assert response.status_code == 200
        assert db_session.get(StaffUser, owner_id) is None

    def test_owner_cannot_manage_staff(self, client, owner_headers):
        response = client.get('/api/admin/users', headers=owner_headers)

        assert response.status_code == 403

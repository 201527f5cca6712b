import pytest
import json
from sqlalchemy import func, select

from mangan.models import Delivery, DeliveryStatus, Order, OrderStatus
from mangan.services import order_status
from mangan.services.dashboard_service import get_courier_deliveries, get_courier_stats
from mangan.services.order_service import create_order
from mangan.services.order_status import (
    VALID_TRANSITIONS,
    assign_courier,
    can_transition,
    cancel_order,
    mark_delivered,
    transition_order_status,
)
from mangan.utils import s3_utils


@pytest.mark.lifecycle
class TestTransitionTable:

    def test_terminal_states_have_no_exits(self):
        assert VALID_TRANSITIONS[OrderStatus.DELIVERED] == set()
        assert VALID_TRANSITIONS[OrderStatus.CANCELLED] == set()

    @pytest.mark.parametrize("current,target,allowed", [
        (OrderStatus.AWAITING_CONFIRMATION, OrderStatus.PROCESSING, True),
        (OrderStatus.AWAITING_CONFIRMATION, OrderStatus.SHIPPING, False),
        (OrderStatus.PROCESSING, OrderStatus.AWAITING_COURIER, True),
        (OrderStatus.AWAITING_COURIER, OrderStatus.SHIPPING, True),
        (OrderStatus.SHIPPING, OrderStatus.DELIVERED, True),
        (OrderStatus.SHIPPING, OrderStatus.PROCESSING, False),
        (OrderStatus.DELIVERED, OrderStatus.CANCELLED, False),
        (OrderStatus.CANCELLED, OrderStatus.PROCESSING, False),
    ])
    def test_can_transition(self, current, target, allowed):
        assert can_transition(current, target) is allowed

    def test_every_status_is_covered(self):
        assert set(VALID_TRANSITIONS) == set(OrderStatus)


@pytest.mark.lifecycle
class TestTransitionOrderStatus:

    def test_admin_confirms_order(self, db, make_order, sample_admin, caller_for):
        order = make_order()

        result = transition_order_status(caller_for(sample_admin), order.id, "PROCESSING")

        assert result['success'] is True
        assert result['previous_status'] == "AWAITING_CONFIRMATION"
        assert result['status'] == "PROCESSING"

    def test_invalid_jump_rejected(self, db, make_order, sample_admin, caller_for):
        order = make_order(status=OrderStatus.CANCELLED)

        result = transition_order_status(caller_for(sample_admin), order.id, "PROCESSING")

        assert result['error_type'] == 'conflict'
        assert db.session.get(Order, order.id).status == OrderStatus.CANCELLED

    @pytest.mark.parametrize("target", ["SHIPPING", "DELIVERED"])
    def test_delivery_driven_statuses_need_their_operations(self, db, make_order, sample_admin,
                                                            caller_for, target):
        order = make_order(status=OrderStatus.PROCESSING)

        result = transition_order_status(caller_for(sample_admin), order.id, target)

        assert result['error_type'] == 'validation'
        assert db.session.get(Order, order.id).status == OrderStatus.PROCESSING

    def test_unknown_status(self, db, make_order, sample_admin, caller_for):
        order = make_order()

        result = transition_order_status(caller_for(sample_admin), order.id, "LOST")

        assert result['error_type'] == 'validation'

    @pytest.mark.parametrize("user_fixture", ["sample_owner", "sample_courier", "sample_customer"])
    def test_only_admin_changes_status(self, request, db, make_order, caller_for, user_fixture):
        order = make_order()
        user = request.getfixturevalue(user_fixture)

        result = transition_order_status(caller_for(user), order.id, "PROCESSING")

        assert result['error_type'] == 'forbidden'


@pytest.mark.lifecycle
class TestCourierAndDelivery:

    def test_full_lifecycle(self, db, sample_customer, sample_packages, cod_method,
                            sample_admin, sample_courier, caller_for):
        package_a, package_b = sample_packages
        admin = caller_for(sample_admin)

        created = create_order(
            caller_for(sample_customer),
            [{"package_id": package_a.id, "subtotal": 100000},
             {"package_id": package_b.id, "subtotal": 50000}],
            "COD",
        )
        order_id = created['order_id']
        assert db.session.get(Order, order_id).status == OrderStatus.AWAITING_CONFIRMATION

        assert transition_order_status(admin, order_id, "PROCESSING")['success'] is True

        assigned = assign_courier(admin, order_id, sample_courier.id)
        assert assigned['success'] is True
        order = db.session.get(Order, order_id)
        assert order.status == OrderStatus.SHIPPING
        assert order.delivery.status == DeliveryStatus.SHIPPING
        assert order.delivery.courier_id == sample_courier.id

        delivered = mark_delivered(caller_for(sample_courier), assigned['data']['id'])
        assert delivered['success'] is True

        order = db.session.get(Order, order_id)
        assert order.status == OrderStatus.DELIVERED
        assert order.delivery.status == DeliveryStatus.DELIVERED
        assert order.delivery.arrived_at is not None

    def test_assign_from_awaiting_courier(self, db, make_order, sample_admin, sample_courier, caller_for):
        order = make_order(status=OrderStatus.AWAITING_COURIER)

        result = assign_courier(caller_for(sample_admin), order.id, sample_courier.id)

        assert result['success'] is True
        assert result['data']['courier_name'] == sample_courier.name

    def test_duplicate_assignment(self, db, make_order, sample_admin, sample_courier,
                                  second_courier, caller_for):
        order = make_order(status=OrderStatus.PROCESSING)
        admin = caller_for(sample_admin)
        first = assign_courier(admin, order.id, sample_courier.id)

        second = assign_courier(admin, order.id, second_courier.id)

        assert second['success'] is False
        assert second['error_type'] == 'conflict'
        assert "delivery already exists" in second['error'].lower()

        deliveries = db.session.scalars(select(Delivery).where(Delivery.order_id == order.id)).all()
        assert len(deliveries) == 1
        assert deliveries[0].id == first['data']['id']
        assert deliveries[0].courier_id == sample_courier.id
        assert deliveries[0].status == DeliveryStatus.SHIPPING

    @pytest.mark.parametrize("status", [
        OrderStatus.AWAITING_CONFIRMATION,
        OrderStatus.CANCELLED,
    ])
    def test_assign_requires_ready_order(self, db, make_order, sample_admin, sample_courier,
                                         caller_for, status):
        order = make_order(status=status)

        result = assign_courier(caller_for(sample_admin), order.id, sample_courier.id)

        assert result['error_type'] == 'conflict'
        assert db.session.scalar(select(func.count(Delivery.id))) == 0

    def test_assignee_must_be_courier(self, db, make_order, sample_admin, sample_owner, caller_for):
        order = make_order(status=OrderStatus.PROCESSING)

        result = assign_courier(caller_for(sample_admin), order.id, sample_owner.id)

        assert result['error_type'] == 'not_found'

    def test_other_courier_cannot_confirm(self, db, make_order, sample_admin, sample_courier,
                                          second_courier, caller_for):
        order = make_order(status=OrderStatus.PROCESSING)
        assigned = assign_courier(caller_for(sample_admin), order.id, sample_courier.id)

        result = mark_delivered(caller_for(second_courier), assigned['data']['id'])

        assert result['error_type'] == 'forbidden'
        assert db.session.get(Order, order.id).status == OrderStatus.SHIPPING

    def test_cannot_deliver_twice(self, db, make_order, sample_admin, sample_courier, caller_for):
        order = make_order(status=OrderStatus.PROCESSING)
        assigned = assign_courier(caller_for(sample_admin), order.id, sample_courier.id)
        courier = caller_for(sample_courier)
        mark_delivered(courier, assigned['data']['id'])

        result = mark_delivered(courier, assigned['data']['id'])

        assert result['error_type'] == 'conflict'

    def test_delivery_proof_upload(self, db, make_order, sample_admin, sample_courier,
                                   caller_for, image_uri):
        order = make_order(status=OrderStatus.PROCESSING)
        assigned = assign_courier(caller_for(sample_admin), order.id, sample_courier.id)

        result = mark_delivered(caller_for(sample_courier), assigned['data']['id'], image_uri)

        assert result['success'] is True
        assert result['data']['proof_image'].startswith("https://cdn.test/mangan/deliveries/")

    def test_failed_confirmation_discards_proof(self, db, make_order, sample_admin, sample_courier,
                                                caller_for, image_uri, fake_image_host, monkeypatch):
        order = make_order(status=OrderStatus.PROCESSING)
        assigned = assign_courier(caller_for(sample_admin), order.id, sample_courier.id)
        deleted = []

        class BrokenClock:
            @staticmethod
            def now():
                raise RuntimeError("clock unavailable")

        monkeypatch.setattr(order_status, "datetime", BrokenClock)
        monkeypatch.setattr(s3_utils, "delete_file_from_s3",
                            lambda url, bucket: deleted.append((url, bucket)) or True)

        result = mark_delivered(caller_for(sample_courier), assigned['data']['id'], image_uri)

        assert result['error_type'] == 'internal'
        assert deleted == [(fake_image_host[0], "test-bucket")]
        delivery = db.session.get(Delivery, assigned['data']['id'])
        assert delivery.status == DeliveryStatus.SHIPPING
        assert delivery.proof_image is None

    def test_shipping_and_delivered_orders_are_consistent(self, db, make_order, sample_admin,
                                                          sample_courier, caller_for):
        admin = caller_for(sample_admin)
        for _ in range(3):
            order = make_order(status=OrderStatus.PROCESSING)
            assign_courier(admin, order.id, sample_courier.id)
        first_delivery = db.session.scalars(select(Delivery).order_by(Delivery.id)).first()
        mark_delivered(caller_for(sample_courier), first_delivery.id)

        for order in db.session.scalars(select(Order)).all():
            if order.status == OrderStatus.SHIPPING:
                assert order.delivery is not None
                assert order.delivery.status == DeliveryStatus.SHIPPING
            if order.status == OrderStatus.DELIVERED:
                assert order.delivery.status == DeliveryStatus.DELIVERED
                assert order.delivery.arrived_at is not None


@pytest.mark.lifecycle
class TestCancellation:

    @pytest.mark.parametrize("status", list(OrderStatus))
    @pytest.mark.parametrize("has_proof", [False, True])
    def test_customer_cancellation_guard(self, db, make_order, sample_customer, caller_for,
                                         status, has_proof):
        order = make_order(
            status=status,
            payment_proof="https://cdn.test/proof.png" if has_proof else None,
        )
        order_id = order.id

        result = cancel_order(caller_for(sample_customer), order_id)

        should_succeed = status == OrderStatus.AWAITING_CONFIRMATION and not has_proof
        assert result['success'] is should_succeed
        if should_succeed:
            assert result['deleted'] is True
            assert db.session.get(Order, order_id) is None
        else:
            assert result['error_type'] == 'conflict'
            assert db.session.get(Order, order_id).status == status

    def test_customer_cannot_cancel_others_order(self, db, make_order, other_customer, caller_for):
        order = make_order()

        result = cancel_order(caller_for(other_customer), order.id)

        assert result['error_type'] == 'forbidden'

    def test_admin_cancel_keeps_delivery_history(self, db, make_order, sample_admin,
                                                 sample_courier, caller_for):
        order = make_order(status=OrderStatus.PROCESSING)
        admin = caller_for(sample_admin)
        assign_courier(admin, order.id, sample_courier.id)

        result = cancel_order(admin, order.id)

        assert result['success'] is True
        assert result['deleted'] is False
        order = db.session.get(Order, order.id)
        assert order.status == OrderStatus.CANCELLED
        assert order.delivery is not None

    def test_admin_cancel_clears_courier_queue(self, db, make_order, sample_admin,
                                               sample_courier, caller_for):
        order = make_order(status=OrderStatus.PROCESSING)
        admin = caller_for(sample_admin)
        courier = caller_for(sample_courier)
        assign_courier(admin, order.id, sample_courier.id)

        cancel_order(admin, order.id)

        stats = get_courier_stats(courier)['data']
        assert stats == {"total": 1, "shipping": 0, "delivered": 0}
        active = get_courier_deliveries(courier, active_only=True)['data']
        assert active == []
        assert len(get_courier_deliveries(courier)['data']) == 1

    def test_admin_cannot_cancel_delivered(self, db, make_order, sample_admin, caller_for):
        order = make_order(status=OrderStatus.DELIVERED)

        result = cancel_order(caller_for(sample_admin), order.id)

        assert result['error_type'] == 'conflict'

    def test_courier_cannot_cancel(self, db, make_order, sample_courier, caller_for):
        order = make_order()

        result = cancel_order(caller_for(sample_courier), order.id)

        assert result['error_type'] == 'forbidden'


@pytest.mark.lifecycle
class TestLifecycleRoutes:

    def test_status_courier_and_delivery_endpoints(self, client, admin_headers, courier_headers,
                                                   make_order, sample_courier):
        order = make_order()

        response = client.patch(
            f'/api/orders/{order.id}/status',
            data=json.dumps({"status": "PROCESSING"}),
            content_type='application/json',
            headers=admin_headers
        )
        assert response.status_code == 200

        response = client.get('/api/orders/awaiting-courier', headers=admin_headers)
        assert [o['id'] for o in json.loads(response.data)['data']] == [order.id]

        response = client.post(
            f'/api/orders/{order.id}/courier',
            data=json.dumps({"courier_id": sample_courier.id}),
            content_type='application/json',
            headers=admin_headers
        )
        assert response.status_code == 201
        delivery_id = json.loads(response.data)['data']['id']

        response = client.get('/api/deliveries/mine?active=true', headers=courier_headers)
        assert [d['id'] for d in json.loads(response.data)['data']] == [delivery_id]

        response = client.post(
            f'/api/deliveries/{delivery_id}/delivered',
            data=json.dumps({}),
            content_type='application/json',
            headers=courier_headers
        )
        assert response.status_code == 200
        assert json.loads(response.data)['data']['status'] == 'DELIVERED'

    def test_second_assignment_returns_409(self, client, admin_headers, make_order,
                                           sample_courier, second_courier):
        order = make_order(status=OrderStatus.PROCESSING)
        client.post(
            f'/api/orders/{order.id}/courier',
            data=json.dumps({"courier_id": sample_courier.id}),
            content_type='application/json',
            headers=admin_headers
        )

        response = client.post(
            f'/api/orders/{order.id}/courier',
            data=json.dumps({"courier_id": second_courier.id}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 409
        assert json.loads(response.data)['message'] == "Delivery already exists for this order"

    def test_courier_id_must_be_integer(self, client, admin_headers, make_order):
        order = make_order(status=OrderStatus.PROCESSING)

        response = client.post(
            f'/api/orders/{order.id}/courier',
            data=json.dumps({"courier_id": "abc"}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 400

    def test_customer_cancel_endpoint(self, client, customer_headers, make_order):
        order = make_order()

        response = client.post(f'/api/orders/{order.id}/cancel', headers=customer_headers)

        assert response.status_code == 200
        assert json.loads(response.data)['deleted'] is True

    def test_customer_cancel_after_proof_returns_409(self, client, customer_headers, make_order):
        order = make_order(payment_proof="https://cdn.test/proof.png")

        response = client.post(f'/api/orders/{order.id}/cancel', headers=customer_headers)

        assert response.status_code == 409
        assert "awaiting admin confirmation" in json.loads(response.data)['message']

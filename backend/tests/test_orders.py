"""
Order scheduling tests.

Verifies:
- Price snapshot on placement and on milk_id change
- Slot invariant on place and update, including the unique-constraint path
- Unknown milk option creates nothing
- Ownership: other users' deliveries are not found
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from milk_delivery.extensions import db
from milk_delivery.models import Delivery, DeliveryTime
from milk_delivery.services import order_service
from milk_delivery.services.order_service import InvalidOptionError, SlotAlreadyBookedError
from milk_delivery.validation import NotFoundError, ValidationError

from conftest import make_user


def _order(user, rate, when="morning", on=date(2024, 6, 1)):
    return order_service.place_order(
        user_id=user.id,
        milk_id=rate.id,
        delivery_time=when,
        delivery_date=on,
    )


class TestPlaceOrder:

    def test_snapshots_rate(self, subscriber, rate_500):
        delivery = _order(subscriber, rate_500)

        assert delivery.quantity == 500
        assert delivery.total_price == Decimal("25.00")
        assert delivery.delivery_time == DeliveryTime.MORNING
        assert delivery.delivery_date == date(2024, 6, 1)

    def test_accepts_iso_strings(self, subscriber, rate_500):
        delivery = order_service.place_order(
            user_id=subscriber.id,
            milk_id=rate_500.id,
            delivery_time="evening",
            delivery_date="2024-06-02",
        )
        assert delivery.delivery_time == DeliveryTime.EVENING
        assert delivery.delivery_date == date(2024, 6, 2)

    def test_second_order_same_slot_rejected(self, subscriber, rate_500, rate_1000):
        _order(subscriber, rate_500)

        with pytest.raises(SlotAlreadyBookedError):
            _order(subscriber, rate_1000)

        assert db.session.query(Delivery).count() == 1

    def test_other_time_or_user_is_a_different_slot(self, subscriber, other_subscriber, rate_500):
        _order(subscriber, rate_500, when="morning")
        _order(subscriber, rate_500, when="evening")
        _order(other_subscriber, rate_500, when="morning")

        assert db.session.query(Delivery).count() == 3

    def test_unique_constraint_catches_race(self, subscriber, rate_500, monkeypatch):
        # Both requests pass the pre-check, as two concurrent requests would
        monkeypatch.setattr(order_service, "_find_slot", lambda *args, **kwargs: None)

        _order(subscriber, rate_500)
        with pytest.raises(SlotAlreadyBookedError):
            _order(subscriber, rate_500)

        assert db.session.query(Delivery).count() == 1

    def test_slot_constraint_exists_in_schema(self, subscriber, rate_500):
        for _ in range(2):
            db.session.add(Delivery(
                user_id=subscriber.id,
                milk_id=rate_500.id,
                quantity=500,
                total_price=Decimal("25.00"),
                delivery_time=DeliveryTime.MORNING,
                delivery_date=date(2024, 6, 1),
            ))
        with pytest.raises(IntegrityError):
            db.session.commit()
        db.session.rollback()

    def test_unknown_milk_option(self, subscriber):
        with pytest.raises(InvalidOptionError):
            order_service.place_order(
                user_id=subscriber.id,
                milk_id=999,
                delivery_time="morning",
                delivery_date=date(2024, 6, 1),
            )
        assert db.session.query(Delivery).count() == 0

    def test_oversized_milk_id_is_invalid_option(self, subscriber):
        with pytest.raises(InvalidOptionError):
            order_service.place_order(
                user_id=subscriber.id,
                milk_id=10**30,
                delivery_time="morning",
                delivery_date=date(2024, 6, 1),
            )
        assert db.session.query(Delivery).count() == 0

    @pytest.mark.parametrize("when,on", [("noon", "2024-06-01"), ("morning", "2024-02-30"), ("morning", "soon")])
    def test_malformed_slot(self, subscriber, rate_500, when, on):
        with pytest.raises(ValidationError):
            order_service.place_order(user_id=subscriber.id, milk_id=rate_500.id, delivery_time=when, delivery_date=on)


class TestUpdateAndCancel:

    def test_change_milk_resnapshots(self, subscriber, rate_500, rate_1000):
        delivery = _order(subscriber, rate_500)

        updated = order_service.update_order(user_id=subscriber.id, delivery_id=delivery.id, milk_id=rate_1000.id)

        assert updated.milk_id == rate_1000.id
        assert updated.quantity == 1000
        assert updated.total_price == Decimal("50.00")

    def test_move_to_free_slot(self, subscriber, rate_500):
        delivery = _order(subscriber, rate_500)

        updated = order_service.update_order(
            user_id=subscriber.id,
            delivery_id=delivery.id,
            delivery_time="evening",
            delivery_date="2024-06-03",
        )
        assert updated.delivery_time == DeliveryTime.EVENING
        assert updated.delivery_date == date(2024, 6, 3)
        assert updated.total_price == Decimal("25.00")

    def test_move_onto_own_booked_slot_rejected(self, subscriber, rate_500):
        _order(subscriber, rate_500, when="morning")
        evening = _order(subscriber, rate_500, when="evening")

        with pytest.raises(SlotAlreadyBookedError):
            order_service.update_order(user_id=subscriber.id, delivery_id=evening.id, delivery_time="morning")

        db.session.expire_all()
        assert db.session.get(Delivery, evening.id).delivery_time == DeliveryTime.EVENING

    def test_unique_constraint_catches_race_on_update(self, subscriber, rate_500, monkeypatch):
        _order(subscriber, rate_500, when="morning")
        evening = _order(subscriber, rate_500, when="evening")
        evening_id = evening.id

        # Moving onto the morning slot passes the pre-check, as in a concurrent request
        monkeypatch.setattr(order_service, "_find_slot", lambda *args, **kwargs: None)

        with pytest.raises(SlotAlreadyBookedError):
            order_service.update_order(user_id=subscriber.id, delivery_id=evening_id, delivery_time="morning")

        db.session.expire_all()
        assert db.session.get(Delivery, evening_id).delivery_time == DeliveryTime.EVENING
        assert db.session.query(Delivery).count() == 2

    def test_update_with_unknown_milk(self, subscriber, rate_500):
        delivery = _order(subscriber, rate_500)
        with pytest.raises(InvalidOptionError):
            order_service.update_order(user_id=subscriber.id, delivery_id=delivery.id, milk_id=12345)

    def test_update_someone_elses_delivery(self, subscriber, other_subscriber, rate_500):
        delivery = _order(other_subscriber, rate_500)
        with pytest.raises(NotFoundError):
            order_service.update_order(user_id=subscriber.id, delivery_id=delivery.id, delivery_time="evening")

    def test_cancel_own_delivery(self, subscriber, rate_500):
        delivery = _order(subscriber, rate_500)
        order_service.cancel_order(user_id=subscriber.id, delivery_id=delivery.id)
        assert db.session.query(Delivery).count() == 0

    def test_cancel_someone_elses_delivery(self, subscriber, other_subscriber, rate_500):
        delivery = _order(other_subscriber, rate_500)

        with pytest.raises(NotFoundError):
            order_service.cancel_order(user_id=subscriber.id, delivery_id=delivery.id)

        assert db.session.query(Delivery).count() == 1


class TestHistory:

    def test_month_filter_and_ordering(self, subscriber, rate_500):
        _order(subscriber, rate_500, on=date(2024, 5, 31))
        _order(subscriber, rate_500, on=date(2024, 6, 1))
        _order(subscriber, rate_500, on=date(2024, 6, 30))
        _order(subscriber, rate_500, on=date(2024, 7, 1))

        june = order_service.list_user_deliveries(subscriber.id, 6, 2024)
        assert [d.delivery_date for d in june] == [date(2024, 6, 30), date(2024, 6, 1)]
        assert len(order_service.list_user_deliveries(subscriber.id)) == 4

    def test_morning_listed_before_evening(self, subscriber, rate_500):
        _order(subscriber, rate_500, when="evening", on=date(2024, 6, 1))
        _order(subscriber, rate_500, when="morning", on=date(2024, 6, 1))

        slots = [d.delivery_time for d in order_service.list_user_deliveries(subscriber.id)]
        assert slots == [DeliveryTime.MORNING, DeliveryTime.EVENING]

    def test_monthly_stats(self, subscriber, rate_500, rate_1000):
        _order(subscriber, rate_500, when="morning", on=date(2024, 6, 1))
        _order(subscriber, rate_1000, when="evening", on=date(2024, 6, 1))
        _order(subscriber, rate_1000, on=date(2024, 7, 1))

        stats = order_service.user_monthly_stats(subscriber.id, 6, 2024)
        assert stats["deliveryCount"] == 2
        assert stats["totalMilk"] == 1500
        assert stats["totalAmount"] == Decimal("75.00")


class TestOrderApi:

    def test_place_order(self, client, subscriber_headers, rate_500):
        resp = client.post(
            "/api/deliveries/order",
            json={"milk_id": rate_500.id, "delivery_time": "morning", "delivery_date": "2024-06-01"},
            headers=subscriber_headers,
        )
        assert resp.status_code == 201
        delivery = resp.get_json()["delivery"]
        assert delivery["total_price"] == 25.0
        assert delivery["delivery_date"] == "2024-06-01"
        assert delivery["milk_rate"] == {"quantity": 500, "price": 25.0}

    def test_duplicate_slot_is_400(self, client, subscriber_headers, rate_500):
        payload = {"milk_id": rate_500.id, "delivery_time": "morning", "delivery_date": "2024-06-01"}
        assert client.post("/api/deliveries/order", json=payload, headers=subscriber_headers).status_code == 201

        resp = client.post("/api/deliveries/order", json=payload, headers=subscriber_headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Delivery already scheduled for this date and time"

    def test_unknown_option_is_400(self, client, subscriber_headers):
        resp = client.post(
            "/api/deliveries/order",
            json={"milk_id": 77, "delivery_time": "morning", "delivery_date": "2024-06-01"},
            headers=subscriber_headers,
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Invalid milk option"
        assert db.session.query(Delivery).count() == 0

    @pytest.mark.parametrize(
        "payload",
        [
            {"delivery_time": "morning", "delivery_date": "2024-06-01"},
            {"milk_id": 1, "delivery_time": "afternoon", "delivery_date": "2024-06-01"},
            {"milk_id": 1, "delivery_time": "morning", "delivery_date": "06/01/2024"},
            {"milk_id": "one", "delivery_time": "morning", "delivery_date": "2024-06-01"},
            {"milk_id": 10**30, "delivery_time": "morning", "delivery_date": "2024-06-01"},
            {"milk_id": str(10**30), "delivery_time": "morning", "delivery_date": "2024-06-01"},
        ],
    )
    def test_malformed_order_is_400(self, client, subscriber_headers, rate_500, payload):
        resp = client.post("/api/deliveries/order", json=payload, headers=subscriber_headers)
        assert resp.status_code == 400

    def test_update_order(self, client, subscriber, subscriber_headers, rate_500, rate_1000):
        delivery = _order(subscriber, rate_500)

        resp = client.put(
            f"/api/deliveries/{delivery.id}",
            json={"milk_id": rate_1000.id},
            headers=subscriber_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["delivery"]["total_price"] == 50.0

    def test_cancel_foreign_delivery_is_404(self, client, other_subscriber, subscriber_headers, rate_500):
        delivery = _order(other_subscriber, rate_500)

        resp = client.delete(f"/api/deliveries/{delivery.id}", headers=subscriber_headers)
        assert resp.status_code == 404
        assert db.session.query(Delivery).count() == 1

    def test_cancel_own_delivery(self, client, subscriber, subscriber_headers, rate_500):
        delivery = _order(subscriber, rate_500)

        resp = client.delete(f"/api/deliveries/{delivery.id}", headers=subscriber_headers)
        assert resp.status_code == 200
        assert db.session.query(Delivery).count() == 0

    def test_history_endpoints(self, client, subscriber, subscriber_headers, rate_500):
        _order(subscriber, rate_500, on=date(2024, 6, 1))
        _order(subscriber, rate_500, on=date(2024, 7, 1))

        resp = client.get("/api/users/deliveries?month=6&year=2024", headers=subscriber_headers)
        assert resp.status_code == 200
        assert len(resp.get_json()["deliveries"]) == 1

        stats = client.get("/api/users/stats?month=6&year=2024", headers=subscriber_headers).get_json()
        assert stats == {"month": 6, "year": 2024, "totalMilk": 500, "totalAmount": 25.0, "deliveryCount": 1}

    def test_history_is_private(self, client, subscriber_headers, rate_500):
        stranger = make_user("stranger@example.com")
        _order(stranger, rate_500)

        resp = client.get("/api/users/deliveries", headers=subscriber_headers)
        assert resp.get_json()["deliveries"] == []

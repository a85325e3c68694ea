"""
Requests racing on the same rows. Each worker gets its own TestClient and
waits on a barrier so the requests overlap.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

from fastapi.testclient import TestClient
from sqlmodel import Session, select

from stivans.models.notifications import Notification
from stivans.models.order_event import OrderTimelineEvent
from stivans.models.payment import Payment
from tests.conftest import CALLBACK_TOKEN, load_order


def run_together(app, requests):
    barrier = threading.Barrier(len(requests))

    def worker(request):
        method, url, kwargs = request
        client = TestClient(app)
        barrier.wait()
        return client.request(method, url, **kwargs)

    with ThreadPoolExecutor(max_workers=len(requests)) as pool:
        return list(pool.map(worker, requests))


def test_concurrent_tracking_requests_get_distinct_numbers(app, admin_headers, place_order):
    order_ids = [place_order()["order_id"] for _ in range(6)]

    responses = run_together(
        app,
        [
            ("POST", "/admin/orders/tracking", {
                "json": {"orderId": order_id, "carrier": "LBC"},
                "headers": admin_headers,
            })
            for order_id in order_ids
        ],
    )

    assert {r.status_code for r in responses} <= {200, 409}
    numbers = [r.json()["trackingNumber"] for r in responses if r.status_code == 200]
    assert len(numbers) == len(set(numbers))
    assert all(n.startswith("LBC-") for n in numbers)


def test_concurrent_tracking_requests_on_one_order_agree(app, admin_headers, place_order, engine):
    order_id = place_order()["order_id"]

    responses = run_together(
        app,
        [
            ("POST", "/admin/orders/tracking", {
                "json": {"orderId": order_id, "carrier": "LBC"},
                "headers": admin_headers,
            })
        ] * 4,
    )

    stored = load_order(engine, order_id).tracking_number
    assert {r.status_code for r in responses} <= {200, 409}
    assert {r.json()["trackingNumber"] for r in responses if r.status_code == 200} == {stored}


def test_concurrent_paid_callbacks_apply_once(app, place_order, engine):
    placed = place_order()
    body = {
        "event": "invoice.paid",
        "data": {"id": "inv_1", "external_id": placed["external_id"], "status": "PAID"},
    }

    responses = run_together(
        app,
        [
            ("POST", "/payments/xendit/webhook", {
                "json": body,
                "headers": {"x-callback-token": CALLBACK_TOKEN},
            })
        ] * 4,
    )

    assert [r.status_code for r in responses] == [200] * 4
    assert load_order(engine, placed["order_id"]).status == "paid"

    with Session(engine) as session:
        paid_events = session.exec(
            select(OrderTimelineEvent).where(
                OrderTimelineEvent.order_id == placed["order_id"],
                OrderTimelineEvent.event_type == "payment_paid",
            )
        ).all()
        success_notes = session.exec(
            select(Notification).where(
                Notification.order_id == placed["order_id"],
                Notification.type == "payment_success",
            )
        ).all()
        payments = session.exec(select(Payment)).all()

    assert len(paid_events) == 1
    assert sorted(n.recipient_role for n in success_notes) == ["admin", "customer"]
    assert len(payments) == 1


def test_paid_and_expired_racing_leave_one_outcome(app, place_order, engine):
    placed = place_order()

    def callback(status):
        return ("POST", "/payments/xendit/webhook", {
            "json": {"data": {"external_id": placed["external_id"], "status": status}},
            "headers": {"x-callback-token": CALLBACK_TOKEN},
        })

    responses = run_together(app, [callback("PAID"), callback("EXPIRED")])

    assert [r.status_code for r in responses] == [200, 200]
    order = load_order(engine, placed["order_id"])
    assert order.status in ("paid", "expired")
    assert (order.paid_at is not None) == (order.status == "paid")

    with Session(engine) as session:
        payments = session.exec(select(Payment)).all()
    assert [p.provider_status for p in payments] == [order.status.upper()]

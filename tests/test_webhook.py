from decimal import Decimal

from sqlmodel import Session, select

from stivans.models.cadaver_details import CadaverDetails
from stivans.models.notifications import Notification
from stivans.models.order_event import OrderTimelineEvent
from stivans.models.payment import Payment
from tests.conftest import CUSTOMER_ID, count_rows, load_order


def paid_body(external_id, status="PAID"):
    return {
        "event": "invoice.paid",
        "data": {"id": "inv_1", "external_id": external_id, "status": status},
    }


def test_paid_callback_marks_order_paid(place_order, send_callback, engine):
    placed = place_order()

    res = send_callback(paid_body(placed["external_id"]))

    assert res.status_code == 200
    assert res.json() == {"ok": True}
    order = load_order(engine, placed["order_id"])
    assert order.status == "paid"
    assert order.paid_at is not None


def test_replayed_paid_callback_is_a_no_op(place_order, send_callback, engine):
    with Session(engine) as session:
        details = CadaverDetails(
            user_id=CUSTOMER_ID,
            full_name="Juan Dela Cruz",
            death_certificate_url="https://files.stivans.test/cert.pdf",
        )
        session.add(details)
        session.commit()
        details_id = details.id

    placed = place_order(cadaver_details_id=details_id)

    send_callback(paid_body(placed["external_id"]))
    first_paid_at = load_order(engine, placed["order_id"]).paid_at
    events_after_first = count_rows(engine, OrderTimelineEvent)
    notifications_after_first = count_rows(engine, Notification)

    res = send_callback(paid_body(placed["external_id"]))

    assert res.status_code == 200
    order = load_order(engine, placed["order_id"])
    assert order.status == "paid"
    assert order.paid_at == first_paid_at
    assert count_rows(engine, OrderTimelineEvent) == events_after_first
    assert count_rows(engine, Notification) == notifications_after_first

    with Session(engine) as session:
        assert session.get(CadaverDetails, details_id).order_id == placed["order_id"]


def test_settled_counts_as_paid(place_order, send_callback, engine):
    placed = place_order()

    send_callback(paid_body(placed["external_id"], status="settled"))

    assert load_order(engine, placed["order_id"]).status == "paid"


def test_expired_and_failed_callbacks(place_order, send_callback, engine):
    expired = place_order()
    failed = place_order()

    send_callback(paid_body(expired["external_id"], status="EXPIRED"))
    send_callback(paid_body(failed["external_id"], status="FAILED"))

    assert load_order(engine, expired["order_id"]).status == "expired"
    assert load_order(engine, failed["order_id"]).status == "failed"
    assert load_order(engine, expired["order_id"]).paid_at is None


def test_late_outcome_does_not_override_paid(paid_order, send_callback, engine):
    res = send_callback(paid_body(paid_order["external_id"], status="EXPIRED"))

    assert res.status_code == 200
    assert load_order(engine, paid_order["order_id"]).status == "paid"


def test_unmapped_status_is_ignored(place_order, send_callback, engine):
    placed = place_order()

    res = send_callback(paid_body(placed["external_id"], status="REFUNDED"))

    assert res.status_code == 200
    assert load_order(engine, placed["order_id"]).status == "pending"


def test_unknown_order_is_a_404_without_writes(place_order, send_callback, engine):
    place_order()
    events_before = count_rows(engine, OrderTimelineEvent)

    res = send_callback(paid_body("INV_0_nobody_000000000000"))

    assert res.status_code == 404
    assert res.json() == {"error": "Order not found"}
    assert count_rows(engine, OrderTimelineEvent) == events_before


def test_lookup_falls_back_to_invoice_id(place_order, send_callback, engine):
    placed = place_order()
    order = load_order(engine, placed["order_id"])

    res = send_callback({"data": {"id": order.invoice_id, "status": "PAID"}})

    assert res.status_code == 200
    assert load_order(engine, placed["order_id"]).status == "paid"


def test_flat_payload_is_accepted(place_order, send_callback, engine):
    placed = place_order()

    res = send_callback({"id": "inv_1", "external_id": placed["external_id"], "status": "EXPIRED"})

    assert res.status_code == 200
    assert load_order(engine, placed["order_id"]).status == "expired"


def test_bad_callback_token_is_rejected(place_order, send_callback, engine):
    placed = place_order()

    wrong = send_callback(paid_body(placed["external_id"]), token="guess")
    missing = send_callback(paid_body(placed["external_id"]), token=None)

    assert wrong.status_code == 401
    assert wrong.json() == {"error": "Bad callback token"}
    assert missing.status_code == 401
    assert load_order(engine, placed["order_id"]).status == "pending"


def test_malformed_callback_is_a_400(send_callback):
    no_status = send_callback({"data": {"external_id": "INV_1"}})
    no_reference = send_callback({"data": {"status": "PAID"}})

    assert no_status.status_code == 400
    assert no_reference.status_code == 400


def test_payment_notifies_customer_and_admins(paid_order, engine):
    with Session(engine) as session:
        notes = session.exec(
            select(Notification).where(Notification.order_id == paid_order["order_id"])
        ).all()

    kinds = {(n.type, n.recipient_role) for n in notes}
    assert ("order_placed", "admin") in kinds
    assert ("payment_success", "customer") in kinds
    assert ("payment_success", "admin") in kinds
    assert ("order_placed", "customer") not in kinds


def test_applied_callback_is_recorded_in_the_payment_ledger(place_order, send_callback, engine):
    placed = place_order()
    body = {
        "event": "invoice.paid",
        "data": {
            "id": "inv_1",
            "external_id": placed["external_id"],
            "status": "PAID",
            "paid_amount": 1120,
            "payment_method": "EWALLET",
        },
    }

    send_callback(body)
    send_callback(body)

    with Session(engine) as session:
        payments = session.exec(select(Payment)).all()
    assert len(payments) == 1
    payment = payments[0]
    assert payment.order_id == placed["order_id"]
    assert payment.user_id == CUSTOMER_ID
    assert payment.provider == "xendit"
    assert payment.provider_event == "invoice.paid"
    assert payment.provider_reference == "inv_1"
    assert payment.provider_status == "PAID"
    assert payment.amount == Decimal("1120.00")
    assert payment.currency == "PHP"
    assert payment.raw_payload["data"]["payment_method"] == "EWALLET"


def test_expired_outcome_is_recorded_without_amount(place_order, send_callback, engine):
    placed = place_order()

    send_callback({"id": "inv_1", "external_id": placed["external_id"], "status": "expired"})

    with Session(engine) as session:
        payment = session.exec(select(Payment)).one()
    assert payment.provider_status == "EXPIRED"
    assert payment.provider_event is None
    assert payment.amount is None


def test_ignored_callbacks_leave_no_payment_row(paid_order, place_order, send_callback, engine):
    pending = place_order()
    after_paid = count_rows(engine, Payment)

    send_callback(paid_body(pending["external_id"], status="REFUNDED"))
    send_callback(paid_body(paid_order["external_id"], status="EXPIRED"))
    send_callback(paid_body("INV_0_nobody_000000000000"))

    assert after_paid == 1
    assert count_rows(engine, Payment) == 1

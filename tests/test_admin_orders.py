from decimal import Decimal

from sqlmodel import Session, select

from stivans.models.order_item import OrderItem
from tests.conftest import load_order


def update(client, headers, order_id, patch):
    return client.post(
        "/admin/orders/update",
        json={"orderId": order_id, "patch": patch},
        headers=headers,
    )


def test_non_admin_is_forbidden(client, user_headers, paid_order):
    res = update(client, user_headers, paid_order["order_id"], {"status": "shipped"})

    assert res.status_code == 403
    assert res.json() == {"error": "Admin access required"}
    assert client.get("/admin/orders", headers=user_headers).status_code == 403


def test_admin_routes_need_a_token(client, paid_order):
    res = client.post(
        "/admin/orders/update",
        json={"orderId": paid_order["order_id"], "patch": {"status": "shipped"}},
    )

    assert res.status_code == 401


def test_partial_patch_only_touches_sent_fields(client, admin_headers, paid_order, engine):
    before = load_order(engine, paid_order["order_id"])

    res = update(client, admin_headers, paid_order["order_id"], {"shipping_carrier": "LBC"})

    assert res.status_code == 200
    body = res.json()
    assert body["ok"] is True
    assert body["order"]["shipping_carrier"] == "LBC"

    after = load_order(engine, paid_order["order_id"])
    assert after.status == "paid"
    assert after.total == before.total
    assert after.paid_at == before.paid_at
    assert after.shipping_address == before.shipping_address


def test_fulfillment_walks_forward(client, admin_headers, paid_order, engine):
    order_id = paid_order["order_id"]

    res = update(client, admin_headers, order_id, {"status": "in_transit"})
    assert res.status_code == 200
    assert load_order(engine, order_id).shipped_at is None

    res = update(client, admin_headers, order_id, {"status": "shipped"})
    assert res.status_code == 200
    order = load_order(engine, order_id)
    assert order.status == "shipped"
    assert order.shipped_at is not None

    res = update(client, admin_headers, order_id, {"status": "canceled"})
    assert res.status_code == 409
    assert load_order(engine, order_id).status == "shipped"


def test_unpaid_order_cannot_ship(client, admin_headers, place_order, engine):
    placed = place_order()

    res = update(client, admin_headers, placed["order_id"], {"status": "shipped"})

    assert res.status_code == 409
    assert load_order(engine, placed["order_id"]).status == "pending"


def test_pending_order_can_be_canceled(client, admin_headers, place_order, engine):
    placed = place_order()

    res = update(client, admin_headers, placed["order_id"], {"status": "canceled"})

    assert res.status_code == 200
    assert load_order(engine, placed["order_id"]).status == "canceled"


def test_payment_statuses_are_not_admin_settable(client, admin_headers, place_order):
    placed = place_order()

    assert update(client, admin_headers, placed["order_id"], {"status": "paid"}).status_code == 400
    assert update(client, admin_headers, placed["order_id"], {"status": "lost"}).status_code == 400


def test_empty_patch_is_rejected(client, admin_headers, paid_order):
    res = update(client, admin_headers, paid_order["order_id"], {})

    assert res.status_code == 400


def test_missing_order_is_a_404(client, admin_headers):
    res = update(client, admin_headers, 9999, {"status": "shipped"})

    assert res.status_code == 404


def test_money_patch_must_stay_consistent(client, admin_headers, paid_order, engine):
    order_id = paid_order["order_id"]

    res = update(client, admin_headers, order_id, {"shipping": "50.00"})
    assert res.status_code == 400
    assert load_order(engine, order_id).shipping == Decimal("0")

    res = update(client, admin_headers, order_id, {"shipping": "50.00", "total": "1170.00"})
    assert res.status_code == 200
    order = load_order(engine, order_id)
    assert order.shipping == Decimal("50.00")
    assert order.total == Decimal("1170.00")

    res = update(client, admin_headers, order_id, {"tax": "-1"})
    assert res.status_code == 400


def test_item_patch(client, admin_headers, paid_order, place_order, engine):
    other = place_order()
    with Session(engine) as session:
        item = session.exec(
            select(OrderItem).where(OrderItem.order_id == paid_order["order_id"])
        ).first()
        foreign_item = session.exec(
            select(OrderItem).where(OrderItem.order_id == other["order_id"])
        ).first()

    res = update(client, admin_headers, paid_order["order_id"], {"items": [{"id": item.id, "quantity": 2}]})
    assert res.status_code == 200
    with Session(engine) as session:
        patched = session.get(OrderItem, item.id)
        assert patched.quantity == 2
        assert patched.unit_price == Decimal("1000.00")

    res = update(
        client,
        admin_headers,
        paid_order["order_id"],
        {"items": [{"id": foreign_item.id, "price": "1.00"}]},
    )
    assert res.status_code == 404


def test_status_change_is_on_the_timeline(client, admin_headers, paid_order):
    update(client, admin_headers, paid_order["order_id"], {"status": "in_transit"})

    res = client.get(f"/admin/orders/{paid_order['order_id']}", headers=admin_headers)

    assert res.status_code == 200
    events = [e["event_type"] for e in res.json()["timeline"]]
    assert events[:3] == ["order_created", "invoice_created", "payment_paid"]
    assert "order_updated" in events


def test_list_tabs_and_search(client, admin_headers, paid_order, place_order):
    pending = place_order()

    unshipped = client.get("/admin/orders", headers=admin_headers).json()
    assert [o["id"] for o in unshipped["results"]] == [paid_order["order_id"]]

    everything = client.get("/admin/orders?tab=all&sort=total&direction=desc", headers=admin_headers).json()
    assert everything["total_items"] == 2

    found = client.get(
        f"/admin/orders?tab=all&search={pending['external_id']}",
        headers=admin_headers,
    ).json()
    assert [o["id"] for o in found["results"]] == [pending["order_id"]]

    bad = client.get("/admin/orders?tab=archived", headers=admin_headers)
    assert bad.status_code == 400

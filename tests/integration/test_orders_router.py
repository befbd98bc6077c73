def _payload(**order_data):
    return {
        "orderData": {"shipping_method": "standard", "shipping_address": {"type": "standard", "fullName": "Ada Lovelace"}, **order_data},
        "orderItems": [{"productId": 5, "quantity": 2}],
    }


def test_create_order_without_reference_is_pending(client, shop):
    shop.add_product(5, "Widget", "49.99", stock=10)

    r = client.post("/api/v1/orders", json=_payload())

    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert "order_id" not in body
    assert body["total"] == 111.98
    order = shop.orders[body["orderId"]]
    assert order["user_id"] == "test-user"
    assert order["status"] == "pending"
    assert order["payment_intent_id"] is None
    assert shop.products[5]["stock"] == 8

def test_client_prices_and_total_are_ignored(client, shop):
    shop.add_product(5, "Widget", "49.99", stock=10)
    payload = _payload(total=0.01)
    payload["orderItems"] = [{"productId": 5, "productName": "Cheap", "productPrice": 0.01, "quantity": 2}]

    r = client.post("/api/v1/orders", json=payload)

    assert r.status_code == 200
    order = shop.orders[r.json()["orderId"]]
    assert order["total"] == "111.98"
    assert [(i["product_name"], str(i["product_price"])) for i in shop.order_items] == [("Widget", "49.99")]

def test_unknown_product_is_404(client, shop):
    r = client.post("/api/v1/orders", json=_payload())
    assert r.status_code == 404
    assert shop.orders == {}

def test_manual_payment_reference_gives_pending(client, shop):
    shop.add_product(5, "Widget", "49.99", stock=10)
    r = client.post("/api/v1/orders", json={**_payload(), "paymentIntentId": "manual-payment-required"})
    assert r.json()["status"] == "pending"

def test_paid_reference_is_refused(client, shop):
    r = client.post("/api/v1/orders", json={**_payload(), "paymentIntentId": "pi_forged"})
    assert r.status_code == 400
    assert shop.orders == {}

def test_out_of_stock_is_409(client, shop):
    shop.add_product(5, "Widget", "49.99", stock=1)
    r = client.post("/api/v1/orders", json=_payload())
    assert r.status_code == 409
    assert r.json()["productId"] == 5
    assert shop.products[5]["stock"] == 1

def test_missing_items_is_400(client, shop):
    r = client.post("/api/v1/orders", json={"orderData": {"shipping_method": "standard"}, "orderItems": []})
    assert r.status_code == 400
    assert r.json()["success"] is False

def test_get_is_rejected(client):
    r = client.get("/api/v1/orders")
    assert r.status_code == 400
    assert r.json()["error"] == "This endpoint requires a POST request, received: GET"

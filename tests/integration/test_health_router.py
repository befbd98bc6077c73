from unittest.mock import MagicMock


def test_health_reports_configuration(client):
    body = client.get("/health").json()
    assert body["ok"] is True
    assert body["stripe_configured"] is True
    assert body["carrier_configured"] is True
    assert body["rate_limit"]["enabled"] is False

def test_health_supabase_reports_tables(client, monkeypatch):
    fake = MagicMock()
    fake.table.return_value.select.return_value.limit.return_value.execute.return_value = MagicMock(data=[{"id": 1}])
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: fake)
    monkeypatch.setattr("storefront.health.service.socket.getaddrinfo", lambda *a, **k: [])

    body = client.get("/health/supabase").json()
    assert body["connect_ok"] is True
    assert set(body["tables"]) == {"products", "cart_items", "orders", "order_items"}
    assert body["tables"]["orders"] == {"ok": True, "rows": 1}

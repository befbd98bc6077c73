from unittest.mock import MagicMock

import pytest

import storefront.orders.repository as repo

class _Resp:
    def __init__(self, data=None):
        self.data = data

def _mk_client(data=None):
    client = MagicMock()
    query = MagicMock()
    client.table.return_value = query
    # chaque maillon postgrest renvoie la même requête
    for name in ("select", "insert", "update", "delete", "eq", "is_", "limit", "order"):
        getattr(query, name).return_value = query
    query.execute.return_value = _Resp(data)
    return client, query

def _use(monkeypatch, client):
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: client)

def test_set_tracking_number_only_when_empty(monkeypatch):
    client, query = _mk_client(data=[{"id": 7, "tracking_number": "Z1"}])
    _use(monkeypatch, client)

    assert repo.set_tracking_number(7, "Z1", {"status": "processing"}) is True

    client.table.assert_called_once_with("orders")
    query.update.assert_called_once_with({"status": "processing", "tracking_number": "Z1"})
    query.eq.assert_called_once_with("id", 7)
    query.is_.assert_called_once_with("tracking_number", "null")

def test_set_tracking_number_lost_race(monkeypatch):
    client, query = _mk_client(data=[])
    _use(monkeypatch, client)
    assert repo.set_tracking_number("7", "PKT0000001") is False
    query.update.assert_called_once_with({"tracking_number": "PKT0000001"})

def test_find_order_by_payment_reference(monkeypatch):
    client, query = _mk_client(data=[{"id": 3, "payment_intent_id": "pi_1"}])
    _use(monkeypatch, client)

    assert repo.find_order_by_payment_reference("pi_1") == {"id": 3, "payment_intent_id": "pi_1"}
    query.eq.assert_called_once_with("payment_intent_id", "pi_1")
    query.limit.assert_called_once_with(1)

def test_find_order_by_empty_reference_skips_database(monkeypatch):
    client, _ = _mk_client()
    _use(monkeypatch, client)
    assert repo.find_order_by_payment_reference("") is None
    client.table.assert_not_called()

def test_find_order_by_payment_reference_not_found(monkeypatch):
    client, _ = _mk_client(data=[])
    _use(monkeypatch, client)
    assert repo.find_order_by_payment_reference("pi_x") is None

def test_get_order_scoped_to_owner(monkeypatch):
    client, query = _mk_client(data=[{"id": 4, "user_id": "u1"}])
    _use(monkeypatch, client)

    assert repo.get_order(4, "u1") == {"id": 4, "user_id": "u1"}
    assert [c.args for c in query.eq.call_args_list] == [("id", 4), ("user_id", "u1")]

def test_get_order_error_returns_none(monkeypatch):
    client, query = _mk_client()
    query.execute.side_effect = Exception("boom")
    _use(monkeypatch, client)
    assert repo.get_order(4) is None

def test_insert_order_items_stores_prices_as_text(monkeypatch):
    client, query = _mk_client(data=[{"id": 1}])
    _use(monkeypatch, client)

    repo.insert_order_items(9, [{"product_id": "5", "product_name": "Widget", "product_price": 49.99, "quantity": "2"}])

    client.table.assert_called_once_with("order_items")
    query.insert.assert_called_once_with(
        [{"order_id": 9, "product_id": 5, "product_name": "Widget", "product_price": "49.99", "quantity": 2}]
    )

def test_insert_order_propagates_errors(monkeypatch):
    client, query = _mk_client()
    query.execute.side_effect = Exception("db down")
    _use(monkeypatch, client)
    with pytest.raises(Exception, match="db down"):
        repo.insert_order({"user_id": "u1"})

def test_append_note_keeps_previous_notes(monkeypatch):
    client, query = _mk_client(data=[{"id": 2, "notes": "first"}])
    _use(monkeypatch, client)

    repo.append_note(2, "Carrier dispatch failed: down")

    payload = query.update.call_args.args[0]
    previous, line = payload["notes"].split("\n")
    assert previous == "first"
    assert line.endswith("] Carrier dispatch failed: down")
    assert line.startswith("[") and line[20] == "Z"

import pytest
import stripe

from storefront.errors import NotFound, PaymentProcessingError, ServiceUnavailable
from storefront.payments import stripe_client


def test_require_stripe_without_key_is_service_unavailable(override_settings):
    override_settings(stripe_secret_key="")
    with pytest.raises(ServiceUnavailable) as exc:
        stripe_client.require_stripe()
    assert exc.value.status_code == 503
    assert "STRIPE" not in exc.value.error

def test_require_stripe_configures_key_and_retries(override_settings):
    override_settings(stripe_secret_key="sk_test_abc", stripe_max_network_retries=3)
    module = stripe_client.require_stripe()
    assert module.api_key == "sk_test_abc"
    assert module.max_network_retries == 3

def test_create_session_maps_stripe_errors(monkeypatch):
    def _boom(**kwargs):
        raise stripe.InvalidRequestError("Amount must be positive", param="unit_amount")
    monkeypatch.setattr(stripe.checkout.Session, "create", _boom)

    with pytest.raises(PaymentProcessingError) as exc:
        stripe_client.create_session(line_items=[], success_url="https://a", cancel_url="https://b", metadata={})
    assert exc.value.status_code == 422
    assert "Amount must be positive" in exc.value.details

def test_create_session_returns_dict(monkeypatch):
    captured = {}

    def _create(**kwargs):
        captured.update(kwargs)
        return {"id": "cs_test_1", "url": "https://checkout.stripe.test/x"}
    monkeypatch.setattr(stripe.checkout.Session, "create", _create)

    session = stripe_client.create_session(
        line_items=[{"quantity": 1}], success_url="https://a", cancel_url="https://b",
        metadata={"user_id": "u1"}, customer_email="a@b.c",
    )
    assert session["id"] == "cs_test_1"
    assert captured["mode"] == "payment"
    assert captured["customer_email"] == "a@b.c"

def test_retrieve_unknown_session_is_not_found(monkeypatch):
    def _retrieve(session_id, expand=None):
        raise stripe.InvalidRequestError("No such checkout.session: cs_x", param="id", http_status=404)
    monkeypatch.setattr(stripe.checkout.Session, "retrieve", _retrieve)
    with pytest.raises(NotFound):
        stripe_client.retrieve_session("cs_x")

def test_require_stripe_reuses_one_http_client(override_settings):
    override_settings(stripe_secret_key="sk_test_abc")
    stripe_client.require_stripe()
    first = stripe.default_http_client
    stripe_client.require_stripe()
    assert stripe.default_http_client is first
    assert isinstance(first, stripe.HTTPXClient)

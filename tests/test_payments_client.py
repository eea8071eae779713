"""Stripe checkout and webhook verification."""

import json
import time
from types import SimpleNamespace

import pytest
import stripe

from sales_agent.integrations.clients.mocks.payments import stripe_signature_header
from sales_agent.integrations.clients.real_http.payments import RealPaymentsClient, unit_amount
from sales_agent.integrations.contracts.payments import (
    CheckoutError,
    CheckoutRequest,
    PaymentVerificationError,
    verify_and_parse,
)
from sales_agent.utils.config_loader import PaymentsConfig

EVENT = json.dumps(
    {"id": "evt_1", "type": "checkout.session.completed", "data": {"object": {"id": "cs_1", "metadata": {"quoteId": "q-9"}}}}
).encode()


def _request(amount=94000.0):
    return CheckoutRequest(quote_id="q-1", amount=amount, customer_name="Jane", currency="RWF")


@pytest.fixture
def session_calls(monkeypatch):
    calls = []

    def fake_create(**params):
        calls.append(params)
        return SimpleNamespace(id="cs_test_1", url="https://checkout.stripe.com/c/cs_test_1")

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)
    return calls


@pytest.mark.asyncio
async def test_checkout_session_carries_quote_metadata(session_calls):
    client = RealPaymentsClient(PaymentsConfig(secret_key="sk_test"))

    session = await client.create_checkout(_request())

    assert session.url == "https://checkout.stripe.com/c/cs_test_1"
    assert session.session_id == "cs_test_1"
    [params] = session_calls
    assert params["api_key"] == "sk_test"
    assert params["mode"] == "payment"
    assert params["metadata"] == {"quoteId": "q-1"}
    price = params["line_items"][0]["price_data"]
    assert price["unit_amount"] == 94000
    assert price["currency"] == "rwf"


@pytest.mark.asyncio
async def test_checkout_amount_rounds_half_up(session_calls):
    await RealPaymentsClient(PaymentsConfig(secret_key="sk_test")).create_checkout(_request(amount=2.5))
    assert session_calls[0]["line_items"][0]["price_data"]["unit_amount"] == 3


@pytest.mark.parametrize("amount,expected", [(94000.0, 94000), (0.5, 1), (2.5, 3), (94000.5, 94001), (94000.49, 94000)])
def test_unit_amount(amount, expected):
    assert unit_amount(amount) == expected


@pytest.mark.asyncio
async def test_checkout_gateway_error_raises(monkeypatch):
    def declined(**params):
        raise stripe.StripeError("Your card was declined.")

    monkeypatch.setattr(stripe.checkout.Session, "create", declined)

    with pytest.raises(CheckoutError):
        await RealPaymentsClient(PaymentsConfig(secret_key="sk_test")).create_checkout(_request())


@pytest.mark.asyncio
async def test_checkout_requires_secret_key(session_calls):
    with pytest.raises(CheckoutError):
        await RealPaymentsClient(PaymentsConfig()).create_checkout(_request())
    assert session_calls == []


def test_verified_event_is_parsed():
    client = RealPaymentsClient(PaymentsConfig(webhook_secret="whsec_1"))

    event = client.verify_and_parse_event(EVENT, stripe_signature_header(EVENT, "whsec_1"))

    assert event.is_checkout_completed
    assert event.quote_id == "q-9"
    assert event.session_id == "cs_1"


@pytest.mark.parametrize(
    "payload,header",
    [
        (EVENT + b" ", stripe_signature_header(EVENT, "whsec_1")),
        (EVENT, stripe_signature_header(EVENT, "whsec_other")),
        (EVENT, stripe_signature_header(EVENT, "whsec_1", timestamp=int(time.time()) - 400)),
        (EVENT, "t=1,v1=deadbeef"),
        (EVENT, ""),
        (b"not json", stripe_signature_header(b"not json", "whsec_1")),
    ],
)
def test_rejected_webhooks(payload, header):
    with pytest.raises(PaymentVerificationError):
        verify_and_parse(payload, header, "whsec_1")


def test_missing_secret_rejected():
    with pytest.raises(PaymentVerificationError):
        verify_and_parse(EVENT, stripe_signature_header(EVENT, ""), "")

import asyncio

import pytest

from sales_agent.chatbot.prompts import DEGRADED_FULFILLMENT_MESSAGE
from sales_agent.integrations.clients.mocks.documents import MockDocumentRenderer
from sales_agent.integrations.contracts.payments import PaymentProcessingError, PaymentVerificationError

USER = "250780000004"


@pytest.fixture
def paid_setup(make_container, db, catalog):
    """A container and one quoted motor quote for a named user."""

    def _setup(**overrides):
        container = make_container(**overrides)
        user = db.get_or_create_user(USER)
        db.update_user_name(user.id, "Jane Doe")
        motor = catalog.find_active_product("motor")
        quote = container.ledger.create_quote(user.id, motor, 94000, {"driverAge": 22, "carYear": 2008})
        return container, quote

    return _setup


def _signed(payments, quote_id, **kwargs):
    payload = payments.build_completed_event(quote_id, **kwargs)
    return payload, payments.sign(payload)


@pytest.mark.asyncio
async def test_completed_payment_marks_paid_and_fulfills(paid_setup, payments, messaging):
    container, quote = paid_setup()
    payload, sig = _signed(payments, quote.id)

    result = await container.payment_flow.handle_event(payload, sig)

    assert result.status == "processed"
    assert result.fulfilled is True
    stored = container.ledger.get_quote(quote.id)
    assert stored.status == "paid"
    assert stored.certificate_url.startswith("https://storage.mock/certificates/POL-")

    texts = messaging.texts_to(USER)
    assert texts[0].startswith("Thank you, Jane Doe! Your payment of 94,000 RWF")
    assert f"#{quote.id[:8]}" in texts[0]
    assert len(messaging.documents_to(USER)) == 1

    last = container.store.history(USER)[-1]
    assert last.text == f"(System Note: Payment for quote {quote.id} was successfully processed. Certificate generation initiated.)"


@pytest.mark.asyncio
async def test_replayed_event_is_processed_once(paid_setup, payments, messaging):
    container, quote = paid_setup()
    payload, sig = _signed(payments, quote.id)

    first = await container.payment_flow.handle_event(payload, sig)
    second = await container.payment_flow.handle_event(payload, sig)

    assert first.status == "processed"
    assert second.status == "duplicate"
    assert len(messaging.texts_to(USER)) == 1
    assert len(messaging.documents_to(USER)) == 1


@pytest.mark.asyncio
async def test_invalid_signature_changes_nothing(paid_setup, payments, messaging):
    container, quote = paid_setup()
    payload = payments.build_completed_event(quote.id)

    with pytest.raises(PaymentVerificationError):
        await container.payment_flow.handle_event(payload, "t=1,v1=deadbeef")

    assert container.ledger.get_quote(quote.id).status == "quoted"
    assert messaging.sent == []


@pytest.mark.asyncio
async def test_stale_signature_rejected(paid_setup, payments):
    container, quote = paid_setup()
    payload = payments.build_completed_event(quote.id)

    with pytest.raises(PaymentVerificationError):
        await container.payment_flow.handle_event(payload, payments.sign(payload, timestamp=1000))


@pytest.mark.asyncio
async def test_other_event_types_are_ignored(paid_setup, payments):
    container, quote = paid_setup()
    payload, sig = _signed(payments, quote.id, event_type="payment_intent.created")

    result = await container.payment_flow.handle_event(payload, sig)

    assert result.status == "ignored"
    assert container.ledger.get_quote(quote.id).status == "quoted"


@pytest.mark.asyncio
async def test_missing_quote_id_is_ignored(paid_setup, payments):
    container, _ = paid_setup()
    payload, sig = _signed(payments, None)

    result = await container.payment_flow.handle_event(payload, sig)

    assert result.status == "ignored"
    assert result.quote_id is None


@pytest.mark.asyncio
async def test_unknown_quote_is_ignored(paid_setup, payments, messaging):
    container, _ = paid_setup()
    payload, sig = _signed(payments, "no-such-quote")

    result = await container.payment_flow.handle_event(payload, sig)

    assert result.status == "ignored"
    assert messaging.sent == []


@pytest.mark.asyncio
async def test_lost_race_is_a_duplicate(paid_setup, payments, messaging, monkeypatch):
    container, quote = paid_setup()
    monkeypatch.setattr(container.ledger, "mark_paid", lambda quote_id: False)
    payload, sig = _signed(payments, quote.id)

    result = await container.payment_flow.handle_event(payload, sig)

    assert result.status == "duplicate"
    assert messaging.sent == []


@pytest.mark.asyncio
async def test_storage_error_before_transition_asks_for_retry(paid_setup, payments, monkeypatch):
    container, quote = paid_setup()

    def broken(quote_id):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(container.ledger, "get_quote", broken)
    payload, sig = _signed(payments, quote.id)

    with pytest.raises(PaymentProcessingError):
        await container.payment_flow.handle_event(payload, sig)


@pytest.mark.asyncio
async def test_fulfillment_failure_still_acknowledges(paid_setup, payments, messaging):
    container, quote = paid_setup(renderer=MockDocumentRenderer(fail=True))
    payload, sig = _signed(payments, quote.id)

    result = await container.payment_flow.handle_event(payload, sig)

    assert result.status == "processed"
    assert result.fulfilled is False
    assert container.ledger.get_quote(quote.id).status == "paid"
    assert messaging.texts_to(USER)[-1] == DEGRADED_FULFILLMENT_MESSAGE


@pytest.mark.asyncio
async def test_system_note_waits_for_the_user_lock(paid_setup, payments):
    container, quote = paid_setup()
    payload, sig = _signed(payments, quote.id)

    async with container.locks.hold(USER):
        task = asyncio.create_task(container.payment_flow.handle_event(payload, sig))
        for _ in range(20):
            await asyncio.sleep(0)
        assert not task.done()
        assert container.ledger.get_quote(quote.id).status == "paid"
        assert container.store.history(USER) == []

    result = await task
    assert result.status == "processed"
    assert container.store.history(USER)[-1].text.startswith("(System Note: Payment for quote")

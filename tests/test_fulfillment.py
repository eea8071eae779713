from datetime import date

import pytest

from sales_agent.chatbot.flows.fulfillment import (
    FulfillmentPipeline,
    build_certificate_data,
    humanize_key,
    policy_id_for,
    render_certificate_html,
)
from sales_agent.chatbot.prompts import CERTIFICATE_CAPTION, DEGRADED_FULFILLMENT_MESSAGE
from sales_agent.integrations.clients.mocks.documents import MockDocumentRenderer, MockDocumentStorage

USER = "250780000005"


@pytest.fixture
def paid_quote(db, ledger, catalog):
    user = db.get_or_create_user(USER)
    db.update_user_name(user.id, "Jane Doe")
    motor = catalog.find_active_product("motor")
    quote = ledger.create_quote(user.id, motor, 94000, {"driverFullName": "Jane Doe", "driverAge": 22, "carYear": 2008})
    ledger.mark_paid(quote.id)
    return quote, db.get_user_by_id(user.id)


def _pipeline(db, ledger, messaging, renderer=None, storage=None):
    return FulfillmentPipeline(
        renderer or MockDocumentRenderer(),
        storage or MockDocumentStorage(),
        messaging,
        ledger,
        db,
        today=lambda: date(2025, 3, 7),
    )


def test_policy_id_and_key_labels():
    assert policy_id_for("abcdef12-3456-7890") == "POL-ABCDEF12-345"
    assert humanize_key("driverFullName") == "Driver Full Name"
    assert humanize_key("trip_days") == "Trip Days"


def test_certificate_html_escapes_user_values(paid_quote):
    quote, user = paid_quote
    user.full_name = "<script>alert(1)</script>"
    data = build_certificate_data(quote, user, date(2025, 3, 7))

    html_doc = render_certificate_html(data, "Acme Insurance", "RWF")

    assert "<script>" not in html_doc
    assert "&lt;script&gt;" in html_doc
    assert "07 March 2025" in html_doc
    assert "94,000 RWF" in html_doc
    assert "Driver Age" in html_doc


def test_missing_name_uses_placeholder(paid_quote):
    quote, user = paid_quote
    user.full_name = None
    assert build_certificate_data(quote, user, date(2025, 1, 1)).customer_name == "Valued Customer"


@pytest.mark.asyncio
async def test_fulfill_delivers_and_records_certificate(db, ledger, messaging, paid_quote):
    quote, user = paid_quote
    storage = MockDocumentStorage()
    pipeline = _pipeline(db, ledger, messaging, storage=storage)

    result = await pipeline.fulfill(quote, user)

    policy_id = policy_id_for(quote.id)
    assert result.success is True
    assert result.certificate_url == f"https://storage.mock/certificates/{policy_id}.pdf"
    assert storage.stored == [(f"https://documents.mock/tmp/{policy_id}.pdf", f"certificates/{policy_id}")]

    [doc] = messaging.documents_to(USER)
    assert doc.text == CERTIFICATE_CAPTION
    assert doc.filename == f"Insurance-Certificate-{quote.id[:8]}.pdf"
    assert ledger.get_quote(quote.id).certificate_url == result.certificate_url


@pytest.mark.asyncio
async def test_render_failure_sends_degraded_message(db, ledger, messaging, paid_quote):
    quote, user = paid_quote
    pipeline = _pipeline(db, ledger, messaging, renderer=MockDocumentRenderer(fail=True))

    result = await pipeline.fulfill(quote, user)

    assert result.success is False
    assert messaging.texts_to(USER) == [DEGRADED_FULFILLMENT_MESSAGE]
    assert messaging.documents_to(USER) == []
    assert ledger.get_quote(quote.id).certificate_url is None
    assert ledger.get_quote(quote.id).status == "paid"


@pytest.mark.asyncio
async def test_storage_failure_falls_back_to_temporary_url(db, ledger, messaging, paid_quote):
    quote, user = paid_quote
    pipeline = _pipeline(db, ledger, messaging, storage=MockDocumentStorage(fail=True))

    result = await pipeline.fulfill(quote, user)

    assert result.success is True
    assert result.certificate_url.startswith("https://documents.mock/tmp/")
    assert messaging.documents_to(USER)[0].document_url == result.certificate_url


@pytest.mark.asyncio
async def test_retry_only_for_paid_quotes(db, ledger, catalog, messaging, paid_quote):
    quote, _ = paid_quote
    pipeline = _pipeline(db, ledger, messaging)

    assert await pipeline.retry("missing") is None

    user = db.get_user_by_id(quote.user_id)
    unpaid = ledger.create_quote(user.id, catalog.find_active_product("travel"), 30000, {})
    assert await pipeline.retry(unpaid.id) is None

    result = await pipeline.retry(quote.id)
    assert result.success is True

import pytest

from sales_agent.chatbot.tool_dispatcher import ToolDispatcher
from sales_agent.chatbot.turns import ToolInvocation
from sales_agent.integrations.clients.mocks.payments import MockPaymentsClient


@pytest.fixture
def dispatcher(catalog, ledger, payments, db):
    return ToolDispatcher(catalog, ledger, payments, db)


@pytest.fixture
def user(db):
    return db.get_or_create_user("250780000002")


def _payment_args(**overrides):
    args = {
        "insuranceType": "motor",
        "premium": 94000,
        "customerName": "Jean Uwase",
        "details": {"driverAge": 22, "carYear": 2008},
    }
    args.update(overrides)
    return args


@pytest.mark.asyncio
async def test_calculate_premium(dispatcher, user):
    result = await dispatcher.dispatch(
        ToolInvocation("calculate_premium", {"insuranceType": "motor", "details": {"driverAge": 22, "carYear": 2008}}),
        user,
    )
    assert result == {"premium": 94000}


@pytest.mark.asyncio
async def test_calculate_premium_coerces_string_answers(dispatcher, user):
    result = await dispatcher.dispatch(
        ToolInvocation("calculate_premium", {"insuranceType": "motor", "details": {"driverAge": "22", "carYear": "2008"}}),
        user,
    )
    assert result == {"premium": 94000}


@pytest.mark.asyncio
@pytest.mark.parametrize("answer", ["NaN", "nan", "inf", "-Infinity"])
async def test_calculate_premium_ignores_non_finite_answers(dispatcher, user, answer):
    result = await dispatcher.dispatch(
        ToolInvocation("calculate_premium", {"insuranceType": "motor", "details": {"driverAge": answer, "carYear": "2008"}}),
        user,
    )
    assert result == {"premium": 70000}


@pytest.mark.asyncio
async def test_non_finite_float_arguments_are_reported(dispatcher, user):
    result = await dispatcher.dispatch(
        ToolInvocation("calculate_premium", {"insuranceType": "motor", "details": {"driverAge": float("nan")}}),
        user,
    )
    assert result["error"].startswith("Invalid arguments for calculate_premium")


@pytest.mark.asyncio
async def test_calculate_premium_does_not_write(dispatcher, user, db):
    await dispatcher.dispatch(
        ToolInvocation("calculate_premium", {"insuranceType": "travel", "details": {"tripDays": 40}}),
        user,
    )
    assert db._quotes == {}
    assert db.get_user_by_id(user.id).full_name is None


@pytest.mark.asyncio
async def test_calculate_premium_unknown_product(dispatcher, user):
    result = await dispatcher.dispatch(
        ToolInvocation("calculate_premium", {"insuranceType": "pet", "details": {}}),
        user,
    )
    assert result == {"error": "Invalid insurance type specified."}


@pytest.mark.asyncio
async def test_invalid_arguments_are_reported(dispatcher, user):
    result = await dispatcher.dispatch(ToolInvocation("calculate_premium", {"details": {"a": [1, 2]}}), user)
    assert result["error"].startswith("Invalid arguments for calculate_premium")


@pytest.mark.asyncio
async def test_unknown_tool(dispatcher, user):
    result = await dispatcher.dispatch(ToolInvocation("delete_everything", {}), user)
    assert result == {"error": "Unknown function"}


@pytest.mark.asyncio
async def test_generate_payment_link_creates_quote_and_checkout(dispatcher, user, db, payments):
    result = await dispatcher.dispatch(ToolInvocation("generate_payment_link", _payment_args()), user)

    assert result["checkoutUrl"].startswith("https://checkout.mock/pay/")
    quote = db.get_quote(result["quoteId"])
    assert quote.status == "quoted"
    assert quote.premium == 94000
    assert quote.details == {"driverAge": 22, "carYear": 2008}
    assert quote.checkout_url == result["checkoutUrl"]
    assert db.get_user_by_id(user.id).full_name == "Jean Uwase"
    assert payments.checkouts[0].quote_id == quote.id


@pytest.mark.asyncio
async def test_generate_payment_link_for_unknown_product_creates_nothing(dispatcher, user, db, payments):
    result = await dispatcher.dispatch(
        ToolInvocation("generate_payment_link", _payment_args(insuranceType="spaceship")),
        user,
    )
    assert "error" in result
    assert "quoteId" not in result
    assert db._quotes == {}
    assert payments.checkouts == []
    assert db.get_user_by_id(user.id).full_name is None


@pytest.mark.asyncio
async def test_gateway_failure_keeps_quote_quoted(catalog, ledger, db, user):
    dispatcher = ToolDispatcher(catalog, ledger, MockPaymentsClient(fail_checkout=True), db)
    result = await dispatcher.dispatch(ToolInvocation("generate_payment_link", _payment_args()), user)

    assert result["error"] == "Could not create payment session."
    quote = db.get_quote(result["quoteId"])
    assert quote.status == "quoted"
    assert quote.checkout_url is None


@pytest.mark.asyncio
async def test_generate_payment_link_rejects_non_positive_premium(dispatcher, user, db):
    result = await dispatcher.dispatch(ToolInvocation("generate_payment_link", _payment_args(premium=0)), user)
    assert result["error"].startswith("Invalid arguments for generate_payment_link")
    assert db._quotes == {}

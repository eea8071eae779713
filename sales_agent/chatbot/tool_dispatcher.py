"""
Tool dispatcher: maps a model-emitted tool invocation to a backend operation
and returns a JSON-serializable result for the model.

Tools:
- calculate_premium(insuranceType, details) -> {"premium"} | {"error"}
- generate_payment_link(insuranceType, premium, customerName, details)
      -> {"checkoutUrl", "quoteId"} | {"error"[, "quoteId"]}
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr, ValidationError

from sales_agent.chatbot.product_catalog import ProductCatalog
from sales_agent.chatbot.quote_ledger import QuoteLedger
from sales_agent.chatbot.rule_engine import PricingError, evaluate_for_product
from sales_agent.chatbot.turns import ToolInvocation
from sales_agent.integrations.contracts.interfaces import PaymentGateway
from sales_agent.integrations.contracts.payments import CheckoutRequest

logger = logging.getLogger(__name__)

FactValue = Union[StrictBool, StrictInt, StrictFloat, StrictStr]

UNKNOWN_PRODUCT_ERROR = "Invalid insurance type specified."


class _ToolArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, allow_inf_nan=False)

    insurance_type: str = Field(min_length=1, validation_alias=AliasChoices("insuranceType", "insurance_type"))
    details: Dict[str, Optional[FactValue]] = Field(default_factory=dict)

    def facts(self) -> Dict[str, Any]:
        return {k: v for k, v in self.details.items() if v is not None}


class CalculatePremiumArgs(_ToolArgs):
    pass


class GeneratePaymentLinkArgs(_ToolArgs):
    premium: float = Field(gt=0)
    customer_name: str = Field(min_length=1, validation_alias=AliasChoices("customerName", "customer_name"))


def _validation_message(name: str, exc: ValidationError) -> str:
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'args'}: {err['msg']}" for err in exc.errors()
    )
    return f"Invalid arguments for {name}: {problems}"


class ToolDispatcher:
    def __init__(
        self,
        catalog: ProductCatalog,
        ledger: QuoteLedger,
        payments: PaymentGateway,
        db: Any,
        currency: str = "RWF",
    ):
        self.catalog = catalog
        self.ledger = ledger
        self.payments = payments
        self.db = db
        self.currency = currency
        self._handlers: Dict[str, Callable[[Dict[str, Any], Any], Awaitable[Dict[str, Any]]]] = {
            "calculate_premium": self.calculate_premium,
            "generate_payment_link": self.generate_payment_link,
        }

    @property
    def tool_names(self):
        return list(self._handlers)

    async def dispatch(self, invocation: ToolInvocation, user: Any) -> Dict[str, Any]:
        handler = self._handlers.get(invocation.name)
        if handler is None:
            logger.warning("[Dispatcher] unknown function requested: %s", invocation.name)
            return {"error": "Unknown function"}
        logger.info("[Dispatcher] %s for user %s", invocation.name, getattr(user, "id", None))
        return await handler(dict(invocation.args or {}), user)

    async def calculate_premium(self, args: Dict[str, Any], user: Any) -> Dict[str, Any]:
        try:
            parsed = CalculatePremiumArgs.model_validate(args)
        except ValidationError as e:
            return {"error": _validation_message("calculate_premium", e)}

        product = self.catalog.find_active_product(parsed.insurance_type)
        facts = self.catalog.coerce_facts(product, parsed.facts()) if product else parsed.facts()
        result = evaluate_for_product(product, facts)
        if isinstance(result, PricingError):
            logger.info("[Dispatcher] pricing failed (%s): %s", result.code, result.message)
            return {"error": result.message}
        return {"premium": result.premium}

    async def generate_payment_link(self, args: Dict[str, Any], user: Any) -> Dict[str, Any]:
        try:
            parsed = GeneratePaymentLinkArgs.model_validate(args)
        except ValidationError as e:
            return {"error": _validation_message("generate_payment_link", e)}

        product = self.catalog.find_active_product(parsed.insurance_type)
        if product is None:
            logger.info("[Dispatcher] payment link requested for unknown product %s", parsed.insurance_type)
            return {"error": UNKNOWN_PRODUCT_ERROR}

        self.db.update_user_name(user.id, parsed.customer_name)
        facts = self.catalog.coerce_facts(product, parsed.facts())
        quote = self.ledger.create_quote(user.id, product, parsed.premium, facts)

        request = CheckoutRequest(
            quote_id=quote.id,
            amount=parsed.premium,
            customer_name=parsed.customer_name,
            currency=self.currency,
            description=f"Payment for Insurance Quote #{quote.id}",
            customer_email=getattr(user, "email", None),
        )
        try:
            session = await self.payments.create_checkout(request)
        except Exception:
            # Quote stays `quoted`; a new link can be requested later
            logger.exception("[Dispatcher] checkout creation failed for quote %s", quote.id)
            return {"error": "Could not create payment session.", "quoteId": quote.id}

        self.ledger.attach_checkout_url(quote.id, session.url)
        return {"checkoutUrl": session.url, "quoteId": quote.id}

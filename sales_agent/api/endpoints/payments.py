import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from sales_agent.chatbot.dependencies import AppContainer, api_key_protection, get_container
from sales_agent.integrations.contracts.payments import PaymentProcessingError, PaymentVerificationError

logger = logging.getLogger(__name__)

webhook_api = APIRouter()
quotes_api = APIRouter(dependencies=[Depends(api_key_protection)])


def _quote_summary(quote: Any) -> Dict[str, Any]:
    return {
        "id": quote.id,
        "user_id": quote.user_id,
        "product_type": quote.product_type,
        "product_name": quote.product_name,
        "premium": quote.premium,
        "status": quote.status,
        "details": quote.details,
        "checkout_url": quote.checkout_url,
        "certificate_url": quote.certificate_url,
        "paid_at": quote.paid_at.isoformat() if quote.paid_at else None,
    }


@webhook_api.post("/stripe/webhook", tags=["Payments"])
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(default=None, alias="Stripe-Signature"),
    container: AppContainer = Depends(get_container),
):
    if not stripe_signature:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing Stripe-Signature header")

    raw_body = await request.body()
    try:
        result = await container.payment_flow.handle_event(raw_body, stripe_signature)
    except PaymentVerificationError as e:
        logger.warning("[Payment] webhook rejected: %s", e)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Webhook Error: {e}")
    except PaymentProcessingError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return {"received": True, "status": result.status, "quote_id": result.quote_id}


@quotes_api.get("/quotes/{quote_id}", tags=["Quotes"])
async def get_quote(quote_id: str, container: AppContainer = Depends(get_container)):
    quote = container.ledger.get_quote(quote_id)
    if quote is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quote not found")
    return _quote_summary(quote)


@quotes_api.post("/quotes/{quote_id}/fulfillment", tags=["Quotes"])
async def retry_fulfillment(quote_id: str, container: AppContainer = Depends(get_container)):
    """Re-run certificate generation and delivery for a paid quote."""
    quote = container.ledger.get_quote(quote_id)
    if quote is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quote not found")

    result = await container.fulfillment.retry(quote_id)
    if result is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Quote is not paid")

    return {"quote_id": quote_id, "success": result.success, "certificate_url": result.certificate_url}

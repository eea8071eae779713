"""
Fulfillment pipeline - certificate generation and delivery for a paid quote.

Render certificate HTML -> PDF (temporary URL) -> permanent storage ->
document message -> record the URL on the quote. Any failure sends the
degraded-service message instead; fulfill() never raises.
"""

import html
import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple

from sales_agent.chatbot.prompts import CERTIFICATE_CAPTION, DEGRADED_FULFILLMENT_MESSAGE, format_amount
from sales_agent.chatbot.quote_ledger import QuoteLedger, QuoteStatus
from sales_agent.integrations.contracts.interfaces import DocumentRenderer, DocumentStorage, MessagingChannel
from sales_agent.utils.config_loader import AgentConfig

logger = logging.getLogger(__name__)

DEFAULT_CUSTOMER_NAME = "Valued Customer"

CERTIFICATE_STYLE = """
body { font-family: Helvetica, Arial, sans-serif; color: #333; margin: 0; }
.page { width: 21cm; min-height: 29.7cm; padding: 2cm; margin: 1cm auto; border: 1px solid #e0e0e0; }
.header h1 { font-size: 28px; color: #004a80; margin: 0 0 40px 0; font-weight: 600; }
.section-title { font-size: 18px; font-weight: 600; border-bottom: 2px solid #004a80; padding-bottom: 8px; margin: 30px 0 20px 0; }
.details-grid { display: grid; grid-template-columns: 1fr 1fr; gap: 20px 40px; }
.detail-item { font-size: 12px; }
.detail-item strong { font-size: 13px; display: block; margin-bottom: 4px; color: #000; }
.coverage-table { width: 100%; border-collapse: collapse; }
.coverage-table td { padding: 10px; border-bottom: 1px solid #eee; font-size: 12px; }
.coverage-table td:first-child { font-weight: 600; width: 40%; }
.footer { text-align: center; margin-top: 50px; font-size: 10px; color: #888; border-top: 1px solid #eee; padding-top: 20px; }
"""


@dataclass
class CertificateData:
    policy_id: str
    customer_name: str
    product_type: str
    product_name: str
    premium: float
    coverage_details: Dict[str, Any] = field(default_factory=dict)
    issue_date: str = ""


@dataclass
class FulfillmentResult:
    success: bool
    certificate_url: Optional[str] = None
    error: Optional[str] = None


def policy_id_for(quote_id: str) -> str:
    return f"POL-{str(quote_id).upper()[:12]}"


def humanize_key(key: str) -> str:
    """'driverFullName' -> 'Driver Full Name', 'trip_days' -> 'Trip Days'"""
    spaced = re.sub(r"([A-Z])", r" \1", key).replace("_", " ").strip()
    spaced = re.sub(r"\s+", " ", spaced)
    return spaced[:1].upper() + spaced[1:]


def format_fact(value: Any) -> str:
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def build_certificate_data(quote: Any, user: Any, issued_on: date) -> CertificateData:
    return CertificateData(
        policy_id=policy_id_for(quote.id),
        customer_name=(getattr(user, "full_name", None) or DEFAULT_CUSTOMER_NAME),
        product_type=quote.product_type,
        product_name=quote.product_name,
        premium=quote.premium,
        coverage_details=dict(quote.details or {}),
        issue_date=issued_on.strftime("%d %B %Y"),
    )


def render_certificate_html(data: CertificateData, insurer_name: str, currency: str) -> str:
    esc = html.escape
    rows: List[str] = [
        f"<tr><td>{esc(humanize_key(k))}</td><td>{esc(format_fact(v))}</td></tr>"
        for k, v in data.coverage_details.items()
    ]
    details: List[Tuple[str, str]] = [
        ("Policy ID", data.policy_id),
        ("Insured Name", data.customer_name),
        ("Insurance Type", f"{data.product_type.capitalize()} ({data.product_name})"),
        ("Premium Paid", f"{format_amount(data.premium)} {currency}"),
        ("Date of Issue", data.issue_date),
    ]
    items = "".join(
        f'<div class="detail-item"><strong>{esc(label)}:</strong><span>{esc(value)}</span></div>'
        for label, value in details
    )
    return (
        "<html><head><meta charset=\"UTF-8\">"
        f"<style>{CERTIFICATE_STYLE}</style></head><body><div class=\"page\">"
        f"<div class=\"header\"><h1>{esc(insurer_name)} Certificate</h1></div>"
        "<div class=\"section-title\">Policy Details</div>"
        f"<div class=\"details-grid\">{items}</div>"
        "<div class=\"section-title\">Coverage Summary</div>"
        f"<table class=\"coverage-table\">{''.join(rows)}</table>"
        f"<div class=\"footer\">This document confirms your insurance policy with {esc(insurer_name)}. "
        "Valid from the date of issue.</div>"
        "</div></body></html>"
    )


class FulfillmentPipeline:
    def __init__(
        self,
        renderer: DocumentRenderer,
        storage: DocumentStorage,
        messaging: MessagingChannel,
        ledger: QuoteLedger,
        db: Any,
        agent_config: Optional[AgentConfig] = None,
        storage_folder: str = "certificates",
        today: Callable[[], date] = date.today,
    ):
        self.renderer = renderer
        self.storage = storage
        self.messaging = messaging
        self.ledger = ledger
        self.db = db
        self.agent_config = agent_config or AgentConfig()
        self.storage_folder = storage_folder
        self.today = today

    async def fulfill(self, quote: Any, user: Any) -> FulfillmentResult:
        try:
            url = await self._generate_and_deliver(quote, user)
        except Exception as e:
            logger.exception("[Fulfillment] failed for quote %s", quote.id)
            try:
                await self.messaging.send(user.external_id, DEGRADED_FULFILLMENT_MESSAGE)
            except Exception:
                logger.exception("[Fulfillment] could not send degraded-service message to %s", user.external_id)
            return FulfillmentResult(success=False, error=str(e))

        logger.info("[Fulfillment] certificate delivered for quote %s", quote.id)
        return FulfillmentResult(success=True, certificate_url=url)

    async def _generate_and_deliver(self, quote: Any, user: Any) -> str:
        data = build_certificate_data(quote, user, self.today())
        document_html = render_certificate_html(data, self.agent_config.insurer_name, self.agent_config.currency)

        temporary_url = await self.renderer.render_to_document(document_html, f"{data.policy_id}.pdf")
        try:
            url = await self.storage.persist(temporary_url, f"{self.storage_folder}/{data.policy_id}")
        except Exception:
            logger.exception("[Fulfillment] storage failed for %s; using temporary URL", data.policy_id)
            url = temporary_url

        await self.messaging.send_document(
            user.external_id,
            url,
            CERTIFICATE_CAPTION,
            f"Insurance-Certificate-{str(quote.id)[:8]}.pdf",
        )
        self.ledger.attach_certificate_url(quote.id, url)
        return url

    async def retry(self, quote_id: str) -> Optional[FulfillmentResult]:
        """Re-run fulfillment for a paid quote (ops tooling). None when the quote is missing or unpaid."""
        quote = self.ledger.get_quote(quote_id)
        if quote is None or quote.status != QuoteStatus.PAID.value:
            return None
        user = self.db.get_user_by_id(quote.user_id)
        if user is None:
            return None
        return await self.fulfill(quote, user)

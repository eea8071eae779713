import hmac
import logging
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Header, HTTPException, Request, status

from sales_agent.chatbot.flows.fulfillment import FulfillmentPipeline
from sales_agent.chatbot.flows.payment import PaymentConfirmationFlow
from sales_agent.chatbot.orchestrator import ConversationOrchestrator
from sales_agent.chatbot.product_catalog import ProductCatalog, seed_catalog
from sales_agent.chatbot.quote_ledger import QuoteLedger
from sales_agent.chatbot.state_manager import ConversationStore
from sales_agent.chatbot.tool_dispatcher import ToolDispatcher
from sales_agent.chatbot.user_locks import UserLockRegistry
from sales_agent.error_handler import ErrorHandler
from sales_agent.integrations.contracts.interfaces import (
    DialogueModel,
    DocumentRenderer,
    DocumentStorage,
    MessagingChannel,
    PaymentGateway,
)
from sales_agent.response_processor import ResponseProcessor
from sales_agent.utils.config_loader import Settings, load_product_seed, load_settings

logger = logging.getLogger(__name__)


@dataclass
class AppContainer:
    """Explicitly constructed collaborators, shared by the API routes."""

    settings: Settings
    db: Any
    cache: Any
    catalog: ProductCatalog
    ledger: QuoteLedger
    store: ConversationStore
    messaging: MessagingChannel
    model: DialogueModel
    payments: PaymentGateway
    dispatcher: ToolDispatcher
    orchestrator: ConversationOrchestrator
    fulfillment: FulfillmentPipeline
    payment_flow: PaymentConfirmationFlow
    locks: UserLockRegistry


def _build_db(settings: Settings) -> Any:
    if settings.database_url:
        from sales_agent.database.postgres_real import PostgresDB as RealPostgresDB

        logger.info("Using Postgres database")
        return RealPostgresDB(settings.database_url)

    from sales_agent.database.postgres import PostgresDB

    logger.info("DATABASE_URL not set; using in-memory database seeded from %s", settings.products_file)
    db = PostgresDB()
    seed_catalog(db, load_product_seed(settings.products_file))
    return db


def _build_cache(settings: Settings) -> Any:
    if settings.redis_url:
        from sales_agent.database.redis_real import RedisCache as RealRedisCache

        return RealRedisCache(settings.redis_url)

    from sales_agent.database.redis import RedisCache

    return RedisCache()


def build_container(
    settings: Optional[Settings] = None,
    *,
    db: Any = None,
    messaging: Optional[MessagingChannel] = None,
    model: Optional[DialogueModel] = None,
    payments: Optional[PaymentGateway] = None,
    renderer: Optional[DocumentRenderer] = None,
    storage: Optional[DocumentStorage] = None,
) -> AppContainer:
    """
    Wire every component. The ONE place where mock vs real clients are chosen;
    explicit arguments override the choice (tests).
    """
    settings = settings or load_settings()
    db = db if db is not None else _build_db(settings)
    cache = _build_cache(settings)
    catalog = ProductCatalog(db)
    ledger = QuoteLedger(db)
    store = ConversationStore(db)

    if settings.use_real_integrations:
        from sales_agent.integrations.clients.real_http.documents import CloudinaryStorage, PdfCoRenderer
        from sales_agent.integrations.clients.real_http.payments import RealPaymentsClient
        from sales_agent.integrations.clients.real_http.whatsapp import WhatsAppClient
        from sales_agent.llm.generate import GeminiDialogueModel

        messaging = messaging or WhatsAppClient(settings.whatsapp)
        payments = payments or RealPaymentsClient(settings.payments)
        renderer = renderer or PdfCoRenderer(settings.documents)
        storage = storage or CloudinaryStorage(settings.documents)
        model = model or GeminiDialogueModel(
            settings.generation,
            settings.agent,
            [p.type for p in catalog.list_active_products()],
        )
    else:
        from sales_agent.integrations.clients.mocks.dialogue import ScriptedDialogueModel
        from sales_agent.integrations.clients.mocks.documents import MockDocumentRenderer, MockDocumentStorage
        from sales_agent.integrations.clients.mocks.messaging import MockMessagingChannel
        from sales_agent.integrations.clients.mocks.payments import MockPaymentsClient

        messaging = messaging or MockMessagingChannel()
        payments = payments or MockPaymentsClient(settings.payments.webhook_secret)
        renderer = renderer or MockDocumentRenderer()
        storage = storage or MockDocumentStorage()
        model = model or ScriptedDialogueModel()

    logger.info("Integrations mode: %s", settings.integrations_mode)

    dispatcher = ToolDispatcher(catalog, ledger, payments, db, currency=settings.agent.currency)
    orchestrator = ConversationOrchestrator(
        store,
        catalog,
        dispatcher,
        model,
        messaging,
        response_processor=ResponseProcessor(settings.agent),
        error_handler=ErrorHandler(),
    )
    fulfillment = FulfillmentPipeline(
        renderer,
        storage,
        messaging,
        ledger,
        db,
        agent_config=settings.agent,
        storage_folder=settings.documents.storage_folder,
    )
    locks = UserLockRegistry(cache)
    payment_flow = PaymentConfirmationFlow(
        payments,
        ledger,
        db,
        messaging,
        orchestrator,
        fulfillment,
        locks,
        currency=settings.agent.currency,
    )
    return AppContainer(
        settings=settings,
        db=db,
        cache=cache,
        catalog=catalog,
        ledger=ledger,
        store=store,
        messaging=messaging,
        model=model,
        payments=payments,
        dispatcher=dispatcher,
        orchestrator=orchestrator,
        fulfillment=fulfillment,
        payment_flow=payment_flow,
        locks=locks,
    )


def get_container(request: Request) -> AppContainer:
    return request.app.state.container


async def api_key_protection(
    request: Request,
    x_api_key: str = Header(default=None, alias="X-API-KEY"),
):
    valid_keys = get_container(request).settings.api_keys
    candidate = (x_api_key or "").strip()

    ok = bool(candidate) and any(hmac.compare_digest(candidate, k) for k in valid_keys)
    logger.debug("API key check: path=%s ok=%s configured_keys=%d", request.url.path, ok, len(valid_keys))

    if not ok:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API Key",
        )

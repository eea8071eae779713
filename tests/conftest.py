"""Pytest fixtures: in-memory database seeded with the product catalogue and mock collaborators."""

import os

# Importing sales_agent.api.main builds a default app; keep it on mocks and in-memory storage.
os.environ["INTEGRATIONS_MODE"] = "mock"
os.environ.pop("DATABASE_URL", None)
os.environ.pop("REDIS_URL", None)

import pytest

from sales_agent.chatbot.dependencies import build_container
from sales_agent.chatbot.product_catalog import ProductCatalog, seed_catalog
from sales_agent.chatbot.quote_ledger import QuoteLedger
from sales_agent.database.postgres import PostgresDB
from sales_agent.integrations.clients.mocks.dialogue import ScriptedDialogueModel
from sales_agent.integrations.clients.mocks.documents import MockDocumentRenderer, MockDocumentStorage
from sales_agent.integrations.clients.mocks.messaging import MockMessagingChannel
from sales_agent.integrations.clients.mocks.payments import MockPaymentsClient
from sales_agent.utils.config_loader import Settings, WhatsAppConfig, load_product_seed


@pytest.fixture
def db():
    """In-memory PostgresDB seeded from config/products.yml."""
    database = PostgresDB()
    seed_catalog(database, load_product_seed())
    return database


@pytest.fixture
def catalog(db):
    return ProductCatalog(db)


@pytest.fixture
def ledger(db):
    return QuoteLedger(db)


@pytest.fixture
def messaging():
    return MockMessagingChannel()


@pytest.fixture
def payments():
    return MockPaymentsClient()


@pytest.fixture
def model():
    return ScriptedDialogueModel()


@pytest.fixture
def settings():
    return Settings(
        integrations_mode="mock",
        api_keys=["test-key"],
        whatsapp=WhatsAppConfig(verify_token="verify-me"),
    )


@pytest.fixture
def make_container(db, settings, messaging, payments, model):
    """Build a fully wired container; keyword arguments override collaborators."""

    def _make(**overrides):
        kwargs = dict(
            db=db,
            messaging=messaging,
            payments=payments,
            model=model,
            renderer=MockDocumentRenderer(),
            storage=MockDocumentStorage(),
        )
        kwargs.update(overrides)
        return build_container(settings, **kwargs)

    return _make

"""
FastAPI application - Main entry point
"""

from dotenv import load_dotenv

load_dotenv()

import logging
from datetime import datetime
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sales_agent import __version__
from sales_agent.api.endpoints.payments import quotes_api, webhook_api
from sales_agent.api.endpoints.whatsapp import router as whatsapp_router
from sales_agent.chatbot.dependencies import AppContainer, build_container

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_app(container: Optional[AppContainer] = None) -> FastAPI:
    container = container or build_container()

    app = FastAPI(
        title="Insurance Sales Agent API",
        description="Conversational insurance sales agent: WhatsApp dialogue, quotes, payments and certificates",
        version=__version__,
    )
    app.state.container = container

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Webhooks authenticate themselves (verify token / signature); ops routes need an API key
    app.include_router(whatsapp_router, prefix="/api")
    app.include_router(webhook_api, prefix="/api")
    app.include_router(quotes_api, prefix="/api/v1")

    @app.get("/", tags=["Health"])
    async def root():
        return {
            "service": "Insurance Sales Agent API",
            "status": "healthy",
            "version": __version__,
            "timestamp": datetime.now().isoformat(),
        }

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Detailed health check (database, lock store)."""
        try:
            database = "connected" if container.db.ping() else "unavailable"
        except Exception as e:
            logger.warning("Database health check failed: %s", e)
            database = "unavailable"
        try:
            redis = "connected" if container.cache.ping() else "unavailable"
        except Exception as e:
            logger.warning("Redis health check failed: %s", e)
            redis = "unavailable"
        return {
            "status": "healthy" if database == "connected" else "degraded",
            "database": database,
            "redis": redis,
            "integrations_mode": container.settings.integrations_mode,
            "timestamp": datetime.now().isoformat(),
        }

    return app


app = create_app()

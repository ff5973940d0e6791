# sales_hub/main.py
# Sales Hub - register desk API
from __future__ import annotations
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from sales_hub.settings import Settings, settings
from sales_hub.client import SalesBackendClient
from sales_hub.services import SalesOrderDesk
from sales_hub.routers.register import router as register_router

__version__ = "1.0.0"

# ---------------------------------------------------------
# Logging setup
# ---------------------------------------------------------
import logging
from sales_hub.logging_setup import setup_logging
setup_logging(settings)

logger = logging.getLogger(__name__)


def create_app(backend: Optional[Any] = None, desk_settings: Settings = settings) -> FastAPI:
    """
    Build the API around one SalesOrderDesk.

    ``backend`` is anything with the SalesBackendClient methods; when omitted a
    real client is built from settings and closed on shutdown.
    """

    # ---------------------------------------------------------
    # Lifespan: backend client + desk
    # ---------------------------------------------------------
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned_client: Optional[SalesBackendClient] = None
        client = backend
        if client is None:
            owned_client = client = SalesBackendClient.from_settings(desk_settings)
            logger.info(f"Sales backend: {desk_settings.SALES_API_BASE_URL}")

        desk = SalesOrderDesk.from_settings(client, desk_settings)
        app.state.desk = desk
        await desk.load_context()
        yield
        await desk.close()
        if owned_client is not None:
            owned_client.close()
        logger.info("Register desk closed")

    app = FastAPI(
        title="Sales Hub API",
        version=__version__,
        description="Point-of-sale order desk - basket, loyalty and customer confirmation",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(desk_settings.CORS_ORIGINS),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(register_router)

    # ---------------------------------------------------------
    # Health
    # ---------------------------------------------------------
    @app.get("/health")
    async def health(request: Request) -> Dict[str, Any]:
        desk: Optional[SalesOrderDesk] = getattr(request.app.state, "desk", None)
        return {
            "status": "ok",
            "version": __version__,
            "context_loaded": bool(desk is not None and desk.context is not None),
        }

    return app


app = create_app()

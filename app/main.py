from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from app.api.routes.health import router as health_router
from app.api.routes.internal_chain import router as internal_chain_router
from app.api.routes.internal_loyalty import router as internal_loyalty_router
from app.api.routes.internal_streaks import router as internal_streaks_router
from app.chain.listener import ChainListenerRegistry
from app.chain.providers import Web3ChainProvider
from app.chain.reconciler import TransferReconciler
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.db.session import SessionLocal, dispose_engine

logger = structlog.get_logger(__name__)


def build_chain_listener_registry(settings) -> ChainListenerRegistry:
    provider = Web3ChainProvider.from_settings(settings)
    reconciler = TransferReconciler(provider=provider, session_factory=SessionLocal)
    return ChainListenerRegistry(
        provider=provider,
        reconciler=reconciler,
        session_factory=SessionLocal,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    registry: ChainListenerRegistry | None = None
    if settings.chain_listeners_enabled:
        registry = build_chain_listener_registry(settings)
        try:
            await registry.install_all()
        except Exception:
            logger.exception("chain_listeners_startup_failed")
    app.state.chain_listeners = registry

    try:
        yield
    finally:
        if registry is not None:
            await registry.close()
        app.state.chain_listeners = None
        await dispose_engine()


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="NFT Loyalty API",
        version="0.1.0",
        docs_url="/docs" if settings.enable_openapi_docs else None,
        redoc_url="/redoc" if settings.enable_openapi_docs else None,
        openapi_url="/openapi.json" if settings.enable_openapi_docs else None,
        lifespan=lifespan,
    )
    app.state.chain_listeners = None
    app.include_router(health_router)
    app.include_router(internal_loyalty_router)
    app.include_router(internal_streaks_router)
    app.include_router(internal_chain_router)
    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_env == "dev",
    )


if __name__ == "__main__":
    run()

# backend/main.py

import logging
from typing import Optional
from fastapi import FastAPI
from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware

from backend.init_router import router
from backend.config import Settings, get_settings
from sites.themes import ThemeResolver
from sites.modification import ModificationEngine
from sites.providers import ContentProviderChain, build_providers
from deploy.strategies import build_strategies
from deploy.orchestrator import DeploymentOrchestrator
from database.db_connection import Database, PostgresKV
from base.services.site_service import SiteService
from base.storage.artifact_store import ArtifactStore
from base.repositories.status_store import MemoryKV, StatusStore

logger = logging.getLogger("umkm.backend.main")


def build_kv(settings: Settings):
    if settings.kv_backend == "postgres":
        db = Database(dsn=settings.database_url or None)
        return PostgresKV(db), db
    if settings.kv_backend != "memory":
        logger.warning("Unknown KV_BACKEND %r, falling back to memory", settings.kv_backend)
    return MemoryKV(), None


def build_service(settings: Settings, kv=None, providers=None, strategies=None) -> SiteService:
    store = StatusStore(kv if kv is not None else MemoryKV())
    themes = ThemeResolver()
    chain = ContentProviderChain(
        providers=build_providers(settings) if providers is None else providers,
        themes=themes,
        timeout=settings.provider_timeout,
    )
    orchestrator = DeploymentOrchestrator(
        store,
        build_strategies(settings, store) if strategies is None else strategies,
        timeouts={"browser": settings.browser_timeout, "api": settings.api_timeout},
    )
    return SiteService(
        store=store,
        artifacts=ArtifactStore(base_dir=settings.artifact_dir),
        chain=chain,
        orchestrator=orchestrator,
        engine=ModificationEngine(chain),
        themes=themes,
        pipeline_timeout=settings.pipeline_timeout,
    )


def create_app(settings: Optional[Settings] = None, service: Optional[SiteService] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db = None
        if service is not None:
            app.state.site_service = service
        else:
            kv, db = build_kv(settings)
            app.state.site_service = build_service(settings, kv=kv)
        logger.info("Site service ready (env=%s, kv=%s)", settings.env, settings.kv_backend)
        try:
            yield
        finally:
            if db is not None:
                await db.close()

    app = FastAPI(title="UMKM Site Builder", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()

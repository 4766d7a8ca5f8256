"""FastAPI application factory for the flashsearch indexing/search service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import config
from ..mappings import MappingSummaryCache
from ..query_builder import VisibilityScopedQueryBuilder
from ..reconciler import DocumentReconciler
from ..search import SearchExecutor

log = logging.getLogger(__name__)


def _attach_components(app: FastAPI, store, mapping_cache: MappingSummaryCache | None) -> None:
    indices = (config.TASKS_INDEX, config.ORGANIZATIONS_INDEX)
    cache = mapping_cache or MappingSummaryCache(store, indices)
    app.state.store = store
    app.state.mapping_cache = cache
    app.state.reconciler = DocumentReconciler(
        store,
        config.TASKS_INDEX,
        config.ORGANIZATIONS_INDEX,
        refresh_after_write=config.REFRESH_AFTER_WRITE,
    )
    app.state.query_builder = VisibilityScopedQueryBuilder(
        cache, config.TASKS_INDEX, config.ORGANIZATIONS_INDEX,
    )
    app.state.executor = SearchExecutor(store, indices)


def create_app(store=None, mapping_cache: MappingSummaryCache | None = None) -> FastAPI:
    """Build the app. A *store* passed in is used as-is and never closed."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if getattr(app.state, "store", None) is None:
            from ..store import create_client
            owned = create_client()
            _attach_components(app, owned, mapping_cache)
        try:
            yield
        finally:
            if owned is not None:
                await owned.close()

    app = FastAPI(title="flashsearch", lifespan=lifespan)
    app.state.store = None
    if store is not None:
        _attach_components(app, store, mapping_cache)

    from .middleware import WebhookSecretMiddleware
    app.add_middleware(WebhookSecretMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )

    from .routes import health, indexing, mappings, search

    app.include_router(health.router)
    app.include_router(indexing.router)
    app.include_router(search.router)
    app.include_router(mappings.router)

    # Paths used by existing webhook registrations and the frontend
    app.include_router(indexing.legacy_router, prefix="/api")
    app.include_router(search.router, prefix="/api", include_in_schema=False)

    return app

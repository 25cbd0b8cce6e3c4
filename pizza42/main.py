# pizza42/main.py
from __future__ import annotations

import logging
import time
from datetime import timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .auth import TokenVerifier
from .routes import external as external_router
from .routes import orders as orders_router
from .services.mirror_queue import MirrorQueue
from .services.order_store import OrderStore
from .services.orders import OrderService
from .services.profile_store import ProfileStoreClient
from .settings import Settings, settings as default_settings

logger = logging.getLogger("pizza42")


def _display_tz(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def create_app(
    settings: Optional[Settings] = None,
    verifier=None,
    profile_store=None,
    store: Optional[OrderStore] = None,
) -> FastAPI:
    """
    Composition root. Everything stateful is built here and hung on
    app.state; tests pass their own verifier / profile store / order store.
    """
    settings = settings or default_settings
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if verifier is None:
        settings.require_auth0()
        verifier = TokenVerifier(settings.auth0_domain, settings.auth0_audience)
    if profile_store is None:
        profile_store = ProfileStoreClient(
            settings.auth0_domain,
            settings.auth0_m2m_client_id,
            settings.auth0_m2m_client_secret,
            timeout=settings.http_timeout,
        )
    store = store if store is not None else OrderStore()
    mirror = MirrorQueue(
        profile_store.mirror_append,
        maxsize=settings.mirror_queue_size,
        workers=settings.mirror_workers,
    )

    app = FastAPI(title="Pizza 42 Orders API")
    app.state.settings = settings
    app.state.verifier = verifier
    app.state.profile_store = profile_store
    app.state.order_store = store
    app.state.mirror = mirror
    app.state.order_service = OrderService(
        store,
        profile_store=profile_store,
        mirror=mirror,
        create_scope=settings.create_orders_scope,
        read_scope=settings.read_orders_scope,
        display_tz=_display_tz(settings.display_timezone),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def _log_requests(request: Request, call_next):
        started = time.perf_counter()
        if request.url.path.startswith("/api"):
            # presence only, the token itself never goes to the log
            logger.debug(
                "%s %s authorization header present: %s",
                request.method, request.url.path, "authorization" in request.headers,
            )
        response = await call_next(request)
        logger.info(
            "%s %s %d %.1fms",
            request.method, request.url.path, response.status_code,
            (time.perf_counter() - started) * 1000,
        )
        return response

    app.include_router(orders_router.router)
    app.include_router(external_router.router)

    @app.get("/health")
    def health():
        return {"status": "ok", "mirror": mirror.stats()}

    @app.on_event("startup")
    async def _startup_mirror_queue():
        await mirror.start()

    @app.on_event("shutdown")
    async def _shutdown_mirror_queue():
        await mirror.stop()

    return app


app = create_app()

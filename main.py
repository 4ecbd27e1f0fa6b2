"""
Authentication service — application entry point.
"""

from __future__ import annotations

import logging
import sys
import time
from typing import Callable, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import register_error_handlers, register_middleware
from api.routes import router as transactions_router
from auth.jwt import TokenCodec
from auth.routes import ROUTE_PREFIX, router as auth_router
from config.settings import Settings, config
from utils.mailer import Notifier, build_notifier

logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
    stream=sys.stdout,
)
for _noisy in ("httpcore", "httpx", "urllib3", "asyncio"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    notifier: Optional[Notifier] = None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    settings = settings or config

    app = FastAPI(
        title="Auth Service",
        version="1.0.0",
        description="Signup, login, JWT route protection and password reset.",
    )

    app.state.settings = settings
    app.state.clock = clock
    app.state.token_codec = TokenCodec(settings, clock=clock)
    app.state.notifier = notifier or build_notifier(settings)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_middleware(app)
    register_error_handlers(app)

    # Routes
    app.include_router(auth_router, prefix=ROUTE_PREFIX)
    app.include_router(transactions_router, prefix="/api/v1/transactions")

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.on_event("startup")
    async def on_startup():
        if settings.create_tables:
            from database.session import create_tables

            await create_tables()
        logger.info("Application ready to accept requests.")

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="debug" if config.debug else "info",
    )

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from loyalty.api.error import ClientError, client_error_handler
from loyalty.api.routes import accounts, admin, payments

logger = logging.getLogger(__name__)


def create_app(config) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if config.DB_CREATE_TABLES:
            from sqlmodel import SQLModel
            import loyalty.domain  # noqa: F401
            from loyalty.depends import engine

            async with engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)

        sync_worker = None
        sync_task = None
        if config.SYNC_ENABLED and config.SYNC_RUN_IN_API:
            from loyalty.worker.external_sync import ExternalSyncWorker

            sync_worker = ExternalSyncWorker(config.DB_URI, config)
            sync_task = asyncio.create_task(
                sync_worker.run_forever(
                    interval_seconds=config.SYNC_INTERVAL_SECONDS,
                    full_sync_every=config.SYNC_FULL_EVERY_CYCLES,
                )
            )
            logger.info("External sync running inside the API process")

        yield

        if sync_task:
            sync_task.cancel()
            try:
                await sync_task
            except asyncio.CancelledError:
                pass
        if sync_worker:
            await sync_worker.shutdown()

    app = FastAPI(
        title="Loyalty Ledger Service",
        description="Member balances, stamps, discount codes and payment reconciliation",
        lifespan=lifespan,
    )

    if config.CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.CORS_ORIGINS,
            allow_credentials=config.CORS_ALLOW_CREDENTIALS,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(ClientError, client_error_handler)

    app.include_router(accounts.router, prefix=config.API_PREFIX)
    app.include_router(payments.router, prefix=config.API_PREFIX)
    app.include_router(admin.router, prefix=config.API_PREFIX)

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok"}

    return app

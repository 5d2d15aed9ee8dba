import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from taskhub.config import Settings, settings as default_settings
from taskhub.database import Database
from taskhub.logs import configure_logging
from taskhub.routers import auth, health, integrations
from taskhub.services.integrations import IntegrationStore, NotificationDispatcher
from taskhub.services.otp import OtpService
from taskhub.services.users import UserStore

LOGGER = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    database: Database | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db = database or Database(settings.database_url)
        db.init_db()
        client = http_client or httpx.AsyncClient(timeout=settings.webhook_timeout_seconds)

        user_store = UserStore(db)
        otp_service = OtpService(
            db,
            user_store,
            ttl_seconds=settings.otp_ttl_seconds,
            max_attempts=settings.otp_max_attempts,
        )
        integration_store = IntegrationStore(db)

        app.state.settings = settings
        app.state.otp_service = otp_service
        app.state.integration_store = integration_store
        app.state.dispatcher = NotificationDispatcher(integration_store, client)

        if settings.seed_email:
            try:
                user_store.ensure_user(settings.seed_email, settings.seed_full_name)
            except ValueError:
                LOGGER.warning("Ignoring invalid SEED_EMAIL=%s", settings.seed_email)
        otp_service.purge_expired()
        LOGGER.info("Application started")
        try:
            yield
        finally:
            if http_client is None:
                await client.aclose()
            if database is None:
                db.dispose()

    app = FastAPI(title="Taskhub Backend", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, prefix="/api")
    app.include_router(auth.router, prefix="/api")
    app.include_router(integrations.router, prefix="/api")
    return app


def main():
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()

import logging
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from privacyflow.config import settings
from privacyflow.database import Base, engine
from privacyflow.exception_handlers import register_exception_handlers
from privacyflow.middleware.rate_limit import configure_rate_limiting
from privacyflow.routes import audit, auth, consent, cron, deletion, exports, storage
from privacyflow.routes import settings as settings_routes
from privacyflow.scheduler import schedule_jobs, scheduler
from privacyflow.utils.session import get_session_manager

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Consent, data export and account deletion workflows",
        debug=settings.debug,
        version=settings.app_version,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    configure_rate_limiting(app)

    # Include routers
    app.include_router(auth.router, prefix="/auth", tags=["Auth"])
    app.include_router(consent.router, prefix="/api/v1")
    app.include_router(settings_routes.router, prefix="/api/v1")
    app.include_router(exports.router, prefix="/api/v1")
    app.include_router(deletion.router, prefix="/api/v1")
    app.include_router(audit.router, prefix="/api/v1")
    app.include_router(cron.router, prefix="/api/v1")
    app.include_router(storage.router, prefix="/api/v1")

    if settings.debug:
        logger.info(f"Running in {settings.environment} mode")
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)  # Logs SQL statements

    @app.on_event("startup")
    async def startup_event():
        """Tasks to run at application startup."""
        logger.info("Starting up the application...")
        if settings.debug:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database tables created (if not existing).")

        await get_session_manager()

        if schedule_jobs():
            scheduler.start()

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("Shutting down the application...")
        if scheduler.running:
            scheduler.shutdown(wait=False)
        manager = await get_session_manager()
        await manager.disconnect()

    @app.get("/", tags=["Root"])
    async def root():
        return {"message": f"Welcome to the {settings.app_name} API"}

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.debug)

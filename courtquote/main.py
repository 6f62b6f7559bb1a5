from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from datetime import datetime
import logging
import os

from .config import settings
from .database import engine, Base, database_state
from .errors import CatalogEntryMissing, NotFoundError, StorageError, ValidationError
from .routers import pricing, quotations

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("courtquote")

# Create tables (handles new tables but won't add columns to existing ones)
Base.metadata.create_all(bind=engine)

BASE_REVISION = "3f1c2a7b9d10"


def _run_migrations():
    """Run pending Alembic migrations on startup.

    Databases created by Base.metadata.create_all() have every table but no
    alembic_version row; those are stamped at the base revision first so
    upgrade doesn't try to recreate them.
    """
    try:
        from alembic.config import Config
        from alembic import command
        from sqlalchemy import inspect

        alembic_ini = os.path.join(os.path.dirname(__file__), "..", "alembic.ini")
        if not os.path.exists(alembic_ini):
            logger.info("alembic.ini not found, skipping migrations")
            return

        alembic_cfg = Config(alembic_ini)
        alembic_cfg.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

        insp = inspect(engine)
        tables = insp.get_table_names()
        if "alembic_version" not in tables and "rate_entries" in tables:
            logger.info("Stamping base migration %s (tables already exist)", BASE_REVISION)
            command.stamp(alembic_cfg, BASE_REVISION)

        logger.info("Running pending Alembic migrations...")
        command.upgrade(alembic_cfg, "head")
        logger.info("Migrations complete")

    except Exception as e:
        # Never let migration errors prevent app startup
        logger.warning(f"Alembic migration warning: {e}")


app = FastAPI(
    title=settings.APP_NAME,
    description="Itemized pricing for sports-court construction requests",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(quotations.router, prefix="/api")
app.include_router(pricing.router, prefix="/api")


# --- Error mapping ---

@app.exception_handler(ValidationError)
async def handle_validation_error(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": exc.reason, "field": exc.field})


@app.exception_handler(CatalogEntryMissing)
async def handle_catalog_entry_missing(request: Request, exc: CatalogEntryMissing):
    # Operator problem, not the user's: the catalog is missing a supported pair
    logger.error("Pricing configuration fault on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Pricing is not configured for this court, please contact support",
                 "error": "configuration_fault"},
    )


@app.exception_handler(NotFoundError)
async def handle_not_found(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(StorageError)
async def handle_storage_error(request: Request, exc: StorageError):
    logger.warning("Storage error on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={"detail": str(exc), "retryable": True},
        headers={"Retry-After": "5"},
    )


@app.get("/api/health")
def health():
    return {
        "status": "OK",
        "database": database_state(),
        "timestamp": datetime.utcnow().isoformat(),
    }


@app.on_event("startup")
def auto_migrate():
    """Run pending Alembic migrations on startup."""
    if settings.RUN_MIGRATIONS:
        _run_migrations()


@app.on_event("startup")
def auto_seed():
    """Create default court sizes and rates on first run."""
    if not settings.SEED_ON_STARTUP:
        return
    from .database import SessionLocal
    from .rate_catalog import RateCatalog
    db = SessionLocal()
    try:
        RateCatalog(db).ensure_defaults()
    finally:
        db.close()

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from starlette.exceptions import HTTPException as StarletteHTTPException
from routers import auth, departments, questions, reports, system
from database import create_db_engine, make_session_factory
from schema_probe import probe_schema
import models
import os
import logging
import time

# Set up logging
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

API_PREFIX = os.getenv("API_PREFIX", "/api")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


def _env_flag(name: str, default: bool = True) -> bool:
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


def prepare_database(engine: Engine, create_tables: bool = True, run_migrations: bool = True):
    """Create missing tables, add the EmojiID column, then probe optional columns."""
    if create_tables:
        try:
            models.Base.metadata.create_all(bind=engine)
        except Exception as e:
            logger.error(f"Table creation failed: {e}")

    if run_migrations:
        from add_emoji_id_migration import migrate_answers_add_emoji_id
        try:
            migrate_answers_add_emoji_id(engine)
        except Exception as e:
            logger.error(f"EmojiID migration failed: {e}")

    return probe_schema(engine)


def create_app(engine: Engine | None = None, create_tables: bool | None = None,
               run_migrations: bool | None = None) -> FastAPI:
    if create_tables is None:
        create_tables = _env_flag("CREATE_TABLES")
    if run_migrations is None:
        run_migrations = _env_flag("RUN_MIGRATIONS")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db_engine = engine or create_db_engine()
        logger.info("Starting database initialization...")
        app.state.engine = db_engine
        app.state.session_factory = make_session_factory(db_engine)
        try:
            app.state.features = prepare_database(db_engine, create_tables, run_migrations)
        except Exception as e:
            logger.error(f"Database initialization failed: {e}")
            db_engine.dispose()
            raise
        logger.info("Database initialization completed")
        try:
            yield
        finally:
            db_engine.dispose()
            logger.info("Database connections closed")

    app = FastAPI(title="Happiness Survey API", lifespan=lifespan)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # The kiosk reads "error", FastAPI clients read "detail"
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"detail": str(exc), "error": str(exc)})

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} in {process_time:.4f}s")
        return response

    # -----------------------------
    # Routers
    # -----------------------------
    app.include_router(system.router, prefix=API_PREFIX)
    app.include_router(auth.router, prefix=API_PREFIX)
    app.include_router(departments.router, prefix=API_PREFIX)
    app.include_router(questions.router, prefix=API_PREFIX)
    app.include_router(reports.router, prefix=API_PREFIX)
    app.include_router(reports.stats_router, prefix=API_PREFIX)

    @app.get("/")
    async def read_root():
        return {"message": "Welcome to the Happiness Survey API!"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=int(os.getenv("PORT", 5000)))

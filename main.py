import inspect
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from openai import AsyncOpenAI

from dal.asset_store import AssetStore
from routes.analysis_route import router as analysis_router
from routes.image_route import router as image_router
from routes.report_route import router as report_router
from routes.session_route import router as session_router
from services.activity_log import ActivityLog
from services.analysis_jobs import AnalysisJobStore
from services.auth_sessions import AuthSessionStore
from services.image_codec import ImageCodec
from services.openai.vision_classifier import VisionClassifier
from services.report_builder import ReportBuilder
from utils.auth_middleware import SessionAuthMiddleware
from utils.database_init import AsyncDatabaseInitializer
from utils.settings import Settings

BASE_DIR = Path(__file__).resolve().parent
PUBLIC_DIR = BASE_DIR / "public"

load_dotenv()  # Load environment variables from .env file if present

LOGGER = logging.getLogger(__name__)


async def _close_client(client: Any) -> None:
    """Gracefully close a client exposing a close/aclose method."""
    aclose = getattr(client, "aclose", None) or getattr(client, "close", None)
    if aclose is None:
        return
    try:
        if inspect.iscoroutinefunction(aclose):
            await aclose()
        else:
            result = aclose()
            if inspect.isawaitable(result):
                await result
    except Exception:
        # Ignore shutdown errors to avoid masking more important issues.
        LOGGER.debug("Error while closing OpenAI client", exc_info=True)


def create_app(
    settings: Optional[Settings] = None,
    db_initializer: Optional[AsyncDatabaseInitializer] = None,
    openai_client: Optional[AsyncOpenAI] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application instance.

    `db_initializer` and `openai_client` default to instances built from the
    environment at startup; tests pass their own.
    """
    settings = settings or Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Lifespan manager to initialize:
          - the asset store (SQLite metadata + asset files under DATABASE_DIR)
          - the OpenAI async client and vision classifier
          - the report builder, analysis job registry and activity log
        and attach them to `app.state`.
        """
        initializer = db_initializer or AsyncDatabaseInitializer()
        await initializer.ensure_database()
        app.state.db_initializer = initializer
        store = AssetStore(initializer)
        app.state.asset_store = store

        client = openai_client
        owns_client = client is None
        if client is None:
            try:
                # Reads OPENAI_API_KEY from the environment
                client = AsyncOpenAI()
            except Exception as exc:
                raise RuntimeError("Failed to initialize OpenAI Async client; is OPENAI_API_KEY set?") from exc
        app.state.openai_client = client

        codec = ImageCodec()
        app.state.image_codec = codec
        app.state.vision_classifier = VisionClassifier(client, model=settings.openai_model)
        app.state.report_builder = ReportBuilder(store, codec=codec)
        app.state.activity_log = ActivityLog()
        app.state.analysis_jobs = AnalysisJobStore(store, app.state.vision_classifier, app.state.activity_log)

        try:
            yield
        finally:
            await app.state.analysis_jobs.shutdown()
            if owns_client:
                await _close_client(client)

    app = FastAPI(lifespan=lifespan)
    app.state.settings = settings
    app.state.auth_sessions = AuthSessionStore(settings.admin_user, settings.admin_pass)
    app.add_middleware(SessionAuthMiddleware)

    # Serve static assets from the public directory, if it exists.
    if PUBLIC_DIR.exists():
        app.mount("/public", StaticFiles(directory=PUBLIC_DIR), name="public")

    @app.get("/", include_in_schema=False)
    @app.get("/dashboard", include_in_schema=False)
    async def serve_index():
        """
        Serve the frontend index page from the public directory.
        """
        index_path = PUBLIC_DIR / "index.html"
        if not index_path.exists():
            raise HTTPException(status_code=404, detail="Frontend not found")
        return FileResponse(index_path)

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check that verifies asset store and OpenAI client presence.
        """
        has_db = hasattr(request.app.state, "db_initializer")
        has_openai = getattr(request.app.state, "openai_client", None) is not None
        return {"ok": True, "db_initialized": has_db, "openai_available": has_openai}

    # Register application routers
    app.include_router(session_router)
    app.include_router(image_router)
    app.include_router(analysis_router)
    app.include_router(report_router)

    return app


app = create_app()

"""FastAPI application factory."""
from __future__ import annotations
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from ..config import Settings
from ..llm.base import LLMClient
from ..pipeline import BillAnalysisPipeline
from ..prompts.registry import PromptRegistry
from ..storage.database import close_db, create_tables, init_db
from ..storage.store import AnalysisStore, SqlAnalysisStore
from ..utils.logging import setup_logging
from .middleware import RequestLoggingMiddleware
from .routes import analyses, health, properties


def create_app(
    settings: Settings | None = None,
    *,
    store: AnalysisStore | None = None,
    pipeline: BillAnalysisPipeline | None = None,
    chat_client: LLMClient | None = None,
    configure_logging: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Without an injected *store* the app owns the database: the engine is
    created and tables ensured on startup and disposed on shutdown.
    """
    if settings is None:
        settings = Settings()
    if configure_logging:
        setup_logging(settings.log_level)

    owns_database = store is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        if owns_database:
            init_db(settings.database_url.get_secret_value())
            await create_tables()
        yield
        # Shutdown
        if app.state.pipeline is not None:
            await app.state.pipeline.wait_for_background()
        if owns_database:
            await close_db()

    app = FastAPI(
        title="Solar Bill Clarifier API",
        description="Solar utility bill extraction and analysis API",
        version="0.1.0",
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    # Shared objects in app state
    app.state.settings = settings
    app.state.store = store or SqlAnalysisStore()
    app.state.prompt_registry = PromptRegistry()
    app.state.pipeline = pipeline
    app.state.chat_client = chat_client

    # Register routes
    app.include_router(health.router, tags=["health"])
    app.include_router(properties.router, prefix="/properties", tags=["properties"])
    app.include_router(analyses.router, prefix="/analyses", tags=["analyses"])

    return app


def main() -> None:
    """Run the API with uvicorn on the configured host and port."""
    import uvicorn

    settings = Settings()
    uvicorn.run(
        create_app(settings),
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()

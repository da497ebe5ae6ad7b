import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from component_bus.api.router import router as pages_router
from component_bus.core.dependencies import initialize_app_dependencies
from component_bus.core.dependency_container import DependencyContainer
from component_bus.core.logging import setup_logging
from component_bus.settings import Settings

setup_logging()


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage the lifespan of the application resources.

    Initializes the dependency container on startup and tears down every live page on
    shutdown so their channel subscriptions are released.

    Args:
        app: The FastAPI application instance.

    Yields:
        None: After startup procedures are complete, allowing the application to run.

    Raises:
        RuntimeError: If the application settings or dependencies fail to initialize during startup.
    """
    logger.info("Application startup sequence initiated.")

    app_settings = Settings()
    logger.info("Settings loaded.")

    initialized_dependencies: DependencyContainer | None = None
    try:
        # Fail fast on invalid dispatch settings rather than on the first request.
        app_settings.get_scope_conflict_policy()
        app_settings.get_max_flush_events()
        initialized_dependencies = initialize_app_dependencies(app_settings)
        app.state.dependencies = initialized_dependencies
        logger.info("Core application dependencies initialized and stored in app state.")
    except Exception as init_exc:
        logger.critical(f"Fatal error during application dependency initialization: {init_exc}", exc_info=True)
        raise RuntimeError(
            f"Application startup failed due to dependency initialization error: {init_exc}"
        ) from init_exc

    yield  # Application runs here

    logger.info("Application shutdown sequence initiated.")
    page_count = len(initialized_dependencies.page_store)
    initialized_dependencies.page_store.clear()
    logger.info(f"Tore down {page_count} live page(s).")
    logger.info("Application shutdown complete.")


app = FastAPI(
    title="Component Bus",
    description="Component-scoped event routing for server-rendered pages.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["General"], status_code=200)
async def health_check():
    """Perform a basic health check.

    Returns:
        A dictionary indicating the application status.
    """
    return {"status": "ok"}


app.include_router(pages_router)


# --- Root Endpoint --- #


@app.get("/")
async def read_root():
    return {"message": "Component Bus is running."}


# --- Run with Uvicorn (for local development) --- #

if __name__ == "__main__":
    import uvicorn

    dev_settings = Settings()
    uvicorn.run(
        "component_bus.main:app",
        host=dev_settings.get_app_host(),
        port=dev_settings.get_app_port(),
        reload=dev_settings.get_app_reload(),
        log_level=dev_settings.get_log_level().lower(),
    )

import logging

from fastapi import Depends, HTTPException, Request, status

from component_bus.core.dependency_container import DependencyContainer
from component_bus.exceptions import UnknownComponentError
from component_bus.page import Page
from component_bus.settings import Settings

logger = logging.getLogger(__name__)

# --- Dependency Providers --- #


def get_dependencies(request: Request) -> DependencyContainer:
    """Dependency to retrieve the DependencyContainer from application state."""
    dependencies: DependencyContainer | None = getattr(request.app.state, "dependencies", None)
    if dependencies is None:
        logger.critical(
            "DependencyContainer not found in application state. "
            "This indicates a critical setup error in the application lifespan."
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error: Application dependencies not initialized.",
        )
    return dependencies


def get_page(page_id: str, dependencies: DependencyContainer = Depends(get_dependencies)) -> Page:
    """Dependency resolving the `page_id` path parameter to a live page."""
    try:
        return dependencies.page_store.get(page_id)
    except UnknownComponentError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)


def initialize_app_dependencies(app_settings: Settings) -> DependencyContainer:
    """Create the DependencyContainer for the application lifespan."""
    logger.info("Initializing application dependencies...")
    container = DependencyContainer(settings=app_settings)
    logger.info("Dependency Container created successfully.")
    return container

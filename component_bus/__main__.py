"""
Main entry point for running the Component Bus server.
"""

import uvicorn

from component_bus.settings import Settings


def main():
    """Run the HTTP server using host, port and reload settings from the environment."""
    settings = Settings()
    uvicorn.run(
        "component_bus.main:app",
        host=settings.get_app_host(),
        port=settings.get_app_port(),
        reload=settings.get_app_reload(),
        reload_dirs=["component_bus"] if settings.get_app_reload() else None,
        log_level=settings.get_log_level().lower(),
    )


if __name__ == "__main__":
    main()

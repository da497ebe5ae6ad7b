"""
Script to run the Component Bus server with hot reload.
"""

import os

import uvicorn
from dotenv import load_dotenv


def main():
    """Run the server with hot reload enabled."""
    load_dotenv()

    host = os.getenv("COMPONENT_BUS_HOST", "0.0.0.0")  # nosec B104
    port = int(os.getenv("COMPONENT_BUS_PORT", "8000"))
    reload = os.getenv("COMPONENT_BUS_RELOAD", "true").lower() == "true"

    uvicorn.run(
        "component_bus.main:app",
        host=host,
        port=port,
        reload=reload,
        reload_dirs=["component_bus"],  # Only watch our package directory
        log_level="debug",
    )


if __name__ == "__main__":
    main()

"""
This is the main file for the FastAPI application.
It is used to run the application in development mode.
"""

import os
import logging
import uvicorn

from knowledge_engine import create_app
from knowledge_engine.core.config.settings import settings


logger = logging.getLogger(__name__)

# Create the FastAPI app (after logging is ready)
app = create_app()

if __name__ == "__main__":
    debug_mode = os.environ.get("RELOAD", "False").lower() == "true"

    # Start Uvicorn server
    uvicorn.run(
        "run:app",
        host="0.0.0.0",
        port=settings.FASTAPI_RUN_PORT,
        reload=debug_mode,
        reload_includes=["*.py"],
        reload_excludes=["./.git", "./logs"],
        reload_dirs=["./knowledge_engine"],
        log_level=settings.LOG_LEVEL.lower(),
        log_config=None,  # Use default logging configuration
        workers=int(os.environ.get("WORKERS", 1)),
        access_log=os.environ.get("ACCESS_LOG", "False").lower() == "true",
    )

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi_injector import InjectorMiddleware, RequestScopeOptions, attach_injector
from knowledge_engine.core.config.logging import init_logging
from knowledge_engine.api.v1.routes._routes import register_routers
from knowledge_engine.core.config.settings import settings
from knowledge_engine.core.exceptions.exception_handler import init_error_handlers
from knowledge_engine.db.session import SessionManager
from knowledge_engine.dependencies.injector import injector
from knowledge_engine.modules.knowledge.vector.base import BaseVectorIndex


init_logging()
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """
    Application-factory entry-point.
    Only orchestration happens here – all heavy lifting lives in helpers.
    """
    app = FastAPI(
        title="Knowledge Engine",
        version=settings.API_VERSION,
        lifespan=_lifespan,
    )

    add_di_middleware(app)
    init_error_handlers(app)
    register_routers(app)

    return app


def add_di_middleware(app):
    app.add_middleware(InjectorMiddleware, injector=injector)
    # Enable cleanup - fastapi-injector will handle AsyncSession through context managers
    options = RequestScopeOptions(enable_cleanup=True)
    attach_injector(app, injector, options)


# --------------------------------------------------------------------------- #
# Lifespan handler                                                            #
# --------------------------------------------------------------------------- #
@asynccontextmanager
async def _lifespan(app: FastAPI):
    """
    Startup / shutdown scaffold.
    Runs **before** the first request and **after** the last response.
    """
    logger.debug("Running lifespan startup tasks …")

    session_manager = injector.get(SessionManager)
    await session_manager.initialize()

    vector_index = injector.get(BaseVectorIndex)
    if not await vector_index.initialize():
        # chunks keep being stored and are indexed later by the reindex operation
        logger.error("Vector index unavailable at startup; writes will be persisted only")

    try:
        yield
    finally:
        await vector_index.close()
        await session_manager.close()
        logger.debug("Lifespan shutdown complete.")

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from relevance_engine.core.config import settings
from relevance_engine.core.errors import ConfigurationError, NotFoundError, StateError
from relevance_engine.api.v1.endpoints.analysis import router as analysis_router
from relevance_engine.api.v1.endpoints.feed import router as feed_router
from relevance_engine.api.v1.endpoints.posts import router as posts_router
from relevance_engine.api.v1.endpoints.users import router as users_router
from relevance_engine.services.graph_service import Neo4jRepository

logging.basicConfig(level=settings.log_level.upper(), format=settings.log_format)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown events."""
    # Startup
    if settings.storage_backend == "neo4j":
        try:
            if Neo4jRepository.verify_connectivity():
                Neo4jRepository.init_constraints()
                logger.info("Neo4j connection established and constraints initialized")
            else:
                logger.warning("Neo4j connection failed - storage calls will fail until it is reachable")
        except Exception as e:
            logger.warning(f"Neo4j initialization error: {e}")
    else:
        logger.info("Using in-memory storage")

    yield

    # Shutdown
    if settings.storage_backend == "neo4j":
        Neo4jRepository.close()
        logger.info("Neo4j connection closed")


app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.error(f"Analysis unavailable: {exc}")
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(StateError)
async def state_error_handler(request: Request, exc: StateError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


app.include_router(analysis_router, prefix="/api/v1")
app.include_router(posts_router, prefix="/api/v1")
app.include_router(feed_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1")


@app.get("/health")
def health():
    return {"status": "ok"}

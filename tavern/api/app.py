import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.routing import APIRouter
from loguru import logger

from tavern.api.auth import USER_HEADER
from tavern.api.db.engine import create_engine, create_session_factory
from tavern.api.error_handlers import register_error_handlers
from tavern.api.log import REQUEST_ID_HEADER, request_context, resolve_request_id, setup_logging
from tavern.api.settings import get_settings


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    # -- Startup ---------------------------------------------------------------
    settings = get_settings()
    setup_logging(settings.log_level)

    logger.info("Tavern API starting (host={}, port={})", settings.host, settings.port)
    if not settings.auth_token:
        logger.warning("TAVERN_AUTH_TOKEN not set -- identity headers are trusted without a gateway secret")
    if not settings.admin_org_id:
        logger.warning("TAVERN_ADMIN_ORG_ID not set -- admin procedures are disabled")

    _app.state.db_engine = None
    _app.state.db_session_factory = None

    # -- Database --------------------------------------------------------------
    if settings.database_url:
        engine = create_engine(settings.database_url)
        _app.state.db_engine = engine
        _app.state.db_session_factory = create_session_factory(engine)
        logger.info("PostgreSQL: connected (pool_size=5, max_overflow=10)")
    else:
        logger.warning("TAVERN_DATABASE_URL not set -- every data endpoint will answer 503")

    yield

    # -- Shutdown --------------------------------------------------------------
    logger.info("Tavern API shutting down")
    if _app.state.db_engine is not None:
        await _app.state.db_engine.dispose()
        logger.info("PostgreSQL: disposed")


app = FastAPI(title="Tavern Platform API", lifespan=lifespan)
register_error_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
    with request_context(request_id, request.headers.get(USER_HEADER)):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(
            "{} {} -> {} in {:.1f}ms", request.method, request.url.path, response.status_code, elapsed_ms
        )
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


# ---------------------------------------------------------------------------
# API router -- all backend endpoints live under /api
# ---------------------------------------------------------------------------
api = APIRouter(prefix="/api")


@api.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


# -- Resource routers --------------------------------------------------------
from tavern.api.routers.agents import router as agents_router  # noqa: E402
from tavern.api.routers.apps import categories_router  # noqa: E402
from tavern.api.routers.apps import router as apps_router  # noqa: E402
from tavern.api.routers.artifacts import router as artifacts_router  # noqa: E402
from tavern.api.routers.chats import router as chats_router  # noqa: E402
from tavern.api.routers.datasets import router as datasets_router  # noqa: E402
from tavern.api.routers.workspaces import router as workspaces_router  # noqa: E402

api.include_router(workspaces_router)
api.include_router(apps_router)
api.include_router(categories_router)
api.include_router(agents_router)
api.include_router(chats_router)
api.include_router(artifacts_router)
api.include_router(datasets_router)

app.include_router(api)

import logging
from contextlib import asynccontextmanager

from elasticsearch import AsyncElasticsearch
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .config import settings
from .lib.impressions import ImpressionStore
from .lib.profiles import ProfileStore
from .lib.store import ContentStore
from .routers import feed, health, impressions
from .security import verify_api_key

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Request locations pydantic prefixes to a field's path
_LOCATIONS = {"body", "query", "path", "header"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the Elasticsearch client and the stores built on it."""
    logger.info("Starting StoryRank API (env=%s)", settings.environment)
    es = AsyncElasticsearch(
        settings.elasticsearch_url,
        api_key=settings.elasticsearch_api_key or None,
    )
    app.state.es = es
    app.state.content = ContentStore(es, settings)
    app.state.profiles = ProfileStore(es, settings)
    app.state.impressions = ImpressionStore(es, settings)
    try:
        yield
    finally:
        logger.info("Shutting down...")
        await es.close()


app = FastAPI(
    title="StoryRank API",
    description="Ranked feeds of works, posts and people, with impression feedback",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(feed.router)
app.include_router(impressions.router)


def first_error_message(exc: RequestValidationError) -> str:
    """``"<field>: <message>"`` for the first offending field."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    error = errors[0]
    loc = [str(part) for part in error.get("loc", ()) if part not in _LOCATIONS]
    field = ".".join(loc) or "request"
    return f"{field}: {error.get('msg', 'invalid value')}"


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=422, content={"detail": first_error_message(exc)})


@app.get("/", dependencies=[Depends(verify_api_key)])
async def root():
    return {"message": "StoryRank API"}

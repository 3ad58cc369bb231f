"""FastAPI trigger surface for the reelpipe content pipeline."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from reelpipe import __version__
from reelpipe.config import get_settings

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

settings = get_settings()

app = FastAPI(
    title="reelpipe API",
    description="Stage triggers for the short-form video content pipeline.",
    version=__version__,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------
cors_origins = settings.cors_origin_list
logger.info("CORS configured for origins: %s", cors_origins)
logger.info(
    "Job store: %s",
    "Postgres" if settings.reelpipe_database_url else f"files under {settings.data_dir / 'jobs'}",
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------
class HealthResponse(BaseModel):
    status: str
    version: str


@app.get("/health", response_model=HealthResponse)
@app.get("/api/health", response_model=HealthResponse)
async def health():
    """Liveness probe; unauthenticated."""
    return HealthResponse(status="ok", version=__version__)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
from backend.routes import jobs  # noqa: E402

app.include_router(jobs.router, prefix="/api", tags=["jobs"])

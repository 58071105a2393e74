"""FastAPI application entry point for the PropCalc deal platform API."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from propcalc_platform.app.config import get_settings
from propcalc_platform.infra.database import init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: initialize database on startup."""
    await init_db()
    if not get_settings().gemini_api_key:
        logger.warning("GEMINI_API_KEY not set; AI step reasoning is disabled")
    yield


settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.debug else logging.WARNING,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)

app = FastAPI(
    title="PropCalc Deal Platform API",
    lifespan=lifespan,
    debug=settings.debug,
)

_cors_origins = settings.cors_origins_list
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=("*" not in _cors_origins),
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Route includes
# ---------------------------------------------------------------------------
from propcalc_platform.app.routes.auth import router as auth_router
from propcalc_platform.app.routes.deals import router as deals_router, admin_router as admin_deals_router
from propcalc_platform.app.routes.calculators import router as calculators_router
from propcalc_platform.app.routes.submissions import router as submissions_router, admin_router as admin_submissions_router
from propcalc_platform.app.routes.ai import router as ai_router

app.include_router(auth_router)
app.include_router(deals_router)
app.include_router(admin_deals_router)
app.include_router(calculators_router)
app.include_router(submissions_router)
app.include_router(admin_submissions_router)
app.include_router(ai_router)


@app.get("/health", tags=["health"])
async def health_check():
    """Return service health status."""
    return {"status": "ok", "service": "propcalc-platform"}


def run() -> None:
    """Run the application with uvicorn (used by project.scripts entry point)."""
    uvicorn.run(
        "propcalc_platform.app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.db.database import close_db, init_db
from app.services.plan_generator import LlmPlanner
from app.services.plan_service import PlanService
from app.services.progress_cache import ProgressCache

logger = logging.getLogger(__name__)

# CORS: use CORS_ORIGINS (comma-separated) or local dev defaults.
if settings.cors_origins:
    _allowed_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
else:
    _allowed_origins = [
        "http://localhost:8000",
        "http://127.0.0.1:8000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    cache = ProgressCache(ttl_seconds=settings.cache_ttl_seconds)
    app.state.progress_cache = cache
    app.state.plan_service = PlanService(cache=cache, planner=LlmPlanner())
    logger.info("Daily plan engine ready (cache TTL %ss)", settings.cache_ttl_seconds)
    try:
        yield
    finally:
        cache.clear()
        await close_db()


app = FastAPI(title="Daily Plan Engine", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

# Import and register routes
from app.routes.daily_plan import router as daily_plan_router
from app.routes.progress import router as progress_router

app.include_router(daily_plan_router)
app.include_router(progress_router)


@app.get("/health")
async def health_check():
    return {"status": "ok"}

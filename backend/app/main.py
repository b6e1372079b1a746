import logging
import os
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings

# ─── Logging setup (file + console) ───
_LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
_LOG_DIR.mkdir(exist_ok=True)

_log_level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)

logging.basicConfig(
    level=_log_level,
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[
        logging.StreamHandler(),
        RotatingFileHandler(
            _LOG_DIR / "itinera.log",
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        ),
    ],
)

# Quiet noisy libraries
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

from app.routers import packages

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup — launch background scheduler
    scheduler = None
    if settings.scheduler_enabled:
        try:
            from apscheduler.schedulers.asyncio import AsyncIOScheduler
            from apscheduler.triggers.interval import IntervalTrigger

            scheduler = AsyncIOScheduler()

            async def _refresh_weather():
                from app.database import async_session_factory
                from app.services.weather_cache import weather_cache
                count = await weather_cache.refresh_all(async_session_factory)
                if count:
                    logger.info(f"Weather refresh: {count} snapshots stored")

            scheduler.add_job(
                _refresh_weather,
                IntervalTrigger(hours=settings.weather_refresh_interval_hours),
                id="weather_refresh",
            )

            scheduler.start()
            logger.info("Background scheduler started")
        except ImportError:
            logger.warning("APScheduler not installed — background jobs disabled")
        except Exception as e:
            logger.error(f"Scheduler failed to start: {e}")

    yield

    # Shutdown
    if scheduler:
        scheduler.shutdown(wait=False)
        logger.info("Background scheduler stopped")

    from app.services.amadeus_client import amadeus_client
    from app.services.cache_service import cache_service
    from app.services.forecast_client import forecast_client
    await amadeus_client.close()
    await forecast_client.close()
    await cache_service.close()


app = FastAPI(
    title="Itinera",
    description="Travel package generation and booking",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": "Bad Request", "details": details})


app.include_router(packages.router, prefix="/api/packages", tags=["packages"])


@app.get("/api/health")
async def health_check():
    return {"status": "ok", "service": "itinera"}

from contextlib import asynccontextmanager

import requests
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import Settings, configure_logging
from exceptions import ConfigurationError, DestinationError, RouteNotFoundError
from scheduler import start_scheduler
from services import AnalyticsPipeline, build_pipeline


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    settings = Settings.from_env()
    app.state.pipeline = build_pipeline(settings)

    scheduler = start_scheduler(app.state.pipeline) if settings.enable_scheduler else None
    yield
    if scheduler is not None:
        scheduler.shutdown(wait=False)


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"]
)


def get_pipeline(request: Request) -> AnalyticsPipeline:
    return request.app.state.pipeline


# ============================================================================
# ANALYTICS ENDPOINTS
# ============================================================================

@app.get("/api/analytics/routes/{route_id}")
def route_analytics(route_id: int, pipeline: AnalyticsPipeline = Depends(get_pipeline)):
    """
    Traffic summary, 7-day predictions and a short narrative for one route.
    """
    try:
        return pipeline.generate_route_analytics(route_id)
    except RouteNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.post("/api/analytics/refresh")
def refresh_routes(pipeline: AnalyticsPipeline = Depends(get_pipeline)):
    return pipeline.refresh_all_routes()


@app.post("/api/analytics/weekly")
def weekly_rollup(week_offset: int = Query(0, le=0), pipeline: AnalyticsPipeline = Depends(get_pipeline)):
    """
    Roll up one week for every route (0 = current week, -1 = last week).
    """
    return pipeline.run_weekly_rollup(week_offset)


@app.post("/api/analytics/collect")
def collect_traffic(pipeline: AnalyticsPipeline = Depends(get_pipeline)):
    try:
        result = pipeline.collect_daily_traffic()
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return JSONResponse(status_code=200 if result["success"] else 207, content=result)


@app.get("/api/analytics/collect/status")
def collect_status(pipeline: AnalyticsPipeline = Depends(get_pipeline)):
    try:
        return pipeline.collection_status()
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e))


# ============================================================================
# BOOKING ENDPOINTS
# ============================================================================

@app.get("/api/bookings/frequency")
def booking_frequency(days: int = Query(14, ge=1, le=365), pipeline: AnalyticsPipeline = Depends(get_pipeline)):
    """
    Daily booking counts for the trailing window and a 7-day forecast.
    Cached for CACHE_TTL_SECONDS.
    """
    return pipeline.get_booking_frequency(days)


@app.post("/api/bookings/frequency/persist")
def persist_booking_frequency(days: int = Query(14, ge=1, le=365), pipeline: AnalyticsPipeline = Depends(get_pipeline)):
    try:
        return pipeline.persist_booking_frequency(days)
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except (DestinationError, requests.RequestException) as e:
        raise HTTPException(status_code=502, detail=str(e))


# ============================================================================
# MIGRATION / STATUS ENDPOINTS
# ============================================================================

@app.get("/api/admin/migration/status")
def migration_status(pipeline: AnalyticsPipeline = Depends(get_pipeline)):
    status = pipeline.check_migration_readiness()
    return JSONResponse(status_code=200 if status.is_ready else 503, content=status.to_dict())


@app.post("/api/admin/migration/run")
def run_migration(pipeline: AnalyticsPipeline = Depends(get_pipeline)):
    """
    Copy cached traffic rows to QuestDB in batches.

    400 when the stores are not ready, 207 when some batches failed,
    500 when nothing could be migrated.
    """
    status = pipeline.check_migration_readiness()
    if not status.is_ready:
        return JSONResponse(
            status_code=400,
            content={"message": "Migration is not ready", "status": status.to_dict()},
        )

    result = pipeline.run_migration(status)
    if result.success:
        code = 200
    elif result.processed_records > 0:
        code = 207
    else:
        code = 500
    return JSONResponse(status_code=code, content=result.to_dict())


@app.get("/api/status/questdb")
def questdb_status(pipeline: AnalyticsPipeline = Depends(get_pipeline)):
    return pipeline.questdb_status()

# app/main.py
"""
FastAPI application entry point.
Includes error handlers, all routers, and the background scheduler that
drives map refresh, simulated movement and dashboard stats.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from app.routers import vehicles, vehicle_types, live_map, simulation, dashboard, health
from app.database import create_tables
from app.dependencies import get_fleet, init_fleet
from app.exceptions import FleetError
from app.services.demo_fleet import seed_demo_fleet
from app.config import settings
from app.utils.logger import get_logger
from app.utils.ws_manager import map_manager
import time
import asyncio

logger = get_logger(__name__)

app = FastAPI(
    title="NEXSE Fleet Map API",
    description="Vehicle presence, approval and simulated movement inside Iraq.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (map and dashboard pages call the API from the browser) ────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],   # Restrict to the web app origin in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} -> {response.status_code} ({duration}ms)")
    return response


# ── Exception Handlers ───────────────────────────────────────────────────────
@app.exception_handler(FleetError)
async def fleet_error_handler(request: Request, exc: FleetError):
    logger.warning(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(vehicles.router,      prefix="/api/v1", tags=["🚕 Vehicles"])
app.include_router(vehicle_types.router, prefix="/api/v1", tags=["🏷️  Vehicle Types"])
app.include_router(live_map.router,      prefix="/api/v1", tags=["🗺️  Map"])
app.include_router(simulation.router,    prefix="/api/v1", tags=["🎲 Simulation"])
app.include_router(dashboard.router,     prefix="/api/v1", tags=["📊 Dashboard"])
app.include_router(health.router,        prefix="/api/v1", tags=["💚 Health"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 NEXSE Fleet backend starting up...")
    create_tables()
    logger.info("✅ Database tables ready")

    fleet = init_fleet()
    fleet.snapshots.add_surface(map_manager)
    logger.info(f"🚦 Vehicle types enabled: {sorted(k.value for k in fleet.registry.enabled_ids())}")

    if settings.SEED_DEMO_FLEET:
        seed_demo_fleet(fleet.store, fleet.geofence)

    fleet.snapshots.refresh()
    fleet.dashboard.refresh()

    if settings.SCHEDULER_ENABLED:
        app.state.scheduler_task = asyncio.create_task(fleet.scheduler.run())
        logger.info(f"⏱  Scheduler started: {settings.SCHEDULE}")
    logger.info(f"🌐 Listening on http://{settings.BACKEND_HOST}:{settings.BACKEND_PORT}")
    logger.info("📖 API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 NEXSE Fleet backend shutting down...")
    fleet = get_fleet()
    fleet.scheduler.stop()
    fleet.tracker.stop_all()
    task = getattr(app.state, "scheduler_task", None)
    if task is not None:
        await task

"""
FastAPI Application Entry Point

Food Truck Offline Sync - local control API
Exposes the sync engine's consumer API so headless clients and the admin
dashboard can queue mutations, trigger drains and settle conflicts.

Endpoints:
    - POST /api/queue: Queue a mutation
    - GET /api/queue: Queue contents in drain order
    - DELETE /api/queue: Discard all queued mutations
    - DELETE /api/queue/{action_id}: Discard a queued mutation
    - GET /api/conflicts: Unresolved conflicts
    - POST /api/conflicts/{action_id}/resolve: Keep server or local version
    - POST /api/sync: Run one drain pass now
    - POST /api/sync/auto: Start or stop periodic sync
    - GET /api/sync/status: Engine status
    - PUT /api/connectivity: Report connectivity (manual monitor only)
    - GET /api/events: Recent sync events
    - GET /health: System health check

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Depends, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Internal imports
from offline_sync.core.config import get_settings, setup_logging
from offline_sync.core.errors import PersistenceError
from offline_sync.engine import SyncEngine, build_sync_engine
from offline_sync.schemas import (
    AutoSyncRequest,
    ConflictListResponse,
    ConnectivityUpdate,
    EnqueueRequest,
    EnqueueResponse,
    ErrorResponse,
    HealthResponse,
    QueueSnapshotResponse,
    ResolveConflictRequest,
    ResolveConflictResponse,
    SyncEventListResponse,
    SyncEventResponse,
    SyncPassResponse,
    SyncStatusResponse,
    default_priority,
    utc_now,
)
from offline_sync.services.connectivity import ManualConnectivityMonitor

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Build the sync engine on startup and release it on shutdown.

    `app.state.engine_factory` may be set beforehand to supply a
    differently wired engine.
    """
    logger.info("=" * 60)
    logger.info(f"🚚 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Storage: {settings.storage_backend.value}")
    logger.info("=" * 60)

    engine_factory = getattr(app.state, "engine_factory", build_sync_engine)
    engine: SyncEngine = engine_factory(settings)
    await engine.load()
    await engine.connectivity.start()
    app.state.engine = engine

    logger.info(f"✅ Transport: {engine.transport.provider_name}")
    logger.info(f"✅ Connectivity: {engine.connectivity.provider_name}")
    logger.info(f"✅ Storage: {engine.storage.provider_name} ({engine.queue_length} queued)")

    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"⚠️ Missing production config: {missing}")

    if settings.auto_sync_on_startup:
        engine.start_auto_sync(settings.sync_interval_ms)

    logger.info("✅ Application ready!")

    yield  # Application runs

    logger.info("Shutting down...")
    await engine.connectivity.stop()
    await engine.close()
    app.state.engine = None
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Offline-first sync engine for the food truck app. Queues mutations "
        "while offline and replays them against the API server on reconnect."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_engine(request: Request) -> SyncEngine:
    """Dependency returning the engine built in the lifespan."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Sync engine not started",
        )
    return engine


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"🚚 Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "status": "/api/sync/status",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(engine: SyncEngine = Depends(get_engine)) -> HealthResponse:
    """Verify storage and the API server are usable."""
    storage_status = "healthy" if await engine.storage.health_check() else "unhealthy"
    transport_status = "healthy" if await engine.transport.health_check() else "unreachable"
    connectivity_status = "online" if engine.connectivity.is_online else "offline"

    # Being offline is the normal case for this service, not a fault
    overall = "operational" if storage_status == "healthy" else "degraded"

    return HealthResponse(
        status=overall,
        storage=storage_status,
        transport=transport_status,
        connectivity=connectivity_status,
        timestamp=utc_now(),
    )


# =============================================================================
# QUEUE ENDPOINTS
# =============================================================================

@app.post(
    "/api/queue",
    response_model=EnqueueResponse,
    status_code=status.HTTP_201_CREATED,
    responses={503: {"model": ErrorResponse}},
    tags=["Queue"],
    summary="Queue a Mutation",
)
async def enqueue_action(
    request: EnqueueRequest,
    engine: SyncEngine = Depends(get_engine),
) -> EnqueueResponse:
    """
    Queue a mutation for replay.

    The action is persisted before this returns; it will be sent on the
    next drain pass while online.
    """
    action_id = await engine.enqueue(
        request.type,
        request.payload,
        priority=request.priority,
        max_retries=request.max_retries,
        metadata=request.metadata,
    )
    return EnqueueResponse(
        success=True,
        action_id=action_id,
        priority=request.priority or default_priority(request.type),
        queue_length=engine.queue_length,
    )


@app.get(
    "/api/queue",
    response_model=QueueSnapshotResponse,
    tags=["Queue"],
    summary="List Queued Mutations",
)
async def get_queue(engine: SyncEngine = Depends(get_engine)) -> QueueSnapshotResponse:
    actions = engine.get_queue_snapshot()
    return QueueSnapshotResponse(
        total=len(actions),
        sync_state=engine.sync_state,
        last_sync_time=engine.last_sync_time,
        actions=actions,
    )


@app.delete(
    "/api/queue",
    responses={503: {"model": ErrorResponse}},
    tags=["Queue"],
    summary="Discard All Queued Mutations",
)
async def clear_queue(engine: SyncEngine = Depends(get_engine)) -> dict:
    """Empty the queue. Unresolved conflicts are kept."""
    cleared = await engine.clear_queue()
    return {"success": True, "cleared": cleared, "queue_length": engine.queue_length}


@app.delete(
    "/api/queue/{action_id}",
    responses={404: {"model": ErrorResponse}},
    tags=["Queue"],
    summary="Discard a Queued Mutation",
)
async def remove_action(
    action_id: str,
    engine: SyncEngine = Depends(get_engine),
) -> dict:
    removed = await engine.remove_action(action_id)
    if removed is None:
        raise HTTPException(status_code=404, detail=f"Action {action_id} not queued")
    return {"success": True, "action_id": action_id, "queue_length": engine.queue_length}


# =============================================================================
# CONFLICT ENDPOINTS
# =============================================================================

@app.get(
    "/api/conflicts",
    response_model=ConflictListResponse,
    tags=["Conflicts"],
    summary="List Unresolved Conflicts",
)
async def list_conflicts(engine: SyncEngine = Depends(get_engine)) -> ConflictListResponse:
    conflicts = engine.get_conflicts()
    return ConflictListResponse(total=len(conflicts), conflicts=conflicts)


@app.post(
    "/api/conflicts/{action_id}/resolve",
    response_model=ResolveConflictResponse,
    tags=["Conflicts"],
    summary="Resolve a Conflict",
)
async def resolve_conflict(
    action_id: str,
    request: ResolveConflictRequest,
    engine: SyncEngine = Depends(get_engine),
) -> ResolveConflictResponse:
    """
    Keep the server version (`use_server=true`) or re-send the local
    change at high priority (`use_server=false`).

    Resolving a conflict that is already settled (or unknown) changes
    nothing and answers 200 with `success=false`.
    """
    resolution = await engine.resolve_conflict(action_id, request.use_server)
    if resolution is None:
        return ResolveConflictResponse(
            success=False,
            action_id=action_id,
            message=f"No unresolved conflict for {action_id}",
        )

    message = (
        "Server version applied locally"
        if resolution.use_server
        else f"Local change re-queued as {resolution.requeued_action_id}"
    )
    return ResolveConflictResponse(
        success=True,
        action_id=action_id,
        resolution=resolution.resolution,
        requeued_action_id=resolution.requeued_action_id,
        message=message,
    )


# =============================================================================
# SYNC ENDPOINTS
# =============================================================================

@app.post(
    "/api/sync",
    response_model=SyncPassResponse,
    tags=["Sync"],
    summary="Run a Drain Pass",
)
async def trigger_sync(engine: SyncEngine = Depends(get_engine)) -> SyncPassResponse:
    """
    Run one drain pass and wait for it.

    `started` is false when a pass was already running, the client is
    offline or the queue is empty.
    """
    result = await engine.sync_queue()
    if result is None:
        return SyncPassResponse(started=False, sync_state=engine.sync_state)
    return SyncPassResponse(**result.to_dict())


@app.post(
    "/api/sync/auto",
    response_model=SyncStatusResponse,
    tags=["Sync"],
    summary="Start or Stop Auto-Sync",
)
async def configure_auto_sync(
    request: AutoSyncRequest,
    engine: SyncEngine = Depends(get_engine),
) -> SyncStatusResponse:
    if request.enabled:
        engine.start_auto_sync(request.interval_ms)
    else:
        engine.stop_auto_sync()
    return SyncStatusResponse(**engine.status())


@app.get(
    "/api/sync/status",
    response_model=SyncStatusResponse,
    tags=["Sync"],
    summary="Engine Status",
)
async def sync_status(engine: SyncEngine = Depends(get_engine)) -> SyncStatusResponse:
    return SyncStatusResponse(**engine.status())


@app.put(
    "/api/connectivity",
    responses={409: {"model": ErrorResponse}},
    tags=["Sync"],
    summary="Report Connectivity",
)
async def update_connectivity(
    update: ConnectivityUpdate,
    engine: SyncEngine = Depends(get_engine),
) -> dict:
    """
    Push a connectivity change from the host application.

    Going online schedules an immediate drain pass. Only available when
    the manual monitor is active; the HTTP probe decides for itself.
    """
    monitor = engine.connectivity
    if not isinstance(monitor, ManualConnectivityMonitor):
        raise HTTPException(
            status_code=409,
            detail=f"Connectivity is managed by {monitor.provider_name}",
        )

    state = monitor.set_connected(
        update.is_connected,
        is_internet_reachable=update.is_internet_reachable,
        connection_type=update.type,
    )
    return {"success": True, **state.to_dict(), "is_online": state.is_online}


@app.get(
    "/api/events",
    response_model=SyncEventListResponse,
    tags=["Sync"],
    summary="Recent Sync Events",
)
async def list_events(
    limit: Optional[int] = Query(50, ge=1, le=1000),
    engine: SyncEngine = Depends(get_engine),
) -> SyncEventListResponse:
    events = engine.events.history(limit)
    return SyncEventListResponse(
        total=len(events),
        events=[SyncEventResponse(**e.to_dict()) for e in events],
    )


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(PersistenceError)
async def persistence_exception_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    """Storage failures leave the queue unchanged; the client may retry."""
    logger.error(f"Persistence failure on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={
            "success": False,
            "error": "Storage Unavailable",
            "detail": str(exc),
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )


# =============================================================================
# DEVELOPMENT SERVER
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "offline_sync.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )

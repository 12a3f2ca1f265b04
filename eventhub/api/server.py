"""FastAPI application for the media cache and background jobs.

Provides HTTP endpoints for:
- /health, /ready, /live - Health and Kubernetes probes
- /metrics - Prometheus metrics in text format
- /jobs, /jobs/history, /jobs/{job_id} - Background job status
- /cache/stats - Media cache statistics
- /media/{category}/{name} - Cache-through media delivery with ETags

Usage:
    from eventhub.api.server import AppContext, create_app

    context = AppContext.from_config(config, media_loader=load_from_gridfs)
    app = create_app(context)
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse, PlainTextResponse

from eventhub.api.checks import HealthChecker, HealthStatus
from eventhub.models.cache import MediaCategory
from eventhub.models.config import EventHubConfig
from eventhub.observability.logging import get_logger
from eventhub.observability.metrics import get_metrics_content_type, get_metrics_text
from eventhub.orchestration.batch_dispatcher import BatchDispatcher, LiveUpdateChannel
from eventhub.scheduling.jobs import CacheHealthCheckJob, JobHistoryReportJob
from eventhub.scheduling.scheduler import MaintenanceScheduler
from eventhub.services.job_tracker import JobTracker
from eventhub.services.media_cache_service import MediaCacheService
from eventhub.services.media_delivery import MediaDeliveryService, MediaLoader

logger = get_logger("api_server")


@dataclass
class AppContext:
    """Constructed services shared by the API, scheduler and dispatcher"""

    config: EventHubConfig
    cache: MediaCacheService
    tracker: JobTracker
    dispatcher: BatchDispatcher
    delivery: MediaDeliveryService
    health_checker: HealthChecker
    scheduler: Optional[MaintenanceScheduler] = None
    media_loader: Optional[MediaLoader] = None

    @classmethod
    def from_config(
        cls,
        config: EventHubConfig,
        media_loader: Optional[MediaLoader] = None,
        channel: Optional[LiveUpdateChannel] = None,
        with_scheduler: bool = False,
    ) -> "AppContext":
        """Wire all services from configuration.

        Args:
            config: Validated configuration
            media_loader: Async source for media on cache misses
            channel: Live-update channel for job progress pushes
            with_scheduler: Create the maintenance scheduler and its jobs
        """
        cache = MediaCacheService(config.media_cache)
        tracker = JobTracker(config.jobs)
        dispatcher = BatchDispatcher(tracker, config.dispatch, channel=channel)
        delivery = MediaDeliveryService(cache, config.http_cache)
        health_checker = HealthChecker(
            cache,
            tracker,
            active_jobs_warning=config.jobs.active_jobs_warning,
        )

        scheduler = None
        if with_scheduler:
            scheduler = MaintenanceScheduler()
            scheduler.add_job(
                CacheHealthCheckJob(cache),
                job_id="media_cache_health",
                trigger="interval",
                seconds=config.media_cache.health_check_interval_seconds,
            )
            scheduler.add_job(
                JobHistoryReportJob(tracker),
                job_id="job_history_report",
                trigger="interval",
                seconds=config.media_cache.health_check_interval_seconds,
            )

        return cls(
            config=config,
            cache=cache,
            tracker=tracker,
            dispatcher=dispatcher,
            delivery=delivery,
            health_checker=health_checker,
            scheduler=scheduler,
            media_loader=media_loader,
        )


def create_app(
    context: AppContext,
    title: str = "EventHub Media API",
    version: str = "1.0.0",
) -> FastAPI:
    """Create FastAPI application bound to a service context.

    Args:
        context: Constructed services
        title: API title
        version: API version

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("api_server_starting")
        if context.scheduler is not None:
            context.scheduler.start()
        yield
        if context.scheduler is not None:
            await context.scheduler.shutdown()
        logger.info("api_server_stopping")

    app = FastAPI(
        title=title,
        version=version,
        description="Media cache, background job status and health endpoints",
        lifespan=lifespan,
    )
    app.state.context = context

    # ==================== Health ====================

    @app.get(
        "/health",
        response_model=None,
        summary="Full health check",
        responses={
            200: {"description": "Healthy or degraded"},
            503: {"description": "One or more checks failed"},
        },
    )
    async def health_check() -> Response:
        report = await context.health_checker.check_all()

        status_code = (
            status.HTTP_200_OK
            if report.status != HealthStatus.UNHEALTHY
            else status.HTTP_503_SERVICE_UNAVAILABLE
        )
        return JSONResponse(content=report.to_dict(), status_code=status_code)

    @app.get("/ready", response_model=None, summary="Readiness probe")
    async def readiness_probe() -> Response:
        if await context.health_checker.is_ready():
            return JSONResponse(
                content={"ready": True, "message": "Service is ready"},
                status_code=status.HTTP_200_OK,
            )
        return JSONResponse(
            content={"ready": False, "message": "Service is not ready"},
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    @app.get("/live", response_model=None, summary="Liveness probe")
    async def liveness_probe() -> Response:
        is_alive = await context.health_checker.is_alive()
        return JSONResponse(
            content={"alive": is_alive, "message": "Service is alive"},
            status_code=status.HTTP_200_OK,
        )

    @app.get(
        "/metrics",
        response_class=PlainTextResponse,
        summary="Prometheus metrics",
    )
    async def prometheus_metrics() -> Response:
        return Response(
            content=get_metrics_text(),
            media_type=get_metrics_content_type(),
        )

    # ==================== Jobs ====================

    @app.get("/jobs", summary="Active background jobs")
    async def list_active_jobs() -> List[Dict[str, Any]]:
        return [job.model_dump(mode="json") for job in context.tracker.get_active_jobs()]

    @app.get("/jobs/history", summary="Finished background jobs, newest first")
    async def list_job_history(
        limit: Optional[int] = Query(default=None, ge=1, le=10000),
    ) -> List[Dict[str, Any]]:
        return [
            job.model_dump(mode="json") for job in context.tracker.get_history(limit)
        ]

    @app.get("/jobs/{job_id}", summary="Background job by ID")
    async def get_job(job_id: str) -> Dict[str, Any]:
        job = context.tracker.get_job(job_id)
        if job is None:
            raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")
        return job.model_dump(mode="json")

    # ==================== Cache ====================

    @app.get("/cache/stats", summary="Media cache statistics")
    async def cache_stats() -> Dict[str, Any]:
        return context.cache.stats().model_dump(mode="json")

    @app.get(
        "/media/{category}/{name:path}",
        response_model=None,
        summary="Cache-through media delivery",
        responses={
            200: {"description": "Media content"},
            304: {"description": "Client copy is current"},
            404: {"description": "Media not found"},
        },
    )
    async def get_media(category: MediaCategory, name: str, request: Request) -> Response:
        if context.media_loader is None:
            media = context.delivery.get_cached(name, category)
        else:
            try:
                media = await context.delivery.fetch(
                    name, context.media_loader, category
                )
            except (FileNotFoundError, KeyError):
                media = None

        if media is None:
            raise HTTPException(status_code=404, detail=f"Media not found: {name}")

        result = context.delivery.build_response(request.headers, media)
        if result.body is None:
            return Response(status_code=result.status_code, headers=result.headers)
        return Response(
            content=result.body,
            status_code=result.status_code,
            headers=result.headers,
            media_type=result.media_type,
        )

    @app.get("/", response_model=None, summary="Root endpoint")
    async def root() -> Dict[str, Any]:
        return {
            "name": title,
            "version": version,
            "endpoints": {
                "health": "/health",
                "ready": "/ready",
                "live": "/live",
                "metrics": "/metrics",
                "jobs": "/jobs",
                "cache": "/cache/stats",
            },
        }

    return app


async def run_server_async(  # pragma: no cover
    context: AppContext,
    host: str = "0.0.0.0",
    port: int = 8000,
    log_level: str = "info",
) -> None:
    """Run the API server (and its scheduler) until interrupted."""
    import uvicorn

    app = create_app(context)
    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level=log_level,
        access_log=True,
    )
    server = uvicorn.Server(config)

    logger.info("api_server_listening", host=host, port=port)
    await server.serve()

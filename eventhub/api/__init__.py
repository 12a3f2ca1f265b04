"""HTTP API module.

Provides:
- Health checks for the media cache and job registry
- FastAPI app with health, metrics, job status, cache stats and media routes

Usage:
    from eventhub.api import AppContext, create_app

    context = AppContext.from_config(config)
    app = create_app(context)
    uvicorn.run(app, host="0.0.0.0", port=8000)
"""

from eventhub.api.checks import CheckResult, CheckStatus, HealthChecker, HealthStatus
from eventhub.api.server import AppContext, create_app, run_server_async

__all__ = [
    "HealthChecker",
    "HealthStatus",
    "CheckStatus",
    "CheckResult",
    "AppContext",
    "create_app",
    "run_server_async",
]

"""
FastAPI server for the scheduler API. Run with run_api_server(app) in a background thread.
Central endpoint: GET /api/tasks. Prayer routes come from prayer_scheduler.prayer.api
(get_router(scheduler_app)) under /api/prayer/.
Docs when enabled: http://<host>:<port>/docs
"""
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI

from prayer_scheduler.core.models import get_all_task_schedules
from prayer_scheduler.prayer.api import get_router as get_prayer_router

logger = logging.getLogger(__name__)


def _serialize_datetime(dt: Optional[datetime]) -> Optional[str]:
    """Serialize datetime to ISO string (UTC)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def create_app(scheduler_app: Any) -> FastAPI:
    """Create FastAPI app with routes that use the given SchedulerApp instance."""
    app = FastAPI(title="Prayer Scheduler API", description="Armed prayer notifications, reconcile runs, tasks")

    @app.get("/api/tasks")
    def list_tasks() -> Dict[str, Any]:
        """List scheduled tasks: DB schedules and active in-memory timers."""
        db_schedules = get_all_task_schedules()
        for row in db_schedules:
            row["next_run_at"] = _serialize_datetime(row.get("next_run_at"))
            row["last_run_at"] = _serialize_datetime(row.get("last_run_at"))

        active_list = [
            {"name": t["name"], "next_run_at": _serialize_datetime(t["next_run_at"])}
            for t in scheduler_app.task_manager.get_active_timers()
        ]
        return {"db_schedules": db_schedules, "active_timers": active_list}

    app.include_router(get_prayer_router(scheduler_app), prefix="/api/prayer")
    return app


def run_api_server(scheduler_app: Any) -> None:
    """
    Start the API server in a daemon thread if api.enabled is true.
    Reads api.host (default 127.0.0.1) and api.port (default 8765) from config.
    """
    api_config = scheduler_app.config.get_section("api")
    if not api_config.get("enabled", False):
        logger.info("API server not started: set api.enabled to true in your config file to enable.")
        return
    host = api_config.get("host", "127.0.0.1")
    port = int(api_config.get("port", 8765))
    fastapi_app = create_app(scheduler_app)

    def run_uvicorn():
        try:
            import uvicorn
            logger.info(f"API server listening at http://{host}:{port} (docs at /docs)")
            uvicorn.run(fastapi_app, host=host, port=port, log_config=None)
        except Exception as e:
            logger.exception(f"API server thread failed: {e}")

    thread = threading.Thread(target=run_uvicorn, daemon=True)
    thread.start()
    logger.info("API server thread started.")

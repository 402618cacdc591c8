"""
Per-plugin API for the prayer scheduler. Mounted at /api/prayer/.
Uses ORM rows with Pydantic from_attributes.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, ConfigDict

from prayer_scheduler.core.errors import USER_NOTICE, ConfigError, ProviderFailure, StoreCorruption
from prayer_scheduler.prayer.events import Location
from prayer_scheduler.prayer.service import get_armed_records, get_recent_runs


class ArmedNotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    event_id: str
    handle: str
    scheduled_at: datetime
    label: str
    armed_at: datetime
    fired_at: Optional[datetime] = None


class ReconcileRunResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    trigger: str
    started_at: datetime
    window_size: int
    armed_count: int
    cancelled_count: int
    drifted_count: int
    failed_count: int
    partial: bool
    skipped_reason: Optional[str] = None
    error: Optional[str] = None


def _run_trigger(run: Any) -> Dict[str, Any]:
    try:
        return run().to_dict()
    except (ConfigError, ProviderFailure) as e:
        raise HTTPException(status_code=502, detail={"notice": USER_NOTICE, "error": str(e)})
    except StoreCorruption as e:
        raise HTTPException(status_code=503, detail={"notice": USER_NOTICE, "error": str(e)})


def get_router(scheduler_app) -> Optional[APIRouter]:
    """Return router for this plugin; mounted with prefix /api/prayer."""
    router = APIRouter(tags=["Prayer Scheduler"])

    @router.get("/armed", response_model=List[ArmedNotificationResponse])
    def list_armed() -> List[ArmedNotificationResponse]:
        """Armed notifications, earliest first."""
        return [ArmedNotificationResponse.model_validate(r) for r in get_armed_records()]

    @router.get("/runs", response_model=List[ReconcileRunResponse])
    def list_runs(limit: int = Query(20, ge=1, le=500)) -> List[ReconcileRunResponse]:
        """Most recent reconcile runs first."""
        return [ReconcileRunResponse.model_validate(r) for r in get_recent_runs(limit)]

    @router.post("/reconcile")
    def reconcile() -> Dict[str, Any]:
        """Run an on-demand reconcile and return its result."""
        return _run_trigger(scheduler_app.triggers.reconcile_now)

    @router.put("/location")
    def update_location(location: Location) -> Dict[str, Any]:
        """Save a new location and reconcile against it."""
        try:
            scheduler_app.config.save_location(location)
        except ConfigError as e:
            raise HTTPException(status_code=500, detail={"error": str(e)})
        return _run_trigger(lambda: scheduler_app.triggers.run("preferences"))

    return router

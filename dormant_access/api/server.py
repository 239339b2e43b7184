"""
FastAPI Server for the Dormant Access Engine.

Provides REST API endpoints for scanning tenants, driving the revocation
workflow and managing per-tenant configuration.
"""

import json
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from ..detector import DormantAccessDetector
from ..errors import ConfigValidationError, InvalidTransition, RecordNotFound
from ..events.emitter import InMemoryEventBus
from ..models import (
    AuditRecord,
    AutoRevocationResult,
    DormantAccessConfig,
    DormantAccessRecord,
    DormantCategory,
    RecordStatus,
    ScanResult,
)

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "DORMANT_ENGINE_CONFIG"


class ApproveRequest(BaseModel):
    """Revocation approval request."""
    approved_by: str = Field(..., description="Approver identifier")


class ExemptRequest(BaseModel):
    """Exemption request."""
    exempted_by: str = Field(..., description="Who grants the exemption")
    reason: str = Field(..., description="Why the access is kept")


class ConfigUpdateRequest(BaseModel):
    """Partial configuration update; omitted fields keep their values."""
    warning_days: Optional[int] = None
    critical_days: Optional[int] = None
    auto_revoke_days: Optional[int] = None
    exclude_admins: Optional[bool] = None
    exclude_service_accounts: Optional[bool] = None
    require_approval: Optional[bool] = None
    notify_user: Optional[bool] = None
    notify_manager: Optional[bool] = None
    grace_period_days: Optional[int] = None


# Global components (initialized on startup unless already set)
detector: Optional[DormantAccessDetector] = None
event_bus: Optional[InMemoryEventBus] = None


def create_detector() -> DormantAccessDetector:
    """Build the detector from the JSON engine config named by DORMANT_ENGINE_CONFIG."""
    global event_bus

    config = {"mock_mode": True}
    config_path = os.environ.get(CONFIG_ENV_VAR)
    if config_path:
        with open(config_path, encoding="utf-8") as f:
            config.update(json.load(f))
        logger.info(f"Loaded engine configuration from {config_path}")

    event_bus = InMemoryEventBus()
    return DormantAccessDetector.from_config(config, event_bus=event_bus)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global detector

    if detector is None:
        logger.info("Initializing Dormant Access Engine API server components")
        detector = create_detector()

    yield

    logger.info("Shutting down Dormant Access Engine API server")


app = FastAPI(
    title="Dormant Access Engine API",
    description="Dormant access detection and revocation lifecycle - REST API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _detector() -> DormantAccessDetector:
    if detector is None:
        raise HTTPException(status_code=503, detail="Detector not available")
    return detector


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Dormant Access Engine API", "version": "1.0.0", "status": "running"}


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy" if detector is not None else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {
            "detector": detector is not None,
            "event_bus": event_bus is not None,
            "audit_logger": detector is not None and detector.audit_logger is not None,
        },
    }


@app.get("/tenants/{tenant_id}/scan", response_model=ScanResult)
def scan_tenant(tenant_id: str):
    """Scan a tenant for dormant access."""
    return _detector().scan_for_dormant_access(tenant_id)


@app.post("/tenants/{tenant_id}/process", response_model=AutoRevocationResult)
def process_tenant(tenant_id: str):
    """Run an auto-revocation pass for a tenant."""
    return _detector().process_auto_revocation(tenant_id)


@app.post("/tenants/{tenant_id}/records/{record_id}/approve", response_model=DormantAccessRecord)
def approve_record(tenant_id: str, record_id: str, request: ApproveRequest):
    """Approve a pending revocation."""
    try:
        return _detector().approve_revocation(tenant_id, record_id, request.approved_by)
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e)) from e


@app.post("/tenants/{tenant_id}/records/{record_id}/exempt", response_model=DormantAccessRecord)
def exempt_record(tenant_id: str, record_id: str, request: ExemptRequest):
    """Exempt a record from automated revocation."""
    try:
        return _detector().exempt_record(tenant_id, record_id, request.exempted_by, request.reason)
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e)) from e


@app.get("/tenants/{tenant_id}/records", response_model=List[DormantAccessRecord])
def list_records(
    tenant_id: str,
    status: Optional[RecordStatus] = Query(None, description="Filter by workflow status"),
    category: Optional[DormantCategory] = Query(None, description="Filter by category"),
    limit: int = Query(100, description="Maximum number of results"),
):
    """List stored workflow records."""
    return _detector().list_records(tenant_id, status, category)[:limit]


@app.get("/tenants/{tenant_id}/records/{record_id}", response_model=DormantAccessRecord)
def get_record(tenant_id: str, record_id: str):
    """Get one stored workflow record."""
    try:
        return _detector().get_record(tenant_id, record_id)
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@app.get("/tenants/{tenant_id}/records/{record_id}/history", response_model=List[AuditRecord])
def record_history(tenant_id: str, record_id: str):
    """Audit trail of one stored record."""
    try:
        return _detector().get_record_history(tenant_id, record_id)
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@app.get("/tenants/{tenant_id}/users/{user_id}", response_model=List[DormantAccessRecord])
def dormant_by_user(tenant_id: str, user_id: str):
    """Dormant access held by one user."""
    return _detector().get_dormant_access_by_user(tenant_id, user_id)


@app.get("/tenants/{tenant_id}/apps/{app_id}", response_model=List[DormantAccessRecord])
def dormant_by_app(tenant_id: str, app_id: str):
    """Dormant access to one application."""
    return _detector().get_dormant_access_by_app(tenant_id, app_id)


@app.get("/tenants/{tenant_id}/departments/{department}", response_model=List[DormantAccessRecord])
def dormant_by_department(tenant_id: str, department: str):
    """Dormant access within one department."""
    return _detector().get_dormant_access_by_department(tenant_id, department)


@app.get("/tenants/{tenant_id}/config", response_model=DormantAccessConfig)
def get_config(tenant_id: str):
    """Get a tenant's configuration."""
    return _detector().get_config(tenant_id)


@app.put("/tenants/{tenant_id}/config", response_model=DormantAccessConfig)
def update_config(tenant_id: str, request: ConfigUpdateRequest):
    """Merge-update a tenant's configuration."""
    try:
        return _detector().set_config(tenant_id, **request.model_dump(exclude_none=True))
    except ConfigValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors) from e


@app.get("/events/stats")
async def event_stats():
    """Counts of emitted events per topic."""
    if event_bus is None:
        return {}
    return event_bus.get_stats()


def start_server(host: str = "0.0.0.0", port: int = 8000, reload: bool = False):
    """Start the FastAPI server."""
    uvicorn.run(
        "dormant_access.api.server:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


if __name__ == "__main__":
    start_server()

# Dev Portal - API Routes
#
# Handlers are sync so FastAPI runs them in its threadpool; blocking
# probes never stall the event loop and per-target locks serialise
# concurrent requests for the same target.

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from devportal.api.models import (
    ControlRequest,
    ControlResult,
    HealthResponse,
    PortListResponse,
    ServiceListResponse,
    StatusResponse,
    OpenUrlRequest,
)
from devportal.core.service_manager import ServiceManager

router = APIRouter()
manager = None


def get_manager() -> ServiceManager:
    global manager
    if manager is None:
        manager = ServiceManager()
    return manager


@router.get("/health")
def health(mgr: ServiceManager = Depends(get_manager)):
    """Control plane liveness and aggregate service readiness."""
    services = mgr.get_health()
    healthy_count = sum(1 for s in services if s.healthy)
    return {
        "status": "healthy",
        "services_healthy": f"{healthy_count}/{len(services)}",
        "services": [{"id": s.id, "healthy": s.healthy} for s in services],
    }


@router.get("/services", response_model=ServiceListResponse)
def list_services(mgr: ServiceManager = Depends(get_manager)):
    """List registered services (metadata only)."""
    return ServiceListResponse(services=mgr.list_services(), timestamp=datetime.now())


@router.get("/services/status", response_model=StatusResponse)
def service_status(mgr: ServiceManager = Depends(get_manager)):
    """Running state and PIDs of every service."""
    return StatusResponse(services=mgr.get_service_status(), timestamp=datetime.now())


@router.get("/services/health", response_model=HealthResponse)
def service_health(mgr: ServiceManager = Depends(get_manager)):
    """Composite readiness (port bound and health URL answering)."""
    return HealthResponse(services=mgr.get_health(), timestamp=datetime.now())


@router.get("/ports", response_model=PortListResponse)
def port_status(mgr: ServiceManager = Depends(get_manager)):
    """Listener state of every declared port."""
    return PortListResponse(ports=mgr.get_port_status(), timestamp=datetime.now())


@router.post("/control", response_model=ControlResult)
def control(req: ControlRequest, mgr: ServiceManager = Depends(get_manager)):
    """Start, stop or restart a service or the whole suite."""
    result = mgr.control(req.target, req.action)
    if result.success:
        return result
    status_code = 400 if result.error_kind in ("InvalidTarget", "InvalidAction") else 500
    return JSONResponse(status_code=status_code, content=result.model_dump())


@router.get("/services/{service}/logs")
def service_logs(
    service: str, lines: int = 100, mgr: ServiceManager = Depends(get_manager)
):
    """Get logs from a specific service."""
    try:
        return {"service": service, "lines": mgr.get_logs(service, lines)}
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/open")
def open_url(req: OpenUrlRequest, mgr: ServiceManager = Depends(get_manager)):
    """Open a local URL in the default browser."""
    try:
        opened = mgr.open_url(req.url)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"url": req.url, "opened": opened}

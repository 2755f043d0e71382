# Dev Portal - Pydantic Models

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel


class Action(str, Enum):
    START = "start"
    STOP = "stop"
    RESTART = "restart"


class ServiceInfo(BaseModel):
    id: str
    name: str
    description: str = ""
    ports: List[int]
    url: Optional[str] = None
    health_url: Optional[str] = None


class ServiceStatus(BaseModel):
    id: str
    running: bool
    ports: List[int]
    pids: List[int] = []


class PortStatus(BaseModel):
    port: int
    running: bool
    pids: List[int] = []
    owner: Optional[str] = None


class ServiceHealth(BaseModel):
    id: str
    running: bool
    healthy: bool
    health_url: Optional[str] = None


class ControlRequest(BaseModel):
    # Plain strings: unknown values are reported in a ControlResult, not a 422
    target: str
    action: str


class ControlResult(BaseModel):
    success: bool
    target: str
    action: str
    message: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None


class ServiceListResponse(BaseModel):
    services: List[ServiceInfo]
    timestamp: datetime


class StatusResponse(BaseModel):
    services: List[ServiceStatus]
    timestamp: datetime


class PortListResponse(BaseModel):
    ports: List[PortStatus]
    timestamp: datetime


class HealthResponse(BaseModel):
    services: List[ServiceHealth]
    timestamp: datetime


class OpenUrlRequest(BaseModel):
    url: str

# Dev Portal - Service Registry

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from devportal.core.config import settings
from devportal.core.errors import RegistryError

logger = logging.getLogger("devportal")

SUITE = "suite"


@dataclass(frozen=True)
class ServiceDescriptor:
    """Static description of one managed service."""

    id: str
    name: str
    ports: Tuple[int, ...]
    start_command: str
    health_url: Optional[str] = None
    url: Optional[str] = None
    description: str = ""

    @property
    def primary_port(self) -> int:
        return self.ports[0]


DEFAULT_SERVICES = [
    ServiceDescriptor(
        id="practiceWeb",
        name="Practice Web",
        description="Practice Manager web frontend",
        ports=(3000,),
        start_command="pnpm practice",
        url="http://localhost:3000",
    ),
    ServiceDescriptor(
        id="practiceApi",
        name="Practice API",
        description="Practice Manager API",
        ports=(3001,),
        start_command="pnpm practice-api",
        health_url="http://localhost:3001/api/v1/health",
        url="http://localhost:3001",
    ),
    ServiceDescriptor(
        id="customsUi",
        name="Customs UI",
        description="Customs Manager frontend",
        ports=(5173,),
        start_command="pnpm customs",
        url="http://localhost:5173",
    ),
    ServiceDescriptor(
        id="customsBackend",
        name="Customs Backend",
        description="Customs Manager backend API",
        ports=(3100,),
        start_command="pnpm customs-backend",
        health_url="http://localhost:3100/health",
        url="http://localhost:3100",
    ),
]


class ServiceRegistry:
    """Immutable id -> ServiceDescriptor mapping, validated on construction."""

    def __init__(
        self,
        services: Iterable[ServiceDescriptor],
        suite_ports: Iterable[int] = (),
    ):
        self._services: Dict[str, ServiceDescriptor] = {}
        self._owners: Dict[int, str] = {}

        for svc in services:
            self._add(svc)

        self.suite_ports: Tuple[int, ...] = tuple(suite_ports)
        for port in self.suite_ports:
            _check_port(port, SUITE)
            if port in self._owners:
                raise RegistryError(
                    f"Suite port {port} is already claimed by {self._owners[port]}"
                )

    def _add(self, svc: ServiceDescriptor) -> None:
        if svc.id == SUITE:
            raise RegistryError(f"'{SUITE}' is reserved and cannot be a service id")
        if svc.id in self._services:
            raise RegistryError(f"Duplicate service id: {svc.id}")
        if not svc.ports:
            raise RegistryError(f"Service {svc.id} declares no ports")
        if not svc.start_command.strip():
            raise RegistryError(f"Service {svc.id} has an empty start command")

        for port in svc.ports:
            _check_port(port, svc.id)
            owner = self._owners.get(port)
            if owner is not None:
                raise RegistryError(
                    f"Port {port} is claimed by both {owner} and {svc.id}"
                )
            self._owners[port] = svc.id

        self._services[svc.id] = svc

    def __contains__(self, service_id: str) -> bool:
        return service_id in self._services

    def __iter__(self):
        return iter(self._services.values())

    def __len__(self) -> int:
        return len(self._services)

    def get(self, service_id: str) -> Optional[ServiceDescriptor]:
        return self._services.get(service_id)

    def ids(self) -> List[str]:
        return list(self._services)

    def owner_of(self, port: int) -> Optional[str]:
        """Service id owning ``port``, ``"suite"`` for suite ports, else None."""
        if port in self._owners:
            return self._owners[port]
        if port in self.suite_ports:
            return SUITE
        return None

    def all_ports(self) -> List[int]:
        return sorted(set(self._owners) | set(self.suite_ports))


def _check_port(port: int, owner: str) -> None:
    if not isinstance(port, int) or not 1 <= port <= 65535:
        raise RegistryError(f"Invalid port {port!r} for {owner}")


def _descriptor_from_dict(raw: dict) -> ServiceDescriptor:
    if not isinstance(raw, dict):
        raise RegistryError(f"Service entry must be an object: {raw!r}")
    try:
        ports = raw["ports"]
        desc = ServiceDescriptor(
            id=raw["id"],
            name=raw.get("name", raw["id"]),
            ports=tuple(ports) if isinstance(ports, list) else (ports,),
            start_command=raw["startCommand"],
            health_url=raw.get("healthUrl"),
            url=raw.get("url"),
            description=raw.get("description", ""),
        )
    except KeyError as e:
        raise RegistryError(f"Service entry missing field {e}: {raw!r}")
    if not isinstance(desc.id, str) or not isinstance(desc.start_command, str):
        raise RegistryError(f"id and startCommand must be strings: {raw!r}")
    return desc


def load_registry(path: Optional[Path] = None) -> ServiceRegistry:
    """Load the registry from a JSON file, or fall back to the built-in services.

    The file holds either a list of service entries or an object with
    ``services`` and optional ``suitePorts`` keys. Entries use the
    ``{id, name, ports, startCommand, healthUrl}`` shape.
    """
    path = path or settings.registry_file
    if path is None:
        return ServiceRegistry(DEFAULT_SERVICES, settings.suite_ports)

    logger.info("Loading service registry from %s", path)
    try:
        data = json.loads(Path(path).read_text())
    except (OSError, ValueError) as e:
        raise RegistryError(f"Cannot read registry file {path}: {e}")

    if isinstance(data, list):
        entries, suite_ports = data, settings.suite_ports
    elif isinstance(data, dict):
        entries = data.get("services", [])
        suite_ports = data.get("suitePorts", settings.suite_ports)
    else:
        raise RegistryError(f"Registry file {path} must hold a list or an object")

    if not isinstance(entries, list) or not isinstance(suite_ports, list):
        raise RegistryError(
            f"Registry file {path}: services and suitePorts must be lists"
        )

    return ServiceRegistry(
        [_descriptor_from_dict(raw) for raw in entries], suite_ports
    )

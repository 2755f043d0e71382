# Dev Portal - Service Manager
#
# The operations exposed to the desktop shell, the web dashboard and the
# CLI. Transports call into this class and nothing else.

import logging
import webbrowser
from typing import List, Optional
from urllib.parse import urlparse

from devportal.api.models import (
    ControlResult,
    PortStatus,
    ServiceHealth,
    ServiceInfo,
    ServiceStatus,
)
from devportal.core.health import HealthProber
from devportal.core.launcher import LogSinks, ProcessLauncher
from devportal.core.ports import PortProber, make_port_prober
from devportal.core.reconciler import ControlReconciler
from devportal.core.registry import ServiceRegistry, load_registry
from devportal.core.status import StatusAggregator
from devportal.core.supervisor import LaunchdSupervisor

logger = logging.getLogger("devportal")

LOCAL_HOSTS = {"localhost", "127.0.0.1", "::1"}


class ServiceManager:
    """Wires the registry, probes and actuators together."""

    def __init__(
        self,
        registry: Optional[ServiceRegistry] = None,
        prober: Optional[PortProber] = None,
        launcher: Optional[ProcessLauncher] = None,
        supervisor: Optional[LaunchdSupervisor] = None,
        health: Optional[HealthProber] = None,
        log_sinks: Optional[LogSinks] = None,
    ):
        if registry is None:
            registry = load_registry()
        if prober is None:
            prober = make_port_prober()

        self.registry = registry
        self.prober = prober
        self.launcher = launcher or ProcessLauncher(prober)
        self.supervisor = supervisor or LaunchdSupervisor()
        self.health = health or HealthProber()
        self.log_sinks = log_sinks or LogSinks()

        self.reconciler = ControlReconciler(
            self.registry, self.launcher, self.supervisor, self.log_sinks
        )
        self.status = StatusAggregator(self.registry, self.prober, self.health)

    def list_services(self) -> List[ServiceInfo]:
        return [
            ServiceInfo(
                id=svc.id,
                name=svc.name,
                description=svc.description,
                ports=list(svc.ports),
                url=svc.url,
                health_url=svc.health_url,
            )
            for svc in self.registry
        ]

    def get_service_status(self) -> List[ServiceStatus]:
        return self.status.status_all()

    def get_port_status(self) -> List[PortStatus]:
        return self.status.ports_all()

    def get_health(self) -> List[ServiceHealth]:
        return self.status.health_all()

    def control(self, target: str, action: str) -> ControlResult:
        return self.reconciler.control(target, action)

    def get_logs(self, service_id: str, lines: int = 100) -> List[str]:
        """Get last N lines from a service's log."""
        svc = self.registry.get(service_id)
        if svc is None:
            raise ValueError(f"Unknown service: {service_id}")
        return self.log_sinks.tail(svc, lines)

    def open_url(self, url: str) -> bool:
        """Open a local URL in the default browser."""
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or parsed.hostname not in LOCAL_HOSTS:
            raise ValueError(f"Refusing to open non-local URL: {url}")
        logger.info("Opening %s", url)
        return webbrowser.open(url)

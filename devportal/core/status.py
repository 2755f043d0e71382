# Dev Portal - Status Aggregator

import logging
from typing import Dict, FrozenSet, Iterable, List, Optional

from devportal.api.models import PortStatus, ServiceHealth, ServiceStatus
from devportal.core.errors import ProbeError
from devportal.core.health import HealthProber
from devportal.core.ports import PortProber
from devportal.core.registry import ServiceRegistry

logger = logging.getLogger("devportal")


class StatusAggregator:
    """Derives service and port state from live probes on every call."""

    def __init__(
        self,
        registry: ServiceRegistry,
        prober: PortProber,
        health: HealthProber,
        health_timeout: Optional[float] = None,
    ):
        self.registry = registry
        self.prober = prober
        self.health = health
        self.health_timeout = health_timeout

    def _probe_ports(self, ports: Iterable[int]) -> Dict[int, FrozenSet[int]]:
        # A failed probe counts as offline for this port only
        found = {}
        for port in ports:
            try:
                found[port] = self.prober.probe(port).pids
            except ProbeError as e:
                logger.warning("Port probe failed for %d: %s", port, e)
                found[port] = frozenset()
        return found

    def status_all(self) -> List[ServiceStatus]:
        probed = self._probe_ports(
            port for svc in self.registry for port in svc.ports
        )
        statuses = []
        for svc in self.registry:
            pids = set()
            for port in svc.ports:
                pids |= probed[port]
            statuses.append(
                ServiceStatus(
                    id=svc.id,
                    running=bool(pids),
                    ports=list(svc.ports),
                    pids=sorted(pids),
                )
            )
        return statuses

    def ports_all(self) -> List[PortStatus]:
        probed = self._probe_ports(self.registry.all_ports())
        return [
            PortStatus(
                port=port,
                running=bool(pids),
                pids=sorted(pids),
                owner=self.registry.owner_of(port),
            )
            for port, pids in probed.items()
        ]

    def health_all(self) -> List[ServiceHealth]:
        """Composite readiness: port bound and, if declared, health URL answering."""
        results = []
        for status in self.status_all():
            svc = self.registry.get(status.id)
            healthy = status.running
            if healthy and svc.health_url:
                healthy = self.health.probe(svc.health_url, self.health_timeout)
            results.append(
                ServiceHealth(
                    id=svc.id,
                    running=status.running,
                    healthy=healthy,
                    health_url=svc.health_url,
                )
            )
        return results

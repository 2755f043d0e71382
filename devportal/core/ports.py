# Dev Portal - Port Prober

import logging
import subprocess
import sys
from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Protocol

import psutil  # type: ignore

from devportal.core.config import settings
from devportal.core.errors import ProbeError

logger = logging.getLogger("devportal")


@dataclass(frozen=True)
class PortProbe:
    port: int
    pids: FrozenSet[int] = field(default_factory=frozenset)

    @property
    def running(self) -> bool:
        return bool(self.pids)


class PortProber(Protocol):
    def probe(self, port: int) -> PortProbe: ...


class LsofPortProber:
    """Finds listeners with ``lsof``; works unprivileged on macOS."""

    def __init__(self, timeout: Optional[float] = None, lsof: str = "lsof"):
        self.timeout = timeout if timeout is not None else settings.probe_timeout
        self.lsof = lsof

    def probe(self, port: int) -> PortProbe:
        cmd = [self.lsof, "-nP", "-t", f"-iTCP:{port}", "-sTCP:LISTEN"]
        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, timeout=self.timeout
            )
        except FileNotFoundError:
            raise ProbeError(f"{self.lsof} not found")
        except subprocess.TimeoutExpired:
            raise ProbeError(f"lsof timed out probing port {port}")
        except OSError as e:
            raise ProbeError(f"lsof failed on port {port}: {e}")

        # lsof exits 1 with no output when nothing matches
        if result.returncode not in (0, 1) or (
            result.returncode == 1 and result.stderr.strip()
        ):
            raise ProbeError(
                f"lsof exited {result.returncode} on port {port}: "
                f"{result.stderr.strip()}"
            )

        pids = set()
        for line in result.stdout.splitlines():
            line = line.strip()
            if line.isdigit():
                pids.add(int(line))
        return PortProbe(port=port, pids=frozenset(pids))


class PsutilPortProber:
    """Finds listeners from the kernel socket table via psutil."""

    def probe(self, port: int) -> PortProbe:
        try:
            conns = psutil.net_connections(kind="tcp")
        except psutil.AccessDenied as e:
            raise ProbeError(f"Permission denied listing sockets: {e}")
        except OSError as e:
            raise ProbeError(f"Cannot list sockets: {e}")

        listeners = [
            c
            for c in conns
            if c.status == psutil.CONN_LISTEN and c.laddr and c.laddr.port == port
        ]
        # Sockets of other users' processes come back without a pid
        if any(c.pid is None for c in listeners):
            raise ProbeError(
                f"listener on port {port} owned by an unreadable process"
            )
        pids = {c.pid for c in listeners}
        return PortProbe(port=port, pids=frozenset(pids))


def make_port_prober(backend: Optional[str] = None) -> PortProber:
    """Pick a prober backend: ``lsof``, ``psutil`` or ``auto``."""
    backend = backend or settings.port_backend
    if backend == "auto":
        # psutil needs root to see other processes' sockets on macOS
        backend = "lsof" if sys.platform == "darwin" else "psutil"

    logger.debug("Using %s port prober", backend)
    if backend == "lsof":
        return LsofPortProber()
    if backend == "psutil":
        return PsutilPortProber()
    raise ValueError(f"Unknown port backend: {backend}")

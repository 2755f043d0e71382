# Dev Portal - Process Launcher / Terminator

import logging
import os
import subprocess
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import BinaryIO, FrozenSet, Iterator, List, Optional

import psutil  # type: ignore

from devportal.core.config import settings
from devportal.core.errors import (
    LaunchError,
    OperationalError,
    ProbeError,
    SignalError,
)
from devportal.core.ports import PortProbe, PortProber
from devportal.core.registry import ServiceDescriptor

logger = logging.getLogger("devportal")

# How long to wait for SIGKILLed processes to release their port
KILL_SETTLE = 1.0


class LaunchOutcome(str, Enum):
    STARTED = "started"
    ALREADY_RUNNING = "already_running"


class TerminateOutcome(str, Enum):
    STOPPED = "stopped"
    ALREADY_STOPPED = "already_stopped"


@dataclass(frozen=True)
class LaunchResult:
    outcome: LaunchOutcome
    pids: FrozenSet[int] = field(default_factory=frozenset)


@dataclass(frozen=True)
class TerminateResult:
    outcome: TerminateOutcome
    pids: FrozenSet[int] = field(default_factory=frozenset)
    killed: FrozenSet[int] = field(default_factory=frozenset)


class LogSinks:
    """Per-service append-only log files under ``log_dir``."""

    def __init__(self, log_dir: Optional[Path] = None):
        self.log_dir = Path(log_dir or settings.log_dir)

    def path_for(self, service: ServiceDescriptor) -> Path:
        return self.log_dir / f"{service.id.lower()}.log"

    @contextmanager
    def open(self, service: ServiceDescriptor) -> Iterator[BinaryIO]:
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            f = open(self.path_for(service), "ab")
        except OSError as e:
            raise LaunchError(f"Cannot open log for {service.id}", str(e))
        with f:
            yield f

    def tail(self, service: ServiceDescriptor, lines: int = 100) -> List[str]:
        path = self.path_for(service)
        if not path.exists():
            return []
        with open(path, "r", errors="replace") as f:
            return f.readlines()[-lines:]


class ProcessLauncher:
    """Starts services as detached processes and stops them by port."""

    def __init__(
        self,
        prober: PortProber,
        cwd: Optional[Path] = None,
        shell: Optional[str] = None,
        login_shell: Optional[bool] = None,
        spawn_check: Optional[float] = None,
    ):
        self.prober = prober
        self.cwd = Path(cwd or settings.repo_root)
        self.shell = (
            shell or settings.launch_shell or os.environ.get("SHELL", "/bin/sh")
        )
        self.login_shell = (
            settings.login_shell if login_shell is None else login_shell
        )
        self.spawn_check = (
            settings.spawn_check if spawn_check is None else spawn_check
        )

    def shell_command(self, command: str) -> List[str]:
        # A login shell picks up PATH from the user profile (homebrew, nvm)
        flags = "-lc" if self.login_shell else "-c"
        return [self.shell, flags, command]

    def _probe(self, port: int) -> PortProbe:
        try:
            return self.prober.probe(port)
        except ProbeError as e:
            # Acting on an unknown port state could spawn a duplicate
            raise OperationalError(f"Cannot determine state of port {port}", str(e))

    def launch(
        self, service: ServiceDescriptor, log_sink: Optional[BinaryIO] = None
    ) -> LaunchResult:
        """Spawn ``service`` unless its primary port is already bound."""
        current = self._probe(service.primary_port)
        if current.running:
            logger.info(
                "%s already running on port %d (pids=%s)",
                service.id,
                service.primary_port,
                sorted(current.pids),
            )
            return LaunchResult(LaunchOutcome.ALREADY_RUNNING, current.pids)

        logger.info("Starting %s: %s", service.id, service.start_command)
        try:
            proc = subprocess.Popen(
                self.shell_command(service.start_command),
                cwd=self.cwd,
                stdin=subprocess.DEVNULL,
                stdout=log_sink if log_sink is not None else subprocess.DEVNULL,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )
        except OSError as e:
            raise LaunchError(f"Failed to start {service.id}", str(e))

        # Catch commands that die straight away (e.g. exit 127, not on PATH)
        if self.spawn_check > 0:
            try:
                code = proc.wait(timeout=self.spawn_check)
            except subprocess.TimeoutExpired:
                code = None
            if code:
                raise LaunchError(
                    f"Failed to start {service.id}",
                    f"start command exited with status {code}",
                )

        logger.info("%s started (pid=%d)", service.id, proc.pid)
        return LaunchResult(LaunchOutcome.STARTED, frozenset({proc.pid}))

    def terminate(self, port: int, grace: Optional[float] = None) -> TerminateResult:
        """SIGTERM everything listening on ``port``, SIGKILL what survives ``grace``."""
        grace = settings.terminate_grace if grace is None else grace

        current = self._probe(port)
        if not current.running:
            logger.info("Nothing listening on port %d", port)
            return TerminateResult(TerminateOutcome.ALREADY_STOPPED)

        pids = _without_self(current.pids)
        if not pids:
            raise SignalError(
                f"Port {port} is bound by the control plane itself",
                f"pid={os.getpid()}",
            )
        logger.info("Stopping port %d (pids=%s)", port, sorted(pids))

        procs = []
        for pid in pids:
            try:
                proc = psutil.Process(pid)
                proc.terminate()
                procs.append(proc)
            except psutil.NoSuchProcess:
                continue
            except psutil.AccessDenied as e:
                raise SignalError(f"Not allowed to signal pid {pid}", str(e))

        _, alive = psutil.wait_procs(procs, timeout=grace)

        try:
            leftover = set(self.prober.probe(port).pids)
        except ProbeError as e:
            logger.warning("Re-probe of port %d failed: %s", port, e)
            leftover = set()
        leftover = _without_self(leftover | {p.pid for p in alive})

        killed = set()
        if leftover:
            logger.warning(
                "Port %d didn't stop gracefully, killing %s", port, sorted(leftover)
            )
            killed = self._kill(leftover)

            still = self._probe(port)
            if still.running:
                raise SignalError(
                    f"Port {port} still bound after kill",
                    f"pids={sorted(still.pids)}",
                )

        logger.info("Port %d stopped", port)
        return TerminateResult(
            TerminateOutcome.STOPPED, frozenset(pids), frozenset(killed)
        )

    def restart(
        self,
        service: ServiceDescriptor,
        grace: Optional[float] = None,
        log_sink: Optional[BinaryIO] = None,
    ) -> LaunchResult:
        """Stop whatever holds the primary port, then launch."""
        self.terminate(service.primary_port, grace)
        return self.launch(service, log_sink)

    @staticmethod
    def _kill(pids) -> set:
        procs = []
        for pid in pids:
            try:
                proc = psutil.Process(pid)
                proc.kill()
                procs.append(proc)
            except psutil.NoSuchProcess:
                continue
            except psutil.AccessDenied as e:
                raise SignalError(f"Not allowed to kill pid {pid}", str(e))
        psutil.wait_procs(procs, timeout=KILL_SETTLE)
        return {p.pid for p in procs}


def _without_self(pids) -> FrozenSet[int]:
    me = os.getpid()
    if me in pids:
        logger.warning("Refusing to signal the control plane itself (pid=%d)", me)
    return frozenset(pid for pid in pids if pid != me)

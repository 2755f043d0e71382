# Dev Portal - Suite Supervisor (launchd)

import logging
import subprocess
from pathlib import Path
from typing import List, Optional

from devportal.core.config import settings
from devportal.core.errors import (
    AlreadyLoaded,
    NotLoaded,
    NotRunnable,
    SupervisorError,
)

logger = logging.getLogger("devportal")


class LaunchdSupervisor:
    """Loads, unloads and kickstarts the suite's launchd agent."""

    def __init__(
        self,
        label: Optional[str] = None,
        plist_path: Optional[Path] = None,
        domain: Optional[str] = None,
        timeout: Optional[float] = None,
        launchctl: str = "launchctl",
    ):
        self.label = label or settings.suite_label
        self.plist_path = Path(plist_path or settings.suite_plist)
        self.domain = domain or settings.launchd_domain
        self.timeout = timeout if timeout is not None else settings.supervisor_timeout
        self.launchctl = launchctl

    @property
    def service_target(self) -> str:
        return f"{self.domain}/{self.label}"

    def _run(self, *args: str) -> subprocess.CompletedProcess:
        cmd: List[str] = [self.launchctl, *args]
        logger.debug("Running %s", " ".join(cmd))
        try:
            return subprocess.run(
                cmd, capture_output=True, text=True, timeout=self.timeout
            )
        except FileNotFoundError:
            raise SupervisorError(
                "Supervisor unavailable", f"{self.launchctl} not found"
            )
        except subprocess.TimeoutExpired:
            raise SupervisorError(
                "Supervisor call timed out",
                f"{' '.join(cmd)} exceeded {self.timeout}s",
            )
        except OSError as e:
            raise SupervisorError("Supervisor call failed", str(e))

    def _check(self, result: subprocess.CompletedProcess, what: str) -> None:
        if result.returncode != 0:
            detail = (result.stderr or result.stdout).strip() or (
                f"exit status {result.returncode}"
            )
            raise SupervisorError(f"Failed to {what} {self.label}", detail)

    def is_loaded(self) -> bool:
        """True if launchd knows about the suite's service label."""
        return self._run("print", self.service_target).returncode == 0

    def suite_load(self) -> None:
        if self.is_loaded():
            raise AlreadyLoaded(f"{self.label} already loaded")
        logger.info("Bootstrapping %s from %s", self.label, self.plist_path)
        self._check(
            self._run("bootstrap", self.domain, str(self.plist_path)), "load"
        )

    def suite_unload(self) -> None:
        if not self.is_loaded():
            raise NotLoaded(f"{self.label} not loaded")
        logger.info("Booting out %s", self.label)
        self._check(self._run("bootout", self.service_target), "unload")

    def suite_kick(self) -> None:
        if not self.is_loaded():
            raise NotRunnable(
                f"{self.label} is not loaded; start the suite before restarting it"
            )
        logger.info("Kickstarting %s", self.label)
        self._check(self._run("kickstart", "-k", self.service_target), "restart")

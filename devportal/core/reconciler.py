# Dev Portal - Control Reconciler
#
# Maps a (target, action) request onto the suite supervisor or the
# per-service launcher. Holds no state between calls apart from the
# per-target locks; every decision is made from a fresh port probe.

import logging
import threading
from typing import Dict, Optional

from devportal.api.models import Action, ControlResult
from devportal.core.config import settings
from devportal.core.errors import (
    BenignNoOp,
    InvalidAction,
    InvalidTarget,
    OperationalError,
    ValidationError,
)
from devportal.core.launcher import (
    LaunchOutcome,
    LogSinks,
    ProcessLauncher,
    TerminateOutcome,
)
from devportal.core.registry import SUITE, ServiceDescriptor, ServiceRegistry
from devportal.core.supervisor import LaunchdSupervisor

logger = logging.getLogger("devportal")


class TargetLocks:
    """One lock per target key, created on first use."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def get(self, target: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(target)
            if lock is None:
                lock = self._locks[target] = threading.Lock()
            return lock


class ControlReconciler:
    def __init__(
        self,
        registry: ServiceRegistry,
        launcher: ProcessLauncher,
        supervisor: LaunchdSupervisor,
        log_sinks: LogSinks,
        grace: Optional[float] = None,
    ):
        self.registry = registry
        self.launcher = launcher
        self.supervisor = supervisor
        self.log_sinks = log_sinks
        self.grace = settings.terminate_grace if grace is None else grace
        self.locks = TargetLocks()

    def validate(self, target: str, action: str) -> Action:
        if target != SUITE and target not in self.registry:
            raise InvalidTarget(f"Unknown target: {target}")
        try:
            return Action(action)
        except ValueError:
            raise InvalidAction(f"Unknown action: {action}")

    def control(self, target: str, action: str) -> ControlResult:
        """Apply ``action`` to ``target`` and report the outcome."""
        try:
            act = self.validate(target, action)
        except ValidationError as e:
            logger.warning("Rejected %s %s: %s", action, target, e)
            return ControlResult(
                success=False,
                target=str(target),
                action=str(action),
                error=str(e),
                error_kind=e.kind,
            )

        with self.locks.get(target):
            try:
                if target == SUITE:
                    message = self._suite(act)
                else:
                    message = self._service(self.registry.get(target), act)
            except BenignNoOp as e:
                logger.info("%s %s: %s", act.value, target, e)
                return ControlResult(
                    success=True, target=target, action=act.value, message=str(e)
                )
            except OperationalError as e:
                logger.error("Failed to %s %s: %s (%s)", act.value, target, e, e.detail)
                return ControlResult(
                    success=False,
                    target=target,
                    action=act.value,
                    message=str(e),
                    error=e.detail or str(e),
                    error_kind=e.kind,
                )

        return ControlResult(
            success=True, target=target, action=act.value, message=message
        )

    def _suite(self, action: Action) -> str:
        if action is Action.START:
            self.supervisor.suite_load()
            return "Suite starting"
        if action is Action.STOP:
            self.supervisor.suite_unload()
            return "Suite stopped"
        self.supervisor.suite_kick()
        return "Suite restarting"

    def _service(self, service: ServiceDescriptor, action: Action) -> str:
        if action is Action.STOP:
            result = self.launcher.terminate(service.primary_port, self.grace)
            if result.outcome is TerminateOutcome.ALREADY_STOPPED:
                return f"{service.id} already stopped"
            return f"{service.id} stopped"

        with self.log_sinks.open(service) as sink:
            if action is Action.START:
                launched = self.launcher.launch(service, sink)
            else:
                launched = self.launcher.restart(service, self.grace, sink)

        if launched.outcome is LaunchOutcome.ALREADY_RUNNING:
            return f"{service.id} already running"
        verb = "started" if action is Action.START else "restarted"
        return f"{service.id} {verb}"

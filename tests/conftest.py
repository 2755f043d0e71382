"""Shared fakes for the dev portal tests.

The fakes stand in for the OS: ``FakeProber`` is the socket table,
``FakeSupervisor`` is launchd and ``FakeLauncher`` binds ports in the
fake socket table when a service is "spawned".
"""

import itertools
import threading
import time

import pytest

from devportal.core.errors import (
    AlreadyLoaded,
    NotLoaded,
    NotRunnable,
    ProbeError,
)
from devportal.core.launcher import (
    LaunchOutcome,
    LaunchResult,
    LogSinks,
    TerminateOutcome,
    TerminateResult,
)
from devportal.core.ports import PortProbe
from devportal.core.registry import ServiceDescriptor, ServiceRegistry
from devportal.core.service_manager import ServiceManager


class FakeProber:
    def __init__(self):
        self.bound = {}
        self.failing = set()
        self.calls = []
        self._lock = threading.Lock()

    def bind(self, port, *pids):
        with self._lock:
            self.bound.setdefault(port, set()).update(pids)

    def unbind(self, port):
        with self._lock:
            self.bound.pop(port, None)

    def probe(self, port):
        self.calls.append(port)
        if port in self.failing:
            raise ProbeError(f"lsof not found")
        with self._lock:
            return PortProbe(port=port, pids=frozenset(self.bound.get(port, ())))


class FakeSupervisor:
    def __init__(self, loaded=False):
        self.loaded = loaded
        self.calls = []

    def suite_load(self):
        self.calls.append("load")
        if self.loaded:
            raise AlreadyLoaded("com.msuite.dev already loaded")
        self.loaded = True

    def suite_unload(self):
        self.calls.append("unload")
        if not self.loaded:
            raise NotLoaded("com.msuite.dev not loaded")
        self.loaded = False

    def suite_kick(self):
        self.calls.append("kick")
        if not self.loaded:
            raise NotRunnable("com.msuite.dev is not loaded")


class FakeLauncher:
    """Binds/unbinds ports in a FakeProber; optional delay widens race windows."""

    def __init__(self, prober, delay=0.0):
        self.prober = prober
        self.delay = delay
        self.calls = []
        self.spawned = []
        self._pids = itertools.count(1000)

    def launch(self, service, log_sink=None):
        self.calls.append(("launch", service.id))
        if self.prober.probe(service.primary_port).running:
            return LaunchResult(LaunchOutcome.ALREADY_RUNNING)
        time.sleep(self.delay)
        pid = next(self._pids)
        self.spawned.append((service.id, pid))
        self.prober.bind(service.primary_port, pid)
        return LaunchResult(LaunchOutcome.STARTED, frozenset({pid}))

    def terminate(self, port, grace=None):
        self.calls.append(("terminate", port))
        probe = self.prober.probe(port)
        if not probe.running:
            return TerminateResult(TerminateOutcome.ALREADY_STOPPED)
        time.sleep(self.delay)
        self.prober.unbind(port)
        return TerminateResult(TerminateOutcome.STOPPED, probe.pids)

    def restart(self, service, grace=None, log_sink=None):
        self.terminate(service.primary_port, grace)
        return self.launch(service, log_sink)


class FakeHealth:
    def __init__(self, healthy_urls=()):
        self.healthy_urls = set(healthy_urls)
        self.calls = []

    def probe(self, url, timeout=None):
        self.calls.append(url)
        return url in self.healthy_urls


WEB = ServiceDescriptor(
    id="web", name="Web", ports=(3000,), start_command="pnpm web"
)
API = ServiceDescriptor(
    id="api",
    name="API",
    ports=(3001,),
    start_command="pnpm api",
    health_url="http://localhost:3001/health",
)


@pytest.fixture
def registry():
    return ServiceRegistry([WEB, API], suite_ports=[4000])


@pytest.fixture
def prober():
    return FakeProber()


@pytest.fixture
def supervisor():
    return FakeSupervisor()


@pytest.fixture
def launcher(prober):
    return FakeLauncher(prober)


@pytest.fixture
def health():
    return FakeHealth()


@pytest.fixture
def log_sinks(tmp_path):
    return LogSinks(tmp_path / "logs")


@pytest.fixture
def manager(registry, prober, launcher, supervisor, health, log_sinks):
    return ServiceManager(
        registry=registry,
        prober=prober,
        launcher=launcher,
        supervisor=supervisor,
        health=health,
        log_sinks=log_sinks,
    )

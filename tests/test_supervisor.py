"""Tests for the launchd suite supervisor."""

import subprocess

import pytest

from devportal.core.errors import (
    AlreadyLoaded,
    NotLoaded,
    NotRunnable,
    SupervisorError,
)
from devportal.core.supervisor import LaunchdSupervisor


class FakeLaunchctl:
    """Records launchctl invocations; ``print`` reflects ``loaded``."""

    def __init__(self, loaded=False, fail=None):
        self.loaded = loaded
        self.fail = fail or {}
        self.calls = []

    def __call__(self, cmd, **kw):
        verb = cmd[1]
        self.calls.append(cmd[1:])
        if verb in self.fail:
            return subprocess.CompletedProcess(cmd, 5, "", self.fail[verb])
        if verb == "print":
            return subprocess.CompletedProcess(cmd, 0 if self.loaded else 113, "", "")
        if verb == "bootstrap":
            self.loaded = True
        elif verb == "bootout":
            self.loaded = False
        return subprocess.CompletedProcess(cmd, 0, "", "")

    def mutating(self):
        return [c for c in self.calls if c[0] != "print"]


@pytest.fixture
def sup():
    return LaunchdSupervisor(
        label="com.msuite.dev",
        plist_path="/Users/dev/Library/LaunchAgents/com.msuite.dev.plist",
        domain="gui/501",
        timeout=1,
    )


class TestLoad:
    def test_load_bootstraps_plist(self, sup, monkeypatch):
        fake = FakeLaunchctl()
        monkeypatch.setattr(subprocess, "run", fake)
        sup.suite_load()
        assert fake.mutating() == [
            ["bootstrap", "gui/501", "/Users/dev/Library/LaunchAgents/com.msuite.dev.plist"]
        ]

    def test_load_when_loaded(self, sup, monkeypatch):
        fake = FakeLaunchctl(loaded=True)
        monkeypatch.setattr(subprocess, "run", fake)
        with pytest.raises(AlreadyLoaded):
            sup.suite_load()
        assert fake.mutating() == []

    def test_load_failure_carries_stderr(self, sup, monkeypatch):
        fake = FakeLaunchctl(fail={"bootstrap": "Bootstrap failed: 5: Input/output error"})
        monkeypatch.setattr(subprocess, "run", fake)
        with pytest.raises(SupervisorError) as exc:
            sup.suite_load()
        assert "Input/output error" in exc.value.detail


class TestUnload:
    def test_unload_boots_out(self, sup, monkeypatch):
        fake = FakeLaunchctl(loaded=True)
        monkeypatch.setattr(subprocess, "run", fake)
        sup.suite_unload()
        assert fake.mutating() == [["bootout", "gui/501/com.msuite.dev"]]

    def test_unload_when_not_loaded(self, sup, monkeypatch):
        monkeypatch.setattr(subprocess, "run", FakeLaunchctl())
        with pytest.raises(NotLoaded):
            sup.suite_unload()


class TestKick:
    def test_kick_when_loaded(self, sup, monkeypatch):
        fake = FakeLaunchctl(loaded=True)
        monkeypatch.setattr(subprocess, "run", fake)
        sup.suite_kick()
        assert fake.mutating() == [["kickstart", "-k", "gui/501/com.msuite.dev"]]

    def test_kick_when_not_loaded(self, sup, monkeypatch):
        fake = FakeLaunchctl()
        monkeypatch.setattr(subprocess, "run", fake)
        with pytest.raises(NotRunnable):
            sup.suite_kick()
        assert fake.mutating() == []


class TestFailures:
    def test_missing_launchctl(self, sup, monkeypatch):
        def fake_run(cmd, **kw):
            raise FileNotFoundError(cmd[0])

        monkeypatch.setattr(subprocess, "run", fake_run)
        with pytest.raises(SupervisorError, match="unavailable"):
            sup.suite_load()

    def test_timeout(self, sup, monkeypatch):
        def fake_run(cmd, **kw):
            raise subprocess.TimeoutExpired(cmd, kw["timeout"])

        monkeypatch.setattr(subprocess, "run", fake_run)
        with pytest.raises(SupervisorError, match="timed out"):
            sup.suite_unload()

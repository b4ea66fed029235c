from __future__ import annotations

from typing import Dict, List, Optional, Sequence

import pytest

from packages.shared.config import GlobalConfig, ServerDescriptor
from packages.core.supervisor.types import LaunchDecision, RunningProcessInfo


def make_descriptor(**overrides) -> ServerDescriptor:
    data = {
        "id": "s01",
        "title": "Server 01",
        "type": "python",
        "command": "s01.py",
        "workingDir": r"C:\Servers\s01",
        "venv": r"C:\Servers\venv_s01",
        "display": {
            "colorScheme": "Campbell",
            "position": {"x": 10, "y": 20, "width": 120, "height": 30},
        },
    }
    data.update(overrides)
    return ServerDescriptor.model_validate(data)


def proc(pid: int, name: str, cmd: str, parent: Optional[int] = 1, **kw) -> RunningProcessInfo:
    return RunningProcessInfo(pid=pid, parent_pid=parent, name=name, command_line=cmd, **kw)


class FakeProcessTable:
    """In-memory process table. kill() removes a pid unless it is listed in stubborn."""

    def __init__(self, processes: Sequence[RunningProcessInfo] = (), stubborn: Sequence[int] = ()) -> None:
        self.processes: Dict[int, RunningProcessInfo] = {p.pid: p for p in processes}
        self.stubborn = set(stubborn)
        self.force_proof: set[int] = set()
        self.calls: List[tuple] = []
        self.snapshots = 0

    def snapshot(self) -> List[RunningProcessInfo]:
        self.snapshots += 1
        return list(self.processes.values())

    def is_alive(self, pid: int) -> bool:
        return pid in self.processes

    def kill(self, pid: int) -> bool:
        self.calls.append(("kill", pid))
        if pid in self.stubborn:
            return False
        self.processes.pop(pid, None)
        return True

    def force_terminate(self, pid: int) -> bool:
        self.calls.append(("force", pid))
        if pid in self.force_proof:
            return False
        self.processes.pop(pid, None)
        return True


class ScriptedResolver:
    def __init__(self, decisions: Sequence[LaunchDecision] = (), retry: Sequence[bool] = (), launch: bool = True) -> None:
        self.decisions = list(decisions)
        self.retry_answers = list(retry)
        self.launch_answer = launch
        self.resolve_calls: List[str] = []
        self.retry_calls: List[str] = []
        self.launch_calls = 0

    def resolve(self, descriptor, matches):
        self.resolve_calls.append(descriptor.id)
        return self.decisions.pop(0)

    def confirm_retry(self, descriptor):
        self.retry_calls.append(descriptor.id)
        return self.retry_answers.pop(0)

    def confirm_launch(self, descriptors):
        self.launch_calls += 1
        return self.launch_answer


class RecordingLauncher:
    def __init__(self, fail_for: Sequence[str] = ()) -> None:
        self.launched: List[tuple] = []
        self.fail_for = set(fail_for)

    def launch(self, descriptor, script_text):
        from packages.core.errors import LaunchFailure

        if descriptor.id in self.fail_for:
            raise LaunchFailure("wt.exe not found")
        self.launched.append((descriptor.id, script_text))


class CountingMatcher:
    def __init__(self, inner) -> None:
        self.inner = inner
        self.calls: List[str] = []

    def find_running(self, descriptor):
        self.calls.append(descriptor.id)
        return self.inner.find_running(descriptor)


class AllowAllValidator:
    def __init__(self) -> None:
        self.calls: List[str] = []

    def validate(self, descriptor):
        from packages.core.launcher.validation import DescriptorValidator

        self.calls.append(descriptor.id)
        DescriptorValidator(is_dir=lambda p: True, is_file=lambda p: True).validate(descriptor)


@pytest.fixture
def global_config() -> GlobalConfig:
    return GlobalConfig(settleDelayMs=0, launchDelayMs=0, processCheckIntervalMs=0)


@pytest.fixture
def no_sleep():
    slept: List[float] = []
    return slept.append

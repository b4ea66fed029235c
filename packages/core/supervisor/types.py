from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional

LaunchAction = Literal["retry", "start", "skip"]

DescriptorState = Literal[
    "VALIDATE",
    "CHECK_RUNNING",
    "RESOLVE",
    "KILL",
    "QUEUED",
    "LAUNCHED",
    "SKIPPED",
    "FAILED",
]


@dataclass(frozen=True)
class RunningProcessInfo:
    """A live process believed to belong to a descriptor.

    start_time, cpu_percent and memory_bytes are advisory, for display only.
    """
    pid: int
    parent_pid: Optional[int]
    name: str
    command_line: str
    start_time: Optional[float] = None
    cpu_percent: Optional[float] = None
    memory_bytes: Optional[int] = None

    def uptime_seconds(self, now: Optional[float] = None) -> Optional[float]:
        if self.start_time is None:
            return None
        return max(0.0, (now if now is not None else time.time()) - self.start_time)


@dataclass(frozen=True)
class LaunchDecision:
    action: LaunchAction
    stop_existing: bool = False


@dataclass
class LaunchSummary:
    states: Dict[str, DescriptorState] = field(default_factory=dict)
    trace: Dict[str, List[DescriptorState]] = field(default_factory=dict)
    inactive: List[str] = field(default_factory=list)
    # entries dropped at config load; a duplicate id can share a key with a live one
    rejected: List[str] = field(default_factory=list)

    def record(self, server_id: str, state: DescriptorState) -> None:
        self.states[server_id] = state
        self.trace.setdefault(server_id, []).append(state)

    def _with(self, state: DescriptorState) -> List[str]:
        return [sid for sid, st in self.states.items() if st == state]

    @property
    def launched(self) -> List[str]:
        return self._with("LAUNCHED")

    @property
    def skipped(self) -> List[str]:
        return self.rejected + self._with("SKIPPED")

    @property
    def failed(self) -> List[str]:
        return self._with("FAILED")

"""
Process tree teardown.

Order matters: descendants are killed before the target so nothing gets
re-parented mid-teardown, then the target, then the wrapper shells that were
hosting it. Every step is best-effort; only a surviving target counts as
failure.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, List, Optional

from packages.core.logging_ import for_descriptor
from packages.shared.paths import startup_script_name
from .process_table import ProcessTable
from .types import RunningProcessInfo

log = logging.getLogger(__name__)

SHELL_PROCESS_NAMES = ("powershell.exe", "powershell", "pwsh.exe", "pwsh", "cmd.exe", "cmd")


def _is_shell(proc: Optional[RunningProcessInfo]) -> bool:
    return proc is not None and proc.name.lower() in SHELL_PROCESS_NAMES


def descendants(pid: int, snapshot: List[RunningProcessInfo]) -> List[RunningProcessInfo]:
    """All live descendants of pid, deepest first."""
    children: Dict[int, List[RunningProcessInfo]] = {}
    for p in snapshot:
        if p.parent_pid is not None and p.parent_pid != p.pid:
            children.setdefault(p.parent_pid, []).append(p)

    ordered: List[RunningProcessInfo] = []
    seen = {pid}

    def walk(parent: int) -> None:
        for child in children.get(parent, []):
            if child.pid in seen:
                continue
            seen.add(child.pid)
            walk(child.pid)
            ordered.append(child)

    walk(pid)
    return ordered


class ProcessTreeKiller:
    def __init__(
        self,
        table: ProcessTable,
        settle_delay_s: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._table = table
        self._settle_delay_s = settle_delay_s
        self._sleep = sleep

    def stop(self, target: RunningProcessInfo, descriptor_id: str) -> bool:
        dlog = for_descriptor(log, descriptor_id)
        snapshot = self._table.snapshot()

        # 1. children
        for child in descendants(target.pid, snapshot):
            if not self._table.kill(child.pid):
                dlog.warning("Could not kill child process %d (%s)", child.pid, child.name)
            else:
                dlog.debug("Killed child process %d (%s)", child.pid, child.name)

        # 2. settle
        if self._settle_delay_s > 0:
            self._sleep(self._settle_delay_s)

        # 3. target, with forced termination as fallback
        if self._table.is_alive(target.pid):
            if not self._table.kill(target.pid):
                dlog.warning("Kill of process %d failed, forcing termination", target.pid)
                self._table.force_terminate(target.pid)

        # 4. wrapper shells
        for shell in self._wrapper_shells(target, descriptor_id, snapshot):
            if self._table.kill(shell.pid):
                dlog.debug("Closed wrapper shell %d (%s)", shell.pid, shell.name)
            else:
                dlog.warning("Could not close wrapper shell %d (%s)", shell.pid, shell.name)

        if self._table.is_alive(target.pid):
            dlog.error("Process %d is still running after all termination attempts", target.pid)
            return False
        dlog.info("Stopped process %d", target.pid)
        return True

    @staticmethod
    def _wrapper_shells(
        target: RunningProcessInfo, descriptor_id: str, snapshot: List[RunningProcessInfo]
    ) -> List[RunningProcessInfo]:
        marker = startup_script_name(descriptor_id).lower()
        found: Dict[int, RunningProcessInfo] = {}
        for p in snapshot:
            if p.pid == target.pid:
                continue
            if _is_shell(p) and marker in p.command_line.lower():
                found[p.pid] = p

        parent = next((p for p in snapshot if p.pid == target.parent_pid), None)
        if parent is not None and parent.pid != target.pid and _is_shell(parent):
            found.setdefault(parent.pid, parent)
        return list(found.values())

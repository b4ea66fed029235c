"""
Identify live processes that belong to a server descriptor.

Matching is a substring heuristic on command lines: the same script name in
two directories, or any process whose command line happens to contain the
configured command, will collide. Callers only see the ProcessMatcher
protocol, so a stricter strategy (pid files written at launch) can replace
CommandLineMatcher without touching them.
"""

from __future__ import annotations

import logging
import os
from pathlib import PureWindowsPath
from typing import List, Optional, Protocol

from packages.shared.config import ServerDescriptor
from packages.shared.paths import SCRIPT_MARKER
from .process_table import ProcessTable
from .types import RunningProcessInfo

log = logging.getLogger(__name__)

INTERPRETER_PATTERN = "python"

SHELL_NAMES = {
    "cmd": ("cmd.exe", "cmd"),
    "powershell": ("powershell.exe", "powershell", "pwsh.exe", "pwsh"),
}


class ProcessMatcher(Protocol):
    def find_running(self, descriptor: ServerDescriptor) -> List[RunningProcessInfo]:
        ...


def script_basename(command: str) -> str:
    """Filename of a python script command, ignoring any directory part."""
    first = command.strip().split()[0] if command.strip() else ""
    return PureWindowsPath(first.strip("\"'")).name


def is_launcher_wrapper(proc: RunningProcessInfo) -> bool:
    return SCRIPT_MARKER in proc.command_line.lower()


class CommandLineMatcher:
    """ProcessMatcher over a ProcessTable snapshot."""

    def __init__(self, table: ProcessTable, own_pid: Optional[int] = None) -> None:
        self._table = table
        self._own_pid = os.getpid() if own_pid is None else own_pid

    def find_running(self, descriptor: ServerDescriptor) -> List[RunningProcessInfo]:
        candidates = [
            p for p in self._table.snapshot()
            if p.pid != self._own_pid and not is_launcher_wrapper(p)
        ]

        if descriptor.type == "python":
            matches = self._match_python(descriptor, candidates)
        else:
            matches = self._match_command(descriptor, candidates)

        if len(matches) > 1 and descriptor.venv:
            venv = descriptor.venv.lower().rstrip("\\/")
            preferred = [p for p in matches if venv in p.command_line.lower()]
            if preferred:
                matches = preferred

        if matches:
            log.debug(
                "%d process(es) match: %s",
                len(matches),
                ", ".join(str(p.pid) for p in matches),
                extra={"descriptor": descriptor.id},
            )
        return matches

    @staticmethod
    def _match_python(
        descriptor: ServerDescriptor, candidates: List[RunningProcessInfo]
    ) -> List[RunningProcessInfo]:
        script = script_basename(descriptor.command).lower()
        if not script:
            return []
        return [
            p for p in candidates
            if INTERPRETER_PATTERN in p.name.lower() and script in p.command_line.lower()
        ]

    @staticmethod
    def _match_command(
        descriptor: ServerDescriptor, candidates: List[RunningProcessInfo]
    ) -> List[RunningProcessInfo]:
        needle = descriptor.command
        matches = [p for p in candidates if needle in p.command_line]
        shell_names = SHELL_NAMES.get(descriptor.shell or "none")
        if descriptor.type == "command" and shell_names:
            matches = [p for p in matches if p.name.lower() in shell_names]
        return matches

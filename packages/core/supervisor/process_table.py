"""
Live process table access.

Everything that reads or mutates the OS process table goes through the
ProcessTable protocol so the matcher and the killer can be exercised against
a fixed snapshot.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
from typing import List, Optional, Protocol

import psutil

from packages.core.errors import ProcessQueryError
from .types import RunningProcessInfo

log = logging.getLogger(__name__)

_ATTRS = ["pid", "ppid", "name", "cmdline", "create_time", "memory_info", "cpu_percent"]


class ProcessTable(Protocol):
    def snapshot(self) -> List[RunningProcessInfo]:
        ...

    def is_alive(self, pid: int) -> bool:
        ...

    def kill(self, pid: int) -> bool:
        """Force-kill one process. True if it is gone afterwards."""
        ...

    def force_terminate(self, pid: int) -> bool:
        """OS-level fallback kill by pid. True if it is gone afterwards."""
        ...


def _join_cmdline(parts: Optional[List[str]]) -> str:
    if not parts:
        return ""
    return " ".join(str(p) for p in parts)


def _to_info(info: dict) -> RunningProcessInfo:
    try:
        mem = info.get("memory_info")
        return RunningProcessInfo(
            pid=int(info["pid"]),
            parent_pid=info.get("ppid"),
            name=str(info.get("name") or ""),
            command_line=_join_cmdline(info.get("cmdline")),
            start_time=info.get("create_time"),
            cpu_percent=info.get("cpu_percent"),
            memory_bytes=getattr(mem, "rss", None),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ProcessQueryError(f"unreadable process entry: {e}") from e


class PsutilProcessTable:
    """ProcessTable backed by psutil."""

    def __init__(self, wait_timeout: float = 5.0) -> None:
        self._wait_timeout = wait_timeout

    def snapshot(self) -> List[RunningProcessInfo]:
        result: List[RunningProcessInfo] = []
        # ad_value keeps protected processes in the list with blank fields
        for p in psutil.process_iter(attrs=_ATTRS, ad_value=None):
            try:
                result.append(_to_info(p.info))
            except ProcessQueryError as e:
                log.debug("Skipping pid %s: %s", getattr(p, "pid", "?"), e)
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue
        return result

    def is_alive(self, pid: int) -> bool:
        try:
            p = psutil.Process(pid)
            return p.is_running() and p.status() != psutil.STATUS_ZOMBIE
        except (psutil.NoSuchProcess, psutil.ZombieProcess):
            return False
        except psutil.AccessDenied:
            return True

    def kill(self, pid: int) -> bool:
        try:
            p = psutil.Process(pid)
            p.kill()
            p.wait(timeout=self._wait_timeout)
        except psutil.NoSuchProcess:
            return True
        except psutil.TimeoutExpired:
            log.debug("pid %d did not exit within %.1fs", pid, self._wait_timeout)
        except psutil.AccessDenied as e:
            log.debug("Access denied killing pid %d: %s", pid, e)
        return not self.is_alive(pid)

    def force_terminate(self, pid: int) -> bool:
        try:
            if sys.platform == "win32":
                subprocess.run(
                    ["taskkill", "/F", "/T", "/PID", str(pid)],
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                    timeout=self._wait_timeout,
                    creationflags=getattr(subprocess, "CREATE_NO_WINDOW", 0),
                )
            else:
                os.kill(pid, signal.SIGKILL)
        except ProcessLookupError:
            return True
        except (OSError, subprocess.TimeoutExpired) as e:
            log.debug("Forced termination of pid %d failed: %s", pid, e)
        return not self.is_alive(pid)

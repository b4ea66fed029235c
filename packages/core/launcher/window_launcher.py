"""
Open server windows in Windows Terminal.

Each launch writes its startup script to a fresh temp directory scoped to the
server id, starts the terminal host without waiting on it, and schedules the
directory for deletion. Nothing tells us when the terminal has read the
script, so cleanup runs after a fixed delay and may occasionally lose the race
(the script then fails to start, or the directory is left behind). A left
behind directory is picked up by sweep_stale_scripts on a later run.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Sequence

from packages.core.errors import LaunchFailure
from packages.core.logging_ import for_descriptor
from packages.shared.config import GlobalConfig, ServerDescriptor
from packages.shared.paths import SCRIPT_MARKER, TEMP_DIR_PREFIX, startup_script_name, temp_root

log = logging.getLogger(__name__)

Scheduler = Callable[[float, Callable[[], None]], object]
Spawner = Callable[[Sequence[str]], object]


class WindowLauncher(Protocol):
    def launch(self, descriptor: ServerDescriptor, script_text: str) -> None:
        ...


def timer_scheduler(delay: float, fn: Callable[[], None]) -> threading.Timer:
    # not a daemon: the interpreter waits for pending deletions before exiting
    t = threading.Timer(delay, fn)
    t.name = "ScriptCleanup"
    t.start()
    return t


def wt_escape(value: str) -> str:
    """wt.exe splits its command line on a bare ';' into separate subcommands."""
    return value.replace(";", "\\;")


def _popen(args: Sequence[str]) -> subprocess.Popen:
    return subprocess.Popen(
        list(args),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        close_fds=True,
    )


def remove_script_dir(path: Path) -> None:
    try:
        shutil.rmtree(path)
        log.debug("Removed %s", path)
    except FileNotFoundError:
        pass
    except OSError as e:
        log.debug("Could not remove %s: %s", path, e)


def sweep_stale_scripts(max_age_s: float, root: Optional[Path] = None) -> int:
    """Delete leftover startup-script directories older than max_age_s."""
    root = root or temp_root()
    cutoff = time.time() - max_age_s
    removed = 0
    for d in root.glob(f"{TEMP_DIR_PREFIX}*"):
        try:
            if not d.is_dir() or d.stat().st_mtime > cutoff:
                continue
        except OSError:
            continue
        if not any(f.name.startswith(SCRIPT_MARKER) for f in d.iterdir()):
            continue
        remove_script_dir(d)
        removed += 1
    if removed:
        log.info("Removed %d stale startup script folder(s)", removed)
    return removed


class TerminalWindowLauncher:
    """WindowLauncher using wt.exe and a no-profile PowerShell host."""

    def __init__(
        self,
        config: GlobalConfig,
        spawn: Spawner = _popen,
        schedule: Scheduler = timer_scheduler,
        temp_dir: Optional[Path] = None,
    ) -> None:
        self._cfg = config
        self._spawn = spawn
        self._schedule = schedule
        self._temp_dir = temp_dir

    def command_line(self, descriptor: ServerDescriptor, script_path: Path) -> List[str]:
        pos = descriptor.display.position
        return [
            self._cfg.terminal_executable,
            "-w", "new",
            "--pos", f"{pos.x},{pos.y}",
            "--size", f"{pos.width},{pos.height}",
            "new-tab",
            "--title", wt_escape(descriptor.title),
            "--colorScheme", wt_escape(descriptor.display.color_scheme),
            self._cfg.shell_executable,
            "-NoProfile",
            "-NoExit",
            "-ExecutionPolicy", "Bypass",
            "-File", wt_escape(str(script_path)),
        ]

    def write_script(self, descriptor: ServerDescriptor, script_text: str) -> Path:
        base = self._temp_dir or temp_root()
        try:
            folder = Path(tempfile.mkdtemp(prefix=f"{TEMP_DIR_PREFIX}{descriptor.id}_", dir=str(base)))
            script = folder / startup_script_name(descriptor.id)
            # BOM so Windows PowerShell 5 reads non-ASCII paths correctly
            script.write_text(script_text, encoding="utf-8-sig")
        except OSError as e:
            raise LaunchFailure(f"Cannot write startup script: {e}") from e
        return script

    def launch(self, descriptor: ServerDescriptor, script_text: str) -> None:
        dlog = for_descriptor(log, descriptor.id)
        script = self.write_script(descriptor, script_text)
        args = self.command_line(descriptor, script)
        dlog.debug("Starting terminal: %s", " ".join(args))

        try:
            self._spawn(args)
        except OSError as e:
            remove_script_dir(script.parent)
            raise LaunchFailure(f"Cannot start {self._cfg.terminal_executable}: {e}") from e

        folder = script.parent
        self._schedule(self._cfg.cleanup_delay_s, lambda: remove_script_dir(folder))

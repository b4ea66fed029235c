"""
Launch orchestration.

Per active descriptor, strictly one at a time and in list order:

    VALIDATE -> SKIPPED | CHECK_RUNNING
    CHECK_RUNNING -> QUEUED | RESOLVE
    RESOLVE -> CHECK_RUNNING (retry) | SKIPPED | KILL | QUEUED
    KILL -> QUEUED | CHECK_RUNNING (operator retries) | SKIPPED
    QUEUED -> LAUNCHED | FAILED

Windows are only opened once every descriptor has been resolved.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from packages.core.errors import KillFailure, LauncherError
from packages.core.logging_ import DescriptorLogger, for_descriptor
from packages.core.supervisor.killer import ProcessTreeKiller
from packages.core.supervisor.matcher import ProcessMatcher
from packages.core.supervisor.resolver import ConflictResolver
from packages.core.supervisor.types import DescriptorState, LaunchSummary, RunningProcessInfo
from packages.shared.config import GlobalConfig, ServerDescriptor
from .script_builder import build_startup_script
from .validation import DescriptorValidator
from .window_launcher import WindowLauncher

log = logging.getLogger(__name__)


@dataclass
class OrchestratorOptions:
    ignore_running: bool = False


class LaunchOrchestrator:
    def __init__(
        self,
        config: GlobalConfig,
        matcher: ProcessMatcher,
        resolver: ConflictResolver,
        killer: ProcessTreeKiller,
        launcher: WindowLauncher,
        validator: Optional[DescriptorValidator] = None,
        options: Optional[OrchestratorOptions] = None,
        build_script: Callable[[ServerDescriptor], str] = build_startup_script,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._cfg = config
        self._matcher = matcher
        self._resolver = resolver
        self._killer = killer
        self._launcher = launcher
        self._validator = validator or DescriptorValidator()
        self._opts = options or OrchestratorOptions()
        self._build_script = build_script
        self._sleep = sleep

    def run(self, descriptors: Sequence[ServerDescriptor], rejected: Sequence[str] = ()) -> LaunchSummary:
        """Process descriptors in order, then open windows for the queued ones.

        rejected holds the ids (or positions) of entries dropped when the
        configuration was loaded; they count as skipped.
        """
        summary = LaunchSummary()
        queued: List[ServerDescriptor] = []

        summary.rejected.extend(rejected)

        for d in descriptors:
            if not d.active:
                log.debug("Inactive, skipped", extra={"descriptor": d.id})
                summary.inactive.append(d.id)
                continue

            dlog = for_descriptor(log, d.id)
            try:
                state = self._process(d, summary, dlog)
            except LauncherError as e:
                dlog.error("%s", e)
                state = "SKIPPED"
                summary.record(d.id, state)
            except Exception as e:
                dlog.exception("Unexpected error: %s", e)
                state = "SKIPPED"
                summary.record(d.id, state)

            if state == "QUEUED":
                queued.append(d)

        if not queued:
            log.warning("Nothing to launch")
            self._log_summary(summary)
            return summary

        if not self._resolver.confirm_launch(queued):
            log.info("Launch cancelled by operator")
            for d in queued:
                summary.record(d.id, "SKIPPED")
            self._log_summary(summary)
            return summary

        for i, d in enumerate(queued):
            if i:
                self._sleep(self._cfg.launch_delay_ms / 1000.0)
            summary.record(d.id, self._launch(d))

        self._log_summary(summary)
        return summary

    def _process(self, d: ServerDescriptor, summary: LaunchSummary, dlog: DescriptorLogger) -> DescriptorState:
        summary.record(d.id, "VALIDATE")
        self._validator.validate(d)

        if self._opts.ignore_running:
            dlog.debug("Running check bypassed")
            summary.record(d.id, "QUEUED")
            return "QUEUED"

        while True:
            summary.record(d.id, "CHECK_RUNNING")
            matches = self._matcher.find_running(d)
            if not matches:
                summary.record(d.id, "QUEUED")
                return "QUEUED"

            summary.record(d.id, "RESOLVE")
            decision = self._resolver.resolve(d, matches)
            if decision.action == "retry":
                dlog.info("Checking again")
                continue
            if decision.action == "skip":
                dlog.info("Skipped: already running (PID %d)", matches[0].pid)
                summary.record(d.id, "SKIPPED")
                return "SKIPPED"

            if not decision.stop_existing:
                dlog.warning("Starting alongside running instance (PID %d)", matches[0].pid)
                summary.record(d.id, "QUEUED")
                return "QUEUED"

            summary.record(d.id, "KILL")
            try:
                self._stop(d, matches, dlog)
            except KillFailure as e:
                dlog.error("%s", e)
                if self._resolver.confirm_retry(d):
                    self._sleep(self._cfg.process_check_interval_ms / 1000.0)
                    continue
                summary.record(d.id, "SKIPPED")
                return "SKIPPED"

            summary.record(d.id, "QUEUED")
            return "QUEUED"

    def _stop(self, d: ServerDescriptor, matches: List[RunningProcessInfo], dlog: DescriptorLogger) -> None:
        target = matches[0]
        dlog.info("Stopping running instance (PID %d)", target.pid)
        if not self._killer.stop(target, d.id):
            raise KillFailure(target.pid, f"Could not stop process {target.pid}")

    def _launch(self, d: ServerDescriptor) -> DescriptorState:
        dlog = for_descriptor(log, d.id)
        try:
            self._launcher.launch(d, self._build_script(d))
        except LauncherError as e:
            dlog.error("Launch failed: %s", e)
            return "FAILED"
        except Exception as e:
            dlog.exception("Launch failed: %s", e)
            return "FAILED"
        dlog.success("Started '%s'", d.title)
        return "LAUNCHED"

    def status(self, descriptors: Sequence[ServerDescriptor]) -> Dict[str, List[RunningProcessInfo]]:
        return {d.id: self._matcher.find_running(d) for d in descriptors if d.active}

    def stop_all(self, descriptors: Sequence[ServerDescriptor]) -> Dict[str, bool]:
        """Tear down every running instance of the active descriptors."""
        results: Dict[str, bool] = {}
        for d in descriptors:
            if not d.active:
                continue
            dlog = for_descriptor(log, d.id)
            ok = True
            try:
                for proc in self._matcher.find_running(d):
                    # an earlier tree kill may already have taken this one
                    ok = self._killer.stop(proc, d.id) and ok
            except LauncherError as e:
                dlog.error("%s", e)
                ok = False
            results[d.id] = ok
            if not ok:
                dlog.error("Could not stop every process")
        return results

    @staticmethod
    def _log_summary(summary: LaunchSummary) -> None:
        log.info(
            "Summary: %d launched, %d skipped, %d failed, %d inactive",
            len(summary.launched),
            len(summary.skipped),
            len(summary.failed),
            len(summary.inactive),
        )
        for sid in summary.failed:
            log.error("Failed to launch", extra={"descriptor": sid})

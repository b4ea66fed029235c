from __future__ import annotations

import logging
from typing import Callable, List, Protocol, Sequence

from packages.shared.config import ServerDescriptor
from .types import LaunchDecision, RunningProcessInfo

log = logging.getLogger(__name__)

_CHOICES = {
    "1": LaunchDecision("retry"),
    "2": LaunchDecision("start", stop_existing=True),
    "3": LaunchDecision("start", stop_existing=False),
    "4": LaunchDecision("skip"),
}

_YES = ("y", "yes")
_NO = ("n", "no")


class ConflictResolver(Protocol):
    """Decision points where the orchestrator may need an operator."""

    def resolve(self, descriptor: ServerDescriptor, matches: List[RunningProcessInfo]) -> LaunchDecision:
        ...

    def confirm_retry(self, descriptor: ServerDescriptor) -> bool:
        """Asked after a failed kill: run the check/resolve/kill loop again?"""
        ...

    def confirm_launch(self, descriptors: Sequence[ServerDescriptor]) -> bool:
        ...


class ForceResolver:
    """Non-interactive policy: always stop what is running and start."""

    def resolve(self, descriptor: ServerDescriptor, matches: List[RunningProcessInfo]) -> LaunchDecision:
        return LaunchDecision("start", stop_existing=True)

    def confirm_retry(self, descriptor: ServerDescriptor) -> bool:
        # unattended runs must not loop on a process that cannot be killed
        return False

    def confirm_launch(self, descriptors: Sequence[ServerDescriptor]) -> bool:
        return True


def _format_bytes(n) -> str:
    if n is None:
        return "?"
    return f"{n / (1024 * 1024):.1f} MB"


def _format_uptime(seconds) -> str:
    if seconds is None:
        return "?"
    seconds = int(seconds)
    h, rem = divmod(seconds, 3600)
    m, s = divmod(rem, 60)
    return f"{h:d}h {m:02d}m {s:02d}s" if h else f"{m:d}m {s:02d}s"


class InteractiveResolver:
    """Asks the operator on the console. Blocks until a valid answer is given."""

    def __init__(
        self,
        prompt: Callable[[str], str] = input,
        echo: Callable[[str], None] = print,
    ) -> None:
        self._prompt = prompt
        self._echo = echo

    def resolve(self, descriptor: ServerDescriptor, matches: List[RunningProcessInfo]) -> LaunchDecision:
        self._echo("")
        self._echo(f"'{descriptor.title}' ({descriptor.id}) appears to be running already:")
        for p in matches:
            self._echo(
                f"  PID {p.pid}  uptime {_format_uptime(p.uptime_seconds())}  "
                f"memory {_format_bytes(p.memory_bytes)}"
            )
            self._echo(f"    {p.command_line}")
        self._echo("  [1] Check again")
        self._echo("  [2] Stop the running process and start a new one")
        self._echo("  [3] Start another instance anyway")
        self._echo("  [4] Skip this server")

        while True:
            answer = self._read("Choose 1-4: ")
            if answer is None:
                log.warning("No input available, skipping", extra={"descriptor": descriptor.id})
                return LaunchDecision("skip")
            answer = answer.strip()
            decision = _CHOICES.get(answer)
            if decision is not None:
                log.debug("Operator chose %s", answer, extra={"descriptor": descriptor.id})
                return decision
            self._echo(f"Invalid choice: {answer!r}")

    def confirm_retry(self, descriptor: ServerDescriptor) -> bool:
        return self._ask_yes_no(f"Could not stop '{descriptor.title}'. Try again? [y/n]: ")

    def confirm_launch(self, descriptors: Sequence[ServerDescriptor]) -> bool:
        self._echo("")
        self._echo("The following servers will be started:")
        for d in descriptors:
            self._echo(f"  - {d.title} ({d.id})")
        return self._ask_yes_no("Continue? [y/n]: ")

    def _ask_yes_no(self, question: str) -> bool:
        while True:
            answer = self._read(question)
            if answer is None:
                log.warning("No input available, answering no")
                return False
            answer = answer.strip().lower()
            if answer in _YES:
                return True
            if answer in _NO:
                return False
            self._echo(f"Please answer y or n, not {answer!r}")

    def _read(self, question: str):
        """Returns None once stdin is closed."""
        try:
            return self._prompt(question)
        except EOFError:
            self._echo("")
            return None

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from packages.core.errors import ConfigError
from packages.core.launcher.orchestrator import LaunchOrchestrator, OrchestratorOptions
from packages.core.launcher.window_launcher import TerminalWindowLauncher, sweep_stale_scripts
from packages.core.logging_ import setup_logging
from packages.core.supervisor.killer import ProcessTreeKiller
from packages.core.supervisor.matcher import CommandLineMatcher
from packages.core.supervisor.process_table import PsutilProcessTable
from packages.core.supervisor.resolver import ForceResolver, InteractiveResolver
from packages.shared.config import LauncherConfig
from packages.shared.paths import DEFAULT_CONFIG_FILE
from packages.shared.store import ConfigStore

log = logging.getLogger("apps.launcher")

STALE_SCRIPT_AGE_S = 24 * 3600


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="py-win-server-launcher",
        description="Start the configured local servers, each in its own terminal window.",
        add_help=False,
    )
    parser.add_argument("config", nargs="?", default=f"./{DEFAULT_CONFIG_FILE}",
                        help=f"path to the JSON configuration (default: ./{DEFAULT_CONFIG_FILE})")
    parser.add_argument("-f", "--force", action="store_true",
                        help="stop running instances and restart without asking")
    parser.add_argument("--ignore-running", action="store_true",
                        help="do not check for running instances")
    parser.add_argument("--status", action="store_true",
                        help="show which servers are running and exit")
    parser.add_argument("--stop", action="store_true",
                        help="stop every running server and exit")
    parser.add_argument("--layout", metavar="NAME",
                        help="place windows using a layout preset from the configuration")
    parser.add_argument("-v", "--verbose", action="store_true", help="log debug messages")
    parser.add_argument("-h", "--help", "-?", action="help", help="show this help message and exit")
    return parser


def apply_layout(cfg: LauncherConfig, name: str) -> LauncherConfig:
    positions = cfg.config.layout_positions(name)
    servers = []
    slot = 0
    for server in cfg.servers:
        if server.active and slot < len(positions):
            server = server.with_position(positions[slot])
            slot += 1
        servers.append(server)
    if slot < sum(1 for s in cfg.servers if s.active):
        log.warning("Layout '%s' has %d slot(s); remaining servers keep their own position", name, len(positions))
    return cfg.model_copy(update={"servers": servers})


def print_status(orchestrator: LaunchOrchestrator, cfg: LauncherConfig) -> None:
    running = orchestrator.status(cfg.servers)
    for server in cfg.servers:
        if not server.active:
            print(f"  {server.id:<16} inactive")
            continue
        procs = running.get(server.id) or []
        if procs:
            pids = ", ".join(str(p.pid) for p in procs)
            print(f"  {server.id:<16} running (PID {pids})")
        else:
            print(f"  {server.id:<16} stopped")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    store = ConfigStore(Path(args.config))
    if not store.exists():
        setup_logging(verbose=args.verbose)
        log.error("Configuration file not found: %s", store.path())
        return 1

    try:
        cfg = store.load()
    except ConfigError as e:
        setup_logging(verbose=args.verbose)
        log.error("%s", e)
        return 1

    setup_logging(cfg.config, verbose=args.verbose)
    for label, reason in store.rejected:
        log.error("Server rejected: %s", reason, extra={"descriptor": label})

    if args.layout:
        try:
            cfg = apply_layout(cfg, args.layout)
        except KeyError:
            log.error("Unknown layout '%s'", args.layout)
            return 1

    table = PsutilProcessTable(wait_timeout=cfg.config.graceful_shutdown_timeout_s)
    orchestrator = LaunchOrchestrator(
        cfg.config,
        matcher=CommandLineMatcher(table),
        resolver=ForceResolver() if args.force else InteractiveResolver(),
        killer=ProcessTreeKiller(table, settle_delay_s=cfg.config.settle_delay_ms / 1000.0),
        launcher=TerminalWindowLauncher(cfg.config),
        options=OrchestratorOptions(ignore_running=args.ignore_running),
    )

    try:
        if args.status:
            print_status(orchestrator, cfg)
            return 0
        if args.stop:
            results = orchestrator.stop_all(cfg.servers)
            stopped = sum(1 for ok in results.values() if ok)
            log.info("Stop finished: %d of %d server(s) clear", stopped, len(results))
            return 0

        sweep_stale_scripts(STALE_SCRIPT_AGE_S)
        orchestrator.run(cfg.servers, rejected=[label for label, _ in store.rejected])
    except (KeyboardInterrupt, EOFError):
        print("\nInterrupted, exiting.")
    return 0


if __name__ == "__main__":
    sys.exit(main())

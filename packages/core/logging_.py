from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from packages.shared.config import GlobalConfig
from packages.shared.paths import log_path, ensure_app_dirs

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

LOG_FORMAT = "[%(asctime)s][%(levelname)s][%(descriptor)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class DescriptorFilter(logging.Filter):
    """Fills in the descriptor column for records logged without one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "descriptor"):
            record.descriptor = "-"
        return True


class DescriptorLogger(logging.LoggerAdapter):
    """Logger bound to one server id."""

    def __init__(self, logger: logging.Logger, descriptor: str) -> None:
        super().__init__(logger, {"descriptor": descriptor})

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("descriptor", self.extra["descriptor"])
        kwargs["extra"] = extra
        return msg, kwargs

    def success(self, msg, *args, **kwargs) -> None:
        self.log(SUCCESS, msg, *args, **kwargs)


def for_descriptor(logger: logging.Logger, descriptor: str) -> DescriptorLogger:
    return DescriptorLogger(logger, descriptor)


def setup_logging(config: Optional[GlobalConfig] = None, verbose: bool = False) -> None:
    config = config or GlobalConfig()
    level = logging.DEBUG if verbose else getattr(logging, config.log_level)

    root = logging.getLogger()
    root.setLevel(level)

    if root.handlers:
        for h in root.handlers:
            h.setLevel(level)
        return

    fmt = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    flt = DescriptorFilter()

    ch = logging.StreamHandler()
    ch.setLevel(level)
    ch.setFormatter(fmt)
    ch.addFilter(flt)
    root.addHandler(ch)

    if config.log_file:
        target = Path(config.log_file)
        target.parent.mkdir(parents=True, exist_ok=True)
    else:
        ensure_app_dirs()
        target = log_path()

    fh = RotatingFileHandler(
        str(target),
        maxBytes=int(config.max_log_size_mb * 1024 * 1024),
        backupCount=config.max_log_files,
        encoding="utf-8",
    )
    fh.setLevel(level)
    fh.setFormatter(fmt)
    fh.addFilter(flt)
    root.addHandler(fh)

    # psutil is chatty at DEBUG on Windows when it hits protected processes
    logging.getLogger("psutil").setLevel(logging.WARNING)

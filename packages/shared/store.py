from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, List, Optional, Tuple

from pydantic import ValidationError

from packages.core.errors import ConfigError
from packages.shared.config import GlobalConfig, LauncherConfig, ServerDescriptor
from packages.shared.paths import default_config_path

log = logging.getLogger(__name__)


def _describe(err: ValidationError) -> str:
    parts = []
    for e in err.errors():
        loc = ".".join(str(p) for p in e.get("loc", ()))
        parts.append(f"{loc}: {e.get('msg')}" if loc else str(e.get("msg")))
    return "; ".join(parts)


class ConfigStore:
    """Reads the launcher's JSON document.

    The document itself must parse; individual server entries that fail
    validation are dropped and recorded in ``rejected`` as (label, reason)
    so the rest of the list still loads.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = Path(path) if path is not None else default_config_path()
        self.rejected: List[Tuple[str, str]] = []

    def path(self) -> str:
        return str(self._path)

    def exists(self) -> bool:
        return self._path.is_file()

    def load(self) -> LauncherConfig:
        if not self.exists():
            raise ConfigError(f"Configuration file not found: {self._path}")

        try:
            raw = self._path.read_text(encoding="utf-8-sig")
            data: Any = json.loads(raw)
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError(f"Cannot read {self._path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigError(f"Malformed JSON in {self._path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"{self._path}: top-level document must be an object")

        try:
            global_cfg = GlobalConfig.model_validate(data.get("config") or {})
        except ValidationError as e:
            raise ConfigError(f"{self._path}: invalid 'config' section: {_describe(e)}") from e

        entries = data.get("servers") or []
        if not isinstance(entries, list):
            raise ConfigError(f"{self._path}: 'servers' must be a list")

        self.rejected = []
        servers: List[ServerDescriptor] = []
        seen: set[str] = set()
        for index, entry in enumerate(entries):
            label = entry.get("id") if isinstance(entry, dict) and entry.get("id") else f"#{index}"
            try:
                server = ServerDescriptor.model_validate(entry)
            except ValidationError as e:
                self.rejected.append((str(label), _describe(e)))
                continue
            if server.id in seen:
                self.rejected.append((str(label), "duplicate id"))
                continue
            seen.add(server.id)
            servers.append(server)

        log.debug("Loaded %d server(s) from %s", len(servers), self._path)
        return LauncherConfig(config=global_cfg, servers=servers)

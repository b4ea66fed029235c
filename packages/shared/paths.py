from __future__ import annotations

import os
import tempfile
from pathlib import Path

APP_NAME = "PyWinServerLauncher"

DEFAULT_CONFIG_FILE = "py_win_server_launcher.json"

# Every temp startup script is named with this prefix; the matcher and the
# killer rely on it to recognise the launcher's own wrapper shells.
SCRIPT_MARKER = "pwsl_start_"
TEMP_DIR_PREFIX = "pwsl_"


def app_data_dir() -> Path:
    base = os.environ.get("APPDATA") or str(Path.home())
    return Path(base) / APP_NAME


def logs_dir() -> Path:
    return app_data_dir() / "logs"


def log_path() -> Path:
    return logs_dir() / "launcher.log"


def default_config_path() -> Path:
    return Path(".") / DEFAULT_CONFIG_FILE


def temp_root() -> Path:
    return Path(tempfile.gettempdir())


def startup_script_name(server_id: str) -> str:
    return f"{SCRIPT_MARKER}{server_id}.ps1"


def ensure_app_dirs() -> None:
    app_data_dir().mkdir(parents=True, exist_ok=True)
    logs_dir().mkdir(parents=True, exist_ok=True)

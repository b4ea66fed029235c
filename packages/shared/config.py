from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ServerType = Literal["python", "command", "venv-command"]
ShellType = Literal["none", "cmd", "powershell"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]

# Kinds whose startup script sources a virtual environment first.
VENV_TYPES = ("python", "venv-command")


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class Position(_Model):
    x: int
    y: int
    width: int
    height: int


class LayoutSlot(_Model):
    """A layout preset entry; missing sizes fall back to the default window."""
    x: int
    y: int
    width: Optional[int] = None
    height: Optional[int] = None


class DisplaySettings(_Model):
    color_scheme: str = Field(alias="colorScheme", min_length=1)
    position: Position


class DefaultWindow(_Model):
    width: int = 120
    height: int = 30
    color_scheme: str = Field(default="Campbell", alias="colorScheme")


class ServerDescriptor(_Model):
    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    type: ServerType
    command: str = Field(min_length=1)
    shell: Optional[ShellType] = None
    working_dir: str = Field(alias="workingDir", min_length=1)
    venv: Optional[str] = None
    active: bool = True
    display: DisplaySettings

    @property
    def needs_venv(self) -> bool:
        return self.type in VENV_TYPES

    def with_position(self, position: Position) -> "ServerDescriptor":
        display = self.display.model_copy(update={"position": position})
        return self.model_copy(update={"display": display})


class GlobalConfig(_Model):
    log_file: Optional[str] = Field(default=None, alias="logFile")
    log_level: LogLevel = Field(default="INFO", alias="logLevel")
    max_log_size_mb: float = Field(default=5, alias="maxLogSizeMB", gt=0)
    max_log_files: int = Field(default=5, alias="maxLogFiles", ge=0)
    default_window: DefaultWindow = Field(default_factory=DefaultWindow, alias="defaultWindow")
    layouts: Dict[str, List[LayoutSlot]] = Field(default_factory=dict)
    process_check_interval_ms: int = Field(default=1000, alias="processCheckIntervalMs", ge=0)
    graceful_shutdown_timeout_s: float = Field(default=5.0, alias="gracefulShutdownTimeoutS", ge=0)
    settle_delay_ms: int = Field(default=500, alias="settleDelayMs", ge=0)
    launch_delay_ms: int = Field(default=1500, alias="launchDelayMs", ge=0)
    cleanup_delay_s: float = Field(default=10.0, alias="cleanupDelayS", ge=0)
    terminal_executable: str = Field(default="wt.exe", alias="terminalExecutable")
    shell_executable: str = Field(default="powershell.exe", alias="shellExecutable")

    def layout_positions(self, name: str) -> List[Position]:
        if name not in self.layouts:
            raise KeyError(name)
        dw = self.default_window
        return [
            Position(
                x=slot.x,
                y=slot.y,
                width=slot.width if slot.width is not None else dw.width,
                height=slot.height if slot.height is not None else dw.height,
            )
            for slot in self.layouts[name]
        ]


class LauncherConfig(_Model):
    config: GlobalConfig = Field(default_factory=GlobalConfig)
    servers: List[ServerDescriptor] = Field(default_factory=list)

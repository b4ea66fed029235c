from __future__ import annotations


class LauncherError(Exception):
    """Base class for every error the launcher reports per descriptor."""


class ConfigError(LauncherError):
    pass


class DescriptorEnvironmentError(LauncherError):
    """Working directory, activation script or python script is missing."""


class ProcessQueryError(LauncherError):
    pass


class KillFailure(LauncherError):
    def __init__(self, pid: int, message: str = "") -> None:
        super().__init__(message or f"process {pid} survived termination")
        self.pid = pid


class LaunchFailure(LauncherError):
    pass

from __future__ import annotations

import os
from typing import Callable

from packages.core.errors import ConfigError, DescriptorEnvironmentError
from packages.shared.config import ServerDescriptor
from packages.core.supervisor.matcher import script_basename
from .script_builder import ACTIVATE_SCRIPT

PathCheck = Callable[[str], bool]


class DescriptorValidator:
    """Checks a descriptor before any process action is taken for it.

    Raises ConfigError for fields the server type requires but does not have,
    DescriptorEnvironmentError for paths that do not exist.
    """

    def __init__(self, is_dir: PathCheck = os.path.isdir, is_file: PathCheck = os.path.isfile) -> None:
        self._is_dir = is_dir
        self._is_file = is_file

    def validate(self, d: ServerDescriptor) -> None:
        if d.needs_venv and not (d.venv or "").strip():
            raise ConfigError(f"'venv' is required for type '{d.type}'")
        if d.type == "python" and not script_basename(d.command):
            raise ConfigError("'command' must name a python script")

        if not self._is_dir(d.working_dir):
            raise DescriptorEnvironmentError(f"Working directory not found: {d.working_dir}")

        if d.needs_venv:
            activate = os.path.join(d.venv or "", *ACTIVATE_SCRIPT)
            if not self._is_file(activate):
                raise DescriptorEnvironmentError(f"Virtual environment activation script not found: {activate}")

        if d.type == "python":
            script = d.command.strip().split()[0].strip("\"'")
            full = script if os.path.isabs(script) else os.path.join(d.working_dir, script)
            if not self._is_file(full):
                raise DescriptorEnvironmentError(f"Python script not found: {full}")

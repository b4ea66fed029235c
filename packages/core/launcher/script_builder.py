"""
PowerShell startup scripts for server windows.

The script always changes to the working directory first and runs the rest
inside try/catch, so a misconfigured server leaves its window open with the
error visible instead of closing instantly.
"""

from __future__ import annotations

import ntpath
from typing import List

from packages.shared.config import ServerDescriptor

ACTIVATE_SCRIPT = ("Scripts", "Activate.ps1")
PYTHON_EXECUTABLE = "python"


def ps_quote(value: str) -> str:
    """Single-quoted PowerShell literal."""
    return "'" + value.replace("'", "''") + "'"


def activation_script_path(venv: str) -> str:
    return ntpath.join(venv, *ACTIVATE_SCRIPT)


def _body(descriptor: ServerDescriptor) -> List[str]:
    lines: List[str] = []
    if descriptor.type in ("python", "venv-command"):
        lines.append(f". {ps_quote(activation_script_path(descriptor.venv or ''))}")

    if descriptor.type == "python":
        lines.append(f"{PYTHON_EXECUTABLE} {descriptor.command}")
    elif descriptor.type == "venv-command":
        lines.append(descriptor.command)
    elif descriptor.shell == "cmd":
        lines.append(f"cmd /c {descriptor.command}")
    elif descriptor.shell == "powershell":
        lines.append(f"powershell -NoProfile -Command {descriptor.command}")
    else:
        lines.append(descriptor.command)

    # native programs report failure through the exit code, not an exception
    lines.append("if ($LASTEXITCODE -and $LASTEXITCODE -ne 0) { throw \"Exited with code $LASTEXITCODE\" }")
    return lines


def build_startup_script(descriptor: ServerDescriptor) -> str:
    out = [
        f"# {descriptor.title} ({descriptor.id})",
        "$ErrorActionPreference = 'Stop'",
        f"$Host.UI.RawUI.WindowTitle = {ps_quote(descriptor.title)}",
        "try {",
        f"    Set-Location -LiteralPath {ps_quote(descriptor.working_dir)}",
    ]
    out.extend(f"    {line}" for line in _body(descriptor))
    out.extend([
        "} catch {",
        "    Write-Host \"ERROR: $($_.Exception.Message)\" -ForegroundColor Red",
        "    Write-Host 'Press any key to close this window...'",
        "    $null = $Host.UI.RawUI.ReadKey('NoEcho,IncludeKeyDown')",
        "    exit 1",
        "}",
    ])
    return "\r\n".join(out) + "\r\n"

# audioswitch/compat.py
"""
Platform helpers shared by the runner and the CLI.
"""
import ctypes
import os
import subprocess

def is_admin():
    try:
        return bool(ctypes.windll.shell32.IsUserAnAdmin())
    except Exception:
        # Not Windows, or shell32 unavailable.
        return False

# Windows PowerShell (5.1) ships with every supported Windows release.
# pwsh (7.x) works as well when configured via audioswitch.ini.
DEFAULT_POWERSHELL = "powershell"

# Flags placed before -Command on every invocation.
POWERSHELL_ARGS = ("-ExecutionPolicy", "Bypass", "-NoProfile", "-NonInteractive")

MODULE_NAME = "AudioDeviceCmdlets"
INSTALL_COMMAND = f"Install-Module {MODULE_NAME} -Force -Scope CurrentUser"

def no_window_kwargs():
    """
    Extra subprocess kwargs that keep powershell.exe from flashing a console
    window when we are launched from a windowless host. Empty off Windows.
    """
    if os.name != "nt":
        return {}
    return {"creationflags": getattr(subprocess, "CREATE_NO_WINDOW", 0x08000000)}

# audioswitch.py
# -----------------------------------------------------------------------------
# PyInstaller entrypoint.
#
# A stable single-file target for PyInstaller (and `python audioswitch.py`);
# the implementation lives in the `audioswitch` package.
#
# When the EXE is started from an existing console (PowerShell 5.1 in
# particular) we attach to that console instead of getting a new window.
# -----------------------------------------------------------------------------

import os

if os.name == "nt":
    try:
        import ctypes
        ctypes.windll.kernel32.AttachConsole(-1)  # ATTACH_PARENT_PROCESS
    except Exception:
        # No parent console; stdout/stderr still work for redirected use.
        pass

from audioswitch.cli import main

if __name__ == "__main__":
    import sys
    sys.exit(main())

# audioswitch/logging_setup.py
import os
import sys
import traceback
import datetime
import tempfile
import threading

try:
    import faulthandler
except Exception:
    faulthandler = None

LOG_FILE_NAME = "audioswitch.log"

# Debug toggle (runtime)
_DEBUG = bool(int(os.environ.get("AUDIOSWITCH_DEBUG", "0") or "0"))

# Internal state (lazy init: no file I/O at import time)
_LOG_DIR = None
_LOG_PATH = None
_INITIALIZED = False
_FH = None            # faulthandler file handle
_HOOKS_INSTALLED = False
_WRITE_LOCK = threading.Lock()

def set_debug(on: bool = True):
    global _DEBUG
    _DEBUG = bool(on)
    _log(f"DEBUG {'enabled' if _DEBUG else 'disabled'}")

def _exe_dir():
    try:
        if getattr(sys, "frozen", False):  # PyInstaller
            return os.path.dirname(sys.executable)
        return os.path.dirname(os.path.abspath(__file__))
    except Exception:
        return os.getcwd()

def _resolve_log_path():
    """
    Decide where the log would live, but do not create it yet.

    Order: $AUDIOSWITCH_LOG_DIR, the executable/package directory, then a
    per-user temp directory when the first two are not writable.
    """
    candidates = []
    override = os.environ.get("AUDIOSWITCH_LOG_DIR")
    if override:
        candidates.append(override)
    candidates.append(_exe_dir())

    for base in candidates:
        try:
            os.makedirs(base, exist_ok=True)
            # Check writability without creating the real log
            test = os.path.join(base, ".writetest")
            with open(test, "w", encoding="utf-8") as _:
                pass
            os.remove(test)
            return base, os.path.join(base, LOG_FILE_NAME)
        except Exception:
            continue

    tdir = os.path.join(tempfile.gettempdir(), "audioswitch")
    try:
        os.makedirs(tdir, exist_ok=True)
    except Exception:
        tdir = tempfile.gettempdir()
    return tdir, os.path.join(tdir, LOG_FILE_NAME)

def _ensure_resolved():
    global _LOG_DIR, _LOG_PATH
    if _LOG_DIR is None or _LOG_PATH is None:
        _LOG_DIR, _LOG_PATH = _resolve_log_path()

def _global_excepthook(exc_type, exc_value, exc_tb):
    _log_exc("UNCAUGHT EXCEPTION", (exc_type, exc_value, exc_tb))
    try:
        sys.__excepthook__(exc_type, exc_value, exc_tb)
    except Exception:
        pass

def _unraisable_hook(unraisable):
    try:
        _log(f"UNRAISABLE: {getattr(unraisable.exc_type, '__name__', str(unraisable.exc_type))}: "
             f"{unraisable.exc_value}\nObject: {unraisable.object!r}")
    except Exception:
        pass

def _install_hooks_once():
    global _HOOKS_INSTALLED
    if _HOOKS_INSTALLED:
        return
    try:
        sys.excepthook = _global_excepthook
    except Exception:
        pass
    try:
        sys.unraisablehook = _unraisable_hook
    except Exception:
        pass
    _HOOKS_INSTALLED = True

def _atexit_close_handles():
    try:
        global _FH
        if faulthandler and _FH and not _FH.closed:
            try:
                faulthandler.disable()
            except Exception:
                pass
            _FH.flush()
            _FH.close()
            _FH = None
    except Exception:
        pass

def _atexit_normal():
    _log("atexit: process exiting normally")

def _ensure_init():
    """
    Initialize logging on first use (lazy):
    - Resolve and create the log file
    - Write the first breadcrumb
    - Install exception hooks
    - Enable faulthandler (if available)
    - Register atexit handlers
    """
    global _INITIALIZED, _FH
    if _INITIALIZED:
        return
    _INITIALIZED = True

    _ensure_resolved()

    try:
        ts = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        with open(_LOG_PATH, "a", encoding="utf-8", errors="replace") as f:
            f.write(f"[{ts}] logging to: {_LOG_PATH}\n")
    except Exception:
        pass

    _install_hooks_once()

    if faulthandler and _FH is None:
        try:
            _FH = open(_LOG_PATH, "a", buffering=1, encoding="utf-8", errors="replace")
            faulthandler.enable(file=_FH, all_threads=True)
        except Exception:
            _FH = None

    try:
        import atexit
        atexit.register(_atexit_normal)
        atexit.register(_atexit_close_handles)
    except Exception:
        pass

def _log_path():
    _ensure_resolved()   # no file I/O here
    return _LOG_PATH

def _write(line: str):
    try:
        with _WRITE_LOCK:
            with open(_LOG_PATH, "a", encoding="utf-8", errors="replace") as f:
                f.write(line)
    except Exception:
        pass

def _log(msg: str):
    _ensure_init()       # creates file on first use
    ts = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    _write(f"[{ts}] {msg}\n")

def _log_exc(prefix: str, exc_info=None):
    try:
        if exc_info is None:
            exc_info = sys.exc_info()
        tb = "".join(traceback.format_exception(*exc_info))
        _log(f"{prefix}\n{tb}")
    except Exception:
        pass

def _dbg(msg: str):
    if not _DEBUG:
        return
    _ensure_init()
    ts = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    tid = threading.get_ident()
    pid = os.getpid()
    _write(f"[{ts}] [DBG pid={pid} tid={tid}] {msg}\n")

# audioswitch/config.py
#
# Runtime settings, read from an optional INI file next to the executable:
#
#   [audioswitch]
#   cache_ttl = 30
#   max_retry_attempts = 3
#   retry_base_delay = 0.5
#   listing_target = 2.0
#   switching_target = 1.0
#   powershell = powershell
#
# A missing file means defaults. Bad values are skipped (logged) rather than
# failing startup; unknown keys are ignored.
import configparser
import os
from dataclasses import dataclass, fields, replace

from .cache import DEFAULT_CACHE_TTL
from .compat import DEFAULT_POWERSHELL
from .logging_setup import _exe_dir, _log
from .powershell import MAX_RETRY_ATTEMPTS, RETRY_BASE_DELAY

SECTION = "audioswitch"
INI_NAME = "audioswitch.ini"


@dataclass(frozen=True)
class Settings:
    cache_ttl: float = DEFAULT_CACHE_TTL
    max_retry_attempts: int = MAX_RETRY_ATTEMPTS
    retry_base_delay: float = RETRY_BASE_DELAY
    listing_target: float = 2.0    # seconds; slower listings are logged
    switching_target: float = 1.0  # seconds; slower switches are logged
    powershell: str = DEFAULT_POWERSHELL


def default_ini_path():
    try:
        return os.path.join(_exe_dir(), INI_NAME)
    except Exception:
        return os.path.join(os.getcwd(), INI_NAME)


def _coerce(name, kind, raw):
    """Convert one INI value; None means "reject, keep the default"."""
    raw = raw.strip()
    if kind is str:
        return raw or None
    try:
        val = kind(raw)
    except ValueError:
        return None
    if name == "retry_base_delay":
        return val if val >= 0 else None
    return val if val > 0 else None


def load_settings(ini_path=None) -> Settings:
    path = ini_path or default_ini_path()
    settings = Settings()
    if not os.path.exists(path):
        return settings

    cfg = configparser.ConfigParser(interpolation=None)
    try:
        cfg.read(path, encoding="utf-8")
    except configparser.Error as e:
        _log(f"WARNING: ignoring unreadable config {path}: {e}")
        return settings
    if not cfg.has_section(SECTION):
        return settings

    updates = {}
    for f in fields(Settings):
        if not cfg.has_option(SECTION, f.name):
            continue
        kind = type(getattr(settings, f.name))
        val = _coerce(f.name, kind, cfg.get(SECTION, f.name))
        if val is None:
            _log(f"WARNING: ignoring invalid {f.name!r} in {path}: {cfg.get(SECTION, f.name)!r}")
            continue
        updates[f.name] = val
    return replace(settings, **updates)

# audioswitch/__init__.py

# Package-level exports for embedding callers: the CLI dispatcher plus the
# manager, records and exception taxonomy it is built on.
from .cli import main
from .devices import AudioManager, find_devices, sort_for_display
from .errors import (
    AudioError,
    CommandFailed,
    DeviceNotFound,
    ExternalApiError,
    ParseError,
    PermissionDenied,
    UnknownAudioError,
)
from .models import AudioDevice, DeviceState, DeviceType

__all__ = [
    "main",
    "AudioManager",
    "find_devices",
    "sort_for_display",
    "AudioDevice",
    "DeviceState",
    "DeviceType",
    "AudioError",
    "CommandFailed",
    "DeviceNotFound",
    "ExternalApiError",
    "ParseError",
    "PermissionDenied",
    "UnknownAudioError",
]

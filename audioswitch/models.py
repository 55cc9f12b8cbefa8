# audioswitch/models.py
#
# Value records produced by the response parser and served by the cache.
# Records are frozen: a catalog refresh replaces them, never mutates them.

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .errors import ParseError


class DeviceType(Enum):
    PLAYBACK = "Playback"
    RECORDING = "Recording"

    @classmethod
    def parse(cls, value) -> "DeviceType":
        """
        Accept a DeviceType or the exact external strings "Playback"/"Recording".
        Anything else is a ParseError.
        """
        if isinstance(value, cls):
            return value
        for member in cls:
            if value == member.value:
                return member
        raise ParseError(f"Invalid device type: {value}")


class DeviceState(Enum):
    ACTIVE = "Active"
    DISABLED = "Disabled"
    NOT_PRESENT = "NotPresent"
    UNPLUGGED = "Unplugged"
    UNKNOWN = "Unknown"

    @classmethod
    def from_external(cls, value) -> "DeviceState":
        # Exact match only; anything unrecognised degrades to UNKNOWN.
        for member in cls:
            if member is not cls.UNKNOWN and value == member.value:
                return member
        return cls.UNKNOWN


@dataclass(frozen=True)
class AudioDevice:
    id: str
    name: str
    device_type: DeviceType
    state: DeviceState = DeviceState.UNKNOWN
    is_default: bool = False
    is_communication_default: bool = False
    last_seen: Optional[str] = None  # ISO timestamp as emitted by PowerShell

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "device_type": self.device_type.value,
            "state": self.state.value,
            "is_default": self.is_default,
            "is_communication_default": self.is_communication_default,
            "last_seen": self.last_seen,
        }

    def __str__(self) -> str:
        return f"{self.name} ({self.device_type.value})"


@dataclass(frozen=True)
class DefaultsSnapshot:
    """Default endpoint ids captured right before a switch; used only for fallback."""
    playback_id: Optional[str] = None
    recording_id: Optional[str] = None

    def is_empty(self) -> bool:
        return self.playback_id is None and self.recording_id is None

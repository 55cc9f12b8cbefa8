# audioswitch/devices.py
#
# This module is the "engine room": everything the CLI (or any embedding
# caller) does with audio endpoints goes through AudioManager.
#
# Responsibilities (high-level):
# - Serve the device catalog from a time-bounded cache, refreshing it through
#   the PowerShell runner when stale.
# - Switch the default endpoint (default + communications roles) with
#   validation up front and a best-effort restore of the previous defaults
#   when the switch fails.
# - Check for / install the AudioDeviceCmdlets module.
# - Set volume/mute of the current default endpoint.
#
# Guiding principles:
# - Never switch to an id we have not just seen in a listing.
# - A failed switch always reports the switch error. Whether the restore
#   worked is logged, never raised: the caller needs to know the switch
#   failed, not how the cleanup went.
# - After any successful switch the cache is invalidated, so the very next
#   read shows the new default flags.

import re
import time
import uuid
from enum import Enum
from typing import Dict, List, Optional

from . import scripts
from .cache import DeviceCache
from .config import Settings
from .errors import AudioError, CommandFailed, DeviceNotFound, ExternalApiError, ParseError
from .logging_setup import _log, _dbg
from .models import AudioDevice, DefaultsSnapshot, DeviceType
from .parser import parse_bool_field, parse_device_list, parse_response_object
from .powershell import PowerShellRunner


class SwitchState(Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    SNAPSHOTTING_DEFAULTS = "snapshotting_defaults"
    SWITCHING = "switching"
    SUCCEEDED = "succeeded"
    FALLING_BACK = "falling_back"
    FALLBACK_SUCCEEDED = "fallback_succeeded"
    FALLBACK_FAILED = "fallback_failed"


class FallbackOutcome(Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class AudioManager:
    """
    Device catalog + default switch orchestration on top of PowerShell.

    One instance owns one DeviceCache and one session id. All public
    operations are coroutines and raise AudioError subclasses on failure.
    """

    def __init__(self, settings: Optional[Settings] = None, runner=None,
                 cache: Optional[DeviceCache] = None, clock=None, session_id: Optional[str] = None):
        self.settings = settings or Settings()
        self._session_id = session_id or str(uuid.uuid4())
        self._clock = clock or time.monotonic
        self.cache = cache or DeviceCache(ttl=self.settings.cache_ttl, clock=self._clock)
        self.runner = runner or PowerShellRunner(
            executable=self.settings.powershell,
            max_attempts=self.settings.max_retry_attempts,
            base_delay=self.settings.retry_base_delay,
            session_id=self._session_id,
        )
        self.last_switch_state = SwitchState.IDLE
        _log(f"Initializing AudioManager with session ID: {self._session_id}")

    @property
    def session_id(self) -> str:
        return self._session_id

    def _tag(self):
        return f"[session {self._session_id}] "

    # ---- catalog -------------------------------------------------------------

    async def get_devices(self) -> List[AudioDevice]:
        """
        Current catalog. Served from the cache while it is fresh; otherwise
        fetched from PowerShell and the cache replaced wholesale.
        """
        start = self._clock()
        async with self.cache.lock.read():
            if self.cache.is_valid(start):
                _dbg(f"{self._tag()}Returning cached devices")
                return self.cache.snapshot()

        # Fetch outside the lock. Concurrent misses each fetch; last writer wins.
        devices = await self._fetch_devices()

        async with self.cache.lock.write():
            self.cache.replace(devices, stamp=self._clock())

        elapsed = self._clock() - start
        if elapsed > self.settings.listing_target:
            _log(f"WARNING: {self._tag()}Device listing took {int(elapsed * 1000)}ms, "
                 f"exceeds target of {int(self.settings.listing_target * 1000)}ms")
        _log(f"{self._tag()}Found {len(devices)} audio devices in {int(elapsed * 1000)}ms")
        return devices

    async def _fetch_devices(self) -> List[AudioDevice]:
        output = await self.runner.execute(scripts.list_devices_script(), "device enumeration")
        return parse_device_list(output)

    async def invalidate_cache(self):
        async with self.cache.lock.write():
            self.cache.clear()
        _dbg(f"{self._tag()}Audio device cache invalidated")

    async def validate_device_id(self, device_id: str) -> bool:
        _dbg(f"{self._tag()}Validating device ID: {device_id}")
        devices = await self.get_devices()
        if not any(d.id == device_id for d in devices):
            raise DeviceNotFound(device_id)
        return True

    async def _current_defaults(self) -> DefaultsSnapshot:
        devices = await self.get_devices()
        playback = next((d.id for d in devices
                         if d.device_type is DeviceType.PLAYBACK and d.is_default), None)
        recording = next((d.id for d in devices
                          if d.device_type is DeviceType.RECORDING and d.is_default), None)
        return DefaultsSnapshot(playback_id=playback, recording_id=recording)

    # ---- switching -----------------------------------------------------------

    def _set_state(self, device_id: str, previous: SwitchState, state: SwitchState) -> SwitchState:
        # last_switch_state is the most recent transition of any switch on
        # this manager; overlapping switches overwrite each other here. The
        # per-call state is what set_default_device returns.
        _dbg(f"{self._tag()}switch to {device_id}: {previous.value} -> {state.value}")
        self.last_switch_state = state
        return state

    async def _change_default_device(self, device_id: str):
        """Run Set-AudioDevice for one id. Raises CommandFailed/ParseError/ExternalApiError."""
        output = await self.runner.execute(scripts.set_default_script(device_id), "set default device")
        response = parse_response_object(output)
        if response.get("success") is not True:
            raise ExternalApiError(response.get("error") or f"Set-AudioDevice did not confirm {device_id}")

    async def set_default_device(self, device_id: str, device_type=None):
        """
        Make `device_id` the default (and communications default) endpoint.

        Protocol:
        1) validate the id against a listing (DeviceNotFound, nothing changed)
        2) snapshot the current default playback/recording ids
        3) switch; on success invalidate the cache
        4) on failure try to restore the snapshot, then raise the switch error

        `device_type`, when given, must be "Playback" or "Recording"
        (ParseError otherwise). PowerShell resolves the direction from the id.

        Returns the final state of this call (SUCCEEDED); failures raise.
        """
        if device_type is not None:
            DeviceType.parse(device_type)

        start = self._clock()
        _log(f"{self._tag()}Setting default audio device: {device_id}")

        state = SwitchState.IDLE
        try:
            state = self._set_state(device_id, state, SwitchState.VALIDATING)
            await self.validate_device_id(device_id)

            state = self._set_state(device_id, state, SwitchState.SNAPSHOTTING_DEFAULTS)
            previous = await self._current_defaults()
        except AudioError:
            self._set_state(device_id, state, SwitchState.IDLE)
            raise

        state = self._set_state(device_id, state, SwitchState.SWITCHING)
        try:
            await self._change_default_device(device_id)
        except AudioError as err:
            _log(f"ERROR: {self._tag()}Failed to set default device {device_id}: {err}; attempting fallback")
            state = self._set_state(device_id, state, SwitchState.FALLING_BACK)
            outcome = await self._fallback_to_previous(previous)
            state = self._set_state(device_id, state,
                                    SwitchState.FALLBACK_SUCCEEDED if outcome is FallbackOutcome.SUCCEEDED
                                    else SwitchState.FALLBACK_FAILED)
            _log(f"{self._tag()}Switch to {device_id} ended in {state.value}")
            raise err

        await self.invalidate_cache()
        elapsed = self._clock() - start
        if elapsed > self.settings.switching_target:
            _log(f"WARNING: {self._tag()}Device switching took {int(elapsed * 1000)}ms, "
                 f"exceeds target of {int(self.settings.switching_target * 1000)}ms")
        _log(f"{self._tag()}Successfully set default device: {device_id} in {int(elapsed * 1000)}ms")
        return self._set_state(device_id, state, SwitchState.SUCCEEDED)

    async def _fallback_to_previous(self, previous: DefaultsSnapshot) -> FallbackOutcome:
        """
        Best effort: re-apply each recorded default independently.
        Errors are logged here and never leave this method.
        """
        if previous.is_empty():
            _log(f"{self._tag()}No previous default devices recorded; nothing to restore")
            return FallbackOutcome.SUCCEEDED

        _log(f"WARNING: {self._tag()}Attempting to fall back to previous default devices")
        ok = True
        for label, dev_id in (("playback", previous.playback_id), ("recording", previous.recording_id)):
            if dev_id is None:
                continue
            try:
                await self._change_default_device(dev_id)
                _log(f"{self._tag()}Restored previous {label} device: {dev_id}")
            except AudioError as e:
                ok = False
                _log(f"ERROR: {self._tag()}Failed to restore previous {label} device {dev_id}: {e}")
        return FallbackOutcome.SUCCEEDED if ok else FallbackOutcome.FAILED

    async def change_audio_output(self, from_device_id: str, to_device_id: str):
        """Switch from one device to another; `from_device_id` must currently be default."""
        _log(f"{self._tag()}Changing audio output from {from_device_id} to {to_device_id}")
        await self.validate_device_id(from_device_id)
        await self.validate_device_id(to_device_id)

        devices = await self.get_devices()
        from_device = next((d for d in devices if d.id == from_device_id), None)
        if from_device is None:
            raise DeviceNotFound(from_device_id)
        if not from_device.is_default:
            raise CommandFailed(f"Device {from_device_id} is not currently the default")

        return await self.set_default_device(to_device_id)

    async def quick_switch_to_device(self, device_name: str):
        """
        Switch to the first device whose name contains `device_name`
        (case-insensitive). "First" is catalog order as PowerShell lists it,
        which is not guaranteed stable across machines.
        """
        _log(f"{self._tag()}Quick switching to device: {device_name}")
        needle = device_name.lower()
        devices = await self.get_devices()
        target = next((d for d in devices if needle in d.name.lower()), None)
        if target is None:
            raise DeviceNotFound(device_name)
        return await self.set_default_device(target.id)

    # ---- volume / mute (current default endpoint) ------------------------------

    async def _run_volume_script(self, script: str, operation: str):
        response = parse_response_object(await self.runner.execute(script, operation))
        if response.get("success") is not True:
            raise ExternalApiError(response.get("error") or f"{operation} was not confirmed")
        return response

    async def set_volume(self, device_type, level: int):
        dtype = DeviceType.parse(device_type)
        if isinstance(level, bool) or not isinstance(level, int) or not 0 <= level <= 100:
            raise ParseError(f"Invalid volume level: {level}")
        _log(f"{self._tag()}Setting {dtype.value} volume to {level}")
        await self._run_volume_script(scripts.set_volume_script(dtype, level), "set volume")

    async def set_mute(self, device_type, muted: bool):
        dtype = DeviceType.parse(device_type)
        _log(f"{self._tag()}Setting {dtype.value} mute to {bool(muted)}")
        await self._run_volume_script(scripts.set_mute_script(dtype, bool(muted)), "set mute")

    # ---- AudioDeviceCmdlets module ------------------------------------------------

    async def check_module_availability(self) -> bool:
        _dbg(f"{self._tag()}Checking AudioDeviceCmdlets module availability...")
        output = await self.runner.execute(scripts.module_availability_script(), "module availability check")
        available = parse_bool_field(output, "available")
        _dbg(f"{self._tag()}AudioDeviceCmdlets module available: {available}")
        if not available:
            response = parse_response_object(output)
            message = response.get("message") or response.get("error")
            if message:
                _log(f"{self._tag()}Module availability check: {message}")
        return available

    async def install_module(self):
        _log(f"{self._tag()}Installing AudioDeviceCmdlets module...")
        output = await self.runner.execute(scripts.install_module_script(), "module installation")
        response = parse_response_object(output)
        if response.get("success") is not True:
            raise CommandFailed(response.get("error") or "Unknown installation error")
        _log(f"{self._tag()}Successfully installed AudioDeviceCmdlets module "
             f"(version={response.get('version')}, scope={response.get('scope')})")


# ---- pure selectors (no PowerShell) --------------------------------------------------

def find_devices(devices, dev_id=None, name_substr=None, device_type=None, regex=False):
    """
    Returns list of devices matching selector.

    Filter-only; callers decide how to disambiguate. With neither an id nor a
    name the result is empty.
    """
    if not dev_id and not name_substr:
        return []
    dtype = DeviceType.parse(device_type) if device_type is not None else None
    pattern = None
    if name_substr and regex:
        try:
            pattern = re.compile(name_substr, re.IGNORECASE)
        except re.error as e:
            raise ParseError(f"Invalid regex: {name_substr!r} ({e})") from e

    def match(d):
        if dtype is not None and d.device_type is not dtype:
            return False
        if dev_id:
            return d.id == dev_id
        if pattern is not None:
            return pattern.search(d.name) is not None
        return name_substr.lower() in d.name.lower()

    return [d for d in devices if match(d)]


def sort_for_display(devices) -> Dict[DeviceType, List[AudioDevice]]:
    """
    Bucket by type and sort each bucket by name (case-insensitive). The
    position in a bucket is the display index shown by `list`.
    """
    buckets = {DeviceType.PLAYBACK: [], DeviceType.RECORDING: []}
    for d in devices:
        buckets[d.device_type].append(d)
    for dtype in buckets:
        buckets[dtype].sort(key=lambda x: x.name.lower())
    return buckets

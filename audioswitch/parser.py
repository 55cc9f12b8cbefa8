# audioswitch/parser.py
#
# Turns PowerShell stdout into typed records.
#
# The text is decoded into plain dicts/lists first and then projected field by
# field, so one odd record (a device type we don't know, a missing flag) is
# skipped or defaulted instead of failing the whole listing. Only the outer
# shape is strict: a listing without a "devices" array is a ParseError.

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from .errors import CommandFailed, ParseError
from .models import AudioDevice, DeviceState, DeviceType

_DEVICE_TYPES = {t.value: t for t in DeviceType}


def _decode(text: str) -> Any:
    """
    json.loads with one concession: scripts that Write-Output progress lines
    before their JSON (the installer does) are parsed from the last line that
    looks like an object.
    """
    if text is None:
        raise ParseError("Empty response")
    body = text.strip()
    if not body:
        raise ParseError("Empty response")
    try:
        return json.loads(body)
    except ValueError as first_err:
        for line in reversed(body.splitlines()):
            line = line.strip()
            if line.startswith("{"):
                try:
                    return json.loads(line)
                except ValueError:
                    break
        raise ParseError(str(first_err)) from first_err


def _str_or(value, default=""):
    return value if isinstance(value, str) else default


def _bool_or_false(value) -> bool:
    return value if isinstance(value, bool) else False


def _error_text(value) -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return "Unknown error"
    return json.dumps(value)


def parse_response_object(text: str) -> Dict[str, Any]:
    data = _decode(text)
    if not isinstance(data, dict):
        raise ParseError("Expected a JSON object")
    return data


def parse_device_list(text: str) -> List[AudioDevice]:
    """
    Parse the listing script's output into AudioDevice records (input order).

    Raises:
    - CommandFailed when the payload carries an "error" field (checked first)
    - ParseError when the text is not JSON or "devices" is not an array
    """
    data = _decode(text)

    if isinstance(data, dict) and "error" in data:
        raise CommandFailed(_error_text(data.get("error")))

    devices = data.get("devices") if isinstance(data, dict) else None
    if not isinstance(devices, list):
        raise ParseError("Missing devices array")

    out: List[AudioDevice] = []
    for item in devices:
        if not isinstance(item, dict):
            continue
        raw_type = item.get("device_type")
        device_type = _DEVICE_TYPES.get(raw_type) if isinstance(raw_type, str) else None
        if device_type is None:
            # Unknown/missing type: skip the record, keep the listing.
            continue
        last_seen = item.get("last_seen")
        out.append(AudioDevice(
            id=_str_or(item.get("id")),
            name=_str_or(item.get("name")),
            device_type=device_type,
            state=DeviceState.from_external(item.get("state")),
            is_default=_bool_or_false(item.get("is_default")),
            is_communication_default=_bool_or_false(item.get("is_communication_default")),
            last_seen=last_seen if isinstance(last_seen, str) else None,
        ))
    return out


def parse_bool_field(text: str, field: str) -> bool:
    """Read a single boolean flag ("available", "success", ...); absent or non-bool reads as False."""
    return _bool_or_false(parse_response_object(text).get(field))


def extract_error_message(text: str) -> str:
    """
    Best diagnostic from a failed run: the "error" string when the output is
    one of our JSON error objects, otherwise the raw text.
    """
    raw = (text or "").strip()
    if not raw:
        return ""
    try:
        data = _decode(raw)
    except ParseError:
        return raw
    if isinstance(data, dict) and isinstance(data.get("error"), str):
        return data["error"]
    return raw


def error_field(text: str) -> Optional[str]:
    """The "error" string of one of our JSON error objects, or None."""
    try:
        data = _decode(text)
    except ParseError:
        return None
    if isinstance(data, dict) and isinstance(data.get("error"), str):
        return data["error"]
    return None

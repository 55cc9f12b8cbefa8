# audioswitch/cli.py
import sys
import argparse
import asyncio
import json
import time

from .cmdline_fmt import format_audioswitch_cmd_for_display
from .compat import INSTALL_COMMAND, is_admin
from .config import load_settings
from .devices import AudioManager, find_devices, sort_for_display
from .errors import AudioError, DeviceNotFound, ParseError, PermissionDenied
from .logging_setup import _log, _log_exc, _log_path, set_debug
from .models import DeviceType

DEVICE_TYPE_CHOICES = [t.value for t in DeviceType]

# Exit codes (stable; scripts depend on them)
EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_PARSE = 2
EXIT_NOT_FOUND = 3
EXIT_PERMISSION = 5
EXIT_INTERRUPTED = 130


def exit_code_for(err: AudioError) -> int:
    if isinstance(err, DeviceNotFound):
        return EXIT_NOT_FOUND
    if isinstance(err, PermissionDenied):
        return EXIT_PERMISSION
    if isinstance(err, ParseError):
        return EXIT_PARSE
    return EXIT_FAILURE


def _warn_if_not_admin(what):
    if not is_admin():
        print(f"WARNING: '{what}' might require Administrator privileges on this system.", file=sys.stderr)


def _flags(d):
    flags = []
    if d.is_default:
        flags.append("default")
    if d.is_communication_default:
        flags.append("communications")
    return ",".join(flags) if flags else "-"


async def cmd_list(manager, args):
    devices = await manager.get_devices()
    if args.type:
        dtype = DeviceType.parse(args.type)
        devices = [d for d in devices if d.device_type is dtype]
    if args.json:
        print(json.dumps({"devices": [d.to_dict() for d in devices]}, indent=2))
        return EXIT_OK

    buckets = sort_for_display(devices)
    print("--- Playback ---")
    for i, d in enumerate(buckets[DeviceType.PLAYBACK]):
        print(f"[{i}] {d.name}  id={d.id}  state={d.state.value}  defaults={_flags(d)}")
    print("\n--- Recording ---")
    for i, d in enumerate(buckets[DeviceType.RECORDING]):
        print(f"[{i}] {d.name}  id={d.id}  state={d.state.value}  defaults={_flags(d)}")
    return EXIT_OK


async def cmd_set_default(manager, args):
    _warn_if_not_admin("set-default")
    await manager.set_default_device(args.id, args.type)
    print(json.dumps({"set": {"id": args.id, "sessionId": manager.session_id}}))
    return EXIT_OK


async def cmd_change_output(manager, args):
    _warn_if_not_admin("change-output")
    await manager.change_audio_output(args.from_id, args.to_id)
    print(json.dumps({"changed": {"from": args.from_id, "to": args.to_id}}))
    return EXIT_OK


async def cmd_quick_switch(manager, args):
    _warn_if_not_admin("quick-switch")
    await manager.quick_switch_to_device(args.name)
    print(json.dumps({"quickSwitch": {"name": args.name}}))
    return EXIT_OK


async def cmd_validate(manager, args):
    await manager.validate_device_id(args.id)
    print(json.dumps({"valid": True, "id": args.id}))
    return EXIT_OK


async def cmd_module_status(manager, args):
    available = await manager.check_module_availability()
    print(json.dumps({"available": available}))
    if not available:
        frozen = bool(getattr(sys, "frozen", False))
        print(f"AudioDeviceCmdlets is not installed. Install it with: "
              f"{format_audioswitch_cmd_for_display(['install-module'], frozen=frozen)}\n"
              f"or from PowerShell: {INSTALL_COMMAND}", file=sys.stderr)
        return EXIT_FAILURE
    return EXIT_OK


async def cmd_install_module(manager, args):
    _warn_if_not_admin("install-module")
    await manager.install_module()
    print(json.dumps({"installed": True}))
    return EXIT_OK


async def cmd_set_volume(manager, args):
    if (args.mute or args.unmute) and args.level is not None:
        print("ERROR: Cannot specify both --level and --mute/--unmute", file=sys.stderr)
        return EXIT_FAILURE
    if not (args.mute or args.unmute or args.level is not None):
        print("ERROR: Must specify --level or --mute/--unmute", file=sys.stderr)
        return EXIT_FAILURE

    if args.level is not None:
        await manager.set_volume(args.type, args.level)
        print(json.dumps({"volumeSet": {"type": args.type, "level": args.level}}))
    else:
        await manager.set_mute(args.type, bool(args.mute))
        print(json.dumps({"muteSet": {"type": args.type, "muted": bool(args.mute)}}))
    return EXIT_OK


async def cmd_wait(manager, args, sleep=asyncio.sleep, clock=time.monotonic):
    deadline = clock() + args.timeout
    while True:
        devices = await manager.get_devices()
        matches = find_devices(devices, dev_id=args.id, name_substr=args.name,
                               device_type=args.type, regex=args.regex)
        if matches:
            print(json.dumps({"found": matches[0].to_dict()}))
            return EXIT_OK
        if clock() >= deadline:
            break
        # The cache would otherwise answer every poll inside its TTL.
        await manager.invalidate_cache()
        await sleep(args.interval)
    print("ERROR: timeout waiting for device", file=sys.stderr)
    return EXIT_NOT_FOUND


def build_parser():
    p = argparse.ArgumentParser(prog="audioswitch",
                                description="Windows default audio device switcher (AudioDeviceCmdlets-based)")
    p.add_argument("--debug", action="store_true", help="Write debug lines to audioswitch.log")
    p.add_argument("--config", help="Path to audioswitch.ini (default: next to the EXE)")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_list = sub.add_parser("list", help="List devices")
    p_list.add_argument("--type", choices=DEVICE_TYPE_CHOICES)
    p_list.add_argument("--json", action="store_true")
    p_list.set_defaults(func=cmd_list)

    p_sd = sub.add_parser("set-default", help="Set the default (and communications) device")
    p_sd.add_argument("--id", required=True)
    p_sd.add_argument("--type", choices=DEVICE_TYPE_CHOICES)
    p_sd.set_defaults(func=cmd_set_default)

    p_co = sub.add_parser("change-output", help="Switch from the current default device to another")
    p_co.add_argument("--from", dest="from_id", required=True)
    p_co.add_argument("--to", dest="to_id", required=True)
    p_co.set_defaults(func=cmd_change_output)

    p_qs = sub.add_parser("quick-switch", help="Switch to the first device whose name contains NAME")
    p_qs.add_argument("name")
    p_qs.set_defaults(func=cmd_quick_switch)

    p_v = sub.add_parser("validate", help="Check that a device id exists")
    p_v.add_argument("--id", required=True)
    p_v.set_defaults(func=cmd_validate)

    p_ms = sub.add_parser("module-status", help="Check whether AudioDeviceCmdlets is installed")
    p_ms.set_defaults(func=cmd_module_status)

    p_im = sub.add_parser("install-module", help="Install AudioDeviceCmdlets from the PowerShell Gallery")
    p_im.set_defaults(func=cmd_install_module)

    p_sv = sub.add_parser("set-volume", help="Set volume or mute/unmute of the default device")
    p_sv.add_argument("--type", choices=DEVICE_TYPE_CHOICES, default=DeviceType.PLAYBACK.value)
    p_sv.add_argument("--level", type=int, help="0-100")
    p_sv.add_argument("--mute", action="store_true", help="Mute the device")
    p_sv.add_argument("--unmute", action="store_true", help="Unmute the device")
    p_sv.set_defaults(func=cmd_set_volume)

    p_w = sub.add_parser("wait", help="Wait for device to appear")
    sel = p_w.add_mutually_exclusive_group(required=True)
    sel.add_argument("--id")
    sel.add_argument("--name")
    p_w.add_argument("--type", choices=DEVICE_TYPE_CHOICES)
    p_w.add_argument("--timeout", type=float, default=30)
    p_w.add_argument("--interval", type=float, default=0.5, help=argparse.SUPPRESS)
    p_w.add_argument("--regex", action="store_true")
    p_w.set_defaults(func=cmd_wait)

    return p


async def _run(args, manager=None):
    if manager is None:
        manager = AudioManager(load_settings(args.config))
    return await args.func(manager, args)


def main(argv=None, manager=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.debug:
        set_debug(True)

    try:
        rc = asyncio.run(_run(args, manager))
    except AudioError as e:
        _log(f"ERROR: {args.cmd}: {e}")
        print(f"ERROR: {e}", file=sys.stderr)
        rc = exit_code_for(e)
    except KeyboardInterrupt:
        rc = EXIT_INTERRUPTED
    except Exception as e:
        _log_exc(f"UNEXPECTED ERROR in {args.cmd}")
        print(f"ERROR: unexpected failure: {e}\nDetails were written to: {_log_path()}", file=sys.stderr)
        rc = EXIT_FAILURE
    return rc

# audioswitch/cmdline_fmt.py
#
# Format argv lists into human-friendly command strings.
#
# Display/logging only. Subprocesses are always spawned with an argv list.
# On Windows subprocess.list2cmdline() gives CreateProcess-compatible double
# quotes; elsewhere shlex.join() is used.
#
import os
import subprocess


def format_cmd_for_display(argv, *, force_quote_chars: str = "") -> str:
    """
    Format an argv list into a command string suitable for display/logging.

    Windows:
      - Uses subprocess.list2cmdline() (double quotes; CreateProcess rules).
      - If force_quote_chars is provided, force-quote any arg that contains
        whitespace, is empty, or contains any character in force_quote_chars.

    Non-Windows:
      - Uses shlex.join().
    """
    if argv is None:
        return ""

    args = ["" if a is None else str(a) for a in argv]

    if os.name == "nt":
        if force_quote_chars:
            out = []
            for a in args:
                needs = (
                    a == ""
                    or any(ch.isspace() for ch in a)
                    or any(ch in a for ch in force_quote_chars)
                )
                if needs:
                    # Correct Windows quoting/escaping for a single arg
                    out.append(subprocess.list2cmdline([a]))
                else:
                    out.append(a)
            return " ".join(out)
        return subprocess.list2cmdline(args)

    import shlex

    return shlex.join(args)


def format_powershell_for_display(executable, flags, operation: str) -> str:
    """
    Render a PowerShell invocation for the log. The script body is replaced by
    a short placeholder; full scripts are multi-line and would drown the log.
    """
    return format_cmd_for_display([executable, *flags, "-Command", f"<{operation} script>"])


def format_audioswitch_cmd_for_display(args, *, frozen: bool = False, cross_shell: bool = True) -> str:
    """
    Format an `audioswitch ...` command line for humans to copy/paste.

    If frozen and cross_shell=True on Windows:
      - prefix with .\\audioswitch.exe so it works in both cmd.exe and PowerShell
        from the current directory
      - force-quote `{}` so PowerShell doesn't misparse device IDs
    """
    if frozen and os.name == "nt" and cross_shell:
        prefix = r".\audioswitch.exe"
        force = "{}"
    else:
        prefix = "audioswitch"
        force = ""
    return prefix + " " + format_cmd_for_display(args, force_quote_chars=force)

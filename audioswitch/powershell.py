# audioswitch/powershell.py
#
# The one place that spawns powershell.exe.
#
# Every device operation is a PowerShell script (see scripts.py) executed here
# with bounded retries. Attempts run sequentially; between attempts we await
# base_delay * attempt (linear, not exponential) so a flaky host gets a little
# more room each time. The final failed attempt is raised without sleeping.
#
# The process is awaited via asyncio, so other tasks (cache-hit reads in
# particular) keep running while PowerShell starts up, which routinely takes
# several hundred milliseconds.

import asyncio
import re

from .cmdline_fmt import format_powershell_for_display
from .compat import DEFAULT_POWERSHELL, POWERSHELL_ARGS, no_window_kwargs
from .errors import CommandFailed, PermissionDenied
from .logging_setup import _log, _dbg
from .parser import error_field, extract_error_message

MAX_RETRY_ATTEMPTS = 3
RETRY_BASE_DELAY = 0.5  # seconds

_ACCESS_DENIED_RE = re.compile(r"access is denied|unauthorizedaccess|administrator", re.IGNORECASE)
_CLIXML_MARKER = "#< CLIXML"


def _failure_detail(code, out, err):
    """
    Diagnostic for a failed attempt, best first: the "error" field our scripts
    print on stdout, then stderr (CLIXML progress/error records skipped), then
    raw stdout, then the exit code.
    """
    detail = error_field(out)
    if detail:
        return detail
    if err.strip() and not err.lstrip().startswith(_CLIXML_MARKER):
        return extract_error_message(err)
    return out.strip() or f"exit code {code}"


class PowerShellRunner:
    """
    Execute PowerShell scripts with retry.

    execute() returns stdout of the first successful attempt verbatim, or
    raises CommandFailed (PermissionDenied for access problems) once
    max_attempts attempts have failed.
    """

    def __init__(self, executable=DEFAULT_POWERSHELL, max_attempts=MAX_RETRY_ATTEMPTS,
                 base_delay=RETRY_BASE_DELAY, sleep=None, session_id=""):
        self.executable = executable or DEFAULT_POWERSHELL
        self.max_attempts = max(1, int(max_attempts))
        self.base_delay = float(base_delay)
        self._sleep = sleep or asyncio.sleep
        self.session_id = session_id

    def _tag(self):
        return f"[session {self.session_id}] " if self.session_id else ""

    def build_argv(self, script: str):
        return [self.executable, *POWERSHELL_ARGS, "-Command", script]

    async def _run_once(self, script: str):
        """
        One spawn. Returns (returncode, stdout, stderr) as text.
        OSError (executable missing, spawn refused) propagates to execute().
        """
        proc = await asyncio.create_subprocess_exec(
            *self.build_argv(script),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            **no_window_kwargs(),
        )
        out, err = await proc.communicate()
        return (
            proc.returncode,
            (out or b"").decode("utf-8-sig", errors="replace"),
            (err or b"").decode("utf-8", errors="replace"),
        )

    async def execute(self, script: str, operation: str) -> str:
        tag = self._tag()
        last_detail = "Unknown PowerShell error"
        _dbg(f"{tag}{operation}: {format_powershell_for_display(self.executable, POWERSHELL_ARGS, operation)}")

        for attempt in range(1, self.max_attempts + 1):
            _dbg(f"{tag}PowerShell {operation} (attempt {attempt}/{self.max_attempts})")
            try:
                code, out, err = await self._run_once(script)
            except OSError as e:
                last_detail = str(e)
                _log(f"WARNING: {tag}PowerShell spawn failed for {operation} on attempt {attempt}: {e}")
            else:
                if code == 0:
                    _dbg(f"{tag}PowerShell {operation} succeeded on attempt {attempt}")
                    return out
                last_detail = _failure_detail(code, out, err)
                _log(f"WARNING: {tag}PowerShell {operation} failed on attempt {attempt} "
                     f"(exit {code}): {last_detail}")

            if attempt < self.max_attempts:
                delay = self.base_delay * attempt
                _dbg(f"{tag}Retrying {operation} in {int(delay * 1000)}ms")
                await self._sleep(delay)

        _log(f"ERROR: {tag}PowerShell {operation} failed after {self.max_attempts} attempts")
        if _ACCESS_DENIED_RE.search(last_detail):
            raise PermissionDenied(last_detail)
        raise CommandFailed(last_detail)

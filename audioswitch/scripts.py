# audioswitch/scripts.py
#
# PowerShell scripts sent to the runner, one per operation.
#
# Every script prints exactly one compressed JSON object on its last line of
# stdout. Failures are reported as {"error": ...} (listing, switching, install)
# and, except for the availability check, with exit code 1 so the runner
# treats them as a failed attempt.
#
# Values are never formatted straight into a script: ps_quote() turns them
# into single-quoted PowerShell literals first.

from .compat import INSTALL_COMMAND, MODULE_NAME
from .models import DeviceType

_TS = '(Get-Date -Format "yyyy-MM-ddTHH:mm:ss.fffZ")'


def ps_quote(value) -> str:
    """Single-quoted PowerShell string literal; embedded quotes are doubled."""
    return "'" + str(value).replace("'", "''") + "'"


LIST_DEVICES_SCRIPT = r"""
try {
    if (-not (Get-Module -ListAvailable -Name @@MODULE@@)) {
        throw "@@MODULE@@ module not installed. Run: @@INSTALL@@"
    }
    Import-Module @@MODULE@@ -ErrorAction Stop

    $allAudioDevices = Get-AudioDevice -List
    $defaultPlayback = Get-AudioDevice -Playback -ErrorAction SilentlyContinue
    $defaultRecording = Get-AudioDevice -Recording -ErrorAction SilentlyContinue
    $commPlayback = Get-AudioDevice -PlaybackCommunication -ErrorAction SilentlyContinue
    $commRecording = Get-AudioDevice -RecordingCommunication -ErrorAction SilentlyContinue

    $allDevices = @()
    foreach ($device in $allAudioDevices) {
        $isDefault = ($defaultPlayback -and ($device.ID -eq $defaultPlayback.ID)) -or
                     ($defaultRecording -and ($device.ID -eq $defaultRecording.ID))
        $isComm = ($commPlayback -and ($device.ID -eq $commPlayback.ID)) -or
                  ($commRecording -and ($device.ID -eq $commRecording.ID))
        $allDevices += @{
            id = $device.ID
            name = $device.Name
            device_type = "$($device.Type)"
            state = "$($device.State)"
            is_default = [bool]$isDefault
            is_communication_default = [bool]$isComm
            last_seen = @@TS@@
        }
    }

    @{
        devices = @($allDevices)
        timestamp = @@TS@@
        session = $env:COMPUTERNAME
    } | ConvertTo-Json -Depth 4 -Compress
}
catch {
    @{
        error = $_.Exception.Message
        type = "PowerShellExecutionError"
        timestamp = @@TS@@
    } | ConvertTo-Json -Compress
    exit 1
}
"""

SET_DEFAULT_SCRIPT = r"""
try {
    Import-Module @@MODULE@@ -ErrorAction Stop
    $id = @@DEVICE_ID@@
    $device = Get-AudioDevice -List | Where-Object { $_.ID -eq $id }
    if (-not $device) {
        throw "Device not found: $id"
    }
    # Default and communication default are separate roles; set both.
    Set-AudioDevice -ID $id -DefaultOnly | Out-Null
    Set-AudioDevice -ID $id -CommunicationOnly | Out-Null
    @{
        success = $true
        device_id = $id
        device_name = $device.Name
        device_type = "$($device.Type)"
    } | ConvertTo-Json -Compress
}
catch {
    @{
        success = $false
        error = $_.Exception.Message
        device_id = @@DEVICE_ID@@
    } | ConvertTo-Json -Compress
    exit 1
}
"""

MODULE_AVAILABILITY_SCRIPT = r"""
try {
    $module = Get-Module -ListAvailable -Name @@MODULE@@ | Select-Object -First 1
    if ($module) {
        @{
            available = $true
            version = $module.Version.ToString()
            path = $module.ModuleBase
        } | ConvertTo-Json -Compress
    } else {
        @{
            available = $false
            message = "@@MODULE@@ module not found"
            install_command = "@@INSTALL@@"
        } | ConvertTo-Json -Compress
    }
}
catch {
    @{
        available = $false
        error = $_.Exception.Message
    } | ConvertTo-Json -Compress
}
"""

INSTALL_MODULE_SCRIPT = r"""
try {
    $currentUser = [Security.Principal.WindowsIdentity]::GetCurrent()
    $principal = New-Object Security.Principal.WindowsPrincipal($currentUser)
    $isAdmin = $principal.IsInRole([Security.Principal.WindowsBuiltInRole]::Administrator)
    $scope = if ($isAdmin) { "AllUsers" } else { "CurrentUser" }

    Write-Output "Installing @@MODULE@@ for $scope..."
    Install-Module @@MODULE@@ -Force -Scope $scope -AllowClobber -ErrorAction Stop

    Import-Module @@MODULE@@ -ErrorAction Stop
    $version = (Get-Module @@MODULE@@).Version
    @{
        success = $true
        version = $version.ToString()
        scope = $scope
        message = "@@MODULE@@ module installed successfully"
    } | ConvertTo-Json -Compress
}
catch {
    @{
        success = $false
        error = $_.Exception.Message
        suggestion = "Try running as administrator or check internet connection"
    } | ConvertTo-Json -Compress
    exit 1
}
"""

# Applies to the current default endpoint of the given direction.
SET_VOLUME_SCRIPT = r"""
try {
    Import-Module @@MODULE@@ -ErrorAction Stop
    Set-AudioDevice @@SWITCH@@ @@VALUE@@ | Out-Null
    @{
        success = $true
        device_type = @@DEVICE_TYPE@@
        @@FIELD@@ = @@VALUE@@
    } | ConvertTo-Json -Compress
}
catch {
    @{
        success = $false
        error = $_.Exception.Message
        device_type = @@DEVICE_TYPE@@
    } | ConvertTo-Json -Compress
    exit 1
}
"""


# Prepended to every script. Windows PowerShell 5.1 writes redirected stdout
# in the OEM code page unless told otherwise; the runner decodes UTF-8.
# Progress records would otherwise reach stderr as CLIXML.
PREAMBLE = (
    "$ProgressPreference = 'SilentlyContinue'\n"
    "[Console]::OutputEncoding = New-Object System.Text.UTF8Encoding $false\n"
    "$OutputEncoding = [Console]::OutputEncoding\n"
)


def _render(template: str, **values) -> str:
    out = template.replace("@@MODULE@@", MODULE_NAME).replace("@@INSTALL@@", INSTALL_COMMAND)
    out = out.replace("@@TS@@", _TS)
    for key, val in values.items():
        out = out.replace(f"@@{key}@@", val)
    return PREAMBLE + out


def list_devices_script() -> str:
    return _render(LIST_DEVICES_SCRIPT)


def set_default_script(device_id: str) -> str:
    return _render(SET_DEFAULT_SCRIPT, DEVICE_ID=ps_quote(device_id))


def module_availability_script() -> str:
    return _render(MODULE_AVAILABILITY_SCRIPT)


def install_module_script() -> str:
    return _render(INSTALL_MODULE_SCRIPT)


def set_volume_script(device_type: DeviceType, level: int) -> str:
    switch = "-PlaybackVolume" if device_type is DeviceType.PLAYBACK else "-RecordingVolume"
    return _render(SET_VOLUME_SCRIPT, SWITCH=switch, VALUE=str(int(level)),
                   FIELD="volume", DEVICE_TYPE=ps_quote(device_type.value))


def set_mute_script(device_type: DeviceType, muted: bool) -> str:
    switch = "-PlaybackMute" if device_type is DeviceType.PLAYBACK else "-RecordingMute"
    return _render(SET_VOLUME_SCRIPT, SWITCH=switch, VALUE="$true" if muted else "$false",
                   FIELD="muted", DEVICE_TYPE=ps_quote(device_type.value))

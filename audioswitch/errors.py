# audioswitch/errors.py
#
# Exception taxonomy for every public operation.
#
# All failures surface as an AudioError subclass carrying a human-readable
# `detail`. The CLI maps the subclasses to exit codes; embedding callers can
# catch AudioError as a whole.


class AudioError(Exception):
    """Base class for all audioswitch failures."""

    prefix = "Audio error"

    def __init__(self, detail: str = ""):
        self.detail = "" if detail is None else str(detail)
        super().__init__(self.detail)

    def __str__(self):
        return f"{self.prefix}: {self.detail}" if self.detail else self.prefix


class DeviceNotFound(AudioError):
    prefix = "Device not found"


class CommandFailed(AudioError):
    prefix = "Command execution failed"


class PermissionDenied(CommandFailed):
    # Subclass of CommandFailed: the runner still reports an exhausted command,
    # just with a more specific cause.
    prefix = "Permission denied"


class ParseError(AudioError):
    prefix = "Parsing error"


class ExternalApiError(AudioError):
    prefix = "Windows audio API error"


class UnknownAudioError(AudioError):
    prefix = "Unknown error"

"""Shared pytest fixtures for the audioswitch test suite."""

import json
import os
import sys
from pathlib import Path

import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from audioswitch import logging_setup
from audioswitch.devices import AudioManager


# =============================================================================
# Builders for PowerShell-shaped JSON
# =============================================================================

def device(id, name, device_type="Playback", *, default=False, comm=False, state="Active"):
    return {
        "id": id,
        "name": name,
        "device_type": device_type,
        "state": state,
        "is_default": default,
        "is_communication_default": comm,
        "last_seen": "2024-01-01T00:00:00.000Z",
    }


def listing(*devices):
    return json.dumps({"devices": list(devices), "timestamp": "2024-01-01T00:00:00.000Z"})


def ok(**extra):
    return json.dumps({"success": True, **extra})


def failed(error, **extra):
    return json.dumps({"success": False, "error": error, **extra})


# =============================================================================
# Fakes
# =============================================================================

class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start=1000.0):
        self.now = float(start)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeRunner:
    """
    Stands in for PowerShellRunner.

    Responses are queued per operation label; the last queued response keeps
    answering once the earlier ones are used up. A response that is an
    exception instance is raised instead of returned.
    """

    def __init__(self, clock=None, delay=0.0):
        self.calls = []  # (operation, script)
        self.responses = {}
        self.clock = clock
        self.delay = delay

    def on(self, operation, *responses):
        self.responses[operation] = list(responses)
        return self

    async def execute(self, script, operation):
        self.calls.append((operation, script))
        if self.clock is not None and self.delay:
            self.clock.advance(self.delay)
        queue = self.responses.get(operation)
        if not queue:
            raise AssertionError(f"no response queued for {operation!r}")
        resp = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(resp, BaseException):
            raise resp
        return resp

    def count(self, operation):
        return sum(1 for op, _ in self.calls if op == operation)

    def scripts(self, operation):
        return [script for op, script in self.calls if op == operation]


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(autouse=True, scope="session")
def isolated_log_dir(tmp_path_factory):
    """Keep audioswitch.log out of the package directory."""
    log_dir = tmp_path_factory.mktemp("logs")
    os.environ["AUDIOSWITCH_LOG_DIR"] = str(log_dir)
    logging_setup._LOG_DIR = None
    logging_setup._LOG_PATH = None
    yield log_dir


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def runner(clock):
    return FakeRunner(clock=clock)


@pytest.fixture
def manager(runner, clock):
    return AudioManager(runner=runner, clock=clock, session_id="test-session")


@pytest.fixture
def two_defaults_listing():
    """Playback P1 and recording R1 are default; B is a second playback device."""
    return listing(
        device("P1", "Speakers (Realtek)", default=True, comm=True),
        device("B", "USB Headset", default=False),
        device("R1", "Microphone (Realtek)", "Recording", default=True, comm=True),
    )

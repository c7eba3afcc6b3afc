import asyncio
import sys
from pathlib import Path

import pytest


# Ensure the repo root is on PYTHONPATH so `import core`, `import navigation` work in tests
_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from core.controller import SessionController, SessionTimings  # noqa: E402
from core.event_names import ERROR, SPEAKING, STATE_CHANGED, STEP_CHANGED, VISION_UPDATE  # noqa: E402
from core.events import EventBus  # noqa: E402
from services.route_service import RouteResult  # noqa: E402


ROUTE_TEXT = (
    "STEP 1: Walk forward 10 steps\n"
    "STEP 2: Turn left at the door\n"
    "STEP 3: Arrive at destination"
)


class FakeTTS:
    """Plays for `duration` seconds or until stop(); records everything said."""

    def __init__(self, duration=0.0, fail=False):
        self.duration = duration
        self.fail = fail
        self.spoken = []
        self.stop_calls = 0
        self.on_speak = None
        self._current = None

    def is_configured(self):
        return True

    def is_speaking(self):
        return self._current is not None

    async def speak(self, text):
        self.stop()
        self.spoken.append(text)
        if self.on_speak:
            self.on_speak(text)
        if self.fail:
            raise RuntimeError("tts down")

        done = asyncio.Event()
        self._current = done
        try:
            await asyncio.wait_for(done.wait(), self.duration)
            return False
        except asyncio.TimeoutError:
            return True
        finally:
            if self._current is done:
                self._current = None

    def stop(self):
        self.stop_calls += 1
        current, self._current = self._current, None
        if current is not None:
            current.set()


class FakeSTT:
    def __init__(self, transcript="take me to the elevator", start_ok=True):
        self.transcript = transcript
        self.start_ok = start_ok
        self.start_calls = 0
        self.cancel_calls = 0
        self.command_start_calls = 0
        self.command_stop_calls = 0
        self.on_command = None

    def is_configured(self):
        return True

    async def start_recording(self):
        self.start_calls += 1
        return self.start_ok

    async def stop_recording_and_transcribe(self):
        return self.transcript

    def cancel_recording(self):
        self.cancel_calls += 1

    def start_command_listening(self, on_command):
        self.command_start_calls += 1
        self.on_command = on_command
        return True

    def stop_command_listening(self):
        self.command_stop_calls += 1


class FakeRoute:
    def __init__(self, text=ROUTE_TEXT, floor="first", error=None, delay=0.0):
        self.text = text
        self.floor = floor
        self.error = error
        self.delay = delay
        self.queries = []

    def is_configured(self):
        return True

    async def request_route(self, query):
        self.queries.append(query)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return RouteResult(response_text=self.text, floor_label=self.floor)


class FakeVision:
    video_handle = None

    def __init__(self, start_ok=True):
        self.start_ok = start_ok
        self.start_calls = 0
        self.stop_calls = 0
        self.prompts = []
        self.on_event = None

    def is_configured(self):
        return True

    def start(self, on_event, prompt=None):
        self.start_calls += 1
        self.on_event = on_event
        self.prompts.append(prompt)
        return self.start_ok

    def stop(self):
        self.stop_calls += 1

    def update_prompt(self, prompt):
        self.prompts.append(prompt)


class FakeClock:
    def __init__(self, now=0):
        self.now = now

    def __call__(self):
        return self.now


class BusRecorder:
    def __init__(self):
        self.bus = EventBus()
        self.events = []
        self.bus.subscribe_many(
            (STATE_CHANGED, STEP_CHANGED, VISION_UPDATE, SPEAKING, ERROR), self.events.append
        )

    def of(self, name):
        return [e.payload for e in self.events if e.type == name]

    def states(self):
        return [p["state"] for p in self.of(STATE_CHANGED)]


FAST = SessionTimings(settle_s=0.01, unmute_grace_s=0.02, reset_delay_s=0.05,
                      min_vision_interval_ms=5000)


class Session:
    """Controller wired to fakes."""

    def __init__(self, tts=None, stt=None, route=None, vision=None, timings=FAST):
        self.recorder = BusRecorder()
        self.tts = tts or FakeTTS()
        self.stt = stt or FakeSTT()
        self.route = route or FakeRoute()
        self.vision = vision or FakeVision()
        self.clock = FakeClock()
        self.controller = SessionController(
            self.recorder.bus, self.stt, self.route, self.vision, self.tts,
            timings=timings, clock_ms=self.clock,
        )


@pytest.fixture
def make_session():
    return Session


async def settle(seconds=0.03):
    """Let queued messages, command tasks and short timers run."""
    await asyncio.sleep(seconds)

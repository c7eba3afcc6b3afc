import asyncio
import queue
import threading
import time

from services.vision.vision_stream import VisionStreamService


class FakeCamera:
    def __init__(self, fail=False):
        self.fail = fail
        self.started = False
        self.stopped = False

    def start(self):
        if self.fail:
            raise RuntimeError("camera 0 could not be opened")
        self.started = True

    def get(self, timeout=1):
        if not self.started:
            raise queue.Empty
        return "frame"

    def stop(self):
        self.stopped = True


class FakeFrames:
    def __init__(self):
        self.published = 0
        self.cleared = False

    def publish_frame(self, frame):
        self.published += 1
        return b"jpeg"

    def get_jpeg_frame(self):
        return b"jpeg"

    def clear(self):
        self.cleared = True


class FakeDescriber:
    def __init__(self, replies, configured=True):
        self.replies = list(replies)
        self.configured = configured
        self.prompts = []

    def is_configured(self):
        return self.configured

    def describe_frame(self, jpeg, prompt):
        self.prompts.append(prompt)
        reply = self.replies.pop(0) if self.replies else "Hallway"
        if isinstance(reply, Exception):
            raise reply
        return reply


def collect(service, count, prompt="look around"):
    events = []
    done = threading.Event()

    def on_event(evt):
        events.append(evt)
        if len(events) >= count:
            done.set()

    assert service.start(on_event, prompt)
    assert done.wait(2)
    service.stop().join(2)
    return events


def test_emits_descriptions_and_failures():
    camera, frames = FakeCamera(), FakeFrames()
    describer = FakeDescriber([" Door ahead. ", TimeoutError("slow")])
    service = VisionStreamService(describer, camera_factory=lambda: camera, interval_s=0.001, frames=frames)

    events = collect(service, 2)
    assert events[0].success and events[0].text == "Door ahead."
    assert not events[1].success and events[1].error == "slow"
    assert describer.prompts[0] == "look around"
    assert camera.stopped
    assert frames.cleared
    assert not service.is_active()
    assert service.video_handle is frames


def test_prompt_update_applies_to_next_frame():
    describer = FakeDescriber([])
    service = VisionStreamService(describer, camera_factory=FakeCamera, interval_s=0.001, frames=FakeFrames())
    service.update_prompt("step two")
    collect(service, 1, prompt=None)
    assert describer.prompts[0] == "step two"


def test_start_refused_without_describer_or_camera():
    unconfigured = VisionStreamService(FakeDescriber([], configured=False), camera_factory=FakeCamera,
                                       frames=FakeFrames())
    assert not unconfigured.start(lambda evt: None)

    broken = VisionStreamService(FakeDescriber([]), camera_factory=lambda: FakeCamera(fail=True),
                                 frames=FakeFrames())
    assert not broken.start(lambda evt: None)
    assert not broken.is_active()


class SlowDescriber(FakeDescriber):
    def __init__(self, delay):
        super().__init__([])
        self.delay = delay
        self.entered = threading.Event()

    def describe_frame(self, jpeg, prompt):
        self.entered.set()
        time.sleep(self.delay)
        return "Door ahead"


def test_stop_does_not_wait_for_inflight_description():
    camera, describer = FakeCamera(), SlowDescriber(0.5)
    service = VisionStreamService(describer, camera_factory=lambda: camera, interval_s=0.001,
                                  frames=FakeFrames())
    events = []
    assert service.start(events.append)
    assert describer.entered.wait(2)

    async def scenario():
        gaps = []

        async def ticker():
            last = time.monotonic()
            for _ in range(20):
                await asyncio.sleep(0.01)
                now = time.monotonic()
                gaps.append(now - last)
                last = now

        tick = asyncio.ensure_future(ticker())
        await asyncio.sleep(0.02)
        started = time.monotonic()
        retired = service.stop()
        blocked = time.monotonic() - started
        await tick
        return retired, blocked, max(gaps)

    retired, blocked, worst_gap = asyncio.run(scenario())
    assert blocked < 0.1
    assert worst_gap < 0.2
    assert not service.is_active()

    retired.join(2)
    assert camera.stopped
    assert events == []


def test_restart_while_previous_run_is_finishing():
    first_camera, second_camera = FakeCamera(), FakeCamera()
    cameras = [first_camera, second_camera]
    describer = SlowDescriber(0.2)
    service = VisionStreamService(describer, camera_factory=lambda: cameras.pop(0), interval_s=0.001,
                                  frames=FakeFrames())
    old_events, new_events = [], []

    assert service.start(old_events.append)
    assert describer.entered.wait(2)
    retired = service.stop()
    assert service.start(new_events.append)
    assert service.is_active()

    retired.join(2)
    assert first_camera.stopped
    assert not second_camera.stopped
    assert old_events == []

    service.stop().join(2)
    assert second_camera.stopped

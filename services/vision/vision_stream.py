# ClearPath/services/vision/vision_stream.py
import queue
import threading
import time

from loguru import logger

import config
from services.vision.announcement_filter import VisionEvent
from services.vision.camera_pipeline import CameraPipeline
from services.vision.frame_broadcast import FrameBroadcast


class VisionStreamService:
    """
    Low frequency scene descriptions while navigating:
      camera frame -> JPEG -> describe_frame(prompt) -> on_event(VisionEvent)

    Runs on its own daemon thread. on_event is called from that thread, so
    the receiver must hand the event over to its own loop.
    """

    def __init__(self, describer, camera_factory=None,
                 interval_s: float = config.VISION_FRAME_INTERVAL_S,
                 frames: FrameBroadcast = None):
        self.describer = describer
        self.camera_factory = camera_factory or (
            lambda: CameraPipeline(config.CAM_INDEX, config.CAM_CAPTURE_WIDTH, config.CAM_CAPTURE_HEIGHT)
        )
        self.interval_s = interval_s
        self.frames = frames or FrameBroadcast()

        self._thread = None
        self._stop = threading.Event()
        self._prompt = config.VISION_DEFAULT_PROMPT
        self._prompt_lock = threading.Lock()

    @property
    def video_handle(self) -> FrameBroadcast:
        return self.frames

    def is_configured(self) -> bool:
        return self.describer.is_configured()

    def is_active(self) -> bool:
        return (self._thread is not None and self._thread.is_alive()
                and not self._stop.is_set())

    def update_prompt(self, prompt: str):
        with self._prompt_lock:
            self._prompt = prompt or config.VISION_DEFAULT_PROMPT
        logger.debug("[VISION] prompt updated")

    def start(self, on_event, prompt: str = None) -> bool:
        if self.is_active():
            logger.warning("[VISION] stream already running")
            return True
        if not self.describer.is_configured():
            logger.warning("[VISION] no describer configured")
            return False

        if prompt:
            self.update_prompt(prompt)

        try:
            camera = self.camera_factory()
            camera.start()
        except Exception as e:
            logger.error(f"[VISION] camera failed to start: {e!r}")
            return False

        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._run, args=(camera, self._stop, on_event), daemon=True, name="vision-stream"
        )
        self._thread.start()
        logger.info("[VISION] stream started")
        return True

    def stop(self):
        """
        Signal the current run to end and return without waiting for it.
        The run thread releases its own camera once an in-flight description
        returns. Returns that thread (or None) for callers that want to join.
        """
        self._stop.set()
        thread, self._thread = self._thread, None
        self.frames.clear()
        logger.info("[VISION] stream stop requested")
        return thread

    def _describe(self, jpeg: bytes) -> VisionEvent:
        with self._prompt_lock:
            prompt = self._prompt
        ts = int(time.time() * 1000)
        try:
            text = self.describer.describe_frame(jpeg, prompt)
            return VisionEvent(success=True, text=(text or "").strip(), timestamp_ms=ts)
        except Exception as e:
            logger.warning(f"[VISION] describe failed: {e!r}")
            return VisionEvent(success=False, text=None, timestamp_ms=ts, error=str(e))

    def _run(self, camera, stop_evt: threading.Event, on_event):
        try:
            while not stop_evt.is_set():
                started = time.monotonic()
                try:
                    frame = camera.get(timeout=1)
                except queue.Empty:
                    continue

                jpeg = self.frames.publish_frame(frame)
                if jpeg is None:
                    continue

                event = self._describe(jpeg)
                if stop_evt.is_set():
                    break
                try:
                    on_event(event)
                except Exception as e:
                    logger.exception(f"[VISION] on_event handler failed: {e}")

                elapsed = time.monotonic() - started
                stop_evt.wait(max(0.0, self.interval_s - elapsed))
        finally:
            try:
                camera.stop()
            except Exception as e:
                logger.warning(f"[VISION] camera stop raised: {e!r}")
            if self._stop is stop_evt:
                self.frames.clear()
            logger.info("[VISION] stream stopped")

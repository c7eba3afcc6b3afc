# ClearPath/services/speech_arbiter.py
import asyncio

from loguru import logger

import config
from core.event_names import SPEAKING, SOURCE_NAVIGATION, SOURCE_VISION


class SpeechArbiter:
    """
    Single audio output shared by navigation steps and vision announcements.

      speak_navigation_step(text)      -> always speaks, preempts vision
      speak_vision_announcement(text)  -> only when nothing else is talking
                                          and vision is not muted
      mute() / unmute()                -> vision gate, set by the controller

    At most one of the two sources is speaking at any time. TTS failures
    resolve to False and never raise, so a broken speaker cannot wedge the
    session.
    """

    def __init__(self, tts, bus=None, settle_s: float = config.NAV_SPEECH_SETTLE_MS / 1000):
        self.tts = tts
        self.bus = bus
        self.settle_s = settle_s

        self._muted = False
        self._speaking_nav_step = False
        self._nav_token = None
        self._settle_handle = None

        self._speaking_vision = False
        self._vision_task = None

    # ---------- flags ----------
    @property
    def is_muted(self) -> bool:
        return self._muted

    @property
    def is_speaking_nav_step(self) -> bool:
        return self._speaking_nav_step

    @property
    def is_speaking_vision(self) -> bool:
        return self._speaking_vision

    def can_announce_vision(self) -> bool:
        return not (
            self._muted
            or self._speaking_nav_step
            or self._speaking_vision
            or self.tts.is_speaking()
        )

    def mute(self):
        if not self._muted:
            logger.debug("[ARBITER] vision muted")
        self._muted = True

    def unmute(self):
        if self._muted:
            logger.debug("[ARBITER] vision unmuted")
        self._muted = False

    # ---------- navigation speech ----------
    async def speak_navigation_step(self, text: str) -> bool:
        token = object()
        self._nav_token = token
        if self._settle_handle:
            self._settle_handle.cancel()
            self._settle_handle = None

        self._preempt_vision()
        self._speaking_nav_step = True
        self._notify(text, SOURCE_NAVIGATION)

        ok = False
        try:
            ok = bool(await self.tts.speak(text))
        except Exception as e:
            logger.warning(f"[ARBITER] navigation speech failed: {e!r}")
        finally:
            if self._nav_token is token:
                self._schedule_settle(token)
        return ok

    def _schedule_settle(self, token):
        # flag stays up a little longer so vision does not answer on the same breath
        def clear():
            self._settle_handle = None
            if self._nav_token is token:
                self._speaking_nav_step = False
                self._nav_token = None

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            clear()
            return
        self._settle_handle = loop.call_later(self.settle_s, clear)

    # ---------- vision speech ----------
    def speak_vision_announcement(self, text: str) -> bool:
        """Fire and forget. Returns True if the announcement was dispatched."""
        if not self.can_announce_vision():
            logger.debug("[ARBITER] vision announcement skipped, channel busy or muted")
            return False
        self._speaking_vision = True
        self._vision_task = asyncio.get_running_loop().create_task(self._run_vision(text))
        return True

    async def _run_vision(self, text: str):
        task = asyncio.current_task()
        self._notify(text, SOURCE_VISION)
        try:
            await self.tts.speak(text)
        except Exception as e:
            logger.warning(f"[ARBITER] vision speech failed: {e!r}")
        finally:
            if self._vision_task is task:
                self._vision_task = None
                self._speaking_vision = False

    def _preempt_vision(self):
        task = self._vision_task
        if task is None:
            return
        logger.debug("[ARBITER] preempting vision announcement")
        self.tts.stop()
        if not task.done():
            task.cancel()
        self._vision_task = None
        self._speaking_vision = False

    # ---------- stop / cancel ----------
    def stop_speech(self):
        """Cut whatever is playing right now."""
        self.tts.stop()
        self._preempt_vision()

    def cancel(self):
        """
        Drop all pending speech state. Completion handlers of utterances
        still in flight become no-ops.
        """
        self.stop_speech()
        self._nav_token = None
        self._speaking_nav_step = False
        if self._settle_handle:
            self._settle_handle.cancel()
            self._settle_handle = None

    def _notify(self, text: str, source: str):
        if self.bus:
            self.bus.publish(SPEAKING, {"text": text, "source": source})

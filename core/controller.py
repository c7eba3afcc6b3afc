# ClearPath/core/controller.py
import asyncio
import time
from dataclasses import dataclass, replace
from typing import Optional

from loguru import logger

import config
from .errors import CaptureFailure, NavigationError, RouteFailure
from .event_names import ERROR, STATE_CHANGED, STEP_CHANGED, VISION_UPDATE
from .states import SessionState, SessionStatus
from navigation.commands import HELP_TEXT, VoiceCommand, parse_command
from navigation.cursor import StepCursor
from navigation.prompts import build_vision_prompt
from navigation.steps import ParsedRoute, parse_route
from services.speech_arbiter import SpeechArbiter
from services.vision.announcement_filter import VisionAnnouncementFilter, VisionEvent


FINAL_STEP_REMINDER = "This is the final step. You're almost there!"
AT_FINAL_STEP = "You're at the final step. Say stop when you arrive."
AT_FIRST_STEP = "You're at the first step."
NAVIGATION_ENDED = "Navigation ended."


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


@dataclass
class SessionTimings:
    settle_s: float = config.NAV_SPEECH_SETTLE_MS / 1000
    unmute_grace_s: float = config.VISION_UNMUTE_GRACE_MS / 1000
    reset_delay_s: float = config.COMPLETED_RESET_DELAY_MS / 1000
    min_vision_interval_ms: int = config.MIN_VISION_INTERVAL_MS


class SessionController:
    """
    Owns ALL session state transitions:

      IDLE -> LISTENING -> VERIFYING -> REQUESTING_ROUTE -> NAVIGATING
           -> COMPLETED -> (delay) -> IDLE
      any failure -> ERROR, which always allows start_listening() again.

    All mutation happens on one asyncio loop. Collaborator threads hand
    voice commands and vision events in through post_voice_command() /
    post_vision_event(); a per-session control loop consumes them.
    """

    def __init__(self, bus, stt, route_service, vision, tts,
                 timings: Optional[SessionTimings] = None, clock_ms=None):
        self.bus = bus
        self.stt = stt
        self.route_service = route_service
        self.vision = vision
        self.tts = tts
        self.timings = timings or SessionTimings()
        self._clock_ms = clock_ms or _monotonic_ms

        self.arbiter = SpeechArbiter(tts, bus=bus, settle_s=self.timings.settle_s)
        self.vision_filter = VisionAnnouncementFilter(self.timings.min_vision_interval_ms)

        self._state = SessionState.idle()
        self._cursor: Optional[StepCursor] = None

        self._loop = None
        self._inbox = None
        self._loop_task = None
        self._command_task = None
        self._unmute_handle = None
        self._reset_handle = None

        self._vision_active = False
        self._commands_active = False
        self._last_vision_announced_ms = None
        # bumped whenever a navigation session starts or is torn down;
        # timers and late completions from an older session compare against it
        self._session_id = 0

    # ---------- read side ----------
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def cursor(self) -> Optional[StepCursor]:
        return self._cursor

    @property
    def video_handle(self):
        return getattr(self.vision, "video_handle", None)

    def services_status(self) -> dict:
        def configured(svc):
            check = getattr(svc, "is_configured", None)
            return bool(check()) if callable(check) else svc is not None

        return {
            "stt": configured(self.stt),
            "route": configured(self.route_service),
            "vision": configured(self.vision),
            "tts": configured(self.tts),
        }

    # ---------- state plumbing ----------
    def _set_state(self, new: SessionState):
        old = self._state
        self._state = new
        if old.status is not new.status:
            logger.info(f"[STATE] {old.status.name} → {new.status.name}")
        self.bus.publish(STATE_CHANGED, new.to_dict())

    def _update_navigation(self, **changes):
        if self._state.is_navigating:
            self._set_state(replace(self._state, **changes))

    def _fail(self, err: NavigationError, user_message: str):
        logger.error(f"[NAV] {type(err).__name__}: {err}")
        self._set_state(SessionState.error(str(err)))
        self.bus.publish(ERROR, {"message": user_message, "kind": err.kind})

    # =====================================================
    # Phase 1: destination capture
    # =====================================================
    async def start_listening(self) -> bool:
        if self._state.status not in (SessionStatus.IDLE, SessionStatus.ERROR):
            logger.warning(f"[NAV] Cannot start listening in state {self._state.status.name}")
            return False

        self._set_state(SessionState.listening())
        return await self._begin_capture()

    async def _begin_capture(self) -> bool:
        try:
            started = await self.stt.start_recording()
        except Exception as e:
            logger.warning(f"[ASR] start_recording raised: {e!r}")
            started = False

        if self._state.status is not SessionStatus.LISTENING:
            # cancelled or reset while the microphone was opening
            self.stt.cancel_recording()
            return False
        if not started:
            self._fail(CaptureFailure("Failed to start microphone"),
                       "Failed to start microphone. Check permissions.")
            return False

        logger.info("[NAV] Listening for destination...")
        return True

    async def stop_listening_and_verify(self) -> Optional[str]:
        if self._state.status is not SessionStatus.LISTENING:
            logger.warning("[NAV] Not currently listening")
            return None

        try:
            transcript = await self.stt.stop_recording_and_transcribe()
        except Exception as e:
            logger.warning(f"[ASR] transcription raised: {e!r}")
            transcript = ""

        if self._state.status is not SessionStatus.LISTENING:
            return None

        transcript = (transcript or "").strip()
        if not transcript:
            self._fail(CaptureFailure("Could not understand speech"),
                       "Could not understand. Please try again.")
            return None

        logger.info(f"[NAV] Transcribed: {transcript!r}")
        self._set_state(SessionState.verifying(transcript))
        return transcript

    async def decline_transcript(self) -> bool:
        """User rejected the transcript: drop it and listen again."""
        if self._state.status is not SessionStatus.VERIFYING:
            return False
        logger.info("[NAV] Transcript declined, listening again")
        self._set_state(SessionState.listening())
        return await self._begin_capture()

    def cancel_listening(self) -> bool:
        if self._state.status not in (SessionStatus.LISTENING, SessionStatus.VERIFYING):
            return False
        self.stt.cancel_recording()
        self._set_state(SessionState.idle())
        return True

    # =====================================================
    # Phase 2: route request
    # =====================================================
    async def confirm_and_navigate(self, query: Optional[str] = None) -> bool:
        if self._state.status is not SessionStatus.VERIFYING:
            logger.warning(f"[NAV] Nothing to confirm in state {self._state.status.name}")
            return False

        query = (query or self._state.transcript or "").strip()
        if not query:
            self._fail(CaptureFailure("Empty destination"), "Could not understand. Please try again.")
            return False
        return await self._request_and_navigate(query)

    async def navigate_with_text(self, query: str) -> bool:
        """Skip voice capture and request a route for a typed destination."""
        if self._state.status not in (SessionStatus.IDLE, SessionStatus.ERROR):
            logger.warning(f"[NAV] Cannot navigate in state {self._state.status.name}")
            return False
        query = (query or "").strip()
        if not query:
            return False
        return await self._request_and_navigate(query)

    async def _request_and_navigate(self, query: str) -> bool:
        self._set_state(SessionState.requesting_route(query))
        logger.info(f"[ROUTE] Requesting directions for: {query!r}")

        try:
            result = await self.route_service.request_route(query)
            parsed = parse_route(result.response_text)
            if parsed.is_empty:
                raise RouteFailure("Could not parse navigation steps")
        except RouteFailure as e:
            if self._state.status is SessionStatus.REQUESTING_ROUTE:
                self._fail(e, f"Could not get directions: {e}")
            return False
        except Exception as e:
            logger.exception(f"[ROUTE] Unexpected failure: {e}")
            if self._state.status is SessionStatus.REQUESTING_ROUTE:
                self._fail(RouteFailure(str(e) or type(e).__name__), f"Could not get directions: {e}")
            return False

        if self._state.status is not SessionStatus.REQUESTING_ROUTE:
            logger.info("[ROUTE] Session changed while waiting for directions, discarding route")
            return False

        logger.info(f"[ROUTE] Got {len(parsed)} steps")
        return await self._start_navigation(parsed, result.floor_label)

    # =====================================================
    # Phase 3: active navigation
    # =====================================================
    async def _start_navigation(self, route: ParsedRoute, floor_label: Optional[str]) -> bool:
        self._session_id += 1
        session = self._session_id

        self._loop = asyncio.get_running_loop()
        self._inbox = asyncio.Queue()
        self._cursor = StepCursor(route)
        self._last_vision_announced_ms = None

        self.arbiter.mute()
        self._set_state(SessionState.navigating(route.steps, 0, floor_label, vision_muted=True))
        self._loop_task = self._loop.create_task(self._control_loop(self._inbox))

        self._vision_active = True
        try:
            vision_started = self.vision.start(self.post_vision_event, self._vision_prompt())
        except Exception as e:
            logger.warning(f"[VISION] start raised: {e!r}")
            vision_started = False
        if not vision_started:
            logger.warning("[VISION] Vision stream failed to start, continuing without vision")

        self._commands_active = True
        self.stt.start_command_listening(self.post_voice_command)

        self._publish_step()
        await self.arbiter.speak_navigation_step(self._cursor.current_for_speech())

        if session == self._session_id and self._state.is_navigating:
            self._schedule_unmute()
        logger.info("[NAV] Active navigation started")
        return True

    # ---------- inbound channel ----------
    def post_voice_command(self, command: VoiceCommand):
        """Thread-safe entry point for the command recognizer."""
        self._post(command)

    def post_vision_event(self, event: VisionEvent):
        """Thread-safe entry point for the vision stream."""
        self._post(event)

    def submit_command_text(self, text: str) -> Optional[VoiceCommand]:
        command = parse_command(text)
        if command is not None:
            self._post(command)
        return command

    def _post(self, message):
        loop, inbox = self._loop, self._inbox
        if loop is None or inbox is None:
            return
        try:
            loop.call_soon_threadsafe(inbox.put_nowait, message)
        except RuntimeError:
            logger.debug("[NAV] Event loop closed, dropping message")

    async def _control_loop(self, inbox: asyncio.Queue):
        while True:
            message = await inbox.get()
            try:
                if isinstance(message, VoiceCommand):
                    self._dispatch_command(message)
                elif isinstance(message, VisionEvent):
                    self._on_vision_event(message)
            except Exception as e:
                logger.exception(f"[NAV] Failed to handle {message!r}: {e}")

    # ---------- vision ----------
    def _on_vision_event(self, event: VisionEvent):
        if not self._state.is_navigating:
            return
        self.bus.publish(VISION_UPDATE, event.to_dict())

        if not event.success:
            logger.debug(f"[VISION] frame failed: {event.error}")
            return

        now = self._clock_ms()
        suppressed = (
            self.arbiter.is_muted
            or self.arbiter.is_speaking_nav_step
            or self._command_running()
        )
        if not self.vision_filter.should_announce(event, now, self._last_vision_announced_ms, suppressed):
            return

        # baseline first, so a second event racing in is already rate limited
        self._last_vision_announced_ms = now
        if self.arbiter.speak_vision_announcement(event.text):
            logger.info(f"[VISION] Announcing: {event.text!r}")

    def _mute_vision(self):
        if self._unmute_handle:
            self._unmute_handle.cancel()
            self._unmute_handle = None
        self.arbiter.mute()
        if self._state.is_navigating and not self._state.vision_muted:
            self._update_navigation(vision_muted=True)

    def _schedule_unmute(self, from_command: bool = False):
        if not from_command and self._command_running():
            # the running command reopens the gate when its speech is done
            return
        if self._unmute_handle:
            self._unmute_handle.cancel()
        self._unmute_handle = self._loop.call_later(
            self.timings.unmute_grace_s, self._unmute_vision, self._session_id
        )

    def _unmute_vision(self, session: int):
        self._unmute_handle = None
        if session != self._session_id or not self._state.is_navigating:
            return
        if self._command_running():
            return
        self.arbiter.unmute()
        # vision must wait a full interval after the gate reopens
        self._last_vision_announced_ms = self._clock_ms()
        self._update_navigation(vision_muted=False)

    def _refresh_vision_prompt(self):
        update = getattr(self.vision, "update_prompt", None)
        if callable(update) and self._vision_active:
            try:
                update(self._vision_prompt())
            except Exception as e:
                logger.warning(f"[VISION] prompt update failed: {e!r}")

    def _vision_prompt(self) -> str:
        return build_vision_prompt(self._cursor, self._state.floor_label,
                                   config.VISION_CONTEXT_STEPS)

    # ---------- voice commands ----------
    def _command_running(self) -> bool:
        task = self._command_task
        return task is not None and not task.done()

    def _dispatch_command(self, command: VoiceCommand):
        if not self._state.is_navigating:
            logger.debug(f"[NAV] Ignoring {command.value!r} outside navigation")
            return

        previous = None
        if self._command_running():
            if command is not VoiceCommand.STOP:
                logger.info(f"[NAV] Dropping overlapping command {command.value!r}")
                return
            previous = self._command_task
            previous.cancel()

        logger.info(f"[NAV] Voice command received: {command.value}")
        self._command_task = self._loop.create_task(self._run_command(command, previous))

    async def _run_command(self, command: VoiceCommand, previous=None):
        self._mute_vision()
        self.arbiter.stop_speech()
        if previous is not None:
            await asyncio.wait([previous])

        session = self._session_id
        handlers = {
            VoiceCommand.NEXT: self._handle_next,
            VoiceCommand.PREVIOUS: self._handle_previous,
            VoiceCommand.REPEAT: self._handle_repeat,
            VoiceCommand.WHERE_AM_I: self._handle_where_am_i,
            VoiceCommand.HELP: self._handle_help,
        }

        try:
            if command is VoiceCommand.STOP:
                await self.stop_navigation()
                return
            await handlers[command]()
        except Exception as e:
            logger.exception(f"[NAV] Command {command.value!r} crashed: {e}")
            self._teardown()
            self._fail(NavigationError(f"Internal error while handling {command.value!r}"),
                       "Something went wrong. Please start again.")
            return

        if session == self._session_id and self._state.is_navigating:
            self._schedule_unmute(from_command=True)

    async def _speak(self, text: str) -> bool:
        return await self.arbiter.speak_navigation_step(text)

    async def _handle_next(self):
        step = self._cursor.advance()
        if step is None:
            await self._speak(AT_FINAL_STEP)
            return

        self._on_step_moved()
        await self._speak(self._cursor.current_for_speech())
        if self._cursor.is_at_last():
            await self._speak(FINAL_STEP_REMINDER)

    async def _handle_previous(self):
        step = self._cursor.retreat()
        if step is None:
            await self._speak(AT_FIRST_STEP)
            return

        self._on_step_moved()
        await self._speak(self._cursor.current_for_speech())

    async def _handle_repeat(self):
        await self._speak(self._cursor.current_for_speech())

    async def _handle_where_am_i(self):
        progress = self._cursor.progress()
        text = f"You are on step {progress.current} of {progress.total}."
        upcoming = self._cursor.steps_for_speech(2)
        if upcoming:
            text += f" {upcoming}"
        await self._speak(text)

    async def _handle_help(self):
        await self._speak(HELP_TEXT)

    def _on_step_moved(self):
        self._update_navigation(cursor_index=self._cursor.current_index)
        self._publish_step()
        self._refresh_vision_prompt()

    def _publish_step(self):
        step = self._cursor.current()
        if step is None:
            return
        self.bus.publish(STEP_CHANGED, {
            "step": step.instruction_text,
            "index": step.index,
            "total": len(self._cursor),
            "is_landmark": step.is_landmark_reference,
            "distance_steps": step.distance_in_pace_units,
        })

    # =====================================================
    # Stop / reset
    # =====================================================
    async def stop_navigation(self) -> bool:
        if not self._state.is_navigating:
            return False

        logger.info("[NAV] Stopping navigation")
        self._mute_vision()
        self._teardown()
        self._set_state(SessionState.completed())

        await self.arbiter.speak_navigation_step(NAVIGATION_ENDED)
        self._schedule_reset()
        return True

    def _schedule_reset(self):
        if self._state.status is not SessionStatus.COMPLETED:
            return
        loop = asyncio.get_running_loop()
        self._reset_handle = loop.call_later(
            self.timings.reset_delay_s, self._reset_to_idle, self._session_id
        )

    def _reset_to_idle(self, session: int):
        self._reset_handle = None
        if session != self._session_id or self._state.status is not SessionStatus.COMPLETED:
            return
        self._cursor = None
        self.arbiter.unmute()
        self._set_state(SessionState.idle())

    def reset(self):
        """Drop everything and go back to IDLE without speaking."""
        logger.info("[NAV] Reset requested")
        self._teardown()
        self._cursor = None
        self.arbiter.unmute()
        self._set_state(SessionState.idle())

    def _teardown(self):
        """Stop collaborators and invalidate every pending timer or completion."""
        self._session_id += 1

        for handle in (self._unmute_handle, self._reset_handle):
            if handle:
                handle.cancel()
        self._unmute_handle = None
        self._reset_handle = None

        if self._commands_active:
            self._commands_active = False
            try:
                self.stt.stop_command_listening()
            except Exception as e:
                logger.warning(f"[ASR] stop_command_listening raised: {e!r}")
        try:
            self.stt.cancel_recording()
        except Exception as e:
            logger.warning(f"[ASR] cancel_recording raised: {e!r}")

        if self._vision_active:
            self._vision_active = False
            try:
                self.vision.stop()
            except Exception as e:
                logger.warning(f"[VISION] stop raised: {e!r}")

        self.arbiter.cancel()

        if self._loop_task and not self._loop_task.done():
            self._loop_task.cancel()
        self._loop_task = None
        self._inbox = None

        task = self._command_task
        if task is not None and not task.done():
            try:
                current = asyncio.current_task()
            except RuntimeError:
                current = None
            if task is not current:
                task.cancel()

        self._last_vision_announced_ms = None

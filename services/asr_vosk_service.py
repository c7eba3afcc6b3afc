# ClearPath/services/asr_vosk_service.py
import asyncio
import json
import queue
import threading

import sounddevice as sd
from loguru import logger

import config
from navigation.commands import command_grammar, parse_command


class SpeechToTextService:
    """
    Two microphone modes:
      - destination capture: start_recording() ... stop_recording_and_transcribe()
      - continuous commands: start_command_listening(on_command) on a daemon
        thread, emitting VoiceCommand values until stop_command_listening()

    Commands heard while busy() is true (our own TTS playing) are ignored.
    """

    def __init__(self, asr_adapter, busy=None,
                 sample_rate: int = config.MIC_SAMPLE_RATE,
                 channels: int = config.MIC_CHANNELS,
                 blocksize: int = config.MIC_BLOCKSIZE):
        self.asr = asr_adapter
        self.busy = busy or (lambda: False)
        self.sample_rate = sample_rate
        self.channels = channels
        self.blocksize = blocksize

        self._stream = None
        self._chunks = []
        self._chunks_lock = threading.Lock()

        self._cmd_thread = None
        self._cmd_stop = None

    def is_configured(self) -> bool:
        return self.asr.is_configured()

    # ---------- destination capture ----------
    @property
    def is_recording(self) -> bool:
        return self._stream is not None

    def _record_cb(self, indata, frames, time_info, status):
        if status:
            logger.warning(f"[ASR] callback status: {status}")
        with self._chunks_lock:
            self._chunks.append(bytes(indata))

    def _open_mic(self):
        stream = sd.RawInputStream(
            samplerate=self.sample_rate,
            blocksize=self.blocksize,
            dtype="int16",
            channels=self.channels,
            callback=self._record_cb,
        )
        stream.start()
        return stream

    async def start_recording(self) -> bool:
        if self._stream is not None:
            logger.warning("[ASR] Already recording")
            return True
        with self._chunks_lock:
            self._chunks = []
        try:
            self._stream = await asyncio.to_thread(self._open_mic)
        except Exception as e:
            logger.error(f"[ASR] Mic failed to open: {e!r}")
            self._stream = None
            return False
        logger.info("[ASR] Recording destination...")
        return True

    def _close_mic(self):
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except Exception as e:
            logger.warning(f"[ASR] closing mic failed: {e!r}")

    async def stop_recording_and_transcribe(self) -> str:
        if self._stream is None:
            logger.warning("[ASR] Not currently recording")
            return ""
        self._close_mic()

        with self._chunks_lock:
            audio = b"".join(self._chunks)
            self._chunks = []

        duration_ms = len(audio) / 2 / self.channels / self.sample_rate * 1000
        logger.info(f"[ASR] Recording stopped ({duration_ms:.0f} ms)")
        if duration_ms < config.MIN_RECORDING_MS:
            logger.warning("[ASR] Recording too short")
            return ""

        try:
            text = await asyncio.to_thread(self.asr.transcribe, audio)
        except Exception as e:
            logger.error(f"[ASR] Transcription failed: {e!r}")
            return ""
        logger.info(f"[ASR] final text: {text!r}")
        return text

    def cancel_recording(self):
        if self._stream is not None:
            self._close_mic()
            logger.info("[ASR] Recording cancelled")
        with self._chunks_lock:
            self._chunks = []

    # ---------- continuous commands ----------
    @property
    def is_listening_for_commands(self) -> bool:
        return self._cmd_stop is not None and not self._cmd_stop.is_set()

    def start_command_listening(self, on_command) -> bool:
        if self.is_listening_for_commands:
            return True
        stop_evt = threading.Event()
        self._cmd_stop = stop_evt
        self._cmd_thread = threading.Thread(
            target=self._command_loop, args=(on_command, stop_evt), daemon=True, name="command-listener"
        )
        self._cmd_thread.start()
        logger.info("[ASR] Command listening started")
        return True

    def stop_command_listening(self):
        """Signal the listener to exit without waiting; returns its thread, if any."""
        if self._cmd_stop is not None:
            self._cmd_stop.set()
        thread, self._cmd_thread = self._cmd_thread, None
        logger.info("[ASR] Command listening stop requested")
        return thread

    def _command_loop(self, on_command, stop_evt):
        try:
            recognizer = self.asr.command_recognizer(command_grammar())
        except Exception as e:
            logger.exception(f"[ASR] command recognizer failed to load: {e}")
            stop_evt.set()
            return

        audio_q = queue.Queue()

        def callback(indata, frames, time_info, status):
            if status:
                logger.warning(f"[ASR] Audio status: {status}")
            audio_q.put(bytes(indata))

        try:
            with sd.RawInputStream(
                samplerate=self.sample_rate,
                blocksize=self.blocksize,
                dtype="int16",
                channels=self.channels,
                callback=callback,
            ):
                while not stop_evt.is_set():
                    try:
                        data = audio_q.get(timeout=0.5)
                    except queue.Empty:
                        continue

                    # don't hear ourselves
                    if self.busy():
                        recognizer.Reset()
                        continue

                    if not recognizer.AcceptWaveform(data):
                        continue
                    text = json.loads(recognizer.Result()).get("text", "").lower()
                    if not text:
                        continue

                    logger.debug(f"[ASR] Heard: {text}")
                    command = parse_command(text)
                    if command is not None and not stop_evt.is_set():
                        logger.info(f"[ASR] Command: {command.value}")
                        on_command(command)

        except Exception as e:
            logger.exception(f"[ASR] Command listener error: {e}")
        finally:
            stop_evt.set()
            logger.info("[ASR] Command listening stopped")

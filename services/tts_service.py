# ClearPath/services/tts_service.py
import asyncio
import os

from loguru import logger

from speech.tts_normalization import normalize_for_tts


class TTSService:
    """
    speak(text) -> synth (ElevenLabs) -> play_wav -> True/False

    Never raises from speak(): a failed utterance is logged and reported as
    False. stop() cuts playback and turns any in-flight speak() into a no-op.
    """

    def __init__(self, tts_adapter, audio_out):
        self.tts = tts_adapter
        self.audio = audio_out
        self._token = None

    def is_configured(self) -> bool:
        return self.tts.is_configured()

    def is_speaking(self) -> bool:
        return self._token is not None

    async def speak(self, text: str) -> bool:
        speech_text = normalize_for_tts(text)
        if not speech_text:
            return False

        self.stop()
        token = object()
        self._token = token
        # a stop() between here and Popen bumps the generation and skips playback
        generation = self.audio.generation
        wav_path = None
        try:
            wav_path = await asyncio.to_thread(self.tts.synth, speech_text)
            if self._token is not token:
                logger.debug("[TTS] stopped before playback")
                return False
            return await asyncio.to_thread(self.audio.play_wav, wav_path, generation)
        except Exception as e:
            logger.error(f"[TTS] speak failed: {e!r}")
            return False
        finally:
            if self._token is token:
                self._token = None
            if wav_path:
                try:
                    os.remove(wav_path)
                except OSError:
                    pass

    def stop(self):
        self._token = None
        self.audio.stop()

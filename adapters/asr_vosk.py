# ClearPath/adapters/asr_vosk.py
import json
from pathlib import Path

from loguru import logger
from vosk import KaldiRecognizer, Model

import config

_vosk_model_cache = None


class VoskAdapter:
    """
    Thin adapter around a Vosk model.
    Exposes .transcribe(pcm_bytes) -> str and .command_recognizer(phrases).
    """
    def __init__(self, model_path: Path = config.VOSK_MODEL_PATH,
                 sample_rate: int = config.MIC_SAMPLE_RATE):
        self.model_path = Path(model_path)
        self.sample_rate = sample_rate
        self._model = None

    def is_configured(self) -> bool:
        return self.model_path.exists()

    def init_asr(self):
        global _vosk_model_cache
        if _vosk_model_cache is None:
            logger.info(f"[ASR] Loading Vosk model from {self.model_path}")
            _vosk_model_cache = Model(str(self.model_path))
        self._model = _vosk_model_cache

    def _ensure_model(self):
        if self._model is None:
            self.init_asr()
        return self._model

    def transcribe(self, pcm: bytes, chunk_bytes: int = 8000) -> str:
        """
        pcm: mono int16 @ sample_rate
        Returns the full free-form transcript.
        """
        recognizer = KaldiRecognizer(self._ensure_model(), self.sample_rate)
        for i in range(0, len(pcm), chunk_bytes):
            recognizer.AcceptWaveform(pcm[i:i + chunk_bytes])
        result = json.loads(recognizer.FinalResult())
        return result.get("text", "").strip()

    def command_recognizer(self, phrases) -> KaldiRecognizer:
        """Recognizer restricted to the given phrase list."""
        return KaldiRecognizer(self._ensure_model(), self.sample_rate, json.dumps(list(phrases)))

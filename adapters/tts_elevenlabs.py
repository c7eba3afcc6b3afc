# ClearPath/adapters/tts_elevenlabs.py
import uuid
from pathlib import Path

import numpy as np
import requests
import soundfile
from loguru import logger

import config
from core.errors import SpeechFailure


class ElevenLabsAdapter:
    """
    Thin adapter around the ElevenLabs text-to-speech REST API.
    Exposes .synth(text) -> wav path
    """

    def __init__(self,
                 api_key: str = config.ELEVENLABS_API_KEY,
                 voice_id: str = config.ELEVENLABS_VOICE_ID,
                 model_id: str = config.ELEVENLABS_MODEL,
                 sample_rate: int = config.TTS_SAMPLE_RATE,
                 outdir: Path = config.TTS_TMP_OUTDIR,
                 timeout: float = config.ELEVENLABS_TIMEOUT_S):
        self.api_key = (api_key or "").strip()
        self.voice_id = voice_id
        self.model_id = model_id
        self.sample_rate = sample_rate
        self.outdir = Path(outdir)
        self.timeout = timeout
        self._session = requests.Session()

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def synth(self, text: str) -> str:
        """Synthesize text to a 16-bit mono WAV file and return its path."""
        if not self.api_key:
            raise SpeechFailure("ELEVENLABS_API_KEY not set")

        r = self._session.post(
            f"{config.ELEVENLABS_URL}/{self.voice_id}",
            params={"output_format": f"pcm_{self.sample_rate}"},
            headers={
                "xi-api-key": self.api_key,
                "Content-Type": "application/json",
            },
            json={
                "text": text,
                "model_id": self.model_id,
                "voice_settings": {"stability": 0.5, "similarity_boost": 0.75},
            },
            timeout=self.timeout,
        )
        r.raise_for_status()

        pcm = np.frombuffer(r.content, dtype=np.int16)
        if pcm.size == 0:
            raise SpeechFailure("ElevenLabs returned no audio")

        self.outdir.mkdir(parents=True, exist_ok=True)
        wav_path = self.outdir / f"tts_{uuid.uuid4().hex[:8]}.wav"
        soundfile.write(str(wav_path), pcm, self.sample_rate, subtype="PCM_16")
        logger.debug(f"[TTS] wrote {pcm.size} samples to {wav_path.name}")
        return str(wav_path)

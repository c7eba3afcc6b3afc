import numpy as np
import pytest
import soundfile

from adapters.llm_gemini import GeminiAdapter
from adapters.tts_elevenlabs import ElevenLabsAdapter
from core.errors import SpeechFailure


class FakeResponse:
    def __init__(self, payload=None, content=b""):
        self._payload = payload
        self.content = content

    def raise_for_status(self):
        pass

    def json(self):
        return self._payload


class FakeHTTP:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        return self.response


def gemini(reply):
    adapter = GeminiAdapter(api_key="k", model="m", vision_model="vm", base_url="http://llm/v1/")
    adapter._session = FakeHTTP(FakeResponse(payload=reply))
    return adapter


def test_gemini_complete_with_image():
    adapter = gemini({"choices": [{"message": {"content": " STEP 1: Go \n"}}]})
    assert adapter.complete("route please", image_bytes=b"img") == "STEP 1: Go"

    url, kwargs = adapter._session.calls[0]
    assert url == "http://llm/v1/chat/completions"
    assert kwargs["headers"]["Authorization"] == "Bearer k"
    body = kwargs["json"]
    assert body["model"] == "m"
    content = body["messages"][0]["content"]
    assert content[0]["type"] == "image_url"
    assert content[0]["image_url"]["url"].startswith("data:image/png;base64,")
    assert content[1] == {"type": "text", "text": "route please"}


def test_gemini_describe_frame_uses_vision_model():
    adapter = gemini({"choices": [{"message": {"content": "Door ahead."}}]})
    assert adapter.describe_frame(b"jpeg", "what is ahead") == "Door ahead."
    body = adapter._session.calls[0][1]["json"]
    assert body["model"] == "vm"
    assert body["messages"][0]["content"][0]["image_url"]["url"].startswith("data:image/jpeg;base64,")


def test_gemini_errors():
    with pytest.raises(ValueError):
        gemini({"error": "quota"}).complete("x")
    with pytest.raises(RuntimeError):
        GeminiAdapter(api_key="").complete("x")
    assert not GeminiAdapter(api_key="  ").is_configured()


def test_elevenlabs_writes_wav(tmp_path):
    pcm = (np.sin(np.linspace(0, 20, 1600)) * 8000).astype(np.int16)
    adapter = ElevenLabsAdapter(api_key="k", voice_id="v", outdir=tmp_path, sample_rate=16000)
    adapter._session = FakeHTTP(FakeResponse(content=pcm.tobytes()))

    path = adapter.synth("Step 1. Go")
    data, rate = soundfile.read(path, dtype="int16")
    assert rate == 16000
    assert np.array_equal(data, pcm)

    url, kwargs = adapter._session.calls[0]
    assert url.endswith("/v")
    assert kwargs["params"] == {"output_format": "pcm_16000"}
    assert kwargs["headers"]["xi-api-key"] == "k"


def test_elevenlabs_errors(tmp_path):
    adapter = ElevenLabsAdapter(api_key="k", outdir=tmp_path)
    adapter._session = FakeHTTP(FakeResponse(content=b""))
    with pytest.raises(SpeechFailure, match="no audio"):
        adapter.synth("hello")
    with pytest.raises(SpeechFailure):
        ElevenLabsAdapter(api_key="", outdir=tmp_path).synth("hello")

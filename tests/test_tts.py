import asyncio
import threading

import services.audio_out as audio_out
from services.tts_service import TTSService
from speech.tts_normalization import normalize_for_tts, normalize_units, truncate


def test_normalize_for_tts():
    assert normalize_for_tts("**STEP 2:** Walk 20ft to Rm 204") == "Step 2. Walk 20 feet to room 204"
    assert normalize_for_tts("- Pass the ATM & turn left") == "Pass the A T M and turn left"
    assert normalize_for_tts("Take the stairs/elevator") == "Take the stairs or elevator"
    assert normalize_for_tts("") == ""


def test_units():
    assert normalize_units("about 3 m then 10 yds") == "about 3 meters then 10 yards"
    assert normalize_units("turn 90°") == "turn 90 degrees"


def test_truncate_on_word_boundary():
    text = "walk forward past the tall windows"
    assert truncate(text, max_chars=100) == text
    assert truncate(text, max_chars=16) == "walk forward."


class FakeSynth:
    def __init__(self, path, fail=False):
        self.path = path
        self.fail = fail
        self.texts = []

    def is_configured(self):
        return True

    def synth(self, text):
        self.texts.append(text)
        if self.fail:
            raise RuntimeError("synth failed")
        self.path.write_bytes(b"RIFF")
        return str(self.path)


class FakeAudio:
    """Returns immediately, or with blocking=True plays until stop()."""

    def __init__(self, blocking=False):
        self.blocking = blocking
        self.played = []
        self.generation = 0
        self._playing = None

    def play_wav(self, path, generation=None):
        if generation is not None and generation != self.generation:
            return False
        if not self.blocking:
            self.played.append(path)
            return True
        playing = threading.Event()
        self._playing = playing
        self.played.append(path)
        return not playing.wait(1)

    def stop(self):
        self.generation += 1
        if self._playing is not None:
            self._playing.set()


def test_speak_plays_and_cleans_up(tmp_path):
    wav = tmp_path / "out.wav"
    synth, audio = FakeSynth(wav), FakeAudio()
    tts = TTSService(synth, audio)

    assert asyncio.run(tts.speak("STEP 1: Walk 5ft")) is True
    assert synth.texts == ["Step 1. Walk 5 feet"]
    assert audio.played == [str(wav)]
    assert not wav.exists()
    assert not tts.is_speaking()


def test_speak_failure_resolves_false(tmp_path):
    tts = TTSService(FakeSynth(tmp_path / "x.wav", fail=True), FakeAudio())
    assert asyncio.run(tts.speak("hello")) is False
    assert not tts.is_speaking()


def test_empty_text_is_not_spoken(tmp_path):
    synth = FakeSynth(tmp_path / "x.wav")
    tts = TTSService(synth, FakeAudio())
    assert asyncio.run(tts.speak("  ")) is False
    assert synth.texts == []


def test_stop_interrupts_playback(tmp_path):
    audio = FakeAudio(blocking=True)
    tts = TTSService(FakeSynth(tmp_path / "x.wav"), audio)

    async def scenario():
        task = asyncio.ensure_future(tts.speak("a long sentence"))
        for _ in range(100):
            await asyncio.sleep(0.01)
            if audio.played:
                break
        assert tts.is_speaking()
        tts.stop()
        assert not tts.is_speaking()
        return await task

    assert asyncio.run(scenario()) is False


class FakeProc:
    def __init__(self, cmd):
        self.cmd = cmd

    def wait(self):
        return 0

    def poll(self):
        return 0


def test_audio_out_drops_playback_from_before_stop(monkeypatch):
    started = []

    def fake_popen(cmd):
        started.append(cmd)
        return FakeProc(cmd)

    monkeypatch.setattr(audio_out.subprocess, "Popen", fake_popen)
    audio = audio_out.AudioOut()
    audio._aplay = "aplay"

    stale = audio.generation
    audio.stop()
    assert audio.play_wav("old.wav", stale) is False
    assert started == []

    assert audio.play_wav("new.wav", audio.generation) is True
    assert audio.play_wav("plain.wav") is True
    assert [cmd[-1] for cmd in started] == ["new.wav", "plain.wav"]


def test_stop_during_synthesis_skips_playback(tmp_path):
    audio = FakeAudio()
    synth = FakeSynth(tmp_path / "x.wav")
    tts = TTSService(synth, audio)

    def synth_then_stop(text):
        path = FakeSynth.synth(synth, text)
        # stop() from another caller lands before playback begins
        audio.stop()
        return path

    synth.synth = synth_then_stop
    assert asyncio.run(tts.speak("hello")) is False
    assert audio.played == []

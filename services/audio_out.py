import subprocess
import shutil
import threading
from loguru import logger


class AudioOut:
    def __init__(self):
        self._aplay = shutil.which("aplay")
        self._ffplay = shutil.which("ffplay")
        self._proc = None
        self._lock = threading.Lock()
        # bumped by every stop(); a play_wav from an older generation is dropped
        self._generation = 0

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def play_wav(self, path: str, generation: int = None) -> bool:
        """Play a WAV file, blocking until it finishes or stop() is called."""
        if not path:
            logger.warning("[AUDIO] play_wav called with empty path")
            return False

        if self._aplay:
            # quiet mode; blocks until finished
            cmd = [self._aplay, "-q", path]
        elif self._ffplay:
            cmd = [self._ffplay, "-nodisp", "-autoexit", "-loglevel", "quiet", path]
        else:
            logger.warning(f"[AUDIO] No player found; skipping playback for {path}")
            return False

        with self._lock:
            if generation is not None and generation != self._generation:
                logger.debug(f"[AUDIO] stopped before playback: {path}")
                return False
            logger.info(f"[AUDIO] Playing: {path}")
            proc = subprocess.Popen(cmd)
            self._proc = proc
        try:
            code = proc.wait()
        finally:
            with self._lock:
                if self._proc is proc:
                    self._proc = None
            logger.info(f"[AUDIO] Finished: {path}")

        if code != 0:
            # negative when terminated by stop()
            logger.debug(f"[AUDIO] player exited with {code}")
        return code == 0

    def stop(self):
        with self._lock:
            self._generation += 1
            proc = self._proc
            self._proc = None
        if proc and proc.poll() is None:
            logger.debug("[AUDIO] Stopping playback")
            proc.terminate()

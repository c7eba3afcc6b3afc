# ClearPath/main.py
from loguru import logger
import asyncio
import threading
import subprocess
import sys
import requests
import time
from pathlib import Path
from core.events import EventBus
from core.controller import SessionController
from core.event_names import (
    STATE_CHANGED,
    STEP_CHANGED,
    VISION_UPDATE,
    SPEAKING,
    ERROR,
)
from adapters.llm_gemini import GeminiAdapter
from adapters.tts_elevenlabs import ElevenLabsAdapter
from adapters.asr_vosk import VoskAdapter
from services.audio_out import AudioOut
from services.tts_service import TTSService
from services.route_service import RouteService
from services.asr_vosk_service import SpeechToTextService
from services.vision.vision_stream import VisionStreamService
from services.control_api import create_api, invoke
import config

UI_URL = f"http://{config.UI_HOST}:{config.UI_PORT}"

#------------- UI API BACKEND ROUTING --------------------

def ui_post(path, payload):
    try:
        requests.post(f"{UI_URL}{path}", json=payload, timeout=0.2)
    except requests.RequestException:
        pass


def bridge_to_ui(bus):
    """Forward session events to the dashboard process."""
    bus.subscribe(STATE_CHANGED, lambda evt: ui_post("/push_state", evt.payload))
    bus.subscribe_many(
        (STEP_CHANGED, VISION_UPDATE, SPEAKING, ERROR),
        lambda evt: ui_post("/push_event", {"type": evt.type, "payload": evt.payload}),
    )

# -------------------- UI FUNCTIONS ------------------

ui_process = None

def launch_ui():
    global ui_process

    ui_app = Path(__file__).parent / "ui" / "app.py"
    if not ui_app.exists():
        logger.warning("[UI] app.py not found, skipping UI launch")
        return

    ui_process = subprocess.Popen(
        [sys.executable, "-m", "ui.app"],
        cwd=Path(__file__).parent,
        start_new_session=True
    )

    logger.info("[UI] Dashboard launched")

def wait_for_ui(timeout=10.0):
    start = time.time()
    while time.time() - start < timeout:
        try:
            r = requests.get(f"{UI_URL}/health", timeout=0.5)
            if r.status_code == 200:
                logger.info("[UI] UI is ready")
                return True
        except requests.RequestException:
            pass
        time.sleep(0.1)

    logger.warning("[UI] UI did not become ready in time")
    return False

#----------------- MAIN LOOP -----------------
def build_controller(bus):
    llm = GeminiAdapter()
    route_service = RouteService(llm)
    vision = VisionStreamService(describer=llm)

    audio = AudioOut()
    tts = TTSService(ElevenLabsAdapter(), audio)

    asr = VoskAdapter()
    if asr.is_configured():
        asr.init_asr()
        logger.info("[ASR] Vosk initialized.")
    else:
        logger.warning(f"[ASR] Vosk model not found at {config.VOSK_MODEL_PATH}")
    stt = SpeechToTextService(asr, busy=tts.is_speaking)

    return SessionController(bus, stt, route_service, vision, tts)


def main():
    logger.add(config.LOG_FILE, rotation="1 MB", level="INFO")

    bus = EventBus()

    #----------- LAUNCH UI ---------------
    launch_ui()
    wait_for_ui()
    bridge_to_ui(bus)

    controller = build_controller(bus)
    for name, ok in controller.services_status().items():
        if not ok:
            logger.warning(f"[SYSTEM] {name} is not configured")

    # ---------- SESSION LOOP ----------
    loop = asyncio.new_event_loop()
    loop_thread = threading.Thread(target=loop.run_forever, daemon=True, name="session-loop")
    loop_thread.start()

    api = create_api(controller, loop)
    threading.Thread(
        target=lambda: api.run(host=config.API_HOST, port=config.API_PORT, debug=False),
        daemon=True,
    ).start()
    logger.info(f"[SYSTEM] Control API on {config.API_HOST}:{config.API_PORT}")

    # ---------- Keep main alive ----------
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("[SHUTDOWN] Keyboard interrupt received.")
    finally:
        try:
            asyncio.run_coroutine_threadsafe(invoke(controller.reset), loop).result(timeout=3)
        except Exception as e:
            logger.warning(f"[SHUTDOWN] reset failed: {e!r}")
        loop.call_soon_threadsafe(loop.stop)
        loop_thread.join(timeout=2)
        if ui_process:
            logger.info("[UI] Shutting down dashboard")
            ui_process.terminate()
            try:
                ui_process.wait(timeout=2)
            except subprocess.TimeoutExpired:
                ui_process.kill()
        logger.info("[EXIT] ClearPath shut down cleanly.")

if __name__ == "__main__":
    main()

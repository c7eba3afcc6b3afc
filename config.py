# ClearPath/config.py
import os
from pathlib import Path

# Base project directory
THIS_DIR = Path(__file__).resolve().parent
MODELS_DIR = THIS_DIR / "models"
RESOURCES_DIR = THIS_DIR / "resources"
LOG_FILE = THIS_DIR / "navigation.log"

# =====================================================
# Session timing
# =====================================================
'''
All delays are in milliseconds. The vision interval keeps a high frequency
scene description stream from flooding the speaker; the settle and grace
delays keep vision from talking straight over the end of a spoken step.
'''
MIN_VISION_INTERVAL_MS   = 5000
NAV_SPEECH_SETTLE_MS     = 300
VISION_UNMUTE_GRACE_MS   = 500
COMPLETED_RESET_DELAY_MS = 2000

# Number of upcoming steps included in the vision prompt
VISION_CONTEXT_STEPS = 3

# =====================================================
# Route generation - Gemini (OpenAI compatible endpoint)
# =====================================================
GEMINI_API_KEY  = os.environ.get("GEMINI_API_KEY", "")
GEMINI_BASE_URL = os.environ.get(
    "GEMINI_BASE_URL",
    "https://generativelanguage.googleapis.com/v1beta/openai",
)
GEMINI_MODEL        = os.environ.get("GEMINI_MODEL", "gemini-2.0-flash")
GEMINI_VISION_MODEL = os.environ.get("GEMINI_VISION_MODEL", GEMINI_MODEL)
GEMINI_TIMEOUT_S    = 30

ROUTE_VERBOSITY  = "minimal"  # options: minimal, moderate, detailed
ROUTE_MAX_TOKENS = 800
ROUTE_TEMPERATURE = 0.2

# Floor plan images attached to route requests (optional)
FLOOR_PLANS_DIR = RESOURCES_DIR / "floor_plans"
FLOOR_PLAN_FILES = {
    "lower":  FLOOR_PLANS_DIR / "lower-level.png",
    "first":  FLOOR_PLANS_DIR / "first-floor.png",
    "second": FLOOR_PLANS_DIR / "second-floor.png",
    "third":  FLOOR_PLANS_DIR / "third-floor.png",
}
DEFAULT_FLOOR = "first"

# =====================================================
# Vision - camera + scene description
# =====================================================
CAM_INDEX          = int(os.environ.get("CAM_INDEX", "0"))
CAM_CAPTURE_WIDTH  = 1280
CAM_CAPTURE_HEIGHT = 720
CAM_JPEG_QUALITY   = 80

# Seconds between two described frames (low frequency stream)
VISION_FRAME_INTERVAL_S = 2.0
VISION_MAX_TOKENS       = 60
VISION_DEFAULT_PROMPT = (
    "Describe what you see for navigation. "
    "Identify obstacles, doors, signs, and paths."
)

# =====================================================
# TTS - ElevenLabs
# =====================================================
ELEVENLABS_API_KEY  = os.environ.get("ELEVENLABS_API_KEY", "")
ELEVENLABS_URL      = "https://api.elevenlabs.io/v1/text-to-speech"
ELEVENLABS_VOICE_ID = os.environ.get("ELEVENLABS_VOICE_ID", "21m00Tcm4TlvDq8ikWAM")  # Rachel
ELEVENLABS_MODEL    = "eleven_monolingual_v1"
ELEVENLABS_TIMEOUT_S = 15

TTS_SAMPLE_RATE = 16000
TTS_MAX_CHARS   = 300
TTS_TMP_OUTDIR  = THIS_DIR / "output"

# =====================================================
# ASR - Vosk
# =====================================================
VOSK_MODEL_PATH = MODELS_DIR / "vosk"
MIC_SAMPLE_RATE = 16000
MIC_CHANNELS    = 1
MIC_BLOCKSIZE   = 4000

# Destination recordings shorter than this are treated as "not understood"
MIN_RECORDING_MS = 400

# =====================================================
# UI / control API
# =====================================================
API_HOST = "127.0.0.1"
API_PORT = 7000
UI_HOST  = "127.0.0.1"
UI_PORT  = 5000

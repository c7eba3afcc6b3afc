# ClearPath/core/errors.py


class NavigationError(Exception):
    """Base class for failures surfaced by the navigation session."""
    kind = "navigation"


class CaptureFailure(NavigationError):
    """Microphone or transcription unavailable, or nothing understood."""
    kind = "capture"


class RouteFailure(NavigationError):
    """Route collaborator unreachable, or its answer held no steps."""
    kind = "route"


class SpeechFailure(NavigationError):
    """TTS failed. Absorbed by the speech layer, never shown to the user."""
    kind = "speech"


class VisionFailure(NavigationError):
    """Vision stream failed. Logged only."""
    kind = "vision"

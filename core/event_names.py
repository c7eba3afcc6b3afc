# ClearPath/core/event_names.py

# ---------------- Session -> UI notifications ----------------
STATE_CHANGED = "state_changed"       # payload: SessionState.to_dict()
STEP_CHANGED  = "STEP_CHANGED"        # payload: {"step", "index", "total"}
VISION_UPDATE = "VISION_UPDATE"       # payload: VisionEvent.to_dict()
SPEAKING      = "SPEAKING"            # payload: {"text", "source"}

ERROR         = "ERROR"               # payload: {"message", "kind"}

# ---------------- Speech sources ----------------
SOURCE_NAVIGATION = "navigation"
SOURCE_VISION     = "vision"

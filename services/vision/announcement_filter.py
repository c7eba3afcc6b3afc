# ClearPath/services/vision/announcement_filter.py
from dataclasses import dataclass
from typing import Any, Dict, Optional

import config

ACTIONABLE_KEYWORDS = (
    "obstacle", "person", "stairs", "step", "door", "turn",
    "caution", "warning", "ahead", "left", "right", "room",
    "elevator", "exit", "sign",
)


@dataclass(frozen=True)
class VisionEvent:
    success: bool
    text: Optional[str]
    timestamp_ms: int
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "text": self.text,
            "timestamp_ms": self.timestamp_ms,
            "error": self.error,
        }


class VisionAnnouncementFilter:
    """
    Decides whether a scene description is worth interrupting the user for.
    Plain scene narration without an obstacle/orientation/landmark word is
    dropped on purpose.
    """

    def __init__(self, min_interval_ms: int = config.MIN_VISION_INTERVAL_MS,
                 keywords=ACTIONABLE_KEYWORDS):
        self.min_interval_ms = min_interval_ms
        self.keywords = tuple(k.lower() for k in keywords)

    def is_actionable(self, text: Optional[str]) -> bool:
        # substring match: "downstairs" and "doorway" count
        if not text:
            return False
        lowered = text.lower()
        return any(k in lowered for k in self.keywords)

    def should_announce(self, event: VisionEvent, now_ms: int,
                        last_announced_ms: Optional[int], is_suppressed: bool) -> bool:
        if is_suppressed:
            return False
        if not event.success or not (event.text or "").strip():
            return False
        if last_announced_ms is not None and now_ms - last_announced_ms < self.min_interval_ms:
            return False
        return self.is_actionable(event.text)

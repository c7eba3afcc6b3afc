# ClearPath/core/states.py

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, Optional, Tuple

from navigation.steps import NavigationStep


class SessionStatus(Enum):
    IDLE = auto()
    LISTENING = auto()
    VERIFYING = auto()
    REQUESTING_ROUTE = auto()
    NAVIGATING = auto()
    COMPLETED = auto()
    ERROR = auto()


@dataclass(frozen=True)
class SessionState:
    """
    Snapshot of a navigation session. Only the fields belonging to the
    current status are meaningful:
      VERIFYING        -> transcript
      REQUESTING_ROUTE -> query
      NAVIGATING       -> steps, cursor_index, floor_label, vision_muted
      ERROR            -> message
    """
    status: SessionStatus = SessionStatus.IDLE
    transcript: Optional[str] = None
    query: Optional[str] = None
    steps: Tuple[NavigationStep, ...] = field(default_factory=tuple)
    cursor_index: int = 0
    floor_label: Optional[str] = None
    vision_muted: bool = False
    message: Optional[str] = None

    # ---------- constructors ----------
    @classmethod
    def idle(cls) -> "SessionState":
        return cls(SessionStatus.IDLE)

    @classmethod
    def listening(cls) -> "SessionState":
        return cls(SessionStatus.LISTENING)

    @classmethod
    def verifying(cls, transcript: str) -> "SessionState":
        return cls(SessionStatus.VERIFYING, transcript=transcript)

    @classmethod
    def requesting_route(cls, query: str) -> "SessionState":
        return cls(SessionStatus.REQUESTING_ROUTE, query=query)

    @classmethod
    def navigating(cls, steps, cursor_index=0, floor_label=None, vision_muted=True) -> "SessionState":
        return cls(
            SessionStatus.NAVIGATING,
            steps=tuple(steps),
            cursor_index=cursor_index,
            floor_label=floor_label,
            vision_muted=vision_muted,
        )

    @classmethod
    def completed(cls) -> "SessionState":
        return cls(SessionStatus.COMPLETED)

    @classmethod
    def error(cls, message: str) -> "SessionState":
        return cls(SessionStatus.ERROR, message=message)

    # ---------- helpers ----------
    @property
    def is_navigating(self) -> bool:
        return self.status is SessionStatus.NAVIGATING

    def to_dict(self) -> Dict[str, Any]:
        """JSON friendly payload for the UI."""
        return {
            "state": self.status.name,
            "transcript": self.transcript,
            "query": self.query,
            "steps": [s.instruction_text for s in self.steps],
            "cursor_index": self.cursor_index,
            "total_steps": len(self.steps),
            "floor": self.floor_label,
            "vision_muted": self.vision_muted,
            "message": self.message,
        }

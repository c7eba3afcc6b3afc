# ClearPath/navigation/steps.py
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from loguru import logger

# ---------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------

# "STEP 3: Turn left at the door" (case-insensitive, anywhere in a line)
_step_marker_re = re.compile(r"STEP\s*(\d+)\s*:\s*([^\n]+)", re.IGNORECASE)

# "3. Turn left at the door" at the start of a line
_numbered_re = re.compile(r"^[ \t]*(\d+)\.[ \t]*([^\n]+)", re.MULTILINE)

# "walk 20 steps", "1 step"
_distance_re = re.compile(r"\b(\d+)\s*steps?\b", re.IGNORECASE)

LANDMARK_KEYWORDS = (
    "elevator", "stairs", "stairwell", "door", "entrance", "exit",
    "bathroom", "restroom", "washroom", "lobby", "reception",
    "fitness", "gym", "cafeteria", "auditorium", "conference",
)


@dataclass(frozen=True)
class NavigationStep:
    index: int
    instruction_text: str
    is_landmark_reference: bool = False
    distance_in_pace_units: Optional[int] = None


@dataclass(frozen=True)
class ParsedRoute:
    steps: Tuple[NavigationStep, ...] = field(default_factory=tuple)
    raw_source_text: str = ""

    def __len__(self) -> int:
        return len(self.steps)

    @property
    def is_empty(self) -> bool:
        return not self.steps

    def format_for_display(self) -> str:
        if not self.steps:
            return "No steps available."
        return "\n".join(f"{s.index + 1}. {s.instruction_text}" for s in self.steps)


def _is_landmark(text: str) -> bool:
    lower = text.lower()
    return any(keyword in lower for keyword in LANDMARK_KEYWORDS)


def _distance_in_steps(text: str) -> Optional[int]:
    m = _distance_re.search(text)
    return int(m.group(1)) if m else None


def _extract(pattern: re.Pattern, text: str) -> List[Tuple[int, str]]:
    found = []
    for m in pattern.finditer(text):
        instruction = m.group(2).strip()
        if instruction:
            found.append((int(m.group(1)), instruction))
    return found


def parse_route(route_text: str) -> ParsedRoute:
    """
    Turn free-form route text into an ordered list of steps.

    Tries, in order, "STEP n:" markers, "n." numbered lines, then one step per
    non-blank line. Extracted steps are stably sorted by their number and
    re-indexed from 0, so the original numbering never survives.
    Never raises: unusable input gives an empty route.
    """
    if not route_text or not isinstance(route_text, str):
        logger.warning("[NAV] Empty or invalid route text")
        return ParsedRoute(steps=(), raw_source_text="")

    numbered = _extract(_step_marker_re, route_text)
    if not numbered:
        numbered = _extract(_numbered_re, route_text)
    if not numbered:
        lines = [ln.strip() for ln in route_text.splitlines() if ln.strip()]
        numbered = [(i + 1, ln) for i, ln in enumerate(lines)]

    numbered.sort(key=lambda item: item[0])

    steps = tuple(
        NavigationStep(
            index=idx,
            instruction_text=instruction,
            is_landmark_reference=_is_landmark(instruction),
            distance_in_pace_units=_distance_in_steps(instruction),
        )
        for idx, (_, instruction) in enumerate(numbered)
    )

    logger.info(f"[NAV] Parsed {len(steps)} steps")
    return ParsedRoute(steps=steps, raw_source_text=route_text)

# ClearPath/navigation/cursor.py
from dataclasses import dataclass
from typing import Optional

from navigation.steps import NavigationStep, ParsedRoute


@dataclass(frozen=True)
class Progress:
    current: int   # 1-based, 0 for an empty route
    total: int
    percent: int


class StepCursor:
    """
    Position inside a parsed route. Out-of-range moves are no-ops that
    return None; nothing here raises.
    """

    def __init__(self, route: ParsedRoute):
        self.route = route
        self.current_index = 0

    @property
    def steps(self):
        return self.route.steps

    def __len__(self) -> int:
        return len(self.route.steps)

    # ---------- queries ----------
    def current(self) -> Optional[NavigationStep]:
        if not self.route.steps:
            return None
        return self.route.steps[self.current_index]

    def has_next(self) -> bool:
        return self.current_index < len(self) - 1

    def has_previous(self) -> bool:
        return self.current_index > 0

    def is_at_first(self) -> bool:
        return len(self) > 0 and self.current_index == 0

    def is_at_last(self) -> bool:
        return len(self) > 0 and self.current_index == len(self) - 1

    def progress(self) -> Progress:
        total = len(self)
        if total == 0:
            return Progress(current=0, total=0, percent=0)
        current = self.current_index + 1
        return Progress(current=current, total=total, percent=round(current / total * 100))

    # ---------- moves ----------
    def advance(self) -> Optional[NavigationStep]:
        if not self.has_next():
            return None
        self.current_index += 1
        return self.current()

    def retreat(self) -> Optional[NavigationStep]:
        if not self.has_previous():
            return None
        self.current_index -= 1
        return self.current()

    def jump_to(self, index: int) -> Optional[NavigationStep]:
        if 0 <= index < len(self):
            self.current_index = index
            return self.current()
        return None

    # ---------- speech ----------
    def current_for_speech(self) -> str:
        step = self.current()
        if step is None:
            return "No navigation steps available."
        return f"Step {step.index + 1} of {len(self)}. {step.instruction_text}"

    def steps_for_speech(self, count: int = 2) -> str:
        """Current step plus the following count-1 steps as one utterance."""
        upcoming = self.route.steps[self.current_index:self.current_index + count]
        return ". ".join(f"Step {s.index + 1}: {s.instruction_text}" for s in upcoming)

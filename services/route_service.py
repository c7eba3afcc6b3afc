# ClearPath/services/route_service.py
import asyncio
from dataclasses import dataclass
from pathlib import Path

import requests
from loguru import logger

import config
from core.errors import RouteFailure
from navigation.prompts import VERBOSITY_LEVELS, build_route_prompt

FLOOR_KEYWORDS = (
    ("lower",  ("lower", "basement")),
    ("first",  ("first", "1st", "floor one", "floor 1")),
    ("second", ("second", "2nd", "floor two", "floor 2")),
    ("third",  ("third", "3rd", "floor three", "floor 3")),
)


@dataclass(frozen=True)
class RouteResult:
    response_text: str
    floor_label: str


def detect_floor(query: str, default: str = config.DEFAULT_FLOOR) -> str:
    """First floor mentioned in the query, or the default floor."""
    lower = (query or "").lower()
    for floor, keywords in FLOOR_KEYWORDS:
        if any(k in lower for k in keywords):
            return floor
    return default


class RouteService:
    """
    Stateless route worker:
    - picks the floor from the query
    - builds the prompt (with the floor plan image when present)
    - runs the LLM off the event loop
    - raises RouteFailure for anything that is not usable route text
    """

    def __init__(self, llm, verbosity: str = config.ROUTE_VERBOSITY,
                 floor_plans: dict = None):
        self.llm = llm
        self.floor_plans = floor_plans if floor_plans is not None else config.FLOOR_PLAN_FILES
        self.verbosity = None
        self.set_verbosity(verbosity)

    def set_verbosity(self, verbosity: str):
        level = (verbosity or "").lower()
        if level not in VERBOSITY_LEVELS:
            raise ValueError(f"Verbosity must be one of: {', '.join(VERBOSITY_LEVELS)}")
        self.verbosity = level

    def is_configured(self) -> bool:
        return self.llm.is_configured()

    def _floor_plan(self, floor: str):
        path = self.floor_plans.get(floor)
        if path is None or not Path(path).exists():
            return None
        return Path(path).read_bytes()

    async def request_route(self, query: str) -> RouteResult:
        query = (query or "").strip()
        if not query:
            raise RouteFailure("Empty destination query")

        floor = detect_floor(query)
        prompt = build_route_prompt(query, floor, self.verbosity)
        image = self._floor_plan(floor)
        logger.info(f"[ROUTE] floor={floor} verbosity={self.verbosity} plan_image={image is not None}")

        try:
            text = await asyncio.to_thread(self.llm.complete, prompt, image)
        except requests.RequestException as e:
            raise RouteFailure(f"Navigation service unreachable: {e}") from e
        except (RuntimeError, ValueError) as e:
            raise RouteFailure(str(e)) from e

        if not text or not text.strip():
            raise RouteFailure("No response from navigation service")
        return RouteResult(response_text=text, floor_label=floor)

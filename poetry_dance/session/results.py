"""
Session result types and the star rating.
"""

import math
from dataclasses import dataclass

from poetry_dance.ai.action_classifier import FOLLOW


@dataclass
class ScoringState:
    """Post-warmup tick counters. matched <= total always."""
    total: int = 0
    matched: int = 0

    def record(self, matched: bool):
        self.total += 1
        if matched:
            self.matched += 1

    def reset(self):
        self.total = 0
        self.matched = 0


@dataclass(frozen=True)
class SessionResult:
    stars: int
    score: float
    matched: int
    total: int

    def to_dict(self) -> dict:
        return {"stars": self.stars, "score": self.score,
                "matched": self.matched, "total": self.total}


@dataclass(frozen=True)
class TickResult:
    """Live readout of one engine tick."""
    t: float
    raw_score: float
    sync_rate: float
    matched: bool
    web_action: str
    ref_action: str
    group: str


IDLE_READOUT = {"web": FOLLOW.name, "ref": FOLLOW.name, "group": FOLLOW.group}


def star_rating(matched: int, total: int) -> int:
    """
    stars = clamp(base + round(score · 7), 0, 10), base = 3 once anything
    was scored. Halves round up.
    """
    if total <= 0:
        return 0
    score = matched / total
    stars = 3 + int(math.floor(score * 7 + 0.5))
    return max(0, min(10, stars))


def build_result(state: ScoringState) -> SessionResult:
    total = state.total
    matched = min(state.matched, total)
    score = matched / total if total > 0 else 0.0
    return SessionResult(stars=star_rating(matched, total), score=score,
                         matched=matched, total=total)

"""
SyncScorer - Scoring Module
Per-tick similarity between the learner and the reference routine.

Webcam and reference decode independently, so instead of frame-for-frame
alignment the learner's current signature is compared against every
(strided) reference entry of the last 900ms and the best candidate wins:

    z          = (energy − μ_ema) / sqrt(σ²_ema + 1)          per source
    active     = z_web > 0.45 ∧ z_ref > 0.45 ∧ E_web > 1.7 ∧ E_cand > 1.4
    candidate  = active · (0.44·energyClose + 0.22·lrClose
                           + 0.22·tbClose + 0.12·centerClose)
    raw        = clamp(max(candidate) · groupMultiplier, 0, 1)
    sync_rate ← 0.85·sync_rate + 0.15·raw
    matched    = raw ≥ 0.52
"""

import math
from dataclasses import dataclass
from typing import Sequence

from poetry_dance.ai.action_classifier import ActionLabel
from poetry_dance.features.motion_history import HistoryEntry, Summary
from poetry_dance.features.motion_signature import MotionSignature
from poetry_dance.utils.logger import setup_logger

logger = setup_logger(__name__)

# Hand-tuned: groups a learner may substitute for each other without losing
# the compatibility bonus.
COMPATIBLE_GROUPS = (
    frozenset({"lr_sway", "wave", "wave_alt"}),
    frozenset({"tb_sway", "raise_drop"}),
    frozenset({"steps", "jump"}),
)

SAME_GROUP_MULTIPLIER = 1.18
COMPATIBLE_MULTIPLIER = 1.10
MISMATCH_MULTIPLIER = 0.95


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def group_relation(web_group: str, ref_group: str) -> str:
    """'same', 'compatible' or 'other'."""
    if web_group == ref_group:
        return "same"
    for family in COMPATIBLE_GROUPS:
        if web_group in family and ref_group in family:
            return "compatible"
    return "other"


def group_multiplier(web_group: str, ref_group: str) -> float:
    relation = group_relation(web_group, ref_group)
    if relation == "same":
        return SAME_GROUP_MULTIPLIER
    if relation == "compatible":
        return COMPATIBLE_MULTIPLIER
    return MISMATCH_MULTIPLIER


def display_group(web: ActionLabel, ref: ActionLabel) -> str:
    """Group shown next to the two action names in the live readout."""
    relation = group_relation(web.group, ref.group)
    if relation == "same":
        return web.group
    if relation == "compatible":
        return "compatible"
    return "generic"


class EnergyBaseline:
    """
    Exponential moving mean/variance of one source's energy.

        δ  = x − μ
        μ ← μ + α·δ
        σ² ← (1 − α)·σ² + α·δ²
    """

    def __init__(self, alpha: float = 0.08):
        self.alpha = alpha
        self.mean = 0.0
        self.var = 0.0

    def zscore(self, x: float) -> float:
        return (x - self.mean) / math.sqrt(self.var + 1.0)

    def update(self, x: float):
        delta = x - self.mean
        self.mean += self.alpha * delta
        self.var = (1.0 - self.alpha) * self.var + self.alpha * delta * delta


@dataclass(frozen=True)
class SyncScore:
    raw: float
    sync_rate: float
    matched: bool
    multiplier: float


class SyncScorer:
    """
    Stateful scorer for one play session: owns both energy baselines and the
    smoothed sync rate.
    """

    def __init__(self, config: dict):
        alpha = config.get("ema_alpha", 0.08)
        self.window_ms = config.get("search_window_ms", 900)
        self.max_candidates = max(1, int(config.get("max_candidates", 28)))
        self.z_gate = config.get("z_gate", 0.45)
        self.web_energy_gate = config.get("web_energy_gate", 1.7)
        self.ref_energy_gate = config.get("ref_energy_gate", 1.4)
        self.smoothing = config.get("sync_smoothing", 0.85)
        self.match_threshold = config.get("match_threshold", 0.52)

        self.web_baseline = EnergyBaseline(alpha)
        self.ref_baseline = EnergyBaseline(alpha)
        self.sync_rate = 0.0

    def score(
        self,
        web: MotionSignature,
        ref: MotionSignature,
        ref_history: Sequence[HistoryEntry],
        web_summary: Summary,
        ref_summary: Summary,
        web_label: ActionLabel,
        ref_label: ActionLabel,
        now: float,
    ) -> SyncScore:
        """
        Score one tick. `ref_history` must already contain this tick's
        reference entry, oldest first.
        """
        # z against the baseline *before* it absorbs the current tick
        web_z = self.web_baseline.zscore(web.energy)
        ref_z = self.ref_baseline.zscore(ref.energy)
        self.web_baseline.update(web.energy)
        self.ref_baseline.update(ref.energy)

        best = self._best_candidate(web, web_z, ref_z, ref_history, web_summary, ref_summary, now)

        multiplier = group_multiplier(web_label.group, ref_label.group)
        raw = clamp(best * multiplier, 0.0, 1.0)
        self.sync_rate = self.smoothing * self.sync_rate + (1.0 - self.smoothing) * raw
        matched = raw >= self.match_threshold

        return SyncScore(raw=raw, sync_rate=self.sync_rate, matched=matched, multiplier=multiplier)

    def _best_candidate(self, web, web_z, ref_z, ref_history, web_summary, ref_summary, now) -> float:
        if not ref_history:
            return 0.0
        if not (web_z > self.z_gate and ref_z > self.z_gate and web.energy > self.web_energy_gate):
            return 0.0

        web_en = (web.energy - web_summary.energy_mean) / (web_summary.energy_std + 1.0)
        window_from = now - self.window_ms
        step = max(1, len(ref_history) // self.max_candidates)

        best = 0.0
        for i in range(len(ref_history) - 1, -1, -step):
            cand = ref_history[i]
            if cand.t < window_from:
                break
            if cand.energy <= self.ref_energy_gate:
                continue
            ref_en = (cand.energy - ref_summary.energy_mean) / (ref_summary.energy_std + 1.0)
            energy_close = 1.0 - clamp(abs(web_en - ref_en) / 2.8, 0.0, 1.0)
            lr_close = 1.0 - clamp(abs(abs(web.lr) - abs(cand.lr)) / 0.8, 0.0, 1.0)
            tb_close = 1.0 - clamp(abs(abs(web.tb) - abs(cand.tb)) / 0.8, 0.0, 1.0)
            center_close = 1.0 - clamp(abs(web.center_share - cand.center) / 0.55, 0.0, 1.0)
            candidate = 0.44 * energy_close + 0.22 * lr_close + 0.22 * tb_close + 0.12 * center_close
            if candidate > best:
                best = candidate
        return best

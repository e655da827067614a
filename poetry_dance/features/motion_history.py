"""
MotionHistory - Feature Engineering Module
Rolling, time-bounded window of motion signatures for one source, reduced
on demand to the summary statistics the action classifier reads.
"""

import math
from collections import deque
from dataclasses import dataclass

from poetry_dance.features.motion_signature import MotionSignature
from poetry_dance.utils.logger import setup_logger

logger = setup_logger(__name__)


@dataclass(frozen=True)
class HistoryEntry:
    t: float
    energy: float
    lr: float
    tb: float
    center: float


@dataclass(frozen=True)
class Summary:
    energy_mean: float = 0.0
    energy_std: float = 0.0
    lr_mean: float = 0.0
    lr_abs_mean: float = 0.0
    tb_mean: float = 0.0
    tb_abs_mean: float = 0.0
    center_mean: float = 0.0
    lr_switch_count: int = 0
    tb_switch_count: int = 0
    peak_count: int = 0


EMPTY_SUMMARY = Summary()


def thresholded_sign(value: float, threshold: float) -> int:
    if abs(value) < threshold:
        return 0
    return 1 if value > 0 else -1


def count_switches(values, threshold: float = 0.03) -> int:
    """
    Count sign reversals, ignoring near-zero values.

    Values with |v| < threshold are neutral: they neither count as a
    reversal nor replace the last non-zero sign.
    """
    switches = 0
    prev_sign = 0
    for value in values:
        sign = thresholded_sign(value, threshold)
        if sign == 0:
            continue
        if prev_sign != 0 and sign != prev_sign:
            switches += 1
        prev_sign = sign
    return switches


class MotionHistory:
    """
    Time-bounded FIFO of HistoryEntry.

    Entries with t < latest_t − retention_ms are evicted on every append, so
    the window never reaches further back than the retention horizon.
    """

    def __init__(self, config: dict):
        self.retention_ms = config.get("history_ms", 1800)
        self.switch_threshold = config.get("switch_threshold", 0.03)
        self.peak_k = config.get("peak_k", 1.2)
        self._entries: deque = deque()

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self):
        return tuple(self._entries)

    def append(self, t: float, signature: MotionSignature) -> HistoryEntry:
        entry = HistoryEntry(
            t=t,
            energy=signature.energy,
            lr=signature.lr,
            tb=signature.tb,
            center=signature.center_share,
        )
        self._entries.append(entry)
        self._evict(t)
        return entry

    def _evict(self, latest_t: float):
        keep_from = latest_t - self.retention_ms
        while self._entries and self._entries[0].t < keep_from:
            self._entries.popleft()

    def summarize(self) -> Summary:
        """Reduce the current window; empty window → EMPTY_SUMMARY."""
        n = len(self._entries)
        if n == 0:
            return EMPTY_SUMMARY

        e_sum = e2_sum = 0.0
        lr_sum = lr_abs = tb_sum = tb_abs = c_sum = 0.0
        for it in self._entries:
            e_sum += it.energy
            e2_sum += it.energy * it.energy
            lr_sum += it.lr
            lr_abs += abs(it.lr)
            tb_sum += it.tb
            tb_abs += abs(it.tb)
            c_sum += it.center

        mean = e_sum / n
        std = math.sqrt(max(0.0, e2_sum / n - mean * mean))
        peak_threshold = mean + self.peak_k * std
        peaks = sum(1 for it in self._entries if it.energy > peak_threshold)

        return Summary(
            energy_mean=mean,
            energy_std=std,
            lr_mean=lr_sum / n,
            lr_abs_mean=lr_abs / n,
            tb_mean=tb_sum / n,
            tb_abs_mean=tb_abs / n,
            center_mean=c_sum / n,
            lr_switch_count=count_switches((it.lr for it in self._entries), self.switch_threshold),
            tb_switch_count=count_switches((it.tb for it in self._entries), self.switch_threshold),
            peak_count=peaks,
        )

"""
MotionSignatureExtractor - Feature Engineering Module
Reduces two consecutive raster frames of one source to a 4-number motion
descriptor.

    d(x, y)     = |F_t(x, y) − F_{t-1}(x, y)|        (every 2nd pixel)
    energy      = Σd / samples
    lr          = (Σd_right − Σd_left) / max(1, Σd_right + Σd_left)
    tb          = (Σd_bottom − Σd_top) / max(1, Σd_bottom + Σd_top)
    centerShare = Σd_center / max(1, Σd)
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
from poetry_dance.utils.logger import setup_logger

logger = setup_logger(__name__)

STRIDE = 2
CENTER_LO = 0.33
CENTER_HI = 0.67


@dataclass(frozen=True)
class MotionSignature:
    energy: float = 0.0
    lr: float = 0.0
    tb: float = 0.0
    center_share: float = 0.0


ZERO_SIGNATURE = MotionSignature()


class MotionSignatureExtractor:
    """
    Frame-differencing motion descriptor for a single source.

    Holds a private copy of the previous raster. The first frame only seeds
    that copy and yields ZERO_SIGNATURE; a missing frame (source not ready)
    yields ZERO_SIGNATURE and keeps the previous raster as it was.
    """

    def __init__(self, name: str = "source"):
        self.name = name
        self._prev: Optional[np.ndarray] = None
        self._masks = None
        self._masks_shape = None

    @property
    def has_previous(self) -> bool:
        return self._prev is not None

    def extract(self, buffer: Optional[np.ndarray]) -> MotionSignature:
        """
        Compute the signature of `buffer` against the previous raster.

        Args:
            buffer: (H, W) uint8 luminance raster, or None

        Returns:
            MotionSignature with energy >= 0, lr/tb in [-1, 1],
            center_share in [0, 1]
        """
        if buffer is None:
            return ZERO_SIGNATURE

        prev = self._prev
        self._prev = buffer.copy()
        if prev is None or prev.shape != buffer.shape:
            return ZERO_SIGNATURE

        left_cols, top_rows, center_rows, center_cols = self._grid_masks(buffer.shape)

        cur = buffer[::STRIDE, ::STRIDE].astype(np.int16)
        old = prev[::STRIDE, ::STRIDE].astype(np.int16)
        d = np.abs(cur - old).astype(np.float64)

        total = float(d.sum())
        left = float(d[:, left_cols].sum())
        right = total - left
        top = float(d[top_rows, :].sum())
        bottom = total - top
        center = float(d[np.ix_(center_rows, center_cols)].sum())

        samples = d.size or 1
        signature = MotionSignature(
            energy=total / samples,
            lr=(right - left) / max(1.0, right + left),
            tb=(bottom - top) / max(1.0, bottom + top),
            center_share=center / max(1.0, total),
        )
        logger.debug(
            f"[{self.name}] energy={signature.energy:.2f} lr={signature.lr:+.3f} "
            f"tb={signature.tb:+.3f} center={signature.center_share:.3f}"
        )
        return signature

    def _grid_masks(self, shape):
        """Split masks over the strided sample grid, cached per raster shape."""
        if self._masks_shape != shape:
            h, w = shape
            xs = np.arange(0, w, STRIDE)
            ys = np.arange(0, h, STRIDE)
            self._masks = (
                xs < w / 2,
                ys < h / 2,
                (ys >= h * CENTER_LO) & (ys <= h * CENTER_HI),
                (xs >= w * CENTER_LO) & (xs <= w * CENTER_HI),
            )
            self._masks_shape = shape
        return self._masks

"""
FrameSampler - Vision Module
Draws a cropped (optionally mirrored) region of a live frame into a small
square greyscale raster used for frame differencing.
"""

import cv2
import numpy as np
from typing import Optional
from poetry_dance.utils.logger import setup_logger

logger = setup_logger(__name__)

DEFAULT_CROP = {"x": 0.12, "y": 0.1, "w": 0.76, "h": 0.8}


def validate_crop(crop: dict) -> dict:
    """Check a normalised crop rectangle {x, y, w, h} against [0, 1]."""
    rect = {}
    for key in ("x", "y", "w", "h"):
        value = float(crop.get(key, DEFAULT_CROP[key]))
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"Crop '{key}'={value} outside [0, 1]")
        rect[key] = value
    if rect["w"] <= 0.0 or rect["h"] <= 0.0:
        raise ValueError(f"Crop has empty area: {rect}")
    return rect


class FrameSampler:
    """
    Crop → resize → (mirror) → luminance.

    The crop is relative to the native resolution of each incoming frame, so
    the same sampler works for 640x480 webcams and 1080p reference videos.
    The destination buffer is scratch space reused across ticks; callers that
    keep a frame for later comparison must copy it.
    """

    def __init__(self, size: int = 64, crop: Optional[dict] = None, mirror: bool = False):
        if size < 2:
            raise ValueError(f"Raster size must be >= 2, got {size}")
        self.size = int(size)
        self.crop = validate_crop(crop or DEFAULT_CROP)
        self.mirror = bool(mirror)
        self._buffer = np.zeros((self.size, self.size), dtype=np.uint8)

        logger.debug(
            f"FrameSampler: {self.size}x{self.size} crop={self.crop} mirror={self.mirror}"
        )

    def sample(self, frame: Optional[np.ndarray]) -> Optional[np.ndarray]:
        """
        Sample a frame into the raster buffer.

        Args:
            frame: RGB (H, W, 3) or greyscale (H, W) frame, or None

        Returns:
            The (size, size) uint8 buffer, or None when the source has no
            decoded frame yet (buffer left untouched).
        """
        if frame is None or frame.ndim < 2:
            return None

        src_h, src_w = frame.shape[:2]
        if src_w == 0 or src_h == 0:
            return None

        sx = max(0, int(src_w * self.crop["x"]))
        sy = max(0, int(src_h * self.crop["y"]))
        sw = max(1, int(src_w * self.crop["w"]))
        sh = max(1, int(src_h * self.crop["h"]))
        region = frame[sy:sy + sh, sx:sx + sw]
        if region.size == 0:
            return None

        if region.ndim == 3:
            if region.shape[2] == 4:
                region = cv2.cvtColor(region, cv2.COLOR_RGBA2GRAY)
            elif region.shape[2] == 3:
                region = cv2.cvtColor(region, cv2.COLOR_RGB2GRAY)
            else:
                region = region[:, :, 0]

        region = np.ascontiguousarray(region, dtype=np.uint8)
        resized = cv2.resize(region, (self.size, self.size), interpolation=cv2.INTER_LINEAR)
        if self.mirror:
            resized = cv2.flip(resized, 1)
        self._buffer[:] = resized
        return self._buffer

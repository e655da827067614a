"""
CameraCapture - Vision Module
Learner webcam via OpenCV. Owns the device handle for one play session.
"""

import cv2
import numpy as np
from typing import Optional
from poetry_dance.utils.logger import setup_logger

logger = setup_logger(__name__)


class CameraCapture:
    """
    Real-time frame capture from a USB/built-in camera.

    open() raises RuntimeError when the device is unavailable (permission
    denied, no device); the session controller treats that as non-fatal.
    release() is idempotent.
    """

    def __init__(self, config: dict):
        self.config = config
        self.cap = None
        self.width = config.get("width", 1280)
        self.height = config.get("height", 720)
        self.fps = config.get("fps", 30)
        self.device_id = config.get("device_id", 0)
        self._has_frame = False

    def open(self):
        """Open the camera device."""
        if self.cap is not None and self.cap.isOpened():
            return

        logger.info(f"Opening camera (device {self.device_id})...")
        self.cap = cv2.VideoCapture(self.device_id)
        if not self.cap.isOpened():
            self.cap.release()
            self.cap = None
            raise RuntimeError(f"Cannot open camera device {self.device_id}")

        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self.cap.set(cv2.CAP_PROP_FPS, self.fps)
        # Keep only the newest frame; stale frames would lag the learner
        self.cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)

        actual_w = int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        actual_h = int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        actual_fps = self.cap.get(cv2.CAP_PROP_FPS)
        logger.info(f"✅ Camera opened: {actual_w}x{actual_h} @ {actual_fps:.1f} FPS")

    def is_ready(self) -> bool:
        return self.cap is not None and self.cap.isOpened()

    def read_frame(self) -> Optional[np.ndarray]:
        """Read a single RGB frame, or None if nothing is decoded yet."""
        if not self.is_ready():
            return None

        ret, frame = self.cap.read()
        if not ret or frame is None:
            if self._has_frame:
                logger.warning("Failed to read frame from camera.")
            return None

        self._has_frame = True
        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

    def release(self):
        if self.cap is not None:
            self.cap.release()
            self.cap = None
            self._has_frame = False
            logger.info("Camera released.")

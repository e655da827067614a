"""
ReferenceVideo - Vision Module
Plays the reference dance routine from a file/URL in wall-clock time.
"""

import time

import cv2
import numpy as np
from typing import Optional
from poetry_dance.utils.logger import setup_logger

logger = setup_logger(__name__)


class ReferenceVideo:
    """
    Seekable, playable reference source.

    OpenCV decodes as fast as it is asked to, so read_frame() works out which
    frame *should* be on screen from the time elapsed since play() and grabs
    (without decoding) every frame in between. When the stream runs out the
    `ended` flag is raised and stays raised until seek_start().
    """

    def __init__(self, video_url: str, clock=time.monotonic):
        self.video_url = video_url
        self.cap = None
        self.fps = 25.0
        self.ended = False
        self._clock = clock
        self._position = -1          # index of the last grabbed frame
        self._offset_s = 0.0         # playback time accumulated before pause()
        self._started_at: Optional[float] = None
        self._frame: Optional[np.ndarray] = None

    def open(self):
        if self.cap is not None:
            return
        self.cap = cv2.VideoCapture(self.video_url)
        if not self.cap.isOpened():
            self.cap.release()
            self.cap = None
            raise RuntimeError(f"Cannot open reference video: {self.video_url}")

        fps = self.cap.get(cv2.CAP_PROP_FPS)
        if fps and fps > 0:
            self.fps = float(fps)
        frames = int(self.cap.get(cv2.CAP_PROP_FRAME_COUNT))
        logger.info(f"✅ Reference video opened: {self.video_url} ({frames} frames @ {self.fps:.1f} FPS)")

    def is_ready(self) -> bool:
        return self.cap is not None and self.cap.isOpened()

    @property
    def playing(self) -> bool:
        return self._started_at is not None

    def seek_start(self):
        """Rewind to the first frame and pause."""
        if self.cap is not None:
            self.cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
        self._position = -1
        self._offset_s = 0.0
        self._started_at = None
        self._frame = None
        self.ended = False

    def play(self):
        if self._started_at is None and not self.ended:
            self._started_at = self._clock()

    def pause(self):
        if self._started_at is not None:
            self._offset_s += self._clock() - self._started_at
            self._started_at = None

    def playback_seconds(self) -> float:
        if self._started_at is None:
            return self._offset_s
        return self._offset_s + (self._clock() - self._started_at)

    def read_frame(self) -> Optional[np.ndarray]:
        """Return the RGB frame for the current playback position."""
        if not self.is_ready() or self.ended:
            return self._frame

        target = int(self.playback_seconds() * self.fps)
        decoded = None
        while self._position < target:
            if not self.cap.grab():
                self.ended = True
                self.pause()
                logger.info("Reference video reached its end.")
                return self._frame
            self._position += 1
            if self._position == target:
                ok, decoded = self.cap.retrieve()
                if not ok:
                    decoded = None

        if decoded is not None:
            self._frame = cv2.cvtColor(decoded, cv2.COLOR_BGR2RGB)
        return self._frame

    def release(self):
        if self.cap is not None:
            self.cap.release()
            self.cap = None
            logger.info("Reference video released.")

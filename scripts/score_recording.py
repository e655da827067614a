#!/usr/bin/env python3
"""
Offline Scoring Tool - Poetry Dance
Scores a recorded learner clip against a reference routine without a
camera or display, driving the session with synthetic timestamps.

Usage:
    python -m scripts.score_recording --reference ref.mp4 --recording me.mp4
"""

import argparse
import json

from poetry_dance.courses.catalog import DanceCourse
from poetry_dance.session.controller import FINISHED, RUNNING, SessionController
from poetry_dance.utils.config import DEFAULT_CONFIG_PATH, load_config
from poetry_dance.utils.logger import set_debug, setup_logger
from poetry_dance.vision.reference_video import ReferenceVideo

logger = setup_logger(__name__)

MAX_SECONDS = 15 * 60


class SyntheticClock:
    """Seconds clock advanced by hand, shared by both clips."""

    def __init__(self):
        self.seconds = 0.0

    def __call__(self) -> float:
        return self.seconds


def score_recording(config: dict, reference_path: str, recording_path: str):
    clock = SyntheticClock()
    reference = ReferenceVideo(reference_path, clock=clock)
    recording = ReferenceVideo(recording_path, clock=clock)
    reference.open()
    recording.open()

    tick_ms = config["session"].get("tick_interval_ms", 120)
    controller = SessionController(config, recording)
    course = DanceCourse(id="offline", title=reference_path, author="", video_url=reference_path)
    controller.start(course, reference, 0.0)

    now = 0.0
    while controller.state != FINISHED and now < MAX_SECONDS * 1000:
        tick = controller.update(now)
        if controller.state == RUNNING and not recording.playing:
            recording.play()
        if tick is not None and tick.matched:
            logger.debug(f"t={now:.0f}ms matched raw={tick.raw_score:.2f}")
        if recording.ended:
            controller.stop()
        now += tick_ms
        clock.seconds = now / 1000.0

    controller.stop()
    reference.release()
    recording.release()
    return controller.result


def main():
    parser = argparse.ArgumentParser(description="Poetry Dance offline scoring")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH)
    parser.add_argument("--reference", required=True, help="Reference routine video")
    parser.add_argument("--recording", required=True, help="Recorded learner clip")
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args()

    config = load_config(args.config)
    if args.debug:
        set_debug(True)

    result = score_recording(config, args.reference, args.recording)
    if result is None:
        logger.error("Session never reached the running state.")
        return 1
    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

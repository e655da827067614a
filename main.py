#!/usr/bin/env python3
"""
Poetry Dance - Main Entry Point
Dance-mimicry game: the learner copies a reference poetry-dance routine in
front of the webcam and earns a sync score and up to 10 stars.
"""

import argparse
import signal
import sys
import threading
import time

import cv2
import numpy as np

from poetry_dance.courses.catalog import CourseCatalog
from poetry_dance.progress.event_store import ProgressEventStore, minutes_between
from poetry_dance.session.controller import COUNTDOWN, FINISHED, IDLE, RUNNING, SessionController
from poetry_dance.utils.config import DEFAULT_CONFIG_PATH, load_config
from poetry_dance.utils.logger import set_debug, setup_logger
from poetry_dance.vision.camera_capture import CameraCapture
from poetry_dance.vision.reference_video import ReferenceVideo

logger = setup_logger(__name__)

WINDOW = "Poetry Dance"
PRAISE_SHOW_MS = 2400
RESULT_SHOW_MS = 4000


def now_ms() -> float:
    return time.monotonic() * 1000.0


def parse_args():
    parser = argparse.ArgumentParser(
        description="Poetry Dance - dance mimicry game",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH,
                        help="Path to system config YAML")
    parser.add_argument("--course", default=None,
                        help="Dance course id to play (default: first match)")
    parser.add_argument("--search", default="",
                        help="Filter courses by title/author")
    parser.add_argument("--list-courses", action="store_true",
                        help="List dance courses and exit")
    parser.add_argument("--debug", action="store_true",
                        help="Enable per-tick debug logging")
    parser.add_argument("--no-dashboard", action="store_true",
                        help="Disable progress dashboard")
    return parser.parse_args()


class PoetryDanceGame:
    """
    Thin host around SessionController: owns the webcam/reference devices,
    pumps update() from the display loop and renders a text overlay.

    Pipeline per tick:
    Webcam + Reference → FrameSampler → MotionSignature → MotionHistory
                       → ActionClassifier → SyncScorer → SessionController
    """

    def __init__(self, config: dict):
        self.config = config
        self.running = False
        self.camera = CameraCapture(config["camera"])
        self.store = ProgressEventStore(config["progress"].get("db_path", "data/progress.db"))
        self.controller = SessionController(
            config,
            self.camera,
            on_result=self._record_result,
            on_celebrate=self._celebrate,
        )
        self.reference = None
        self._praise = None
        self._praise_until = 0.0

        logger.info("=" * 60)
        logger.info(f"  {config['system'].get('name', 'poetry-dance')} v{config['system'].get('version', '?')}")
        logger.info("=" * 60)

    def _record_result(self, result):
        course = self.controller.course
        minutes = minutes_between(self.controller.started_at, now_ms())
        self.store.record_dance(course, result, minutes)

    def _celebrate(self, phrase: str):
        self._praise = phrase
        self._praise_until = now_ms() + PRAISE_SHOW_MS
        logger.info(f"✨ {phrase}")

    def play(self, course) -> int:
        """Play one routine. Returns a process exit code."""
        self.reference = ReferenceVideo(course.video_url)
        try:
            self.reference.open()
        except RuntimeError as e:
            logger.critical(f"⛔ {e}")
            return 1

        self.running = True
        self.controller.start(course, self.reference, now_ms())
        last_action = None

        try:
            while self.running:
                now = now_ms()
                tick = self.controller.update(now)
                if tick is not None:
                    action = (tick.web_action, tick.ref_action)
                    if action != last_action:
                        logger.info(f"🕺 you: {tick.web_action} | routine: {tick.ref_action} [{tick.group}]")
                        last_action = action

                key = self._show(now)
                if key == ord("q"):
                    self.controller.stop()
                elif key == ord("r") and self.controller.state == COUNTDOWN and self.controller.camera_error:
                    logger.info("Retrying camera...")
                    self.controller.start(course, self.reference, now_ms())

                if self.controller.state in (FINISHED, IDLE):
                    break
        except KeyboardInterrupt:
            logger.info("👋 Shutdown requested by user.")
        finally:
            self.shutdown()

        if self.controller.result is not None:
            self._show_result()
        return 0

    def _show(self, now: float) -> int:
        """Render the status overlay; returns the pressed key (or -1)."""
        try:
            canvas = self.reference.read_frame() if self.controller.state != RUNNING else None
            canvas = np.zeros((360, 640, 3), dtype=np.uint8) if canvas is None else \
                cv2.resize(cv2.cvtColor(canvas, cv2.COLOR_RGB2BGR), (640, 360))

            c = self.controller
            lines = []
            if c.state == COUNTDOWN:
                if c.camera_error:
                    lines.append("Camera unavailable - press 'r' to retry")
                else:
                    lines.append(f"Get ready... {c.countdown}")
            elif c.state == RUNNING:
                lines.append("Warming up..." if c.in_warmup else f"Sync {c.sync_rate * 100:5.1f}%")
                lines.append(f"Matched {c.scoring.matched}/{c.scoring.total}  [{c.readout['group']}]")
                if self._praise and now < self._praise_until:
                    lines.append("Great move!")

            for i, text in enumerate(lines):
                cv2.putText(canvas, text, (14, 36 + i * 34),
                            cv2.FONT_HERSHEY_SIMPLEX, 0.8, (255, 255, 255), 2)

            cv2.imshow(WINDOW, canvas)
            return cv2.waitKey(10) & 0xFF
        except cv2.error:
            # Headless: no window available
            time.sleep(0.01)
            return -1

    def _show_result(self):
        result = self.controller.result
        logger.info(f"⭐ Stars: {result.stars}/10  score={result.score:.2f} "
                    f"({result.matched}/{result.total} ticks in sync)")
        try:
            canvas = np.zeros((360, 640, 3), dtype=np.uint8)
            cv2.putText(canvas, f"Stars: {result.stars}/10", (14, 60),
                        cv2.FONT_HERSHEY_SIMPLEX, 1.2, (0, 215, 255), 3)
            cv2.putText(canvas, f"Score: {result.score * 100:.0f}%", (14, 110),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.9, (255, 255, 255), 2)
            cv2.imshow(WINDOW, canvas)
            cv2.waitKey(RESULT_SHOW_MS)
        except cv2.error:
            pass

    def shutdown(self):
        self.running = False
        self.controller.stop()
        if self.reference is not None:
            self.reference.release()
        try:
            cv2.destroyAllWindows()
        except cv2.error:
            pass
        logger.info("✅ Shutdown complete.")


def start_dashboard(config: dict):
    """Launch Flask dashboard in background thread."""
    from poetry_dance.dashboard.app import create_app
    app = create_app(config)
    app.run(
        host=config["dashboard"].get("host", "127.0.0.1"),
        port=config["dashboard"].get("port", 5000),
        debug=False,
        use_reloader=False,
    )


def main():
    args = parse_args()
    config = load_config(args.config)
    if args.debug:
        set_debug(True)

    catalog = CourseCatalog(config["courses"])
    courses = catalog.search(args.search)

    if args.list_courses:
        for course in courses:
            print(f"{course.id:32s} {course.title}  ({course.author})")
        return 0

    if args.course:
        try:
            course = catalog.get(args.course)
        except KeyError as e:
            logger.error(str(e))
            return 2
    elif courses:
        course = courses[0]
    else:
        logger.error("No dance course matches the search.")
        return 2

    if config["dashboard"].get("enabled") and not args.no_dashboard:
        dash_thread = threading.Thread(target=start_dashboard, args=(config,), daemon=True)
        dash_thread.start()
        logger.info(f"📊 Dashboard: http://localhost:{config['dashboard'].get('port', 5000)}")

    game = PoetryDanceGame(config)

    def handle_signal(sig, frame):
        game.running = False

    signal.signal(signal.SIGTERM, handle_signal)

    return game.play(course)


if __name__ == "__main__":
    sys.exit(main())

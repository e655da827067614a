"""
SessionController - Session Module
Lifecycle of one dance-mimicry play session:

    idle ──start()──▶ countdown ──(0 ∧ sources ready)──▶ running ──▶ finished
                         │                                  │
                         └──stop()──▶ idle                  └─ stop() / reference ended

- countdown: 3 ticks of 1000ms; a camera that fails to open keeps the
  session here with `camera_error` set until start() is called again.
- running: engine ticks throttled to one per 120ms; the first 1200ms are
  warmup (baselines fill, nothing counted).
- finished: result built once, handed to `on_result` once; later ticks,
  stop() calls and ended events are ignored.
"""

import random
from typing import Callable, Optional

from poetry_dance.session.engine import SessionEngine
from poetry_dance.session.feedback import pick_praise
from poetry_dance.session.results import (
    IDLE_READOUT,
    ScoringState,
    SessionResult,
    TickResult,
    build_result,
)
from poetry_dance.session.ticker import Ticker
from poetry_dance.utils.logger import setup_logger

logger = setup_logger(__name__)

IDLE = "idle"
COUNTDOWN = "countdown"
RUNNING = "running"
FINISHED = "finished"


class SessionController:
    """
    Drives SessionEngine from externally owned media sources.

    The webcam is opened on start() and released exactly once when the
    session is stopped or finishes. The reference source is owned by the
    caller; the controller only seeks, plays and pauses it.
    """

    def __init__(
        self,
        config: dict,
        webcam,
        on_result: Optional[Callable[[SessionResult], None]] = None,
        on_celebrate: Optional[Callable[[str], None]] = None,
        rng=None,
    ):
        self.config = config
        session_cfg = config.get("session") or {}
        self.countdown_ticks = session_cfg.get("countdown_ticks", 3)
        self.countdown_interval_ms = session_cfg.get("countdown_interval_ms", 1000)
        self.warmup_ms = session_cfg.get("warmup_ms", 1200)
        self.tick_interval_ms = session_cfg.get("tick_interval_ms", 120)
        self.celebrate_debounce_ms = session_cfg.get("celebrate_debounce_ms", 220)

        self.webcam = webcam
        self.reference = None
        self.course = None
        self.on_result = on_result
        self.on_celebrate = on_celebrate
        self._rng = rng or random.Random()

        self.state = IDLE
        self.countdown: Optional[int] = None
        self.camera_error: Optional[str] = None
        self.result: Optional[SessionResult] = None
        self.last_tick: Optional[TickResult] = None
        self.scoring = ScoringState()
        self.engine: Optional[SessionEngine] = None
        self.ticker = Ticker(self.tick_interval_ms)

        self.started_at: Optional[float] = None
        self._countdown_started_at: Optional[float] = None
        self._warmup_until: Optional[float] = None
        self._last_celebration: Optional[float] = None
        self._camera_open = False
        self._ended = False

        logger.info(
            f"✅ SessionController: countdown={self.countdown_ticks}x{self.countdown_interval_ms}ms "
            f"warmup={self.warmup_ms}ms tick={self.tick_interval_ms}ms"
        )

    # ── Read-only views ──────────────────────────────────────────────────

    @property
    def sync_rate(self) -> float:
        return self.engine.sync_rate if self.engine else 0.0

    @property
    def readout(self) -> dict:
        return dict(self.engine.readout) if self.engine else dict(IDLE_READOUT)

    @property
    def in_warmup(self) -> bool:
        if self.state != RUNNING:
            return False
        return self.last_tick is None or self.last_tick.t < self._warmup_until

    # ── Lifecycle ────────────────────────────────────────────────────────

    def start(self, course, reference, now: float):
        """
        Select a routine and begin the countdown. Calling it again restarts
        the whole session (this is also how a camera failure is retried).
        """
        if self.state in (COUNTDOWN, RUNNING):
            logger.info("Restarting session: previous session discarded.")
            self.ticker.cancel()
            self._release_camera()

        self.course = course
        self.reference = reference
        self.state = COUNTDOWN
        self.countdown = self.countdown_ticks
        self.camera_error = None
        self.result = None
        self.last_tick = None
        self.scoring.reset()
        self.engine = None
        self.ticker.reset()
        self.started_at = now
        self._countdown_started_at = now
        self._warmup_until = None
        self._last_celebration = None
        self._ended = False

        reference.seek_start()

        try:
            self.webcam.open()
            self._camera_open = True
        except RuntimeError as e:
            self.camera_error = str(e) or "无法打开摄像头"
            logger.error(f"⛔ Camera unavailable: {self.camera_error}")

        title = getattr(course, "title", course)
        logger.info(f"🎬 Countdown started: {title}")

    def update(self, now: float) -> Optional[TickResult]:
        """
        Advance the session to `now` (ms). Call as often as the host loop
        runs; returns the TickResult when an engine tick actually ran.
        """
        if self.state == COUNTDOWN:
            elapsed = now - self._countdown_started_at
            self.countdown = max(0, self.countdown_ticks - int(elapsed // self.countdown_interval_ms))
            if self.countdown > 0 or not self._sources_ready():
                return None
            self._begin_running(now)

        if self.state != RUNNING:
            return None

        if self.reference.ended:
            self._finish("ended")
            return None

        if not self.ticker.ready(now):
            return None

        tick = self.engine.tick(self.webcam.read_frame(), self.reference.read_frame(), now)
        self.last_tick = tick

        if now >= self._warmup_until:
            self.scoring.record(tick.matched)

        if tick.matched and (
            self._last_celebration is None
            or now - self._last_celebration >= self.celebrate_debounce_ms
        ):
            self._last_celebration = now
            if self.on_celebrate is not None:
                self.on_celebrate(pick_praise(self._rng))

        return tick

    def on_reference_ended(self):
        """Host hook for the reference video's 'ended' event."""
        if self.state == RUNNING:
            self._finish("ended")

    def stop(self):
        """
        Stop the session. Idempotent: the camera is released once and at most
        one result is ever emitted.
        """
        if self.state == RUNNING:
            self._finish("stop")
        elif self.state == COUNTDOWN:
            self.ticker.cancel()
            self._release_camera()
            self.state = IDLE
            self.countdown = None
            logger.info("Session cancelled during countdown.")

    # ── Internals ────────────────────────────────────────────────────────

    def _sources_ready(self) -> bool:
        return self._camera_open and self.webcam.is_ready() and self.reference.is_ready()

    def _begin_running(self, now: float):
        self.engine = SessionEngine(self.config.get("sampler") or {},
                                    self.config.get("engine") or {})
        self.scoring.reset()
        self.ticker.reset()
        self._warmup_until = now + self.warmup_ms
        self._last_celebration = None
        self._ended = False
        self.state = RUNNING
        self.reference.play()
        logger.info(f"🚀 Session running (warmup until t={self._warmup_until:.0f}ms)")

    def _finish(self, reason: str):
        if self._ended:
            return
        self._ended = True
        self.ticker.cancel()
        self.state = FINISHED

        if reason == "stop":
            self.reference.pause()
        self._release_camera()

        self.result = build_result(self.scoring)
        logger.info(
            f"🏁 Session finished ({reason}): stars={self.result.stars} "
            f"score={self.result.score:.2f} matched={self.result.matched}/{self.result.total}"
        )
        if self.on_result is not None:
            self.on_result(self.result)

    def _release_camera(self):
        if self._camera_open:
            self._camera_open = False
            self.webcam.release()

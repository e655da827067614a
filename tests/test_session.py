"""
Tests - Session Lifecycle
Unit tests for the ticker, star rating, engine and session controller.
"""

import random

import pytest
import numpy as np


# ── Fakes ────────────────────────────────────────────────────────────────────

def ramp_frames(n: int):
    """Uniform frames whose consecutive difference grows every frame."""
    frames = []
    for k in range(n):
        c = 4 + 3 * k
        value = 128 + c if k % 2 == 0 else 128 - c
        frames.append(np.full((48, 64, 3), value, dtype=np.uint8))
    return frames


class FakeCamera:

    def __init__(self, frames=None, fail=False):
        self.frames = list(frames or [])
        self.fail = fail
        self.opened = False
        self.open_calls = 0
        self.release_calls = 0
        self.reads = 0

    def open(self):
        self.open_calls += 1
        if self.fail:
            raise RuntimeError("Permission denied")
        self.opened = True

    def is_ready(self):
        return self.opened

    def read_frame(self):
        if not self.frames:
            return None
        frame = self.frames[min(self.reads, len(self.frames) - 1)]
        self.reads += 1
        return frame

    def release(self):
        self.release_calls += 1
        self.opened = False


class FakeReference(FakeCamera):

    def __init__(self, frames=None):
        super().__init__(frames)
        self.opened = True
        self.ended = False
        self.playing = False
        self.pause_calls = 0
        self.seek_calls = 0

    def seek_start(self):
        self.seek_calls += 1
        self.reads = 0
        self.ended = False
        self.playing = False

    def play(self):
        self.playing = True

    def pause(self):
        self.pause_calls += 1
        self.playing = False


class Course:
    id = "chun-xiao::poetry_dance"
    title = "春晓"


def make_controller(camera, results=None, celebrations=None):
    from poetry_dance.session.controller import SessionController
    controller = SessionController(
        {},
        camera,
        on_result=results.append if results is not None else None,
        on_celebrate=celebrations.append if celebrations is not None else None,
        rng=random.Random(0),
    )
    return controller


def drive(controller, until_ms, start_ms=0, step_ms=40):
    """Pump update() like a 25fps host loop; returns the executed ticks."""
    ticks = []
    t = start_ms
    while t <= until_ms:
        tick = controller.update(t)
        if tick is not None:
            ticks.append(tick)
        t += step_ms
    return ticks


# ── Ticker ───────────────────────────────────────────────────────────────────

class TestTicker:

    def setup_method(self):
        from poetry_dance.session.ticker import Ticker
        self.ticker = Ticker(120)

    def test_throttles_to_min_interval(self):
        accepted = [t for t in (0, 50, 119, 120, 200, 240, 359, 361) if self.ticker.ready(t)]
        assert accepted == [0, 120, 240, 361]
        assert self.ticker.skipped == 4

    def test_skipped_ticks_not_queued(self):
        assert self.ticker.ready(0)
        assert self.ticker.ready(1000)
        assert not self.ticker.ready(1050)
        assert self.ticker.ticks == 2

    def test_cancel(self):
        self.ticker.cancel()
        assert not self.ticker.ready(0)
        self.ticker.reset()
        assert self.ticker.ready(0)


# ── Results ──────────────────────────────────────────────────────────────────

class TestStarRating:

    def test_no_ticks_no_stars(self):
        from poetry_dance.session.results import ScoringState, build_result
        result = build_result(ScoringState())
        assert result.stars == 0
        assert result.score == 0.0

    @pytest.mark.parametrize("matched,total,stars", [
        (0, 10, 3), (10, 10, 10), (5, 10, 7), (1, 14, 4), (3, 7, 6),
    ])
    def test_formula(self, matched, total, stars):
        from poetry_dance.session.results import star_rating
        assert star_rating(matched, total) == stars

    def test_stars_always_in_range(self):
        from poetry_dance.session.results import star_rating
        for total in range(0, 30):
            for matched in range(0, total + 1):
                stars = star_rating(matched, total)
                assert isinstance(stars, int)
                assert 0 <= stars <= 10

    def test_result_is_immutable(self):
        from dataclasses import FrozenInstanceError
        from poetry_dance.session.results import SessionResult
        result = SessionResult(stars=5, score=0.3, matched=3, total=10)
        with pytest.raises(FrozenInstanceError):
            result.stars = 10


# ── Engine ───────────────────────────────────────────────────────────────────

class TestSessionEngine:

    def setup_method(self):
        from poetry_dance.session.engine import SessionEngine
        self.engine = SessionEngine({}, {})

    def test_sources_not_ready(self):
        tick = self.engine.tick(None, None, 0.0)
        assert tick.raw_score == 0.0
        assert tick.matched is False
        assert tick.web_action == "静止准备"
        assert tick.group == "still"

    def test_history_bounded(self):
        for i, frame in enumerate(ramp_frames(30)):
            self.engine.tick(frame, frame, i * 120.0)
        ts = [e.t for e in self.engine.web_history.entries]
        assert ts[-1] - ts[0] <= 1800
        assert len(self.engine.ref_history) == len(self.engine.web_history)

    def test_identical_streams_match(self):
        ticks = [self.engine.tick(f, f, i * 120.0) for i, f in enumerate(ramp_frames(20))]
        assert ticks[0].matched is False
        assert all(t.matched for t in ticks[1:])
        assert all(t.web_action == t.ref_action for t in ticks)


# ── Session Controller ───────────────────────────────────────────────────────

class TestSessionController:

    def setup_method(self):
        self.results = []
        self.celebrations = []

    def test_countdown_then_running(self):
        from poetry_dance.session.controller import COUNTDOWN, RUNNING
        camera = FakeCamera(ramp_frames(10))
        reference = FakeReference(ramp_frames(10))
        controller = make_controller(camera, self.results)
        controller.start(Course(), reference, 0)
        assert controller.state == COUNTDOWN
        assert reference.seek_calls == 1
        controller.update(1500)
        assert controller.countdown == 2
        controller.update(2999)
        assert controller.state == COUNTDOWN and controller.countdown == 1
        controller.update(3000)
        assert controller.state == RUNNING
        assert reference.playing is True

    def test_identical_streams_score_full(self):
        camera = FakeCamera(ramp_frames(40))
        reference = FakeReference(ramp_frames(40))
        controller = make_controller(camera, self.results)
        celebrated_at = []
        controller.on_celebrate = lambda phrase: celebrated_at.append((controller.last_tick.t, phrase))

        controller.start(Course(), reference, 0)
        ticks = drive(controller, 3000 + 38 * 120)
        controller.stop()

        assert len(ticks) == 39
        assert len(self.results) == 1
        result = self.results[0]
        assert result.total == 29
        assert result.matched == result.total
        assert result.score == pytest.approx(1.0)
        assert result.stars == 10

        from poetry_dance.session.feedback import PRAISE_PHRASES
        times = [t for t, _ in celebrated_at]
        assert all(b - a >= 220 for a, b in zip(times, times[1:]))
        assert 0 < len(times) < len(ticks)
        assert all(p in PRAISE_PHRASES for _, p in celebrated_at)

    def test_still_learner_never_matches(self):
        camera = FakeCamera([np.full((48, 64, 3), 90, dtype=np.uint8)])
        reference = FakeReference(ramp_frames(40))
        controller = make_controller(camera, self.results, self.celebrations)
        controller.start(Course(), reference, 0)
        drive(controller, 3000 + 38 * 120)
        controller.stop()

        result = self.results[0]
        assert result.total > 0
        assert result.matched == 0
        assert result.score == 0.0
        assert self.celebrations == []

    def test_warmup_ticks_not_counted(self):
        camera = FakeCamera(ramp_frames(40))
        reference = FakeReference(ramp_frames(40))
        controller = make_controller(camera, self.results)
        controller.start(Course(), reference, 0)
        ticks = drive(controller, 3000 + 9 * 120)
        assert len(ticks) == 10
        assert controller.in_warmup
        controller.stop()
        assert self.results[0].total == 0
        assert self.results[0].stars == 0

    def test_stop_during_countdown(self):
        from poetry_dance.session.controller import IDLE
        camera = FakeCamera(ramp_frames(5))
        controller = make_controller(camera, self.results)
        controller.start(Course(), FakeReference(ramp_frames(5)), 0)
        drive(controller, 1500)
        controller.stop()
        controller.stop()
        assert controller.state == IDLE
        assert self.results == []
        assert controller.result is None
        assert camera.open_calls == 1
        assert camera.release_calls == 1
        assert drive(controller, 6000, start_ms=1600) == []

    def test_double_stop_single_result(self):
        from poetry_dance.session.controller import FINISHED
        camera = FakeCamera(ramp_frames(40))
        reference = FakeReference(ramp_frames(40))
        controller = make_controller(camera, self.results)
        controller.start(Course(), reference, 0)
        drive(controller, 5000)
        controller.stop()
        controller.stop()
        assert controller.state == FINISHED
        assert len(self.results) == 1
        assert camera.release_calls == 1
        assert reference.pause_calls == 1
        # late ticks after finish are ignored
        assert drive(controller, 6000, start_ms=5040) == []
        assert len(self.results) == 1

    def test_reference_end_finishes_once(self):
        from poetry_dance.session.controller import FINISHED
        camera = FakeCamera(ramp_frames(40))
        reference = FakeReference(ramp_frames(40))
        controller = make_controller(camera, self.results)
        controller.start(Course(), reference, 0)
        drive(controller, 5000)
        reference.ended = True
        controller.update(5040)
        assert controller.state == FINISHED
        controller.on_reference_ended()
        controller.stop()
        assert len(self.results) == 1
        assert camera.release_calls == 1
        assert reference.pause_calls == 0

    def test_camera_failure_stays_in_countdown(self):
        from poetry_dance.session.controller import COUNTDOWN, RUNNING
        camera = FakeCamera(ramp_frames(10), fail=True)
        reference = FakeReference(ramp_frames(10))
        controller = make_controller(camera, self.results)
        controller.start(Course(), reference, 0)
        assert controller.camera_error == "Permission denied"
        drive(controller, 8000)
        assert controller.state == COUNTDOWN
        assert controller.countdown == 0

        # user retries with a working camera
        camera.fail = False
        controller.start(Course(), reference, 8000)
        assert controller.camera_error is None
        drive(controller, 11000, start_ms=8000)
        assert controller.state == RUNNING
        controller.stop()
        assert camera.release_calls == 1
        assert len(self.results) == 1

    def test_restart_discards_previous_session(self):
        camera = FakeCamera(ramp_frames(40))
        reference = FakeReference(ramp_frames(40))
        controller = make_controller(camera, self.results)
        controller.start(Course(), reference, 0)
        drive(controller, 5000)
        previous_engine = controller.engine
        assert controller.sync_rate > 0.0

        controller.start(Course(), reference, 5040)
        assert self.results == []
        assert camera.release_calls == 1
        assert controller.scoring.total == 0
        assert controller.engine is None
        assert controller.sync_rate == 0.0

        # Next session scores with fresh baselines and empty histories
        tick = controller.update(8040)
        assert tick is not None
        assert controller.engine is not previous_engine
        assert len(controller.engine.web_history) == 1
        assert previous_engine.scorer.web_baseline.mean > 0.0
        assert controller.engine.scorer.web_baseline.mean == 0.0

    def test_matched_never_exceeds_total(self):
        rng = np.random.default_rng(5)
        frames = [rng.integers(0, 256, (48, 64, 3), dtype=np.uint8) for _ in range(60)]
        camera = FakeCamera(frames)
        reference = FakeReference(frames[::-1])
        controller = make_controller(camera, self.results)
        controller.start(Course(), reference, 0)
        t = 0
        while t < 3000 + 58 * 120:
            controller.update(t)
            assert controller.scoring.matched <= controller.scoring.total
            t += 40
        controller.stop()
        result = self.results[0]
        assert result.matched <= result.total
        assert 0 <= result.stars <= 10

    def test_readout_before_first_tick(self):
        controller = make_controller(FakeCamera())
        assert controller.readout == {"web": "动作跟随", "ref": "动作跟随", "group": "generic"}
        assert controller.sync_rate == 0.0

"""
Tests - Progress, Dashboard, Catalog, Config & Logging
"""

import os
import tempfile

import pytest


COURSES = [
    {"id": "jing-ye-si", "title": "静夜思", "author": "李白", "video_url": "media/a.mp4"},
    {"id": "chun-xiao", "title": "春晓", "author": "孟浩然", "video_url": "media/b.mp4"},
    {"id": "min-nong", "title": "悯农", "author": "李绅", "video_url": ""},
    {"id": "jiang-xue", "title": "江雪", "author": "柳宗元"},
]


# ── Progress Store ───────────────────────────────────────────────────────────

class TestProgressEventStore:

    def setup_method(self):
        from poetry_dance.progress.event_store import ProgressEventStore
        from poetry_dance.courses.catalog import DanceCourse
        from poetry_dance.session.results import SessionResult
        self.tmpdir = tempfile.TemporaryDirectory()
        self.store = ProgressEventStore(os.path.join(self.tmpdir.name, "progress.db"))
        self.course = DanceCourse(id="chun-xiao", title="春晓", author="孟浩然", video_url="b.mp4")
        self.result = SessionResult(stars=8, score=0.7, matched=21, total=30)

    def teardown_method(self):
        self.tmpdir.cleanup()

    def test_record_dance(self):
        assert self.store.record_dance(self.course, self.result, minutes=2) is True
        events = self.store.get_recent()
        assert len(events) == 1
        event = events[0]
        assert event["type"] == "game_dance_complete"
        assert event["stars"] == 8
        assert event["minutes"] == 2
        assert event["payload"] == {"courseId": "chun-xiao", "title": "春晓", "score": 0.7,
                                    "matched": 21, "total": 30}

    def test_duplicate_result_recorded_once(self):
        self.store.record_dance(self.course, self.result, minutes=2)
        assert self.store.record_dance(self.course, self.result, minutes=2) is False
        assert len(self.store.get_recent()) == 1

    def test_stats(self):
        from poetry_dance.session.results import SessionResult
        self.store.record_dance(self.course, self.result, minutes=2)
        self.store.record_dance(self.course, SessionResult(stars=4, score=0.1, matched=3, total=30), minutes=1)
        self.store.add_event("course_complete", minutes=5, stars=3)
        stats = self.store.get_stats()
        assert stats["total"] == 3
        assert stats["dance_sessions"] == 2
        assert stats["average_stars"] == pytest.approx(6.0)
        assert stats["learning_minutes"] == 3
        assert stats["rhythm"] == 84

    def test_recent_is_newest_first(self):
        self.store.add_event("course_complete", ts=1)
        self.store.add_event("game_dance_complete", ts=2)
        events = self.store.get_recent(limit=1)
        assert [e["ts"] for e in events] == [2]

    def test_clear(self):
        self.store.record_dance(self.course, self.result, minutes=2)
        self.store.clear()
        assert self.store.get_recent() == []
        assert self.store.record_dance(self.course, self.result, minutes=2) is True

    @pytest.mark.parametrize("elapsed_ms,minutes", [
        (0, 1), (20_000, 1), (90_000, 2), (150_000, 3), (10 ** 9, 60),
    ])
    def test_minutes_between(self, elapsed_ms, minutes):
        from poetry_dance.progress.event_store import minutes_between
        assert minutes_between(1000, 1000 + elapsed_ms) == minutes


# ── Dashboard ────────────────────────────────────────────────────────────────

class TestDashboard:

    def setup_method(self):
        from poetry_dance.dashboard.app import create_app
        from poetry_dance.progress.event_store import ProgressEventStore
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "progress.db")
        self.store = ProgressEventStore(db_path)
        config = {"progress": {"db_path": db_path},
                  "system": {"name": "poetry-dance", "version": "1.0.0"}}
        self.client = create_app(config).test_client()

    def teardown_method(self):
        self.tmpdir.cleanup()

    def test_health(self):
        resp = self.client.get("/api/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "running"
        assert resp.get_json()["version"] == "1.0.0"

    def test_events_and_stats(self):
        self.store.add_event("game_dance_complete", minutes=2, stars=9, payload={"courseId": "x"})
        events = self.client.get("/api/events?limit=5").get_json()
        assert events["count"] == 1
        assert events["events"][0]["payload"]["courseId"] == "x"
        stats = self.client.get("/api/stats").get_json()
        assert stats["dance_sessions"] == 1

    def test_bad_limit(self):
        assert self.client.get("/api/events?limit=abc").status_code == 400

    def test_clear(self):
        self.store.add_event("game_dance_complete")
        assert self.client.post("/api/clear").get_json() == {"status": "cleared"}
        assert self.client.get("/api/events").get_json()["count"] == 0


# ── Course Catalog ───────────────────────────────────────────────────────────

class TestCourseCatalog:

    def setup_method(self):
        from poetry_dance.courses.catalog import CourseCatalog
        self.catalog = CourseCatalog(COURSES)

    def test_only_courses_with_video(self):
        assert [c.id for c in self.catalog.all()] == ["jing-ye-si", "chun-xiao"]

    def test_search_title_and_author(self):
        assert [c.id for c in self.catalog.search("春")] == ["chun-xiao"]
        assert [c.id for c in self.catalog.search("李白")] == ["jing-ye-si"]
        assert len(self.catalog.search("  ")) == 2
        assert self.catalog.search("杜甫") == []

    def test_get(self):
        assert self.catalog.get("chun-xiao").video_url == "media/b.mp4"
        with pytest.raises(KeyError):
            self.catalog.get("min-nong")


# ── Config ───────────────────────────────────────────────────────────────────

class TestConfig:

    def test_missing_sections_filled(self):
        from poetry_dance.utils.config import load_config
        with tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False, encoding="utf-8") as f:
            f.write("session:\n  warmup_ms: 900\n")
            path = f.name
        try:
            config = load_config(path)
            assert config["session"]["warmup_ms"] == 900
            assert config["engine"] == {}
            assert config["courses"] == []
        finally:
            os.unlink(path)

    def test_missing_file(self):
        from poetry_dance.utils.config import load_config
        with pytest.raises(FileNotFoundError):
            load_config("/nonexistent/system_config.yaml")

    def test_shipped_config_loads(self):
        from poetry_dance.utils.config import load_config
        from poetry_dance.courses.catalog import CourseCatalog
        root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
        config = load_config(os.path.join(root, "config", "system_config.yaml"))
        assert config["engine"]["history_ms"] == 1800
        assert config["session"]["tick_interval_ms"] == 120
        assert len(CourseCatalog(config["courses"])) == 3


# ── Logging ──────────────────────────────────────────────────────────────────

class TestLogger:

    def setup_method(self):
        import logging
        from poetry_dance.utils.logger import setup_logger
        self.logging = logging
        self.logger = setup_logger("poetry_dance.checks.logging")

    def _handlers(self):
        rotating = self.logging.handlers.RotatingFileHandler
        console = [h for h in self.logger.handlers if not isinstance(h, rotating)]
        files = [h for h in self.logger.handlers if isinstance(h, rotating)]
        return console, files

    def test_setup_is_idempotent(self):
        from poetry_dance.utils.logger import setup_logger
        again = setup_logger("poetry_dance.checks.logging")
        assert again is self.logger
        assert len(again.handlers) == 2

    def test_file_keeps_tick_traces(self):
        console, files = self._handlers()
        assert console[0].level == self.logging.INFO
        assert files[0].level == self.logging.DEBUG
        assert self.logger.isEnabledFor(self.logging.DEBUG)

    def test_set_debug_only_touches_console(self):
        from poetry_dance.utils.logger import set_debug
        console, files = self._handlers()
        try:
            set_debug(True)
            assert console[0].level == self.logging.DEBUG
            set_debug(False)
            assert console[0].level == self.logging.INFO
            assert files[0].level == self.logging.DEBUG
            assert self.logger.isEnabledFor(self.logging.DEBUG)
        finally:
            set_debug(False)

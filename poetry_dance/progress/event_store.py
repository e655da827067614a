"""
ProgressEventStore - Progress Module
SQLite-backed learning-progress events. The dance session's result sink
writes one `game_dance_complete` event per finished session.
"""

import json
import os
import sqlite3
import time
import uuid
from typing import Dict, List

from poetry_dance.session.results import SessionResult
from poetry_dance.utils.logger import setup_logger

logger = setup_logger(__name__)

DANCE_COMPLETE = "game_dance_complete"


def minutes_between(start_ms: float, end_ms: float) -> int:
    """Whole minutes of play, clamped to [1, 60]."""
    minutes = int((max(0.0, end_ms - start_ms) / 60000.0) + 0.5)
    return max(1, min(60, minutes))


class ProgressEventStore:
    """
    Stores: id, type, ts (epoch ms), minutes, stars, payload (JSON).
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        os.makedirs(os.path.dirname(db_path) if os.path.dirname(db_path) else ".", exist_ok=True)
        self._recorded_tokens = set()
        self._init_db()

    def _init_db(self):
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS progress_events (
                    seq        INTEGER PRIMARY KEY AUTOINCREMENT,
                    id         TEXT NOT NULL UNIQUE,
                    type       TEXT NOT NULL,
                    ts         INTEGER NOT NULL,
                    minutes    INTEGER,
                    stars      INTEGER,
                    payload    TEXT
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_type_ts ON progress_events(type, ts)")
            conn.commit()

    def add_event(self, event_type: str, minutes: int = 0, stars: int = 0,
                  payload: dict = None, ts: int = None) -> str:
        """Insert an event and return its id."""
        event_id = uuid.uuid4().hex
        ts = int(time.time() * 1000) if ts is None else int(ts)
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                "INSERT INTO progress_events (id, type, ts, minutes, stars, payload) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (event_id, event_type, ts, minutes, stars,
                 json.dumps(payload or {}, ensure_ascii=False)),
            )
            conn.commit()
        return event_id

    def record_dance(self, course, result: SessionResult, minutes: int) -> bool:
        """
        Persist a finished dance session.

        Returns:
            False when this exact result was already recorded by this store
        """
        token = f"dance:{course.id}:{result.score}:{result.stars}:{result.matched}:{result.total}"
        if token in self._recorded_tokens:
            logger.debug(f"Duplicate dance result ignored: {token}")
            return False
        self._recorded_tokens.add(token)

        self.add_event(
            DANCE_COMPLETE,
            minutes=minutes,
            stars=result.stars,
            payload={
                "courseId": course.id,
                "title": course.title,
                "score": result.score,
                "matched": result.matched,
                "total": result.total,
            },
        )
        logger.info(f"📝 Progress recorded: {course.title} ⭐{result.stars} ({minutes} min)")
        return True

    def get_recent(self, limit: int = 100) -> List[Dict]:
        """Most recent events first."""
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute(
                "SELECT id, type, ts, minutes, stars, payload FROM progress_events "
                "ORDER BY seq DESC LIMIT ?",
                (limit,)
            ).fetchall()
        events = []
        for row in rows:
            event = dict(row)
            event["payload"] = json.loads(event["payload"] or "{}")
            events.append(event)
        return events

    def get_stats(self) -> Dict:
        """Aggregate dance-game progress."""
        with sqlite3.connect(self.db_path) as conn:
            count, avg_stars, minutes = conn.execute(
                "SELECT COUNT(*), AVG(stars), SUM(minutes) FROM progress_events WHERE type = ?",
                (DANCE_COMPLETE,)
            ).fetchone()
            total = conn.execute("SELECT COUNT(*) FROM progress_events").fetchone()[0]

        avg_stars = float(avg_stars or 0.0)
        rhythm = max(0, min(100, int(count * 12 + avg_stars * 10 + 0.5)))
        return {
            "total": total,
            "dance_sessions": count,
            "average_stars": round(avg_stars, 2),
            "learning_minutes": int(minutes or 0),
            "rhythm": rhythm,
        }

    def clear(self):
        """Delete all events."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("DELETE FROM progress_events")
            conn.commit()
        self._recorded_tokens.clear()

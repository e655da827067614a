"""
Progress Dashboard - Poetry Dance
JSON API over the learning-progress store via Flask.
"""

from datetime import datetime, timezone

from flask import Flask, jsonify, request
from flask_cors import CORS

from poetry_dance.progress.event_store import ProgressEventStore
from poetry_dance.utils.logger import setup_logger

logger = setup_logger(__name__)


def create_app(config: dict) -> Flask:
    app = Flask(__name__)
    CORS(app)

    store = ProgressEventStore(config["progress"].get("db_path", "data/progress.db"))
    system = config.get("system") or {}

    @app.route("/api/events")
    def get_events():
        try:
            limit = int(request.args.get("limit", 100))
        except ValueError:
            return jsonify({"error": "limit must be an integer"}), 400
        limit = max(1, min(1000, limit))
        events = store.get_recent(limit)
        return jsonify({"events": events, "count": len(events)})

    @app.route("/api/stats")
    def get_stats():
        return jsonify(store.get_stats())

    @app.route("/api/health")
    def health():
        return jsonify({
            "status": "running",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "name": system.get("name", "poetry-dance"),
            "version": system.get("version", "0.0.0"),
        })

    @app.route("/api/clear", methods=["POST"])
    def clear_events():
        store.clear()
        logger.info("Progress events cleared via dashboard.")
        return jsonify({"status": "cleared"})

    return app


if __name__ == "__main__":
    from poetry_dance.utils.config import load_config
    config = load_config()
    app = create_app(config)
    app.run(host=config["dashboard"].get("host", "127.0.0.1"),
            port=config["dashboard"].get("port", 5000), debug=False)

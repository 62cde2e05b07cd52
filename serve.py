# serve.py: Flask proxy service: TAP passthrough, habitability scoring, AI prediction relay, usage stats
import json
import logging
import math
import os
import signal
import sys

import pandas as pd
from flask import Flask, Response, jsonify, request, send_from_directory
from flask_cors import CORS

from config import Settings
from habitability import FALSE_POSITIVE, FeatureError, score_features, validate_features
from stats_store import POSITIVE_VERDICT, StatsStore
from upstream import UpstreamError, fetch_tap, forward_prediction

log = logging.getLogger("serve")

HISTORY_COLUMNS = ["timestamp", "prediction", "confidence", "reasoning", "input"]


def _external_confidence(data: dict) -> float:
    # anything but a finite number in [0, 1] counts as no confidence
    c = data.get("confidence")
    if isinstance(c, bool) or not isinstance(c, (int, float)):
        return 0.0
    if not math.isfinite(c) or not (0.0 <= c <= 1.0):
        return 0.0
    return float(c)


def create_app(store: StatsStore, settings: Settings = None) -> Flask:
    settings = settings or Settings()
    static_dir = os.path.abspath(settings.static_dir)

    # static files are served by the catch-all below, not Flask's /static rule
    app = Flask(__name__, static_folder=None)
    CORS(app)

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify({"ok": True})

    # ---- TAP proxy ----
    @app.route("/tap/sync", methods=["GET"])
    def tap_sync():
        query = request.args.get("query", "")
        fmt = request.args.get("format", "") or "json"
        if not query:
            return jsonify({"error": "Missing query parameter"}), 400

        log.info("Proxying TAP request: %s...", query[:50])
        try:
            body, content_type = fetch_tap(settings.tap_url, query, fmt, timeout=settings.upstream_timeout)
        except UpstreamError as e:
            log.error("TAP proxy error: %s", e)
            return jsonify({"error": "Failed to fetch TAP data"}), 500

        store.record_api_call()
        store.save_async()
        if fmt == "json":
            try:
                return jsonify(json.loads(body))
            except ValueError:
                pass
        return Response(body, content_type=content_type)

    # ---- rule-based prediction ----
    @app.route("/predict", methods=["POST"])
    def predict():
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict) or "features" not in payload:
            return jsonify({"error": "Provide JSON body with key 'features': list of 4 numbers."}), 400
        try:
            feats = validate_features(payload["features"])
        except FeatureError as fe:
            return jsonify({"error": str(fe)}), 400

        score = score_features(feats)
        result = {
            "prediction": score.verdict,
            "confidence": score.confidence,
            "reasoning": score.reasoning,
        }
        store.record_api_call()
        store.record_prediction(feats, score.verdict, score.confidence, score.reasoning, output=result)
        store.save_async()
        return jsonify(result)

    # ---- external prediction relay ----
    @app.route("/ai/predict", methods=["POST"])
    def ai_predict():
        payload = request.get_json(silent=True)
        if payload is None:
            return jsonify({"error": "Request body must be JSON."}), 400

        log.info("AI prediction request: %s", payload)
        try:
            data = forward_prediction(settings.ai_predict_url, payload, timeout=settings.upstream_timeout)
        except UpstreamError as e:
            log.error("AI API error: %s", e)
            return jsonify({"error": "AI prediction failed", "details": str(e)}), 500
        log.info("AI prediction response: %s", data)

        confidence = _external_confidence(data)
        # the external service reports CONFIRMED only above 0.5
        verdict = POSITIVE_VERDICT if confidence > 0.5 else FALSE_POSITIVE
        store.record_api_call()
        store.record_prediction(payload, verdict, confidence, str(data.get("reasoning", "")), output=data)
        store.save_async()
        return jsonify(data)

    # ---- stats ----
    @app.route("/api/stats", methods=["GET"])
    def api_stats():
        store.record_api_call()
        snap = store.snapshot()
        snap["average_confidence"] = store.average_confidence
        snap["uptime_seconds"] = store.uptime_seconds()
        store.save_async()
        return jsonify(snap)

    @app.route("/api/history", methods=["GET"])
    def api_history():
        fmt = request.args.get("format", "json").lower()
        try:
            limit = int(request.args.get("limit", store.history_limit))
        except ValueError:
            return jsonify({"error": "'limit' must be an integer"}), 400
        if limit < 0:
            return jsonify({"error": "'limit' must be >= 0"}), 400

        history = store.snapshot()["prediction_history"][:limit]
        if fmt == "json":
            return jsonify({"count": len(history), "history": history})
        if fmt != "csv":
            return jsonify({"error": "format must be 'json' or 'csv'"}), 400

        df = pd.DataFrame(
            [{**{k: e.get(k) for k in HISTORY_COLUMNS}, "input": json.dumps(e.get("input"))} for e in history],
            columns=HISTORY_COLUMNS,
        )
        return app.response_class(
            df.to_csv(index=False),
            mimetype="text/csv",
            headers={"Content-Disposition": "attachment; filename=prediction_history.csv"},
        )

    # ---- web client ----
    @app.route("/", defaults={"path": ""}, methods=["GET"])
    @app.route("/<path:path>", methods=["GET"])
    def web_client(path):
        if path and os.path.isfile(os.path.join(static_dir, path)):
            return send_from_directory(static_dir, path)
        if not os.path.isfile(os.path.join(static_dir, "index.html")):
            return jsonify({"error": f"Web client not built ({settings.static_dir}/index.html missing)"}), 404
        return send_from_directory(static_dir, "index.html")

    return app


def _install_signal_handlers(store: StatsStore):
    def _graceful_exit(signum, frame):
        log.warning("Received signal %s, saving stats before shutdown", signum)
        store.save()
        sys.exit(0)

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, _graceful_exit)


def main():
    settings = Settings.from_env()
    logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO),
                        format="%(asctime)s [%(levelname)s] [%(name)s] %(message)s")
    store = StatsStore(settings.stats_path)
    store.load()
    app = create_app(store, settings)
    _install_signal_handlers(store)
    log.info("Server running on port %s", settings.port)
    app.run(host=settings.host, port=settings.port, debug=False, use_reloader=False, threaded=True)


if __name__ == "__main__":
    main()

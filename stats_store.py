# stats_store.py
# Running usage/accuracy statistics with best-effort JSON persistence.
# - One StatsStore per process, handed to the Flask app (no module globals)
# - Persisted record is merged shallowly over defaults at load time
# - api_calls_today rolls over only in load(); a process running past midnight keeps counting

import concurrent.futures
import copy
import json
import logging
import math
import os
import tempfile
import threading
from datetime import datetime
from typing import NamedTuple, Optional

log = logging.getLogger("stats_store")

HISTORY_LIMIT = 100
POSITIVE_VERDICT = "CONFIRMED"

MODEL_TYPE = "Random Forest Classifier"
TRAINING_SAMPLES = 9564
FEATURES_COUNT = 4


class PersistResult(NamedTuple):
    ok: bool
    error: Optional[str] = None


DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

# field -> accepted types for a persisted value; anything else keeps the default
FIELD_TYPES = {
    "total_predictions": int,
    "confirmed_predictions": int,
    "rejected_predictions": int,
    "api_calls_today": int,
    "total_confidence": (int, float),
    "prediction_history": list,
}


def day_string(now: datetime) -> str:
    # e.g. "Sun Oct 18 2026"; English names regardless of locale, matching files written by the previous server
    return f"{DAY_NAMES[now.weekday()]} {MONTH_NAMES[now.month - 1]} {now.day:02d} {now.year}"


def _valid_field(key, value) -> bool:
    types = FIELD_TYPES.get(key)
    if types is None:
        return True
    if isinstance(value, bool) or not isinstance(value, types):
        return False
    if isinstance(value, (int, float)):
        return math.isfinite(value) and value >= 0
    return True


def default_record(now: datetime) -> dict:
    return {
        "model_type": MODEL_TYPE,
        "training_samples": TRAINING_SAMPLES,
        "features_count": FEATURES_COUNT,
        "last_updated": now.date().isoformat(),
        "total_predictions": 0,
        "confirmed_predictions": 0,
        "rejected_predictions": 0,
        "total_confidence": 0.0,
        "prediction_history": [],
        "start_time": now.isoformat(),
        "api_calls_today": 0,
        "last_reset": day_string(now),
    }


class StatsStore:
    def __init__(self, path="model_stats.json", clock=None, history_limit=HISTORY_LIMIT):
        self.path = str(path)
        self.history_limit = history_limit
        self._clock = clock or datetime.now
        self._lock = threading.Lock()
        self._save_lock = threading.Lock()
        self._record = default_record(self._clock())
        self._executor = concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix="stats-save")

    # ---- persistence ----
    def load(self) -> PersistResult:
        """
        Merge a previously saved record over the defaults.
        A missing or unreadable file leaves the defaults in place.
        """
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                saved = json.load(f)
            if not isinstance(saved, dict):
                raise ValueError("stats file does not hold a JSON object")
        except FileNotFoundError:
            log.info("Starting with fresh stats (no %s)", self.path)
            return PersistResult(False, "missing")
        except (OSError, ValueError) as e:
            log.warning("Starting with fresh stats; could not read %s: %s", self.path, e)
            return PersistResult(False, str(e))

        bad = [k for k, v in saved.items() if not _valid_field(k, v)]
        if bad:
            log.warning("Ignoring malformed fields in %s: %s", self.path, bad)
            saved = {k: v for k, v in saved.items() if k not in bad}

        today = day_string(self._clock())
        if saved.get("last_reset") != today:
            saved["api_calls_today"] = 0
            saved["last_reset"] = today
        with self._lock:
            self._record = {**self._record, **saved}
        log.info("Loaded model stats from %s", self.path)
        return PersistResult(True)

    def save(self) -> PersistResult:
        """Overwrite the stats file with the current record. Never raises."""
        # one save at a time, so a later snapshot is never replaced by an earlier one
        with self._save_lock:
            with self._lock:
                payload = json.dumps(self._record, indent=2)
            tmp = None
            try:
                fd, tmp = tempfile.mkstemp(prefix=".stats-", suffix=".tmp", dir=os.path.dirname(self.path) or ".")
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp, self.path)
            except OSError as e:
                log.error("Error saving stats to %s: %s", self.path, e)
                if tmp is not None:
                    try:
                        os.unlink(tmp)
                    except OSError as ue:
                        log.debug("Could not remove %s: %s", tmp, ue)
                return PersistResult(False, str(e))
        return PersistResult(True)

    def save_async(self) -> concurrent.futures.Future:
        # single worker: writes land in submission order, last one wins
        return self._executor.submit(self.save)

    def close(self):
        self._executor.shutdown(wait=True)

    # ---- mutations ----
    def record_api_call(self):
        with self._lock:
            self._record["api_calls_today"] += 1

    def record_prediction(self, features, verdict: str, confidence: float, reasoning="", output=None) -> dict:
        entry = {
            "timestamp": self._clock().isoformat(),
            "input": copy.deepcopy(features),
            "prediction": verdict,
            "confidence": float(confidence),
            "reasoning": reasoning,
            "output": copy.deepcopy(output),
        }
        with self._lock:
            rec = self._record
            rec["total_predictions"] += 1
            if verdict == POSITIVE_VERDICT:
                rec["confirmed_predictions"] += 1
            else:
                rec["rejected_predictions"] += 1
            rec["total_confidence"] += float(confidence)
            # newest first
            rec["prediction_history"] = [entry] + list(rec["prediction_history"])[: self.history_limit - 1]
        return copy.deepcopy(entry)

    # ---- reads ----
    def snapshot(self) -> dict:
        with self._lock:
            return copy.deepcopy(self._record)

    @property
    def average_confidence(self) -> float:
        with self._lock:
            n = self._record["total_predictions"]
            return self._record["total_confidence"] / n if n > 0 else 0.0

    def uptime_seconds(self) -> float:
        with self._lock:
            started = self._record.get("start_time")
        try:
            start = datetime.fromisoformat(started)
        except (TypeError, ValueError):
            return 0.0
        now = self._clock()
        # persisted start_time may carry a timezone that the clock does not
        if (start.tzinfo is None) != (now.tzinfo is None):
            return 0.0
        return max(0.0, (now - start).total_seconds())

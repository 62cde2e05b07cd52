from datetime import datetime

import pytest

from config import Settings
from serve import create_app
from stats_store import StatsStore


class FixedClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FixedClock(datetime(2026, 10, 18, 12, 0, 0))


@pytest.fixture
def store(tmp_path, clock):
    s = StatsStore(tmp_path / "model_stats.json", clock=clock)
    yield s
    s.close()


@pytest.fixture
def static_dir(tmp_path):
    d = tmp_path / "web"
    d.mkdir()
    (d / "index.html").write_text("<html>client</html>")
    (d / "main.dart.js").write_text("console.log('hi');")
    return d


@pytest.fixture
def app(store, static_dir):
    settings = Settings(
        stats_path=store.path,
        static_dir=str(static_dir),
        tap_url="https://tap.example/TAP/sync",
        ai_predict_url="https://ai.example/api/predict",
        upstream_timeout=5,
    )
    app = create_app(store, settings)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()

# config.py: environment-driven settings for the proxy service
import os
from dataclasses import dataclass

TAP_URL = "https://exoplanetarchive.ipac.caltech.edu/TAP/sync"
AI_PREDICT_URL = "https://exoplanetapi.onrender.com/api/predict"


@dataclass(frozen=True)
class Settings:
    """Runtime settings; build with Settings.from_env()."""
    host: str = "0.0.0.0"
    port: int = 8080
    stats_path: str = "model_stats.json"
    static_dir: str = os.path.join("build", "web")
    tap_url: str = TAP_URL
    ai_predict_url: str = AI_PREDICT_URL
    upstream_timeout: float = 60.0
    log_level: str = "INFO"

    def __post_init__(self):
        if not (0 < self.port < 65536):
            raise ValueError("PORT must be between 1 and 65535")
        if self.upstream_timeout <= 0:
            raise ValueError("UPSTREAM_TIMEOUT must be > 0")

    @classmethod
    def from_env(cls, env=None) -> "Settings":
        env = os.environ if env is None else env
        defaults = cls()
        try:
            port = int(env.get("PORT", defaults.port))
            timeout = float(env.get("UPSTREAM_TIMEOUT", defaults.upstream_timeout))
        except ValueError as e:
            raise ValueError(f"Invalid numeric setting: {e}") from e
        return cls(
            host=env.get("HOST", defaults.host),
            port=port,
            stats_path=env.get("STATS_PATH", defaults.stats_path),
            static_dir=env.get("STATIC_DIR", defaults.static_dir),
            tap_url=env.get("TAP_URL", defaults.tap_url),
            ai_predict_url=env.get("AI_PREDICT_URL", defaults.ai_predict_url),
            upstream_timeout=timeout,
            log_level=env.get("LOG_LEVEL", defaults.log_level).upper(),
        )

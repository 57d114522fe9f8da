"""Process configuration loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from ``RUNSYNC_*`` environment variables (or .env file)."""

    # --- App ---
    app_name: str = "RunSync"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | test | production

    # --- Peer transport ---
    peer_url: str | None = "http://localhost:8000"  # phone base URL, wrist side only
    request_timeout_seconds: float = 5.0
    reachability_probe_seconds: float = 10.0

    # --- State derivation ---
    running_threshold_bpm: float = 100.0
    manual_override_enabled: bool = True  # False in production builds
    resend_standing_when_idle: bool = False

    # --- Sensor feed ---
    sensor_source: str = "simulated"  # simulated | apple_health_export
    apple_health_export_path: str | None = None
    replay_speedup: float = 60.0
    simulated_bpm_script: list[float] = [70.0, 85.0, 105.0, 120.0, 95.0]
    simulated_interval_seconds: float = 1.0

    model_config = {"env_prefix": "RUNSYNC_", "env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()

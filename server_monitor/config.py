from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings

DATA_DIR = Path(__file__).parent.parent / "data"


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Persistence (SQLite key-value blob store)
    db_path: Path = DATA_DIR / "monitor.db"

    # Checks
    check_timeout_seconds: float = 30.0
    # False = online means any 2xx; True = online means code == expected_status_code
    match_expected_status: bool = False

    # Connectivity monitor (feeds the network gate)
    connectivity_probe_host: str = "1.1.1.1"
    connectivity_probe_port: int = 53
    connectivity_interval_seconds: float = 10.0
    network_ready_timeout: float = 10.0  # seconds to wait for first observation

    # API
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    # Logging
    log_level: str = "INFO"


settings = Settings()

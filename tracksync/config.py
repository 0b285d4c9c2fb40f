"""
Configuration management for tracksync.
Handles loading settings from environment variables and config files.
"""

import os
import re
from pathlib import Path
from typing import Optional
from dataclasses import dataclass, field
from dotenv import load_dotenv

from tracksync.models import MAX_CODES_PER_REQUEST


DEFAULT_BASE_URL = "https://api.correios.com.br"


@dataclass
class SyncConfig:
    """Main configuration class for the tracking sync engine."""

    # === Correios API ===
    correios_base_url: str = DEFAULT_BASE_URL
    request_timeout: float = 30.0  # seconds, per request

    # === Batching ===
    batch_size: int = MAX_CODES_PER_REQUEST
    batch_delay_seconds: float = 1.0  # pause between batches
    token_safety_margin_seconds: int = 300

    # === Storage ===
    store_path: Path = field(default_factory=lambda: Path("./tracksync-data.json"))

    # === Scheduling ===
    # Daily sync times (24h format)
    sync_times: list[str] = field(default_factory=lambda: ["08:00", "12:00"])
    sync_enabled: bool = True

    # Logging
    log_level: str = "INFO"
    log_file: str = "./logs/tracksync.log"

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "SyncConfig":
        """Load configuration from environment variables."""

        # Try to load from .env file
        if env_file:
            load_dotenv(env_file)
        else:
            # Try common locations
            for env_path in ["config.env", ".env", "../config.env"]:
                if Path(env_path).exists():
                    load_dotenv(env_path)
                    break

        sync_times_str = os.getenv("SYNC_TIMES", "08:00,12:00")
        sync_times = [t.strip() for t in sync_times_str.split(",") if t.strip()]

        return cls(
            correios_base_url=os.getenv("CORREIOS_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
            request_timeout=float(os.getenv("REQUEST_TIMEOUT", "30")),

            batch_size=min(int(os.getenv("BATCH_SIZE", str(MAX_CODES_PER_REQUEST))), MAX_CODES_PER_REQUEST),
            batch_delay_seconds=float(os.getenv("BATCH_DELAY_SECONDS", "1.0")),
            token_safety_margin_seconds=int(os.getenv("TOKEN_SAFETY_MARGIN_SECONDS", "300")),

            store_path=Path(os.getenv("STORE_PATH", "./tracksync-data.json")),

            sync_times=sync_times,
            sync_enabled=os.getenv("SYNC_ENABLED", "true").lower() in ("true", "1", "yes"),

            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE", "./logs/tracksync.log"),
        )

    def ensure_directories(self):
        """Create necessary directories if they don't exist."""
        self.store_path.parent.mkdir(parents=True, exist_ok=True)
        Path(self.log_file).parent.mkdir(parents=True, exist_ok=True)

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if not self.correios_base_url.startswith(("http://", "https://")):
            errors.append("CORREIOS_BASE_URL must be an http(s) URL")
        if not 1 <= self.batch_size <= MAX_CODES_PER_REQUEST:
            errors.append(f"BATCH_SIZE must be between 1 and {MAX_CODES_PER_REQUEST}")
        if self.batch_delay_seconds < 0:
            errors.append("BATCH_DELAY_SECONDS cannot be negative")
        if self.request_timeout <= 0:
            errors.append("REQUEST_TIMEOUT must be positive")

        for sync_time in self.sync_times:
            if not re.fullmatch(r"([01]\d|2[0-3]):[0-5]\d", sync_time):
                errors.append(f"Invalid sync time: {sync_time} (expected HH:MM)")

        return errors


# Global config instance
_config: Optional[SyncConfig] = None


def get_config() -> SyncConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = SyncConfig.from_env()
    return _config


def init_config(env_file: Optional[str] = None) -> SyncConfig:
    """Initialize configuration from environment."""
    global _config
    _config = SyncConfig.from_env(env_file)
    _config.ensure_directories()
    return _config

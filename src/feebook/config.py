"""Configuration loading for feebook."""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import tomli

logger = logging.getLogger("feebook.config")


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"           # INFO or DEBUG
    output: str = "console"       # console, file, or both
    file: str = ""                # log file path
    rotate: bool = True           # enable rotation
    max_size_mb: int = 10         # max file size before rotation
    backup_count: int = 5         # rotated files to keep


@dataclass
class NtfyConfig:
    """ntfy push notification configuration."""
    enabled: bool = False
    server_url: str = "https://ntfy.sh"
    topic: str = ""
    token: str = ""       # bearer token auth
    username: str = ""     # basic auth (alternative to token)
    password: str = ""
    priority: int = 3


@dataclass
class Config:
    db_path: Path = field(default_factory=lambda: Path("data/feebook.db"))
    timezone: str = "UTC"  # business timezone; stored datetimes are naive local time
    currency: str = "USD"  # display only
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    ntfy: NtfyConfig = field(default_factory=NtfyConfig)

    @property
    def tz(self) -> ZoneInfo:
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r, falling back to UTC", self.timezone)
            return ZoneInfo("UTC")

    def now(self) -> datetime:
        """Current wall-clock time in the business timezone, as a naive datetime."""
        return datetime.now(self.tz).replace(tzinfo=None)


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from TOML file."""
    if config_path is None:
        # Look for config in standard locations
        candidates = [
            Path("config/config.toml"),
            Path.home() / ".config/feebook/config.toml",
            Path("/etc/feebook/config.toml"),
        ]
        for candidate in candidates:
            if candidate.exists():
                config_path = candidate
                break

    if config_path is None or not config_path.exists():
        # Return default config
        config = Config()
    else:
        with open(config_path, "rb") as f:
            data = tomli.load(f)
        config = _parse_config(data)
        logger.debug("Loaded config from %s", config_path)

    # Environment variable overrides (allows EnvironmentFile= usage)
    db_path = os.environ.get("FEEBOOK_DB_PATH")
    if db_path:
        config.db_path = Path(db_path)

    _env_secret_overrides = [
        ("FEEBOOK_NTFY_TOKEN", "ntfy", "token"),
        ("FEEBOOK_NTFY_PASSWORD", "ntfy", "password"),
    ]
    for env_var, section, field_name in _env_secret_overrides:
        val = os.environ.get(env_var)
        if val:
            setattr(getattr(config, section), field_name, val)

    return config


def _parse_config(data: dict) -> Config:
    config = Config()

    if "db_path" in data:
        config.db_path = Path(data["db_path"])

    if "timezone" in data:
        config.timezone = data["timezone"]

    if "currency" in data:
        config.currency = data["currency"]

    if "logging" in data:
        log = data["logging"]
        config.logging = LoggingConfig(
            level=log.get("level", "INFO"),
            output=log.get("output", "console"),
            file=log.get("file", ""),
            rotate=log.get("rotate", True),
            max_size_mb=log.get("max_size_mb", 10),
            backup_count=log.get("backup_count", 5),
        )

    if "ntfy" in data:
        n = data["ntfy"]
        config.ntfy = NtfyConfig(
            enabled=n.get("enabled", False),
            server_url=n.get("server_url", "https://ntfy.sh"),
            topic=n.get("topic", ""),
            token=n.get("token", ""),
            username=n.get("username", ""),
            password=n.get("password", ""),
            priority=n.get("priority", 3),
        )

    return config

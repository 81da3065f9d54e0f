"""Project-level configuration and path helpers."""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "chat_core.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)


PathLike = Union[str, Path]

_DURATION_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def parse_duration(value: str | int) -> int:
    """Parse "3600", "30m", "1h" or "1d" into seconds."""
    if isinstance(value, int):
        return value

    match = re.fullmatch(r"\s*(\d+)\s*([smhd]?)\s*", value)
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")

    amount, unit = match.groups()
    return int(amount) * _DURATION_UNITS[unit or "s"]


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Runtime settings read from the environment."""

    database_url: str | None = None
    api_host: str = "localhost"
    api_port: int = 8000
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_expires_in: int = 3600
    store_timeout_seconds: float = 5.0
    fanout_atomic: bool = False
    relay_delete_policy: str = "global"
    relay_send_timeout: float = 2.0
    relay_queue_size: int = 1000
    cors_origins: list[str] = field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost:3000"]
    )
    log_level: str = "INFO"


def load_settings() -> Settings:
    """Build Settings from environment variables (call after load_dotenv)."""
    origins = os.getenv("CORS_ORIGINS")
    return Settings(
        database_url=os.getenv("DATABASE_URL"),
        api_host=os.getenv("API_HOST", "localhost"),
        api_port=int(os.getenv("API_PORT", "8000")),
        jwt_secret=os.getenv("JWT_SECRET", "change-me"),
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        jwt_expires_in=parse_duration(os.getenv("JWT_EXPIRES_IN", "1h")),
        store_timeout_seconds=float(os.getenv("STORE_TIMEOUT_SECONDS", "5")),
        fanout_atomic=_env_bool("FANOUT_ATOMIC", False),
        relay_delete_policy=os.getenv("RELAY_DELETE_POLICY", "global"),
        relay_send_timeout=float(os.getenv("RELAY_SEND_TIMEOUT", "2")),
        relay_queue_size=int(os.getenv("RELAY_QUEUE_SIZE", "1000")),
        cors_origins=(
            [o.strip() for o in origins.split(",") if o.strip()]
            if origins
            else Settings().cors_origins
        ),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )

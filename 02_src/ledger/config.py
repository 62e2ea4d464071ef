"""Project-level configuration and path helpers."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "ledger.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"

DEFAULT_USER_ID = "edge:stage0"
DEFAULT_BOOT_TIMEOUT_SECONDS = 30.0
DEFAULT_WORKER_BATCH_SIZE = 10
DEFAULT_WORKER_POLL_INTERVAL = 5.0

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


@dataclass(frozen=True)
class LedgerSettings:
    """Process configuration, read once at startup and passed down explicitly."""

    db_path: PathLike = DEFAULT_DB_PATH
    user_id: str = DEFAULT_USER_ID
    tenant_id: str | None = None
    signing_key_hex: str | None = None
    boot_function_id: str | None = None
    boot_timeout_seconds: float | None = DEFAULT_BOOT_TIMEOUT_SECONDS
    worker_batch_size: int = DEFAULT_WORKER_BATCH_SIZE
    worker_poll_interval: float = DEFAULT_WORKER_POLL_INTERVAL

    @property
    def signing_enabled(self) -> bool:
        return bool(self.signing_key_hex)

    @classmethod
    def from_env(cls) -> "LedgerSettings":
        """Build settings from environment variables."""
        timeout = os.getenv("BOOT_TIMEOUT_SECONDS")
        return cls(
            db_path=resolve_db_path(os.getenv("DATABASE_URL")),
            user_id=os.getenv("APP_USER_ID") or DEFAULT_USER_ID,
            tenant_id=os.getenv("APP_TENANT_ID") or None,
            signing_key_hex=os.getenv("SIGNING_KEY_HEX") or None,
            boot_function_id=os.getenv("BOOT_FUNCTION_ID") or None,
            boot_timeout_seconds=(
                float(timeout) if timeout else DEFAULT_BOOT_TIMEOUT_SECONDS
            ),
            worker_batch_size=int(
                os.getenv("WORKER_BATCH_SIZE", str(DEFAULT_WORKER_BATCH_SIZE))
            ),
            worker_poll_interval=float(
                os.getenv("WORKER_POLL_INTERVAL", str(DEFAULT_WORKER_POLL_INTERVAL))
            ),
        )

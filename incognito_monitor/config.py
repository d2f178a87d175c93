import os
from dataclasses import dataclass
from pathlib import Path

PACKAGE_DIR = Path(__file__).resolve().parent
SAMPLE_DATA_PATH = PACKAGE_DIR / "data" / "nodes.sample.json"

DEFAULT_DATA_PATH = Path.home() / "incognito-data"
DEFAULT_LOG_FILE = Path.home() / ".config" / "incognito-monitor" / "monitor.log"


def _float_env(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def _int_env(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


@dataclass
class Settings:
    """Runtime settings, read from INCOGNITO_* environment variables."""

    data_path: Path = DEFAULT_DATA_PATH
    sample_path: Path = SAMPLE_DATA_PATH
    rpc_scheme: str = "http"
    rpc_timeout: float = 5.0
    call_deadline: float = 8.0
    block_count: int = 10
    refresh_interval: float = 30.0
    log_file: Path = DEFAULT_LOG_FILE
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        data_path = os.environ.get("INCOGNITO_DATA_PATH")
        log_file = os.environ.get("INCOGNITO_LOG_FILE")
        return cls(
            data_path=Path(data_path).expanduser() if data_path else DEFAULT_DATA_PATH,
            rpc_scheme=os.environ.get("INCOGNITO_RPC_SCHEME", "http"),
            rpc_timeout=_float_env("INCOGNITO_RPC_TIMEOUT", 5.0),
            call_deadline=_float_env("INCOGNITO_CALL_DEADLINE", 8.0),
            block_count=_int_env("INCOGNITO_BLOCK_COUNT", 10),
            refresh_interval=_float_env("INCOGNITO_REFRESH_INTERVAL", 30.0),
            log_file=Path(log_file).expanduser() if log_file else DEFAULT_LOG_FILE,
            log_level=os.environ.get("INCOGNITO_LOG_LEVEL", "INFO").upper(),
        )

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv


_HERE = Path(__file__).resolve()
_PROJECT_ROOT = _HERE.parents[1]
load_dotenv(_PROJECT_ROOT / ".env", override=False)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


def _cors_origins() -> list[str]:
    raw = os.getenv("BLUEDETECT_CORS_ORIGINS", "").strip()
    if not raw:
        return ["http://localhost:3000"]
    return [o.strip() for o in raw.split(",") if o.strip()]


@dataclass(frozen=True)
class Settings:
    upload_dir: Path = Path("uploads")
    probe_timeout_s: float = 15.0
    max_redirects: int = 5
    delay_s: float = 0.5
    retention_s: float = 24 * 60 * 60
    sweep_interval_s: float = 60 * 60
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            upload_dir=Path(os.getenv("BLUEDETECT_UPLOAD_DIR", "").strip() or "uploads"),
            probe_timeout_s=max(1.0, _env_float("BLUEDETECT_PROBE_TIMEOUT_S", 15.0)),
            max_redirects=max(0, _env_int("BLUEDETECT_MAX_REDIRECTS", 5)),
            delay_s=max(0.0, _env_float("BLUEDETECT_DELAY_MS", 500.0)) / 1000,
            retention_s=max(1.0, _env_float("BLUEDETECT_RETENTION_HOURS", 24.0)) * 60 * 60,
            sweep_interval_s=max(1.0, _env_float("BLUEDETECT_SWEEP_INTERVAL_S", 3600.0)),
            cors_origins=_cors_origins(),
            log_level=(os.getenv("BLUEDETECT_LOG_LEVEL", "").strip() or "INFO").upper(),
        )

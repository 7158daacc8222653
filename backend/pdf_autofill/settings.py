"""
Runtime settings for the auto-fill service.

Values come from `PDF_AUTOFILL_*` environment variables; `.env.local` and
`.env` are loaded by the application entry points before the first call to
`get_settings()`.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

ENV_PREFIX = "PDF_AUTOFILL_"


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


class Settings(BaseModel):
    base_dir: Path = Path(".")
    templates_dir: Path = Path("pdf-format")
    users_dir: Path = Path("data/users")
    temp_dir: Path = Path("temp")

    max_rows: int = Field(default=100, gt=0)
    max_upload_bytes: int = Field(default=5 * 1024 * 1024, gt=0)
    job_ttl_seconds: int = Field(default=30 * 60, gt=0)
    download_cleanup_delay: float = Field(default=30.0, ge=0)
    max_workers: int = Field(default=2, gt=0)
    automap_threshold: float = Field(default=0.5, ge=0, le=1)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        base_dir = Path(_env("BASE_DIR") or Path.cwd())
        return cls(
            base_dir=base_dir,
            templates_dir=Path(_env("TEMPLATES_DIR") or base_dir / "pdf-format"),
            users_dir=Path(_env("USERS_DIR") or base_dir / "data" / "users"),
            temp_dir=Path(_env("TEMP_DIR") or base_dir / "temp"),
            max_rows=int(_env("MAX_ROWS", "100")),
            max_upload_bytes=int(_env("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024))),
            job_ttl_seconds=int(_env("JOB_TTL_SECONDS", "1800")),
            download_cleanup_delay=float(_env("DOWNLOAD_CLEANUP_DELAY", "30")),
            max_workers=int(_env("MAX_WORKERS", "2")),
            automap_threshold=float(_env("AUTOMAP_THRESHOLD", "0.5")),
            log_level=_env("LOG_LEVEL", "INFO"),
        )

    def ensure_dirs(self) -> None:
        for directory in (self.templates_dir, self.users_dir, self.temp_dir):
            directory.mkdir(parents=True, exist_ok=True)


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

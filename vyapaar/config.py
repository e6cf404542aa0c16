"""Runtime configuration for VyapaarTrack.

Values come from environment variables, optionally seeded from a ``.env``
file in the working directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

DEFAULT_MODEL = "gemini-2.5-flash"


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    store_path: Path
    gemini_api_key: Optional[str]
    gemini_model: str
    classify_timeout: Optional[float]   # seconds, None waits indefinitely
    log_level: str

    @property
    def classification_enabled(self) -> bool:
        return bool(self.gemini_api_key)


def _optional_float(raw: Optional[str]) -> Optional[float]:
    if raw is None or not raw.strip():
        return None
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"VYAPAAR_CLASSIFY_TIMEOUT must be a number, got {raw!r}")
    return value if value > 0 else None


def load_settings(use_dotenv: bool = True) -> Settings:
    """Resolve settings from the environment (re-read on every call)."""
    if use_dotenv:
        load_dotenv(override=False)

    data_dir = Path(os.getenv("VYAPAAR_DATA_DIR", _PROJECT_ROOT / "data"))
    store_path = Path(os.getenv("VYAPAAR_STORE_PATH", data_dir / "local_storage.json"))

    return Settings(
        data_dir=data_dir,
        store_path=store_path,
        gemini_api_key=os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY") or None,
        gemini_model=os.getenv("VYAPAAR_GEMINI_MODEL", DEFAULT_MODEL),
        classify_timeout=_optional_float(os.getenv("VYAPAAR_CLASSIFY_TIMEOUT")),
        log_level=os.getenv("VYAPAAR_LOG_LEVEL", "INFO").upper(),
    )


def ensure_data_directory(settings: Settings) -> None:
    settings.store_path.parent.mkdir(parents=True, exist_ok=True)

import json
import logging
import os
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
BACKENDS = ("memory", "firebase")


@dataclass(frozen=True)
class Settings:
    backend: str = "memory"
    database_url: Optional[str] = None
    credentials_path: Optional[str] = None
    web_api_key: Optional[str] = None
    seed_path: Optional[str] = "data/seed.json"
    prefs_path: str = ".tracker_prefs.json"
    log_level: str = "INFO"
    currency: str = "₹"


def load_settings(env: Optional[Mapping[str, str]] = None, secrets: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from environment variables, falling back to Streamlit secrets.

    Environment wins over secrets so a deployment can override a checked-in
    secrets.toml without editing it.
    """
    env = os.environ if env is None else env
    secrets = secrets or {}

    def pick(key: str, default=None):
        value = env.get(key)
        if value in (None, ""):
            value = secrets.get(key, default)
        return value

    backend = str(pick("TRACKER_BACKEND", "memory")).lower()
    if backend not in BACKENDS:
        raise ValueError(f"TRACKER_BACKEND must be one of {BACKENDS}, got {backend!r}")

    return Settings(
        backend=backend,
        database_url=pick("FIREBASE_DATABASE_URL"),
        credentials_path=pick("FIREBASE_CREDENTIALS"),
        web_api_key=pick("FIREBASE_WEB_API_KEY"),
        seed_path=pick("TRACKER_SEED", "data/seed.json"),
        prefs_path=pick("TRACKER_PREFS_PATH", ".tracker_prefs.json"),
        log_level=str(pick("TRACKER_LOG_LEVEL", "INFO")).upper(),
        currency=pick("TRACKER_CURRENCY", "₹"),
    )


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    # streamlit re-runs the script on every interaction
    if not any(getattr(h, "_tracker_handler", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._tracker_handler = True
        root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


def year_options(today: Optional[date] = None, span: int = 2) -> list[int]:
    current = (today or date.today()).year
    return list(range(current - span, current + span + 1))


class YearPreference:
    """Selected display year, kept in a small local JSON file.

    Non-authoritative: a missing or unreadable file falls back to the
    current calendar year.
    """

    def __init__(self, path: str):
        self.path = Path(path)

    def load(self, today: Optional[date] = None) -> int:
        fallback = (today or date.today()).year
        if not self.path.exists():
            return fallback
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return int(data["selectedYear"])
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("ignoring unreadable year preference %s: %s", self.path, e)
            return fallback

    def save(self, year: int) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump({"selectedYear": int(year)}, f)

import os
import logging
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

REPORT_BACKENDS = ("firebase", "rest", "memory")
PREFERENCE_BACKENDS = ("postgres", "memory")


class Settings(BaseModel):
    report_backend: str = "firebase"
    firebase_credentials: Optional[str] = None
    firebase_database_url: Optional[str] = None
    firebase_auth_token: Optional[str] = None
    reports_path: str = "reports"
    poll_interval_seconds: float = 2.0
    preferences_backend: str = "postgres"
    database_url: Optional[str] = None
    profile_id: str = "default"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment (and a .env file if present)."""
        load_dotenv()
        return cls(
            report_backend=os.getenv("REPORT_BACKEND", "firebase").lower(),
            firebase_credentials=os.getenv("FIREBASE_CREDENTIALS"),
            firebase_database_url=os.getenv("FIREBASE_DATABASE_URL"),
            firebase_auth_token=os.getenv("FIREBASE_AUTH_TOKEN"),
            reports_path=os.getenv("REPORTS_PATH", "reports"),
            poll_interval_seconds=float(os.getenv("POLL_INTERVAL_SECONDS", "2.0")),
            preferences_backend=os.getenv("PREFERENCES_BACKEND", "postgres").lower(),
            database_url=os.getenv("DATABASE_URL"),
            profile_id=os.getenv("PROFILE_ID", "default"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)

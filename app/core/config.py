"""
Application settings.

Values come from environment variables, optionally seeded from a `.env` file
next to the project root.
"""
import os
from typing import List

from dotenv import load_dotenv

env_path = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), ".env")
load_dotenv(dotenv_path=env_path)


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _get_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Runtime configuration, read once at import time"""

    def __init__(self):
        # ----------------------------------------------------
        # Application
        # ----------------------------------------------------
        self.PROJECT_NAME: str = os.getenv("PROJECT_NAME", "Secure File Store")
        self.VERSION: str = os.getenv("VERSION", "1.0.0")
        self.API_V1_STR: str = os.getenv("API_V1_STR", "/api/v1")
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
        self.BACKEND_CORS_ORIGINS: List[str] = _split_csv(
            os.getenv("BACKEND_CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")
        )

        # ----------------------------------------------------
        # Database
        # ----------------------------------------------------
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./filestore.db")

        # ----------------------------------------------------
        # Blob storage and encryption
        # ----------------------------------------------------
        self.BLOB_STORAGE_DIR: str = os.getenv("BLOB_STORAGE_DIR", "./uploads")
        self.MAX_FILE_SIZE_MB: int = int(os.getenv("MAX_FILE_SIZE_MB", "50"))
        # base64 or hex encoded 32-byte master key
        self.FILE_ENCRYPTION_KEY: str = os.getenv("FILE_ENCRYPTION_KEY", "")
        self.PER_FILE_KEYS: bool = _get_bool("PER_FILE_KEYS", True)

        # ----------------------------------------------------
        # On-chain anchoring (empty URL disables it)
        # ----------------------------------------------------
        self.ANCHOR_SERVICE_URL: str = os.getenv("ANCHOR_SERVICE_URL", "")
        self.ANCHOR_TIMEOUT_SECONDS: float = float(os.getenv("ANCHOR_TIMEOUT_SECONDS", "10"))
        self.ANCHOR_MAX_RETRIES: int = int(os.getenv("ANCHOR_MAX_RETRIES", "3"))
        self.ANCHOR_BACKOFF_SECONDS: float = float(os.getenv("ANCHOR_BACKOFF_SECONDS", "1"))
        self.ANCHOR_VERSION: str = os.getenv("ANCHOR_VERSION", "v1.0")

        # ----------------------------------------------------
        # Role administration
        # ----------------------------------------------------
        # Empty list keeps authority self-registration open
        self.AUTHORITY_ALLOWLIST: List[str] = [
            address.lower() for address in _split_csv(os.getenv("AUTHORITY_ALLOWLIST", ""))
        ]


settings = Settings()

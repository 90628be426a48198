# bookcatalog/config.py
"""Configuration management."""
import os

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    """Application configuration.

    Values are read from the environment when the instance is created, so
    tests can build a ``Settings`` after patching ``os.environ``.
    """

    def __init__(self) -> None:
        # Server
        self.HOST = os.getenv("BOOKCATALOG_HOST", "0.0.0.0")
        self.PORT = int(os.getenv("BOOKCATALOG_PORT", "5000"))
        self.LOG_LEVEL = os.getenv("BOOKCATALOG_LOG_LEVEL", "INFO").upper()

        # Bootstrap
        self.SEED = _env_bool("BOOKCATALOG_SEED", True)

        # Auth
        self.TOKEN_TTL_SECONDS = int(os.getenv("BOOKCATALOG_TOKEN_TTL_SECONDS", "86400"))

        # Catalog
        self.STRICT_CATEGORY_REFS = _env_bool("BOOKCATALOG_STRICT_CATEGORY_REFS", False)


def get_settings() -> Settings:
    return Settings()

"""
Configuration settings for credgen.

Values come from ``CREDGEN_``-prefixed environment variables or a ``.env``
file in the working directory.
"""

import logging
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="CREDGEN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # Shown in forwarder alias descriptions
    product_name: str = "credgen"

    # Forwarder HTTP
    http_timeout_seconds: float = 10.0

    # Secret settings are padded to a multiple of this many characters
    options_frame_size: int = Field(default=512, ge=1)

    # CLI state file and the user's Fernet key; no key means secrets stay buffered
    state_path: Path = Path.home() / ".credgen" / "state.json"
    user_key: Optional[str] = None

    def configure_logging(self, handler: Optional[logging.Handler] = None) -> None:
        """Configure the root logger from these settings.

        *handler* replaces the default stderr handler (the CLI passes a
        ``RichHandler``). A file handler is added when ``log_file`` is set.
        """
        level = getattr(logging, self.log_level.upper(), logging.INFO)

        handlers: list[logging.Handler] = [handler or logging.StreamHandler()]
        if self.log_file:
            file_handler = logging.FileHandler(self.log_file, mode="a")
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT, "%Y-%m-%d %H:%M:%S"))
            handlers.append(file_handler)

        logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)

        # httpx logs every request line at INFO
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)


# Global settings instance
settings = Settings()

import os
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings

# Portable data folder kept inside the media root
DATA_SUBFOLDER = ".remote-viewer"


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # App
    APP_ENV: str = "development"
    APP_DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    RATE_LIMIT_DEFAULT: str = "200/minute"

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:80"]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Any) -> list[str]:
        if isinstance(v, str):
            import json
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(",")]
        return v

    # Local storage; set one of these, there is no default folder
    MEDIA_ROOT: str = ""
    DATA_DIR: str = ""

    @property
    def data_dir(self) -> str | None:
        if self.DATA_DIR:
            return os.path.abspath(self.DATA_DIR)
        if self.MEDIA_ROOT:
            return os.path.join(os.path.abspath(self.MEDIA_ROOT), DATA_SUBFOLDER)
        return None

    # Published read-only copy of the remote folder (e.g. a CDN in front of the FTP host)
    REMOTE_MEDIA_BASE: str = ""
    HTTP_TIMEOUT_SECONDS: float = 15.0

    @field_validator("REMOTE_MEDIA_BASE", mode="before")
    @classmethod
    def ensure_trailing_slash(cls, v: str) -> str:
        v = (v or "").strip()
        if v and not v.endswith("/"):
            v += "/"
        return v

    @property
    def remote_read_enabled(self) -> bool:
        return bool(self.REMOTE_MEDIA_BASE)

    # FTP for remote writes; host, user, pass and path are all required
    FTP_HOST: str = ""
    FTP_USER: str = ""
    FTP_PASS: str = ""
    FTP_PORT: int = 21
    FTP_REMOTE_PATH: str = ""
    FTP_SECURE: bool = False
    FTP_TIMEOUT_SECONDS: float = 15.0

    @field_validator("FTP_HOST", "FTP_USER", "FTP_PASS", "FTP_REMOTE_PATH", mode="before")
    @classmethod
    def strip_ftp_values(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @property
    def ftp_enabled(self) -> bool:
        return bool(self.FTP_HOST and self.FTP_USER and self.FTP_PASS and self.FTP_REMOTE_PATH)

    # One time zone per deployment; slot grids are read in this zone
    SCHEDULE_TIMEZONE: str = "UTC"

    @field_validator("SCHEDULE_TIMEZONE")
    @classmethod
    def check_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown time zone: {v}") from e
        return v

    @property
    def timezone(self) -> ZoneInfo:
        return ZoneInfo(self.SCHEDULE_TIMEZONE)


settings = Settings()

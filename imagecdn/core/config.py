import os
from typing import List, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from .errors import ConfigurationError

DEFAULT_ALLOWED_ORIGINS = ["http://localhost:3000", "http://localhost:5173"]
DEFAULT_ALLOWED_FORMATS = ["jpg", "jpeg", "png", "gif", "webp", "svg"]


def _split_csv(value: Optional[str], default: List[str]) -> List[str]:
    if not value:
        return list(default)
    return [part.strip() for part in value.split(",") if part.strip()]


class Settings(BaseModel):
    """Environment-driven configuration.

    Built once at startup with `Settings.from_env()` and handed to
    `create_app`; nothing reads the environment after that.
    """

    model_config = ConfigDict(frozen=True)

    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None

    host: str = "0.0.0.0"
    port: int = 5000
    environment: str = "development"
    log_level: str = "INFO"

    allowed_origins: List[str] = DEFAULT_ALLOWED_ORIGINS
    max_file_size: int = 10 * 1024 * 1024
    allowed_formats: List[str] = DEFAULT_ALLOWED_FORMATS
    upload_folder: str = "uploads"

    # 100 requests per client per 15 minutes
    rate_limit_window_seconds: int = 15 * 60
    rate_limit_max: int = 100

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        try:
            return cls(
                cloudinary_cloud_name=env.get("CLOUDINARY_CLOUD_NAME") or None,
                cloudinary_api_key=env.get("CLOUDINARY_API_KEY") or None,
                cloudinary_api_secret=env.get("CLOUDINARY_API_SECRET") or None,
                host=env.get("HOST", "0.0.0.0"),
                port=int(env.get("PORT", "5000")),
                environment=env.get("APP_ENV", "development").lower(),
                log_level=env.get("LOG_LEVEL", "INFO").upper(),
                allowed_origins=_split_csv(env.get("ALLOWED_ORIGINS"), DEFAULT_ALLOWED_ORIGINS),
                max_file_size=int(env.get("MAX_FILE_SIZE", str(10 * 1024 * 1024))),
                allowed_formats=[
                    f.lower() for f in _split_csv(env.get("ALLOWED_FORMATS"), DEFAULT_ALLOWED_FORMATS)
                ],
                upload_folder=env.get("UPLOAD_FOLDER", "uploads"),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def require_credentials(self) -> None:
        """Refuse to run without a complete set of Cloudinary credentials."""
        missing = [
            name
            for name, value in (
                ("CLOUDINARY_CLOUD_NAME", self.cloudinary_cloud_name),
                ("CLOUDINARY_API_KEY", self.cloudinary_api_key),
                ("CLOUDINARY_API_SECRET", self.cloudinary_api_secret),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                "Cloudinary configuration is incomplete. Missing: " + ", ".join(missing)
            )

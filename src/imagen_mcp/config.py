"""Application configuration via environment variables."""

from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Output / storage
    output_dir: str = str(Path.home() / "Downloads" / "vertexai-imagen-files")
    db: str | None = None

    # Job queue
    max_concurrent_jobs: int = 2
    cancel_retention_seconds: int = 3600
    cancel_sweep_interval_seconds: int = 300

    # Batch processing
    batch_poll_interval_ms: int = 2000
    batch_timeout_ms: int = 600_000

    # Vertex AI rate limiting
    rate_limit_max_calls: int = 60
    rate_limit_window_ms: int = 60_000

    # Google Cloud
    google_project_id: str | None = None
    google_region: str = "us-central1"
    google_api_key: str | None = None
    google_access_token: str | None = None

    # Imagen models
    imagen_model: str = "imagen-3.0-generate-002"
    edit_model: str = "imagen-3.0-capability-001"
    upscale_model: str = "imagegeneration@002"
    request_timeout_seconds: float = 60.0

    # Logging
    debug: bool = False
    log_level: str = "info"
    json_logs: bool = False

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "VERTEXAI_IMAGEN_",
    }

    @property
    def database_path(self) -> Path:
        """Return the SQLite file holding job history."""
        if self.db:
            return Path(self.db).expanduser()
        return Path(self.output_dir).expanduser() / "data" / "vertexai-imagen.db"

    @property
    def effective_database_url(self) -> str:
        return f"sqlite+aiosqlite:///{self.database_path}"

    @property
    def effective_log_level(self) -> str:
        return "debug" if self.debug else self.log_level


settings = Settings()

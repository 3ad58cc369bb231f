"""Configuration loaded from environment (.env) and defaults."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Locate the project root .env file regardless of CWD
_THIS_DIR = Path(__file__).resolve().parent          # reelpipe/
_PROJECT_ROOT = _THIS_DIR.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE) if _ENV_FILE.exists() else ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # LLM provider: openai | anthropic
    reelpipe_llm_provider: str = "openai"

    # OpenAI (or any OpenAI-compatible endpoint such as DeepSeek)
    openai_api_key: str | None = None
    reelpipe_openai_model: str = "gpt-4o-mini"
    reelpipe_openai_base_url: str | None = None

    # Anthropic
    anthropic_api_key: str | None = None
    reelpipe_anthropic_model: str = "claude-3-5-sonnet-20241022"

    # Data directory: job/tenant file stores, local storage, config overrides
    reelpipe_data_dir: str = "./data"

    # Scratch space for assembly workspaces (defaults to <data_dir>/work)
    reelpipe_work_dir: str | None = None

    # Background audio tracks mixed into assembled videos
    reelpipe_audio_dir: str | None = None

    # Postgres connection string; file stores are used when unset
    reelpipe_database_url: str | None = None

    # Static bearer token the cron trigger must present
    reelpipe_cron_secret: str | None = None

    # Batch sizes
    reelpipe_generate_batch_size: int = 5
    reelpipe_create_frames_concurrency: int = 2

    # Encoder
    reelpipe_ffmpeg_path: str = "ffmpeg"
    reelpipe_encoder_timeout: float = 40.0
    reelpipe_video_width: int = 1080
    reelpipe_video_height: int = 1920
    reelpipe_video_fps: int = 25
    reelpipe_audio_volume: float = 0.3

    # Collaborator HTTP timeout (seconds)
    reelpipe_http_timeout: float = 60.0

    # Frame renderer service
    reelpipe_renderer_url: str = "http://localhost:3001/render"
    reelpipe_renderer_token: str | None = None

    # Storage backend: local | cloudinary
    reelpipe_storage_backend: str = "local"
    reelpipe_frames_folder: str = "quiz-frames"
    reelpipe_videos_folder: str = "quiz-videos"

    # Video platform
    reelpipe_youtube_category_id: str = "27"
    reelpipe_youtube_privacy: str = "public"

    # Fernet key used by the credential vault
    reelpipe_vault_key: str | None = None

    # Tenant / playlist cache TTL (seconds)
    reelpipe_cache_ttl: float = 300.0

    # Recovery sweep
    reelpipe_max_recovery_attempts: int = 3
    reelpipe_recovery_backoff_seconds: float = 60.0
    reelpipe_claim_lease_seconds: float = 900.0

    # Fabricate marked fallback content when the LLM response fails validation
    reelpipe_allow_fallback_content: bool = True

    # When false, upload runs for every tenant regardless of the schedule
    reelpipe_respect_schedule: bool = True

    # CORS origins (comma-separated)
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Server port (hosting platforms inject PORT)
    port: int = 8000

    @property
    def data_dir(self) -> Path:
        """Get data directory as Path.

        Relative paths are resolved against the project root (not CWD).
        """
        p = Path(self.reelpipe_data_dir)
        if not p.is_absolute():
            return (_PROJECT_ROOT / p).resolve()
        return p.resolve()

    @property
    def work_dir(self) -> Path:
        """Parent directory for per-job assembly workspaces."""
        if self.reelpipe_work_dir:
            return Path(self.reelpipe_work_dir).resolve()
        return self.data_dir / "work"

    @property
    def audio_dir(self) -> Path:
        if self.reelpipe_audio_dir:
            return Path(self.reelpipe_audio_dir).resolve()
        return self.data_dir / "audio"

    @property
    def storage_dir(self) -> Path:
        """Root of the local storage backend."""
        return self.data_dir / "storage"

    @property
    def config_dir(self) -> Path:
        """YAML overrides for format rules, personas and schedules."""
        return _PROJECT_ROOT / "config"

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def ensure_dirs(self) -> None:
        """Ensure all data directories exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.work_dir.mkdir(parents=True, exist_ok=True)
        self.storage_dir.mkdir(parents=True, exist_ok=True)


def get_settings() -> Settings:
    settings = Settings()
    settings.ensure_dirs()
    return settings

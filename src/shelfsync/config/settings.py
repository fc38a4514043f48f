"""Application settings loaded from environment variables and .env files."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SpotifySettings(BaseSettings):
    """Spotify OAuth and Web API settings."""

    model_config = SettingsConfigDict(
        env_prefix="SPOTIFY_", env_file=".env", extra="ignore"
    )

    client_id: str = Field(default="", description="Spotify app client ID")
    client_secret: str = Field(default="", description="Spotify app client secret")
    redirect_uri: str = Field(
        default="http://localhost:8000/callback",
        description="OAuth callback URL registered with the Spotify app",
    )
    scopes: str = Field(
        default=(
            "user-library-read user-read-currently-playing "
            "playlist-read-private playlist-read-collaborative"
        ),
        description="Space separated OAuth scopes",
    )
    api_base_url: str = "https://api.spotify.com/v1"
    accounts_base_url: str = "https://accounts.spotify.com"
    timeout_seconds: float = 30.0

    @property
    def is_configured(self) -> bool:
        """True if both client credentials are present."""
        return bool(self.client_id.strip() and self.client_secret.strip())


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_", env_file=".env", extra="ignore"
    )

    url: str = "sqlite+aiosqlite:///./data/shelfsync.db"
    echo: bool = False
    # create_all at startup; set False when the schema is managed by `alembic upgrade head`
    auto_create_tables: bool = True


class SyncSettings(BaseSettings):
    """Library sync tuning.

    match_window: number of consecutive records that must line up with the
        cached snapshot before a merge point is accepted.
    max_new_items: upper bound on the merge offset inside the first page.
    freshness_probe_size: number of leading items compared by the fast
        freshness check.
    """

    model_config = SettingsConfigDict(
        env_prefix="SYNC_", env_file=".env", extra="ignore"
    )

    page_size: int = Field(default=50, ge=1, le=50)
    chunk_size: int = Field(default=50, ge=1)
    match_window: int = Field(default=10, ge=1)
    max_new_items: int = Field(default=45, ge=1)
    freshness_probe_size: int = Field(default=10, ge=1, le=50)

    @model_validator(mode="after")
    def _window_fits_page(self) -> "SyncSettings":
        if self.match_window > self.page_size:
            raise ValueError("match_window must not exceed page_size")
        return self


class ObservabilitySettings(BaseSettings):
    """Logging settings."""

    model_config = SettingsConfigDict(
        env_prefix="OBSERVABILITY_", env_file=".env", extra="ignore"
    )

    log_json_format: bool = False


class Settings(BaseSettings):
    """Top-level application settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "shelfsync"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000
    data_dir: Path = Path("./data")

    spotify: SpotifySettings = Field(default_factory=SpotifySettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {value}")
        return level

    def ensure_directories(self) -> None:
        """Create the data directory if missing."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _get_sqlite_db_path(self) -> Path | None:
        """Return the SQLite file path, or None for other backends / in-memory DBs."""
        url = self.database.url
        if not url.startswith("sqlite"):
            return None
        _, _, path = url.partition(":///")
        if not path or path == ":memory:" or "mode=memory" in path:
            return None
        return Path(path)


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings."""
    return Settings()

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./jobboard.db"

    # Auth (comma-separated list of accepted tokens)
    auth_tokens: str = ""

    # Blob storage (Cloudinary; upload_prefix overrides the API host)
    storage_upload_prefix: str = ""
    storage_cloud_name: str = ""
    storage_api_key: str = ""
    storage_api_secret: str = ""
    storage_folder: str = "job-board"
    storage_timeout_seconds: int = 60

    # Upload limits
    max_image_mb: int = 5
    max_document_mb: int = 20
    max_recording_mb: int = 100

    # App
    debug: bool = False
    allowed_origins: str = ""

    def get_auth_tokens(self) -> set[str]:
        """Parse configured auth tokens into a set."""
        return {token.strip() for token in self.auth_tokens.split(",") if token.strip()}


settings = Settings()

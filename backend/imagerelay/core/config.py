from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # "r2" (S3-compatible Cloudflare R2) or "gcs"
    STORAGE_BACKEND: str = "r2"
    R2_ACCESS_KEY_ID: str | None = None
    R2_SECRET_ACCESS_KEY: str | None = None
    R2_ENDPOINT_URL: str = "https://514e56c3c68540ca4fc10652e9a98a5b.r2.cloudflarestorage.com"
    R2_REGION: str = "auto"
    STORAGE_BUCKET_NAME: str = "public-images"
    GCS_PROJECT_ID: str | None = None
    CDN_BASE_URL: str = "https://cdn-public.wrappedbot.com"

    HTTP_TIMEOUT_SECONDS: float = 30.0
    JPEG_QUALITY: int = 90
    DEFAULT_FONT_SIZE: int = 40
    EMOJI_SIZE: int = 128
    DISCORD_API_BASE_URL: str = "https://discord.com/api/v10"

    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        # Ignore extra environment variables that aren't defined here
        extra="ignore"
    )

settings = Settings()

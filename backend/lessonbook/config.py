from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    database_url: str = "sqlite+aiosqlite:///./lessonbook.db"

    # Lesson images and produced archives
    media_dir: str = "media"
    export_dir: str = "exports"
    max_upload_mb: int = 25

    # Seeding: semesters created with every new year, years created on first start
    default_semesters: list[str] = ["Semester 1", "Semester 2", "Semester 3"]
    seed_years: list[str] = []

    log_level: str = "INFO"
    archive_rate_limit: str = "20/minute"

    cors_origins: str = "http://localhost,http://localhost:3000"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    APP_NAME: str = "generic-repository"

    DATABASE_URL: str = "sqlite+aiosqlite:///./generic_repository.db"
    DATABASE_ECHO: bool = False

    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DATABASE: str = "generic_repository"

    DEFAULT_PAGE_SIZE: int = 5


settings = Settings()

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str | None = None
    DB_USER: str = "todo"
    DB_PASSWORD: str = ""
    DB_HOST: str = "localhost"
    DB_PORT: str = "3306"
    DB_NAME: str = "todo"

    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    TOKEN_LIFETIME_HOURS: int = 24
    BCRYPT_ROUNDS: int = 12

    CODE_EXPIRY_MINUTES: int = 15

    REMINDER_HOURS_BEFORE: int = 24
    REMINDER_WINDOW_MINUTES: int = 5
    REMINDER_INTERVAL_MINUTES: int = 5
    CLEANUP_INTERVAL_MINUTES: int = 60
    SCHEDULER_ENABLED: bool = True

    RESEND_API_KEY: str | None = None
    RESEND_API_URL: str = "https://api.resend.com/emails"
    EMAIL_FROM: str = "noreply@todo.local"
    EMAIL_TIMEOUT_SECONDS: float = 10.0
    EMAIL_WORKERS: int = 2
    APP_NAME: str = "Todo App"

    CORS_ORIGINS: list[str] = ["*"]
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    @property
    def SQLALCHEMY_DATABASE_URI(self):
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"mysql+pymysql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()

# app/config.py

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./buyers.db"

    AUTH_SECRET_KEY: str = "change-me-in-prod"
    AUTH_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 30

# вход по magic link
    APP_BASE_URL: str = "http://127.0.0.1:8000"
    MAGIC_LINK_EXPIRE_MINUTES: int = 60 * 24
    EMAIL_SERVER_HOST: str = ""     # пусто -> ссылка пишется в лог
    EMAIL_SERVER_PORT: int = 1025
    EMAIL_SERVER_USER: str = ""
    EMAIL_SERVER_PASSWORD: str = ""
    EMAIL_FROM: str = "noreply@buyer-lead-intake.com"

# демо-вход без почты
    DEMO_LOGIN_ENABLED: bool = True
    DEMO_USER_EMAIL: str = "demo@example.com"
    DEMO_USER_NAME: str = "Demo User"

    RATE_LIMIT_CAPACITY: int = 10
    RATE_LIMIT_REFILL_RATE: float = 1.0     # токенов в секунду

    CSV_MAX_ROWS: int = 200
    HISTORY_DISPLAY_LIMIT: int = 5
    PAGE_SIZE_MAX: int = 100

    LOG_DIR: str = "app/log"
    LOG_PRINT: str = "1"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"
    )

settings = Settings()

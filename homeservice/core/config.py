from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PROJECT_NAME: str = "Home Service Bookings"
    API_V1_STR: str = "/api"

    # Server
    PORT: int = 8000
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    TIMEZONE: str = "Asia/Kolkata"

    # Security
    SECRET_KEY: str = "dev_secret_key"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 8
    ADMIN_EMAIL: str = ""
    ADMIN_PASSWORD: str = ""

    # Storage ("memory" or "supabase")
    STORE_PROVIDER: str = "memory"
    STORE_TIMEOUT_SECONDS: float = 10.0

    # Supabase
    SUPABASE_URL: str = ""
    SUPABASE_KEY: str = ""
    SUPABASE_TABLE: str = "bookings"

    # Notifications
    EMAIL_ENABLED: bool = True
    STAFF_EMAIL: str = ""
    NOTIFY_TIMEOUT_SECONDS: float = 15.0

    SMTP_SERVER: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""

    # One-time codes
    OTP_TTL_MINUTES: int = 5

    # Scheduler
    SCHEDULER_ENABLED: bool = True
    DIGEST_HOUR: int = 7
    DIGEST_MINUTE: int = 0
    HOURLY_REMINDERS_ENABLED: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()

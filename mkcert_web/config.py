from pydantic_settings import BaseSettings
from typing import Optional, List
from pathlib import Path

class Settings(BaseSettings):
    # Server
    HOST: str = "localhost"
    PORT: int = 3000
    HTTPS_PORT: int = 3443
    ENABLE_HTTPS: bool = False
    SSL_DOMAIN: str = "localhost"
    FORCE_HTTPS: bool = False
    RELOAD: bool = False
    LOG_LEVEL: str = "INFO"
    PUBLIC_DIR: Optional[str] = "public"

    # Authentication
    ENABLE_AUTH: bool = False
    AUTH_USERNAME: str = "admin"
    AUTH_PASSWORD: str = "admin"
    SESSION_SECRET: str = "mkcert-web-secret-key-change-in-production"
    SESSION_MAX_AGE: int = 24 * 60 * 60  # 24 hours

    # Storage
    CERTIFICATES_DIR: str = "certificates"
    DATABASE_URL: str = "sqlite:///./data/audit.db"
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    # Command execution
    COMMAND_TIMEOUT: int = 30
    COMMAND_MAX_OUTPUT: int = 1024 * 1024

    # Rate limiting (slowapi/limits notation)
    RATE_LIMIT_ENABLED: bool = True
    CLI_RATE_LIMIT: str = "10 per 15 minutes"
    API_RATE_LIMIT: str = "100 per 15 minutes"
    AUTH_RATE_LIMIT: str = "5 per 15 minutes"
    GENERAL_RATE_LIMIT: str = "200 per 15 minutes"

    # Email notifications
    EMAIL_ENABLED: bool = False
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_SECURE: bool = False
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_TLS_VERIFY: bool = True
    EMAIL_FROM: str = "mkcert-web@localhost"
    EMAIL_TO: Optional[str] = None
    EMAIL_SUBJECT: str = "Certificate Expiry Alert - mkcert Web UI"

    # Certificate monitoring
    MONITORING_ENABLED: bool = False
    CERT_CHECK_INTERVAL: str = "0 8 * * *"
    CERT_WARNING_DAYS: int = 30
    CERT_CRITICAL_DAYS: int = 7
    MONITOR_INCLUDE_UPLOADED: bool = True

    # Theme
    THEME_MODE: str = "light"
    THEME_PRIMARY_COLOR: str = "#007bff"
    THEME_DARK_MODE: bool = False

    # CORS
    CORS_ORIGINS: list = ["http://localhost:3000", "https://localhost:3443"]

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def email_recipients(self) -> List[str]:
        if not self.EMAIL_TO:
            return []
        return [addr.strip() for addr in self.EMAIL_TO.split(",") if addr.strip()]

    @property
    def certificates_root(self) -> Path:
        return Path(self.CERTIFICATES_DIR).expanduser().resolve()

settings = Settings()

# Ensure database directory exists
if settings.DATABASE_URL.startswith("sqlite:///"):
    db_path = Path(settings.DATABASE_URL.replace("sqlite:///", ""))
    db_path.parent.mkdir(parents=True, exist_ok=True)

import os
import tempfile
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class Settings:
    # API Ayarları
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8000"))

    # Veritabanı Ayarları
    # LIBRARY_DB_FILE yoksa işlem başına geçici dosya
    database_file: str = (
        os.getenv("LIBRARY_DB_FILE")
        or os.path.join(tempfile.gettempdir(), f"reading_tracker_{os.getpid()}.db")
    )
    database_timeout: float = float(os.getenv("DATABASE_TIMEOUT", "5"))

    # Güvenlik Ayarları
    # Varsayılan yok: imzalama anahtarı eksikse uygulama başlatılamaz
    jwt_secret_key: Optional[str] = os.getenv("JWT_SECRET") or os.getenv("JWT_SECRET_KEY")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    access_token_ttl_seconds: int = int(os.getenv("ACCESS_TOKEN_TTL_SECONDS", "900"))  # 15 dakika
    refresh_token_ttl_seconds: int = int(os.getenv("REFRESH_TOKEN_TTL_SECONDS", "604800"))  # 7 gün
    min_password_length: int = int(os.getenv("MIN_PASSWORD_LENGTH", "8"))

    # Arkadaşlık Davetleri
    invitation_ttl_days: int = int(os.getenv("INVITATION_TTL_DAYS", "7"))

    # Uygulama Ayarları
    app_name: str = os.getenv("APP_NAME", "Reading Tracker API")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    debug: bool = _env_flag("DEBUG")
    environment: str = os.getenv("ENVIRONMENT", "development")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()

"""Configuration settings for the application."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Define base directory
BASE_DIR = Path(__file__).parent.parent.parent

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)


# Define data directories from environment variables
DATA_DIR = Path(os.getenv("DATA_DIR", "./data"))
LOGS_DIR = Path(os.getenv("LOG_DIR", "./logs"))

# Review settings
REVIEW_INTERVALS = [1, 2, 4, 7, 15, 30, 60]  # days, indexed by mastery level
UPCOMING_WINDOW_DAYS = 3
DAY_MS = 24 * 60 * 60 * 1000

# Vocabulary categories, the last one is the fallback
VOCAB_CATEGORIES = [
    "日常生活",
    "工作职场",
    "科技数码",
    "情感表达",
    "学术教育",
    "其他",
]
DEFAULT_CATEGORY = "其他"

WRONG_QUESTION_TYPES = ["quiz", "dictate", "term", "deep"]

# Local storage keys
VOCAB_KEY = "vocab_book"
REVIEW_SCHEDULE_KEY = "review_schedule"
WRONG_QUESTIONS_KEY = "wrong_questions"
CHECKIN_KEY = "study_checkin_data"
STATS_KEY = "study_stats"
AUTH_TOKEN_KEY = "auth-token"
AUTH_USER_KEY = "auth-user"


def ensure_directories() -> None:
    """Ensure all required directories exist."""
    directories = [
        DATA_DIR,
        LOGS_DIR,
    ]

    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)


@dataclass
class PathSettings:
    """Path configuration settings."""
    base_dir: Path = BASE_DIR
    data_dir: Path = DATA_DIR
    logs_dir: Path = LOGS_DIR


@dataclass
class DatabaseSettings:
    """Server database configuration settings."""
    url: str = os.getenv("DATABASE_URL", f"sqlite:///{DATA_DIR / 'lexibook.db'}")
    echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"


@dataclass
class LocalStoreSettings:
    """Client-side key-value store settings."""
    url: str = os.getenv("LOCAL_STORE_URL", f"sqlite:///{DATA_DIR / 'local_storage.db'}")


@dataclass
class ServerSettings:
    """Sync server settings."""
    host: str = os.getenv("HOST", "127.0.0.1")
    port: int = int(os.getenv("PORT", "3001"))
    jwt_secret: str = os.getenv("JWT_SECRET", "your-secret-key-change-this-in-production")
    token_expires_days: int = int(os.getenv("TOKEN_EXPIRES_DAYS", "30"))
    max_content_length: int = int(os.getenv("MAX_CONTENT_LENGTH", str(10 * 1024 * 1024)))
    min_password_length: int = int(os.getenv("MIN_PASSWORD_LENGTH", "6"))


@dataclass
class SyncSettings:
    """Client synchronization settings."""
    api_url: str = os.getenv("API_URL", "http://localhost:3001/api")
    auto_sync_interval: float = float(os.getenv("AUTO_SYNC_INTERVAL", "300"))  # 5 minutes
    reserved_prefix: str = "auth-"
    request_timeout: float = float(os.getenv("REQUEST_TIMEOUT", "30"))


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = os.getenv("LOG_LEVEL", "INFO")
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    dir: Optional[str] = os.getenv("LOG_DIR", None)
    rotation: str = os.getenv("LOG_ROTATION", "midnight")
    interval: int = int(os.getenv("LOG_INTERVAL", "1"))
    backup_count: int = int(os.getenv("LOG_BACKUP_COUNT", "7"))


@dataclass
class MonitoringSettings:
    """Prometheus exporter settings."""
    port: Optional[int] = int(os.getenv("METRICS_PORT")) if os.getenv("METRICS_PORT") else None


def get_path_settings() -> PathSettings:
    """Get path settings."""
    return PathSettings()


def get_database_settings() -> DatabaseSettings:
    """Get database settings."""
    return DatabaseSettings()


def get_local_store_settings() -> LocalStoreSettings:
    """Get local store settings."""
    return LocalStoreSettings()


def get_server_settings() -> ServerSettings:
    """Get server settings."""
    return ServerSettings()


def get_sync_settings() -> SyncSettings:
    """Get sync settings."""
    return SyncSettings()


def get_logging_settings() -> LoggingSettings:
    """Get logging settings."""
    return LoggingSettings()


def get_monitoring_settings() -> MonitoringSettings:
    """Get monitoring settings."""
    return MonitoringSettings()


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    paths: PathSettings = field(default_factory=get_path_settings)
    database: DatabaseSettings = field(default_factory=get_database_settings)
    local_store: LocalStoreSettings = field(default_factory=get_local_store_settings)
    server: ServerSettings = field(default_factory=get_server_settings)
    sync: SyncSettings = field(default_factory=get_sync_settings)
    logging: LoggingSettings = field(default_factory=get_logging_settings)
    monitoring: MonitoringSettings = field(default_factory=get_monitoring_settings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        if self.server.port < 1:
            raise ValueError("PORT must be positive")

        if self.server.token_expires_days < 1:
            raise ValueError("TOKEN_EXPIRES_DAYS must be positive")

        if self.server.min_password_length < 1:
            raise ValueError("MIN_PASSWORD_LENGTH must be positive")

        if self.sync.auto_sync_interval <= 0:
            raise ValueError("AUTO_SYNC_INTERVAL must be positive")


# Create global settings instance
settings = Settings()
settings.validate()

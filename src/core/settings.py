import os
from typing import Any
from pathlib import Path

PROJECT_NAME = "bronze_ingest"

# Paths
PROJECT_ROOT_DIR = Path(__file__).parent.parent.parent.resolve()

CONFIG_BASE_DIRECTORY_PATH = Path(os.getenv("BRONZE_CONFIG_DIR", PROJECT_ROOT_DIR / "configs"))
LOG_FOLDER = Path(os.getenv("BRONZE_LOG_DIR", PROJECT_ROOT_DIR / "logs"))
LEDGER_DB_PATH = os.getenv("BRONZE_LEDGER_DB") or None

# Storage
DEFAULT_STORAGE_SCHEME = os.getenv("BRONZE_STORAGE_SCHEME", "s3")
DESTINATION_FILE_NAME = "part-00000.parquet"
PARQUET_COMPRESSION = "snappy"

S3_REGION = os.getenv("BRONZE_S3_REGION") or None
S3_CONNECT_TIMEOUT_SECONDS = float(os.getenv("BRONZE_S3_CONNECT_TIMEOUT", "10"))
S3_REQUEST_TIMEOUT_SECONDS = float(os.getenv("BRONZE_S3_REQUEST_TIMEOUT", "60"))

# Secrets (read once at startup)
STORAGE_SECRET_SCOPE = os.getenv("BRONZE_SECRET_SCOPE", "bronze_storage")
STORAGE_ACCESS_KEY_SECRET = "access_key"
STORAGE_SECRET_KEY_SECRET = "secret_key"

# Dispatch
MAX_PARALLEL_RECORDS = int(os.getenv("BRONZE_MAX_PARALLEL_RECORDS", "4"))
MAX_ATTEMPTS = int(os.getenv("BRONZE_MAX_ATTEMPTS", "3"))
RETRY_BACKOFF_SECONDS = float(os.getenv("BRONZE_RETRY_BACKOFF_SECONDS", "2.0"))
RECORD_TIMEOUT_SECONDS = float(os.getenv("BRONZE_RECORD_TIMEOUT_SECONDS", "0")) or None

# Ledger
TABLE_RUN_OUTCOMES = "run_outcomes"


# Logging Configuration

LOGGING_CONFIG: dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
            "level": os.getenv("BRONZE_LOG_LEVEL", "INFO"),
        },
        "rotating_file": {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "standard",
            "level": "DEBUG",
            "filename": str(LOG_FOLDER / "ingestion.log"),
            "maxBytes": 10485760,  # 10MB
            "backupCount": 5,
            "encoding": "utf8",
        },
    },
    "loggers": {
        "": {  # root logger
            "handlers": ["console", "rotating_file"],
            "level": "DEBUG",
            "propagate": True
        },
    }

}

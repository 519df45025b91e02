import logging
import os
from pathlib import Path

# Configuration
BASE_PATH = os.environ.get(
    "GROWTH_WHO_METRICS_PATH", str(Path(__file__).resolve().parent / "who_metrics")
)
DB_FILE = os.environ.get("GROWTH_DB_FILE", "growth_tracker.db")

API_BASE_URL = os.environ.get("GROWTH_API_BASE_URL", "http://localhost:5000/api")
REQUEST_TIMEOUT = float(os.environ.get("GROWTH_REQUEST_TIMEOUT", "5"))

LOCAL_STORE_DIR = os.environ.get("GROWTH_LOCAL_STORE_DIR", ".growth_tracker")
STORAGE_KEY = "growth_tracking_data"
STORAGE_VERSION = "1.0.0"

NIK_LENGTH = 16
MAX_AGE_YEARS = 100

LOG_LEVEL = os.environ.get("GROWTH_LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level=None):
    """Configure root logging for entry points (server, scripts)."""
    logging.basicConfig(level=(level or LOG_LEVEL).upper(), format=LOG_FORMAT)

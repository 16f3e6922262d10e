# client settings for the Easybeam service, read from the environment (and .env via load_dotenv)
# lets an application point the client at another service root or token without code change

import logging
import os
from dotenv import load_dotenv

load_dotenv()

# Service
EASYBEAM_TOKEN = os.getenv("EASYBEAM_TOKEN", "")
EASYBEAM_BASE_URL = os.getenv("EASYBEAM_BASE_URL", "https://api.easybeam.ai/v1")
API_GENERATION = os.getenv("EASYBEAM_API_GENERATION", "current").strip().lower()

# Timeouts (seconds)
CONNECT_TIMEOUT = float(os.getenv("EASYBEAM_CONNECT_TIMEOUT", "10.0"))
REQUEST_TIMEOUT = float(os.getenv("EASYBEAM_REQUEST_TIMEOUT", "60.0"))
STREAM_READ_TIMEOUT = float(os.getenv("EASYBEAM_STREAM_READ_TIMEOUT", "120.0"))

# Logging
LOG_LEVEL = os.getenv("EASYBEAM_LOG_LEVEL", "WARNING").upper()


def configure_logging() -> None:
    # opt-in; the library itself never installs handlers
    logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.WARNING))

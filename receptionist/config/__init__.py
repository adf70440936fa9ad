"""
Configuration for the salon receptionist call core.

- constants: provider endpoints, backend paths, audio and activity-detection
  parameters, tool names and user-facing messages.
- logging_config: console and rotating-file logging for the LOGGER_NAME logger.
- settings helpers: environment lookups with `.env` support.

Usage examples:
```python
from receptionist.config import backend_url
from receptionist.config.logging_config import configure_logging

logger = configure_logging()
logger.info(f"Backend at {backend_url()}")
```
"""

import os
from pathlib import Path

import dotenv

from receptionist.config.constants import (
    DEFAULT_BACKEND_URL,
    DEFAULT_REALTIME_MODEL,
    OPENAI_REALTIME_URL,
)

# Load environment variables from .env file if it exists
env_path = Path(".") / ".env"
if env_path.exists():
    dotenv.load_dotenv(env_path)


def backend_url() -> str:
    """Base URL of the credential/calendar backend."""
    return os.getenv("BACKEND_URL", DEFAULT_BACKEND_URL).rstrip("/")


def realtime_model() -> str:
    return os.getenv("OPENAI_REALTIME_MODEL", DEFAULT_REALTIME_MODEL)


def realtime_url() -> str:
    return os.getenv("OPENAI_REALTIME_URL", OPENAI_REALTIME_URL)

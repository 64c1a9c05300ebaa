"""Root conftest — shared test configuration."""

import os

# Tests never reach the real Aladhan API and log in human-readable form
os.environ.setdefault("SALAH_REMOTE_ENABLED", "false")
os.environ.setdefault("SALAH_LOG_FORMAT", "text")

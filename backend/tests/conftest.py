"""Root conftest — shared test configuration."""

import os

# Tests never run with production error masking or a developer's .env origins
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_FORMAT", "text")

"""Shared test setup."""

import os
import tempfile

# Logging is configured when worktracker is imported, keep its file log out of the home directory
os.environ.setdefault("WORKTRACKER_LOG_DIR", tempfile.mkdtemp(prefix="worktracker-logs-"))

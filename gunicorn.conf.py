"""Gunicorn config for the IPDR Explorer API."""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

# Each worker holds its own in-memory dataset and an upload only reaches the
# worker that served it, so stay on one worker unless data is preloaded
# through IPDR_DATA_FILE. Tune via WEB_CONCURRENCY env var.
worker_class = "uvicorn.workers.UvicornWorker"
workers = int(os.environ.get("WEB_CONCURRENCY", "1"))

# Indexing a large upload can take a while
timeout = 300

graceful_timeout = 30
keepalive = 65

# Logging
accesslog = "-"
errorlog = "-"
loglevel = "info"

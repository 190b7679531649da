"""
Production Gunicorn configuration for the Run Your Trip backend
"""

import multiprocessing
import os

bind = os.getenv("BIND", "0.0.0.0:5000")
workers = int(os.getenv("WORKERS", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"

# Stripe retries on anything but a timely 2xx; archive builds stop at
# ARCHIVE_BUILD_TIMEOUT_SECONDS, well inside this
timeout = int(os.getenv("WORKER_TIMEOUT", "30"))
graceful_timeout = 30
keepalive = 5

accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()

proc_name = "runyourtrip-backend"


def when_ready(server):
    server.log.info("Run Your Trip backend ready for traffic")


if os.getenv("ENVIRONMENT") == "development":
    workers = 1
    reload = True

"""
Gunicorn configuration for the Mai Sushi backend.
"""
import os

bind = f"0.0.0.0:{os.getenv('PORT', '8080')}"

# Worker configuration
# Notification delivery runs on in-process thread pools, so keep sync workers
workers = int(os.getenv('GUNICORN_WORKERS', '2'))
worker_class = 'sync'
worker_connections = 1000
timeout = 60
keepalive = 5

# Logging
accesslog = '-'  # stdout
errorlog = '-'   # stderr
loglevel = os.getenv('LOG_LEVEL', 'info')
capture_output = True

proc_name = 'maisushi'

preload_app = True

graceful_timeout = 30


def on_starting(server):
    print("[Gunicorn] Starting Mai Sushi server...")


def on_exit(server):
    print("[Gunicorn] Mai Sushi server shutting down...")

# gunicorn.conf.py
# Gunicorn configuration file

import logging
import os

wsgi_app = 'app:app'

# Logging
accesslog = '-'  # Log to stdout
errorlog = '-'   # Log to stderr
loglevel = 'info'

# Worker configuration
# One process keeps a single metadata cache and token; threads share it
workers = 1
worker_class = 'gthread'
threads = int(os.environ.get('GUNICORN_THREADS', '4'))
timeout = 120

# Server mechanics
daemon = False
pidfile = None
umask = 0
user = None
group = None
tmp_upload_dir = None

# Hooks
def post_worker_init(worker):
    """
    Called after a worker has been forked and initialized.
    """
    logger = logging.getLogger(__name__)
    logger.info(f"=== Post-worker init hook called for worker PID {os.getpid()} ===")

    try:
        import app
        service = app.app.extensions['metadata_service']
        logger.info(f"Metadata service ready in PID {os.getpid()} "
                    f"(credentials configured: {service.client.token_manager.has_credentials})")
    except Exception as e:
        logger.error(f"Error initializing metadata service in gunicorn worker: {e}", exc_info=True)


def worker_exit(server, worker):
    """
    Called when a worker exits.
    """
    logger = logging.getLogger(__name__)
    logger.info(f"Worker {worker.pid} exiting - draining metadata refreshes")

    try:
        import app
        app.app.extensions['metadata_service'].shutdown()
    except Exception as e:
        logger.error(f"Error draining metadata refreshes: {e}")

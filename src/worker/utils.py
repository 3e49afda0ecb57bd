import logging
import signal
import threading
from pathlib import Path

from src.config import settings

logger = logging.getLogger("AnalyticsWorker.Utils")

# Set once a shutdown signal arrives; the main loop finishes its current batch
_shutdown_event = threading.Event()

def request_shutdown(reason: str = "requested"):
    if not _shutdown_event.is_set():
        logger.info(f"Shutdown {reason}. Finishing current batch...")
        _shutdown_event.set()

def setup_signal_handlers():
    """Set up signal handlers for graceful shutdown."""
    def handle_shutdown(sig, frame):
        request_shutdown(f"signal {sig} received")

    signal.signal(signal.SIGINT, handle_shutdown)
    signal.signal(signal.SIGTERM, handle_shutdown)

def is_shutdown_requested() -> bool:
    return _shutdown_event.is_set()

def touch_healthcheck_file():
    """Signals that the worker is alive and draining the dataset topic."""
    try:
        Path(settings.WORKER_HEALTHCHECK_FILE_PATH).touch()
    except OSError as e:
        logger.warning(f"Could not touch healthcheck file: {e}")

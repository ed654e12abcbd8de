"""
Publish scheduled content management command.

Publishes every scheduled section and post whose scheduled_for has passed.
Safe to run from several workers at once: rows are claimed with
SELECT FOR UPDATE SKIP LOCKED.
"""

import random
import signal
import time

from django.conf import settings
from django.core.management.base import BaseCommand

from apps.audit.context import audit_context
from apps.content.services import publish_due_scheduled
from apps.core.exceptions import StorageError
from apps.core.logging import get_logger

logger = get_logger(__name__)


class Command(BaseCommand):
    help = "Publish scheduled content whose publication time has passed"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._shutdown_requested = False

    def add_arguments(self, parser):
        parser.add_argument(
            "--once",
            action="store_true",
            help="Run one tick and exit (default: run continuously)",
        )
        parser.add_argument(
            "--interval",
            type=float,
            default=None,
            help="Seconds between ticks (default: CONTENT_PUBLISH_INTERVAL_SECONDS)",
        )

    def handle(self, *args, **options):
        once = options["once"]
        interval = options["interval"] or settings.CONTENT_PUBLISH_INTERVAL_SECONDS

        if once:
            count = self._tick()
            self.stdout.write(self.style.SUCCESS(f"Published {count} scheduled item(s)"))
            return

        self._setup_signal_handlers()
        logger.info("content_publisher_started", interval=interval)

        while not self._shutdown_requested:
            try:
                self._tick()
            except StorageError:
                logger.exception("content_publisher_error")
            self._sleep_with_jitter(interval)

        logger.info("content_publisher_shutdown")

    def _tick(self) -> int:
        with audit_context(job="publish_scheduled_content"):
            return publish_due_scheduled()

    def _sleep_with_jitter(self, base_seconds: float) -> None:
        """Sleep with random jitter to avoid thundering herd."""
        jitter = base_seconds * 0.2 * random.random()
        time.sleep(base_seconds + jitter)

    def _setup_signal_handlers(self) -> None:
        """Setup graceful shutdown on SIGINT/SIGTERM."""
        for sig in (signal.SIGINT, signal.SIGTERM):
            signal.signal(sig, self._handle_signal)

    def _handle_signal(self, signum, frame) -> None:
        logger.info("content_publisher_signal_received", signal=signum)
        self._shutdown_requested = True
